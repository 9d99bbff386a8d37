from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Collection, Iterable, List, Tuple

from forecasting.config import TRANSFER_MATCH_WINDOW_DAYS
from forecasting.currency_conversion import RateProvider, to_reference
from forecasting.dates import parse_date
from forecasting.models import Account, Transaction

logger = logging.getLogger(__name__)

AMOUNT_EPSILON = Decimal("0.01")
MAX_DATE_GAP = timedelta(days=1)
TRANSFER_CATEGORY = "Transfer"


@dataclass(frozen=True)
class Suggestion:
    expense_tx: Transaction
    income_tx: Transaction
    id: str


@dataclass(frozen=True)
class _Candidate:
    txn: Transaction
    posted: date
    amount: Decimal


def suggestion_id(first: Transaction, second: Transaction) -> str:
    return "|".join(sorted((first.id, second.id)))


def find_transfer_suggestions(
    transactions: Iterable[Transaction],
    accounts: Iterable[Account],
    dismissed_ids: Collection[str] = (),
    *,
    today: date | None = None,
    window_days: int | None = None,
    rate_provider: RateProvider | None = None,
    reference_currency: str | None = None,
) -> List[Suggestion]:
    """Pair recent expenses and incomes that look like two legs of one transfer.

    Only transactions without a transfer id, posted within the trailing window
    and booked on an account present in ``accounts`` are considered.
    Transactions of accounts missing from the snapshot are dropped without
    a log entry, since they cannot be named in an accepted transfer.
    """
    today = today or date.today()
    window_start = today - timedelta(days=window_days or TRANSFER_MATCH_WINDOW_DAYS)
    known_accounts = {account.id for account in accounts}
    dismissed = set(dismissed_ids)

    expenses: List[_Candidate] = []
    incomes: List[_Candidate] = []
    for txn in transactions:
        if txn.transfer_id or txn.account_id not in known_accounts:
            continue
        posted = parse_date(txn.date)
        if posted is None or posted < window_start:
            continue
        try:
            amount = abs(
                to_reference(
                    txn.amount,
                    txn.currency,
                    rate_provider=rate_provider,
                    reference_currency=reference_currency,
                )
            )
        except ValueError:
            logger.warning(
                "Skipping transaction with unconvertible amount",
                extra={"transaction_id": txn.id, "currency": txn.currency},
            )
            continue
        kind = txn.type.strip().lower()
        if kind == "expense":
            expenses.append(_Candidate(txn, posted, amount))
        elif kind == "income":
            incomes.append(_Candidate(txn, posted, amount))

    suggestions: List[Suggestion] = []
    seen: set[str] = set()
    for expense in expenses:
        for income in incomes:
            if expense.txn.account_id == income.txn.account_id:
                continue
            pair_id = suggestion_id(expense.txn, income.txn)
            if pair_id in seen or pair_id in dismissed:
                continue
            if abs(expense.amount - income.amount) >= AMOUNT_EPSILON:
                continue
            if abs(expense.posted - income.posted) > MAX_DATE_GAP:
                continue
            seen.add(pair_id)
            suggestions.append(
                Suggestion(expense_tx=expense.txn, income_tx=income.txn, id=pair_id)
            )
    return suggestions


def accept_suggestion(
    suggestion: Suggestion,
    accounts: Iterable[Account],
    transfer_id: str | None = None,
) -> Tuple[Transaction, Transaction]:
    """Link both legs under one new transfer id and relabel them."""
    names = {account.id: account.name for account in accounts}
    transfer_id = transfer_id or f"xfer-{uuid.uuid4()}"
    to_name = names.get(suggestion.income_tx.account_id) or "account"
    from_name = names.get(suggestion.expense_tx.account_id) or "account"
    expense = replace(
        suggestion.expense_tx,
        transfer_id=transfer_id,
        category=TRANSFER_CATEGORY,
        description=f"Transfer to {to_name}",
    )
    income = replace(
        suggestion.income_tx,
        transfer_id=transfer_id,
        category=TRANSFER_CATEGORY,
        description=f"Transfer from {from_name}",
    )
    return expense, income


def accept_all_suggestions(
    suggestions: Iterable[Suggestion], accounts: Iterable[Account]
) -> List[Transaction]:
    """Accept every suggestion whose legs are not already claimed by an earlier one."""
    accounts = list(accounts)
    claimed: set[str] = set()
    updated: List[Transaction] = []
    for suggestion in suggestions:
        legs = {suggestion.expense_tx.id, suggestion.income_tx.id}
        if legs & claimed:
            continue
        claimed |= legs
        updated.extend(accept_suggestion(suggestion, accounts))
    return updated


def dismiss_suggestions(
    dismissed_ids: Collection[str], suggestions: Iterable[Suggestion]
) -> frozenset[str]:
    return frozenset(dismissed_ids) | {suggestion.id for suggestion in suggestions}


def apply_updates(
    transactions: Iterable[Transaction], updated: Iterable[Transaction]
) -> List[Transaction]:
    """Replace transactions by id with their updated versions."""
    by_id = {txn.id: txn for txn in updated}
    return [by_id.get(txn.id, txn) for txn in transactions]
