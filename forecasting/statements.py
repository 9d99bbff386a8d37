from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List

from forecasting.dates import add_months, clamp_day, parse_date
from forecasting.models import Account, Transaction
from forecasting.money import ZERO, coerce_amount, round_money


@dataclass(frozen=True)
class StatementPeriod:
    start: date
    end: date
    payment_due: date


@dataclass(frozen=True)
class StatementPeriods:
    current: StatementPeriod
    next: StatementPeriod


@dataclass(frozen=True)
class StatementDetails:
    statement_balance: Decimal
    amount_paid: Decimal


def compute_statement_periods(
    statement_start_day: int,
    due_day: int,
    *,
    today: date | None = None,
) -> StatementPeriods:
    """Current and next billing cycle of a card.

    A cycle runs from its start day to the day before the same start day next
    month; its payment falls on due_day strictly after the cycle closes.
    Days past a short month's end are clamped to its last day, but a day
    outside 1..31 is a configuration error and raises ``ValueError``.
    """
    if not 1 <= statement_start_day <= 31 or not 1 <= due_day <= 31:
        raise ValueError("Statement start and due days must be between 1 and 31.")
    today = today or date.today()

    start = clamp_day(today.year, today.month, statement_start_day)
    if start > today:
        start = add_months(start, -1, statement_start_day)
    current = _period_from_start(start, statement_start_day, due_day)
    following = _period_from_start(
        add_months(start, 1, statement_start_day), statement_start_day, due_day
    )
    return StatementPeriods(current=current, next=following)


def get_statement_details(
    account: Account,
    period_start: date,
    period_end: date,
    transactions: Iterable[Transaction],
) -> StatementDetails:
    """Statement balance of a card for a period.

    Incoming transfers whose other leg sits on the card's settlement account
    are bill payments: they are reported as ``amount_paid`` and left out of
    the statement balance.
    """
    transactions = list(transactions)
    legs_by_transfer: Dict[str, List[Transaction]] = {}
    for txn in transactions:
        if txn.transfer_id:
            legs_by_transfer.setdefault(txn.transfer_id, []).append(txn)

    statement_balance = ZERO
    amount_paid = ZERO
    for txn in transactions:
        if txn.account_id != account.id:
            continue
        posted = parse_date(txn.date)
        if posted is None or not period_start <= posted <= period_end:
            continue
        amount = coerce_amount(txn.amount)
        if _is_settlement(txn, amount, account, legs_by_transfer):
            amount_paid += amount
        else:
            statement_balance += amount

    return StatementDetails(
        statement_balance=round_money(statement_balance),
        amount_paid=round_money(amount_paid),
    )


def _period_from_start(start: date, statement_start_day: int, due_day: int) -> StatementPeriod:
    end = add_months(start, 1, statement_start_day) - timedelta(days=1)
    payment_due = clamp_day(end.year, end.month, due_day)
    if payment_due <= end:
        payment_due = add_months(payment_due, 1, due_day)
    return StatementPeriod(start=start, end=end, payment_due=payment_due)


def _is_settlement(
    txn: Transaction,
    amount: Decimal,
    account: Account,
    legs_by_transfer: Dict[str, List[Transaction]],
) -> bool:
    if not account.settlement_account_id or not txn.transfer_id or amount <= ZERO:
        return False
    return any(
        leg.id != txn.id and leg.account_id == account.settlement_account_id
        for leg in legs_by_transfer.get(txn.transfer_id, [])
    )
