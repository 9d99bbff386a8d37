from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from forecasting.currency_conversion import RateProvider, to_reference
from forecasting.models import Account
from forecasting.money import ZERO, round_money

logger = logging.getLogger(__name__)

LIQUID_ACCOUNT_TYPES = {"checking", "savings", "credit card"}
ASSET_TYPES = {"checking", "savings", "investment", "property", "vehicle", "other assets"}
DEBT_TYPES = {"credit card", "loan", "other liabilities"}
LOAN_TYPES = {"loan", "lending"}


@dataclass(frozen=True)
class AccountTotals:
    total_assets: Decimal
    total_debt: Decimal
    credit_card_debt: Decimal
    net_worth: Decimal


def normalize_account_type(value: str) -> str:
    return " ".join(value.replace("-", " ").replace("_", " ").lower().split())


def is_liquid(account: Account) -> bool:
    return normalize_account_type(account.type) in LIQUID_ACCOUNT_TYPES


def liquid_accounts(accounts: Iterable[Account]) -> list[Account]:
    return [account for account in accounts if is_liquid(account)]


def calculate_account_totals(
    accounts: Iterable[Account],
    rate_provider: RateProvider | None = None,
    reference_currency: str | None = None,
) -> AccountTotals:
    """Sum assets and debts in the reference currency.

    Debt balances are stored negative, so net worth is a plain sum.
    """
    total_assets = ZERO
    total_debt = ZERO
    credit_card_debt = ZERO
    for account in accounts:
        account_type = normalize_account_type(account.type)
        try:
            balance = to_reference(
                account.balance,
                account.currency,
                rate_provider=rate_provider,
                reference_currency=reference_currency,
            )
        except ValueError:
            logger.warning(
                "Skipping account with unconvertible balance",
                extra={"account_id": account.id, "currency": account.currency},
            )
            continue
        if account_type in ASSET_TYPES:
            total_assets += balance
        if account_type in DEBT_TYPES:
            total_debt += balance
        if account_type == "credit card":
            credit_card_debt += balance

    return AccountTotals(
        total_assets=round_money(total_assets),
        total_debt=round_money(total_debt),
        credit_card_debt=round_money(credit_card_debt),
        net_worth=round_money(total_assets + total_debt),
    )
