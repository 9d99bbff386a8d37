from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from forecasting.accounts import LOAN_TYPES, normalize_account_type
from forecasting.dates import add_months, clamp_day, parse_date
from forecasting.models import (
    Account,
    PaymentOverride,
    PaymentOverrides,
    ScheduledPayment,
    SyntheticRule,
    Transaction,
)
from forecasting.money import ZERO, coerce_amount, round_money

logger = logging.getLogger(__name__)

STATUS_PAID = "Paid"
STATUS_OVERDUE = "Overdue"
STATUS_UPCOMING = "Upcoming"

NO_OVERRIDE = PaymentOverride()


def level_installment(principal: Decimal, monthly_rate: Decimal, duration: int) -> Decimal:
    """Standard annuity payment P*r*(1+r)^n / ((1+r)^n - 1)."""
    if duration <= 0:
        return ZERO
    if monthly_rate == ZERO:
        return principal / duration
    growth = (1 + monthly_rate) ** duration
    return principal * monthly_rate * growth / (growth - 1)


def build_amortization_schedule(
    account: Account,
    transactions: Iterable[Transaction],
    overrides: PaymentOverrides | None = None,
    *,
    today: date | None = None,
) -> List[ScheduledPayment]:
    """Payment plan for a loan or lending account, reconciled with real payments.

    Installments matched by a recorded payment in the same calendar month
    report that payment's principal/interest split. The running outstanding
    balance is carried unrounded; values are rounded only when a row is
    emitted, and the last row always clears the balance to exactly zero. Once
    the balance is paid off, by recorded payments or otherwise, the remaining
    rows are all zero.
    Returns an empty list when the account is not a configured loan.
    """
    today = today or date.today()
    terms = _loan_terms(account)
    if terms is None:
        return []
    principal, annual_rate, duration, start = terms

    monthly_rate = annual_rate / 100 / 12
    installment = level_installment(principal, monthly_rate, duration)
    manual_payment = _positive_or_none(account.monthly_payment)
    overrides = dict(overrides or {})
    real_payments = _index_real_payments(account, transactions)
    payment_day = account.payment_day_of_month

    outstanding = principal
    schedule: List[ScheduledPayment] = []
    for number in range(1, duration + 1):
        due = add_months(start, number, start.day)
        if due > today and payment_day and due.day != payment_day:
            due = clamp_day(due.year, due.month, payment_day)

        payment = real_payments.get((due.year, due.month))
        if payment is not None:
            interest = (
                abs(coerce_amount(payment.interest_amount))
                if payment.interest_amount is not None
                else outstanding * monthly_rate
            )
            principal_part = (
                abs(coerce_amount(payment.principal_amount))
                if payment.principal_amount is not None
                else abs(coerce_amount(payment.amount)) - interest
            )
            outstanding = max(outstanding - principal_part, ZERO)
            schedule.append(
                _emit(number, due, principal_part, interest, outstanding, STATUS_PAID, payment.id)
            )
            continue

        status = STATUS_OVERDUE if due < today else STATUS_UPCOMING
        if outstanding <= ZERO:
            schedule.append(_emit(number, due, ZERO, ZERO, ZERO, status))
            continue

        override = overrides.get(number, NO_OVERRIDE)
        interest = (
            coerce_amount(override.interest)
            if override.interest is not None
            else outstanding * monthly_rate
        )
        if override.principal is not None:
            principal_part = coerce_amount(override.principal)
        else:
            if override.total_payment is not None:
                base_payment = coerce_amount(override.total_payment)
            else:
                base_payment = manual_payment or installment
            principal_part = base_payment - interest

        if number == duration or outstanding < principal_part:
            principal_part = outstanding
        outstanding -= principal_part
        schedule.append(_emit(number, due, principal_part, interest, outstanding, status))

    return schedule


def generate_synthetic_loan_rules(
    accounts: Iterable[Account], *, today: date | None = None
) -> List[SyntheticRule]:
    """Implicit monthly transfers for loans with a configured payment plan.

    Loan payments leave the linked account; lending repayments arrive in it.
    """
    today = today or date.today()
    rules: List[SyntheticRule] = []
    for account in accounts:
        if normalize_account_type(account.type) not in LOAN_TYPES:
            continue
        payment_day = account.payment_day_of_month
        if not (account.monthly_payment and payment_day and account.linked_account_id):
            continue

        start = parse_date(account.loan_start_date) or today
        end = add_months(start, account.duration, payment_day) if account.duration else None
        first_payment = add_months(start, 1, payment_day)
        if first_payment > today:
            next_due = first_payment
        else:
            next_due = clamp_day(today.year, today.month, payment_day)
            if next_due < today:
                next_due = add_months(next_due, 1, payment_day)

        if normalize_account_type(account.type) == "loan":
            source, destination = account.linked_account_id, account.id
        else:
            source, destination = account.id, account.linked_account_id

        rules.append(
            SyntheticRule(
                id=f"loan-{account.id}",
                account_id=source,
                to_account_id=destination,
                amount=coerce_amount(account.monthly_payment),
                currency=account.currency,
                type="transfer",
                frequency="monthly",
                start_date=start,
                next_due_date=next_due,
                end_date=end,
                due_date_of_month=payment_day,
                description=f"{account.name or 'Loan'} payment",
                source_account_id=account.id,
            )
        )
    return rules


def _loan_terms(account: Account) -> Tuple[Decimal, Decimal, int, date] | None:
    if normalize_account_type(account.type) not in LOAN_TYPES:
        return None
    if account.principal_amount is None or account.interest_rate is None:
        return None
    start = parse_date(account.loan_start_date)
    if start is None or not account.duration or account.duration <= 0:
        return None
    try:
        principal = coerce_amount(account.principal_amount)
        rate = coerce_amount(account.interest_rate)
    except ValueError:
        logger.warning("Loan account has invalid terms", extra={"account_id": account.id})
        return None
    return principal, rate, int(account.duration), start


def _index_real_payments(
    account: Account, transactions: Iterable[Transaction]
) -> Dict[Tuple[int, int], Transaction]:
    payment_type = "income" if normalize_account_type(account.type) == "loan" else "expense"
    candidates = []
    for txn in transactions:
        if txn.account_id != account.id or not txn.transfer_id:
            continue
        if txn.type.strip().lower() != payment_type:
            continue
        posted = parse_date(txn.date)
        if posted is None:
            continue
        candidates.append((posted, txn))

    index: Dict[Tuple[int, int], Transaction] = {}
    for posted, txn in sorted(candidates, key=lambda item: item[0]):
        index.setdefault((posted.year, posted.month), txn)
    return index


def _positive_or_none(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    amount = coerce_amount(value)
    return amount if amount > ZERO else None


def _emit(
    number: int,
    due: date,
    principal: Decimal,
    interest: Decimal,
    outstanding: Decimal,
    status: str,
    transaction_id: str | None = None,
) -> ScheduledPayment:
    return ScheduledPayment(
        payment_number=number,
        date=due,
        total_payment=round_money(principal + interest),
        principal=round_money(principal),
        interest=round_money(interest),
        outstanding_balance=round_money(outstanding),
        status=status,
        transaction_id=transaction_id,
    )
