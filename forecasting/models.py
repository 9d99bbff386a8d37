from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Mapping, Optional, Union

DateLike = Union[date, str]


@dataclass(frozen=True)
class Account:
    id: str
    type: str
    balance: Decimal
    currency: str
    name: str = ""
    # Loan / lending
    principal_amount: Optional[Decimal] = None
    interest_rate: Optional[Decimal] = None
    duration: Optional[int] = None
    loan_start_date: Optional[DateLike] = None
    monthly_payment: Optional[Decimal] = None
    payment_day_of_month: Optional[int] = None
    linked_account_id: Optional[str] = None
    # Credit card
    statement_start_day: Optional[int] = None
    payment_due_day: Optional[int] = None
    settlement_account_id: Optional[str] = None
    credit_limit: Optional[Decimal] = None


@dataclass(frozen=True)
class Transaction:
    id: str
    account_id: str
    date: DateLike
    amount: Decimal
    currency: str
    type: str
    description: str = ""
    category: Optional[str] = None
    transfer_id: Optional[str] = None
    principal_amount: Optional[Decimal] = None
    interest_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class RecurringTransaction:
    id: str
    account_id: str
    amount: Decimal
    currency: str
    type: str
    frequency: str
    start_date: DateLike
    next_due_date: Optional[DateLike] = None
    frequency_interval: int = 1
    to_account_id: Optional[str] = None
    end_date: Optional[DateLike] = None
    due_date_of_month: Optional[int] = None
    weekend_adjustment: str = "on"
    description: str = ""


@dataclass(frozen=True)
class UserRule(RecurringTransaction):
    """A recurring rule entered and editable by the user."""


@dataclass(frozen=True)
class SyntheticRule(RecurringTransaction):
    """A read-only rule derived from another record, e.g. a loan account."""

    source_account_id: str = ""


RecurringRule = Union[UserRule, SyntheticRule]


@dataclass(frozen=True)
class OccurrenceOverride:
    rule_id: str
    original_date: DateLike
    date: Optional[DateLike] = None
    amount: Optional[Decimal] = None  # signed
    is_skipped: bool = False


@dataclass(frozen=True)
class FinancialGoal:
    id: str
    amount: Decimal
    current_amount: Decimal
    type: str = "one-time"
    name: str = ""
    currency: str = "EUR"
    transaction_type: str = "expense"
    date: Optional[DateLike] = None
    frequency: Optional[str] = None
    start_date: Optional[DateLike] = None
    end_date: Optional[DateLike] = None
    monthly_contribution: Optional[Decimal] = None
    due_date_of_month: Optional[int] = None


@dataclass(frozen=True)
class BillPayment:
    id: str
    amount: Decimal  # positive for deposits, negative for payments
    currency: str
    due_date: DateLike
    status: str = "unpaid"
    description: str = ""


@dataclass(frozen=True)
class PaymentOverride:
    total_payment: Optional[Decimal] = None
    principal: Optional[Decimal] = None
    interest: Optional[Decimal] = None


PaymentOverrides = Mapping[int, PaymentOverride]


@dataclass(frozen=True)
class ScheduledPayment:
    payment_number: int
    date: date
    total_payment: Decimal
    principal: Decimal
    interest: Decimal
    outstanding_balance: Decimal
    status: str
    transaction_id: Optional[str] = None
