from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List

from forecasting.accounts import liquid_accounts
from forecasting.currency_conversion import RateProvider, to_reference
from forecasting.dates import add_months, add_period, iter_days, parse_date
from forecasting.models import (
    Account,
    BillPayment,
    FinancialGoal,
    OccurrenceOverride,
    RecurringTransaction,
)
from forecasting.money import ZERO, coerce_amount, round_money
from forecasting.recurring_projection import expand_recurring_rules, rules_touching

logger = logging.getLogger(__name__)

PERIOD_WINDOWS = (
    ("This Month", 0, 1),
    ("Next 3 Months", 1, 3),
    ("Next 6 Months", 3, 6),
    ("Next Year", 6, 12),
)


@dataclass(frozen=True)
class BalancePoint:
    date: date
    balance: Decimal


@dataclass(frozen=True)
class ForecastSummary:
    final_balance: Decimal
    lowest_balance: Decimal
    lowest_date: date


@dataclass(frozen=True)
class PeriodLow:
    period: str
    lowest_balance: Decimal
    date: date


def project_daily_balances(
    accounts: Iterable[Account],
    rules: Iterable[RecurringTransaction],
    goals: Iterable[FinancialGoal],
    bills: Iterable[BillPayment],
    horizon_end: date,
    *,
    today: date | None = None,
    overrides: Iterable[OccurrenceOverride] = (),
    rate_provider: RateProvider | None = None,
    reference_currency: str | None = None,
) -> List[BalancePoint]:
    """Project the combined liquid balance for every day from today to horizon_end.

    An empty list means there is nothing to forecast from (no liquid accounts),
    not a zero balance.
    """
    today = today or date.today()
    liquid = liquid_accounts(accounts)
    if not liquid or horizon_end < today:
        return []

    scope = {account.id for account in liquid}
    running = starting_balance(liquid, rate_provider, reference_currency)

    changes: Dict[date, Decimal] = {}
    for event in expand_recurring_rules(
        rules_touching(rules, scope),
        today,
        horizon_end,
        scope_account_ids=scope,
        overrides=overrides,
        rate_provider=rate_provider,
        reference_currency=reference_currency,
    ):
        _add_change(changes, event.date, event.amount)

    for goal in goals:
        for when, amount in goal_contributions(
            goal, today, horizon_end, rate_provider, reference_currency
        ):
            _add_change(changes, when, amount)

    for bill in bills:
        for when, amount in _bill_change(bill, today, horizon_end, rate_provider, reference_currency):
            _add_change(changes, when, amount)

    points: List[BalancePoint] = []
    for day in iter_days(today, horizon_end):
        running = round_money(running + changes.get(day, ZERO))
        points.append(BalancePoint(date=day, balance=running))
    return points


def starting_balance(
    accounts: Iterable[Account],
    rate_provider: RateProvider | None = None,
    reference_currency: str | None = None,
) -> Decimal:
    total = ZERO
    for account in accounts:
        try:
            total += to_reference(
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
    return total


def goal_contributions(
    goal: FinancialGoal,
    today: date,
    horizon_end: date,
    rate_provider: RateProvider | None = None,
    reference_currency: str | None = None,
) -> List[tuple[date, Decimal]]:
    """Dated cash-flow changes a goal imposes on the liquid pool."""
    try:
        target = coerce_amount(goal.amount)
        remaining = target - coerce_amount(goal.current_amount)
    except ValueError:
        logger.warning("Skipping goal with invalid amount", extra={"goal_id": goal.id})
        return []
    if remaining <= ZERO:
        return []
    sign = 1 if goal.transaction_type == "income" else -1

    def signed(amount: Decimal) -> Decimal:
        return sign * to_reference(
            amount,
            goal.currency,
            rate_provider=rate_provider,
            reference_currency=reference_currency,
        )

    try:
        if goal.type == "one-time":
            target_date = parse_date(goal.date)
            if target_date is None or not today <= target_date <= horizon_end:
                return []
            return [(target_date, signed(remaining))]

        contribution = coerce_amount(goal.monthly_contribution)
        if contribution <= ZERO:
            return []
        changes: List[tuple[date, Decimal]] = []
        for when in goal_occurrences(goal, today, horizon_end):
            step = min(contribution, remaining)
            changes.append((when, signed(step)))
            remaining -= step
            if remaining <= ZERO:
                break
        return changes
    except ValueError as exc:
        logger.warning("Skipping goal", extra={"goal_id": goal.id, "reason": str(exc)})
        return []


def goal_occurrences(goal: FinancialGoal, today: date, horizon_end: date) -> List[date]:
    """Contribution dates of a recurring goal inside [today, horizon_end]."""
    start = parse_date(goal.start_date)
    if start is None:
        return []
    end = parse_date(goal.end_date)
    if end is not None and end < today:
        return []
    frequency = goal.frequency or "monthly"
    anchor_day = goal.due_date_of_month or start.day
    cursor = start
    if goal.due_date_of_month and frequency in {"monthly", "yearly"}:
        cursor = add_months(start, 0, anchor_day)
    while cursor < today:
        cursor = add_period(cursor, frequency, 1, anchor_day)

    occurrences: List[date] = []
    while cursor <= horizon_end and (end is None or cursor <= end):
        occurrences.append(cursor)
        cursor = add_period(cursor, frequency, 1, anchor_day)
    return occurrences


def summarize_forecast(points: List[BalancePoint]) -> ForecastSummary | None:
    if not points:
        return None
    lowest = min(points, key=lambda point: point.balance)
    return ForecastSummary(
        final_balance=points[-1].balance,
        lowest_balance=lowest.balance,
        lowest_date=lowest.date,
    )


def lowest_balance_by_period(
    points: List[BalancePoint],
    today: date,
    initial_balance: Decimal,
) -> List[PeriodLow]:
    """Lowest projected balance per dashboard window.

    Windows are calendar months relative to today's month. Each window reports
    the lowest balance not already reported by an earlier window, so that a
    single trough is not repeated four times.
    """
    month_start = today.replace(day=1)
    if not points:
        return [
            PeriodLow(period=label, lowest_balance=round_money(initial_balance), date=today)
            for label, _, _ in PERIOD_WINDOWS
        ]

    results: List[PeriodLow] = []
    reported: set[Decimal] = set()
    for label, start_offset, end_offset in PERIOD_WINDOWS:
        window_start = add_months(month_start, start_offset, 1)
        window_end = add_months(month_start, end_offset, 1) - timedelta(days=1)
        window = [point for point in points if window_start <= point.date <= window_end]
        fresh = [point for point in window if point.balance not in reported]
        if fresh:
            lowest = min(fresh, key=lambda point: point.balance)
            chosen = PeriodLow(period=label, lowest_balance=lowest.balance, date=lowest.date)
        elif window:
            lowest = min(window, key=lambda point: point.balance)
            chosen = PeriodLow(period=label, lowest_balance=lowest.balance, date=lowest.date)
        else:
            before = [point for point in points if point.date < window_start]
            if before:
                chosen = PeriodLow(period=label, lowest_balance=before[-1].balance, date=before[-1].date)
            else:
                chosen = PeriodLow(
                    period=label, lowest_balance=round_money(initial_balance), date=today
                )
        results.append(chosen)
        reported.add(chosen.lowest_balance)
    return results


def _bill_change(
    bill: BillPayment,
    today: date,
    horizon_end: date,
    rate_provider: RateProvider | None,
    reference_currency: str | None,
) -> List[tuple[date, Decimal]]:
    if bill.status != "unpaid":
        return []
    due = parse_date(bill.due_date)
    if due is None or not today <= due <= horizon_end:
        return []
    try:
        amount = to_reference(
            bill.amount,
            bill.currency,
            rate_provider=rate_provider,
            reference_currency=reference_currency,
        )
    except ValueError as exc:
        logger.warning("Skipping bill", extra={"bill_id": bill.id, "reason": str(exc)})
        return []
    return [(due, amount)]


def _add_change(changes: Dict[date, Decimal], when: date, amount: Decimal) -> None:
    changes[when] = changes.get(when, ZERO) + amount
