from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Collection, Dict, Iterable, List, Set

from forecasting.balance_forecast import BalancePoint, goal_occurrences, starting_balance
from forecasting.currency_conversion import RateProvider, to_reference
from forecasting.dates import add_months, iter_days, months_between, parse_date
from forecasting.models import Account, FinancialGoal, OccurrenceOverride, RecurringTransaction
from forecasting.money import ZERO, coerce_amount, round_money
from forecasting.recurring_projection import expand_recurring_rules, rules_touching

logger = logging.getLogger(__name__)

ON_TRACK = "on-track"
AT_RISK = "at-risk"
OFF_TRACK = "off-track"
AT_RISK_MONTHS = 3


@dataclass(frozen=True)
class GoalProjection:
    projected_date: date | None
    status: str


@dataclass(frozen=True)
class GoalScenario:
    points: List[BalancePoint]
    projections: Dict[str, GoalProjection]


@dataclass
class _GoalState:
    goal: FinancialGoal
    target: Decimal
    running: Decimal
    target_date: date | None
    contribution: Decimal = ZERO
    due_dates: Set[date] = field(default_factory=set)
    projected_date: date | None = None


def classify_goal_status(projected_date: date | None, target_date: date | None) -> str:
    if projected_date is None:
        return OFF_TRACK
    if target_date is None:
        return ON_TRACK
    if projected_date > target_date:
        return OFF_TRACK
    if months_between(projected_date, target_date) < AT_RISK_MONTHS:
        return AT_RISK
    return ON_TRACK


def classify_goal_projections(
    accounts: Iterable[Account],
    rules: Iterable[RecurringTransaction],
    goals: Iterable[FinancialGoal],
    horizon_months: int,
    active_goal_ids: Collection[str],
    *,
    today: date | None = None,
    overrides: Iterable[OccurrenceOverride] = (),
    rate_provider: RateProvider | None = None,
    reference_currency: str | None = None,
) -> Dict[str, GoalProjection]:
    return run_goal_scenario(
        accounts,
        rules,
        goals,
        horizon_months,
        active_goal_ids,
        today=today,
        overrides=overrides,
        rate_provider=rate_provider,
        reference_currency=reference_currency,
    ).projections


def run_goal_scenario(
    accounts: Iterable[Account],
    rules: Iterable[RecurringTransaction],
    goals: Iterable[FinancialGoal],
    horizon_months: int,
    active_goal_ids: Collection[str],
    *,
    today: date | None = None,
    overrides: Iterable[OccurrenceOverride] = (),
    rate_provider: RateProvider | None = None,
    reference_currency: str | None = None,
) -> GoalScenario:
    """Simulate the selected accounts day by day while funding the active goals.

    Each goal's running amount lives in a local state object, so the goals
    passed in are never touched. A goal that is already fully funded projects
    to today and counts as on track.
    """
    today = today or date.today()
    selected = list(accounts)
    if not selected:
        return GoalScenario(points=[], projections={})
    horizon_end = add_months(today, max(horizon_months, 0), today.day)
    scope = {account.id for account in selected}

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
        changes[event.date] = changes.get(event.date, ZERO) + event.amount

    active = set(active_goal_ids)
    projections: Dict[str, GoalProjection] = {}
    states: List[_GoalState] = []
    for goal in goals:
        if goal.id not in active:
            continue
        state = _initial_state(goal, today, horizon_end)
        if state is None:
            continue
        if state.running >= state.target:
            projections[goal.id] = GoalProjection(projected_date=today, status=ON_TRACK)
            continue
        states.append(state)

    running = starting_balance(selected, rate_provider, reference_currency)
    points: List[BalancePoint] = []
    for day in iter_days(today, horizon_end):
        daily_change = changes.get(day, ZERO)
        for state in states:
            contribution = _contribution_for(state, day)
            if contribution <= ZERO:
                continue
            daily_change += _signed_contribution(
                state.goal, contribution, rate_provider, reference_currency
            )
            state.running += contribution
            if state.running >= state.target and state.projected_date is None:
                state.projected_date = day
        running = round_money(running + daily_change)
        points.append(BalancePoint(date=day, balance=running))

    for state in states:
        projections[state.goal.id] = GoalProjection(
            projected_date=state.projected_date,
            status=classify_goal_status(state.projected_date, state.target_date),
        )
    return GoalScenario(points=points, projections=projections)


def _initial_state(goal: FinancialGoal, today: date, horizon_end: date) -> _GoalState | None:
    try:
        state = _GoalState(
            goal=goal,
            target=coerce_amount(goal.amount),
            running=coerce_amount(goal.current_amount),
            target_date=parse_date(goal.date),
        )
        if goal.type == "recurring":
            state.contribution = coerce_amount(goal.monthly_contribution)
            state.due_dates = set(goal_occurrences(goal, today, horizon_end))
    except ValueError as exc:
        logger.warning("Skipping goal", extra={"goal_id": goal.id, "reason": str(exc)})
        return None
    return state


def _contribution_for(state: _GoalState, day: date) -> Decimal:
    if state.running >= state.target:
        return ZERO
    remaining = state.target - state.running
    if state.goal.type == "one-time":
        return remaining if state.target_date == day else ZERO
    if day in state.due_dates and state.contribution > ZERO:
        return min(state.contribution, remaining)
    return ZERO


def _signed_contribution(
    goal: FinancialGoal,
    contribution: Decimal,
    rate_provider: RateProvider | None,
    reference_currency: str | None,
) -> Decimal:
    try:
        converted = to_reference(
            contribution,
            goal.currency,
            rate_provider=rate_provider,
            reference_currency=reference_currency,
        )
    except ValueError:
        logger.warning("Goal currency not convertible", extra={"goal_id": goal.id})
        return ZERO
    return converted if goal.transaction_type == "income" else -converted
