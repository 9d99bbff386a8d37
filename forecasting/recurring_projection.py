from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Collection, Dict, Iterable, List

from forecasting.currency_conversion import RateProvider, to_reference
from forecasting.dates import add_period, adjust_for_weekend, normalize_frequency, parse_date
from forecasting.models import OccurrenceOverride, RecurringTransaction
from forecasting.money import ZERO, coerce_amount

logger = logging.getLogger(__name__)

SUPPORTED_KINDS = {"income", "expense", "transfer"}


@dataclass(frozen=True)
class ProjectedEvent:
    date: date
    amount: Decimal
    rule_id: str
    original_date: date
    description: str = ""
    is_override: bool = False


@dataclass(frozen=True)
class Expansion:
    next_due_date: date | None
    events: List[ProjectedEvent] = field(default_factory=list)


def expand_recurring_events(
    rule: RecurringTransaction,
    start_date: date,
    horizon_end: date,
    *,
    scope_account_ids: Collection[str] | None = None,
    overrides: Iterable[OccurrenceOverride] = (),
    rate_provider: RateProvider | None = None,
    reference_currency: str | None = None,
) -> Expansion:
    """Expand one rule into dated, signed reference-currency amounts.

    The rule is never mutated: the advanced cursor comes back as
    ``Expansion.next_due_date``. Transfers are signed against
    ``scope_account_ids`` (defaulting to the rule's own account): leaving the
    scope is negative, entering it positive, anything else zero.
    """
    if start_date > horizon_end:
        raise ValueError("start_date must be on or before horizon_end.")
    kind = _validate_kind(rule.type)
    frequency = normalize_frequency(rule.frequency)

    rule_start = parse_date(rule.start_date)
    cursor = parse_date(rule.next_due_date) or rule_start
    if cursor is None:
        logger.warning("Recurring rule has no valid due date", extra={"rule_id": rule.id})
        return Expansion(next_due_date=None)

    end_date = parse_date(rule.end_date)
    interval = rule.frequency_interval or 1
    anchor_day = rule.due_date_of_month or (rule_start or cursor).day

    while cursor < start_date:
        cursor = add_period(cursor, frequency, interval, anchor_day)

    direction = _direction(rule, kind, scope_account_ids)
    base_amount = _reference_amount(
        coerce_amount(rule.amount), rule.currency, direction, rate_provider, reference_currency
    )
    override_index = _index_overrides(rule.id, overrides)

    events: List[ProjectedEvent] = []
    while cursor <= horizon_end and (end_date is None or cursor <= end_date):
        override = override_index.get(cursor)
        if override is None:
            event_date = adjust_for_weekend(cursor, rule.weekend_adjustment)
            amount = base_amount
        elif override.is_skipped:
            event_date = None
        else:
            event_date = parse_date(override.date) or adjust_for_weekend(
                cursor, rule.weekend_adjustment
            )
            amount = base_amount
            if override.amount is not None:
                amount = _reference_amount(
                    coerce_amount(override.amount),
                    rule.currency,
                    direction,
                    rate_provider,
                    reference_currency,
                )

        if event_date is not None and start_date <= event_date <= horizon_end:
            events.append(
                ProjectedEvent(
                    date=event_date,
                    amount=amount,
                    rule_id=rule.id,
                    original_date=cursor,
                    description=rule.description,
                    is_override=override is not None,
                )
            )
        cursor = add_period(cursor, frequency, interval, anchor_day)

    return Expansion(next_due_date=cursor, events=events)


def expand_recurring_rules(
    rules: Iterable[RecurringTransaction],
    start_date: date,
    horizon_end: date,
    *,
    scope_account_ids: Collection[str] | None = None,
    overrides: Iterable[OccurrenceOverride] = (),
    rate_provider: RateProvider | None = None,
    reference_currency: str | None = None,
) -> List[ProjectedEvent]:
    """Expand every rule, skipping (and logging) rules that cannot be expanded."""
    override_list = list(overrides)
    events: List[ProjectedEvent] = []
    for rule in rules:
        try:
            expansion = expand_recurring_events(
                rule,
                start_date,
                horizon_end,
                scope_account_ids=scope_account_ids,
                overrides=override_list,
                rate_provider=rate_provider,
                reference_currency=reference_currency,
            )
        except ValueError as exc:
            logger.warning(
                "Skipping recurring rule",
                extra={"rule_id": rule.id, "reason": str(exc)},
            )
            continue
        events.extend(expansion.events)
    return events


def rules_touching(
    rules: Iterable[RecurringTransaction], account_ids: Collection[str]
) -> List[RecurringTransaction]:
    return [
        rule
        for rule in rules
        if rule.account_id in account_ids
        or (rule.to_account_id is not None and rule.to_account_id in account_ids)
    ]


def _validate_kind(kind: str) -> str:
    normalized = _normalize_kind(kind)
    if normalized not in SUPPORTED_KINDS:
        raise ValueError("Only income, expense, or transfer rules are supported.")
    return normalized


def _normalize_kind(value: str) -> str:
    return value.strip().lower()


def _direction(
    rule: RecurringTransaction,
    kind: str,
    scope_account_ids: Collection[str] | None,
) -> int:
    if kind == "transfer":
        scope = scope_account_ids if scope_account_ids is not None else {rule.account_id}
        source_in_scope = rule.account_id in scope
        destination_in_scope = rule.to_account_id is not None and rule.to_account_id in scope
        if source_in_scope == destination_in_scope:
            return 0
        return -1 if source_in_scope else 1
    if scope_account_ids is not None and rule.account_id not in scope_account_ids:
        return 0
    return 1 if kind == "income" else -1


def _reference_amount(
    amount: Decimal,
    currency: str,
    direction: int,
    rate_provider: RateProvider | None,
    reference_currency: str | None,
) -> Decimal:
    converted = to_reference(
        abs(amount),
        currency,
        rate_provider=rate_provider,
        reference_currency=reference_currency,
    )
    if direction == 0:
        return ZERO
    return converted * direction


def _index_overrides(
    rule_id: str, overrides: Iterable[OccurrenceOverride]
) -> Dict[date, OccurrenceOverride]:
    index: Dict[date, OccurrenceOverride] = {}
    for override in overrides:
        if override.rule_id != rule_id:
            continue
        original = parse_date(override.original_date)
        if original is not None:
            index[original] = override
    return index
