from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timedelta

SUPPORTED_FREQUENCIES = {"daily", "weekly", "monthly", "yearly"}
WEEKEND_ADJUSTMENTS = {"on", "before", "after"}

SATURDAY = 5
SUNDAY = 6


def parse_date(value: date | datetime | str | None) -> date | None:
    """Coerce a calendar date, returning None for anything unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if len(raw) < 10:
        return None
    try:
        return datetime.strptime(raw[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def last_day_of_month(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def clamp_day(year: int, month: int, day: int) -> date:
    return date(year, month, max(1, min(day, last_day_of_month(year, month))))


def add_months(start_date: date, months: int, anchor_day: int | None = None) -> date:
    """Shift by whole months, landing on anchor_day clamped to the target month."""
    total_month = start_date.month - 1 + months
    year = start_date.year + total_month // 12
    month = total_month % 12 + 1
    day = anchor_day if anchor_day is not None else start_date.day
    return clamp_day(year, month, day)


def normalize_frequency(value: str) -> str:
    normalized = "".join(ch for ch in value.strip().lower() if ch.isalnum())
    if normalized not in SUPPORTED_FREQUENCIES:
        raise ValueError("Only daily, weekly, monthly, or yearly recurrences are supported.")
    return normalized


def add_period(
    value: date,
    frequency: str,
    interval: int = 1,
    anchor_day: int | None = None,
) -> date:
    """Advance one recurrence period.

    Monthly and yearly periods re-apply anchor_day on every call so a clamped
    short month never shifts the nominal day of later occurrences.
    """
    normalized = normalize_frequency(frequency)
    step = max(interval or 1, 1)
    if normalized == "daily":
        return value + timedelta(days=step)
    if normalized == "weekly":
        return value + timedelta(days=7 * step)
    months = step if normalized == "monthly" else 12 * step
    return add_months(value, months, anchor_day)


def adjust_for_weekend(value: date, adjustment: str | None) -> date:
    weekday = value.weekday()
    if adjustment == "before":
        if weekday == SATURDAY:
            return value - timedelta(days=1)
        if weekday == SUNDAY:
            return value - timedelta(days=2)
    elif adjustment == "after":
        if weekday == SATURDAY:
            return value + timedelta(days=2)
        if weekday == SUNDAY:
            return value + timedelta(days=1)
    return value


def iter_days(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def months_between(earlier: date, later: date) -> int:
    """Calendar-month distance, ignoring the day of month."""
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)
