"""Calendar helpers for leave intervals, accrual schedules and work weeks."""

from __future__ import annotations

import calendar
from datetime import date, timedelta

WEEKDAY_NAMES = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)


def intervals_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Inclusive overlap: intervals sharing a single day overlap."""
    return start_a <= end_b and start_b <= end_a


def count_weekdays(start: date, end: date) -> int:
    """Monday-Friday days in [start, end]; 0 when end < start."""
    if end < start:
        return 0
    total_days = (end - start).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    count = full_weeks * 5
    for offset in range(remainder):
        if (start + timedelta(days=full_weeks * 7 + offset)).weekday() < 5:
            count += 1
    return count


def add_months(value: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def week_start_for(day: date, week_starts_on: int) -> date:
    """First day of the work week containing ``day`` (weekday 0 = Monday)."""
    return day - timedelta(days=(day.weekday() - week_starts_on) % 7)


def weekday_index(name: str) -> int:
    try:
        return WEEKDAY_NAMES.index(name.strip().lower())
    except ValueError:
        raise ValueError(f"Unknown weekday: {name!r}") from None
