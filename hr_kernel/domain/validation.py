"""
Validation helpers shared by the domain value objects.

Responsibility:
    Small guard functions used inside ``__post_init__`` and factories so
    that every entity rejects bad input the same way (typed error, field
    name attached) and record parsing is uniform.

Architecture position:
    Kernel > Domain -- pure, zero I/O. Imports only the exception module.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, TypeVar

from hr_kernel.exceptions import FutureTimestampError, SchemaValidationError

E = TypeVar("E", bound=Enum)


def require_aware(field: str, value: Any) -> datetime:
    """Reject anything that is not a timezone-aware datetime."""
    if not isinstance(value, datetime):
        raise SchemaValidationError(f"{field} must be a datetime", field=field)
    if value.tzinfo is None or value.utcoffset() is None:
        raise SchemaValidationError(f"{field} must be timezone-aware", field=field)
    return value


def require_date(field: str, value: Any) -> date:
    # datetime is a date subclass; calendar fields take plain dates only
    if not isinstance(value, date) or isinstance(value, datetime):
        raise SchemaValidationError(f"{field} must be a date", field=field)
    return value


def require_text(field: str, value: Any, *, max_length: int | None = None) -> str:
    """Non-empty string, optionally length-limited."""
    if not isinstance(value, str) or not value.strip():
        raise SchemaValidationError(f"{field} is required", field=field)
    return require_max_length(field, value, max_length)


def require_max_length(field: str, value: str | None, max_length: int | None) -> str | None:
    if value is not None and max_length is not None and len(value) > max_length:
        raise SchemaValidationError(
            f"{field} must be at most {max_length} characters", field=field
        )
    return value


def require_range(
    field: str,
    value: Any,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    """Numeric value inside [minimum, maximum]."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaValidationError(f"{field} must be a number", field=field)
    if minimum is not None and value < minimum:
        raise SchemaValidationError(f"{field} must be at least {minimum}", field=field)
    if maximum is not None and value > maximum:
        raise SchemaValidationError(f"{field} must be at most {maximum}", field=field)
    return value


def require_enum(enum_cls: type[E], field: str, value: Any) -> E:
    """Coerce a raw value into ``enum_cls`` or raise a schema error."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise SchemaValidationError(
            f"{field} must be one of: {allowed} (got {value!r})", field=field
        ) from None


def require_not_future(field: str, value: datetime | date | None, now: datetime) -> None:
    """Raise FutureTimestampError when ``value`` lies after ``now``."""
    if value is None:
        return
    if isinstance(value, datetime):
        if value > now:
            raise FutureTimestampError(field, value, now)
    elif value > now.date():
        raise FutureTimestampError(field, value, now.date())


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------


def parse_datetime(field: str, value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime)."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise SchemaValidationError(
            f"{field} must be an ISO-8601 datetime (got {value!r})", field=field
        ) from None


def parse_date(field: str, value: Any) -> date | None:
    """Parse an ISO-8601 date string (or pass through a date)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise SchemaValidationError(
            f"{field} must be an ISO-8601 date (got {value!r})", field=field
        ) from None


def iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None
