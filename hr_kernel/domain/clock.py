"""
Clock -- injectable time source.

Responsibility:
    Domain objects and engines never call ``datetime.now()`` or
    ``date.today()``. Every "cannot be in the future" check and every
    approval timestamp receives its notion of now from a ``Clock``.

Architecture position:
    Kernel > Domain -- zero I/O except ``SystemClock``, the one sanctioned
    boundary for wall-clock time.

Failure modes:
    - DeterministicClock rejects naive datetimes (ValueError).
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Services receive a Clock via constructor injection; domain mutators
        receive one as a keyword argument.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``today()`` is the calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today(self) -> date:
        """Get the current calendar date."""
        return self.now().date()


class SystemClock(Clock):
    """Production clock returning the real UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value on repeated calls until ``advance()``
    or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        fixed_time = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._check_aware(fixed_time)
        self._fixed_time = fixed_time
        self._offset = timedelta(0)

    @staticmethod
    def _check_aware(value: datetime) -> None:
        if value.tzinfo is None:
            raise ValueError("DeterministicClock requires a timezone-aware datetime")

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._check_aware(time)
        self._fixed_time = time
        self._offset = timedelta(0)

    def advance(
        self,
        seconds: float = 0,
        *,
        minutes: float = 0,
        hours: float = 0,
        days: float = 0,
    ) -> datetime:
        """Move the clock forward and return the new time."""
        self._offset += timedelta(seconds=seconds, minutes=minutes, hours=hours, days=days)
        return self.now()

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        return self.advance(1)
