"""
Time entry and break model.

Responsibility:
    One work shift per ``TimeEntry`` with its nested ``BreakEntry`` periods.
    Enforces every temporal and sequencing invariant of a shift.

Architecture position:
    Kernel > Domain -- pure, zero I/O. Current time arrives through an
    injected ``Clock``; nothing here reads the wall clock.

Invariants enforced:
    - All timestamps are timezone-aware; none may lie in the future
      (checked by every factory and mutator against the injected clock).
    - clock_out_time > clock_in_time; total span <= 24 hours.
    - COMPLETED requires clock_out_time; ACTIVE forbids it.
    - PENDING_APPROVAL only for manual entries; manual entries carry notes.
    - approved_by and approved_at are set together.
    - Breaks start at or after clock-in, end at or before clock-out, never
      overlap, and at most one is open at a time.
    - Break duration is (end - start) in minutes, capped per break type.
    - total_hours = (elapsed minutes - unpaid break minutes) / 60, rounded
      to 2 decimals.

Mutation model:
    Entries are frozen. Every mutator builds a new instance from the merged
    fields and lets ``__post_init__`` re-validate the whole entry, so there
    is exactly one place where invariants are checked.

Failure modes:
    - SchemaValidationError: bad field types, enum values, lengths, caps.
    - TimeSequenceError / FutureTimestampError: temporal violations.
    - StateConsistencyError / InvalidTransitionError / BreakStateError /
      ClockStateError / UnauthorizedActorError: lifecycle violations.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Mapping
from uuid import uuid4

from hr_kernel.domain.clock import Clock
from hr_kernel.domain.validation import (
    iso,
    parse_datetime,
    require_aware,
    require_enum,
    require_max_length,
    require_not_future,
    require_range,
    require_text,
)
from hr_kernel.domain.values import APPROVER_ROLES, Actor, GeoLocation
from hr_kernel.exceptions import (
    BreakStateError,
    ClockStateError,
    InvalidTransitionError,
    SchemaValidationError,
    StateConsistencyError,
    TimeSequenceError,
    UnauthorizedActorError,
)

MAX_SHIFT = timedelta(hours=24)
NOTES_MAX_LENGTH = 1000


class BreakType(str, Enum):
    LUNCH = "LUNCH"
    SHORT_BREAK = "SHORT_BREAK"
    PERSONAL = "PERSONAL"


BREAK_MAX_MINUTES: dict[BreakType, int] = {
    BreakType.SHORT_BREAK: 30,
    BreakType.LUNCH: 120,
    BreakType.PERSONAL: 60,
}


class TimeEntryStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    PENDING_APPROVAL = "PENDING_APPROVAL"


class EmployeeTimeStatus(str, Enum):
    """Attendance state derived from the employee's open entry."""

    CLOCKED_OUT = "CLOCKED_OUT"
    CLOCKED_IN = "CLOCKED_IN"
    ON_BREAK = "ON_BREAK"


def _minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


# ---------------------------------------------------------------------------
# BreakEntry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BreakEntry:
    """
    One break inside a shift. No ``end_time`` means the break is running.

    Paid/unpaid is always supplied by the caller; it is never inferred
    from the break type.
    """

    break_id: str
    break_type: BreakType
    start_time: datetime
    paid: bool
    end_time: datetime | None = None
    duration_minutes: float | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        require_text("break_id", self.break_id)
        object.__setattr__(
            self, "break_type", require_enum(BreakType, "break_type", self.break_type)
        )
        if not isinstance(self.paid, bool):
            raise SchemaValidationError("paid must be a boolean", field="paid")
        require_aware("start_time", self.start_time)
        if self.end_time is None:
            return

        require_aware("end_time", self.end_time)
        if self.end_time < self.start_time:
            raise TimeSequenceError(
                "Break end_time cannot be before start_time", field="end_time"
            )
        duration = _minutes_between(self.start_time, self.end_time)
        cap = BREAK_MAX_MINUTES[self.break_type]
        if duration > cap:
            raise SchemaValidationError(
                f"{self.break_type.value} break cannot exceed {cap} minutes "
                f"(got {duration:.1f})",
                field="duration_minutes",
            )
        object.__setattr__(self, "duration_minutes", duration)

    @classmethod
    def start(
        cls,
        break_type: BreakType,
        start_time: datetime,
        *,
        paid: bool,
        end_time: datetime | None = None,
    ) -> BreakEntry:
        return cls(
            break_id=str(uuid4()),
            break_type=break_type,
            start_time=start_time,
            paid=paid,
            end_time=end_time,
        )

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    def end(self, end_time: datetime) -> BreakEntry:
        if not self.is_active:
            raise BreakStateError(f"Break {self.break_id} has already ended", self.break_id)
        return replace(self, end_time=end_time)

    def to_record(self) -> dict[str, Any]:
        return {
            "break_id": self.break_id,
            "break_type": self.break_type.value,
            "start_time": iso(self.start_time),
            "end_time": iso(self.end_time),
            "duration_minutes": self.duration_minutes,
            "paid": self.paid,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> BreakEntry:
        return cls(
            break_id=record["break_id"],
            break_type=record["break_type"],
            start_time=parse_datetime("start_time", record["start_time"]),
            paid=record["paid"],
            end_time=parse_datetime("end_time", record.get("end_time")),
        )


# ---------------------------------------------------------------------------
# TimeEntry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeEntry:
    """
    One shift for one employee.

    ``breaks`` keeps insertion order; it is not guaranteed to be sorted.
    ``regular_hours`` / ``overtime_hours`` / ``double_time_hours`` are
    filled in by the time calculation engine via ``with_hours``.
    """

    entry_id: str
    employee_id: str
    clock_in_time: datetime
    clock_out_time: datetime | None = None
    breaks: tuple[BreakEntry, ...] = ()
    status: TimeEntryStatus = TimeEntryStatus.ACTIVE
    manual_entry: bool = False
    regular_hours: float | None = None
    overtime_hours: float | None = None
    double_time_hours: float | None = None
    location: GeoLocation | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    notes: str | None = None
    total_hours: float | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        self._validate_schema()
        self._validate_sequence()
        self._validate_state()
        if self.clock_out_time is not None:
            worked = self.elapsed_minutes - self.unpaid_break_minutes
            object.__setattr__(self, "total_hours", round(worked / 60, 2))

    # -- validation ---------------------------------------------------------

    def _validate_schema(self) -> None:
        require_text("entry_id", self.entry_id)
        require_text("employee_id", self.employee_id)
        require_aware("clock_in_time", self.clock_in_time)
        if self.clock_out_time is not None:
            require_aware("clock_out_time", self.clock_out_time)
        if self.approved_at is not None:
            require_aware("approved_at", self.approved_at)
        object.__setattr__(
            self, "status", require_enum(TimeEntryStatus, "status", self.status)
        )
        if not isinstance(self.manual_entry, bool):
            raise SchemaValidationError("manual_entry must be a boolean", field="manual_entry")
        object.__setattr__(self, "breaks", tuple(self.breaks))
        for b in self.breaks:
            if not isinstance(b, BreakEntry):
                raise SchemaValidationError("breaks must contain BreakEntry values", field="breaks")
        require_max_length("notes", self.notes, NOTES_MAX_LENGTH)
        for name in ("regular_hours", "overtime_hours", "double_time_hours"):
            value = getattr(self, name)
            if value is not None:
                require_range(name, value, minimum=0, maximum=24)

    def _validate_sequence(self) -> None:
        if self.clock_out_time is not None:
            if self.clock_out_time <= self.clock_in_time:
                raise TimeSequenceError(
                    "clock_out_time must be after clock_in_time", field="clock_out_time"
                )
            if self.clock_out_time - self.clock_in_time > MAX_SHIFT:
                raise TimeSequenceError(
                    "A shift cannot exceed 24 hours", field="clock_out_time"
                )

        for b in self.breaks:
            if b.start_time < self.clock_in_time:
                raise TimeSequenceError(
                    f"Break {b.break_id} starts before clock-in", field="breaks"
                )
            if self.clock_out_time is not None and b.end_time is not None:
                if b.end_time > self.clock_out_time:
                    raise TimeSequenceError(
                        f"Break {b.break_id} ends after clock-out", field="breaks"
                    )

        open_breaks = [b for b in self.breaks if b.is_active]
        if len(open_breaks) > 1:
            raise BreakStateError("Only one break may be open at a time")

        # An open break runs until it is ended, so it overlaps anything after it.
        ordered = sorted(self.breaks, key=lambda b: b.start_time)
        for current, following in zip(ordered, ordered[1:]):
            if current.end_time is None or current.end_time > following.start_time:
                raise TimeSequenceError(
                    f"Breaks {current.break_id} and {following.break_id} overlap",
                    field="breaks",
                )

    def _validate_state(self) -> None:
        if self.status == TimeEntryStatus.COMPLETED and self.clock_out_time is None:
            raise StateConsistencyError(
                "A COMPLETED entry requires clock_out_time", field="clock_out_time"
            )
        if self.status == TimeEntryStatus.ACTIVE and self.clock_out_time is not None:
            raise StateConsistencyError(
                "An ACTIVE entry cannot have clock_out_time", field="clock_out_time"
            )
        if self.status == TimeEntryStatus.PENDING_APPROVAL and not self.manual_entry:
            raise StateConsistencyError(
                "PENDING_APPROVAL is only valid for manual entries", field="status"
            )
        if self.manual_entry and not (self.notes and self.notes.strip()):
            raise StateConsistencyError("Manual entries require notes", field="notes")
        if (self.approved_by is None) != (self.approved_at is None):
            raise StateConsistencyError(
                "approved_by and approved_at must be set together", field="approved_by"
            )
        if self.approved_by is not None and self.status == TimeEntryStatus.PENDING_APPROVAL:
            raise StateConsistencyError(
                "A PENDING_APPROVAL entry cannot carry an approval", field="approved_by"
            )
        if self.clock_out_time is not None and self.active_break is not None:
            raise StateConsistencyError(
                "A clocked-out entry cannot have an open break", field="breaks"
            )
        if self.clock_out_time is None and any(
            h is not None
            for h in (self.regular_hours, self.overtime_hours, self.double_time_hours)
        ):
            raise StateConsistencyError(
                "Hour categories require clock_out_time", field="regular_hours"
            )

    def check_not_future(self, now: datetime) -> None:
        """Reject any timestamp of this entry that lies after ``now``."""
        require_not_future("clock_in_time", self.clock_in_time, now)
        require_not_future("clock_out_time", self.clock_out_time, now)
        require_not_future("approved_at", self.approved_at, now)
        for b in self.breaks:
            require_not_future("break.start_time", b.start_time, now)
            require_not_future("break.end_time", b.end_time, now)

    def _rebuild(self, now: datetime, **changes: Any) -> TimeEntry:
        entry = replace(self, **changes)
        entry.check_not_future(now)
        return entry

    # -- factories ----------------------------------------------------------

    @classmethod
    def clock_in(
        cls,
        employee_id: str,
        *,
        clock: Clock,
        location: GeoLocation | None = None,
        notes: str | None = None,
    ) -> TimeEntry:
        """Open an ACTIVE entry at the current time.

        Whether the employee already has an ACTIVE entry is the caller's
        concern; the model only constructs.
        """
        return cls(
            entry_id=str(uuid4()),
            employee_id=employee_id,
            clock_in_time=clock.now(),
            location=location,
            notes=notes,
        )

    @classmethod
    def manual(
        cls,
        employee_id: str,
        clock_in_time: datetime,
        clock_out_time: datetime,
        notes: str,
        *,
        clock: Clock,
        breaks: tuple[BreakEntry, ...] = (),
    ) -> TimeEntry:
        """Create a retroactive entry awaiting approval."""
        entry = cls(
            entry_id=str(uuid4()),
            employee_id=employee_id,
            clock_in_time=clock_in_time,
            clock_out_time=clock_out_time,
            breaks=tuple(breaks),
            status=TimeEntryStatus.PENDING_APPROVAL,
            manual_entry=True,
            notes=notes,
        )
        entry.check_not_future(clock.now())
        return entry

    # -- mutators -----------------------------------------------------------

    def add_break(
        self,
        break_type: BreakType,
        *,
        paid: bool,
        clock: Clock,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> TimeEntry:
        """Append a break starting now (or at ``start_time``)."""
        if self.status != TimeEntryStatus.ACTIVE:
            raise InvalidTransitionError("time entry", self.status.value, "add break")
        current = self.active_break
        if current is not None:
            raise BreakStateError(
                f"Break {current.break_id} is still open", current.break_id
            )
        now = clock.now()
        new_break = BreakEntry.start(
            break_type, start_time or now, paid=paid, end_time=end_time
        )
        return self._rebuild(now, breaks=self.breaks + (new_break,))

    def end_break(
        self,
        break_id: str,
        *,
        clock: Clock,
        end_time: datetime | None = None,
    ) -> TimeEntry:
        """Close the given break at ``end_time`` (default: now)."""
        now = clock.now()
        for index, b in enumerate(self.breaks):
            if b.break_id == break_id:
                ended = b.end(end_time or now)
                breaks = self.breaks[:index] + (ended,) + self.breaks[index + 1:]
                return self._rebuild(now, breaks=breaks)
        raise BreakStateError(f"Break {break_id} not found on entry {self.entry_id}", break_id)

    def clock_out(
        self,
        *,
        clock: Clock,
        clock_out_time: datetime | None = None,
    ) -> TimeEntry:
        """Close the shift; totals are recomputed on the rebuilt entry."""
        if self.clock_out_time is not None or self.status != TimeEntryStatus.ACTIVE:
            raise ClockStateError(
                self.employee_id, f"Time entry {self.entry_id} is already clocked out"
            )
        current = self.active_break
        if current is not None:
            raise BreakStateError(
                f"Cannot clock out while break {current.break_id} is open",
                current.break_id,
            )
        now = clock.now()
        return self._rebuild(
            now,
            clock_out_time=clock_out_time or now,
            status=TimeEntryStatus.COMPLETED,
        )

    def approve(self, approver: Actor, *, clock: Clock) -> TimeEntry:
        """Approve a manual entry, moving it to COMPLETED."""
        if self.status != TimeEntryStatus.PENDING_APPROVAL:
            raise InvalidTransitionError("time entry", self.status.value, "approve")
        if approver.role not in APPROVER_ROLES:
            raise UnauthorizedActorError(
                "time entry", "approve", approver.actor_id, approver.role.value
            )
        now = clock.now()
        return self._rebuild(
            now,
            status=TimeEntryStatus.COMPLETED,
            approved_by=approver.actor_id,
            approved_at=now,
        )

    def with_hours(
        self,
        regular_hours: float,
        overtime_hours: float,
        double_time_hours: float = 0.0,
    ) -> TimeEntry:
        """Attach the hour categories computed by the calculation engine."""
        return replace(
            self,
            regular_hours=regular_hours,
            overtime_hours=overtime_hours,
            double_time_hours=double_time_hours,
        )

    # -- derived values -----------------------------------------------------

    @property
    def active_break(self) -> BreakEntry | None:
        for b in self.breaks:
            if b.is_active:
                return b
        return None

    @property
    def has_active_break(self) -> bool:
        return self.active_break is not None

    @property
    def time_status(self) -> EmployeeTimeStatus:
        if self.status != TimeEntryStatus.ACTIVE:
            return EmployeeTimeStatus.CLOCKED_OUT
        if self.has_active_break:
            return EmployeeTimeStatus.ON_BREAK
        return EmployeeTimeStatus.CLOCKED_IN

    @property
    def elapsed_minutes(self) -> float:
        if self.clock_out_time is None:
            return 0.0
        return _minutes_between(self.clock_in_time, self.clock_out_time)

    @property
    def total_break_minutes(self) -> float:
        return sum(b.duration_minutes or 0.0 for b in self.breaks)

    @property
    def paid_break_minutes(self) -> float:
        return sum(b.duration_minutes or 0.0 for b in self.breaks if b.paid)

    @property
    def unpaid_break_minutes(self) -> float:
        return sum(b.duration_minutes or 0.0 for b in self.breaks if not b.paid)

    @property
    def worked_hours(self) -> float:
        """Unrounded worked hours; 0 while the shift is open."""
        if self.clock_out_time is None:
            return 0.0
        return (self.elapsed_minutes - self.unpaid_break_minutes) / 60

    @property
    def work_date(self) -> date:
        return self.clock_in_time.date()

    # -- records ------------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "employee_id": self.employee_id,
            "clock_in_time": iso(self.clock_in_time),
            "clock_out_time": iso(self.clock_out_time),
            "breaks": [b.to_record() for b in self.breaks],
            "status": self.status.value,
            "manual_entry": self.manual_entry,
            "total_hours": self.total_hours,
            "regular_hours": self.regular_hours,
            "overtime_hours": self.overtime_hours,
            "double_time_hours": self.double_time_hours,
            "location": self.location.to_record() if self.location else None,
            "approved_by": self.approved_by,
            "approved_at": iso(self.approved_at),
            "notes": self.notes,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> TimeEntry:
        return cls(
            entry_id=record["entry_id"],
            employee_id=record["employee_id"],
            clock_in_time=parse_datetime("clock_in_time", record["clock_in_time"]),
            clock_out_time=parse_datetime("clock_out_time", record.get("clock_out_time")),
            breaks=tuple(BreakEntry.from_record(b) for b in record.get("breaks", ())),
            status=record.get("status", TimeEntryStatus.ACTIVE),
            manual_entry=record.get("manual_entry", False),
            regular_hours=record.get("regular_hours"),
            overtime_hours=record.get("overtime_hours"),
            double_time_hours=record.get("double_time_hours"),
            location=GeoLocation.from_record(record.get("location")),
            approved_by=record.get("approved_by"),
            approved_at=parse_datetime("approved_at", record.get("approved_at")),
            notes=record.get("notes"),
        )
