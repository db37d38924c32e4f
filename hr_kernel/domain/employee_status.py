"""
Employee status value object and its transition table.

Responsibility:
    The current employment state of one employee. Each status change
    produces a new ``EmployeeStatus``; the old value is never patched.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - TERMINATED and ON_LEAVE require a reason.
    - effective_date is never in the future and never precedes the
      effective date of the status it replaces.
    - Transitions follow ``EMPLOYEE_STATUS_TRANSITIONS``: TERMINATED is
      absorbing; INACTIVE cannot move directly to ON_LEAVE; the new status
      must differ from the current one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Mapping

from hr_kernel.domain.clock import Clock
from hr_kernel.domain.validation import (
    iso,
    parse_date,
    require_date,
    require_enum,
    require_max_length,
    require_not_future,
)
from hr_kernel.domain.values import Actor, Role
from hr_kernel.domain.workflow import Transition, TransitionTable
from hr_kernel.exceptions import SchemaValidationError, TimeSequenceError

REASON_MAX_LENGTH = 500
NOTES_MAX_LENGTH = 1000


class EmploymentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ON_LEAVE = "ON_LEAVE"
    TERMINATED = "TERMINATED"


REASON_REQUIRED_STATUSES: frozenset[EmploymentStatus] = frozenset({
    EmploymentStatus.TERMINATED,
    EmploymentStatus.ON_LEAVE,
})

_HR_ONLY = frozenset({Role.HR_ADMIN})


def _move(source: EmploymentStatus, target: EmploymentStatus) -> Transition:
    # The action of a status change is the target status itself.
    return Transition(source, target.value, target, _HR_ONLY)


EMPLOYEE_STATUS_TRANSITIONS = TransitionTable(
    "employee status",
    [
        _move(EmploymentStatus.ACTIVE, EmploymentStatus.INACTIVE),
        _move(EmploymentStatus.ACTIVE, EmploymentStatus.ON_LEAVE),
        _move(EmploymentStatus.ACTIVE, EmploymentStatus.TERMINATED),
        _move(EmploymentStatus.INACTIVE, EmploymentStatus.ACTIVE),
        _move(EmploymentStatus.INACTIVE, EmploymentStatus.TERMINATED),
        _move(EmploymentStatus.ON_LEAVE, EmploymentStatus.ACTIVE),
        _move(EmploymentStatus.ON_LEAVE, EmploymentStatus.INACTIVE),
        _move(EmploymentStatus.ON_LEAVE, EmploymentStatus.TERMINATED),
    ],
    terminal_states=(EmploymentStatus.TERMINATED,),
)


@dataclass(frozen=True)
class EmployeeStatus:
    """Current employment state with its effective date and reason."""

    current: EmploymentStatus
    effective_date: date
    reason: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "current", require_enum(EmploymentStatus, "current", self.current)
        )
        require_date("effective_date", self.effective_date)
        require_max_length("reason", self.reason, REASON_MAX_LENGTH)
        require_max_length("notes", self.notes, NOTES_MAX_LENGTH)
        if self.current in REASON_REQUIRED_STATUSES and not (
            self.reason and self.reason.strip()
        ):
            raise SchemaValidationError(
                f"A reason is required for status {self.current.value}", field="reason"
            )

    @classmethod
    def initial(
        cls,
        effective_date: date,
        *,
        clock: Clock,
        current: EmploymentStatus = EmploymentStatus.ACTIVE,
        reason: str | None = None,
        notes: str | None = None,
    ) -> EmployeeStatus:
        status = cls(current, effective_date, reason, notes)
        require_not_future("effective_date", effective_date, clock.now())
        return status

    @property
    def is_terminal(self) -> bool:
        return EMPLOYEE_STATUS_TRANSITIONS.is_terminal(self.current)

    def allowed_targets(self) -> frozenset[EmploymentStatus]:
        return EMPLOYEE_STATUS_TRANSITIONS.targets_from(self.current)

    def transition_to(
        self,
        new_status: EmploymentStatus,
        *,
        actor: Actor,
        effective_date: date,
        clock: Clock,
        reason: str | None = None,
        notes: str | None = None,
    ) -> EmployeeStatus:
        """Validate the move against the table and return the new status."""
        new_status = require_enum(EmploymentStatus, "current", new_status)
        EMPLOYEE_STATUS_TRANSITIONS.resolve(self.current, new_status.value, actor)
        replacement = EmployeeStatus(new_status, effective_date, reason, notes)
        require_not_future("effective_date", effective_date, clock.now())
        if effective_date < self.effective_date:
            raise TimeSequenceError(
                "effective_date cannot precede the current status' effective date",
                field="effective_date",
            )
        return replacement

    def to_record(self) -> dict[str, Any]:
        return {
            "current": self.current.value,
            "effective_date": iso(self.effective_date),
            "reason": self.reason,
            "notes": self.notes,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> EmployeeStatus:
        return cls(
            current=record["current"],
            effective_date=parse_date("effective_date", record["effective_date"]),
            reason=record.get("reason"),
            notes=record.get("notes"),
        )
