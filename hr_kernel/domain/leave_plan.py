"""
Annual leave plan -- the multi-stage approval state machine.

Responsibility:
    One plan per employee and year listing the leave they intend to take.
    The plan advances DRAFT -> SUBMITTED -> MANAGER_APPROVED -> HR_APPROVED,
    with REJECTED reachable from SUBMITTED (manager or HR) and from
    MANAGER_APPROVED (HR only). HR_APPROVED and REJECTED are terminal.

Architecture position:
    Kernel > Domain -- pure, zero I/O. Cross-plan conflict detection lives
    in ``hr_engines.leave_conflicts`` because it needs the employee's other
    plans; persistence-level uniqueness (employee, year) lives in
    ``hr_kernel.models.leave_plan``.

Invariants enforced:
    - year in 2000-2099 and not in the past at creation; entitlement
      0-100; carried over 0-50.
    - Each planned leave: end >= start, days in [0.5, 365] and consistent
      with the weekday count of its interval, inside the plan year.
    - Planned leaves of one plan never overlap; their total never exceeds
      entitlement + carried over.
    - Status and stamp fields agree: every reached stage carries its
      actor id and timestamp, no unreached stage does, and each pair is
      set together.
    - Submission requires at least one planned leave; planned leaves are
      edited only while DRAFT.
    - Transitions follow ``LEAVE_PLAN_TRANSITIONS`` (no skipping, no moving
      backwards except to REJECTED).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping, Sequence
from uuid import uuid4

from hr_kernel.domain.clock import Clock
from hr_kernel.domain.dates import count_weekdays, intervals_overlap
from hr_kernel.domain.validation import (
    iso,
    parse_date,
    parse_datetime,
    require_aware,
    require_date,
    require_enum,
    require_max_length,
    require_range,
    require_text,
)
from hr_kernel.domain.values import Actor, Role
from hr_kernel.domain.workflow import Transition, TransitionTable
from hr_kernel.exceptions import (
    InvalidTransitionError,
    SchemaValidationError,
    StateConsistencyError,
    TimeSequenceError,
)

MIN_YEAR, MAX_YEAR = 2000, 2099
MAX_ENTITLEMENT = 100
MAX_CARRIED_OVER = 50
MIN_LEAVE_DAYS, MAX_LEAVE_DAYS = 0.5, 365
DESCRIPTION_MAX_LENGTH = 500
REJECTION_REASON_MAX_LENGTH = 1000

# A declared day count may sit up to half a day under the weekday count
# of its interval (half-day leave) but never above it.
HALF_DAY = 0.5


class LeavePlanStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    MANAGER_APPROVED = "MANAGER_APPROVED"
    HR_APPROVED = "HR_APPROVED"
    REJECTED = "REJECTED"


class PlanAction(str, Enum):
    SUBMIT = "submit"
    MANAGER_APPROVE = "manager_approve"
    MANAGER_REJECT = "manager_reject"
    HR_APPROVE = "hr_approve"
    HR_REJECT = "hr_reject"


class PlannedLeaveType(str, Enum):
    ANNUAL = "ANNUAL"
    PERSONAL = "PERSONAL"
    SICK = "SICK"
    EMERGENCY = "EMERGENCY"


_MANAGER_OR_HR = frozenset({Role.MANAGER, Role.HR_ADMIN})
_HR_ONLY = frozenset({Role.HR_ADMIN})

LEAVE_PLAN_TRANSITIONS = TransitionTable(
    "annual leave plan",
    [
        Transition(LeavePlanStatus.DRAFT, PlanAction.SUBMIT.value,
                   LeavePlanStatus.SUBMITTED, _HR_ONLY, owner_may_act=True),
        Transition(LeavePlanStatus.SUBMITTED, PlanAction.MANAGER_APPROVE.value,
                   LeavePlanStatus.MANAGER_APPROVED, _MANAGER_OR_HR),
        Transition(LeavePlanStatus.SUBMITTED, PlanAction.MANAGER_REJECT.value,
                   LeavePlanStatus.REJECTED, _MANAGER_OR_HR),
        Transition(LeavePlanStatus.MANAGER_APPROVED, PlanAction.HR_APPROVE.value,
                   LeavePlanStatus.HR_APPROVED, _HR_ONLY),
        Transition(LeavePlanStatus.MANAGER_APPROVED, PlanAction.HR_REJECT.value,
                   LeavePlanStatus.REJECTED, _HR_ONLY),
    ],
    terminal_states=(LeavePlanStatus.HR_APPROVED, LeavePlanStatus.REJECTED),
)

# Plans whose leave blocks other plans of the same employee.
CONFLICT_SCOPE_STATUSES: frozenset[LeavePlanStatus] = frozenset({
    LeavePlanStatus.SUBMITTED,
    LeavePlanStatus.MANAGER_APPROVED,
    LeavePlanStatus.HR_APPROVED,
})

# Stage name -> (actor field, timestamp field)
_STAMPS: dict[str, tuple[str, str]] = {
    "submitted": ("submitted_by", "submitted_at"),
    "manager_approved": ("manager_approved_by", "manager_approved_at"),
    "hr_approved": ("hr_approved_by", "hr_approved_at"),
    "rejected": ("rejected_by", "rejected_at"),
}

_REQUIRED_STAMPS: dict[LeavePlanStatus, frozenset[str]] = {
    LeavePlanStatus.DRAFT: frozenset(),
    LeavePlanStatus.SUBMITTED: frozenset({"submitted"}),
    LeavePlanStatus.MANAGER_APPROVED: frozenset({"submitted", "manager_approved"}),
    LeavePlanStatus.HR_APPROVED: frozenset({"submitted", "manager_approved", "hr_approved"}),
    LeavePlanStatus.REJECTED: frozenset({"submitted", "rejected"}),
}

# A plan rejected by HR keeps its manager approval.
_PERMITTED_STAMPS: dict[LeavePlanStatus, frozenset[str]] = {
    **_REQUIRED_STAMPS,
    LeavePlanStatus.REJECTED: frozenset({"submitted", "manager_approved", "rejected"}),
}

_ACTION_STAMP: dict[PlanAction, str] = {
    PlanAction.SUBMIT: "submitted",
    PlanAction.MANAGER_APPROVE: "manager_approved",
    PlanAction.MANAGER_REJECT: "rejected",
    PlanAction.HR_APPROVE: "hr_approved",
    PlanAction.HR_REJECT: "rejected",
}


@dataclass(frozen=True)
class PlannedLeave:
    """One inclusive interval of intended leave.

    ``days`` defaults to the number of weekdays in the interval.
    """

    start_date: date
    end_date: date
    days: float | None = None
    leave_type: PlannedLeaveType = PlannedLeaveType.ANNUAL
    description: str | None = None

    def __post_init__(self) -> None:
        require_date("start_date", self.start_date)
        require_date("end_date", self.end_date)
        object.__setattr__(
            self, "leave_type", require_enum(PlannedLeaveType, "leave_type", self.leave_type)
        )
        require_max_length("description", self.description, DESCRIPTION_MAX_LENGTH)
        if self.end_date < self.start_date:
            raise TimeSequenceError(
                "Planned leave end_date cannot be before start_date", field="end_date"
            )
        weekdays = count_weekdays(self.start_date, self.end_date)
        if weekdays == 0:
            raise SchemaValidationError(
                f"Planned leave {self.start_date.isoformat()}..{self.end_date.isoformat()} "
                "contains no working days",
                field="end_date",
            )
        if self.days is None:
            object.__setattr__(self, "days", float(weekdays))
        require_range("days", self.days, MIN_LEAVE_DAYS, MAX_LEAVE_DAYS)
        if not (weekdays - HALF_DAY <= self.days <= weekdays):
            raise SchemaValidationError(
                f"days ({self.days}) does not match the {weekdays} working day(s) "
                f"between {self.start_date.isoformat()} and {self.end_date.isoformat()}",
                field="days",
            )

    def overlaps(self, other: PlannedLeave) -> bool:
        return intervals_overlap(
            self.start_date, self.end_date, other.start_date, other.end_date
        )

    def __str__(self) -> str:
        return f"{self.start_date.isoformat()}..{self.end_date.isoformat()}"

    def to_record(self) -> dict[str, Any]:
        return {
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "days": self.days,
            "leave_type": self.leave_type.value,
            "description": self.description,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> PlannedLeave:
        return cls(
            start_date=parse_date("start_date", record["start_date"]),
            end_date=parse_date("end_date", record["end_date"]),
            days=record.get("days"),
            leave_type=record.get("leave_type", PlannedLeaveType.ANNUAL),
            description=record.get("description"),
        )


@dataclass(frozen=True)
class AnnualLeavePlan:
    """An employee's leave plan for one calendar year."""

    plan_id: str
    employee_id: str
    year: int
    total_entitlement: float
    carried_over: float = 0.0
    planned_leaves: tuple[PlannedLeave, ...] = ()
    status: LeavePlanStatus = LeavePlanStatus.DRAFT
    submitted_by: str | None = None
    submitted_at: datetime | None = None
    manager_approved_by: str | None = None
    manager_approved_at: datetime | None = None
    hr_approved_by: str | None = None
    hr_approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None

    def __post_init__(self) -> None:
        self._validate_schema()
        self._validate_planned_leaves()
        self._validate_status()

    # -- validation ---------------------------------------------------------

    def _validate_schema(self) -> None:
        require_text("plan_id", self.plan_id)
        require_text("employee_id", self.employee_id)
        if isinstance(self.year, bool) or not isinstance(self.year, int):
            raise SchemaValidationError("year must be an integer", field="year")
        require_range("year", self.year, MIN_YEAR, MAX_YEAR)
        require_range("total_entitlement", self.total_entitlement, 0, MAX_ENTITLEMENT)
        require_range("carried_over", self.carried_over, 0, MAX_CARRIED_OVER)
        object.__setattr__(
            self, "status", require_enum(LeavePlanStatus, "status", self.status)
        )
        object.__setattr__(self, "planned_leaves", tuple(self.planned_leaves))
        for leave in self.planned_leaves:
            if not isinstance(leave, PlannedLeave):
                raise SchemaValidationError(
                    "planned_leaves must contain PlannedLeave values", field="planned_leaves"
                )
        require_max_length("rejection_reason", self.rejection_reason, REJECTION_REASON_MAX_LENGTH)
        for _, at_field in _STAMPS.values():
            value = getattr(self, at_field)
            if value is not None:
                require_aware(at_field, value)

    def _validate_planned_leaves(self) -> None:
        for leave in self.planned_leaves:
            if leave.start_date.year != self.year or leave.end_date.year != self.year:
                raise TimeSequenceError(
                    f"Planned leave {leave} falls outside plan year {self.year}",
                    field="planned_leaves",
                )
        ordered = sorted(self.planned_leaves, key=lambda leave: leave.start_date)
        for current, following in zip(ordered, ordered[1:]):
            if current.overlaps(following):
                raise TimeSequenceError(
                    f"Planned leaves {current} and {following} overlap",
                    field="planned_leaves",
                )
        if self.total_planned_days > self.available_days:
            raise SchemaValidationError(
                f"Planned days ({self.total_planned_days}) exceed entitlement plus "
                f"carried over days ({self.available_days})",
                field="planned_leaves",
            )

    def _validate_status(self) -> None:
        required = _REQUIRED_STAMPS[self.status]
        permitted = _PERMITTED_STAMPS[self.status]
        for stage, (by_field, at_field) in _STAMPS.items():
            by_value, at_value = getattr(self, by_field), getattr(self, at_field)
            if (by_value is None) != (at_value is None):
                raise StateConsistencyError(
                    f"{by_field} and {at_field} must be set together", field=by_field
                )
            present = by_value is not None
            if stage in required and not present:
                raise StateConsistencyError(
                    f"A {self.status.value} plan requires {by_field}", field=by_field
                )
            if present and stage not in permitted:
                raise StateConsistencyError(
                    f"A {self.status.value} plan cannot carry {by_field}", field=by_field
                )
        if self.rejection_reason is not None and self.status != LeavePlanStatus.REJECTED:
            raise StateConsistencyError(
                "rejection_reason is only valid on a REJECTED plan", field="rejection_reason"
            )
        if self.status != LeavePlanStatus.DRAFT and not self.planned_leaves:
            raise StateConsistencyError(
                "A submitted plan needs at least one planned leave", field="planned_leaves"
            )

        sequence = [
            self.submitted_at,
            self.manager_approved_at,
            self.hr_approved_at or self.rejected_at,
        ]
        stamped = [s for s in sequence if s is not None]
        if any(later < earlier for earlier, later in zip(stamped, stamped[1:])):
            raise TimeSequenceError("Plan stage timestamps are out of order")

    # -- factory ------------------------------------------------------------

    @classmethod
    def create(
        cls,
        employee_id: str,
        year: int,
        total_entitlement: float,
        *,
        clock: Clock,
        carried_over: float = 0.0,
        planned_leaves: Sequence[PlannedLeave] = (),
    ) -> AnnualLeavePlan:
        plan = cls(
            plan_id=str(uuid4()),
            employee_id=employee_id,
            year=year,
            total_entitlement=total_entitlement,
            carried_over=carried_over,
            planned_leaves=tuple(planned_leaves),
        )
        if year < clock.today().year:
            raise TimeSequenceError("Cannot create a plan for a past year", field="year")
        return plan

    # -- planned leave editing (DRAFT only) ---------------------------------

    def _require_draft(self, action: str) -> None:
        if self.status != LeavePlanStatus.DRAFT:
            raise InvalidTransitionError("annual leave plan", self.status.value, action)

    def _leave_index(self, index: int) -> int:
        if not 0 <= index < len(self.planned_leaves):
            raise SchemaValidationError(
                f"No planned leave at position {index}", field="planned_leaves"
            )
        return index

    def with_planned_leaves(self, leaves: Sequence[PlannedLeave]) -> AnnualLeavePlan:
        self._require_draft("edit planned leaves of")
        return replace(self, planned_leaves=tuple(leaves))

    def add_planned_leave(self, leave: PlannedLeave) -> AnnualLeavePlan:
        self._require_draft("add planned leave to")
        return replace(self, planned_leaves=self.planned_leaves + (leave,))

    def update_planned_leave(self, index: int, leave: PlannedLeave) -> AnnualLeavePlan:
        self._require_draft("update planned leave of")
        i = self._leave_index(index)
        leaves = self.planned_leaves[:i] + (leave,) + self.planned_leaves[i + 1:]
        return replace(self, planned_leaves=leaves)

    def remove_planned_leave(self, index: int) -> AnnualLeavePlan:
        self._require_draft("remove planned leave from")
        i = self._leave_index(index)
        return replace(
            self, planned_leaves=self.planned_leaves[:i] + self.planned_leaves[i + 1:]
        )

    # -- transitions --------------------------------------------------------

    def apply(
        self,
        action: PlanAction,
        actor: Actor,
        *,
        clock: Clock,
        reason: str | None = None,
    ) -> AnnualLeavePlan:
        """Perform ``action`` as ``actor`` and stamp the reached stage."""
        action = require_enum(PlanAction, "action", action)
        transition = LEAVE_PLAN_TRANSITIONS.resolve(
            self.status, action.value, actor, owner_id=self.employee_id
        )
        if action == PlanAction.SUBMIT and not self.planned_leaves:
            raise SchemaValidationError(
                "Add at least one planned leave before submitting", field="planned_leaves"
            )
        by_field, at_field = _STAMPS[_ACTION_STAMP[action]]
        changes: dict[str, Any] = {
            "status": transition.to_state,
            by_field: actor.actor_id,
            at_field: clock.now(),
        }
        if transition.to_state == LeavePlanStatus.REJECTED:
            changes["rejection_reason"] = reason
        return replace(self, **changes)

    def submit(self, actor: Actor, *, clock: Clock) -> AnnualLeavePlan:
        return self.apply(PlanAction.SUBMIT, actor, clock=clock)

    def manager_approve(self, actor: Actor, *, clock: Clock) -> AnnualLeavePlan:
        return self.apply(PlanAction.MANAGER_APPROVE, actor, clock=clock)

    def manager_reject(
        self, actor: Actor, *, clock: Clock, reason: str | None = None
    ) -> AnnualLeavePlan:
        return self.apply(PlanAction.MANAGER_REJECT, actor, clock=clock, reason=reason)

    def hr_approve(self, actor: Actor, *, clock: Clock) -> AnnualLeavePlan:
        return self.apply(PlanAction.HR_APPROVE, actor, clock=clock)

    def hr_reject(
        self, actor: Actor, *, clock: Clock, reason: str | None = None
    ) -> AnnualLeavePlan:
        return self.apply(PlanAction.HR_REJECT, actor, clock=clock, reason=reason)

    # -- derived values -----------------------------------------------------

    @property
    def available_days(self) -> float:
        return self.total_entitlement + self.carried_over

    @property
    def total_planned_days(self) -> float:
        return sum(leave.days for leave in self.planned_leaves)

    @property
    def remaining_days(self) -> float:
        return self.available_days - self.total_planned_days

    def days_by_type(self) -> dict[PlannedLeaveType, float]:
        totals: dict[PlannedLeaveType, float] = {}
        for leave in self.planned_leaves:
            totals[leave.leave_type] = totals.get(leave.leave_type, 0.0) + leave.days
        return totals

    @property
    def is_terminal(self) -> bool:
        return LEAVE_PLAN_TRANSITIONS.is_terminal(self.status)

    @property
    def in_conflict_scope(self) -> bool:
        return self.status in CONFLICT_SCOPE_STATUSES

    def leaves_overlapping(self, start: date, end: date) -> tuple[PlannedLeave, ...]:
        return tuple(
            leave for leave in self.planned_leaves
            if intervals_overlap(leave.start_date, leave.end_date, start, end)
        )

    # -- records ------------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "plan_id": self.plan_id,
            "employee_id": self.employee_id,
            "year": self.year,
            "total_entitlement": self.total_entitlement,
            "carried_over": self.carried_over,
            "planned_leaves": [leave.to_record() for leave in self.planned_leaves],
            "status": self.status.value,
            "rejection_reason": self.rejection_reason,
        }
        for by_field, at_field in _STAMPS.values():
            record[by_field] = getattr(self, by_field)
            record[at_field] = iso(getattr(self, at_field))
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> AnnualLeavePlan:
        stamps: dict[str, Any] = {}
        for by_field, at_field in _STAMPS.values():
            stamps[by_field] = record.get(by_field)
            stamps[at_field] = parse_datetime(at_field, record.get(at_field))
        return cls(
            plan_id=record["plan_id"],
            employee_id=record["employee_id"],
            year=record["year"],
            total_entitlement=record["total_entitlement"],
            carried_over=record.get("carried_over", 0.0),
            planned_leaves=tuple(
                PlannedLeave.from_record(r) for r in record.get("planned_leaves", ())
            ),
            status=record.get("status", LeavePlanStatus.DRAFT),
            rejection_reason=record.get("rejection_reason"),
            **stamps,
        )
