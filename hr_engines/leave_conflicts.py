"""
Leave Conflict Detection (``hr_engines.leave_conflicts``).

Responsibility
--------------
Find every overlap between requested leave and an employee's existing
leave: planned leaves against other annual leave plans, and leave requests
against other requests.

Architecture position
---------------------
**Engines layer** -- pure functional core. The detector only sees the
plans and requests passed to it; re-running the check inside the writing
transaction is the caller's job (see ``LeavePlanService``).

Invariants enforced
-------------------
* Overlap is inclusive: intervals sharing a single day conflict.
* Only plans in SUBMITTED / MANAGER_APPROVED / HR_APPROVED are in scope;
  DRAFT and REJECTED plans never block.
* Only PENDING / APPROVED requests are in scope.
* The plan (or request) being updated is excluded from its own check.
* Every conflict is reported, not just the first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from hr_kernel.domain.dates import intervals_overlap
from hr_kernel.domain.leave import LeaveRequest, LeaveRequestStatus
from hr_kernel.domain.leave_plan import AnnualLeavePlan, LeavePlanStatus, PlannedLeave
from hr_kernel.exceptions import LeaveConflictError


@dataclass(frozen=True)
class LeaveConflict:
    """A requested interval overlapping an interval of an existing plan."""

    existing_plan_id: str
    existing_status: LeavePlanStatus
    existing_leave: PlannedLeave
    requested_leave: PlannedLeave

    def __str__(self) -> str:
        return (
            f"{self.requested_leave} overlaps {self.existing_leave} "
            f"of plan {self.existing_plan_id} ({self.existing_status.value})"
        )


@dataclass(frozen=True)
class RequestConflict:
    """An interval overlapping an existing leave request."""

    existing_request_id: str
    existing_status: LeaveRequestStatus
    existing_start: date
    existing_end: date
    requested_start: date
    requested_end: date

    def __str__(self) -> str:
        return (
            f"{self.requested_start.isoformat()}..{self.requested_end.isoformat()} "
            f"overlaps request {self.existing_request_id} "
            f"({self.existing_start.isoformat()}..{self.existing_end.isoformat()})"
        )


def detect_plan_conflicts(
    employee_id: str,
    requested_leaves: Iterable[PlannedLeave],
    existing_plans: Iterable[AnnualLeavePlan],
    exclude_plan_id: str | None = None,
) -> tuple[LeaveConflict, ...]:
    """Every (requested, existing) pair of overlapping planned leaves."""
    requested = tuple(requested_leaves)
    conflicts: list[LeaveConflict] = []
    for plan in existing_plans:
        if plan.employee_id != employee_id or plan.plan_id == exclude_plan_id:
            continue
        if not plan.in_conflict_scope:
            continue
        for new_leave in requested:
            for existing in plan.planned_leaves:
                if new_leave.overlaps(existing):
                    conflicts.append(
                        LeaveConflict(plan.plan_id, plan.status, existing, new_leave)
                    )
    return tuple(conflicts)


def ensure_no_plan_conflicts(
    employee_id: str,
    requested_leaves: Iterable[PlannedLeave],
    existing_plans: Iterable[AnnualLeavePlan],
    exclude_plan_id: str | None = None,
) -> None:
    conflicts = detect_plan_conflicts(
        employee_id, requested_leaves, existing_plans, exclude_plan_id
    )
    if conflicts:
        raise LeaveConflictError(employee_id, conflicts)


def detect_request_conflicts(
    employee_id: str,
    start_date: date,
    end_date: date,
    existing_requests: Iterable[LeaveRequest],
    exclude_request_id: str | None = None,
) -> tuple[RequestConflict, ...]:
    conflicts: list[RequestConflict] = []
    for request in existing_requests:
        if request.employee_id != employee_id or request.request_id == exclude_request_id:
            continue
        if not request.is_blocking:
            continue
        if intervals_overlap(request.start_date, request.end_date, start_date, end_date):
            conflicts.append(
                RequestConflict(
                    request.request_id,
                    request.status,
                    request.start_date,
                    request.end_date,
                    start_date,
                    end_date,
                )
            )
    return tuple(conflicts)


def ensure_no_request_conflicts(
    employee_id: str,
    start_date: date,
    end_date: date,
    existing_requests: Iterable[LeaveRequest],
    exclude_request_id: str | None = None,
) -> None:
    conflicts = detect_request_conflicts(
        employee_id, start_date, end_date, existing_requests, exclude_request_id
    )
    if conflicts:
        raise LeaveConflictError(employee_id, conflicts)
