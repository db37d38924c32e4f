"""
Typed Exception Hierarchy for the HR Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Time, leave and approval rules reject input for many different reasons.
Callers (HTTP layer, batch importers, tests) must be able to tell them apart
without parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA: a message plus optional field-level
     details, and entity ids / states where they apply

There is no "fatal" class. Every kernel error is a validation failure the
caller can recover from by supplying corrected input; nothing is retried
automatically.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    HRKernelError (base)
    |
    +-- SchemaValidationError          malformed / missing / out-of-range field
    |
    +-- TemporalInvariantError
    |   +-- FutureTimestampError
    |   +-- TimeSequenceError          end-before-start, outside shift,
    |                                  overlapping breaks, shift > 24h
    |
    +-- StateTransitionError
    |   +-- InvalidTransitionError     action not allowed from current state
    |   +-- UnauthorizedActorError     role / ownership guard failed
    |   +-- StateConsistencyError      notes missing, half-stamped approval
    |   +-- ClockStateError
    |   |   +-- AlreadyClockedInError
    |   |   +-- NotClockedInError
    |   +-- BreakStateError
    |
    +-- PolicyError
    |   +-- PolicyNotApplicableError
    |   +-- IneligibleEmployeeError
    |   +-- UsageRestrictionError
    |   +-- PolicyBoundaryError
    |   +-- InsufficientBalanceError
    |
    +-- LeaveConflictError             carries every conflict, not just one
    |
    +-- PersistenceError
        +-- RecordNotFoundError
        +-- DuplicateRecordError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | When Raised
----------------|------------------------------|----------------------------------
Schema          | SCHEMA_VALIDATION_ERROR      | Bad field value or type
----------------|------------------------------|----------------------------------
Temporal        | FUTURE_TIMESTAMP             | Timestamp / date after "now"
                | TIME_SEQUENCE_VIOLATION      | Interval ordering broken
----------------|------------------------------|----------------------------------
State machine   | INVALID_TRANSITION           | e.g. approving a DRAFT plan
                | UNAUTHORIZED_ACTOR           | Role not allowed for action
                | STATE_CONSISTENCY_VIOLATION  | Status fields disagree
                | ALREADY_CLOCKED_IN           | Second ACTIVE entry
                | NOT_CLOCKED_IN               | No ACTIVE entry to act on
                | BREAK_STATE_VIOLATION        | Break already open / ended
----------------|------------------------------|----------------------------------
Policy          | POLICY_NOT_APPLICABLE        | Inactive, expired, wrong group
                | EMPLOYEE_INELIGIBLE          | Eligibility rule failed
                | USAGE_RESTRICTION_VIOLATION  | Max consecutive, increment...
                | POLICY_BOUNDARY_VIOLATION    | Week spans two overtime policies
                | INSUFFICIENT_BALANCE         | Usage larger than balance
----------------|------------------------------|----------------------------------
Conflict        | LEAVE_CONFLICT               | Overlapping leave intervals
----------------|------------------------------|----------------------------------
Persistence     | RECORD_NOT_FOUND             | Unknown id
                | DUPLICATE_RECORD             | Uniqueness constraint hit
                | OPTIMISTIC_LOCK_CONFLICT     | Concurrent modification
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Sequence


@dataclass(frozen=True)
class FieldError:
    """One field-level detail attached to a validation failure."""

    field: str
    message: str


class HRKernelError(Exception):
    """
    Base exception for all HR kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "HR_KERNEL_ERROR"

    def __init__(self, message: str, details: Sequence[FieldError] = ()):
        self.message = message
        self.details = tuple(details)
        super().__init__(message)


class _FieldScopedError(HRKernelError):
    """Error raised for a single named field."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: Sequence[FieldError] = (),
    ):
        self.field = field
        if field is not None and not details:
            details = (FieldError(field, message),)
        super().__init__(message, details)


# Schema


class SchemaValidationError(_FieldScopedError):
    """Malformed, missing, or out-of-range field. Raised before business rules."""

    code: str = "SCHEMA_VALIDATION_ERROR"


# Temporal


class TemporalInvariantError(_FieldScopedError):
    """Base exception for time-ordering violations."""

    code: str = "TEMPORAL_INVARIANT_VIOLATION"


class FutureTimestampError(TemporalInvariantError):
    """A timestamp or date lies after the current instant."""

    code: str = "FUTURE_TIMESTAMP"

    def __init__(self, field: str, value: datetime | date, now: datetime | date):
        self.value = value
        self.now = now
        super().__init__(
            f"{field} cannot be in the future ({value.isoformat()} > {now.isoformat()})",
            field=field,
        )


class TimeSequenceError(TemporalInvariantError):
    """Interval ordering is broken (end before start, overlap, out of bounds)."""

    code: str = "TIME_SEQUENCE_VIOLATION"


# State machine


class StateTransitionError(HRKernelError):
    """Base exception for lifecycle / status errors."""

    code: str = "STATE_TRANSITION_ERROR"


class InvalidTransitionError(StateTransitionError):
    """The requested action is not allowed from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, current_state: str, action: str):
        self.entity_type = entity_type
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} in state {current_state}"
        )


class UnauthorizedActorError(StateTransitionError):
    """The actor's role or identity does not permit the action."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(
        self,
        entity_type: str,
        action: str,
        actor_id: str,
        role: str,
        reason: str | None = None,
    ):
        self.entity_type = entity_type
        self.action = action
        self.actor_id = actor_id
        self.role = role
        self.reason = reason
        msg = f"Actor {actor_id} with role {role} may not {action} {entity_type}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class StateConsistencyError(StateTransitionError):
    """Status-dependent fields are missing or present without their counterpart."""

    code: str = "STATE_CONSISTENCY_VIOLATION"

    def __init__(self, message: str, *, field: str | None = None):
        self.field = field
        details = (FieldError(field, message),) if field else ()
        super().__init__(message, details)


class ClockStateError(StateTransitionError):
    """Clock-in / clock-out attempted in the wrong attendance state."""

    code: str = "CLOCK_STATE_ERROR"

    def __init__(self, employee_id: str, message: str):
        self.employee_id = employee_id
        super().__init__(message)


class AlreadyClockedInError(ClockStateError):
    """Employee already has an ACTIVE time entry."""

    code: str = "ALREADY_CLOCKED_IN"

    def __init__(self, employee_id: str, entry_id: str | None = None):
        self.entry_id = entry_id
        message = f"Employee {employee_id} is already clocked in"
        if entry_id:
            message += f" (entry {entry_id})"
        super().__init__(employee_id, message)


class NotClockedInError(ClockStateError):
    """Employee has no ACTIVE time entry."""

    code: str = "NOT_CLOCKED_IN"

    def __init__(self, employee_id: str):
        super().__init__(employee_id, f"Employee {employee_id} is not clocked in")


class BreakStateError(StateTransitionError):
    """Break started while another is open, or ended twice."""

    code: str = "BREAK_STATE_VIOLATION"

    def __init__(self, message: str, break_id: str | None = None):
        self.break_id = break_id
        super().__init__(message)


# Policy


class PolicyError(HRKernelError):
    """Base exception for policy and eligibility failures."""

    code: str = "POLICY_ERROR"


class PolicyNotApplicableError(PolicyError):
    """Policy is inactive, outside its window, or does not cover the group."""

    code: str = "POLICY_NOT_APPLICABLE"

    def __init__(self, policy_id: str, reasons: Sequence[str]):
        self.policy_id = policy_id
        self.reasons = tuple(reasons)
        super().__init__(
            f"Policy {policy_id} is not applicable: {'; '.join(self.reasons)}"
        )


class IneligibleEmployeeError(PolicyError):
    """At least one eligibility rule failed for the employee."""

    code: str = "EMPLOYEE_INELIGIBLE"

    def __init__(self, policy_id: str, employee_id: str, reasons: Sequence[str]):
        self.policy_id = policy_id
        self.employee_id = employee_id
        self.reasons = tuple(reasons)
        super().__init__(
            f"Employee {employee_id} is not eligible for policy {policy_id}: "
            f"{'; '.join(self.reasons)}"
        )


class UsageRestrictionError(PolicyError):
    """Requested usage violates a hard usage restriction."""

    code: str = "USAGE_RESTRICTION_VIOLATION"

    def __init__(self, policy_id: str, violations: Sequence[str]):
        self.policy_id = policy_id
        self.violations = tuple(violations)
        super().__init__(
            f"Usage restrictions of policy {policy_id} violated: "
            f"{'; '.join(self.violations)}",
            tuple(FieldError("usage", v) for v in self.violations),
        )


class PolicyBoundaryError(PolicyError):
    """A work week is covered by more than one overtime policy."""

    code: str = "POLICY_BOUNDARY_VIOLATION"

    def __init__(self, week_start: date, policy_ids: Sequence[str]):
        self.week_start = week_start
        self.policy_ids = tuple(policy_ids)
        super().__init__(
            f"Week starting {week_start.isoformat()} spans overtime policies "
            f"{', '.join(self.policy_ids)}"
        )


class InsufficientBalanceError(PolicyError):
    """Leave usage exceeds the available balance."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        employee_id: str,
        leave_type_id: str,
        requested: float,
        available: float,
    ):
        self.employee_id = employee_id
        self.leave_type_id = leave_type_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient {leave_type_id} balance for employee {employee_id}: "
            f"requested {requested}, available {available}"
        )


# Conflicts


class LeaveConflictError(HRKernelError):
    """Requested leave overlaps existing leave. Carries every conflict found."""

    code: str = "LEAVE_CONFLICT"

    def __init__(self, employee_id: str, conflicts: Sequence[Any]):
        self.employee_id = employee_id
        self.conflicts = tuple(conflicts)
        super().__init__(
            f"{len(self.conflicts)} leave conflict(s) for employee {employee_id}",
            tuple(FieldError("planned_leaves", str(c)) for c in self.conflicts),
        )


# Persistence


class PersistenceError(HRKernelError):
    """Base exception for storage-collaborator failures."""

    code: str = "PERSISTENCE_ERROR"


class RecordNotFoundError(PersistenceError):
    """No record with the given id."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class DuplicateRecordError(PersistenceError):
    """Storage-level uniqueness constraint rejected the write."""

    code: str = "DUPLICATE_RECORD"

    def __init__(self, entity_type: str, key: str):
        self.entity_type = entity_type
        self.key = key
        super().__init__(f"{entity_type} already exists for {key}")


class OptimisticLockError(PersistenceError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
