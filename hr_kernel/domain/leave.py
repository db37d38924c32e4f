"""
Leave entities -- leave requests, balances and accrual transactions.

Responsibility:
    ``LeaveRequest`` moves PENDING -> APPROVED / DENIED / CANCELLED under
    ``LEAVE_REQUEST_TRANSITIONS``. ``LeaveBalance`` tracks the available
    days of one leave type for one employee; every change returns the new
    balance together with the ``AccrualTransaction`` that explains it.

Architecture position:
    Kernel > Domain -- pure, zero I/O. Schedules and projections live in
    ``hr_engines.accrual``.

Invariants enforced:
    - LeaveRequest: end_date >= start_date; total_days > 0 and no larger
      than the calendar span; reviewed_by / reviewed_at set together;
      APPROVED and DENIED carry a review; DENIED carries review notes;
      start_date not in the past at submission.
    - LeaveBalance: balances and year-to-date counters are non-negative;
      accrual never lifts the balance above the rule's max_balance;
      usage never exceeds the balance; adjustments floor at zero.
    - AccrualTransaction: ACCRUAL > 0, USAGE < 0, others non-zero.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Mapping
from uuid import uuid4

from hr_kernel.domain.clock import Clock
from hr_kernel.domain.dates import add_months, count_weekdays, intervals_overlap
from hr_kernel.domain.policy import AccrualPeriod, AccrualRule, BlackoutPeriod, UsageRestrictions
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
from hr_kernel.domain.values import APPROVER_ROLES, Actor, Role
from hr_kernel.domain.workflow import Transition, TransitionTable
from hr_kernel.exceptions import (
    InsufficientBalanceError,
    SchemaValidationError,
    StateConsistencyError,
    TimeSequenceError,
)

TEXT_MAX_LENGTH = 1000


# ---------------------------------------------------------------------------
# Leave request
# ---------------------------------------------------------------------------


class LeaveRequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    CANCELLED = "CANCELLED"


class LeaveRequestAction(str, Enum):
    APPROVE = "approve"
    DENY = "deny"
    CANCEL = "cancel"


LEAVE_REQUEST_TRANSITIONS = TransitionTable(
    "leave request",
    [
        Transition(LeaveRequestStatus.PENDING, LeaveRequestAction.APPROVE.value,
                   LeaveRequestStatus.APPROVED, APPROVER_ROLES),
        Transition(LeaveRequestStatus.PENDING, LeaveRequestAction.DENY.value,
                   LeaveRequestStatus.DENIED, APPROVER_ROLES),
        Transition(LeaveRequestStatus.PENDING, LeaveRequestAction.CANCEL.value,
                   LeaveRequestStatus.CANCELLED, frozenset({Role.HR_ADMIN}),
                   owner_may_act=True),
        Transition(LeaveRequestStatus.APPROVED, LeaveRequestAction.CANCEL.value,
                   LeaveRequestStatus.CANCELLED, frozenset({Role.HR_ADMIN}),
                   owner_may_act=True),
    ],
    terminal_states=(LeaveRequestStatus.DENIED, LeaveRequestStatus.CANCELLED),
)

# Statuses that still hold the requested days.
BLOCKING_REQUEST_STATUSES: frozenset[LeaveRequestStatus] = frozenset({
    LeaveRequestStatus.PENDING,
    LeaveRequestStatus.APPROVED,
})


@dataclass(frozen=True)
class LeaveRequest:
    """A request for leave of one type over an inclusive date range."""

    request_id: str
    employee_id: str
    leave_type_id: str
    start_date: date
    end_date: date
    total_days: float
    submitted_at: datetime
    status: LeaveRequestStatus = LeaveRequestStatus.PENDING
    total_hours: float | None = None
    reason: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None

    def __post_init__(self) -> None:
        require_text("request_id", self.request_id)
        require_text("employee_id", self.employee_id)
        require_text("leave_type_id", self.leave_type_id)
        require_date("start_date", self.start_date)
        require_date("end_date", self.end_date)
        require_aware("submitted_at", self.submitted_at)
        object.__setattr__(
            self, "status", require_enum(LeaveRequestStatus, "status", self.status)
        )
        require_max_length("reason", self.reason, TEXT_MAX_LENGTH)
        require_max_length("review_notes", self.review_notes, TEXT_MAX_LENGTH)
        if self.end_date < self.start_date:
            raise TimeSequenceError("end_date cannot be before start_date", field="end_date")
        require_range("total_days", self.total_days, minimum=0)
        if self.total_days <= 0 or self.total_days > self.calendar_days:
            raise SchemaValidationError(
                f"total_days must be in (0, {self.calendar_days}]", field="total_days"
            )
        if self.total_hours is not None:
            require_range("total_hours", self.total_hours, minimum=0)
            if self.total_hours == 0:
                raise SchemaValidationError("total_hours must be positive", field="total_hours")
        if self.reviewed_at is not None:
            require_aware("reviewed_at", self.reviewed_at)
        self._validate_review()

    def _validate_review(self) -> None:
        if (self.reviewed_by is None) != (self.reviewed_at is None):
            raise StateConsistencyError(
                "reviewed_by and reviewed_at must be set together", field="reviewed_by"
            )
        if self.status in (LeaveRequestStatus.APPROVED, LeaveRequestStatus.DENIED):
            if self.reviewed_by is None:
                raise StateConsistencyError(
                    f"A {self.status.value} request requires a reviewer", field="reviewed_by"
                )
        if self.status == LeaveRequestStatus.DENIED and not (
            self.review_notes and self.review_notes.strip()
        ):
            raise StateConsistencyError(
                "A denied request requires review notes", field="review_notes"
            )
        if self.status == LeaveRequestStatus.PENDING and self.reviewed_by is not None:
            raise StateConsistencyError(
                "A PENDING request cannot carry a review", field="reviewed_by"
            )

    # -- factory / transitions ---------------------------------------------

    @classmethod
    def submit(
        cls,
        employee_id: str,
        leave_type_id: str,
        start_date: date,
        end_date: date,
        total_days: float,
        *,
        clock: Clock,
        reason: str | None = None,
        total_hours: float | None = None,
    ) -> LeaveRequest:
        now = clock.now()
        request = cls(
            request_id=str(uuid4()),
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            start_date=start_date,
            end_date=end_date,
            total_days=total_days,
            submitted_at=now,
            total_hours=total_hours,
            reason=reason,
        )
        if start_date < now.date():
            raise TimeSequenceError(
                "Leave cannot be requested for past dates", field="start_date"
            )
        return request

    def _apply(
        self,
        action: LeaveRequestAction,
        actor: Actor,
        clock: Clock,
        notes: str | None,
    ) -> LeaveRequest:
        transition = LEAVE_REQUEST_TRANSITIONS.resolve(
            self.status, action.value, actor, owner_id=self.employee_id
        )
        if action == LeaveRequestAction.CANCEL:
            return replace(self, status=transition.to_state)
        return replace(
            self,
            status=transition.to_state,
            reviewed_by=actor.actor_id,
            reviewed_at=clock.now(),
            review_notes=notes,
        )

    def approve(self, actor: Actor, *, clock: Clock, notes: str | None = None) -> LeaveRequest:
        return self._apply(LeaveRequestAction.APPROVE, actor, clock, notes)

    def deny(self, actor: Actor, notes: str, *, clock: Clock) -> LeaveRequest:
        return self._apply(LeaveRequestAction.DENY, actor, clock, notes)

    def cancel(self, actor: Actor, *, clock: Clock) -> LeaveRequest:
        return self._apply(LeaveRequestAction.CANCEL, actor, clock, None)

    # -- derived values -----------------------------------------------------

    @property
    def calendar_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def business_days(self) -> int:
        return count_weekdays(self.start_date, self.end_date)

    @property
    def notice_days(self) -> int:
        return (self.start_date - self.submitted_at.date()).days

    @property
    def is_blocking(self) -> bool:
        return self.status in BLOCKING_REQUEST_STATUSES

    def overlaps(self, start: date, end: date) -> bool:
        return intervals_overlap(self.start_date, self.end_date, start, end)

    def blackout_conflicts(self, restrictions: UsageRestrictions) -> tuple[BlackoutPeriod, ...]:
        return restrictions.blackouts_overlapping(self.start_date, self.end_date)

    def to_record(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "employee_id": self.employee_id,
            "leave_type_id": self.leave_type_id,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "total_days": self.total_days,
            "total_hours": self.total_hours,
            "status": self.status.value,
            "submitted_at": iso(self.submitted_at),
            "reason": self.reason,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": iso(self.reviewed_at),
            "review_notes": self.review_notes,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> LeaveRequest:
        return cls(
            request_id=record["request_id"],
            employee_id=record["employee_id"],
            leave_type_id=record["leave_type_id"],
            start_date=parse_date("start_date", record["start_date"]),
            end_date=parse_date("end_date", record["end_date"]),
            total_days=record["total_days"],
            submitted_at=parse_datetime("submitted_at", record["submitted_at"]),
            status=record.get("status", LeaveRequestStatus.PENDING),
            total_hours=record.get("total_hours"),
            reason=record.get("reason"),
            reviewed_by=record.get("reviewed_by"),
            reviewed_at=parse_datetime("reviewed_at", record.get("reviewed_at")),
            review_notes=record.get("review_notes"),
        )


# ---------------------------------------------------------------------------
# Accrual transactions
# ---------------------------------------------------------------------------


class TransactionType(str, Enum):
    ACCRUAL = "ACCRUAL"
    USAGE = "USAGE"
    ADJUSTMENT = "ADJUSTMENT"
    CARRYOVER = "CARRYOVER"


@dataclass(frozen=True)
class AccrualTransaction:
    """One signed movement on a leave balance."""

    transaction_id: str
    employee_id: str
    leave_type_id: str
    transaction_type: TransactionType
    amount: float
    transaction_date: date
    description: str = ""
    reference_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "transaction_type",
            require_enum(TransactionType, "transaction_type", self.transaction_type),
        )
        require_range("amount", self.amount)
        require_date("transaction_date", self.transaction_date)
        if self.transaction_type == TransactionType.ACCRUAL and self.amount <= 0:
            raise SchemaValidationError("ACCRUAL amount must be positive", field="amount")
        if self.transaction_type == TransactionType.USAGE and self.amount >= 0:
            raise SchemaValidationError("USAGE amount must be negative", field="amount")
        if self.amount == 0:
            raise SchemaValidationError("amount cannot be zero", field="amount")

    @classmethod
    def record(
        cls,
        balance: LeaveBalance,
        transaction_type: TransactionType,
        amount: float,
        on: date,
        description: str = "",
        reference_id: str | None = None,
    ) -> AccrualTransaction:
        return cls(
            transaction_id=str(uuid4()),
            employee_id=balance.employee_id,
            leave_type_id=balance.leave_type_id,
            transaction_type=transaction_type,
            amount=amount,
            transaction_date=on,
            description=description,
            reference_id=reference_id,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "employee_id": self.employee_id,
            "leave_type_id": self.leave_type_id,
            "transaction_type": self.transaction_type.value,
            "amount": self.amount,
            "transaction_date": iso(self.transaction_date),
            "description": self.description,
            "reference_id": self.reference_id,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> AccrualTransaction:
        return cls(
            transaction_id=record["transaction_id"],
            employee_id=record["employee_id"],
            leave_type_id=record["leave_type_id"],
            transaction_type=record["transaction_type"],
            amount=record["amount"],
            transaction_date=parse_date("transaction_date", record["transaction_date"]),
            description=record.get("description") or "",
            reference_id=record.get("reference_id"),
        )


# ---------------------------------------------------------------------------
# Leave balance
# ---------------------------------------------------------------------------

# Pay periods are assumed to be two weeks long.
_PERIOD_DAYS = {
    AccrualPeriod.BIWEEKLY: 14,
    AccrualPeriod.PER_PAY_PERIOD: 14,
}


def next_period_date(period: AccrualPeriod, after: date) -> date:
    """The accrual date one ``period`` after ``after``."""
    if period == AccrualPeriod.MONTHLY:
        return add_months(after, 1)
    if period == AccrualPeriod.ANNUAL:
        return add_months(after, 12)
    return after + timedelta(days=_PERIOD_DAYS[period])


@dataclass(frozen=True)
class LeaveBalance:
    """Available days of one leave type for one employee."""

    employee_id: str
    leave_type_id: str
    current_balance: float
    accrual_rule: AccrualRule
    effective_date: date
    last_accrual_date: date | None = None
    ytd_used: float = 0.0
    ytd_accrued: float = 0.0

    def __post_init__(self) -> None:
        require_text("employee_id", self.employee_id)
        require_text("leave_type_id", self.leave_type_id)
        require_range("current_balance", self.current_balance, minimum=0)
        require_range("ytd_used", self.ytd_used, minimum=0)
        require_range("ytd_accrued", self.ytd_accrued, minimum=0)
        require_date("effective_date", self.effective_date)
        if not isinstance(self.accrual_rule, AccrualRule):
            raise SchemaValidationError("accrual_rule must be an AccrualRule", field="accrual_rule")
        if self.last_accrual_date is not None:
            require_date("last_accrual_date", self.last_accrual_date)
            if self.last_accrual_date < self.effective_date:
                raise TimeSequenceError(
                    "last_accrual_date cannot precede effective_date",
                    field="last_accrual_date",
                )

    def has_sufficient_balance(self, days: float) -> bool:
        return self.current_balance >= days

    # -- schedule -----------------------------------------------------------

    def next_accrual_date(self) -> date:
        return next_period_date(
            self.accrual_rule.accrual_period,
            self.last_accrual_date or self.effective_date,
        )

    def is_accrual_due(self, on: date) -> bool:
        return on >= self.next_accrual_date()

    # -- movements ----------------------------------------------------------

    def apply_accrual(
        self, amount: float, on: date
    ) -> tuple[LeaveBalance, AccrualTransaction | None]:
        """Credit ``amount`` without exceeding max_balance.

        The accrual date advances even when the cap absorbs the whole
        amount; no transaction is produced in that case.
        """
        require_range("amount", amount, minimum=0)
        headroom = max(0.0, self.accrual_rule.max_balance - self.current_balance)
        credited = min(amount, headroom)
        updated = replace(
            self,
            current_balance=self.current_balance + credited,
            ytd_accrued=self.ytd_accrued + credited,
            last_accrual_date=on,
        )
        if credited <= 0:
            return updated, None
        return updated, AccrualTransaction.record(
            self, TransactionType.ACCRUAL, credited, on, "Periodic accrual"
        )

    def apply_usage(
        self, days: float, on: date, reference_id: str | None = None
    ) -> tuple[LeaveBalance, AccrualTransaction]:
        require_range("days", days, minimum=0)
        if days == 0:
            raise SchemaValidationError("Usage must be positive", field="days")
        if not self.has_sufficient_balance(days):
            raise InsufficientBalanceError(
                self.employee_id, self.leave_type_id, days, self.current_balance
            )
        updated = replace(
            self,
            current_balance=self.current_balance - days,
            ytd_used=self.ytd_used + days,
        )
        return updated, AccrualTransaction.record(
            self, TransactionType.USAGE, -days, on, "Leave taken", reference_id
        )

    def reverse_usage(
        self, days: float, on: date, reference_id: str | None = None
    ) -> tuple[LeaveBalance, AccrualTransaction]:
        """Give back ``days`` taken by a usage that no longer stands."""
        require_range("days", days, minimum=0)
        if days == 0:
            raise SchemaValidationError("Reversed usage must be positive", field="days")
        updated = replace(
            self,
            current_balance=self.current_balance + days,
            # floors at zero when a year-end reset came in between
            ytd_used=max(0.0, self.ytd_used - days),
        )
        return updated, AccrualTransaction.record(
            self, TransactionType.ADJUSTMENT, days, on, "Leave usage reversed", reference_id
        )

    def apply_adjustment(
        self, amount: float, on: date, description: str
    ) -> tuple[LeaveBalance, AccrualTransaction | None]:
        """Manual correction; the balance never drops below zero."""
        require_text("description", description, max_length=TEXT_MAX_LENGTH)
        new_balance = max(0.0, self.current_balance + amount)
        delta = new_balance - self.current_balance
        updated = replace(self, current_balance=new_balance)
        if delta == 0:
            return updated, None
        return updated, AccrualTransaction.record(
            self, TransactionType.ADJUSTMENT, delta, on, description
        )

    def carryover_amount(self) -> float:
        return min(self.current_balance, self.accrual_rule.carryover_limit)

    def forfeiture_amount(self) -> float:
        return self.current_balance - self.carryover_amount()

    def apply_year_end_carryover(
        self, on: date
    ) -> tuple[LeaveBalance, AccrualTransaction | None]:
        """Keep at most carryover_limit days and reset year-to-date counters."""
        forfeited = self.forfeiture_amount()
        updated = replace(
            self,
            current_balance=self.carryover_amount(),
            ytd_used=0.0,
            ytd_accrued=0.0,
        )
        if forfeited <= 0:
            return updated, None
        return updated, AccrualTransaction.record(
            self, TransactionType.CARRYOVER, -forfeited, on, "Year-end forfeiture"
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "leave_type_id": self.leave_type_id,
            "current_balance": self.current_balance,
            "accrual_rule": self.accrual_rule.to_record(),
            "effective_date": iso(self.effective_date),
            "last_accrual_date": iso(self.last_accrual_date),
            "ytd_used": self.ytd_used,
            "ytd_accrued": self.ytd_accrued,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> LeaveBalance:
        return cls(
            employee_id=record["employee_id"],
            leave_type_id=record["leave_type_id"],
            current_balance=record["current_balance"],
            accrual_rule=AccrualRule.from_record(record["accrual_rule"]),
            effective_date=parse_date("effective_date", record["effective_date"]),
            last_accrual_date=parse_date("last_accrual_date", record.get("last_accrual_date")),
            ytd_used=record.get("ytd_used", 0.0),
            ytd_accrued=record.get("ytd_accrued", 0.0),
        )
