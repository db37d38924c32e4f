"""
LeaveRequestService -- leave requests and the balances they draw on.

Responsibility:
    Submit leave requests after policy, balance and overlap checks; approve
    (deducting the balance), deny and cancel them.  Also opens balances,
    runs due accruals, applies HR adjustments and the year-end carryover,
    recording an ``AccrualTransaction`` for every balance movement.

Architecture position:
    Kernel > Services -- imperative shell.  Policy evaluation comes from
    ``hr_engines.policy_application``, accrual scheduling from
    ``hr_engines.accrual``, overlap from ``hr_engines.leave_conflicts``.

Invariants enforced:
    - A request is accepted only when the best-matching policy applies,
      the employee is eligible and the usage restrictions hold.
    - Requested days never exceed the balance left after other PENDING
      requests of the same leave type.
    - PENDING / APPROVED requests of one employee never overlap.
    - The balance is deducted exactly once, on approval, and restored when
      an approved request is cancelled.

Failure modes:
    - PolicyNotApplicableError, IneligibleEmployeeError,
      UsageRestrictionError, InsufficientBalanceError, LeaveConflictError.
    - RecordNotFoundError / DuplicateRecordError for unknown or repeated
      records; UnauthorizedActorError for non-HR balance adjustments.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hr_engines.accrual import run_due_accruals
from hr_engines.leave_conflicts import ensure_no_request_conflicts
from hr_engines.policy_application import (
    find_applicable_leave_policies,
    find_best_leave_policy_match,
    require_policy_usage,
)
from hr_kernel.domain.clock import Clock
from hr_kernel.domain.dates import count_weekdays
from hr_kernel.domain.leave import (
    AccrualTransaction,
    LeaveBalance,
    LeaveRequest,
    LeaveRequestStatus,
)
from hr_kernel.domain.policy import AccrualRule, LeavePolicy
from hr_kernel.domain.values import Actor, EmployeeGroup
from hr_kernel.exceptions import (
    DuplicateRecordError,
    IneligibleEmployeeError,
    InsufficientBalanceError,
    PolicyNotApplicableError,
    RecordNotFoundError,
    UnauthorizedActorError,
)
from hr_kernel.logging_config import LogContext, get_logger
from hr_kernel.models.leave_balance import AccrualTransactionModel, LeaveBalanceModel
from hr_kernel.models.leave_request import LeaveRequestModel
from hr_kernel.services.base import BaseService

logger = get_logger("services.leave_request")


class LeaveRequestService(BaseService[LeaveRequestModel]):
    """
    Leave request workflow and balance bookkeeping.

    Contract:
        ``leave_policies`` is the active policy set; the most specific
        eligible policy for the leave type governs each request.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        leave_policies: Sequence[LeavePolicy] = (),
    ):
        super().__init__(session, clock)
        self._leave_policies = tuple(leave_policies)

    # -- rows -----------------------------------------------------------------

    def _request_row(self, request_id: str) -> LeaveRequestModel:
        row = self.session.execute(
            select(LeaveRequestModel)
            .where(LeaveRequestModel.request_id == request_id)
            .with_for_update()
        ).scalar_one_or_none()
        if row is None:
            raise RecordNotFoundError("leave request", request_id)
        return row

    def _balance_row(
        self, employee_id: str, leave_type_id: str, for_update: bool = False
    ) -> LeaveBalanceModel | None:
        stmt = select(LeaveBalanceModel).where(
            LeaveBalanceModel.employee_id == employee_id,
            LeaveBalanceModel.leave_type_id == leave_type_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def _require_balance_row(self, employee_id: str, leave_type_id: str) -> LeaveBalanceModel:
        row = self._balance_row(employee_id, leave_type_id, for_update=True)
        if row is None:
            raise RecordNotFoundError("leave balance", f"{employee_id}/{leave_type_id}")
        return row

    def _employee_requests(self, employee_id: str) -> list[LeaveRequest]:
        rows = self.session.execute(
            select(LeaveRequestModel)
            .where(
                LeaveRequestModel.employee_id == employee_id,
                LeaveRequestModel.status.in_(
                    [s.value for s in (LeaveRequestStatus.PENDING, LeaveRequestStatus.APPROVED)]
                ),
            )
            .order_by(LeaveRequestModel.start_date)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def _record(self, txn: AccrualTransaction | None) -> None:
        if txn is not None:
            self.session.add(AccrualTransactionModel.from_dto(txn))

    # -- queries --------------------------------------------------------------

    def get_request(self, request_id: str) -> LeaveRequest:
        return self._request_row(request_id).to_dto()

    def get_balance(self, employee_id: str, leave_type_id: str) -> LeaveBalance | None:
        row = self._balance_row(employee_id, leave_type_id)
        return row.to_dto() if row else None

    def transactions(self, employee_id: str, leave_type_id: str) -> list[AccrualTransaction]:
        rows = self.session.execute(
            select(AccrualTransactionModel)
            .where(
                AccrualTransactionModel.employee_id == employee_id,
                AccrualTransactionModel.leave_type_id == leave_type_id,
            )
            .order_by(AccrualTransactionModel.transaction_date, AccrualTransactionModel.created_at)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def pending_days(self, employee_id: str, leave_type_id: str) -> float:
        return sum(
            r.total_days for r in self._employee_requests(employee_id)
            if r.leave_type_id == leave_type_id and r.status == LeaveRequestStatus.PENDING
        )

    # -- requests -------------------------------------------------------------

    def _governing_policy(self, group: EmployeeGroup, leave_type_id: str, as_of: date) -> LeavePolicy:
        policy = find_best_leave_policy_match(self._leave_policies, group, leave_type_id, as_of)
        if policy is not None:
            return policy
        partition = find_applicable_leave_policies(
            self._leave_policies, group, as_of, leave_type_id
        )
        if partition.ineligible:
            rejected = partition.ineligible[0]
            raise IneligibleEmployeeError(
                rejected.policy.policy_id, group.employee_id, rejected.reasons
            )
        raise PolicyNotApplicableError(
            leave_type_id, [f"No active leave policy for {leave_type_id} covers this employee"]
        )

    def submit_request(
        self,
        group: EmployeeGroup,
        leave_type_id: str,
        start_date: date,
        end_date: date,
        total_days: float | None = None,
        reason: str | None = None,
        total_hours: float | None = None,
    ) -> LeaveRequest:
        """
        Submit a PENDING request; ``total_days`` defaults to the weekdays
        in [start_date, end_date].
        """
        employee_id = group.employee_id
        today = self._clock.today()
        if total_days is None:
            total_days = float(count_weekdays(start_date, end_date))

        request = LeaveRequest.submit(
            employee_id, leave_type_id, start_date, end_date, total_days,
            clock=self._clock, reason=reason, total_hours=total_hours,
        )

        policy = self._governing_policy(group, leave_type_id, today)
        validation = require_policy_usage(
            policy, group, total_days, today, start_date, end_date
        )

        balance = self.get_balance(employee_id, leave_type_id)
        available = balance.current_balance if balance else 0.0
        available -= self.pending_days(employee_id, leave_type_id)
        if total_days > available:
            raise InsufficientBalanceError(employee_id, leave_type_id, total_days, available)

        ensure_no_request_conflicts(
            employee_id, start_date, end_date, self._employee_requests(employee_id)
        )

        self.session.add(LeaveRequestModel.from_dto(request))
        self.session.flush()

        with LogContext.bind(employee_id=employee_id, request_id=request.request_id):
            logger.info(
                "leave_request_submitted",
                extra={
                    "leave_type_id": leave_type_id,
                    "policy_id": policy.policy_id,
                    "total_days": total_days,
                    "warnings": list(validation.warnings),
                },
            )
        return request

    def approve_request(
        self, request_id: str, actor: Actor, notes: str | None = None
    ) -> LeaveRequest:
        """Approve and deduct the request's days from the balance."""
        row = self._request_row(request_id)
        approved = row.to_dto().approve(actor, clock=self._clock, notes=notes)

        balance_row = self._balance_row(approved.employee_id, approved.leave_type_id, for_update=True)
        if balance_row is None:
            raise InsufficientBalanceError(
                approved.employee_id, approved.leave_type_id, approved.total_days, 0.0
            )
        balance, txn = balance_row.to_dto().apply_usage(
            approved.total_days, self._clock.today(), reference_id=request_id
        )
        balance_row.apply_dto(balance)
        self._record(txn)
        row.apply_dto(approved)
        self.session.flush()

        logger.info(
            "leave_request_approved",
            extra={
                "request_id": request_id,
                "actor_id": actor.actor_id,
                "total_days": approved.total_days,
                "remaining_balance": balance.current_balance,
            },
        )
        return approved

    def deny_request(self, request_id: str, actor: Actor, notes: str) -> LeaveRequest:
        row = self._request_row(request_id)
        denied = row.to_dto().deny(actor, notes, clock=self._clock)
        row.apply_dto(denied)
        self.session.flush()
        logger.info(
            "leave_request_denied",
            extra={"request_id": request_id, "actor_id": actor.actor_id},
        )
        return denied

    def cancel_request(self, request_id: str, actor: Actor) -> LeaveRequest:
        """Cancel; an approved request gives its days back."""
        row = self._request_row(request_id)
        current = row.to_dto()
        cancelled = current.cancel(actor, clock=self._clock)

        if current.status == LeaveRequestStatus.APPROVED:
            balance_row = self._require_balance_row(current.employee_id, current.leave_type_id)
            balance, txn = balance_row.to_dto().reverse_usage(
                current.total_days, self._clock.today(), reference_id=request_id
            )
            balance_row.apply_dto(balance)
            self._record(txn)

        row.apply_dto(cancelled)
        self.session.flush()
        logger.info(
            "leave_request_cancelled",
            extra={
                "request_id": request_id,
                "actor_id": actor.actor_id,
                "previous_status": current.status.value,
            },
        )
        return cancelled

    # -- balances -------------------------------------------------------------

    def open_balance(
        self,
        employee_id: str,
        leave_type_id: str,
        accrual_rule: AccrualRule,
        effective_date: date,
        opening_balance: float = 0.0,
    ) -> LeaveBalance:
        key = f"{employee_id}/{leave_type_id}"
        if self._balance_row(employee_id, leave_type_id) is not None:
            raise DuplicateRecordError("leave balance", key)
        balance = LeaveBalance(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            current_balance=opening_balance,
            accrual_rule=accrual_rule,
            effective_date=effective_date,
        )
        self.session.add(LeaveBalanceModel.from_dto(balance))
        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            raise DuplicateRecordError("leave balance", key)
        logger.info(
            "leave_balance_opened",
            extra={"employee_id": employee_id, "leave_type_id": leave_type_id,
                   "opening_balance": opening_balance},
        )
        return balance

    def run_accruals(self, employee_id: str, leave_type_id: str) -> LeaveBalance:
        """Apply every accrual due by today."""
        row = self._require_balance_row(employee_id, leave_type_id)
        balance, txns = run_due_accruals(row.to_dto(), self._clock.today())
        row.apply_dto(balance)
        for txn in txns:
            self._record(txn)
        self.session.flush()
        logger.info(
            "leave_accruals_applied",
            extra={
                "employee_id": employee_id,
                "leave_type_id": leave_type_id,
                "accrual_count": len(txns),
                "current_balance": balance.current_balance,
            },
        )
        return balance

    def adjust_balance(
        self,
        employee_id: str,
        leave_type_id: str,
        amount: float,
        description: str,
        actor: Actor,
    ) -> LeaveBalance:
        if not actor.is_hr:
            raise UnauthorizedActorError(
                "leave balance", "adjust", actor.actor_id, actor.role.value
            )
        row = self._require_balance_row(employee_id, leave_type_id)
        balance, txn = row.to_dto().apply_adjustment(amount, self._clock.today(), description)
        row.apply_dto(balance)
        self._record(txn)
        self.session.flush()
        logger.info(
            "leave_balance_adjusted",
            extra={
                "employee_id": employee_id,
                "leave_type_id": leave_type_id,
                "amount": amount,
                "actor_id": actor.actor_id,
            },
        )
        return balance

    def apply_year_end_carryover(self, employee_id: str, leave_type_id: str) -> LeaveBalance:
        row = self._require_balance_row(employee_id, leave_type_id)
        before = row.to_dto()
        balance, txn = before.apply_year_end_carryover(self._clock.today())
        row.apply_dto(balance)
        self._record(txn)
        self.session.flush()
        logger.info(
            "leave_year_end_carryover",
            extra={
                "employee_id": employee_id,
                "leave_type_id": leave_type_id,
                "carried_over": balance.current_balance,
                "forfeited": before.forfeiture_amount(),
            },
        )
        return balance
