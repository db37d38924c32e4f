"""
LeavePlanService -- persistence and workflow for annual leave plans.

Responsibility:
    Create plans, edit their planned leave while DRAFT, and drive them
    through submission, manager approval and HR approval.  Each reached
    stage is reported to an optional ``LeavePlanNotifier``.

Architecture position:
    Kernel > Services -- imperative shell.  Workflow rules come from
    ``AnnualLeavePlan`` and ``LEAVE_PLAN_TRANSITIONS``; cross-plan overlap
    comes from ``hr_engines.leave_conflicts``.

Invariants enforced:
    - One plan per employee and year (query plus unique constraint).
    - A plan's planned leave never overlaps leave of the same employee's
      SUBMITTED / MANAGER_APPROVED / HR_APPROVED plans.  The check runs on
      create, on every edit and again at submission while the plan row is
      locked, so leave that became blocking in between is still caught.
    - Lost updates are detected through the version column and raised as
      OptimisticLockError.

Failure modes:
    - DuplicateRecordError, LeaveConflictError, RecordNotFoundError,
      OptimisticLockError, plus the domain's transition errors.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from hr_engines.approval import available_actions
from hr_engines.leave_conflicts import ensure_no_plan_conflicts
from hr_kernel.domain.clock import Clock
from hr_kernel.domain.leave_plan import AnnualLeavePlan, PlanAction, PlannedLeave
from hr_kernel.domain.values import Actor
from hr_kernel.exceptions import (
    DuplicateRecordError,
    OptimisticLockError,
    RecordNotFoundError,
    UnauthorizedActorError,
)
from hr_kernel.logging_config import LogContext, get_logger
from hr_kernel.models.leave_plan import AnnualLeavePlanModel
from hr_kernel.services.base import BaseService

logger = get_logger("services.leave_plan")

_ENTITY = "annual leave plan"


class LeavePlanNotifier(Protocol):
    """Receives every workflow step once it has been flushed."""

    def plan_transitioned(
        self, plan: AnnualLeavePlan, action: PlanAction, actor: Actor
    ) -> None: ...


class LeavePlanService(BaseService[AnnualLeavePlanModel]):
    """
    Annual leave plan workflow over persisted plans.

    Contract:
        Public methods return frozen ``AnnualLeavePlan`` objects.  The
        service flushes; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: LeavePlanNotifier | None = None,
    ):
        super().__init__(session, clock)
        self._notifier = notifier

    # -- queries --------------------------------------------------------------

    def _row(self, plan_id: str, for_update: bool = False) -> AnnualLeavePlanModel:
        stmt = select(AnnualLeavePlanModel).where(AnnualLeavePlanModel.plan_id == plan_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise RecordNotFoundError(_ENTITY, plan_id)
        return row

    def _employee_plans(self, employee_id: str) -> list[AnnualLeavePlan]:
        rows = self.session.execute(
            select(AnnualLeavePlanModel)
            .where(AnnualLeavePlanModel.employee_id == employee_id)
            .order_by(AnnualLeavePlanModel.year)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def get_plan(self, plan_id: str) -> AnnualLeavePlan:
        return self._row(plan_id).to_dto()

    def find_plan(self, employee_id: str, year: int) -> AnnualLeavePlan | None:
        row = self.session.execute(
            select(AnnualLeavePlanModel).where(
                AnnualLeavePlanModel.employee_id == employee_id,
                AnnualLeavePlanModel.year == year,
            )
        ).scalar_one_or_none()
        return row.to_dto() if row else None

    def plans_for_employee(self, employee_id: str) -> list[AnnualLeavePlan]:
        return self._employee_plans(employee_id)

    def available_actions(self, plan_id: str, actor: Actor) -> tuple[PlanAction, ...]:
        return available_actions(self.get_plan(plan_id), actor)

    # -- writes ---------------------------------------------------------------

    def _flush(self, plan_id: str) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning("leave_plan_version_conflict", extra={"plan_id": plan_id})
            raise OptimisticLockError(_ENTITY, plan_id) from exc

    def _check_conflicts(self, plan: AnnualLeavePlan, leaves: Sequence[PlannedLeave]) -> None:
        ensure_no_plan_conflicts(
            plan.employee_id,
            leaves,
            self._employee_plans(plan.employee_id),
            exclude_plan_id=plan.plan_id,
        )

    @staticmethod
    def _require_editor(plan: AnnualLeavePlan, actor: Actor) -> None:
        if not (actor.is_hr or actor.owns(plan.employee_id)):
            raise UnauthorizedActorError(
                _ENTITY, "edit", actor.actor_id, actor.role.value,
                reason="only the plan owner or HR may edit planned leave",
            )

    def create_plan(
        self,
        employee_id: str,
        year: int,
        total_entitlement: float,
        carried_over: float = 0.0,
        planned_leaves: Sequence[PlannedLeave] = (),
    ) -> AnnualLeavePlan:
        """
        Create a DRAFT plan.

        Raises:
            DuplicateRecordError: The employee already has a plan for ``year``.
            LeaveConflictError: Planned leave overlaps another plan's leave.
        """
        key = f"{employee_id}/{year}"
        if self.find_plan(employee_id, year) is not None:
            raise DuplicateRecordError(_ENTITY, key)

        plan = AnnualLeavePlan.create(
            employee_id, year, total_entitlement,
            clock=self._clock, carried_over=carried_over, planned_leaves=planned_leaves,
        )
        self._check_conflicts(plan, plan.planned_leaves)

        self.session.add(AnnualLeavePlanModel.from_dto(plan))
        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            logger.warning("concurrent_plan_create_conflict", extra={"key": key})
            raise DuplicateRecordError(_ENTITY, key)

        with LogContext.bind(employee_id=employee_id, plan_id=plan.plan_id):
            logger.info(
                "leave_plan_created",
                extra={"year": year, "planned_days": plan.total_planned_days},
            )
        return plan

    def update_planned_leaves(
        self,
        plan_id: str,
        planned_leaves: Sequence[PlannedLeave],
        actor: Actor,
    ) -> AnnualLeavePlan:
        """Replace the planned leave of a DRAFT plan."""
        row = self._row(plan_id, for_update=True)
        current = row.to_dto()
        self._require_editor(current, actor)
        updated = current.with_planned_leaves(planned_leaves)
        self._check_conflicts(updated, updated.planned_leaves)

        row.apply_dto(updated)
        self._flush(plan_id)
        logger.info(
            "leave_plan_updated",
            extra={
                "plan_id": plan_id,
                "actor_id": actor.actor_id,
                "planned_days": updated.total_planned_days,
            },
        )
        return updated

    def transition(
        self,
        plan_id: str,
        action: PlanAction,
        actor: Actor,
        reason: str | None = None,
    ) -> AnnualLeavePlan:
        """
        Apply one workflow action under a row lock.

        Submission re-runs the conflict check against the employee's other
        plans as they are now.
        """
        action = PlanAction(action)
        row = self._row(plan_id, for_update=True)
        current = row.to_dto()
        updated = current.apply(action, actor, clock=self._clock, reason=reason)
        if action == PlanAction.SUBMIT:
            self._check_conflicts(updated, updated.planned_leaves)

        row.apply_dto(updated)
        self._flush(plan_id)

        with LogContext.bind(plan_id=plan_id, actor_id=actor.actor_id):
            logger.info(
                "leave_plan_transitioned",
                extra={
                    "action": action.value,
                    "from_status": current.status.value,
                    "to_status": updated.status.value,
                },
            )
        if self._notifier is not None:
            self._notifier.plan_transitioned(updated, action, actor)
        return updated

    def submit(self, plan_id: str, actor: Actor) -> AnnualLeavePlan:
        return self.transition(plan_id, PlanAction.SUBMIT, actor)

    def manager_approve(self, plan_id: str, actor: Actor) -> AnnualLeavePlan:
        return self.transition(plan_id, PlanAction.MANAGER_APPROVE, actor)

    def manager_reject(
        self, plan_id: str, actor: Actor, reason: str | None = None
    ) -> AnnualLeavePlan:
        return self.transition(plan_id, PlanAction.MANAGER_REJECT, actor, reason)

    def hr_approve(self, plan_id: str, actor: Actor) -> AnnualLeavePlan:
        return self.transition(plan_id, PlanAction.HR_APPROVE, actor)

    def hr_reject(
        self, plan_id: str, actor: Actor, reason: str | None = None
    ) -> AnnualLeavePlan:
        return self.transition(plan_id, PlanAction.HR_REJECT, actor, reason)
