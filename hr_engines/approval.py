"""
hr_engines.approval -- Pure evaluation of leave plan workflow actions.

Responsibility:
    Answer "may this actor perform this action on this plan right now?"
    without raising, so callers (UI menus, notification routing) can list
    the actions open to an actor. The plan's own ``apply`` enforces the
    same rules by raising.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import hr_kernel/domain/ types.

Invariants enforced:
    - Evaluation uses ``LEAVE_PLAN_TRANSITIONS`` only; no rule is
      re-derived here.
    - State is checked before the actor, matching ``TransitionTable.resolve``.
"""

from __future__ import annotations

from dataclasses import dataclass

from hr_kernel.domain.leave_plan import (
    LEAVE_PLAN_TRANSITIONS,
    AnnualLeavePlan,
    LeavePlanStatus,
    PlanAction,
)
from hr_kernel.domain.values import Actor


@dataclass(frozen=True)
class ActionEvaluation:
    """Outcome of evaluating one plan action for one actor."""

    action: PlanAction
    allowed: bool
    target_status: LeavePlanStatus | None = None
    reason: str | None = None


def evaluate_plan_action(
    plan: AnnualLeavePlan,
    action: PlanAction,
    actor: Actor,
) -> ActionEvaluation:
    action = PlanAction(action)
    transition = LEAVE_PLAN_TRANSITIONS.find(plan.status, action.value)
    if transition is None:
        return ActionEvaluation(
            action, False, reason=f"Cannot {action.value} a {plan.status.value} plan"
        )
    if not transition.permits(actor, owner_id=plan.employee_id):
        return ActionEvaluation(
            action,
            False,
            transition.to_state,
            reason=f"Role {actor.role.value} may not {action.value} this plan",
        )
    if action == PlanAction.SUBMIT and not plan.planned_leaves:
        return ActionEvaluation(
            action, False, transition.to_state, reason="Plan has no planned leave"
        )
    return ActionEvaluation(action, True, transition.to_state)


def available_actions(plan: AnnualLeavePlan, actor: Actor) -> tuple[PlanAction, ...]:
    """Actions ``actor`` may perform on ``plan`` in its current state."""
    return tuple(
        action
        for action in PlanAction
        if evaluate_plan_action(plan, action, actor).allowed
    )
