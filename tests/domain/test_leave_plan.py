"""
Tests for the annual leave plan state machine (``hr_kernel.domain.leave_plan``).

Invariants tested:
- Planned leave days lie within half a day under the weekday count.
- Planned leaves stay inside the plan year and never overlap.
- Total planned days never exceed entitlement + carried over.
- DRAFT -> SUBMITTED -> MANAGER_APPROVED -> HR_APPROVED, REJECTED from the
  two middle stages; no skipping, terminal states stay terminal.
- Every reached stage carries its actor and timestamp, no other does.
- Planned leaves are editable only while DRAFT.
"""

from datetime import date, datetime, timezone

import pytest

from hr_kernel.domain.leave_plan import (
    LEAVE_PLAN_TRANSITIONS,
    AnnualLeavePlan,
    LeavePlanStatus,
    PlanAction,
    PlannedLeave,
    PlannedLeaveType,
)
from hr_kernel.domain.values import Actor, Role
from hr_kernel.exceptions import (
    InvalidTransitionError,
    SchemaValidationError,
    StateConsistencyError,
    TimeSequenceError,
    UnauthorizedActorError,
)

JULY_WEEK = PlannedLeave(date(2024, 7, 1), date(2024, 7, 5))
AUGUST_WEEK = PlannedLeave(date(2024, 8, 5), date(2024, 8, 9))


def _plan(clock, leaves=(JULY_WEEK,), entitlement=20.0, **kwargs) -> AnnualLeavePlan:
    return AnnualLeavePlan.create(
        "emp-1", 2024, entitlement, clock=clock, planned_leaves=leaves, **kwargs
    )


# =========================================================================
# Planned leave
# =========================================================================


class TestPlannedLeave:

    def test_days_default_to_weekdays(self):
        assert JULY_WEEK.days == 5.0

    def test_half_day_under_weekdays_allowed(self):
        assert PlannedLeave(date(2024, 7, 1), date(2024, 7, 5), days=4.5).days == 4.5

    @pytest.mark.parametrize("days", [4.0, 6.0])
    def test_days_inconsistent_with_weekdays_rejected(self, days):
        with pytest.raises(SchemaValidationError):
            PlannedLeave(date(2024, 7, 1), date(2024, 7, 5), days=days)

    @pytest.mark.parametrize("days", [None, 0.5])
    def test_weekend_only_interval_rejected(self, days):
        with pytest.raises(SchemaValidationError, match="contains no working days") as exc_info:
            PlannedLeave(date(2024, 7, 6), date(2024, 7, 7), days=days)
        assert exc_info.value.field == "end_date"

    def test_end_before_start_rejected(self):
        with pytest.raises(TimeSequenceError):
            PlannedLeave(date(2024, 7, 5), date(2024, 7, 1))

    def test_unknown_leave_type_rejected(self):
        with pytest.raises(SchemaValidationError):
            PlannedLeave(date(2024, 7, 1), date(2024, 7, 1), leave_type="SABBATICAL")


# =========================================================================
# Creation and plan-level validation
# =========================================================================


class TestCreation:

    def test_new_plan_is_draft(self, clock):
        plan = _plan(clock)

        assert plan.status == LeavePlanStatus.DRAFT
        assert plan.submitted_by is None
        assert plan.total_planned_days == 5
        assert plan.remaining_days == 15

    def test_past_year_rejected(self, clock):
        with pytest.raises(TimeSequenceError):
            AnnualLeavePlan.create("emp-1", 2023, 20, clock=clock)

    def test_year_out_of_range_rejected(self, clock):
        with pytest.raises(SchemaValidationError):
            AnnualLeavePlan.create("emp-1", 2100, 20, clock=clock)

    def test_entitlement_out_of_range_rejected(self, clock):
        with pytest.raises(SchemaValidationError):
            _plan(clock, entitlement=101)

    def test_leave_outside_year_rejected(self, clock):
        crossing = PlannedLeave(date(2024, 12, 30), date(2025, 1, 3))
        with pytest.raises(TimeSequenceError):
            _plan(clock, leaves=(crossing,))

    def test_overlapping_leaves_rejected(self, clock):
        overlapping = PlannedLeave(date(2024, 7, 5), date(2024, 7, 8))
        with pytest.raises(TimeSequenceError):
            _plan(clock, leaves=(JULY_WEEK, overlapping))

    def test_entitlement_exceeded_rejected(self, clock):
        with pytest.raises(SchemaValidationError):
            _plan(clock, leaves=(JULY_WEEK, AUGUST_WEEK), entitlement=8)

    def test_carried_over_counts_towards_entitlement(self, clock):
        plan = _plan(clock, leaves=(JULY_WEEK, AUGUST_WEEK), entitlement=8, carried_over=2)
        assert plan.available_days == 10
        assert plan.remaining_days == 0

    def test_days_by_type(self, clock):
        sick = PlannedLeave(date(2024, 9, 2), date(2024, 9, 2), leave_type=PlannedLeaveType.SICK)
        plan = _plan(clock, leaves=(JULY_WEEK, sick))
        assert plan.days_by_type() == {
            PlannedLeaveType.ANNUAL: 5.0,
            PlannedLeaveType.SICK: 1.0,
        }


# =========================================================================
# Workflow
# =========================================================================


class TestWorkflow:

    def test_full_approval_stamps_every_stage(self, clock, employee, manager, hr_admin):
        plan = _plan(clock).submit(employee, clock=clock)
        submitted_at = clock.now()
        clock.advance(hours=1)
        plan = plan.manager_approve(manager, clock=clock)
        clock.advance(hours=1)
        plan = plan.hr_approve(hr_admin, clock=clock)

        assert plan.status == LeavePlanStatus.HR_APPROVED
        assert plan.submitted_by == "emp-1"
        assert plan.submitted_at == submitted_at
        assert plan.manager_approved_by == "mgr-1"
        assert plan.hr_approved_by == "hr-1"
        assert plan.hr_approved_at == clock.now()
        assert plan.is_terminal

    def test_manager_reject_records_reason(self, clock, employee, manager):
        plan = _plan(clock).submit(employee, clock=clock)
        rejected = plan.manager_reject(manager, clock=clock, reason="Peak season")

        assert rejected.status == LeavePlanStatus.REJECTED
        assert rejected.rejected_by == "mgr-1"
        assert rejected.rejection_reason == "Peak season"

    def test_hr_reject_keeps_manager_approval(self, clock, employee, manager, hr_admin):
        plan = _plan(clock).submit(employee, clock=clock).manager_approve(manager, clock=clock)
        rejected = plan.hr_reject(hr_admin, clock=clock, reason="Budget")

        assert rejected.status == LeavePlanStatus.REJECTED
        assert rejected.manager_approved_by == "mgr-1"
        assert rejected.rejected_by == "hr-1"

    def test_hr_may_submit_on_behalf(self, clock, hr_admin):
        assert _plan(clock).submit(hr_admin, clock=clock).submitted_by == "hr-1"

    def test_other_employee_cannot_submit(self, clock):
        with pytest.raises(UnauthorizedActorError):
            _plan(clock).submit(Actor("emp-2", Role.EMPLOYEE), clock=clock)

    def test_employee_cannot_approve(self, clock, employee):
        plan = _plan(clock).submit(employee, clock=clock)
        with pytest.raises(UnauthorizedActorError):
            plan.manager_approve(employee, clock=clock)

    def test_manager_cannot_hr_approve(self, clock, employee, manager):
        plan = _plan(clock).submit(employee, clock=clock).manager_approve(manager, clock=clock)
        with pytest.raises(UnauthorizedActorError):
            plan.hr_approve(manager, clock=clock)

    def test_stage_cannot_be_skipped(self, clock, employee, hr_admin):
        plan = _plan(clock).submit(employee, clock=clock)
        with pytest.raises(InvalidTransitionError):
            plan.hr_approve(hr_admin, clock=clock)

    def test_rejected_is_terminal(self, clock, employee, manager):
        rejected = _plan(clock).submit(employee, clock=clock).manager_reject(manager, clock=clock)
        with pytest.raises(InvalidTransitionError):
            rejected.submit(employee, clock=clock)

    def test_empty_plan_cannot_be_submitted(self, clock, employee):
        with pytest.raises(SchemaValidationError):
            _plan(clock, leaves=()).submit(employee, clock=clock)

    def test_action_from_raw_value(self, clock, employee):
        plan = _plan(clock).apply("submit", employee, clock=clock)
        assert plan.status == LeavePlanStatus.SUBMITTED

    def test_transition_table_actions(self):
        assert set(LEAVE_PLAN_TRANSITIONS.actions_from(LeavePlanStatus.SUBMITTED)) == {
            PlanAction.MANAGER_APPROVE.value,
            PlanAction.MANAGER_REJECT.value,
        }


# =========================================================================
# Editing
# =========================================================================


class TestEditing:

    def test_add_update_remove_in_draft(self, clock):
        plan = _plan(clock).add_planned_leave(AUGUST_WEEK)
        assert len(plan.planned_leaves) == 2

        shorter = PlannedLeave(date(2024, 8, 5), date(2024, 8, 6))
        plan = plan.update_planned_leave(1, shorter)
        assert plan.planned_leaves[1] == shorter

        plan = plan.remove_planned_leave(0)
        assert plan.planned_leaves == (shorter,)

    def test_add_still_validates(self, clock):
        with pytest.raises(TimeSequenceError):
            _plan(clock).add_planned_leave(PlannedLeave(date(2024, 7, 3), date(2024, 7, 3)))

    def test_bad_index_rejected(self, clock):
        with pytest.raises(SchemaValidationError):
            _plan(clock).remove_planned_leave(3)

    def test_editing_after_submission_rejected(self, clock, employee):
        plan = _plan(clock).submit(employee, clock=clock)
        with pytest.raises(InvalidTransitionError):
            plan.add_planned_leave(AUGUST_WEEK)
        with pytest.raises(InvalidTransitionError):
            plan.with_planned_leaves(())


# =========================================================================
# Status consistency and records
# =========================================================================


class TestConsistency:

    def test_submitted_without_stamp_rejected(self, clock):
        record = _plan(clock).to_record()
        record["status"] = "SUBMITTED"
        with pytest.raises(StateConsistencyError):
            AnnualLeavePlan.from_record(record)

    def test_stamp_pair_set_together(self, clock, employee):
        record = _plan(clock).submit(employee, clock=clock).to_record()
        record["submitted_at"] = None
        with pytest.raises(StateConsistencyError):
            AnnualLeavePlan.from_record(record)

    def test_draft_cannot_carry_approval(self, clock):
        record = _plan(clock).to_record()
        record["manager_approved_by"] = "mgr-1"
        record["manager_approved_at"] = "2024-06-03T08:00:00+00:00"
        with pytest.raises(StateConsistencyError):
            AnnualLeavePlan.from_record(record)

    def test_rejection_reason_only_on_rejected(self, clock):
        with pytest.raises(StateConsistencyError):
            AnnualLeavePlan(
                "plan-1", "emp-1", 2024, 20, planned_leaves=(JULY_WEEK,),
                rejection_reason="nope",
            )

    def test_out_of_order_stamps_rejected(self, clock, employee):
        record = _plan(clock).submit(employee, clock=clock).to_record()
        record["status"] = "MANAGER_APPROVED"
        record["manager_approved_by"] = "mgr-1"
        record["manager_approved_at"] = datetime(2024, 6, 1, tzinfo=timezone.utc).isoformat()
        with pytest.raises(TimeSequenceError):
            AnnualLeavePlan.from_record(record)

    def test_round_trip(self, clock, employee, manager):
        plan = _plan(clock, leaves=(JULY_WEEK, AUGUST_WEEK), carried_over=1.5)
        plan = plan.submit(employee, clock=clock).manager_reject(manager, clock=clock, reason="Cover")
        assert AnnualLeavePlan.from_record(plan.to_record()) == plan
