"""
Tests for LeaveRequestService (``hr_kernel.services.leave_request_service``).

Invariants tested:
- The most specific eligible policy governs; failures raise typed errors.
- Requested days never exceed the balance left after PENDING requests.
- PENDING / APPROVED requests never overlap.
- The balance moves exactly once on approval and is restored on
  cancelling an approved request; every movement leaves a transaction.
- Accruals, HR adjustments and the year-end carryover are recorded.
"""

from datetime import date

import pytest

from hr_kernel.domain.leave import LeaveRequestStatus, TransactionType
from hr_kernel.domain.policy import (
    AccrualPeriod,
    AccrualRule,
    EligibilityOperator,
    EligibilityRule,
    EligibilityRuleType,
    LeavePolicy,
    UsageRule,
    UsageRuleType,
)
from hr_kernel.exceptions import (
    DuplicateRecordError,
    IneligibleEmployeeError,
    InsufficientBalanceError,
    LeaveConflictError,
    PolicyNotApplicableError,
    RecordNotFoundError,
    UnauthorizedActorError,
    UsageRestrictionError,
)
from hr_kernel.services.leave_request_service import LeaveRequestService

RULE = AccrualRule(1.5, AccrualPeriod.MONTHLY, max_balance=30, carryover_limit=5)
ANNUAL = LeavePolicy(
    policy_id="annual-standard",
    name="Annual leave",
    leave_type_id="ANNUAL",
    effective_date=date(2024, 1, 1),
    accrual_rules=(RULE,),
    applicable_groups=("FULL_TIME",),
    usage_rules=(
        UsageRule(UsageRuleType.MAX_CONSECUTIVE_DAYS, 5),
        UsageRule(UsageRuleType.ADVANCE_NOTICE, 14),
    ),
)
SABBATICAL = LeavePolicy(
    policy_id="sabbatical",
    name="Sabbatical",
    leave_type_id="SABBATICAL",
    effective_date=date(2024, 1, 1),
    accrual_rules=(RULE,),
    eligibility_rules=(
        EligibilityRule(EligibilityRuleType.TENURE, EligibilityOperator.GREATER_THAN, 1825),
    ),
)

JUNE_17, JUNE_21 = date(2024, 6, 17), date(2024, 6, 21)


@pytest.fixture
def service(session, clock) -> LeaveRequestService:
    return LeaveRequestService(session, clock, leave_policies=[ANNUAL, SABBATICAL])


@pytest.fixture
def funded(service) -> LeaveRequestService:
    service.open_balance("emp-1", "ANNUAL", RULE, date(2024, 1, 1), opening_balance=10)
    return service


# =========================================================================
# Submission
# =========================================================================


class TestSubmission:

    def test_submit_defaults_to_weekdays(self, funded, full_time_group):
        request = funded.submit_request(full_time_group, "ANNUAL", JUNE_17, JUNE_21, reason="Holiday")

        assert request.status == LeaveRequestStatus.PENDING
        assert request.total_days == 5
        assert funded.get_request(request.request_id) == request
        assert funded.pending_days("emp-1", "ANNUAL") == 5

    def test_pending_days_reduce_available_balance(self, funded, full_time_group):
        funded.submit_request(full_time_group, "ANNUAL", JUNE_17, JUNE_21)
        funded.submit_request(full_time_group, "ANNUAL", date(2024, 7, 1), date(2024, 7, 4))

        with pytest.raises(InsufficientBalanceError) as exc_info:
            funded.submit_request(full_time_group, "ANNUAL", date(2024, 7, 8), date(2024, 7, 9))
        assert exc_info.value.available == 1
        assert funded.pending_days("emp-1", "ANNUAL") == 9

    def test_no_balance_means_nothing_available(self, service, full_time_group):
        with pytest.raises(InsufficientBalanceError):
            service.submit_request(full_time_group, "ANNUAL", JUNE_17, JUNE_21)

    def test_overlap_rejected(self, funded, full_time_group):
        funded.submit_request(full_time_group, "ANNUAL", JUNE_17, JUNE_21, total_days=2)
        with pytest.raises(LeaveConflictError) as exc_info:
            funded.submit_request(full_time_group, "ANNUAL", JUNE_21, JUNE_21)
        assert len(exc_info.value.conflicts) == 1

    def test_usage_restriction(self, funded, full_time_group):
        with pytest.raises(UsageRestrictionError):
            funded.submit_request(full_time_group, "ANNUAL", JUNE_17, date(2024, 6, 24))

    def test_no_policy_for_leave_type(self, funded, full_time_group):
        with pytest.raises(PolicyNotApplicableError):
            funded.submit_request(full_time_group, "PARENTAL", JUNE_17, JUNE_21)

    def test_ineligible_employee(self, funded, full_time_group):
        with pytest.raises(IneligibleEmployeeError):
            funded.submit_request(full_time_group, "SABBATICAL", JUNE_17, JUNE_21)

    def test_short_notice_logged_as_warning(self, funded, full_time_group, captured_logs):
        funded.submit_request(full_time_group, "ANNUAL", date(2024, 6, 10), date(2024, 6, 10))

        records = [r for r in captured_logs() if r["message"] == "leave_request_submitted"]
        assert records[0]["policy_id"] == "annual-standard"
        assert records[0]["warnings"] == ["Request gives 7 day(s) notice; 14 day(s) are expected"]


# =========================================================================
# Review
# =========================================================================


class TestReview:

    def test_approval_deducts_balance(self, funded, full_time_group, manager):
        request = funded.submit_request(full_time_group, "ANNUAL", JUNE_17, JUNE_21)

        approved = funded.approve_request(request.request_id, manager, notes="Enjoy")

        balance = funded.get_balance("emp-1", "ANNUAL")
        assert approved.status == LeaveRequestStatus.APPROVED
        assert balance.current_balance == 5
        assert balance.ytd_used == 5
        [txn] = funded.transactions("emp-1", "ANNUAL")
        assert txn.transaction_type == TransactionType.USAGE
        assert txn.amount == -5
        assert txn.reference_id == request.request_id

    def test_cancel_approved_restores_balance(self, funded, full_time_group, manager, employee):
        request = funded.submit_request(full_time_group, "ANNUAL", JUNE_17, JUNE_21)
        funded.approve_request(request.request_id, manager)

        cancelled = funded.cancel_request(request.request_id, employee)

        assert cancelled.status == LeaveRequestStatus.CANCELLED
        balance = funded.get_balance("emp-1", "ANNUAL")
        assert balance.current_balance == 10
        assert balance.ytd_used == 0
        assert {t.reference_id for t in funded.transactions("emp-1", "ANNUAL")} == {request.request_id}
        assert {t.transaction_type for t in funded.transactions("emp-1", "ANNUAL")} == {
            TransactionType.USAGE, TransactionType.ADJUSTMENT,
        }

    def test_cancel_pending_leaves_balance(self, funded, full_time_group, employee):
        request = funded.submit_request(full_time_group, "ANNUAL", JUNE_17, JUNE_21)
        funded.cancel_request(request.request_id, employee)

        assert funded.get_balance("emp-1", "ANNUAL").current_balance == 10
        assert funded.transactions("emp-1", "ANNUAL") == []

    def test_deny(self, funded, full_time_group, manager):
        request = funded.submit_request(full_time_group, "ANNUAL", JUNE_17, JUNE_21)

        denied = funded.deny_request(request.request_id, manager, "Release week")

        assert denied.status == LeaveRequestStatus.DENIED
        assert funded.pending_days("emp-1", "ANNUAL") == 0
        assert funded.get_balance("emp-1", "ANNUAL").current_balance == 10

    def test_employee_cannot_approve(self, funded, full_time_group, employee):
        request = funded.submit_request(full_time_group, "ANNUAL", JUNE_17, JUNE_21)
        with pytest.raises(UnauthorizedActorError):
            funded.approve_request(request.request_id, employee)

    def test_unknown_request(self, funded, manager):
        with pytest.raises(RecordNotFoundError):
            funded.approve_request("missing", manager)


# =========================================================================
# Balances
# =========================================================================


class TestBalances:

    def test_duplicate_balance_rejected(self, funded):
        with pytest.raises(DuplicateRecordError):
            funded.open_balance("emp-1", "ANNUAL", RULE, date(2024, 1, 1))

    def test_run_accruals(self, service):
        capped = AccrualRule(1.5, AccrualPeriod.MONTHLY, max_balance=4)
        service.open_balance("emp-1", "SICK", capped, date(2024, 1, 1))

        balance = service.run_accruals("emp-1", "SICK")

        assert balance.current_balance == 4
        assert balance.last_accrual_date == date(2024, 6, 1)
        assert [t.amount for t in service.transactions("emp-1", "SICK")] == [1.5, 1.5, 1.0]

    def test_accruals_need_a_balance(self, service):
        with pytest.raises(RecordNotFoundError):
            service.run_accruals("emp-1", "SICK")

    def test_adjustment_requires_hr(self, funded, manager):
        with pytest.raises(UnauthorizedActorError):
            funded.adjust_balance("emp-1", "ANNUAL", 2, "Bonus day", manager)

    def test_hr_adjustment(self, funded, hr_admin):
        balance = funded.adjust_balance("emp-1", "ANNUAL", 2, "Bonus day", hr_admin)

        assert balance.current_balance == 12
        [txn] = funded.transactions("emp-1", "ANNUAL")
        assert txn.transaction_type == TransactionType.ADJUSTMENT
        assert txn.description == "Bonus day"

    def test_year_end_carryover(self, funded, clock):
        clock.advance(days=211)

        balance = funded.apply_year_end_carryover("emp-1", "ANNUAL")

        assert clock.today() == date(2024, 12, 31)
        assert balance.current_balance == 5
        [txn] = funded.transactions("emp-1", "ANNUAL")
        assert txn.transaction_type == TransactionType.CARRYOVER
        assert txn.amount == -5
        assert txn.transaction_date == date(2024, 12, 31)
