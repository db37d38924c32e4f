"""
Tests for leave and overtime policies (``hr_kernel.domain.policy``).

Invariants tested:
- Eligibility operators, including the IN / NOT_IN comma-separated sets.
- Group matching: empty list is universal; department, employment type or
  a case-insensitive job-title substring must match otherwise.
- Applicability = active + in window + group covered; eligibility = all rules.
- Usage rules fold into restrictions; last rule of a type wins.
- Overtime split: daily threshold, double-time carve-out, weekly floor.
"""

from datetime import date

import pytest

from hr_kernel.domain.policy import (
    AccrualPeriod,
    AccrualRule,
    EligibilityOperator,
    EligibilityRule,
    EligibilityRuleType,
    LeavePolicy,
    OvertimePolicy,
    UsageRule,
    UsageRuleType,
    matches_applicable_groups,
)
from hr_kernel.domain.values import EmployeeGroup
from hr_kernel.exceptions import SchemaValidationError, TimeSequenceError

ACCRUAL = AccrualRule(1.67, AccrualPeriod.MONTHLY, max_balance=30, carryover_limit=5)
AS_OF = date(2024, 6, 3)


def _policy(**kwargs) -> LeavePolicy:
    defaults = dict(
        policy_id="annual",
        name="Annual leave",
        leave_type_id="ANNUAL",
        effective_date=date(2024, 1, 1),
        accrual_rules=(ACCRUAL,),
    )
    defaults.update(kwargs)
    return LeavePolicy(**defaults)


def _rule(rule_type, operator, value, **kwargs) -> EligibilityRule:
    return EligibilityRule(rule_type, operator, value, **kwargs)


# =========================================================================
# Eligibility rules
# =========================================================================


class TestEligibilityRule:

    def test_in_uses_comma_separated_set(self):
        rule = _rule(EligibilityRuleType.EMPLOYMENT_TYPE, EligibilityOperator.IN, "FULL_TIME, PART_TIME")
        assert rule.evaluate("PART_TIME")
        assert not rule.evaluate("CONTRACTOR")
        assert not rule.evaluate(None)

    def test_not_in(self):
        rule = _rule(EligibilityRuleType.DEPARTMENT, EligibilityOperator.NOT_IN, "SALES,OPS")
        assert rule.evaluate("ENG")
        assert not rule.evaluate("OPS")
        assert rule.evaluate(None)

    def test_equals_numeric_and_text(self):
        assert _rule(EligibilityRuleType.TENURE, EligibilityOperator.EQUALS, "365").evaluate(365)
        assert _rule(EligibilityRuleType.JOB_TITLE, EligibilityOperator.EQUALS, "Nurse").evaluate("Nurse")
        assert not _rule(EligibilityRuleType.JOB_TITLE, EligibilityOperator.EQUALS, "Nurse").evaluate("nurse")

    def test_ordering_operators_are_numeric(self):
        greater = _rule(EligibilityRuleType.TENURE, EligibilityOperator.GREATER_THAN, 90)
        less = _rule(EligibilityRuleType.TENURE, EligibilityOperator.LESS_THAN, 90)

        assert greater.evaluate(91)
        assert not greater.evaluate(90)
        assert less.evaluate(89)
        assert not less.evaluate("ninety")

    def test_custom_rule_reads_attribute(self):
        rule = _rule(
            EligibilityRuleType.CUSTOM, EligibilityOperator.EQUALS, "CA", attribute="state"
        )
        group = EmployeeGroup("emp-1", attributes={"state": "CA"})
        assert rule.evaluate_for(group)
        assert not rule.evaluate_for(EmployeeGroup("emp-2"))

    def test_custom_rule_requires_attribute(self):
        with pytest.raises(SchemaValidationError):
            _rule(EligibilityRuleType.CUSTOM, EligibilityOperator.EQUALS, "CA")

    def test_unknown_operator_rejected(self):
        with pytest.raises(SchemaValidationError):
            _rule(EligibilityRuleType.TENURE, "BETWEEN", 1)

    def test_describe(self):
        rule = _rule(EligibilityRuleType.TENURE, EligibilityOperator.GREATER_THAN, 90)
        assert rule.describe() == "TENURE GREATER_THAN 90"


# =========================================================================
# Group matching
# =========================================================================


class TestGroupMatching:

    def test_empty_list_matches_everyone(self, full_time_group):
        assert matches_applicable_groups((), full_time_group)

    def test_department_match(self, full_time_group):
        assert matches_applicable_groups(("ENG",), full_time_group)

    def test_employment_type_match(self, full_time_group):
        assert matches_applicable_groups(("FULL_TIME",), full_time_group)

    def test_job_title_substring_case_insensitive(self, full_time_group):
        assert matches_applicable_groups(("engineer",), full_time_group)

    def test_no_match(self, full_time_group):
        assert not matches_applicable_groups(("SALES", "Nurse"), full_time_group)


# =========================================================================
# Leave policy
# =========================================================================


class TestLeavePolicy:

    def test_requires_accrual_rule(self):
        with pytest.raises(SchemaValidationError):
            _policy(accrual_rules=())

    def test_end_date_must_follow_effective_date(self):
        with pytest.raises(TimeSequenceError):
            _policy(end_date=date(2024, 1, 1))

    def test_name_length_limited(self):
        with pytest.raises(SchemaValidationError):
            _policy(name="x" * 201)

    def test_applicable_and_eligible(self, full_time_group):
        policy = _policy(
            applicable_groups=("FULL_TIME",),
            eligibility_rules=(
                _rule(EligibilityRuleType.TENURE, EligibilityOperator.GREATER_THAN, 90),
            ),
        )
        result = policy.is_applicable_to_employee(full_time_group, AS_OF)

        assert result.is_applicable
        assert result.is_eligible
        assert result.reasons == ()

    def test_ineligible_lists_failed_rules(self, full_time_group):
        policy = _policy(
            eligibility_rules=(
                _rule(EligibilityRuleType.TENURE, EligibilityOperator.GREATER_THAN, 1825,
                      description="Five years of service"),
            ),
        )
        result = policy.is_applicable_to_employee(full_time_group, AS_OF)

        assert result.is_applicable
        assert not result.is_eligible
        assert result.reasons == ("Eligibility rule failed: Five years of service",)

    def test_inactive_not_applicable(self, full_time_group):
        result = _policy(is_active=False).is_applicable_to_employee(full_time_group, AS_OF)
        assert not result.is_applicable
        assert not result.is_eligible

    def test_expired_not_applicable(self, full_time_group):
        policy = _policy(end_date=date(2024, 5, 31))
        assert not policy.is_applicable_to_employee(full_time_group, AS_OF).is_applicable
        assert policy.is_applicable_to_employee(full_time_group, date(2024, 5, 31)).is_applicable

    def test_group_not_covered(self, full_time_group):
        result = _policy(applicable_groups=("SALES",)).is_applicable_to_employee(full_time_group, AS_OF)
        assert not result.is_applicable
        assert "Employee group is not covered by this policy" in result.reasons

    def test_usage_restrictions_fold(self):
        policy = _policy(
            usage_rules=(
                UsageRule(UsageRuleType.MAX_CONSECUTIVE_DAYS, 10),
                UsageRule(UsageRuleType.MAX_CONSECUTIVE_DAYS, 15),
                UsageRule(UsageRuleType.ADVANCE_NOTICE, 5, is_active=False),
                UsageRule(UsageRuleType.MINIMUM_INCREMENT, "0.5"),
                UsageRule(UsageRuleType.BLACKOUT_PERIOD, "2024-12-20/2024-12-31,2024-07-04"),
            )
        )
        restrictions = policy.get_usage_restrictions()

        assert restrictions.max_consecutive_days == 15
        assert restrictions.advance_notice_days is None
        assert restrictions.minimum_increment == 0.5
        assert len(restrictions.blackout_periods) == 2
        assert restrictions.blackout_periods[1].start == restrictions.blackout_periods[1].end

    def test_fractional_notice_rejected(self):
        with pytest.raises(SchemaValidationError):
            UsageRule(UsageRuleType.ADVANCE_NOTICE, 1.5)

    def test_reversed_blackout_rejected(self):
        with pytest.raises(TimeSequenceError):
            UsageRule(UsageRuleType.BLACKOUT_PERIOD, "2024-12-31/2024-12-20")

    def test_non_numeric_increment_rejected(self):
        with pytest.raises(SchemaValidationError):
            UsageRule(UsageRuleType.MINIMUM_INCREMENT, "half")

    def test_specificity(self):
        policy = _policy(
            applicable_groups=("FULL_TIME", "ENG"),
            eligibility_rules=(
                _rule(EligibilityRuleType.TENURE, EligibilityOperator.GREATER_THAN, 90),
            ),
        )
        assert policy.specificity == 3

    def test_revise_bumps_version(self):
        revised = _policy().revise(name="Annual leave 2025")
        assert revised.version == 2
        assert revised.name == "Annual leave 2025"

    def test_accrual_rate(self):
        assert _policy().get_applicable_accrual_rate() == 1.67

    def test_round_trip(self):
        policy = _policy(
            end_date=date(2025, 1, 1),
            applicable_groups=("FULL_TIME",),
            eligibility_rules=(
                _rule(EligibilityRuleType.EMPLOYMENT_TYPE, EligibilityOperator.IN, "FULL_TIME,PART_TIME"),
            ),
            usage_rules=(UsageRule(UsageRuleType.ADVANCE_NOTICE, 14),),
        )
        assert LeavePolicy.from_record(policy.to_record()) == policy


# =========================================================================
# Overtime policy
# =========================================================================


class TestOvertimePolicy:

    def _standard(self, **kwargs) -> OvertimePolicy:
        return OvertimePolicy("ot", "Standard", date(2024, 1, 1), **kwargs)

    def test_ten_hour_day(self):
        split = self._standard().calculate_overtime_hours(10)
        assert (split.regular_hours, split.overtime_hours, split.double_time_hours) == (8, 2, 0)

    def test_under_threshold_is_regular(self):
        split = self._standard().calculate_overtime_hours(7.5)
        assert (split.regular_hours, split.overtime_hours) == (7.5, 0)

    def test_double_time_carved_out(self):
        policy = self._standard(double_time_threshold=12)
        split = policy.calculate_overtime_hours(14)

        assert policy.double_time_multiplier == 2.0
        assert (split.regular_hours, split.overtime_hours, split.double_time_hours) == (8, 4, 2)

    def test_weekly_overtime_is_a_floor(self):
        split = self._standard().calculate_overtime_hours(8, weekly_hours=44)
        assert (split.regular_hours, split.overtime_hours) == (4, 4)

    def test_weekly_overtime_not_added_to_daily(self):
        split = self._standard().calculate_overtime_hours(10, weekly_hours=42)
        assert (split.regular_hours, split.overtime_hours) == (8, 2)

    def test_rounding_happens_once(self):
        split = self._standard().calculate_overtime_hours(8 + 1 / 3)
        assert split.overtime_hours == 0.33
        assert split.regular_hours == 8

    def test_double_time_threshold_must_exceed_daily(self):
        with pytest.raises(SchemaValidationError):
            self._standard(double_time_threshold=8)

    def test_double_time_multiplier_must_exceed_overtime(self):
        with pytest.raises(SchemaValidationError):
            self._standard(double_time_threshold=12, double_time_multiplier=1.5)

    def test_group_applicability(self, full_time_group):
        policy = self._standard(applicable_groups=("CALIFORNIA",))
        assert not policy.is_applicable_to_employee(full_time_group, AS_OF)
        assert self._standard().is_applicable_to_employee(full_time_group, AS_OF)

    def test_round_trip(self):
        policy = self._standard(double_time_threshold=12, applicable_groups=("CALIFORNIA",))
        assert OvertimePolicy.from_record(policy.to_record()) == policy
