"""
Policy Application Engine (``hr_engines.policy_application``).

Responsibility
--------------
Stateless evaluation of policy lists against an employee group:

* partition leave policies into applicable+eligible and
  applicable-but-ineligible (with reasons)
* choose the most specific leave policy for a leave type
* find the overtime policy governing an employee on a date
* validate a usage request against a policy's restrictions
* sanity-check a policy set (overlaps, gaps, missing leave types)
* count how many employees a policy would cover

Architecture position
---------------------
**Engines layer** -- pure functional core. ZERO I/O, ZERO clock reads;
the evaluation date is always an explicit ``as_of`` parameter.

Invariants enforced
-------------------
* Specificity = eligibility-rule count + applicable-group count; ties keep
  the input order.
* Max consecutive days, minimum increment and blackout periods are hard
  violations; an advance-notice shortfall is only a warning.

Failure modes
-------------
* Evaluation functions return result objects and never raise for business
  outcomes. ``require_policy_usage`` converts a failed evaluation into the
  matching typed ``PolicyError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from itertools import combinations
from typing import Iterable, Sequence

from hr_kernel.domain.policy import (
    LeavePolicy,
    OvertimePolicy,
    PolicyApplicability,
    UsageRestrictions,
)
from hr_kernel.domain.values import EmployeeGroup
from hr_kernel.exceptions import (
    IneligibleEmployeeError,
    PolicyNotApplicableError,
    SchemaValidationError,
    UsageRestrictionError,
)

_INCREMENT_TOLERANCE = 1e-9


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IneligiblePolicy:
    policy: LeavePolicy
    reasons: tuple[str, ...]


@dataclass(frozen=True)
class PolicyPartition:
    applicable: tuple[LeavePolicy, ...]
    ineligible: tuple[IneligiblePolicy, ...]


@dataclass(frozen=True)
class PolicyUsageValidation:
    is_valid: bool
    applicability: PolicyApplicability
    violations: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class EmployeeGroupPolicies:
    leave_policies: tuple[LeavePolicy, ...]
    ineligible_leave_policies: tuple[IneligiblePolicy, ...]
    overtime_policy: OvertimePolicy | None


@dataclass(frozen=True)
class PolicyConfigurationReport:
    conflicts: tuple[str, ...]
    gaps: tuple[str, ...]
    missing_leave_types: tuple[str, ...]

    @property
    def is_valid(self) -> bool:
        return not self.conflicts


@dataclass(frozen=True)
class PolicyImpact:
    policy_id: str
    eligible_employee_ids: tuple[str, ...]
    ineligible_employee_ids: tuple[str, ...]
    not_covered_employee_ids: tuple[str, ...]

    @property
    def eligible_count(self) -> int:
        return len(self.eligible_employee_ids)

    @property
    def total_evaluated(self) -> int:
        return (
            len(self.eligible_employee_ids)
            + len(self.ineligible_employee_ids)
            + len(self.not_covered_employee_ids)
        )


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def find_applicable_leave_policies(
    policies: Iterable[LeavePolicy],
    group: EmployeeGroup,
    as_of: date,
    leave_type_id: str | None = None,
) -> PolicyPartition:
    """Split policies into eligible and applicable-but-ineligible.

    Policies that do not apply at all (inactive, out of window, group not
    covered) appear in neither list.
    """
    applicable: list[LeavePolicy] = []
    ineligible: list[IneligiblePolicy] = []
    for policy in policies:
        if leave_type_id is not None and policy.leave_type_id != leave_type_id:
            continue
        result = policy.is_applicable_to_employee(group, as_of)
        if not result.is_applicable:
            continue
        if result.is_eligible:
            applicable.append(policy)
        else:
            ineligible.append(IneligiblePolicy(policy, result.reasons))
    return PolicyPartition(tuple(applicable), tuple(ineligible))


def find_best_leave_policy_match(
    policies: Iterable[LeavePolicy],
    group: EmployeeGroup,
    leave_type_id: str,
    as_of: date,
) -> LeavePolicy | None:
    """Most specific eligible policy for ``leave_type_id``, or None."""
    candidates = find_applicable_leave_policies(
        policies, group, as_of, leave_type_id
    ).applicable
    if not candidates:
        return None
    # sorted() is stable, so equally specific policies keep input order
    return sorted(candidates, key=lambda p: p.specificity, reverse=True)[0]


def find_applicable_overtime_policy(
    policies: Iterable[OvertimePolicy],
    group: EmployeeGroup,
    as_of: date,
) -> OvertimePolicy | None:
    """First overtime policy that is effective and covers the group."""
    for policy in policies:
        if policy.is_applicable_to_employee(group, as_of):
            return policy
    return None


def get_employee_group_policies(
    leave_policies: Iterable[LeavePolicy],
    overtime_policies: Iterable[OvertimePolicy],
    group: EmployeeGroup,
    as_of: date,
) -> EmployeeGroupPolicies:
    partition = find_applicable_leave_policies(leave_policies, group, as_of)
    return EmployeeGroupPolicies(
        leave_policies=partition.applicable,
        ineligible_leave_policies=partition.ineligible,
        overtime_policy=find_applicable_overtime_policy(overtime_policies, group, as_of),
    )


# ---------------------------------------------------------------------------
# Usage validation
# ---------------------------------------------------------------------------


def _restriction_checks(
    restrictions: UsageRestrictions,
    requested_days: float,
    as_of: date,
    start_date: date | None,
    end_date: date | None,
) -> tuple[list[str], list[str]]:
    violations: list[str] = []
    warnings: list[str] = []

    if (
        restrictions.max_consecutive_days is not None
        and requested_days > restrictions.max_consecutive_days
    ):
        violations.append(
            f"Requested {requested_days:g} days exceeds the maximum of "
            f"{restrictions.max_consecutive_days:g} consecutive days"
        )

    if restrictions.minimum_increment is not None:
        steps = requested_days / restrictions.minimum_increment
        if abs(steps - round(steps)) > _INCREMENT_TOLERANCE:
            violations.append(
                f"Requested {requested_days:g} days is not a multiple of the "
                f"minimum increment {restrictions.minimum_increment:g}"
            )

    if start_date is not None:
        last_day = end_date or start_date
        for period in restrictions.blackouts_overlapping(start_date, last_day):
            violations.append(f"Requested dates fall in blackout period {period}")

        if restrictions.advance_notice_days is not None:
            notice = (start_date - as_of).days
            if notice < restrictions.advance_notice_days:
                warnings.append(
                    f"Request gives {notice} day(s) notice; "
                    f"{restrictions.advance_notice_days} day(s) are expected"
                )

    return violations, warnings


def validate_policy_usage(
    policy: LeavePolicy,
    group: EmployeeGroup,
    requested_days: float,
    as_of: date,
    start_date: date | None = None,
    end_date: date | None = None,
) -> PolicyUsageValidation:
    """Applicability, eligibility and usage restrictions for one request.

    ``as_of`` is the request date; notice is counted from it to
    ``start_date``. Blackout and notice checks need ``start_date``.
    """
    if isinstance(requested_days, bool) or not isinstance(requested_days, (int, float)) or requested_days <= 0:
        raise SchemaValidationError("requested_days must be positive", field="requested_days")
    if start_date is not None and end_date is not None and end_date < start_date:
        raise SchemaValidationError("end_date cannot precede start_date", field="end_date")

    applicability = policy.is_applicable_to_employee(group, as_of)
    if not applicability.is_applicable or not applicability.is_eligible:
        return PolicyUsageValidation(False, applicability, applicability.reasons)

    violations, warnings = _restriction_checks(
        policy.get_usage_restrictions(), requested_days, as_of, start_date, end_date
    )
    return PolicyUsageValidation(
        is_valid=not violations,
        applicability=applicability,
        violations=tuple(violations),
        warnings=tuple(warnings),
    )


def require_policy_usage(
    policy: LeavePolicy,
    group: EmployeeGroup,
    requested_days: float,
    as_of: date,
    start_date: date | None = None,
    end_date: date | None = None,
) -> PolicyUsageValidation:
    """Like ``validate_policy_usage`` but raises on any hard failure.

    Returns the validation (which may still carry warnings) on success.
    """
    result = validate_policy_usage(
        policy, group, requested_days, as_of, start_date, end_date
    )
    if not result.applicability.is_applicable:
        raise PolicyNotApplicableError(policy.policy_id, result.applicability.reasons)
    if not result.applicability.is_eligible:
        raise IneligibleEmployeeError(
            policy.policy_id, group.employee_id, result.applicability.reasons
        )
    if result.violations:
        raise UsageRestrictionError(policy.policy_id, result.violations)
    return result


# ---------------------------------------------------------------------------
# Configuration checks
# ---------------------------------------------------------------------------


def _windows_overlap(a: LeavePolicy, b: LeavePolicy) -> bool:
    a_end = a.end_date or date.max
    b_end = b.end_date or date.max
    return a.effective_date <= b_end and b.effective_date <= a_end


def _groups_overlap(a: LeavePolicy, b: LeavePolicy) -> bool:
    if not a.applicable_groups or not b.applicable_groups:
        return True
    return bool(set(a.applicable_groups) & set(b.applicable_groups))


def validate_policy_configuration(
    policies: Sequence[LeavePolicy],
    expected_leave_types: Iterable[str] = (),
) -> PolicyConfigurationReport:
    """Report overlapping, missing, and gapped active leave policies.

    Two active policies of one leave type conflict when their windows
    overlap, their groups overlap, and neither has eligibility rules that
    set them apart (equal specificity).
    """
    active = [p for p in policies if p.is_active]
    conflicts: list[str] = []
    gaps: list[str] = []

    by_type: dict[str, list[LeavePolicy]] = {}
    for policy in active:
        by_type.setdefault(policy.leave_type_id, []).append(policy)

    for leave_type, group_policies in sorted(by_type.items()):
        for a, b in combinations(group_policies, 2):
            if (
                _windows_overlap(a, b)
                and _groups_overlap(a, b)
                and a.specificity == b.specificity
            ):
                conflicts.append(
                    f"Policies {a.policy_id} and {b.policy_id} both cover "
                    f"leave type {leave_type} for the same employees"
                )

        ordered = sorted(group_policies, key=lambda p: p.effective_date)
        for earlier, later in zip(ordered, ordered[1:]):
            if earlier.end_date is None:
                continue
            if later.effective_date > earlier.end_date + timedelta(days=1):
                gaps.append(
                    f"Leave type {leave_type} has no policy between "
                    f"{(earlier.end_date + timedelta(days=1)).isoformat()} and "
                    f"{(later.effective_date - timedelta(days=1)).isoformat()}"
                )

    missing = tuple(t for t in expected_leave_types if t not in by_type)
    return PolicyConfigurationReport(tuple(conflicts), tuple(gaps), missing)


def calculate_policy_impact(
    policy: LeavePolicy,
    groups: Iterable[EmployeeGroup],
    as_of: date,
) -> PolicyImpact:
    eligible: list[str] = []
    ineligible: list[str] = []
    not_covered: list[str] = []
    for group in groups:
        result = policy.is_applicable_to_employee(group, as_of)
        if not result.is_applicable:
            not_covered.append(group.employee_id)
        elif result.is_eligible:
            eligible.append(group.employee_id)
        else:
            ineligible.append(group.employee_id)
    return PolicyImpact(policy.policy_id, tuple(eligible), tuple(ineligible), tuple(not_covered))
