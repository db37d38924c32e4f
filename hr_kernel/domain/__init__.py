"""
Pure domain layer.

Frozen value objects and entities with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (a Clock is injected where "now" matters)
- I/O

Every mutator returns a new instance; construction re-validates.
"""

from hr_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from hr_kernel.domain.employee_status import (
    EMPLOYEE_STATUS_TRANSITIONS,
    EmployeeStatus,
    EmploymentStatus,
)
from hr_kernel.domain.leave import (
    AccrualTransaction,
    LeaveBalance,
    LeaveRequest,
    LeaveRequestStatus,
    TransactionType,
)
from hr_kernel.domain.leave_plan import (
    CONFLICT_SCOPE_STATUSES,
    LEAVE_PLAN_TRANSITIONS,
    AnnualLeavePlan,
    LeavePlanStatus,
    PlanAction,
    PlannedLeave,
    PlannedLeaveType,
)
from hr_kernel.domain.policy import (
    AccrualPeriod,
    AccrualRule,
    BlackoutPeriod,
    EligibilityOperator,
    EligibilityRule,
    EligibilityRuleType,
    LeavePolicy,
    OvertimePolicy,
    OvertimeSplit,
    PolicyApplicability,
    UsageRestrictions,
    UsageRule,
    UsageRuleType,
)
from hr_kernel.domain.time_entry import (
    BreakEntry,
    BreakType,
    EmployeeTimeStatus,
    TimeEntry,
    TimeEntryStatus,
)
from hr_kernel.domain.values import Actor, EmployeeGroup, GeoLocation, Role

__all__ = [
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Identity
    "Actor",
    "EmployeeGroup",
    "GeoLocation",
    "Role",
    # Time entries
    "BreakEntry",
    "BreakType",
    "EmployeeTimeStatus",
    "TimeEntry",
    "TimeEntryStatus",
    # Status and leave
    "EMPLOYEE_STATUS_TRANSITIONS",
    "EmployeeStatus",
    "EmploymentStatus",
    "AccrualTransaction",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveRequestStatus",
    "TransactionType",
    # Policies
    "AccrualPeriod",
    "AccrualRule",
    "BlackoutPeriod",
    "EligibilityOperator",
    "EligibilityRule",
    "EligibilityRuleType",
    "LeavePolicy",
    "OvertimePolicy",
    "OvertimeSplit",
    "PolicyApplicability",
    "UsageRestrictions",
    "UsageRule",
    "UsageRuleType",
    # Leave plans
    "CONFLICT_SCOPE_STATUSES",
    "LEAVE_PLAN_TRANSITIONS",
    "AnnualLeavePlan",
    "LeavePlanStatus",
    "PlanAction",
    "PlannedLeave",
    "PlannedLeaveType",
]
