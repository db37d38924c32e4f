"""
Module: hr_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines. This is the import surface for the service layer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import hr_kernel.domain and hr_kernel.exceptions (and sibling
    engine modules). MUST NOT import hr_kernel.db, hr_kernel.models,
    hr_kernel.services or hr_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Evaluation dates are explicit parameters supplied by callers.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from hr_engines.time_calculation import calculate_weekly_hours
    from hr_engines.policy_application import validate_policy_usage
    from hr_engines.leave_conflicts import detect_plan_conflicts
"""

from hr_engines.accrual import (
    BalanceProjection,
    accrual_dates_between,
    accrual_for_period,
    is_in_waiting_period,
    project_balance,
    run_due_accruals,
)
from hr_engines.approval import ActionEvaluation, available_actions, evaluate_plan_action
from hr_engines.leave_conflicts import (
    LeaveConflict,
    RequestConflict,
    detect_plan_conflicts,
    detect_request_conflicts,
    ensure_no_plan_conflicts,
    ensure_no_request_conflicts,
)
from hr_engines.policy_application import (
    EmployeeGroupPolicies,
    IneligiblePolicy,
    PolicyConfigurationReport,
    PolicyImpact,
    PolicyPartition,
    PolicyUsageValidation,
    calculate_policy_impact,
    find_applicable_leave_policies,
    find_applicable_overtime_policy,
    find_best_leave_policy_match,
    get_employee_group_policies,
    require_policy_usage,
    validate_policy_configuration,
    validate_policy_usage,
)
from hr_engines.time_calculation import (
    BreakDeductions,
    BreakImpact,
    DailyHours,
    EntryHours,
    OvertimeDetection,
    PayPeriodHours,
    PolicyBoundaryMode,
    WeeklyHours,
    calculate_break_deductions,
    calculate_break_impact,
    calculate_daily_hours,
    calculate_entry_hours,
    calculate_entry_increment,
    calculate_pay_period_hours,
    calculate_weekly_hours,
    detect_overtime,
    select_weekly_policy,
    split_week,
)

__all__ = [
    # Accrual
    "BalanceProjection",
    "accrual_dates_between",
    "accrual_for_period",
    "is_in_waiting_period",
    "project_balance",
    "run_due_accruals",
    # Approval
    "ActionEvaluation",
    "available_actions",
    "evaluate_plan_action",
    # Conflicts
    "LeaveConflict",
    "RequestConflict",
    "detect_plan_conflicts",
    "detect_request_conflicts",
    "ensure_no_plan_conflicts",
    "ensure_no_request_conflicts",
    # Policy application
    "EmployeeGroupPolicies",
    "IneligiblePolicy",
    "PolicyConfigurationReport",
    "PolicyImpact",
    "PolicyPartition",
    "PolicyUsageValidation",
    "calculate_policy_impact",
    "find_applicable_leave_policies",
    "find_applicable_overtime_policy",
    "find_best_leave_policy_match",
    "get_employee_group_policies",
    "require_policy_usage",
    "validate_policy_configuration",
    "validate_policy_usage",
    # Time calculation
    "BreakDeductions",
    "BreakImpact",
    "DailyHours",
    "EntryHours",
    "OvertimeDetection",
    "PayPeriodHours",
    "PolicyBoundaryMode",
    "WeeklyHours",
    "calculate_break_deductions",
    "calculate_break_impact",
    "calculate_daily_hours",
    "calculate_entry_hours",
    "calculate_entry_increment",
    "calculate_pay_period_hours",
    "calculate_weekly_hours",
    "detect_overtime",
    "select_weekly_policy",
    "split_week",
]
