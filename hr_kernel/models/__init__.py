"""ORM models for the HR kernel."""

from hr_kernel.models.leave_balance import AccrualTransactionModel, LeaveBalanceModel
from hr_kernel.models.leave_plan import AnnualLeavePlanModel
from hr_kernel.models.leave_request import LeaveRequestModel
from hr_kernel.models.time_entry import BreakEntryModel, TimeEntryModel

__all__ = [
    "TimeEntryModel",
    "BreakEntryModel",
    "AnnualLeavePlanModel",
    "LeaveRequestModel",
    "LeaveBalanceModel",
    "AccrualTransactionModel",
]
