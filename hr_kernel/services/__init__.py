"""Kernel services -- the imperative shell over domain objects and engines."""

from hr_kernel.services.base import BaseService
from hr_kernel.services.leave_plan_service import LeavePlanNotifier, LeavePlanService
from hr_kernel.services.leave_request_service import LeaveRequestService
from hr_kernel.services.time_tracking_service import TimeTrackingService

__all__ = [
    "BaseService",
    "LeavePlanNotifier",
    "LeavePlanService",
    "LeaveRequestService",
    "TimeTrackingService",
]
