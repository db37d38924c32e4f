"""
Values -- identity and group value objects shared across the HR kernel.

Responsibility:
    ``Actor`` (who is acting, with which role), ``EmployeeGroup`` (the
    attribute set policies are matched against) and ``GeoLocation``
    (optional clock-in position). These are supplied by the authorization
    collaborator and the caller; the kernel never looks them up.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from hr_kernel.domain.validation import require_enum, require_range, require_text
from hr_kernel.exceptions import SchemaValidationError


class Role(str, Enum):
    """Roles supplied by the authorization collaborator."""

    HR_ADMIN = "HR_ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"
    VIEWER = "VIEWER"


# Roles allowed to approve on behalf of the organisation.
APPROVER_ROLES: frozenset[Role] = frozenset({Role.HR_ADMIN, Role.MANAGER})


@dataclass(frozen=True, slots=True)
class Actor:
    """
    The identity performing an action.

    ``employee_id`` is the employee record the actor corresponds to and is
    used for ownership guards ("only the owning employee may submit").
    It defaults to ``actor_id``.
    """

    actor_id: str
    role: Role
    employee_id: str | None = None

    def __post_init__(self) -> None:
        require_text("actor_id", self.actor_id)
        object.__setattr__(self, "role", require_enum(Role, "role", self.role))
        if self.employee_id is None:
            object.__setattr__(self, "employee_id", self.actor_id)

    @property
    def is_hr(self) -> bool:
        return self.role == Role.HR_ADMIN

    def owns(self, employee_id: str) -> bool:
        return self.employee_id == employee_id


@dataclass(frozen=True)
class EmployeeGroup:
    """
    Attributes used to match policies against an employee.

    ``attributes`` holds site-specific values consulted by CUSTOM
    eligibility rules.
    """

    employee_id: str
    department_id: str | None = None
    employment_type: str | None = None
    job_title: str | None = None
    tenure_days: int = 0
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        require_text("employee_id", self.employee_id)
        if isinstance(self.tenure_days, bool) or not isinstance(self.tenure_days, int):
            raise SchemaValidationError("tenure_days must be an integer", field="tenure_days")
        require_range("tenure_days", self.tenure_days, minimum=0)
        object.__setattr__(self, "attributes", dict(self.attributes))

    def to_record(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "department_id": self.department_id,
            "employment_type": self.employment_type,
            "job_title": self.job_title,
            "tenure_days": self.tenure_days,
            "attributes": dict(self.attributes),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> EmployeeGroup:
        return cls(
            employee_id=record["employee_id"],
            department_id=record.get("department_id"),
            employment_type=record.get("employment_type"),
            job_title=record.get("job_title"),
            tenure_days=record.get("tenure_days", 0),
            attributes=record.get("attributes") or {},
        )


@dataclass(frozen=True, slots=True)
class GeoLocation:
    """Clock-in position reported by the device."""

    latitude: float
    longitude: float
    accuracy: float | None = None

    def __post_init__(self) -> None:
        require_range("latitude", self.latitude, -90, 90)
        require_range("longitude", self.longitude, -180, 180)
        if self.accuracy is not None:
            require_range("accuracy", self.accuracy, minimum=0)

    def to_record(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any] | None) -> GeoLocation | None:
        if record is None:
            return None
        return cls(record["latitude"], record["longitude"], record.get("accuracy"))
