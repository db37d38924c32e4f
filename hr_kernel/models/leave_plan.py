"""
Module: hr_kernel.models.leave_plan
Responsibility: ORM persistence for annual leave plans.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One plan per employee and year: UNIQUE(employee_id, year).
    - Status values limited by a check constraint.
    - Optimistic locking: ``version`` is the mapper's version_id_col, so a
      concurrent writer that loaded an older version gets StaleDataError
      on flush.  LeavePlanService surfaces it as OptimisticLockError.

Failure modes:
    - IntegrityError on a second plan for the same employee and year.
    - StaleDataError on a lost update.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, CheckConstraint, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hr_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from hr_kernel.domain.leave_plan import AnnualLeavePlan


class AnnualLeavePlanModel(TrackedBase):
    """Persistent annual leave plan.

    Planned leaves are stored as a JSON list of ``PlannedLeave`` records;
    they are always read and written as a whole.
    """

    __tablename__ = "annual_leave_plans"

    __table_args__ = (
        UniqueConstraint("employee_id", "year", name="uq_annual_leave_plans_employee_year"),
        CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'MANAGER_APPROVED', 'HR_APPROVED', 'REJECTED')",
            name="ck_annual_leave_plans_valid_status",
        ),
        Index("ix_annual_leave_plans_employee_status", "employee_id", "status"),
    )

    plan_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    employee_id: Mapped[str] = mapped_column(String(64), nullable=False)
    year: Mapped[int] = mapped_column(nullable=False)
    total_entitlement: Mapped[float] = mapped_column(nullable=False)
    carried_over: Mapped[float] = mapped_column(nullable=False, default=0.0)
    planned_leaves: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    submitted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    manager_approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    manager_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    hr_approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hr_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self) -> AnnualLeavePlan:
        """Convert ORM model to frozen domain object."""
        from hr_kernel.domain.leave_plan import AnnualLeavePlan, PlannedLeave

        return AnnualLeavePlan(
            plan_id=self.plan_id,
            employee_id=self.employee_id,
            year=self.year,
            total_entitlement=self.total_entitlement,
            carried_over=self.carried_over,
            planned_leaves=tuple(PlannedLeave.from_record(r) for r in self.planned_leaves),
            status=self.status,
            submitted_by=self.submitted_by,
            submitted_at=self.submitted_at,
            manager_approved_by=self.manager_approved_by,
            manager_approved_at=self.manager_approved_at,
            hr_approved_by=self.hr_approved_by,
            hr_approved_at=self.hr_approved_at,
            rejected_by=self.rejected_by,
            rejected_at=self.rejected_at,
            rejection_reason=self.rejection_reason,
        )

    @classmethod
    def from_dto(cls, dto: AnnualLeavePlan) -> AnnualLeavePlanModel:
        """Create ORM model from domain object."""
        model = cls(plan_id=dto.plan_id, employee_id=dto.employee_id, year=dto.year)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: AnnualLeavePlan) -> None:
        """Copy the mutable state of ``dto`` onto this row."""
        if dto.plan_id != self.plan_id:
            raise ValueError(f"Plan {dto.plan_id} cannot update row {self.plan_id}")
        self.total_entitlement = dto.total_entitlement
        self.carried_over = dto.carried_over
        self.planned_leaves = [leave.to_record() for leave in dto.planned_leaves]
        self.status = dto.status.value
        self.submitted_by = dto.submitted_by
        self.submitted_at = dto.submitted_at
        self.manager_approved_by = dto.manager_approved_by
        self.manager_approved_at = dto.manager_approved_at
        self.hr_approved_by = dto.hr_approved_by
        self.hr_approved_at = dto.hr_approved_at
        self.rejected_by = dto.rejected_by
        self.rejected_at = dto.rejected_at
        self.rejection_reason = dto.rejection_reason
