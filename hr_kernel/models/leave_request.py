"""
Module: hr_kernel.models.leave_request
Responsibility: ORM persistence for leave requests.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Status values limited by a check constraint.
    - Covering index on (employee_id, status) for the overlap check run
      at submission.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hr_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from hr_kernel.domain.leave import LeaveRequest


class LeaveRequestModel(TrackedBase):
    """Persistent leave request."""

    __tablename__ = "leave_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'DENIED', 'CANCELLED')",
            name="ck_leave_requests_valid_status",
        ),
        CheckConstraint("end_date >= start_date", name="ck_leave_requests_date_order"),
        Index("ix_leave_requests_employee_status", "employee_id", "status"),
    )

    request_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    employee_id: Mapped[str] = mapped_column(String(64), nullable=False)
    leave_type_id: Mapped[str] = mapped_column(String(64), nullable=False)
    start_date: Mapped[date] = mapped_column(nullable=False)
    end_date: Mapped[date] = mapped_column(nullable=False)
    total_days: Mapped[float] = mapped_column(nullable=False)
    total_hours: Mapped[float | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    submitted_at: Mapped[datetime] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> LeaveRequest:
        from hr_kernel.domain.leave import LeaveRequest

        return LeaveRequest(
            request_id=self.request_id,
            employee_id=self.employee_id,
            leave_type_id=self.leave_type_id,
            start_date=self.start_date,
            end_date=self.end_date,
            total_days=self.total_days,
            submitted_at=self.submitted_at,
            status=self.status,
            total_hours=self.total_hours,
            reason=self.reason,
            reviewed_by=self.reviewed_by,
            reviewed_at=self.reviewed_at,
            review_notes=self.review_notes,
        )

    @classmethod
    def from_dto(cls, dto: LeaveRequest) -> LeaveRequestModel:
        return cls(
            request_id=dto.request_id,
            employee_id=dto.employee_id,
            leave_type_id=dto.leave_type_id,
            start_date=dto.start_date,
            end_date=dto.end_date,
            total_days=dto.total_days,
            total_hours=dto.total_hours,
            status=dto.status.value,
            submitted_at=dto.submitted_at,
            reason=dto.reason,
            reviewed_by=dto.reviewed_by,
            reviewed_at=dto.reviewed_at,
            review_notes=dto.review_notes,
        )

    def apply_dto(self, dto: LeaveRequest) -> None:
        """Only the review fields and the status change after submission."""
        if dto.request_id != self.request_id:
            raise ValueError(f"Request {dto.request_id} cannot update row {self.request_id}")
        self.status = dto.status.value
        self.reviewed_by = dto.reviewed_by
        self.reviewed_at = dto.reviewed_at
        self.review_notes = dto.review_notes
