"""
Module: hr_kernel.models.leave_balance
Responsibility: ORM persistence for leave balances and the accrual
    transactions that explain every change to them.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One balance per employee and leave type:
      UNIQUE(employee_id, leave_type_id).
    - Balances and year-to-date counters are non-negative (check
      constraints, mirroring ``LeaveBalance``).
    - Accrual transactions are append-only; services never update them.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, CheckConstraint, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hr_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from hr_kernel.domain.leave import AccrualTransaction, LeaveBalance


class LeaveBalanceModel(TrackedBase):
    """Persistent leave balance; the accrual rule is stored as JSON."""

    __tablename__ = "leave_balances"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "leave_type_id", name="uq_leave_balances_employee_type",
        ),
        CheckConstraint("current_balance >= 0", name="ck_leave_balances_non_negative"),
        CheckConstraint(
            "ytd_used >= 0 AND ytd_accrued >= 0", name="ck_leave_balances_ytd_non_negative",
        ),
    )

    employee_id: Mapped[str] = mapped_column(String(64), nullable=False)
    leave_type_id: Mapped[str] = mapped_column(String(64), nullable=False)
    current_balance: Mapped[float] = mapped_column(nullable=False)
    accrual_rule: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    effective_date: Mapped[date] = mapped_column(nullable=False)
    last_accrual_date: Mapped[date | None] = mapped_column(nullable=True)
    ytd_used: Mapped[float] = mapped_column(nullable=False, default=0.0)
    ytd_accrued: Mapped[float] = mapped_column(nullable=False, default=0.0)

    def to_dto(self) -> LeaveBalance:
        from hr_kernel.domain.leave import LeaveBalance
        from hr_kernel.domain.policy import AccrualRule

        return LeaveBalance(
            employee_id=self.employee_id,
            leave_type_id=self.leave_type_id,
            current_balance=self.current_balance,
            accrual_rule=AccrualRule.from_record(self.accrual_rule),
            effective_date=self.effective_date,
            last_accrual_date=self.last_accrual_date,
            ytd_used=self.ytd_used,
            ytd_accrued=self.ytd_accrued,
        )

    @classmethod
    def from_dto(cls, dto: LeaveBalance) -> LeaveBalanceModel:
        model = cls(employee_id=dto.employee_id, leave_type_id=dto.leave_type_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: LeaveBalance) -> None:
        self.current_balance = dto.current_balance
        self.accrual_rule = dto.accrual_rule.to_record()
        self.effective_date = dto.effective_date
        self.last_accrual_date = dto.last_accrual_date
        self.ytd_used = dto.ytd_used
        self.ytd_accrued = dto.ytd_accrued


class AccrualTransactionModel(TrackedBase):
    """Persistent balance movement. Append-only."""

    __tablename__ = "accrual_transactions"

    __table_args__ = (
        CheckConstraint(
            "transaction_type IN ('ACCRUAL', 'USAGE', 'ADJUSTMENT', 'CARRYOVER')",
            name="ck_accrual_transactions_valid_type",
        ),
        Index(
            "ix_accrual_transactions_employee_type_date",
            "employee_id", "leave_type_id", "transaction_date",
        ),
    )

    transaction_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    employee_id: Mapped[str] = mapped_column(String(64), nullable=False)
    leave_type_id: Mapped[str] = mapped_column(String(64), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[float] = mapped_column(nullable=False)
    transaction_date: Mapped[date] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    reference_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    def to_dto(self) -> AccrualTransaction:
        from hr_kernel.domain.leave import AccrualTransaction

        return AccrualTransaction(
            transaction_id=self.transaction_id,
            employee_id=self.employee_id,
            leave_type_id=self.leave_type_id,
            transaction_type=self.transaction_type,
            amount=self.amount,
            transaction_date=self.transaction_date,
            description=self.description,
            reference_id=self.reference_id,
        )

    @classmethod
    def from_dto(cls, dto: AccrualTransaction) -> AccrualTransactionModel:
        return cls(
            transaction_id=dto.transaction_id,
            employee_id=dto.employee_id,
            leave_type_id=dto.leave_type_id,
            transaction_type=dto.transaction_type.value,
            amount=dto.amount,
            transaction_date=dto.transaction_date,
            description=dto.description,
            reference_id=dto.reference_id,
        )
