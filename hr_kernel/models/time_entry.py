"""
Module: hr_kernel.models.time_entry
Responsibility: ORM persistence for time entries and their breaks.

Architecture position: Kernel > Models.  May import from db/base.py only
    (domain classes are imported lazily inside the DTO converters).

Invariants enforced:
    - One ACTIVE entry per employee: partial unique index on employee_id
      where status = 'ACTIVE' (PostgreSQL and SQLite).
    - Status values limited by a check constraint.
    - Breaks belong to exactly one entry and are deleted with it.
    - Timestamps are stored in UTC; utc_offset_minutes keeps the clock-in
      offset so a reloaded entry keeps its work date.

Failure modes:
    - IntegrityError on a second ACTIVE entry for the same employee.
      TimeTrackingService translates it into AlreadyClockedInError.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from hr_kernel.domain.time_entry import BreakEntry, TimeEntry

_ACTIVE_ONLY = text("status = 'ACTIVE'")


def _in_zone(value: datetime | None, tz: timezone) -> datetime | None:
    return value.astimezone(tz) if value is not None else None


class TimeEntryModel(TrackedBase):
    """Persistent work shift.

    Contract:
        Rows are written from validated ``TimeEntry`` domain objects via
        ``from_dto`` / ``apply_dto``; the model itself holds no rules
        beyond the database constraints.
    """

    __tablename__ = "time_entries"

    __table_args__ = (
        CheckConstraint(
            "status IN ('ACTIVE', 'COMPLETED', 'PENDING_APPROVAL')",
            name="ck_time_entries_valid_status",
        ),
        Index(
            "ix_time_entries_one_active_per_employee",
            "employee_id",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
        Index("ix_time_entries_employee_clock_in", "employee_id", "clock_in_time"),
    )

    entry_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    employee_id: Mapped[str] = mapped_column(String(64), nullable=False)
    clock_in_time: Mapped[datetime] = mapped_column(nullable=False)
    clock_out_time: Mapped[datetime | None] = mapped_column(nullable=True)
    # Offset of the recorded clock-in; timestamps are stored in UTC.
    utc_offset_minutes: Mapped[int] = mapped_column(nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")
    manual_entry: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_hours: Mapped[float | None] = mapped_column(nullable=True)
    regular_hours: Mapped[float | None] = mapped_column(nullable=True)
    overtime_hours: Mapped[float | None] = mapped_column(nullable=True)
    double_time_hours: Mapped[float | None] = mapped_column(nullable=True)
    latitude: Mapped[float | None] = mapped_column(nullable=True)
    longitude: Mapped[float | None] = mapped_column(nullable=True)
    location_accuracy: Mapped[float | None] = mapped_column(nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    breaks: Mapped[list[BreakEntryModel]] = relationship(
        back_populates="time_entry",
        cascade="all, delete-orphan",
        order_by="BreakEntryModel.start_time",
        lazy="selectin",
    )

    def to_dto(self) -> TimeEntry:
        """Convert ORM model to frozen domain object."""
        from hr_kernel.domain.time_entry import TimeEntry
        from hr_kernel.domain.values import GeoLocation

        tz = timezone(timedelta(minutes=self.utc_offset_minutes or 0))
        location = None
        if self.latitude is not None and self.longitude is not None:
            location = GeoLocation(self.latitude, self.longitude, self.location_accuracy)
        return TimeEntry(
            entry_id=self.entry_id,
            employee_id=self.employee_id,
            clock_in_time=self.clock_in_time.astimezone(tz),
            clock_out_time=_in_zone(self.clock_out_time, tz),
            breaks=tuple(b.to_dto(tz) for b in self.breaks),
            status=self.status,
            manual_entry=self.manual_entry,
            regular_hours=self.regular_hours,
            overtime_hours=self.overtime_hours,
            double_time_hours=self.double_time_hours,
            location=location,
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: TimeEntry) -> TimeEntryModel:
        """Create ORM model from domain object."""
        model = cls(entry_id=dto.entry_id, employee_id=dto.employee_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: TimeEntry) -> None:
        """Copy the mutable state of ``dto`` onto this row.

        Breaks are matched by break_id; breaks never disappear from an
        entry, so only updates and appends are needed.
        """
        if dto.entry_id != self.entry_id:
            raise ValueError(f"Entry {dto.entry_id} cannot update row {self.entry_id}")
        self.clock_in_time = dto.clock_in_time
        self.utc_offset_minutes = int(dto.clock_in_time.utcoffset().total_seconds() // 60)
        self.clock_out_time = dto.clock_out_time
        self.status = dto.status.value
        self.manual_entry = dto.manual_entry
        self.total_hours = dto.total_hours
        self.regular_hours = dto.regular_hours
        self.overtime_hours = dto.overtime_hours
        self.double_time_hours = dto.double_time_hours
        self.latitude = dto.location.latitude if dto.location else None
        self.longitude = dto.location.longitude if dto.location else None
        self.location_accuracy = dto.location.accuracy if dto.location else None
        self.approved_by = dto.approved_by
        self.approved_at = dto.approved_at
        self.notes = dto.notes

        existing = {b.break_id: b for b in self.breaks}
        for b in dto.breaks:
            row = existing.get(b.break_id)
            if row is None:
                self.breaks.append(BreakEntryModel.from_dto(b))
            else:
                row.apply_dto(b)


class BreakEntryModel(TrackedBase):
    """Persistent break inside a time entry."""

    __tablename__ = "break_entries"

    __table_args__ = (
        CheckConstraint(
            "break_type IN ('LUNCH', 'SHORT_BREAK', 'PERSONAL')",
            name="ck_break_entries_valid_type",
        ),
    )

    break_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    time_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("time_entries.id", ondelete="CASCADE"), nullable=False,
    )
    break_type: Mapped[str] = mapped_column(String(20), nullable=False)
    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(nullable=True)
    duration_minutes: Mapped[float | None] = mapped_column(nullable=True)
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False)

    time_entry: Mapped[TimeEntryModel] = relationship(back_populates="breaks")

    def to_dto(self, tz: timezone = timezone.utc) -> BreakEntry:
        from hr_kernel.domain.time_entry import BreakEntry

        return BreakEntry(
            break_id=self.break_id,
            break_type=self.break_type,
            start_time=self.start_time.astimezone(tz),
            paid=self.paid,
            end_time=_in_zone(self.end_time, tz),
        )

    @classmethod
    def from_dto(cls, dto: BreakEntry) -> BreakEntryModel:
        model = cls(break_id=dto.break_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: BreakEntry) -> None:
        self.break_type = dto.break_type.value
        self.start_time = dto.start_time
        self.end_time = dto.end_time
        self.duration_minutes = dto.duration_minutes
        self.paid = dto.paid
