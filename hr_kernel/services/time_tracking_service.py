"""
TimeTrackingService -- clock-in/out, breaks and manual entries.

Responsibility:
    Runs the attendance workflow against persisted ``TimeEntry`` rows:
    clock in, start and end breaks, clock out (attaching the overtime split
    of the governing policy), record and approve manual entries, report the
    current attendance status and the weekly hour summary.

Architecture position:
    Kernel > Services -- imperative shell.  Every rule lives in
    ``hr_kernel.domain.time_entry`` and ``hr_engines.time_calculation``;
    this module only loads, delegates and flushes.

Invariants enforced:
    - At most one ACTIVE entry per employee.  Checked by query before the
      insert and enforced by the partial unique index; a concurrent
      clock-in that loses the race surfaces as AlreadyClockedInError.
    - Hour categories on a completed entry are the increment the entry
      adds to its work week under the governing overtime policy, taken in
      clock-in order.  Whenever an entry completes, every completed entry
      of its week is recomputed, so the entries of a week sum to its
      weekly split even when a manual entry lands before later shifts.

Failure modes:
    - AlreadyClockedInError / NotClockedInError for attendance misuse.
    - RecordNotFoundError for an unknown entry id.
    - Any domain error raised by the entry itself.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hr_engines.time_calculation import (
    DAYS_PER_WEEK,
    SUNDAY,
    PolicyBoundaryMode,
    WeeklyHours,
    calculate_entry_increment,
    calculate_weekly_hours,
    select_weekly_policy,
)
from hr_kernel.domain.clock import Clock
from hr_kernel.domain.dates import week_start_for
from hr_kernel.domain.policy import OvertimePolicy
from hr_kernel.domain.time_entry import (
    BreakEntry,
    BreakType,
    EmployeeTimeStatus,
    TimeEntry,
    TimeEntryStatus,
)
from hr_kernel.domain.values import Actor, EmployeeGroup, GeoLocation
from hr_kernel.exceptions import (
    AlreadyClockedInError,
    BreakStateError,
    NotClockedInError,
    RecordNotFoundError,
)
from hr_kernel.logging_config import LogContext, get_logger
from hr_kernel.models.time_entry import TimeEntryModel
from hr_kernel.services.base import BaseService

logger = get_logger("services.time_tracking")


class TimeTrackingService(BaseService[TimeEntryModel]):
    """
    Attendance workflow over persisted time entries.

    Contract:
        Public methods return frozen ``TimeEntry`` objects, never ORM rows.
        ``overtime_policies`` are evaluated in order; ``default_policy``
        applies when none of them covers the employee.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        overtime_policies: Sequence[OvertimePolicy] = (),
        default_policy: OvertimePolicy | None = None,
        week_starts_on: int = SUNDAY,
        boundary_mode: PolicyBoundaryMode = PolicyBoundaryMode.WEEK_START,
    ):
        super().__init__(session, clock)
        self._overtime_policies = tuple(overtime_policies)
        self._default_policy = default_policy
        self._week_starts_on = week_starts_on
        self._boundary_mode = PolicyBoundaryMode(boundary_mode)

    # -- queries --------------------------------------------------------------

    def _active_row(self, employee_id: str, for_update: bool = False) -> TimeEntryModel | None:
        stmt = select(TimeEntryModel).where(
            TimeEntryModel.employee_id == employee_id,
            TimeEntryModel.status == TimeEntryStatus.ACTIVE.value,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def _require_active_row(self, employee_id: str) -> TimeEntryModel:
        row = self._active_row(employee_id, for_update=True)
        if row is None:
            raise NotClockedInError(employee_id)
        return row

    def _row_by_entry_id(self, entry_id: str) -> TimeEntryModel:
        row = self.session.execute(
            select(TimeEntryModel)
            .where(TimeEntryModel.entry_id == entry_id)
            .with_for_update()
        ).scalar_one_or_none()
        if row is None:
            raise RecordNotFoundError("time entry", entry_id)
        return row

    def _completed_rows_in_range(
        self, employee_id: str, start: date, end: date
    ) -> list[tuple[TimeEntryModel, TimeEntry]]:
        """Completed rows clocked in on a date in [start, end], in clock-in order."""
        # Coarse UTC window; work_date follows each entry's recorded offset.
        lower = datetime.combine(start - timedelta(days=1), time.min, tzinfo=timezone.utc)
        upper = datetime.combine(end + timedelta(days=2), time.min, tzinfo=timezone.utc)
        rows = self.session.execute(
            select(TimeEntryModel)
            .where(
                TimeEntryModel.employee_id == employee_id,
                TimeEntryModel.status == TimeEntryStatus.COMPLETED.value,
                TimeEntryModel.clock_in_time >= lower,
                TimeEntryModel.clock_in_time < upper,
            )
            .order_by(TimeEntryModel.clock_in_time, TimeEntryModel.entry_id)
        ).scalars().all()
        pairs = [(r, r.to_dto()) for r in rows]
        return [(r, e) for r, e in pairs if start <= e.work_date <= end]

    def _completed_in_range(self, employee_id: str, start: date, end: date) -> list[TimeEntry]:
        return [e for _, e in self._completed_rows_in_range(employee_id, start, end)]

    def get_entry(self, entry_id: str) -> TimeEntry:
        return self._row_by_entry_id(entry_id).to_dto()

    def current_entry(self, employee_id: str) -> TimeEntry | None:
        row = self._active_row(employee_id)
        return row.to_dto() if row else None

    def current_time_status(self, employee_id: str) -> EmployeeTimeStatus:
        entry = self.current_entry(employee_id)
        if entry is None:
            return EmployeeTimeStatus.CLOCKED_OUT
        return entry.time_status

    # -- clock in / out -------------------------------------------------------

    def clock_in(
        self,
        employee_id: str,
        location: GeoLocation | None = None,
        notes: str | None = None,
    ) -> TimeEntry:
        """
        Open an ACTIVE entry for ``employee_id`` at the current time.

        Raises:
            AlreadyClockedInError: The employee already has an ACTIVE entry.
        """
        existing = self._active_row(employee_id)
        if existing is not None:
            raise AlreadyClockedInError(employee_id, existing.entry_id)

        entry = TimeEntry.clock_in(employee_id, clock=self._clock, location=location, notes=notes)
        self.session.add(TimeEntryModel.from_dto(entry))
        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            logger.warning(
                "concurrent_clock_in_conflict",
                extra={"employee_id": employee_id},
            )
            raise AlreadyClockedInError(employee_id)

        with LogContext.bind(employee_id=employee_id, entry_id=entry.entry_id):
            logger.info(
                "clocked_in",
                extra={"clock_in_time": entry.clock_in_time.isoformat()},
            )
        return entry

    def clock_out(
        self,
        employee_id: str,
        group: EmployeeGroup | None = None,
    ) -> TimeEntry:
        """
        Close the employee's ACTIVE entry and attach its hour categories.

        ``group`` selects the overtime policy; without it only
        ``default_policy`` can apply.

        Raises:
            NotClockedInError: No ACTIVE entry.
            BreakStateError: A break is still open.
        """
        row = self._require_active_row(employee_id)
        row.apply_dto(row.to_dto().clock_out(clock=self._clock))
        self.session.flush()
        entry = self._finish_hours(row, group)

        with LogContext.bind(employee_id=employee_id, entry_id=entry.entry_id):
            logger.info(
                "clocked_out",
                extra={
                    "total_hours": entry.total_hours,
                    "regular_hours": entry.regular_hours,
                    "overtime_hours": entry.overtime_hours,
                    "double_time_hours": entry.double_time_hours,
                },
            )
        return entry

    # -- breaks ---------------------------------------------------------------

    def start_break(
        self,
        employee_id: str,
        break_type: BreakType,
        paid: bool,
    ) -> TimeEntry:
        row = self._require_active_row(employee_id)
        entry = row.to_dto().add_break(break_type, paid=paid, clock=self._clock)
        row.apply_dto(entry)
        self.session.flush()
        logger.info(
            "break_started",
            extra={
                "employee_id": employee_id,
                "entry_id": entry.entry_id,
                "break_id": entry.active_break.break_id,
                "break_type": BreakType(break_type).value,
                "paid": paid,
            },
        )
        return entry

    def end_break(self, employee_id: str, break_id: str | None = None) -> TimeEntry:
        """End ``break_id``, or the open break when no id is given."""
        row = self._require_active_row(employee_id)
        entry = row.to_dto()
        if break_id is None:
            current = entry.active_break
            if current is None:
                raise BreakStateError(f"Employee {employee_id} is not on a break")
            break_id = current.break_id
        entry = entry.end_break(break_id, clock=self._clock)
        row.apply_dto(entry)
        self.session.flush()
        logger.info(
            "break_ended",
            extra={"employee_id": employee_id, "entry_id": entry.entry_id, "break_id": break_id},
        )
        return entry

    # -- manual entries -------------------------------------------------------

    def record_manual_entry(
        self,
        employee_id: str,
        clock_in_time: datetime,
        clock_out_time: datetime,
        notes: str,
        breaks: Sequence[BreakEntry] = (),
    ) -> TimeEntry:
        """Store a retroactive shift in PENDING_APPROVAL."""
        entry = TimeEntry.manual(
            employee_id, clock_in_time, clock_out_time, notes,
            clock=self._clock, breaks=tuple(breaks),
        )
        self.session.add(TimeEntryModel.from_dto(entry))
        self.session.flush()
        logger.info(
            "manual_entry_recorded",
            extra={
                "employee_id": employee_id,
                "entry_id": entry.entry_id,
                "total_hours": entry.total_hours,
            },
        )
        return entry

    def approve_manual_entry(
        self,
        entry_id: str,
        approver: Actor,
        group: EmployeeGroup | None = None,
    ) -> TimeEntry:
        row = self._row_by_entry_id(entry_id)
        row.apply_dto(row.to_dto().approve(approver, clock=self._clock))
        self.session.flush()
        entry = self._finish_hours(row, group)
        logger.info(
            "manual_entry_approved",
            extra={
                "entry_id": entry_id,
                "employee_id": entry.employee_id,
                "actor_id": approver.actor_id,
            },
        )
        return entry

    # -- hours ----------------------------------------------------------------

    def policy_for_week(self, group: EmployeeGroup | None, week_start: date) -> OvertimePolicy | None:
        if group is None or not self._overtime_policies:
            return self._default_policy
        policy = select_weekly_policy(
            self._overtime_policies, group, week_start, self._boundary_mode
        )
        return policy or self._default_policy

    def _finish_hours(self, row: TimeEntryModel, group: EmployeeGroup | None) -> TimeEntry:
        entry = row.to_dto()
        self._recompute_week(entry.employee_id, entry.work_date, group)
        self.session.flush()
        return row.to_dto()

    def _recompute_week(
        self,
        employee_id: str,
        work_date: date,
        group: EmployeeGroup | None,
    ) -> None:
        """Reassign hour categories to every completed entry of the week.

        Entries are walked in clock-in order, each receiving the increment
        it adds on top of the ones before it.
        """
        week_start = week_start_for(work_date, self._week_starts_on)
        policy = self.policy_for_week(group, week_start)
        if policy is None:
            return

        week_end = week_start + timedelta(days=DAYS_PER_WEEK - 1)
        pairs = self._completed_rows_in_range(employee_id, week_start, week_end)
        entries = [entry for _, entry in pairs]
        for i, (row, entry) in enumerate(pairs):
            increment = calculate_entry_increment(entry, entries[:i], policy)
            row.apply_dto(entry.with_hours(
                increment.regular_hours, increment.overtime_hours, increment.double_time_hours
            ))

    def weekly_summary(
        self,
        employee_id: str,
        week_start: date,
        group: EmployeeGroup | None = None,
    ) -> WeeklyHours | None:
        """Weekly split of completed entries, or None when no policy applies."""
        policy = self.policy_for_week(group, week_start)
        if policy is None:
            return None
        week_end = week_start + timedelta(days=DAYS_PER_WEEK - 1)
        entries = self._completed_in_range(employee_id, week_start, week_end)
        return calculate_weekly_hours(entries, week_start, policy)
