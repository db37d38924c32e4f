"""
Tests for time entries and breaks (``hr_kernel.domain.time_entry``).

Invariants tested:
- Temporal: aware timestamps only, nothing after "now", clock-out after
  clock-in, shifts no longer than 24 hours, breaks inside the shift.
- Breaks: at most one open, no overlaps, duration capped per type.
- total_hours = (elapsed - unpaid breaks) / 60 rounded to 2 decimals.
- State: COMPLETED needs clock-out, ACTIVE forbids it, PENDING_APPROVAL
  only for manual entries, approval stamps set together.
"""

from datetime import datetime, timedelta, timezone

import pytest

from hr_kernel.domain.time_entry import (
    BreakEntry,
    BreakType,
    EmployeeTimeStatus,
    TimeEntry,
    TimeEntryStatus,
)
from hr_kernel.domain.values import GeoLocation
from hr_kernel.exceptions import (
    BreakStateError,
    ClockStateError,
    FutureTimestampError,
    InvalidTransitionError,
    SchemaValidationError,
    StateConsistencyError,
    TimeSequenceError,
    UnauthorizedActorError,
)

UTC = timezone.utc


def _at(hour: int, minute: int = 0, day: int = 3) -> datetime:
    return datetime(2024, 6, day, hour, minute, tzinfo=UTC)


def _completed(start: datetime, end: datetime, breaks=()) -> TimeEntry:
    return TimeEntry(
        entry_id="entry-1",
        employee_id="emp-1",
        clock_in_time=start,
        clock_out_time=end,
        breaks=tuple(breaks),
        status=TimeEntryStatus.COMPLETED,
    )


# =========================================================================
# Clock in / out
# =========================================================================


class TestClockInOut:

    def test_clock_in_opens_active_entry_at_now(self, clock):
        entry = TimeEntry.clock_in("emp-1", clock=clock)

        assert entry.status == TimeEntryStatus.ACTIVE
        assert entry.clock_in_time == clock.now()
        assert entry.clock_out_time is None
        assert entry.total_hours is None
        assert entry.time_status == EmployeeTimeStatus.CLOCKED_IN

    def test_clock_out_computes_total_hours(self, clock):
        entry = TimeEntry.clock_in("emp-1", clock=clock)
        clock.advance(hours=8, minutes=30)

        done = entry.clock_out(clock=clock)

        assert done.status == TimeEntryStatus.COMPLETED
        assert done.clock_out_time == clock.now()
        assert done.total_hours == 8.5
        assert done.time_status == EmployeeTimeStatus.CLOCKED_OUT

    def test_original_entry_is_unchanged(self, clock):
        entry = TimeEntry.clock_in("emp-1", clock=clock)
        clock.advance(hours=1)
        entry.clock_out(clock=clock)

        assert entry.status == TimeEntryStatus.ACTIVE

    def test_clock_out_twice_rejected(self, clock):
        entry = TimeEntry.clock_in("emp-1", clock=clock)
        clock.advance(hours=1)
        done = entry.clock_out(clock=clock)

        with pytest.raises(ClockStateError):
            done.clock_out(clock=clock)

    def test_clock_out_in_future_rejected(self, clock):
        entry = TimeEntry.clock_in("emp-1", clock=clock)

        with pytest.raises(FutureTimestampError):
            entry.clock_out(clock=clock, clock_out_time=clock.now() + timedelta(hours=2))

    def test_location_is_kept(self, clock):
        entry = TimeEntry.clock_in(
            "emp-1", clock=clock, location=GeoLocation(37.77, -122.42, 5.0)
        )
        assert entry.location.latitude == 37.77

    def test_invalid_location_rejected(self, clock):
        with pytest.raises(SchemaValidationError):
            TimeEntry.clock_in("emp-1", clock=clock, location=GeoLocation(91.0, 0.0))


# =========================================================================
# Temporal invariants
# =========================================================================


class TestTemporalInvariants:

    def test_naive_clock_in_rejected(self):
        with pytest.raises(SchemaValidationError):
            TimeEntry(entry_id="e", employee_id="emp-1", clock_in_time=datetime(2024, 6, 3, 8))

    def test_clock_out_before_clock_in_rejected(self):
        with pytest.raises(TimeSequenceError):
            _completed(_at(17), _at(9))

    def test_zero_length_shift_rejected(self):
        with pytest.raises(TimeSequenceError):
            _completed(_at(9), _at(9))

    def test_shift_longer_than_24_hours_rejected(self):
        with pytest.raises(TimeSequenceError):
            _completed(_at(6, day=1), _at(7, day=2))

    def test_exactly_24_hours_allowed(self):
        entry = _completed(_at(6, day=1), _at(6, day=2))
        assert entry.total_hours == 24.0

    def test_work_date_is_clock_in_date(self):
        entry = _completed(_at(22, day=1), _at(6, day=2))
        assert entry.work_date == _at(22, day=1).date()


# =========================================================================
# Breaks
# =========================================================================


class TestBreaks:

    def test_unpaid_lunch_is_deducted(self, clock):
        entry = TimeEntry.clock_in("emp-1", clock=clock)
        clock.advance(hours=4)
        entry = entry.add_break(BreakType.LUNCH, paid=False, clock=clock)
        assert entry.time_status == EmployeeTimeStatus.ON_BREAK

        clock.advance(minutes=30)
        entry = entry.end_break(entry.active_break.break_id, clock=clock)
        assert entry.time_status == EmployeeTimeStatus.CLOCKED_IN

        clock.advance(hours=4)
        done = entry.clock_out(clock=clock)

        assert done.elapsed_minutes == 510
        assert done.unpaid_break_minutes == 30
        assert done.total_hours == 8.0

    def test_paid_break_is_not_deducted(self):
        short = BreakEntry.start(BreakType.SHORT_BREAK, _at(10), paid=True, end_time=_at(10, 15))
        entry = _completed(_at(9), _at(17), [short])

        assert entry.paid_break_minutes == 15
        assert entry.total_hours == 8.0

    def test_second_open_break_rejected(self, clock):
        entry = TimeEntry.clock_in("emp-1", clock=clock)
        clock.advance(minutes=10)
        entry = entry.add_break(BreakType.SHORT_BREAK, paid=True, clock=clock)

        with pytest.raises(BreakStateError):
            entry.add_break(BreakType.PERSONAL, paid=False, clock=clock)

    def test_clock_out_with_open_break_rejected(self, clock):
        entry = TimeEntry.clock_in("emp-1", clock=clock)
        clock.advance(minutes=10)
        entry = entry.add_break(BreakType.SHORT_BREAK, paid=True, clock=clock)

        with pytest.raises(BreakStateError):
            entry.clock_out(clock=clock)

    def test_ending_a_break_twice_rejected(self, clock):
        entry = TimeEntry.clock_in("emp-1", clock=clock)
        clock.advance(minutes=10)
        entry = entry.add_break(BreakType.SHORT_BREAK, paid=True, clock=clock)
        break_id = entry.active_break.break_id
        clock.advance(minutes=5)
        entry = entry.end_break(break_id, clock=clock)

        with pytest.raises(BreakStateError):
            entry.end_break(break_id, clock=clock)

    def test_unknown_break_rejected(self, clock):
        entry = TimeEntry.clock_in("emp-1", clock=clock)
        with pytest.raises(BreakStateError):
            entry.end_break("missing", clock=clock)

    @pytest.mark.parametrize(
        "break_type, minutes",
        [(BreakType.SHORT_BREAK, 31), (BreakType.PERSONAL, 61), (BreakType.LUNCH, 121)],
    )
    def test_break_cap_per_type(self, break_type, minutes):
        start = _at(10)
        with pytest.raises(SchemaValidationError):
            BreakEntry.start(break_type, start, paid=False, end_time=start + timedelta(minutes=minutes))

    def test_break_at_cap_allowed(self):
        b = BreakEntry.start(BreakType.LUNCH, _at(12), paid=False, end_time=_at(14))
        assert b.duration_minutes == 120

    def test_break_before_clock_in_rejected(self, clock):
        entry = TimeEntry.clock_in("emp-1", clock=clock)
        clock.advance(hours=1)
        with pytest.raises(TimeSequenceError):
            entry.add_break(
                BreakType.SHORT_BREAK, paid=True, clock=clock,
                start_time=entry.clock_in_time - timedelta(minutes=5),
            )

    def test_break_after_clock_out_rejected(self):
        late = BreakEntry.start(BreakType.SHORT_BREAK, _at(16, 50), paid=True, end_time=_at(17, 10))
        with pytest.raises(TimeSequenceError):
            _completed(_at(9), _at(17), [late])

    def test_overlapping_breaks_rejected(self):
        first = BreakEntry.start(BreakType.LUNCH, _at(12), paid=False, end_time=_at(12, 45))
        second = BreakEntry.start(BreakType.SHORT_BREAK, _at(12, 30), paid=True, end_time=_at(12, 40))
        with pytest.raises(TimeSequenceError):
            _completed(_at(9), _at(17), [first, second])

    def test_break_end_before_start_rejected(self):
        with pytest.raises(TimeSequenceError):
            BreakEntry.start(BreakType.LUNCH, _at(12), paid=False, end_time=_at(11))

    def test_add_break_to_completed_entry_rejected(self, clock):
        entry = _completed(_at(7, day=3) - timedelta(hours=5), _at(7, day=3))
        with pytest.raises(InvalidTransitionError):
            entry.add_break(BreakType.LUNCH, paid=False, clock=clock)


# =========================================================================
# State consistency
# =========================================================================


class TestStateConsistency:

    def test_completed_requires_clock_out(self):
        with pytest.raises(StateConsistencyError):
            TimeEntry(
                entry_id="e", employee_id="emp-1", clock_in_time=_at(8),
                status=TimeEntryStatus.COMPLETED,
            )

    def test_active_forbids_clock_out(self):
        with pytest.raises(StateConsistencyError):
            TimeEntry(
                entry_id="e", employee_id="emp-1", clock_in_time=_at(8),
                clock_out_time=_at(9),
            )

    def test_pending_approval_only_for_manual_entries(self):
        with pytest.raises(StateConsistencyError):
            TimeEntry(
                entry_id="e", employee_id="emp-1", clock_in_time=_at(8),
                clock_out_time=_at(9), status=TimeEntryStatus.PENDING_APPROVAL,
            )

    def test_approval_fields_set_together(self):
        with pytest.raises(StateConsistencyError):
            TimeEntry(
                entry_id="e", employee_id="emp-1", clock_in_time=_at(8, day=1),
                clock_out_time=_at(9, day=1), status=TimeEntryStatus.COMPLETED,
                approved_by="mgr-1",
            )

    def test_notes_length_limited(self, clock):
        with pytest.raises(SchemaValidationError):
            TimeEntry.clock_in("emp-1", clock=clock, notes="x" * 1001)


# =========================================================================
# Manual entries
# =========================================================================


class TestManualEntries:

    def test_manual_entry_awaits_approval(self, clock):
        entry = TimeEntry.manual("emp-1", _at(9, day=1), _at(17, day=1), "Forgot badge", clock=clock)

        assert entry.status == TimeEntryStatus.PENDING_APPROVAL
        assert entry.manual_entry is True
        assert entry.total_hours == 8.0

    def test_manual_entry_requires_notes(self, clock):
        with pytest.raises(StateConsistencyError):
            TimeEntry.manual("emp-1", _at(9, day=1), _at(17, day=1), "  ", clock=clock)

    def test_manual_entry_in_future_rejected(self, clock):
        # clock is 08:00 on June 3
        with pytest.raises(FutureTimestampError):
            TimeEntry.manual("emp-1", _at(7), _at(9), "Early shift", clock=clock)

    def test_manual_entry_with_breaks(self, clock):
        lunch = BreakEntry.start(BreakType.LUNCH, _at(12, day=1), paid=False, end_time=_at(13, day=1))
        entry = TimeEntry.manual(
            "emp-1", _at(8, day=1), _at(17, day=1), "Paper timesheet",
            clock=clock, breaks=(lunch,),
        )
        assert entry.total_hours == 8.0

    def test_manager_approves(self, clock, manager):
        entry = TimeEntry.manual("emp-1", _at(9, day=1), _at(17, day=1), "Forgot badge", clock=clock)

        approved = entry.approve(manager, clock=clock)

        assert approved.status == TimeEntryStatus.COMPLETED
        assert approved.approved_by == "mgr-1"
        assert approved.approved_at == clock.now()

    def test_employee_cannot_approve(self, clock, employee):
        entry = TimeEntry.manual("emp-1", _at(9, day=1), _at(17, day=1), "Forgot badge", clock=clock)
        with pytest.raises(UnauthorizedActorError):
            entry.approve(employee, clock=clock)

    def test_approving_twice_rejected(self, clock, hr_admin):
        entry = TimeEntry.manual("emp-1", _at(9, day=1), _at(17, day=1), "Forgot badge", clock=clock)
        approved = entry.approve(hr_admin, clock=clock)
        with pytest.raises(InvalidTransitionError):
            approved.approve(hr_admin, clock=clock)


# =========================================================================
# Records
# =========================================================================


class TestRecords:

    def test_round_trip(self, clock, manager):
        lunch = BreakEntry.start(BreakType.LUNCH, _at(12, day=1), paid=False, end_time=_at(12, 30, day=1))
        entry = TimeEntry.manual(
            "emp-1", _at(8, day=1), _at(17, day=1), "Paper timesheet",
            clock=clock, breaks=(lunch,),
        ).approve(manager, clock=clock).with_hours(8.0, 0.5)

        restored = TimeEntry.from_record(entry.to_record())

        assert restored == entry
        assert restored.total_hours == 8.5

    def test_record_uses_iso_strings(self, clock):
        record = TimeEntry.clock_in("emp-1", clock=clock).to_record()
        assert record["clock_in_time"] == "2024-06-03T08:00:00+00:00"
        assert record["status"] == "ACTIVE"

    def test_unknown_status_rejected(self, clock):
        record = TimeEntry.clock_in("emp-1", clock=clock).to_record()
        record["status"] = "PAUSED"
        with pytest.raises(SchemaValidationError):
            TimeEntry.from_record(record)
