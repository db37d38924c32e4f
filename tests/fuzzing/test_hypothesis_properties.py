"""
Property-based tests for the HR kernel arithmetic.

Properties verified:
- An overtime split always accounts for every worked hour, with no
  negative category.
- Clock-out increments summed over a week reproduce the weekly split.
- Overlap checks are symmetric and agree with a day-by-day scan.
- Weekday counts agree with a day-by-day scan.
- Accrual never pushes a balance past its cap; every movement is recorded.
- Year-end carryover keeps at most the limit and forfeits the rest.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from hr_engines.accrual import run_due_accruals
from hr_engines.time_calculation import (
    calculate_entry_increment,
    calculate_weekly_hours,
)
from hr_kernel.domain.dates import count_weekdays, intervals_overlap
from hr_kernel.domain.leave import LeaveBalance
from hr_kernel.domain.policy import AccrualPeriod, AccrualRule, OvertimePolicy
from hr_kernel.domain.time_entry import TimeEntry, TimeEntryStatus

UTC = timezone.utc
WEEK_START = date(2024, 5, 26)

STANDARD = OvertimePolicy("ot-standard", "Standard", date(2024, 1, 1))
DOUBLE_TIME = OvertimePolicy(
    "ot-dt", "Double time", date(2024, 1, 1), double_time_threshold=12
)

policies = st.sampled_from([STANDARD, DOUBLE_TIME])
# Quarter hours keep every sum exact in binary floating point.
quarter_hours = st.integers(min_value=1, max_value=16 * 4).map(lambda q: q / 4)
dates = st.dates(min_value=date(2024, 1, 1), max_value=date(2025, 12, 31))


def _entry(index: int, day: date, hours: float) -> TimeEntry:
    clock_in = datetime(day.year, day.month, day.day, 6, tzinfo=UTC)
    return TimeEntry(
        entry_id=f"entry-{index}",
        employee_id="emp-1",
        clock_in_time=clock_in,
        clock_out_time=clock_in + timedelta(hours=hours),
        status=TimeEntryStatus.COMPLETED,
    )


# =========================================================================
# Overtime arithmetic
# =========================================================================


class TestOvertimeProperties:

    @given(
        policy=policies,
        daily=st.floats(min_value=0, max_value=24, allow_nan=False),
        extra=st.floats(min_value=0, max_value=60, allow_nan=False),
    )
    @settings(max_examples=200)
    def test_split_accounts_for_every_hour(self, policy, daily, extra):
        split = policy.split_hours(daily, daily + extra)

        assert split.regular_hours >= 0
        assert split.overtime_hours >= 0
        assert split.double_time_hours >= 0
        assert split.total_hours == pytest.approx(daily)

    @given(
        policy=policies,
        shifts=st.lists(
            st.tuples(st.integers(min_value=0, max_value=6), quarter_hours),
            min_size=1,
            max_size=10,
        ),
    )
    @settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])
    def test_increments_sum_to_weekly_split(self, policy, shifts):
        # one shift per day keeps clock-in order unambiguous
        by_day: dict[int, float] = {}
        for day, hours in shifts:
            by_day.setdefault(day, hours)
        entries = [
            _entry(i, WEEK_START + timedelta(days=day), hours)
            for i, (day, hours) in enumerate(sorted(by_day.items()))
        ]

        increments = [
            calculate_entry_increment(entry, entries[:i], policy)
            for i, entry in enumerate(entries)
        ]
        week = calculate_weekly_hours(entries, WEEK_START, policy)

        assert sum(s.regular_hours for s in increments) == pytest.approx(week.regular_hours)
        assert sum(s.overtime_hours for s in increments) == pytest.approx(week.overtime_hours)
        assert sum(s.double_time_hours for s in increments) == pytest.approx(week.double_time_hours)
        assert week.regular_hours <= policy.weekly_overtime_threshold


# =========================================================================
# Calendar helpers
# =========================================================================


class TestCalendarProperties:

    @given(a=dates, a_len=st.integers(0, 30), b=dates, b_len=st.integers(0, 30))
    def test_overlap_symmetric_and_exact(self, a, a_len, b, b_len):
        a_end, b_end = a + timedelta(days=a_len), b + timedelta(days=b_len)
        a_days = {a + timedelta(days=i) for i in range(a_len + 1)}
        b_days = {b + timedelta(days=i) for i in range(b_len + 1)}

        assert intervals_overlap(a, a_end, b, b_end) == intervals_overlap(b, b_end, a, a_end)
        assert intervals_overlap(a, a_end, b, b_end) == bool(a_days & b_days)

    @given(start=dates, length=st.integers(-3, 60))
    def test_weekday_count(self, start, length):
        end = start + timedelta(days=length)
        expected = sum(
            1 for i in range(length + 1) if (start + timedelta(days=i)).weekday() < 5
        )
        assert count_weekdays(start, end) == expected


# =========================================================================
# Balances
# =========================================================================


class TestBalanceProperties:

    @given(
        rate=st.integers(1, 40).map(lambda q: q / 4),
        cap=st.integers(0, 40),
        opening=st.integers(0, 40),
        months=st.integers(0, 24),
    )
    def test_accrual_respects_cap(self, rate, cap, opening, months):
        opening = min(opening, cap)
        rule = AccrualRule(rate, AccrualPeriod.MONTHLY, max_balance=cap)
        balance = LeaveBalance("emp-1", "ANNUAL", opening, rule, date(2024, 1, 1))
        on = date(2024 + months // 12, months % 12 + 1, 1)

        updated, transactions = run_due_accruals(balance, on)

        assert updated.current_balance <= cap + 1e-9
        assert opening + sum(t.amount for t in transactions) == pytest.approx(updated.current_balance)
        assert all(t.amount > 0 for t in transactions)

    @given(
        current=st.integers(0, 40),
        limit=st.integers(0, 40),
    )
    def test_carryover_keeps_at_most_limit(self, current, limit):
        rule = AccrualRule(1, AccrualPeriod.MONTHLY, max_balance=40, carryover_limit=limit)
        balance = LeaveBalance("emp-1", "ANNUAL", current, rule, date(2024, 1, 1))

        updated, txn = balance.apply_year_end_carryover(date(2024, 12, 31))

        assert updated.current_balance == min(current, limit)
        forfeited = -txn.amount if txn is not None else 0
        assert updated.current_balance + forfeited == current
