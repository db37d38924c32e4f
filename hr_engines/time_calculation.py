"""
Time Calculation Engine (``hr_engines.time_calculation``).

Responsibility
--------------
Reduce time entries to hour categories under an ``OvertimePolicy``:

* worked hours per entry (elapsed minus unpaid breaks)
* break deductions and break impact
* daily, weekly and pay-period regular / overtime / double-time splits
* the increment one shift adds to its week (per-entry hour categories)
* overtime detection for a work week
* choice of overtime policy for a week that spans a policy change

Architecture position
---------------------
**Engines layer** -- pure functional core. ZERO I/O, ZERO database,
ZERO clock reads. Dates are explicit parameters.

Invariants enforced
-------------------
* Daily hours up to the daily threshold are regular, beyond it overtime,
  beyond the double-time threshold double-time.
* Weekly overtime (total beyond the weekly threshold, double-time carved
  out) is a floor on overtime, never added on top of daily overtime.
* Intermediate sums keep full precision; rounding to 2 decimals happens
  once, on the returned values.
* An entry's hours belong to the date it was clocked in on.

Failure modes
-------------
* ``ValueError`` for an open (not clocked-out) entry passed where a
  finished shift is required.
* ``PolicyBoundaryError`` when the policy boundary mode is
  ``reject_split`` and the week is covered by more than one policy.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Mapping, Sequence

from hr_engines.policy_application import find_applicable_overtime_policy
from hr_kernel.domain.dates import week_start_for
from hr_kernel.domain.policy import OvertimePolicy, OvertimeSplit
from hr_kernel.domain.time_entry import BreakEntry, TimeEntry
from hr_kernel.domain.values import EmployeeGroup
from hr_kernel.exceptions import PolicyBoundaryError

# Python weekday index; weeks start on Sunday unless configured otherwise.
SUNDAY = 6
DAYS_PER_WEEK = 7


class PolicyBoundaryMode(str, Enum):
    """How to choose the overtime policy for a week spanning a policy change."""

    WEEK_START = "week_start"
    REJECT_SPLIT = "reject_split"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BreakDeductions:
    total_minutes: float
    paid_minutes: float
    unpaid_minutes: float

    @property
    def unpaid_hours(self) -> float:
        return round(self.unpaid_minutes / 60, 2)


@dataclass(frozen=True)
class EntryHours:
    entry_id: str
    work_date: date
    worked_hours: float
    regular_hours: float
    overtime_hours: float
    double_time_hours: float
    breaks: BreakDeductions


@dataclass(frozen=True)
class DailyHours:
    work_date: date
    total_hours: float
    regular_hours: float
    overtime_hours: float
    double_time_hours: float
    entry_count: int


@dataclass(frozen=True)
class WeeklyHours:
    week_start: date
    days: tuple[DailyHours, ...]
    total_hours: float
    regular_hours: float
    overtime_hours: float
    double_time_hours: float

    @property
    def week_end(self) -> date:
        return self.week_start + timedelta(days=DAYS_PER_WEEK - 1)


@dataclass(frozen=True)
class PayPeriodHours:
    period_start: date
    period_end: date
    weeks: tuple[WeeklyHours, ...]
    total_hours: float
    regular_hours: float
    overtime_hours: float
    double_time_hours: float


@dataclass(frozen=True)
class OvertimeDetection:
    has_overtime: bool
    daily_overtime_dates: tuple[date, ...]
    double_time_dates: tuple[date, ...]
    weekly_threshold_exceeded: bool
    overtime_hours: float
    double_time_hours: float


@dataclass(frozen=True)
class BreakImpact:
    elapsed_hours: float
    worked_hours: float
    paid_break_hours: float
    unpaid_break_hours: float
    break_count: int
    longest_break_minutes: float


# ---------------------------------------------------------------------------
# Entry level
# ---------------------------------------------------------------------------


def calculate_break_deductions(breaks: Iterable[BreakEntry]) -> BreakDeductions:
    """Sum ended break minutes, split by paid flag. Open breaks count zero."""
    paid = unpaid = 0.0
    for b in breaks:
        minutes = b.duration_minutes or 0.0
        if b.paid:
            paid += minutes
        else:
            unpaid += minutes
    return BreakDeductions(paid + unpaid, paid, unpaid)


def _require_finished(entry: TimeEntry) -> None:
    if entry.clock_out_time is None:
        raise ValueError(f"Time entry {entry.entry_id} has not been clocked out")


def calculate_entry_hours(
    entry: TimeEntry,
    policy: OvertimePolicy,
    weekly_hours: float | None = None,
) -> EntryHours:
    """Split one finished shift.

    ``weekly_hours`` is the running week total including this shift; omit
    it to apply daily thresholds only.
    """
    _require_finished(entry)
    worked = entry.worked_hours
    split = policy.split_hours(worked, weekly_hours).rounded()
    return EntryHours(
        entry_id=entry.entry_id,
        work_date=entry.work_date,
        worked_hours=round(worked, 2),
        regular_hours=split.regular_hours,
        overtime_hours=split.overtime_hours,
        double_time_hours=split.double_time_hours,
        breaks=calculate_break_deductions(entry.breaks),
    )


def calculate_break_impact(entry: TimeEntry) -> BreakImpact:
    _require_finished(entry)
    deductions = calculate_break_deductions(entry.breaks)
    ended = [b.duration_minutes for b in entry.breaks if b.duration_minutes is not None]
    return BreakImpact(
        elapsed_hours=round(entry.elapsed_minutes / 60, 2),
        worked_hours=round(entry.worked_hours, 2),
        paid_break_hours=round(deductions.paid_minutes / 60, 2),
        unpaid_break_hours=round(deductions.unpaid_minutes / 60, 2),
        break_count=len(entry.breaks),
        longest_break_minutes=max(ended, default=0.0),
    )


# ---------------------------------------------------------------------------
# Day / week / pay period
# ---------------------------------------------------------------------------


def _worked_by_day(entries: Iterable[TimeEntry]) -> tuple[dict[date, float], dict[date, int]]:
    hours: dict[date, float] = defaultdict(float)
    counts: dict[date, int] = defaultdict(int)
    for entry in entries:
        if entry.clock_out_time is None:
            continue
        hours[entry.work_date] += entry.worked_hours
        counts[entry.work_date] += 1
    return hours, counts


def _daily(day: date, worked: float, count: int, split: OvertimeSplit) -> DailyHours:
    rounded = split.rounded()
    return DailyHours(
        work_date=day,
        total_hours=round(worked, 2),
        regular_hours=rounded.regular_hours,
        overtime_hours=rounded.overtime_hours,
        double_time_hours=rounded.double_time_hours,
        entry_count=count,
    )


def calculate_daily_hours(
    entries: Iterable[TimeEntry],
    work_date: date,
    policy: OvertimePolicy,
) -> DailyHours:
    """Daily thresholds applied to every finished shift clocked in on ``work_date``."""
    hours, counts = _worked_by_day(e for e in entries if e.work_date == work_date)
    worked = hours.get(work_date, 0.0)
    return _daily(work_date, worked, counts.get(work_date, 0), policy.split_hours(worked))


def _week_split(daily_splits: Sequence[OvertimeSplit], total: float, policy: OvertimePolicy) -> OvertimeSplit:
    double_time = sum(s.double_time_hours for s in daily_splits)
    daily_overtime = sum(s.overtime_hours for s in daily_splits)
    weekly_overtime = max(0.0, total - policy.weekly_overtime_threshold - double_time)
    overtime = max(daily_overtime, weekly_overtime)
    return OvertimeSplit(max(0.0, total - overtime - double_time), overtime, double_time)


def calculate_weekly_hours(
    entries: Iterable[TimeEntry],
    week_start: date,
    policy: OvertimePolicy,
) -> WeeklyHours:
    """Seven days from ``week_start``; weekly overtime is a floor on daily overtime."""
    week_days = [week_start + timedelta(days=i) for i in range(DAYS_PER_WEEK)]
    in_week = set(week_days)
    hours, counts = _worked_by_day(e for e in entries if e.work_date in in_week)

    daily_splits = [policy.split_hours(hours.get(d, 0.0)) for d in week_days]
    total = sum(hours.get(d, 0.0) for d in week_days)
    week = _week_split(daily_splits, total, policy).rounded()

    return WeeklyHours(
        week_start=week_start,
        days=tuple(
            _daily(d, hours.get(d, 0.0), counts.get(d, 0), s)
            for d, s in zip(week_days, daily_splits)
        ),
        total_hours=round(total, 2),
        regular_hours=week.regular_hours,
        overtime_hours=week.overtime_hours,
        double_time_hours=week.double_time_hours,
    )


def split_week(daily_hours: Mapping[date, float], policy: OvertimePolicy) -> OvertimeSplit:
    """Unrounded weekly split of worked hours keyed by work date."""
    splits = [policy.split_hours(h) for h in daily_hours.values()]
    return _week_split(splits, sum(daily_hours.values()), policy)


def calculate_entry_increment(
    entry: TimeEntry,
    earlier_entries: Iterable[TimeEntry],
    policy: OvertimePolicy,
) -> OvertimeSplit:
    """Hours ``entry`` adds to its work week on top of ``earlier_entries``.

    ``earlier_entries`` are the finished shifts of the same week that were
    clocked in before ``entry``. Summed in clock-in order, the increments
    reproduce ``calculate_weekly_hours`` for the week.
    """
    _require_finished(entry)
    before, _ = _worked_by_day(e for e in earlier_entries if e.entry_id != entry.entry_id)
    after = dict(before)
    after[entry.work_date] = after.get(entry.work_date, 0.0) + entry.worked_hours

    old, new = split_week(before, policy), split_week(after, policy)
    return OvertimeSplit(
        max(0.0, new.regular_hours - old.regular_hours),
        max(0.0, new.overtime_hours - old.overtime_hours),
        max(0.0, new.double_time_hours - old.double_time_hours),
    ).rounded()


def calculate_pay_period_hours(
    entries: Iterable[TimeEntry],
    period_start: date,
    period_end: date,
    policy: OvertimePolicy,
    week_starts_on: int = SUNDAY,
) -> PayPeriodHours:
    """Weekly splits for every work week touching the period.

    Only shifts clocked in within [period_start, period_end] count.
    """
    if period_end < period_start:
        raise ValueError("period_end cannot precede period_start")
    in_period = [e for e in entries if period_start <= e.work_date <= period_end]

    weeks = []
    week_start = week_start_for(period_start, week_starts_on)
    while week_start <= period_end:
        weeks.append(calculate_weekly_hours(in_period, week_start, policy))
        week_start += timedelta(days=DAYS_PER_WEEK)

    return PayPeriodHours(
        period_start=period_start,
        period_end=period_end,
        weeks=tuple(weeks),
        total_hours=round(sum(w.total_hours for w in weeks), 2),
        regular_hours=round(sum(w.regular_hours for w in weeks), 2),
        overtime_hours=round(sum(w.overtime_hours for w in weeks), 2),
        double_time_hours=round(sum(w.double_time_hours for w in weeks), 2),
    )


def detect_overtime(
    entries: Iterable[TimeEntry],
    week_start: date,
    policy: OvertimePolicy,
) -> OvertimeDetection:
    week = calculate_weekly_hours(entries, week_start, policy)
    return OvertimeDetection(
        has_overtime=week.overtime_hours > 0 or week.double_time_hours > 0,
        daily_overtime_dates=tuple(d.work_date for d in week.days if d.overtime_hours > 0),
        double_time_dates=tuple(d.work_date for d in week.days if d.double_time_hours > 0),
        weekly_threshold_exceeded=week.total_hours > policy.weekly_overtime_threshold,
        overtime_hours=week.overtime_hours,
        double_time_hours=week.double_time_hours,
    )


# ---------------------------------------------------------------------------
# Policy choice across a policy change
# ---------------------------------------------------------------------------


def select_weekly_policy(
    policies: Sequence[OvertimePolicy],
    group: EmployeeGroup,
    week_start: date,
    mode: PolicyBoundaryMode = PolicyBoundaryMode.WEEK_START,
) -> OvertimePolicy | None:
    """The single overtime policy governing the week starting ``week_start``.

    ``WEEK_START`` uses whichever policy applies on the first day.
    ``REJECT_SPLIT`` raises when different days of the week resolve to
    different policies.
    """
    mode = PolicyBoundaryMode(mode)
    first = find_applicable_overtime_policy(policies, group, week_start)
    if mode == PolicyBoundaryMode.WEEK_START:
        return first

    seen: dict[str, OvertimePolicy] = {}
    for offset in range(DAYS_PER_WEEK):
        policy = find_applicable_overtime_policy(
            policies, group, week_start + timedelta(days=offset)
        )
        if policy is not None:
            seen.setdefault(policy.policy_id, policy)
    if len(seen) > 1:
        raise PolicyBoundaryError(week_start, sorted(seen))
    return first if first is not None else next(iter(seen.values()), None)
