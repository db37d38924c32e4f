"""
Tests for the accrual engine (``hr_engines.accrual``).

Invariants tested:
- Accrual dates follow the period strictly after the anchor.
- Due accruals are applied one period at a time and capped at max_balance.
- Projections cap accrual at the headroom and subtract usage last.
"""

from datetime import date

from hr_engines.accrual import (
    accrual_dates_between,
    accrual_for_period,
    is_in_waiting_period,
    project_balance,
    run_due_accruals,
)
from hr_kernel.domain.leave import LeaveBalance, TransactionType
from hr_kernel.domain.policy import AccrualPeriod, AccrualRule

MONTHLY = AccrualRule(1.5, AccrualPeriod.MONTHLY, max_balance=10, waiting_period_days=90)


class TestSchedule:

    def test_monthly_dates(self):
        dates = accrual_dates_between(AccrualPeriod.MONTHLY, date(2024, 1, 1), date(2024, 6, 3))
        assert dates == (
            date(2024, 2, 1), date(2024, 3, 1), date(2024, 4, 1),
            date(2024, 5, 1), date(2024, 6, 1),
        )

    def test_anchor_itself_excluded(self):
        assert accrual_dates_between(AccrualPeriod.MONTHLY, date(2024, 6, 1), date(2024, 6, 30)) == ()

    def test_biweekly_dates(self):
        dates = accrual_dates_between(AccrualPeriod.BIWEEKLY, date(2024, 6, 3), date(2024, 7, 1))
        assert dates == (date(2024, 6, 17), date(2024, 7, 1))

    def test_accrual_for_period_is_uncapped(self):
        assert accrual_for_period(MONTHLY, date(2024, 1, 1), date(2024, 6, 3)) == 7.5

    def test_waiting_period(self):
        assert is_in_waiting_period(MONTHLY, 89)
        assert not is_in_waiting_period(MONTHLY, 90)


class TestRunDueAccruals:

    def test_applies_every_due_period_up_to_cap(self):
        rule = AccrualRule(1.5, AccrualPeriod.MONTHLY, max_balance=4)
        balance = LeaveBalance("emp-1", "ANNUAL", 0, rule, date(2024, 1, 1))

        updated, transactions = run_due_accruals(balance, date(2024, 6, 3))

        assert [t.amount for t in transactions] == [1.5, 1.5, 1.0]
        assert all(t.transaction_type == TransactionType.ACCRUAL for t in transactions)
        assert updated.current_balance == 4
        assert updated.last_accrual_date == date(2024, 6, 1)

    def test_nothing_due(self):
        balance = LeaveBalance(
            "emp-1", "ANNUAL", 2, MONTHLY, date(2024, 1, 1), last_accrual_date=date(2024, 6, 1)
        )
        updated, transactions = run_due_accruals(balance, date(2024, 6, 3))

        assert transactions == ()
        assert updated == balance


class TestProjection:

    def test_projection_with_usage(self):
        balance = LeaveBalance(
            "emp-1", "ANNUAL", 2, MONTHLY, date(2024, 1, 1), last_accrual_date=date(2024, 5, 1)
        )

        projection = project_balance(balance, date(2024, 9, 1), planned_usage=5)

        assert len(projection.accrual_dates) == 4
        assert projection.accrued == 6
        assert projection.capped == 0
        assert projection.projected_balance == 3
        assert projection.is_sufficient

    def test_projection_capped_and_insufficient(self):
        balance = LeaveBalance(
            "emp-1", "ANNUAL", 8, MONTHLY, date(2024, 1, 1), last_accrual_date=date(2024, 5, 1)
        )

        projection = project_balance(balance, date(2024, 9, 1), planned_usage=12)

        assert projection.accrued == 2
        assert projection.capped == 4
        assert projection.projected_balance == -2
        assert not projection.is_sufficient
