"""
Accrual Engine (``hr_engines.accrual``).

Responsibility
--------------
Accrual schedules and projections for leave balances:

* accrual dates falling inside a date range
* amount accrued over a range under an ``AccrualRule``
* waiting-period check for new employees
* applying every accrual that is due on a date
* projecting a balance forward with planned usage

Architecture position
---------------------
**Engines layer** -- pure functional core. ZERO I/O, ZERO clock reads.

Invariants enforced
-------------------
* Balances never exceed the rule's max_balance (delegated to
  ``LeaveBalance.apply_accrual``).
* Accrual dates strictly follow the rule's period from the last accrual
  (or the balance's effective date).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from hr_kernel.domain.leave import AccrualTransaction, LeaveBalance, next_period_date
from hr_kernel.domain.policy import AccrualPeriod, AccrualRule


@dataclass(frozen=True)
class BalanceProjection:
    as_of: date
    accrual_dates: tuple[date, ...]
    accrued: float
    capped: float
    planned_usage: float
    projected_balance: float

    @property
    def is_sufficient(self) -> bool:
        return self.projected_balance >= 0


def accrual_dates_between(period: AccrualPeriod, anchor: date, through: date) -> tuple[date, ...]:
    """Accrual dates after ``anchor`` up to and including ``through``."""
    dates: list[date] = []
    current = next_period_date(period, anchor)
    while current <= through:
        dates.append(current)
        current = next_period_date(period, current)
    return tuple(dates)


def accrual_for_period(rule: AccrualRule, start: date, end: date) -> float:
    """Uncapped amount accrued between ``start`` (anchor) and ``end``."""
    return rule.accrual_rate * len(accrual_dates_between(rule.accrual_period, start, end))


def is_in_waiting_period(rule: AccrualRule, tenure_days: int) -> bool:
    return tenure_days < rule.waiting_period_days


def run_due_accruals(
    balance: LeaveBalance, on: date
) -> tuple[LeaveBalance, tuple[AccrualTransaction, ...]]:
    """Apply every accrual that has fallen due by ``on``."""
    transactions: list[AccrualTransaction] = []
    rule = balance.accrual_rule
    while balance.is_accrual_due(on):
        balance, txn = balance.apply_accrual(rule.accrual_rate, balance.next_accrual_date())
        if txn is not None:
            transactions.append(txn)
    return balance, tuple(transactions)


def project_balance(
    balance: LeaveBalance,
    through: date,
    planned_usage: float = 0.0,
) -> BalanceProjection:
    """Balance expected on ``through`` after scheduled accruals and usage.

    Usage is subtracted after all accruals; a negative projection means
    the planned usage cannot be covered.
    """
    anchor = balance.last_accrual_date or balance.effective_date
    dates = accrual_dates_between(balance.accrual_rule.accrual_period, anchor, through)
    gross = balance.accrual_rule.accrual_rate * len(dates)
    headroom = max(0.0, balance.accrual_rule.max_balance - balance.current_balance)
    accrued = min(gross, headroom)
    return BalanceProjection(
        as_of=through,
        accrual_dates=dates,
        accrued=round(accrued, 2),
        capped=round(gross - accrued, 2),
        planned_usage=planned_usage,
        projected_balance=round(balance.current_balance + accrued - planned_usage, 2),
    )
