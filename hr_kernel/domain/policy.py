"""
Policy -- leave and overtime policies with their rules.

Responsibility:
    Pure value objects describing who a policy covers (applicable groups,
    eligibility rules), how leave accrues (accrual rules), how it may be
    used (usage rules), and how worked hours split into regular, overtime
    and double-time.

Architecture position:
    Kernel > Domain -- pure, zero I/O. The policy application engine
    (``hr_engines.policy_application``) composes these objects; the time
    calculation engine aggregates ``OvertimePolicy.split_hours``.

Invariants enforced:
    - LeavePolicy: end_date > effective_date, at least one accrual rule,
      name <= 200 chars, description <= 1000 chars, version >= 1.
    - AccrualRule: carryover_limit <= max_balance; rates non-negative.
    - UsageRule: value parses for its rule type (blackout ranges ordered).
    - OvertimePolicy: double_time_threshold > daily_overtime_threshold,
      double_time_multiplier > overtime_multiplier.

Design:
    Eligibility rule types form a closed enum; each maps to a typed
    accessor on ``EmployeeGroup`` (``ELIGIBILITY_ACCESSORS``). There is no
    lookup of employee fields by rule-type name.

    Policies are never mutated in place; ``LeavePolicy.revise`` returns the
    next version.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from hr_kernel.domain.validation import (
    iso,
    parse_date,
    require_date,
    require_enum,
    require_max_length,
    require_range,
    require_text,
)
from hr_kernel.domain.values import EmployeeGroup
from hr_kernel.exceptions import SchemaValidationError, TimeSequenceError

NAME_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000


# ---------------------------------------------------------------------------
# Eligibility rules
# ---------------------------------------------------------------------------


class EligibilityRuleType(str, Enum):
    TENURE = "TENURE"
    EMPLOYMENT_TYPE = "EMPLOYMENT_TYPE"
    DEPARTMENT = "DEPARTMENT"
    JOB_TITLE = "JOB_TITLE"
    CUSTOM = "CUSTOM"


class EligibilityOperator(str, Enum):
    EQUALS = "EQUALS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    IN = "IN"
    NOT_IN = "NOT_IN"


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class EligibilityRule:
    """
    Predicate (field, operator, value) over an employee group.

    IN / NOT_IN read ``value`` as a comma-separated set. CUSTOM rules name
    the key of ``EmployeeGroup.attributes`` they test in ``attribute``.
    """

    rule_type: EligibilityRuleType
    operator: EligibilityOperator
    value: str | int | float
    description: str = ""
    attribute: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "rule_type", require_enum(EligibilityRuleType, "rule_type", self.rule_type)
        )
        object.__setattr__(
            self, "operator", require_enum(EligibilityOperator, "operator", self.operator)
        )
        if isinstance(self.value, bool) or not isinstance(self.value, (str, int, float)):
            raise SchemaValidationError("value must be a string or number", field="value")
        if isinstance(self.value, str) and not self.value.strip():
            raise SchemaValidationError("value is required", field="value")
        if self.rule_type == EligibilityRuleType.CUSTOM:
            require_text("attribute", self.attribute)

    @property
    def value_set(self) -> frozenset[str]:
        return frozenset(
            part.strip() for part in str(self.value).split(",") if part.strip()
        )

    def evaluate(self, employee_value: Any) -> bool:
        """Apply the operator to ``employee_value``."""
        op = self.operator
        if op in (EligibilityOperator.IN, EligibilityOperator.NOT_IN):
            member = (
                employee_value is not None
                and str(employee_value).strip() in self.value_set
            )
            return member if op == EligibilityOperator.IN else not member

        if employee_value is None:
            return False

        left, right = _as_number(employee_value), _as_number(self.value)
        if op == EligibilityOperator.EQUALS:
            if left is not None and right is not None:
                return left == right
            return str(employee_value) == str(self.value)

        # Ordering operators are numeric only.
        if left is None or right is None:
            return False
        if op == EligibilityOperator.GREATER_THAN:
            return left > right
        return left < right

    def evaluate_for(self, group: EmployeeGroup) -> bool:
        return self.evaluate(ELIGIBILITY_ACCESSORS[self.rule_type](group, self))

    def describe(self) -> str:
        if self.description:
            return self.description
        subject = self.attribute if self.rule_type == EligibilityRuleType.CUSTOM else self.rule_type.value
        return f"{subject} {self.operator.value} {self.value}"

    def to_record(self) -> dict[str, Any]:
        return {
            "rule_type": self.rule_type.value,
            "operator": self.operator.value,
            "value": self.value,
            "description": self.description,
            "attribute": self.attribute,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> EligibilityRule:
        return cls(
            rule_type=record["rule_type"],
            operator=record["operator"],
            value=record["value"],
            description=record.get("description") or "",
            attribute=record.get("attribute"),
        )


ELIGIBILITY_ACCESSORS: dict[
    EligibilityRuleType, Callable[[EmployeeGroup, EligibilityRule], Any]
] = {
    EligibilityRuleType.TENURE: lambda group, rule: group.tenure_days,
    EligibilityRuleType.EMPLOYMENT_TYPE: lambda group, rule: group.employment_type,
    EligibilityRuleType.DEPARTMENT: lambda group, rule: group.department_id,
    EligibilityRuleType.JOB_TITLE: lambda group, rule: group.job_title,
    EligibilityRuleType.CUSTOM: lambda group, rule: group.attributes.get(rule.attribute),
}


# ---------------------------------------------------------------------------
# Accrual rules
# ---------------------------------------------------------------------------


class AccrualPeriod(str, Enum):
    MONTHLY = "MONTHLY"
    BIWEEKLY = "BIWEEKLY"
    ANNUAL = "ANNUAL"
    PER_PAY_PERIOD = "PER_PAY_PERIOD"


@dataclass(frozen=True)
class AccrualRule:
    """Rate at which leave accrues, with balance cap and carryover limit."""

    accrual_rate: float
    accrual_period: AccrualPeriod
    max_balance: float
    carryover_limit: float = 0.0
    waiting_period_days: int = 0

    def __post_init__(self) -> None:
        require_range("accrual_rate", self.accrual_rate, minimum=0)
        object.__setattr__(
            self,
            "accrual_period",
            require_enum(AccrualPeriod, "accrual_period", self.accrual_period),
        )
        require_range("max_balance", self.max_balance, minimum=0)
        require_range("carryover_limit", self.carryover_limit, minimum=0)
        require_range("waiting_period_days", self.waiting_period_days, minimum=0)
        if self.carryover_limit > self.max_balance:
            raise SchemaValidationError(
                "carryover_limit cannot exceed max_balance", field="carryover_limit"
            )

    def to_record(self) -> dict[str, Any]:
        return {
            "accrual_rate": self.accrual_rate,
            "accrual_period": self.accrual_period.value,
            "max_balance": self.max_balance,
            "carryover_limit": self.carryover_limit,
            "waiting_period_days": self.waiting_period_days,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> AccrualRule:
        return cls(
            accrual_rate=record["accrual_rate"],
            accrual_period=record["accrual_period"],
            max_balance=record["max_balance"],
            carryover_limit=record.get("carryover_limit", 0.0),
            waiting_period_days=record.get("waiting_period_days", 0),
        )


# ---------------------------------------------------------------------------
# Usage rules
# ---------------------------------------------------------------------------


class UsageRuleType(str, Enum):
    MAX_CONSECUTIVE_DAYS = "MAX_CONSECUTIVE_DAYS"
    ADVANCE_NOTICE = "ADVANCE_NOTICE"
    BLACKOUT_PERIOD = "BLACKOUT_PERIOD"
    MINIMUM_INCREMENT = "MINIMUM_INCREMENT"


@dataclass(frozen=True, slots=True)
class BlackoutPeriod:
    """Inclusive date range during which leave may not be taken."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise TimeSequenceError("Blackout end precedes its start", field="value")

    def overlaps(self, start: date, end: date) -> bool:
        return self.start <= end and start <= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()}/{self.end.isoformat()}"


def parse_blackout_periods(value: str) -> tuple[BlackoutPeriod, ...]:
    """Parse ``"2024-12-20/2024-12-31,2025-03-01"`` into blackout periods.

    A single date is a one-day period.
    """
    periods = []
    for part in str(value).split(","):
        part = part.strip()
        if not part:
            continue
        start_text, _, end_text = part.partition("/")
        start = parse_date("value", start_text.strip())
        end = parse_date("value", end_text.strip()) if end_text else start
        periods.append(BlackoutPeriod(start, end))
    if not periods:
        raise SchemaValidationError("Blackout rule lists no periods", field="value")
    return tuple(periods)


@dataclass(frozen=True)
class UsageRule:
    """One usage restriction. Inactive rules are ignored when folding."""

    rule_type: UsageRuleType
    value: str | int | float
    description: str = ""
    is_active: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "rule_type", require_enum(UsageRuleType, "rule_type", self.rule_type)
        )
        self.parsed_value()

    def parsed_value(self) -> float | int | tuple[BlackoutPeriod, ...]:
        if self.rule_type == UsageRuleType.BLACKOUT_PERIOD:
            if not isinstance(self.value, str):
                raise SchemaValidationError(
                    "Blackout rule value must be a string of date ranges", field="value"
                )
            return parse_blackout_periods(self.value)

        number = _as_number(self.value)
        if number is None:
            raise SchemaValidationError(
                f"{self.rule_type.value} value must be numeric", field="value"
            )
        if self.rule_type == UsageRuleType.ADVANCE_NOTICE:
            if number < 0 or number != int(number):
                raise SchemaValidationError(
                    "ADVANCE_NOTICE must be a non-negative whole number of days",
                    field="value",
                )
            return int(number)
        if number <= 0:
            raise SchemaValidationError(
                f"{self.rule_type.value} value must be positive", field="value"
            )
        return number

    def to_record(self) -> dict[str, Any]:
        return {
            "rule_type": self.rule_type.value,
            "value": self.value,
            "description": self.description,
            "is_active": self.is_active,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> UsageRule:
        return cls(
            rule_type=record["rule_type"],
            value=record["value"],
            description=record.get("description") or "",
            is_active=record.get("is_active", True),
        )


@dataclass(frozen=True)
class UsageRestrictions:
    """Flattened view of a policy's active usage rules."""

    max_consecutive_days: float | None = None
    advance_notice_days: int | None = None
    blackout_periods: tuple[BlackoutPeriod, ...] = ()
    minimum_increment: float | None = None

    def blackouts_overlapping(self, start: date, end: date) -> tuple[BlackoutPeriod, ...]:
        return tuple(p for p in self.blackout_periods if p.overlaps(start, end))


# ---------------------------------------------------------------------------
# Group matching
# ---------------------------------------------------------------------------


def matches_applicable_groups(
    applicable_groups: Sequence[str], group: EmployeeGroup
) -> bool:
    """Empty list matches everyone; otherwise department, employment type,
    or a case-insensitive job-title substring must match one entry."""
    if not applicable_groups:
        return True
    title = (group.job_title or "").lower()
    for entry in applicable_groups:
        if entry == group.department_id or entry == group.employment_type:
            return True
        if title and entry.lower() in title:
            return True
    return False


def _validate_window(effective_date: date, end_date: date | None) -> None:
    require_date("effective_date", effective_date)
    if end_date is not None:
        require_date("end_date", end_date)
        if end_date <= effective_date:
            raise TimeSequenceError(
                "end_date must be after effective_date", field="end_date"
            )


def _in_window(effective_date: date, end_date: date | None, on: date) -> bool:
    return effective_date <= on and (end_date is None or on <= end_date)


# ---------------------------------------------------------------------------
# Leave policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PolicyApplicability:
    """Outcome of matching one policy against one employee group."""

    is_applicable: bool
    is_eligible: bool
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class LeavePolicy:
    """A versioned leave policy for one leave type."""

    policy_id: str
    name: str
    leave_type_id: str
    effective_date: date
    accrual_rules: tuple[AccrualRule, ...]
    eligibility_rules: tuple[EligibilityRule, ...] = ()
    usage_rules: tuple[UsageRule, ...] = ()
    end_date: date | None = None
    applicable_groups: tuple[str, ...] = ()
    is_active: bool = True
    description: str | None = None
    version: int = 1

    def __post_init__(self) -> None:
        require_text("policy_id", self.policy_id)
        require_text("name", self.name, max_length=NAME_MAX_LENGTH)
        require_text("leave_type_id", self.leave_type_id)
        require_max_length("description", self.description, DESCRIPTION_MAX_LENGTH)
        for name in ("accrual_rules", "eligibility_rules", "usage_rules", "applicable_groups"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        if not self.accrual_rules:
            raise SchemaValidationError(
                "A leave policy needs at least one accrual rule", field="accrual_rules"
            )
        if isinstance(self.version, bool) or not isinstance(self.version, int) or self.version < 1:
            raise SchemaValidationError("version must be a positive integer", field="version")
        _validate_window(self.effective_date, self.end_date)

    def is_effective(self, on: date) -> bool:
        return self.is_active and _in_window(self.effective_date, self.end_date, on)

    def check_group_applicability(self, group: EmployeeGroup) -> bool:
        return matches_applicable_groups(self.applicable_groups, group)

    def failed_eligibility_rules(self, group: EmployeeGroup) -> tuple[EligibilityRule, ...]:
        return tuple(r for r in self.eligibility_rules if not r.evaluate_for(group))

    def is_applicable_to_employee(self, group: EmployeeGroup, as_of: date) -> PolicyApplicability:
        """Effectiveness, then group coverage, then every eligibility rule."""
        reasons: list[str] = []
        if not self.is_active:
            reasons.append("Policy is not active")
        elif not _in_window(self.effective_date, self.end_date, as_of):
            reasons.append(f"Policy is not effective on {as_of.isoformat()}")
        if not self.check_group_applicability(group):
            reasons.append("Employee group is not covered by this policy")
        if reasons:
            return PolicyApplicability(False, False, tuple(reasons))

        failed = self.failed_eligibility_rules(group)
        return PolicyApplicability(
            is_applicable=True,
            is_eligible=not failed,
            reasons=tuple(f"Eligibility rule failed: {r.describe()}" for r in failed),
        )

    def get_usage_restrictions(self) -> UsageRestrictions:
        """Fold active usage rules; the last rule of a type wins."""
        values: dict[UsageRuleType, Any] = {}
        for rule in self.usage_rules:
            if rule.is_active:
                values[rule.rule_type] = rule.parsed_value()
        return UsageRestrictions(
            max_consecutive_days=values.get(UsageRuleType.MAX_CONSECUTIVE_DAYS),
            advance_notice_days=values.get(UsageRuleType.ADVANCE_NOTICE),
            blackout_periods=values.get(UsageRuleType.BLACKOUT_PERIOD, ()),
            minimum_increment=values.get(UsageRuleType.MINIMUM_INCREMENT),
        )

    def get_applicable_accrual_rule(self) -> AccrualRule:
        return self.accrual_rules[0]

    def get_applicable_accrual_rate(self) -> float:
        return self.get_applicable_accrual_rule().accrual_rate

    @property
    def specificity(self) -> int:
        return len(self.eligibility_rules) + len(self.applicable_groups)

    def revise(self, **changes: Any) -> LeavePolicy:
        """Return the next version of this policy with ``changes`` applied."""
        changes.setdefault("version", self.version + 1)
        return replace(self, **changes)

    def to_record(self) -> dict[str, Any]:
        return {
            "policy_id": self.policy_id,
            "name": self.name,
            "leave_type_id": self.leave_type_id,
            "effective_date": iso(self.effective_date),
            "end_date": iso(self.end_date),
            "accrual_rules": [r.to_record() for r in self.accrual_rules],
            "eligibility_rules": [r.to_record() for r in self.eligibility_rules],
            "usage_rules": [r.to_record() for r in self.usage_rules],
            "applicable_groups": list(self.applicable_groups),
            "is_active": self.is_active,
            "description": self.description,
            "version": self.version,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> LeavePolicy:
        return cls(
            policy_id=record["policy_id"],
            name=record["name"],
            leave_type_id=record["leave_type_id"],
            effective_date=parse_date("effective_date", record["effective_date"]),
            end_date=parse_date("end_date", record.get("end_date")),
            accrual_rules=tuple(AccrualRule.from_record(r) for r in record["accrual_rules"]),
            eligibility_rules=tuple(
                EligibilityRule.from_record(r) for r in record.get("eligibility_rules", ())
            ),
            usage_rules=tuple(UsageRule.from_record(r) for r in record.get("usage_rules", ())),
            applicable_groups=tuple(record.get("applicable_groups", ())),
            is_active=record.get("is_active", True),
            description=record.get("description"),
            version=record.get("version", 1),
        )


# ---------------------------------------------------------------------------
# Overtime policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OvertimeSplit:
    """Worked hours split into pay categories."""

    regular_hours: float
    overtime_hours: float
    double_time_hours: float = 0.0

    @property
    def total_hours(self) -> float:
        return self.regular_hours + self.overtime_hours + self.double_time_hours

    def rounded(self) -> OvertimeSplit:
        return OvertimeSplit(
            round(self.regular_hours, 2),
            round(self.overtime_hours, 2),
            round(self.double_time_hours, 2),
        )


@dataclass(frozen=True)
class OvertimePolicy:
    """Thresholds and multipliers that turn worked hours into pay categories.

    When ``double_time_threshold`` is set without a multiplier, the
    multiplier defaults to 2.0.
    """

    policy_id: str
    name: str
    effective_date: date
    daily_overtime_threshold: float = 8.0
    weekly_overtime_threshold: float = 40.0
    overtime_multiplier: float = 1.5
    double_time_threshold: float | None = None
    double_time_multiplier: float | None = None
    applicable_groups: tuple[str, ...] = ()
    end_date: date | None = None
    is_active: bool = True
    description: str | None = None

    def __post_init__(self) -> None:
        require_text("policy_id", self.policy_id)
        require_text("name", self.name, max_length=NAME_MAX_LENGTH)
        require_max_length("description", self.description, DESCRIPTION_MAX_LENGTH)
        object.__setattr__(self, "applicable_groups", tuple(self.applicable_groups))
        require_range("daily_overtime_threshold", self.daily_overtime_threshold, 0, 24)
        require_range("weekly_overtime_threshold", self.weekly_overtime_threshold, 0, 168)
        require_range("overtime_multiplier", self.overtime_multiplier, minimum=1)
        if self.double_time_threshold is not None:
            require_range("double_time_threshold", self.double_time_threshold, 0, 24)
            if self.double_time_threshold <= self.daily_overtime_threshold:
                raise SchemaValidationError(
                    "double_time_threshold must exceed daily_overtime_threshold",
                    field="double_time_threshold",
                )
            if self.double_time_multiplier is None:
                object.__setattr__(self, "double_time_multiplier", 2.0)
        if self.double_time_multiplier is not None:
            require_range("double_time_multiplier", self.double_time_multiplier, minimum=1)
            if self.double_time_multiplier <= self.overtime_multiplier:
                raise SchemaValidationError(
                    "double_time_multiplier must exceed overtime_multiplier",
                    field="double_time_multiplier",
                )
        _validate_window(self.effective_date, self.end_date)

    def is_effective(self, on: date) -> bool:
        return self.is_active and _in_window(self.effective_date, self.end_date, on)

    def check_group_applicability(self, group: EmployeeGroup) -> bool:
        return matches_applicable_groups(self.applicable_groups, group)

    def is_applicable_to_employee(self, group: EmployeeGroup, as_of: date) -> bool:
        return self.is_effective(as_of) and self.check_group_applicability(group)

    def split_hours(self, daily_hours: float, weekly_hours: float | None = None) -> OvertimeSplit:
        """Unrounded split of one day's hours.

        ``weekly_hours`` is the week's running total including this day;
        weekly overtime acts as a floor on the day's overtime, never on top
        of it, and double-time is never counted as overtime.
        """
        daily = max(0.0, daily_hours)
        double_time = 0.0
        overtime_ceiling = daily
        if self.double_time_threshold is not None and daily > self.double_time_threshold:
            double_time = daily - self.double_time_threshold
            overtime_ceiling = self.double_time_threshold
        daily_overtime = max(0.0, overtime_ceiling - self.daily_overtime_threshold)

        weekly_overtime = 0.0
        if weekly_hours is not None:
            weekly_overtime = max(
                0.0, weekly_hours - self.weekly_overtime_threshold - double_time
            )

        overtime = min(max(daily_overtime, weekly_overtime), daily - double_time)
        regular = max(0.0, daily - overtime - double_time)
        return OvertimeSplit(regular, overtime, double_time)

    def calculate_overtime_hours(
        self, daily_hours: float, weekly_hours: float | None = None
    ) -> OvertimeSplit:
        """Rounded split of one day's hours."""
        return self.split_hours(daily_hours, weekly_hours).rounded()

    def to_record(self) -> dict[str, Any]:
        return {
            "policy_id": self.policy_id,
            "name": self.name,
            "effective_date": iso(self.effective_date),
            "end_date": iso(self.end_date),
            "daily_overtime_threshold": self.daily_overtime_threshold,
            "weekly_overtime_threshold": self.weekly_overtime_threshold,
            "overtime_multiplier": self.overtime_multiplier,
            "double_time_threshold": self.double_time_threshold,
            "double_time_multiplier": self.double_time_multiplier,
            "applicable_groups": list(self.applicable_groups),
            "is_active": self.is_active,
            "description": self.description,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> OvertimePolicy:
        return cls(
            policy_id=record["policy_id"],
            name=record["name"],
            effective_date=parse_date("effective_date", record["effective_date"]),
            end_date=parse_date("end_date", record.get("end_date")),
            daily_overtime_threshold=record.get("daily_overtime_threshold", 8.0),
            weekly_overtime_threshold=record.get("weekly_overtime_threshold", 40.0),
            overtime_multiplier=record.get("overtime_multiplier", 1.5),
            double_time_threshold=record.get("double_time_threshold"),
            double_time_multiplier=record.get("double_time_multiplier"),
            applicable_groups=tuple(record.get("applicable_groups", ())),
            is_active=record.get("is_active", True),
            description=record.get("description"),
        )
