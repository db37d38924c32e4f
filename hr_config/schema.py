"""
HR configuration schema.

Frozen dataclasses the loader produces.  Policies are not mirrored here:
they are parsed straight into ``LeavePolicy`` / ``OvertimePolicy`` so the
domain invariants apply to configuration as well.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from hr_engines.policy_application import (
    PolicyConfigurationReport,
    validate_policy_configuration,
)
from hr_engines.time_calculation import PolicyBoundaryMode
from hr_kernel.domain.dates import weekday_index
from hr_kernel.domain.policy import LeavePolicy, OvertimePolicy


@dataclass(frozen=True)
class HRSettings:
    """Runtime settings from ``root.yaml``."""

    database_url: str = "sqlite:///hr.db"
    log_level: str = "INFO"
    week_starts_on: str = "sunday"
    overtime_policy_boundary: PolicyBoundaryMode = PolicyBoundaryMode.WEEK_START
    expected_leave_types: tuple[str, ...] = ()
    default_overtime: OvertimePolicy | None = None

    def __post_init__(self) -> None:
        weekday_index(self.week_starts_on)
        object.__setattr__(
            self, "overtime_policy_boundary", PolicyBoundaryMode(self.overtime_policy_boundary)
        )
        object.__setattr__(self, "expected_leave_types", tuple(self.expected_leave_types))

    @property
    def week_start_index(self) -> int:
        return weekday_index(self.week_starts_on)


@dataclass(frozen=True)
class HRConfiguration:
    """A loaded configuration set -- the runtime configuration artifact."""

    config_id: str
    version: int
    settings: HRSettings
    leave_policies: tuple[LeavePolicy, ...]
    overtime_policies: tuple[OvertimePolicy, ...]
    checksum: str
    source_dir: Path | None = None

    def validate(self) -> PolicyConfigurationReport:
        return validate_policy_configuration(
            self.leave_policies, self.settings.expected_leave_types
        )

    def leave_policy(self, policy_id: str) -> LeavePolicy:
        for policy in self.leave_policies:
            if policy.policy_id == policy_id:
                return policy
        raise KeyError(f"Unknown leave policy: {policy_id}")
