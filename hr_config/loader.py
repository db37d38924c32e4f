"""
Configuration Loader (``hr_config.loader``).

Responsibility
--------------
Loads the YAML files of one configuration set and parses them into the
frozen ``hr_config.schema`` settings and the domain policy objects.  This
is internal tooling; the runtime entry point is
``hr_config.get_active_config()``.

Architecture position
---------------------
**Config layer** -- sits above ``hr_kernel`` and ``hr_engines``.  The
kernel never imports from here.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` / ``KeyError`` (or the domain's
  ``SchemaValidationError``) with descriptive messages; required keys
  have no silent defaults.
* ``compute_checksum`` is a deterministic SHA-256 over the canonical JSON
  of everything loaded, so identical files give identical checksums.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid policy  -> ``SchemaValidationError`` from the domain object.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from hr_config.schema import HRConfiguration, HRSettings
from hr_kernel.domain.policy import LeavePolicy, OvertimePolicy

ROOT_FILE = "root.yaml"
LEAVE_POLICIES_FILE = "leave_policies.yaml"
OVERTIME_POLICIES_FILE = "overtime_policies.yaml"

# Effective date of the settings-level default overtime policy.
_DEFAULT_OVERTIME_EFFECTIVE = date(2000, 1, 1)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_leave_policy(data: dict[str, Any]) -> LeavePolicy:
    """Parse a ``LeavePolicy``; ``accrual_rules`` is required."""
    if "accrual_rules" not in data:
        raise KeyError(f"Leave policy {data.get('policy_id')!r} has no accrual_rules")
    return LeavePolicy.from_record(data)


def parse_overtime_policy(data: dict[str, Any]) -> OvertimePolicy:
    return OvertimePolicy.from_record(data)


def parse_default_overtime(data: dict[str, Any] | None) -> OvertimePolicy | None:
    if not data:
        return None
    return OvertimePolicy(
        policy_id=data.get("policy_id", "default-overtime"),
        name=data.get("name", "Default overtime"),
        effective_date=parse_date(data.get("effective_date", _DEFAULT_OVERTIME_EFFECTIVE)),
        daily_overtime_threshold=data.get("daily_overtime_threshold", 8.0),
        weekly_overtime_threshold=data.get("weekly_overtime_threshold", 40.0),
        overtime_multiplier=data.get("overtime_multiplier", 1.5),
        double_time_threshold=data.get("double_time_threshold"),
        double_time_multiplier=data.get("double_time_multiplier"),
    )


def parse_settings(data: dict[str, Any]) -> HRSettings:
    defaults = HRSettings()
    return HRSettings(
        database_url=data.get("database_url", defaults.database_url),
        log_level=str(data.get("log_level", defaults.log_level)).upper(),
        week_starts_on=data.get("week_starts_on", defaults.week_starts_on),
        overtime_policy_boundary=data.get(
            "overtime_policy_boundary", defaults.overtime_policy_boundary
        ),
        expected_leave_types=tuple(data.get("expected_leave_types", ())),
        default_overtime=parse_default_overtime(data.get("default_overtime")),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_configuration_set(set_dir: Path) -> HRConfiguration:
    """
    Load ``root.yaml`` and the optional policy files of one set.

    Raises:
        FileNotFoundError: if ``root.yaml`` is missing.
    """
    root = load_yaml_file(set_dir / ROOT_FILE)
    leave_file = set_dir / LEAVE_POLICIES_FILE
    overtime_file = set_dir / OVERTIME_POLICIES_FILE
    leave_data = load_yaml_file(leave_file) if leave_file.exists() else {}
    overtime_data = load_yaml_file(overtime_file) if overtime_file.exists() else {}

    leave_policies = tuple(
        parse_leave_policy(p) for p in leave_data.get("leave_policies", ())
    )
    overtime_policies = tuple(
        parse_overtime_policy(p) for p in overtime_data.get("overtime_policies", ())
    )

    return HRConfiguration(
        config_id=root.get("config_id", set_dir.name),
        version=int(root.get("version", 1)),
        settings=parse_settings(root.get("settings", {})),
        leave_policies=leave_policies,
        overtime_policies=overtime_policies,
        checksum=compute_checksum(
            {"root": root, "leave": leave_data, "overtime": overtime_data}
        ),
        source_dir=set_dir,
    )
