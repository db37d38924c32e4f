"""
hr_config -- single public entrypoint for HR configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables.

Architecture position:
    Configuration -- YAML-driven settings and policy sets.  This package
    sits above ``hr_kernel`` and ``hr_engines``; the kernel MUST NEVER
    import from ``hr_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_active_config()``, the only reader of ``HR_DATABASE_URL``.
    - A set whose leave policies conflict is rejected.
    - Same YAML files always produce the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- unknown configuration set.
    - ``ValueError`` -- conflicting leave policies.
    - ``SchemaValidationError`` -- a policy violates a domain invariant.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``HR_CONFIG_TRACE`` log entry with the config id, version, checksum
    and policy counts.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from sqlalchemy.orm import Session

from hr_config.loader import load_configuration_set
from hr_config.schema import HRConfiguration, HRSettings
from hr_kernel.domain.clock import Clock
from hr_kernel.logging_config import configure_logging, get_logger
from hr_kernel.services.leave_request_service import LeaveRequestService
from hr_kernel.services.time_tracking_service import TimeTrackingService

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DATABASE_URL_ENV = "HR_DATABASE_URL"


def get_active_config(
    set_name: str = "default",
    config_dir: Path | None = None,
) -> HRConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        set_name: Name of the configuration set directory.
        config_dir: Override path to the configuration sets directory.
            Defaults to hr_config/sets/.

    Raises:
        FileNotFoundError: If the set does not exist.
        ValueError: If the set's leave policies conflict.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    set_dir = sets_dir / set_name
    if not (set_dir / "root.yaml").exists():
        raise FileNotFoundError(f"Configuration set not found: {set_dir}")

    config = load_configuration_set(set_dir)

    report = config.validate()
    if not report.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {c}" for c in report.conflicts)
        )

    override = os.environ.get(DATABASE_URL_ENV)
    if override:
        config = replace(config, settings=replace(config.settings, database_url=override))

    _logger.info(
        "HR_CONFIG_TRACE",
        extra={
            "trace_type": "HR_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "leave_policy_count": len(config.leave_policies),
            "overtime_policy_count": len(config.overtime_policies),
            "database_url_overridden": bool(override),
            "gaps": list(report.gaps),
            "missing_leave_types": list(report.missing_leave_types),
        },
    )
    return config


def bootstrap(config: HRConfiguration) -> None:
    """Configure logging and the database engine from ``config``."""
    from hr_kernel.db.engine import create_tables, init_engine_from_url

    configure_logging(level=config.settings.log_level)
    init_engine_from_url(config.settings.database_url)
    create_tables()


def build_time_tracking_service(
    session: Session,
    config: HRConfiguration,
    clock: Clock | None = None,
) -> TimeTrackingService:
    """TimeTrackingService wired with the set's overtime policies and week rules."""
    settings = config.settings
    return TimeTrackingService(
        session,
        clock,
        overtime_policies=config.overtime_policies,
        default_policy=settings.default_overtime,
        week_starts_on=settings.week_start_index,
        boundary_mode=settings.overtime_policy_boundary,
    )


def build_leave_request_service(
    session: Session,
    config: HRConfiguration,
    clock: Clock | None = None,
) -> LeaveRequestService:
    """LeaveRequestService wired with the set's leave policies."""
    return LeaveRequestService(session, clock, leave_policies=config.leave_policies)


__all__ = [
    "HRConfiguration",
    "HRSettings",
    "bootstrap",
    "build_leave_request_service",
    "build_time_tracking_service",
    "get_active_config",
]
