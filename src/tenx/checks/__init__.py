"""Validators and formatters run around patch application."""

import logging
from typing import TYPE_CHECKING

from tenx.checks.base import Check, Runnable
from tenx.checks.python import PythonCompile
from tenx.checks.rust import (
    CargoFormatter,
    RustCargoCheck,
    RustCargoClippy,
    RustCargoTest,
    discover_workspace,
)

if TYPE_CHECKING:
    from tenx.config import Config
    from tenx.session import Session

logger = logging.getLogger(__name__)

FORMATTERS: list[Check] = [CargoFormatter()]
VALIDATORS: list[Check] = [RustCargoCheck(), RustCargoTest(), RustCargoClippy(), PythonCompile()]


def active_checks(config: "Config", session: "Session", checks: list[Check]) -> list[Check]:
    """Filter *checks* to those configured, relevant and runnable."""
    active = []
    for check in checks:
        if not check.is_configured(config) or not check.is_relevant(config, session):
            continue
        runnable = check.runnable()
        if not runnable.ok:
            logger.warning("skipping %s: %s", check.name, runnable.reason)
            continue
        active.append(check)
    return active


def run_checks(config: "Config", session: "Session", checks: list[Check]) -> list[str]:
    """Run each active check in order, stopping at the first failure.

    Returns:
        Names of the checks that ran

    Raises:
        CheckError: From the first failing check
    """
    ran = []
    for check in active_checks(config, session, checks):
        logger.info("running %s", check.name)
        check.run(config, session)
        ran.append(check.name)
    return ran


def run_formatters(config: "Config", session: "Session") -> list[str]:
    return run_checks(config, session, FORMATTERS)


def run_validators(config: "Config", session: "Session") -> list[str]:
    return run_checks(config, session, VALIDATORS)


__all__ = [
    "Check",
    "FORMATTERS",
    "Runnable",
    "VALIDATORS",
    "active_checks",
    "discover_workspace",
    "run_checks",
    "run_formatters",
    "run_validators",
]
