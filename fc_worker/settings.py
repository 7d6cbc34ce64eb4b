"""
Validation of worker settings.

Values come from command-line flags or the configuration snapshot, where
environment variables arrive already parsed into numbers. Invalid values
fall back to the defaults with a warning instead of failing later inside a
run.
"""

import logging
from typing import Any

from fc_hooks.runner import DEFAULT_HOOK_TIMEOUT, FailurePolicy

logger = logging.getLogger(__name__)


def resolve_timeout(value: Any) -> float:
    """
    Validate a per-hook timeout.

    Args:
        value: Seconds as a number or numeric string, or None for the default

    Returns:
        A positive number of seconds
    """
    if value is None:
        return DEFAULT_HOOK_TIMEOUT
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid hook timeout={value}, using default {DEFAULT_HOOK_TIMEOUT}")
        return DEFAULT_HOOK_TIMEOUT
    if not timeout > 0 or timeout == float("inf"):
        logger.warning(f"Invalid hook timeout={timeout}, using default {DEFAULT_HOOK_TIMEOUT}")
        return DEFAULT_HOOK_TIMEOUT
    return timeout


def resolve_policy(value: Any) -> FailurePolicy:
    if value is None:
        return FailurePolicy.ISOLATE
    if isinstance(value, FailurePolicy):
        return value
    try:
        return FailurePolicy(str(value).lower())
    except ValueError:
        logger.warning(f"Unknown failure policy {value}, using isolate")
        return FailurePolicy.ISOLATE


def resolve_log_level(value: Any) -> int:
    """
    Validate a logging level given as a name ("debug") or a number (10).

    Unknown names fall back to INFO.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    level = logging.getLevelName(str(value).upper())
    if not isinstance(level, int):
        logger.warning(f"Unknown log level {value}, using INFO")
        return logging.INFO
    return level
