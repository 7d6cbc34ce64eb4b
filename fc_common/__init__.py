"""
Flightcheck common module.

This module contains the shared domain models and error kinds used across
the flightcheck components (hooks, bus, worker, admin).

The common module has no dependencies on other fc_* modules, making it
a pure domain layer that can be imported by any component.
"""

from .errors import (
    BusConnectionError,
    BusError,
    ConfigError,
    ConfigFrozenError,
    DiscoveryError,
    FlightcheckError,
    HookExecutionError,
    HookTimeoutError,
    InvalidJobError,
)
from .models import AggregateReport, HookOutcome, Issue, Job, PartialResult

__all__ = [
    "AggregateReport",
    "HookOutcome",
    "Issue",
    "Job",
    "PartialResult",
    "FlightcheckError",
    "DiscoveryError",
    "HookExecutionError",
    "HookTimeoutError",
    "InvalidJobError",
    "BusError",
    "BusConnectionError",
    "ConfigError",
    "ConfigFrozenError",
]
