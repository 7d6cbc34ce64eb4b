"""
Flightcheck hooks module.

Discovery, concurrent execution and aggregation of the check hooks run for
a job.
"""

from .aggregator import aggregate
from .base import Hook, HookFactory, hook_name
from .discovery import HookRegistry, discover, find_hook_files, import_hook
from .runner import FailurePolicy, HookRunner

__all__ = [
    "Hook",
    "HookFactory",
    "HookRegistry",
    "HookRunner",
    "FailurePolicy",
    "aggregate",
    "discover",
    "find_hook_files",
    "hook_name",
    "import_hook",
]
