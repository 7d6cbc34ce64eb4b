"""
Flightcheck worker module.

The orchestrator that connects to the bus, runs the hooks of its phase for
every cycle:start and publishes the aggregate report.
"""

from .orchestrator import (
    CYCLE_FAILED,
    CYCLE_FINISHED,
    CYCLE_START,
    Flightcheck,
    WorkerState,
)

__all__ = ["Flightcheck", "WorkerState", "CYCLE_START", "CYCLE_FINISHED", "CYCLE_FAILED"]
