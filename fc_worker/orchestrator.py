"""
Flightcheck orchestrator.

Listens for cycle:start events on the bus, runs the hooks of its phase
against the received job and publishes the aggregate report as
cycle:finished. A run that fails publishes cycle:failed instead, so the
sender never waits on a dropped request.

Each cycle:start is handled in its own task with its own hook instances,
so overlapping jobs never share state.
"""

import asyncio
import logging
import os
from enum import Enum
from typing import Any

from fc_bus.connection import Connection
from fc_common.errors import BusConnectionError, BusError, InvalidJobError
from fc_common.models import AggregateReport, Job
from fc_hooks.aggregator import aggregate
from fc_hooks.base import HookFactory
from fc_hooks.discovery import HookRegistry, discover
from fc_hooks.runner import HookRunner

logger = logging.getLogger(__name__)

CYCLE_START = "cycle:start"
CYCLE_FINISHED = "cycle:finished"
CYCLE_FAILED = "cycle:failed"


class WorkerState(str, Enum):
    """Lifecycle states of the orchestrator."""

    IDLE = "idle"
    CONNECTING = "connecting"
    LISTENING = "listening"
    RUNNING = "running"
    FAILED = "failed"


def pluralize(count: int, word: str) -> str:
    """Return "1 error" / "2 errors"."""
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


class Flightcheck:
    """
    Bus worker running the hooks of one phase for every cycle:start.

    The connection is owned by the orchestrator: it is opened by start(),
    closed by stop(), and only the orchestrator registers handlers on it or
    sends through it.
    """

    def __init__(
        self,
        connection: Connection,
        hooks_root: str | os.PathLike | None = None,
        phase: str = "pre",
        destination: str = "houston",
        runner: HookRunner | None = None,
        registry: HookRegistry | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            connection: Bus connection, not yet connected
            hooks_root: Root of the hook tree searched on every run
                        (None to use only registered hooks)
            phase: Phase whose hooks are run
            destination: Bus name receiving cycle:finished / cycle:failed
            runner: Hook runner (default: HookRunner with default timeout)
            registry: Explicitly registered hooks, run after discovered ones
        """
        self.connection = connection
        self.hooks_root = hooks_root
        self.phase = phase.lower()
        self.destination = destination
        self.runner = runner or HookRunner()
        self.registry = registry

        self._state = WorkerState.IDLE
        self._handler_registered = False
        self._runs: set[asyncio.Task] = set()

    @property
    def state(self) -> WorkerState:
        if self._state is WorkerState.LISTENING and self._runs:
            return WorkerState.RUNNING
        return self._state

    @property
    def active_runs(self) -> int:
        return len(self._runs)

    async def start(self, url: str) -> None:
        """
        Connect to the bus and start listening for cycle:start.

        Args:
            url: Bus endpoint address

        Raises:
            BusConnectionError: If the handshake fails (fatal to the worker)
        """
        if self._state in (WorkerState.CONNECTING, WorkerState.LISTENING):
            logger.warning("Flightcheck already started")
            return

        self._state = WorkerState.CONNECTING
        try:
            await self.connection.connect(url)
        except BusConnectionError:
            self._state = WorkerState.FAILED
            raise
        except Exception as e:
            self._state = WorkerState.FAILED
            raise BusConnectionError(f"Cannot connect to bus at {url}: {e}") from e

        if not self._handler_registered:
            self.connection.on(CYCLE_START, self._on_cycle_start)
            self._handler_registered = True

        self._state = WorkerState.LISTENING
        logger.info(f"Flightcheck running ({self.phase} hooks)")

    async def stop(self) -> None:
        """Cancel in-flight runs and close the bus connection."""
        if self._state is WorkerState.IDLE:
            return

        logger.info("Stopping flightcheck...")
        for task in list(self._runs):
            task.cancel()
        if self._runs:
            await asyncio.gather(*list(self._runs), return_exceptions=True)

        await self.connection.close()
        self._state = WorkerState.IDLE
        logger.info("Flightcheck stopped")

    async def wait_idle(self) -> None:
        """Wait until every in-flight run has finished."""
        while self._runs:
            await asyncio.gather(*list(self._runs), return_exceptions=True)

    def _on_cycle_start(self, payload: Any) -> asyncio.Task:
        task = asyncio.ensure_future(self.handle_cycle_start(payload))
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return task

    def resolve_hooks(self) -> list[HookFactory]:
        """
        Resolve the hooks for this worker's phase.

        The hook tree is searched again on every call.

        Raises:
            DiscoveryError: If the hook tree cannot be read
        """
        hooks: list[HookFactory] = []
        if self.hooks_root is not None:
            hooks.extend(discover(self.hooks_root, self.phase))
        if self.registry is not None:
            hooks.extend(self.registry.hooks_for(self.phase))
        return hooks

    async def run(self, job: Job) -> AggregateReport:
        """
        Run every hook of the phase against a job.

        Discovery, execution and aggregation happen strictly in sequence.

        Raises:
            DiscoveryError: If the hooks cannot be resolved
        """
        hooks = self.resolve_hooks()
        logger.debug(f"Running {pluralize(len(hooks), 'hook')} on {job.project_name}")

        results = await self.runner.run_all(hooks, job)
        return aggregate(results, job)

    async def handle_cycle_start(self, payload: Any) -> AggregateReport | None:
        """
        Handle one cycle:start event.

        Per-run failures are logged and answered with cycle:failed; they
        never propagate to the bus connection.

        Returns:
            The published report, or None when the run failed
        """
        try:
            job = Job.from_dict(payload)
        except InvalidJobError as e:
            logger.warning(f"Ignoring invalid {CYCLE_START} payload: {e}")
            return None

        logger.debug(f"Starting flightcheck on {job.project_name}")

        try:
            report = await self.run(job)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Error running tests for {job.project_name}: {e}", exc_info=True)
            await self._publish_failure(job, str(e))
            return None

        try:
            await self.connection.send(self.destination, CYCLE_FINISHED, report.to_dict())
        except BusError as e:
            logger.error(f"Could not publish report for {job.project_name}: {e}")
            await self._publish_failure(job, f"Could not publish report: {e}")
            return None

        logger.debug(f"Found {pluralize(report.errors, 'error')} in {job.project_name}")
        return report

    async def _publish_failure(self, job: Job, error: str) -> None:
        payload = {
            "cycle": job.cycle_id,
            "project": job.project_id,
            "release": job.release_id,
            "phase": self.phase,
            "error": error,
        }
        try:
            await self.connection.send(self.destination, CYCLE_FAILED, payload)
        except BusError as e:
            logger.error(f"Could not publish failure for {job.project_name}: {e}")
