"""
Unit tests for fc_worker.orchestrator.

Runs the Flightcheck worker against the in-process bus to test the
cycle:start -> cycle:finished contract, failure reporting and lifecycle
state transitions.
"""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from fc_bus.memory import MemoryBroker, MemoryConnection
from fc_common.errors import BusConnectionError, BusError
from fc_common.models import PartialResult
from fc_hooks.base import Hook
from fc_hooks.discovery import HookRegistry
from fc_hooks.runner import HookRunner
from fc_worker.orchestrator import (
    CYCLE_FAILED,
    CYCLE_FINISHED,
    CYCLE_START,
    Flightcheck,
    WorkerState,
    pluralize,
)


class TestFlightcheck:
    """Test suite for Flightcheck class."""

    @pytest.fixture
    def broker(self):
        return MemoryBroker()

    @pytest.fixture
    def worker(self, broker, fixture_hooks):
        """Create a worker on the in-process bus using the fixture hook tree."""
        return Flightcheck(
            connection=MemoryConnection("flightcheck", broker),
            hooks_root=fixture_hooks,
            runner=HookRunner(timeout=1.0),
        )

    @pytest.fixture
    def houston(self, broker):
        """The service that sends jobs and receives reports."""
        return MemoryConnection("houston", broker)

    @pytest.mark.asyncio
    async def test_end_to_end_report(self, worker, houston, broker, job_payload):
        """Test that cycle:start yields the merged cycle:finished report."""
        received = []
        houston.on(CYCLE_FINISHED, received.append)
        await houston.connect()
        await worker.start("memory://")

        await houston.send("flightcheck", CYCLE_START, job_payload)
        await broker.drain()

        assert received == [
            {
                "cycle": "c1",
                "project": "p1",
                "release": None,
                "errors": 1,
                "warnings": 2,
                "information": {"lintOk": False, "sizeKb": 500},
                "issues": [{"title": "Lint failed", "body": "..."}],
            }
        ]
        await worker.stop()

    @pytest.mark.asyncio
    async def test_report_is_sent_to_destination(self, broker, fixture_hooks, job_payload):
        """Test that the report is addressed to the configured destination."""
        worker = Flightcheck(
            connection=MemoryConnection("flightcheck", broker),
            hooks_root=fixture_hooks,
            destination="reports",
        )
        await worker.start("memory://")

        await worker.handle_cycle_start(job_payload)

        (message,) = broker.sent(event=CYCLE_FINISHED)
        assert message.destination == "reports"
        assert message.source == "flightcheck"
        await worker.stop()

    @pytest.mark.asyncio
    async def test_discovery_failure_publishes_cycle_failed(
        self, broker, tmp_path, job_payload
    ):
        """Test that a missing hook tree publishes cycle:failed and no report."""
        worker = Flightcheck(
            connection=MemoryConnection("flightcheck", broker),
            hooks_root=tmp_path / "missing",
        )
        await worker.start("memory://")

        report = await worker.handle_cycle_start(job_payload)

        assert report is None
        assert broker.sent(event=CYCLE_FINISHED) == []
        (failure,) = broker.sent(event=CYCLE_FAILED)
        assert failure.destination == "houston"
        assert failure.payload["cycle"] == "c1"
        assert failure.payload["project"] == "p1"
        assert failure.payload["release"] is None
        assert failure.payload["phase"] == "pre"
        assert "does not exist" in failure.payload["error"]
        assert worker.state is WorkerState.LISTENING
        await worker.stop()

    @pytest.mark.asyncio
    async def test_invalid_payload_is_dropped(self, worker, broker):
        """Test that a malformed cycle:start is logged and ignored."""
        await worker.start("memory://")

        report = await worker.handle_cycle_start({"repo": "x"})

        assert report is None
        assert broker.history == []
        await worker.stop()

    @pytest.mark.asyncio
    async def test_failing_hook_still_reports(self, broker, job_payload):
        """Test that healthy hooks contribute when another hook fails."""

        class Healthy(Hook):
            name = "healthy"

            async def run(self):
                return PartialResult(warnings=1, information={"ok": True})

        class Broken(Hook):
            name = "broken"

            async def run(self):
                raise RuntimeError("boom")

        registry = HookRegistry()
        registry.register("pre", Healthy)
        registry.register("pre", Broken)
        worker = Flightcheck(
            connection=MemoryConnection("flightcheck", broker), registry=registry
        )
        await worker.start("memory://")

        report = await worker.handle_cycle_start(job_payload)

        assert report.errors == 1
        assert report.warnings == 1
        assert report.information["ok"] is True
        assert "boom" in report.information["broken.error"]
        await worker.stop()

    @pytest.mark.asyncio
    async def test_unserializable_information_still_reports(self, broker, job_payload):
        """Test that a hook returning a date in its information does not drop the report."""

        class Healthy(Hook):
            name = "healthy"

            async def run(self):
                return PartialResult(warnings=1, information={"ok": True})

        class Dated(Hook):
            name = "dated"

            async def run(self):
                return {"information": {"checkedAt": date(2024, 1, 1)}}

        registry = HookRegistry()
        registry.register("pre", Healthy)
        registry.register("pre", Dated)
        worker = Flightcheck(
            connection=MemoryConnection("flightcheck", broker), registry=registry
        )
        await worker.start("memory://")

        await worker.handle_cycle_start(job_payload)

        assert broker.sent(event=CYCLE_FAILED) == []
        (message,) = broker.sent(event=CYCLE_FINISHED)
        assert message.payload["errors"] == 1
        assert message.payload["information"]["ok"] is True
        assert "not JSON serializable" in message.payload["information"]["dated.error"]
        await worker.stop()

    @pytest.mark.asyncio
    async def test_registered_hooks_run_after_discovered(
        self, broker, fixture_hooks, job_payload
    ):
        """Test that registry hooks are merged after the hook tree's hooks."""

        class Override(Hook):
            async def run(self):
                return {"information": {"sizeKb": 1}}

        registry = HookRegistry()
        registry.register("pre", Override)
        worker = Flightcheck(
            connection=MemoryConnection("flightcheck", broker),
            hooks_root=fixture_hooks,
            registry=registry,
        )

        hooks = worker.resolve_hooks()

        assert [h.__name__ for h in hooks] == ["Lint", "Size", "Override"]

    @pytest.mark.asyncio
    async def test_phase_selects_hooks(self, broker, fixture_hooks, job_payload):
        """Test that the worker's phase picks the matching modules."""
        worker = Flightcheck(
            connection=MemoryConnection("flightcheck", broker),
            hooks_root=fixture_hooks,
            phase="POST",
        )
        await worker.start("memory://")

        report = await worker.handle_cycle_start(job_payload)

        assert worker.phase == "post"
        assert report.information == {"published": True}
        assert report.errors == 0
        await worker.stop()

    @pytest.mark.asyncio
    async def test_overlapping_jobs_are_isolated(self, broker, job_payload):
        """Test that concurrent cycle:start events produce independent reports."""

        class Echo(Hook):
            async def run(self):
                await asyncio.sleep(0.02)
                return {"information": {"cycle": self.job.cycle_id}}

        registry = HookRegistry()
        registry.register("pre", Echo)
        worker = Flightcheck(
            connection=MemoryConnection("flightcheck", broker), registry=registry
        )
        houston = MemoryConnection("houston", broker)
        received = []
        houston.on(CYCLE_FINISHED, received.append)
        await houston.connect()
        await worker.start("memory://")

        second = dict(job_payload, cycle={"_id": "c2"})
        await houston.send("flightcheck", CYCLE_START, job_payload)
        await houston.send("flightcheck", CYCLE_START, second)
        await asyncio.sleep(0)
        assert worker.state is WorkerState.RUNNING
        assert worker.active_runs == 2

        await broker.drain()

        assert sorted((r["cycle"], r["information"]["cycle"]) for r in received) == [
            ("c1", "c1"),
            ("c2", "c2"),
        ]
        assert worker.state is WorkerState.LISTENING
        await worker.stop()

    @pytest.mark.asyncio
    async def test_publish_failure_sends_cycle_failed(self, fixture_hooks, job_payload):
        """Test that a report which cannot be sent is answered with cycle:failed."""
        connection = AsyncMock()
        connection.on = MagicMock()
        connection.send = AsyncMock(side_effect=[BusError("closed"), None])
        worker = Flightcheck(connection=connection, hooks_root=fixture_hooks)
        await worker.start("memory://")

        assert await worker.handle_cycle_start(job_payload) is None
        assert connection.send.call_count == 2
        assert connection.send.call_args_list[0].args[1] == CYCLE_FINISHED
        destination, event, payload = connection.send.call_args_list[1].args
        assert (destination, event) == ("houston", CYCLE_FAILED)
        assert payload["cycle"] == "c1"
        assert "Could not publish report" in payload["error"]

    @pytest.mark.asyncio
    async def test_failure_to_publish_anything_is_logged(self, fixture_hooks, job_payload):
        """Test that a bus rejecting every send does not raise out of the handler."""
        connection = AsyncMock()
        connection.on = MagicMock()
        connection.send = AsyncMock(side_effect=BusError("closed"))
        worker = Flightcheck(connection=connection, hooks_root=fixture_hooks)
        await worker.start("memory://")

        assert await worker.handle_cycle_start(job_payload) is None
        assert connection.send.call_count == 2


class TestFlightcheckLifecycle:
    """Test suite for Flightcheck state transitions."""

    @pytest.fixture
    def connection(self):
        """Create a mock connection."""
        connection = AsyncMock()
        connection.on = MagicMock()
        return connection

    @pytest.mark.asyncio
    async def test_start_stop(self, connection):
        """Test IDLE -> LISTENING -> IDLE with connect and close."""
        worker = Flightcheck(connection=connection)
        assert worker.state is WorkerState.IDLE

        await worker.start("http://bus:2000")

        connection.connect.assert_called_once_with("http://bus:2000")
        connection.on.assert_called_once_with(CYCLE_START, worker._on_cycle_start)
        assert worker.state is WorkerState.LISTENING

        await worker.stop()

        connection.close.assert_called_once()
        assert worker.state is WorkerState.IDLE

    @pytest.mark.asyncio
    async def test_connection_failure(self, connection):
        """Test that a failed handshake moves to FAILED and raises."""
        connection.connect = AsyncMock(side_effect=BusConnectionError("refused"))
        worker = Flightcheck(connection=connection)

        with pytest.raises(BusConnectionError):
            await worker.start("http://bus:2000")

        assert worker.state is WorkerState.FAILED
        connection.on.assert_not_called()

    @pytest.mark.asyncio
    async def test_unexpected_connection_error_is_wrapped(self, connection):
        """Test that transport errors surface as BusConnectionError."""
        connection.connect = AsyncMock(side_effect=OSError("no route"))
        worker = Flightcheck(connection=connection)

        with pytest.raises(BusConnectionError, match="no route"):
            await worker.start("http://bus:2000")

        assert worker.state is WorkerState.FAILED

    @pytest.mark.asyncio
    async def test_start_twice_connects_once(self, connection):
        """Test that starting a running worker is a no-op."""
        worker = Flightcheck(connection=connection)

        await worker.start("http://bus:2000")
        await worker.start("http://bus:2000")

        connection.connect.assert_called_once()
        connection.on.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_cancels_in_flight_runs(self, job_payload):
        """Test that stop cancels hooks that are still running."""
        broker = MemoryBroker()
        started = asyncio.Event()

        class Forever(Hook):
            async def run(self):
                started.set()
                await asyncio.sleep(60)

        registry = HookRegistry()
        registry.register("pre", Forever)
        worker = Flightcheck(
            connection=MemoryConnection("flightcheck", broker),
            registry=registry,
            runner=HookRunner(timeout=None),
        )
        await worker.start("memory://")

        task = worker._on_cycle_start(job_payload)
        await asyncio.wait_for(started.wait(), timeout=1)
        await worker.stop()

        assert task.cancelled()
        assert worker.active_runs == 0
        assert broker.sent(event=CYCLE_FINISHED) == []


class TestPluralize:
    """Test suite for pluralize function."""

    @pytest.mark.parametrize(
        "count, expected", [(0, "0 errors"), (1, "1 error"), (2, "2 errors")]
    )
    def test_pluralize(self, count, expected):
        assert pluralize(count, "error") == expected
