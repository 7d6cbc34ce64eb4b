"""
Hook runner.

Runs every hook of a phase concurrently against the same job and waits for
all of them to settle. Each hook is bounded by a timeout, and a failing hook
is isolated from the others: it becomes an outcome carrying the error
instead of aborting the batch.
"""

import asyncio
import inspect
import json
import logging
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from fc_common.errors import HookExecutionError, HookTimeoutError
from fc_common.models import HookOutcome, Job, PartialResult

from .base import HookFactory, hook_name

logger = logging.getLogger(__name__)

DEFAULT_HOOK_TIMEOUT = 300.0


class FailurePolicy(str, Enum):
    """How a failing hook affects the rest of the batch."""

    # A failing hook counts as one error, healthy hooks still report
    ISOLATE = "isolate"
    # Any failing hook empties the whole batch (legacy behaviour)
    COLLAPSE = "collapse"


def _coerce_result(name: str, raw: Any) -> PartialResult:
    if isinstance(raw, PartialResult):
        result = raw
    elif isinstance(raw, Mapping):
        try:
            result = PartialResult.from_dict(raw)
        except ValueError as e:
            raise HookExecutionError(name, f"invalid result: {e}") from e
    else:
        raise HookExecutionError(name, f"invalid result type {type(raw).__name__}")

    # Results end up in the published JSON report
    try:
        json.dumps(result.to_dict())
    except (TypeError, ValueError) as e:
        raise HookExecutionError(name, f"information is not JSON serializable: {e}") from e
    return result


class HookRunner:
    """Execute hooks concurrently with a fan-in barrier."""

    def __init__(
        self,
        timeout: float | None = DEFAULT_HOOK_TIMEOUT,
        policy: FailurePolicy = FailurePolicy.ISOLATE,
    ):
        """
        Initialize the hook runner.

        Args:
            timeout: Seconds each hook may take before it is failed
                     (None disables the limit)
            policy: Failure policy for the batch
        """
        self.timeout = timeout
        self.policy = FailurePolicy(policy)

    async def run_all(
        self, hooks: Sequence[HookFactory], job: Job
    ) -> list[PartialResult]:
        """
        Run hooks and return their partial results.

        Args:
            hooks: Hook factories, each called with the job
            job: The job shared by every hook

        Returns:
            One partial result per hook, in hook order. Under the isolate
            policy a failed hook contributes one error and a note keyed
            "<hook>.error". Under the collapse policy any failure yields
            an empty list.
        """
        outcomes = await self.run_outcomes(hooks, job)

        failed = [outcome for outcome in outcomes if not outcome.ok]
        if failed and self.policy is FailurePolicy.COLLAPSE:
            for outcome in failed:
                logger.error(f"Hook {outcome.hook} failed: {outcome.error}")
            logger.error(
                f"Discarding results of {len(outcomes)} hooks after "
                f"{len(failed)} failed"
            )
            return []

        return [outcome.to_partial() for outcome in outcomes]

    async def run_outcomes(
        self, hooks: Sequence[HookFactory], job: Job
    ) -> list[HookOutcome]:
        """
        Run hooks concurrently and return one tagged outcome per hook.

        Never raises for hook failures; waits until every hook settles.
        """
        if not hooks:
            return []
        return list(
            await asyncio.gather(*(self._run_single(factory, job) for factory in hooks))
        )

    async def _run_single(self, factory: HookFactory, job: Job) -> HookOutcome:
        name = hook_name(factory)
        try:
            result = await self._execute(name, factory, job)
        except HookExecutionError as e:
            logger.warning(str(e))
            return HookOutcome(hook=name, error=e.reason)
        except asyncio.CancelledError:
            # Only a cancellation of the run itself propagates
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            logger.warning(f"Hook {name} was cancelled")
            return HookOutcome(hook=name, error="cancelled")
        except Exception as e:
            logger.error(f"Hook {name} raised: {e}", exc_info=True)
            return HookOutcome(hook=name, error=f"{type(e).__name__}: {e}")

        logger.debug(
            f"Hook {name} finished with {result.errors} errors, "
            f"{result.warnings} warnings"
        )
        return HookOutcome(hook=name, result=result)

    async def _execute(self, name: str, factory: HookFactory, job: Job) -> PartialResult:
        try:
            hook = factory(job)
        except Exception as e:
            raise HookExecutionError(name, f"could not be constructed: {e}") from e

        run = getattr(hook, "run", None)
        if run is None:
            raise HookExecutionError(name, "has no run() method")

        if inspect.iscoroutinefunction(run):
            pending = run()
        else:
            # Plain run() methods would block the event loop
            pending = asyncio.to_thread(run)

        try:
            raw = await asyncio.wait_for(pending, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise HookTimeoutError(name, self.timeout) from e

        return _coerce_result(name, raw)
