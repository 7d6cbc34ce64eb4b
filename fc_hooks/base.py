"""
Base class for flightcheck hooks.

A hook is one independent check run against a job. Hooks live in a hook
tree, one subdirectory per hook, with one module per phase:

    hooks/
        appstream/pre.py
        desktop/pre.py

Example hook module:

    # hooks/appstream/pre.py
    from fc_hooks import Hook

    class Appstream(Hook):
        async def run(self):
            return {"errors": 0, "warnings": 1, "information": {"appstream": True}}
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from fc_common.models import Job, PartialResult

# Anything that builds a hook instance from a job: a Hook subclass or a factory
HookFactory = Callable[[Job], Any]


class Hook(ABC):
    """
    A single check run against a job.

    Subclasses implement run(), either as a coroutine or as a plain method
    (executed in a worker thread), returning a PartialResult or a mapping
    with the same fields.
    """

    # Display name; discovery fills it from the hook's directory when unset
    name: str = ""

    def __init__(self, job: Job):
        self.job = job

    @abstractmethod
    async def run(self) -> PartialResult | Mapping[str, Any]:
        """Run the check and return its partial result."""


def hook_name(factory: HookFactory) -> str:
    """Return the display name for a hook factory."""
    name = getattr(factory, "name", None)
    if isinstance(name, str) and name:
        return name
    func = getattr(factory, "func", None)  # functools.partial
    if func is not None:
        return hook_name(func)
    return getattr(factory, "__name__", repr(factory))
