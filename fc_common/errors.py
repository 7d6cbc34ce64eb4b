"""
Error kinds raised by flightcheck components.

Per-run errors (discovery, hook execution, invalid jobs) are caught at the
run boundary by the worker. Connection errors are terminal for the process.
"""


class FlightcheckError(Exception):
    """Base class for all flightcheck errors."""


class DiscoveryError(FlightcheckError):
    """The hook root is missing or unreadable, or a hook module is invalid."""


class HookExecutionError(FlightcheckError):
    """A hook failed to construct, raised, or returned an invalid result."""

    def __init__(self, hook: str, message: str):
        super().__init__(f"Hook {hook} failed: {message}")
        self.hook = hook
        self.reason = message


class HookTimeoutError(HookExecutionError):
    """A hook did not settle within its time budget."""

    def __init__(self, hook: str, timeout: float):
        super().__init__(hook, f"timed out after {timeout}s")
        self.timeout = timeout


class InvalidJobError(FlightcheckError):
    """A cycle:start payload could not be parsed into a Job."""


class BusError(FlightcheckError):
    """A bus operation failed (send on a closed connection, rejected send)."""


class BusConnectionError(BusError):
    """The bus handshake failed."""


class ConfigError(FlightcheckError):
    """The configuration could not be loaded."""


class ConfigFrozenError(ConfigError):
    """A frozen configuration was modified."""
