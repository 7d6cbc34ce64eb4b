"""
Flightcheck bus module.

The Connection interface used by the worker, an in-process implementation
and an HTTP client for the broker app in fc_bus.broker.
"""

from .connection import Connection, Handler, Message
from .http import HTTPConnection
from .memory import MemoryBroker, MemoryConnection

__all__ = [
    "Connection",
    "Handler",
    "Message",
    "HTTPConnection",
    "MemoryBroker",
    "MemoryConnection",
]
