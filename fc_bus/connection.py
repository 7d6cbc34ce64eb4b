"""
Abstract bus connection interface.

A connection is an addressable pub/sub client: it is known on the bus by a
name, receives the events sent to that name and can send events to any
other name. Implementations only provide the transport; handler
registration and dispatch are shared.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Called with the event payload; may be a plain function or a coroutine function
Handler = Callable[[Any], Any]


@dataclass(frozen=True)
class Message:
    """A single event travelling over the bus."""

    source: str | None
    destination: str
    event: str
    payload: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Convert message to dictionary format (for JSON serialization)."""
        return {
            "source": self.source,
            "destination": self.destination,
            "event": self.event,
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Message":
        """
        Create message from dictionary format.

        Raises:
            ValueError: If the destination or event is missing
        """
        if not isinstance(data, Mapping):
            raise ValueError("Message must be an object")
        destination = data.get("destination")
        event = data.get("event")
        if not isinstance(destination, str) or not destination:
            raise ValueError("Message requires a destination")
        if not isinstance(event, str) or not event:
            raise ValueError("Message requires an event")
        return cls(
            source=data.get("source"),
            destination=destination,
            event=event,
            payload=data.get("payload"),
        )


class Connection(ABC):
    """
    Abstract base class for bus connections.

    Implementations must call dispatch() on the event loop for every message
    addressed to this connection's name.
    """

    def __init__(self, name: str):
        """
        Initialize the connection.

        Args:
            name: Address of this connection on the bus
        """
        self.name = name
        self._handlers: dict[str, list[Handler]] = {}

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether the handshake completed and the connection is open."""

    @abstractmethod
    async def connect(self, url: str) -> None:
        """
        Open the connection and start receiving events.

        Args:
            url: Bus endpoint address

        Raises:
            BusConnectionError: If the handshake fails
        """

    @abstractmethod
    async def send(self, destination: str, event: str, payload: Any = None) -> None:
        """
        Send an event to another connection on the bus.

        Args:
            destination: Name of the receiving connection
            event: Event name, e.g. "cycle:finished"
            payload: JSON serializable payload

        Raises:
            BusError: If the connection is closed or the send is rejected
        """

    @abstractmethod
    async def close(self) -> None:
        """Stop receiving events and release the transport."""

    def on(self, event: str, handler: Handler) -> None:
        """Register a handler for an event addressed to this connection."""
        self._handlers.setdefault(event, []).append(handler)

    def handlers(self, event: str) -> tuple[Handler, ...]:
        return tuple(self._handlers.get(event, ()))

    def dispatch(self, message: Message) -> list[asyncio.Task]:
        """
        Invoke the handlers registered for a message's event.

        Must be called from the event loop. Handlers run as tasks so a slow
        handler never blocks delivery of the next message.

        Returns:
            The scheduled handler tasks
        """
        handlers = self._handlers.get(message.event, [])
        if not handlers:
            logger.debug(f"{self.name}: no handler for {message.event}")
            return []

        return [
            asyncio.ensure_future(self._invoke(handler, message))
            for handler in handlers
        ]

    async def _invoke(self, handler: Handler, message: Message) -> None:
        try:
            result = handler(message.payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(
                f"{self.name}: handler for {message.event} failed: {e}", exc_info=True
            )

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
