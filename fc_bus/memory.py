"""
In-process bus.

MemoryBroker routes messages between MemoryConnection instances living in
the same event loop. It is used for local runs and tests, where the
worker and its peers share one process.
"""

import asyncio
import json
import logging
from typing import Any

from fc_common.errors import BusConnectionError, BusError

from .connection import Connection, Message

logger = logging.getLogger(__name__)


class MemoryBroker:
    """
    Routes messages by destination name.

    Messages for a name nobody is connected as are held until a connection
    with that name attaches.
    """

    def __init__(self):
        self._connections: dict[str, "MemoryConnection"] = {}
        self._pending: dict[str, list[Message]] = {}
        self._tasks: set[asyncio.Task] = set()
        self.history: list[Message] = []

    def attach(self, connection: "MemoryConnection") -> None:
        """
        Register a connection under its name and deliver held messages.

        Raises:
            BusConnectionError: If the name is already taken
        """
        existing = self._connections.get(connection.name)
        if existing is not None and existing is not connection:
            raise BusConnectionError(f"Name already connected: {connection.name}")

        self._connections[connection.name] = connection
        for message in self._pending.pop(connection.name, []):
            self._track(connection.dispatch(message))

    def detach(self, connection: "MemoryConnection") -> None:
        if self._connections.get(connection.name) is connection:
            del self._connections[connection.name]

    def deliver(self, message: Message) -> None:
        self.history.append(message)
        connection = self._connections.get(message.destination)
        if connection is None:
            logger.debug(f"Holding {message.event} for {message.destination}")
            self._pending.setdefault(message.destination, []).append(message)
            return
        self._track(connection.dispatch(message))

    def sent(self, event: str | None = None, destination: str | None = None) -> list[Message]:
        """Return delivered messages, optionally filtered by event and destination."""
        return [
            m
            for m in self.history
            if (event is None or m.event == event)
            and (destination is None or m.destination == destination)
        ]

    def _track(self, tasks: list[asyncio.Task]) -> None:
        for task in tasks:
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait until every handler scheduled so far, and those it schedules, finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class MemoryConnection(Connection):
    """A connection attached to a MemoryBroker."""

    def __init__(self, name: str, broker: MemoryBroker):
        super().__init__(name)
        self.broker = broker
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self, url: str = "memory://") -> None:
        if self._connected:
            return
        self.broker.attach(self)
        self._connected = True
        logger.debug(f"{self.name} connected to in-process bus")

    async def send(self, destination: str, event: str, payload: Any = None) -> None:
        if not self._connected:
            raise BusError(f"{self.name} is not connected")
        # Round trip through JSON so payloads behave as they would on the wire
        try:
            wire_payload = json.loads(json.dumps(payload))
        except (TypeError, ValueError) as e:
            raise BusError(f"Payload for {event} is not JSON serializable: {e}") from e

        self.broker.deliver(
            Message(
                source=self.name,
                destination=destination,
                event=event,
                payload=wire_payload,
            )
        )

    async def close(self) -> None:
        if not self._connected:
            return
        self.broker.detach(self)
        self._connected = False
