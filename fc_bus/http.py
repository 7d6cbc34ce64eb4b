"""
HTTP bus client.

Talks to the broker app in fc_bus.broker:

- GET  {url}/health             handshake
- POST {url}/send/{destination} send an event
- GET  {url}/listen/{name}      Server-Sent Events stream of incoming events

requests is blocking, so every call runs in a worker thread. The listener
thread hands each received message back to the event loop for dispatch.
"""

import asyncio
import json
import logging
import threading
from typing import Any

import requests

from fc_common.errors import BusConnectionError, BusError

from .connection import Connection, Message

logger = logging.getLogger(__name__)


class HTTPConnection(Connection):
    """A bus connection backed by the HTTP broker."""

    def __init__(
        self,
        name: str,
        timeout: float = 10.0,
        read_timeout: float = 60.0,
        reconnect_delay: float = 1.0,
    ):
        """
        Initialize the connection.

        Args:
            name: Address of this connection on the bus
            timeout: Seconds to wait when connecting or sending
            read_timeout: Seconds without data (including keepalives) before
                          the event stream is reopened
            reconnect_delay: Seconds to wait before reopening a failed stream
        """
        super().__init__(name)
        self.timeout = timeout
        self.read_timeout = read_timeout
        self.reconnect_delay = reconnect_delay
        self.url: str | None = None

        self._loop: asyncio.AbstractEventLoop | None = None
        self._stopping = threading.Event()
        self._response: requests.Response | None = None
        self._listener: asyncio.Future | None = None
        self._session = requests.Session()

    @property
    def connected(self) -> bool:
        return self._listener is not None and not self._listener.done()

    async def connect(self, url: str) -> None:
        if self.connected:
            return

        self.url = url.rstrip("/")
        try:
            response = await asyncio.to_thread(
                self._session.get, f"{self.url}/health", timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise BusConnectionError(f"Cannot connect to bus at {self.url}: {e}") from e

        self._loop = asyncio.get_running_loop()
        self._stopping.clear()
        self._listener = asyncio.ensure_future(asyncio.to_thread(self._listen))
        logger.info(f"{self.name} connected to bus at {self.url}")

    async def send(self, destination: str, event: str, payload: Any = None) -> None:
        if self.url is None or self._stopping.is_set():
            raise BusError(f"{self.name} is not connected")

        message = Message(
            source=self.name, destination=destination, event=event, payload=payload
        )
        try:
            response = await asyncio.to_thread(
                self._session.post,
                f"{self.url}/send/{destination}",
                json=message.to_dict(),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise BusError(f"Failed to send {event} to {destination}: {e}") from e

    async def close(self) -> None:
        self._stopping.set()

        response = self._response
        if response is not None:
            # Unblocks the listener thread waiting on the stream
            response.close()

        if self._listener is not None:
            try:
                await self._listener
            except Exception as e:
                logger.warning(f"{self.name} listener stopped with error: {e}")
            self._listener = None

        self._session.close()
        logger.info(f"{self.name} disconnected from bus")

    def _listen(self) -> None:
        """Read the event stream until closed, reopening it after failures."""
        while not self._stopping.is_set():
            try:
                self._read_stream()
            except requests.exceptions.RequestException as e:
                if self._stopping.is_set():
                    return
                logger.warning(
                    f"{self.name} event stream interrupted: {e}, "
                    f"reconnecting in {self.reconnect_delay}s"
                )
            except (AttributeError, ValueError):
                # Raised by urllib3 when the response is closed from close()
                if self._stopping.is_set():
                    return
                raise
            self._stopping.wait(self.reconnect_delay)

    def _read_stream(self) -> None:
        with self._session.get(
            f"{self.url}/listen/{self.name}",
            stream=True,
            timeout=(self.timeout, self.read_timeout),
        ) as response:
            response.raise_for_status()
            self._response = response
            try:
                # Parse SSE format: "data: {...}\n\n", comments start with ":"
                for line in response.iter_lines(decode_unicode=True):
                    if self._stopping.is_set():
                        return
                    if line and line.startswith("data: "):
                        self._receive(line[6:])
            finally:
                self._response = None

    def _receive(self, data: str) -> None:
        try:
            message = Message.from_dict(json.loads(data))
        except ValueError as e:
            logger.warning(f"{self.name} dropped malformed message: {e}")
            return

        assert self._loop is not None
        self._loop.call_soon_threadsafe(self.dispatch, message)
