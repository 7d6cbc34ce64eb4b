"""
HTTP bus broker.

A small FastAPI app that routes events between named services. Each name
has a queue; senders POST events to a destination name and the service
connected under that name receives them over a Server-Sent Events stream.
Events sent before the receiver connects wait in its queue.
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse

from .connection import Message

logger = logging.getLogger(__name__)

# Seconds between keepalive comments on an idle stream
KEEPALIVE_INTERVAL = 15.0


class Broker:
    """Per-destination message queues."""

    def __init__(self):
        self._queues: dict[str, asyncio.Queue[Message]] = {}

    def queue(self, name: str) -> asyncio.Queue[Message]:
        if name not in self._queues:
            self._queues[name] = asyncio.Queue()
        return self._queues[name]

    async def publish(self, message: Message) -> None:
        await self.queue(message.destination).put(message)
        logger.debug(
            f"Queued {message.event} from {message.source} for {message.destination}"
        )

    def pending(self) -> dict[str, int]:
        """Number of queued messages per destination."""
        return {name: q.qsize() for name, q in self._queues.items()}


# Global instance (one broker per process)
broker = Broker()

app = FastAPI(title="flightcheck bus broker")


def get_broker() -> Broker:
    """
    Get the global broker instance.

    Returns:
        The process-wide Broker
    """
    return broker


async def stream_messages(
    name: str,
    b: Broker,
    request: Request | None = None,
    keepalive: float = KEEPALIVE_INTERVAL,
) -> AsyncGenerator[str, None]:
    """
    Stream the messages queued for a name as SSE.

    Args:
        name: Destination name to stream
        b: Broker holding the queues
        request: Optional FastAPI request to check for client disconnection
        keepalive: Seconds between keepalive comments while idle

    Yields:
        SSE-formatted event strings
    """
    queue = b.queue(name)
    logger.info(f"{name} is listening")

    while True:
        if request and await request.is_disconnected():
            logger.info(f"{name} disconnected")
            return

        try:
            message = await asyncio.wait_for(queue.get(), timeout=keepalive)
        except asyncio.TimeoutError:
            yield ": keepalive\n\n"
            continue

        yield f"data: {json.dumps(message.to_dict())}\n\n"


@app.post("/send/{destination}")
async def send_message(
    destination: str,
    body: dict[str, Any] = Body(...),
    b: Broker = Depends(get_broker),
) -> dict[str, str]:
    """
    Queue an event for a destination.

    Body: {"event": str, "payload": any, "source": str | null}

    Raises:
        HTTPException: 400 if the event is missing
    """
    try:
        message = Message.from_dict({**body, "destination": destination})
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await b.publish(message)
    return {"status": "queued"}


@app.get("/listen/{name}")
async def listen(
    name: str,
    request: Request,
    b: Broker = Depends(get_broker),
) -> StreamingResponse:
    """Stream events addressed to a name via Server-Sent Events (SSE)."""
    return StreamingResponse(
        stream_messages(name, b, request),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@app.get("/health")
async def health_check(b: Broker = Depends(get_broker)) -> dict[str, Any]:
    """
    Health check endpoint, used as the connection handshake.

    Returns:
        Dictionary with status="ok" and queued message counts
    """
    return {"status": "ok", "pending": b.pending()}
