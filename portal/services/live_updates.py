"""Live update fan-out and the server-sent-events stream built on it.

A ``LiveUpdateHub`` lives for the whole server process (one per topic,
created by ``create_app``). Listeners are plain callables invoked
synchronously on the event loop, so no locking is needed. A hub only
reaches clients connected to its own process; attach a
``RedisLiveUpdateBridge`` to relay events between processes.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable

import structlog
from fastapi.responses import StreamingResponse

logger = structlog.get_logger()

Listener = Callable[[dict], None]

KEEPALIVE_FRAME = ": keepalive\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    # Disable proxy buffering (nginx)
    "X-Accel-Buffering": "no",
}


class LiveUpdateHub:
    """In-process publish/subscribe registry for one topic."""

    def __init__(self, topic: str):
        self.topic = topic
        self._listeners: set[Listener] = set()
        self._relay: Callable[[dict], Awaitable[None]] | None = None

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that removes it again."""
        self._listeners.add(listener)

        def unsubscribe() -> None:
            self._listeners.discard(listener)

        return unsubscribe

    def publish(self, event: dict) -> int:
        """Deliver an event to every current listener.

        A failing listener is logged and skipped. Returns the number of
        listeners that accepted the event.
        """
        delivered = 0
        for listener in list(self._listeners):
            try:
                listener(event)
                delivered += 1
            except Exception:
                logger.exception("live_listener_error", topic=self.topic)
        return delivered

    def attach_relay(self, relay: Callable[[dict], Awaitable[None]] | None) -> None:
        """Route broadcasts through ``relay`` instead of publishing locally."""
        self._relay = relay

    async def broadcast(self, event: dict) -> None:
        """Publish an event produced by a write on this process.

        With a relay attached the event travels through it and comes back to
        every process (this one included) from the relay's listener. If the
        relay fails, local clients still get the event.
        """
        if self._relay is not None:
            try:
                await self._relay(event)
                return
            except Exception as e:
                logger.warning("live_relay_failed", topic=self.topic, error=str(e))
        self.publish(event)


class RedisLiveUpdateBridge:
    """Relays a hub's events over a Redis pub/sub channel."""

    def __init__(self, hub: LiveUpdateHub, redis_client, channel: str):
        self.hub = hub
        self.redis_client = redis_client
        self.channel = channel

    async def forward(self, event: dict) -> None:
        await self.redis_client.publish(self.channel, json.dumps(event))

    async def listen(self) -> None:
        """Feed channel messages into the local hub until cancelled."""
        pubsub = self.redis_client.pubsub()
        await pubsub.subscribe(self.channel)
        logger.info("live_bridge_started", channel=self.channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event = json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning("live_bridge_bad_payload", channel=self.channel)
                    continue
                self.hub.publish(event)
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
            logger.info("live_bridge_stopped", channel=self.channel)


def format_sse(event: dict) -> str:
    return f"data: {json.dumps(event)}\n\n"


async def event_stream(
    hub: LiveUpdateHub,
    connected: dict,
    *,
    keepalive_seconds: float,
    accept: Callable[[dict], bool] | None = None,
) -> AsyncIterator[str]:
    """Yield SSE frames for one client.

    The listener is registered before the ``connected`` frame is produced;
    events published earlier are never replayed. Closing the generator
    (the response is cancelled when the client disconnects) removes the
    listener.
    """
    queue: asyncio.Queue[dict] = asyncio.Queue()

    def _enqueue(event: dict) -> None:
        if accept is None or accept(event):
            queue.put_nowait(event)

    unsubscribe = hub.subscribe(_enqueue)
    logger.info("live_stream_opened", topic=hub.topic, listeners=hub.listener_count)
    try:
        yield format_sse(connected)
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield KEEPALIVE_FRAME
                continue
            yield format_sse(event)
    finally:
        unsubscribe()
        logger.info("live_stream_closed", topic=hub.topic, listeners=hub.listener_count)


def sse_response(stream: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(stream, media_type="text/event-stream", headers=SSE_HEADERS)
