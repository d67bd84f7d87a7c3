import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

from app.interfaces.tree_store import Unsubscribe

# Queued after the final payload of an ended channel.
END_OF_STREAM = None


class ChannelPublisher:
    """Handle an upstream uses to publish to (or end) its channel."""

    def __init__(self, manager: "RealtimeManager", channel: str):
        self._manager = manager
        self.channel = channel

    def __call__(self, payload: Any) -> None:
        self._manager.publish_nowait(self.channel, payload)

    def end(self, payload: Any = None) -> None:
        self._manager.end_nowait(self.channel, payload)


UpstreamOpener = Callable[[ChannelPublisher], Awaitable[Unsubscribe]]


class RealtimeManager:
    """Shares one upstream subscription per channel among many stream queues."""

    def __init__(self) -> None:
        self._connections: dict[str, set[asyncio.Queue[Optional[str]]]] = {}
        self._upstreams: dict[str, Unsubscribe] = {}
        self._latest: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def connect(self, channel: str, opener: UpstreamOpener) -> asyncio.Queue[Optional[str]]:
        queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        async with self._lock:
            self._connections.setdefault(channel, set()).add(queue)
            if channel in self._upstreams:
                latest = self._latest.get(channel)
                if latest is not None:
                    queue.put_nowait(latest)
                return queue
            try:
                unsubscribe = await opener(ChannelPublisher(self, channel))
            except Exception:
                self._drop(channel, queue)
                raise
            if channel in self._connections:
                self._upstreams[channel] = unsubscribe
            else:
                # Ended while opening.
                unsubscribe()
        return queue

    async def disconnect(self, channel: str, queue: asyncio.Queue[Optional[str]]) -> None:
        async with self._lock:
            self._drop(channel, queue)

    def _drop(self, channel: str, queue: asyncio.Queue[Optional[str]]) -> None:
        queues = self._connections.get(channel)
        if queues is None:
            return
        queues.discard(queue)
        if queues:
            return
        self._connections.pop(channel, None)
        self._latest.pop(channel, None)
        unsubscribe = self._upstreams.pop(channel, None)
        if unsubscribe is not None:
            unsubscribe()

    def publish_nowait(self, channel: str, payload: Any) -> None:
        queues = self._connections.get(channel)
        if not queues:
            return
        message = json.dumps(payload, separators=(",", ":"))
        self._latest[channel] = message
        for queue in list(queues):
            queue.put_nowait(message)

    def end_nowait(self, channel: str, payload: Any = None) -> None:
        """Send a final payload, close every queue on the channel and drop its upstream."""
        queues = self._connections.pop(channel, set())
        self._latest.pop(channel, None)
        message = json.dumps(payload, separators=(",", ":")) if payload is not None else None
        for queue in queues:
            if message is not None:
                queue.put_nowait(message)
            queue.put_nowait(END_OF_STREAM)
        unsubscribe = self._upstreams.pop(channel, None)
        if unsubscribe is not None:
            unsubscribe()

    def connection_count(self, channel: str) -> int:
        return len(self._connections.get(channel, set()))

    async def close(self) -> None:
        async with self._lock:
            for unsubscribe in self._upstreams.values():
                unsubscribe()
            self._upstreams.clear()
            self._connections.clear()
            self._latest.clear()
