# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# THE BROADCAST HUB - LATEST SNAPSHOT FANOUT
# -----------------------------------------------------------------------------
# Responsibility: Cache the latest Snapshot payload and fan every new one out
# to all live subscribers.
#
# Threading model:
# - publish() is called from the compile worker thread
# - subscribe() is called on the event loop serving WebSocket connections
# - One lock covers the cache AND the subscriber registry, so a subscription
#   racing a publish sees either the old cache followed by the new value, or
#   the new cache alone. Never a gap, never a partial value.
#
# Each subscriber owns a bounded queue. When it is full the oldest pending
# value is dropped: a slow viewer skips intermediate Snapshots but always
# sees them in publish order, and the publisher never waits.
# -----------------------------------------------------------------------------

import asyncio
import threading
from collections.abc import Awaitable, Callable

from rich.console import Console

console = Console()

DEFAULT_CAPACITY = 100

_CLOSED = object()


class TransportError(Exception):
    """Raised when a payload cannot be written to a subscriber's transport."""

    pass


class Subscription:
    """
    One live subscriber: a bounded, ordered stream of payloads.

    Iterate with `async for payload in subscription`. Iteration ends once
    the subscription is closed.
    """

    def __init__(
        self, hub: "BroadcastHub", loop: asyncio.AbstractEventLoop, capacity: int
    ) -> None:
        self._hub = hub
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, payload) -> None:
        """Enqueue on the loop thread, evicting the oldest value when full."""
        if self._queue.full():
            self._queue.get_nowait()
            if payload is not _CLOSED:
                self.dropped += 1
                console.print(
                    f"[dim][HUB] Slow subscriber, dropped oldest payload ({self.dropped} total)[/dim]"
                )
        self._queue.put_nowait(payload)

    def deliver(self, payload: str) -> bool:
        """
        Hand a payload to this subscriber from any thread. Never blocks.

        Called by the hub with its lock held.

        Returns:
            False if the subscriber's event loop is gone.
        """
        if self._closed:
            return False
        try:
            self._loop.call_soon_threadsafe(self._offer, payload)
        except RuntimeError:
            if not self._loop.is_closed():
                raise
            # Loop shut down without closing the subscription
            self._closed = True
            return False
        return True

    async def get(self) -> str:
        """Wait for the next payload. Raises StopAsyncIteration once closed."""
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        payload = await self._queue.get()
        if payload is _CLOSED:
            self._closed = True
            raise StopAsyncIteration
        return payload

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> str:
        return await self.get()

    async def pump(self, send: Callable[[str], Awaitable[None]]) -> None:
        """
        Forward every payload to `send` until closed.

        Raises:
            TransportError: When `send` fails. Only this subscriber is affected.
        """
        async for payload in self:
            try:
                await send(payload)
            except Exception as e:
                raise TransportError(f"Subscriber write failed: {e}") from e

    def close(self) -> None:
        """Detach from the hub and end iteration. Idempotent."""
        self._hub.unsubscribe(self)
        if self._closed:
            return
        self._closed = True
        try:
            self._loop.call_soon_threadsafe(self._offer, _CLOSED)
        except RuntimeError:
            if not self._loop.is_closed():
                raise
            # Loop already gone; nothing left to wake


class BroadcastHub:
    """
    Latest-value cache plus fanout to every live subscriber.

    The cache is empty until the first publish; after that a new subscriber
    always receives the current value first.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._capacity = capacity
        self._lock = threading.Lock()
        self._latest: str | None = None
        self._subscribers: list[Subscription] = []

    @property
    def latest(self) -> str | None:
        with self._lock:
            return self._latest

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, payload: str) -> None:
        """Replace the cached payload and fan it out. Safe from any thread."""
        with self._lock:
            self._latest = payload
            subscribers = list(self._subscribers)
            dead = [sub for sub in subscribers if not sub.deliver(payload)]
            for sub in dead:
                self._subscribers.remove(sub)

        if dead:
            console.print(f"[yellow][HUB] Dropped {len(dead)} unreachable subscriber(s)[/yellow]")
        console.print(f"[dim][HUB] Published to {len(subscribers) - len(dead)} subscriber(s)[/dim]")

    def subscribe(self) -> Subscription:
        """
        Register a subscriber. Must be called from a running event loop.

        The cached payload, if any, is queued before the subscriber becomes
        visible to publish(), so it is always the first value received.
        """
        loop = asyncio.get_running_loop()
        subscription = Subscription(self, loop, self._capacity)
        with self._lock:
            if self._latest is not None:
                subscription._offer(self._latest)
            self._subscribers.append(subscription)
            count = len(self._subscribers)

        console.print(f"[cyan][HUB] Subscriber connected ({count} live)[/cyan]")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription not in self._subscribers:
                return
            self._subscribers.remove(subscription)
            count = len(self._subscribers)
        console.print(f"[cyan][HUB] Subscriber disconnected ({count} live)[/cyan]")
