# =============================================================================
# CHASM BROADCAST HUB TESTS
# =============================================================================
# Tests for the latest-value cache and subscriber fanout.
# =============================================================================

import asyncio
import threading
from unittest.mock import MagicMock

import pytest


async def _next(subscription, timeout=1.0):
    return await asyncio.wait_for(subscription.get(), timeout)


class TestCache:
    """Test the latest-value cache."""

    def test_empty_until_first_publish(self):
        """No payload is cached before a compile completes."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub()
        assert hub.latest is None
        hub.publish("p1")
        assert hub.latest == "p1"

    def test_publish_without_subscribers(self):
        """Publishing to nobody only updates the cache."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub()
        hub.publish("p1")
        hub.publish("p2")
        assert hub.latest == "p2"
        assert hub.subscriber_count == 0

    def test_subscribe_requires_event_loop(self):
        """Subscribers live on an event loop."""
        from chasm.core.hub import BroadcastHub

        with pytest.raises(RuntimeError):
            BroadcastHub().subscribe()


class TestFanout:
    """Test delivery to subscribers."""

    @pytest.mark.asyncio
    async def test_cached_value_first(self):
        """A late subscriber sees the cached payload before new ones."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub()
        hub.publish("p1")
        subscription = hub.subscribe()
        hub.publish("p2")

        assert await _next(subscription) == "p1"
        assert await _next(subscription) == "p2"

    @pytest.mark.asyncio
    async def test_no_cache_waits_for_publish(self):
        """Without a cache the first value is the next publish."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub()
        subscription = hub.subscribe()
        hub.publish("p1")

        assert await _next(subscription) == "p1"

    @pytest.mark.asyncio
    async def test_every_subscriber_receives(self):
        """All live subscribers get each payload."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub()
        first, second = hub.subscribe(), hub.subscribe()
        hub.publish("p1")

        assert await _next(first) == "p1"
        assert await _next(second) == "p1"
        assert hub.subscriber_count == 2

    @pytest.mark.asyncio
    async def test_publish_order_from_worker_thread(self):
        """Payloads published from another thread arrive in order."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub()
        subscription = hub.subscribe()

        def worker():
            for i in range(10):
                hub.publish(f"p{i}")

        thread = threading.Thread(target=worker)
        thread.start()
        received = [await _next(subscription) for _ in range(10)]
        thread.join()

        assert received == [f"p{i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_slow_subscriber_drops_oldest(self):
        """A full queue evicts the oldest value; order is kept."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub(capacity=2)
        subscription = hub.subscribe()
        for i in range(1, 6):
            hub.publish(f"p{i}")
        await asyncio.sleep(0)

        assert await _next(subscription) == "p4"
        assert await _next(subscription) == "p5"
        assert subscription.dropped == 3


class TestSubscriberLifecycle:
    """Test close, transport failure and dead subscribers."""

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self):
        """A closed subscription stops yielding and leaves the registry."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub()
        subscription = hub.subscribe()
        subscription.close()

        assert [payload async for payload in subscription] == []
        assert hub.subscriber_count == 0
        assert subscription.closed

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        """Closing twice is harmless."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub()
        subscription = hub.subscribe()
        subscription.close()
        subscription.close()
        assert hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_close_wakes_pending_reader(self):
        """A reader blocked on get() is released by close()."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub()
        subscription = hub.subscribe()
        reader = asyncio.create_task(subscription.get())
        await asyncio.sleep(0)
        subscription.close()

        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(reader, 1.0)

    @pytest.mark.asyncio
    async def test_transport_error_isolated(self):
        """One failing writer does not affect the others."""
        from chasm.core.hub import BroadcastHub, TransportError

        hub = BroadcastHub()
        hub.publish("p1")
        broken, healthy = hub.subscribe(), hub.subscribe()

        async def failing_send(payload):
            raise ConnectionResetError("peer gone")

        with pytest.raises(TransportError):
            await broken.pump(failing_send)
        broken.close()

        hub.publish("p2")
        assert await _next(healthy) == "p1"
        assert await _next(healthy) == "p2"
        assert hub.subscriber_count == 1

    @pytest.mark.asyncio
    async def test_pump_forwards_until_closed(self):
        """pump() sends every payload in order, then returns on close."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub()
        subscription = hub.subscribe()
        sent = []

        async def send(payload):
            sent.append(payload)
            if len(sent) == 2:
                subscription.close()

        hub.publish("p1")
        hub.publish("p2")
        await asyncio.wait_for(subscription.pump(send), 1.0)

        assert sent == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_unreachable_subscriber_removed(self):
        """A subscriber whose loop is gone is dropped on the next publish."""
        from chasm.core.hub import BroadcastHub

        hub = BroadcastHub()
        subscription = hub.subscribe()
        subscription.deliver = lambda payload: False

        hub.publish("p1")
        assert hub.subscriber_count == 0

    def test_deliver_to_closed_loop(self):
        """A subscriber whose loop has shut down reports itself dead."""
        from chasm.core.hub import BroadcastHub, Subscription

        loop = asyncio.new_event_loop()
        subscription = Subscription(BroadcastHub(), loop, 2)
        loop.close()

        assert subscription.deliver("p1") is False
        assert subscription.closed
        subscription.close()

    def test_deliver_propagates_other_runtime_errors(self):
        """Only a closed loop is treated as a dead subscriber."""
        from chasm.core.hub import BroadcastHub, Subscription

        loop = MagicMock()
        loop.call_soon_threadsafe.side_effect = RuntimeError("boom")
        loop.is_closed.return_value = False
        subscription = Subscription(BroadcastHub(), loop, 2)

        with pytest.raises(RuntimeError, match="boom"):
            subscription.deliver("p1")
        assert not subscription.closed
