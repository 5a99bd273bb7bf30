"""Tests for enqueue, auto-registration and admission control."""

import asyncio

import pytest

from lanequeue import QueueConfig, QueueFullError, TaskQueue


def make_queue(**defaults) -> TaskQueue:
    defaults.setdefault("processing_delay_ms", 0)
    return TaskQueue(QueueConfig(**defaults))


class TestEnqueue:
    """Tests for the enqueue path."""

    async def test_enqueue_returns_processor_result(self):
        """enqueue() resolves to the processor's return value."""
        queue = make_queue()
        queue.register("echo", lambda payload: payload["n"] * 2)

        assert await queue.enqueue("echo", {"n": 21}) == 42

    async def test_submit_returns_future(self):
        """submit() returns a future without awaiting."""
        queue = make_queue()

        async def process(payload):
            return payload

        queue.register("k", process)
        future = queue.submit("k", "hello")

        assert isinstance(future, asyncio.Future)
        assert not future.done()
        assert await future == "hello"

    async def test_unknown_key_auto_registers(self):
        """Submitting to an unknown key registers it on the fly."""
        queue = make_queue()

        async def process(payload):
            return payload.upper()

        result = await queue.enqueue("dynamic", "abc", process, {"max_queue_size": 5})

        assert result == "ABC"
        assert "dynamic" in queue
        assert queue.get_processor("dynamic") is process
        assert queue.status("dynamic")["config"]["max_queue_size"] == 5

    async def test_fallback_processor_ignored_for_known_key(self):
        """The fallback processor is ignored once a key is registered."""
        queue = make_queue()

        async def original(payload):
            return "original"

        async def fallback(payload):
            return "fallback"

        queue.register("k", original)
        assert await queue.enqueue("k", None, fallback, {"max_queue_size": 1}) == "original"
        assert queue.status("k")["config"]["max_queue_size"] == 100

    async def test_sync_processor_returning_awaitable(self):
        """A sync function returning an awaitable is awaited."""
        queue = make_queue()

        async def later(value):
            await asyncio.sleep(0)
            return value + 1

        queue.register("k", lambda payload: later(payload))
        assert await queue.enqueue("k", 1) == 2


class TestAdmission:
    """Tests for the max_queue_size admission check."""

    async def test_full_queue_raises_synchronously(self):
        """submit() raises QueueFullError as soon as the key is full."""
        queue = make_queue(max_queue_size=2)

        async def process(payload):
            return payload

        queue.register("k", process)
        f1 = queue.submit("k", 1)
        f2 = queue.submit("k", 2)

        with pytest.raises(QueueFullError) as exc_info:
            queue.submit("k", 3)

        assert exc_info.value.key == "k"
        assert exc_info.value.limit == 2
        assert queue.status("k")["queue_length"] == 2

        assert await f1 == 1
        assert await f2 == 2

    async def test_enqueue_raises_queue_full(self):
        """enqueue() surfaces QueueFullError."""
        queue = make_queue(max_queue_size=1)

        async def process(payload):
            return payload

        queue.register("k", process)
        first = queue.submit("k", 1)

        with pytest.raises(QueueFullError):
            await queue.enqueue("k", 2)

        assert await first == 1

    async def test_capacity_frees_up_after_drain(self):
        """Capacity is available again after the queue drains."""
        queue = make_queue(max_queue_size=1)

        async def process(payload):
            return payload

        queue.register("k", process)
        assert await queue.enqueue("k", 1) == 1
        assert await queue.enqueue("k", 2) == 2

    async def test_in_flight_item_does_not_count_against_capacity(self):
        """The item being processed does not count towards max_queue_size."""
        queue = make_queue(max_queue_size=1)
        release = asyncio.Event()

        async def process(payload):
            await release.wait()
            return payload

        queue.register("k", process)
        first = queue.submit("k", 1)
        await asyncio.sleep(0.01)  # first item is now being processed

        assert queue.status("k")["queue_length"] == 0
        second = queue.submit("k", 2)

        release.set()
        assert await first == 1
        assert await second == 2

    async def test_rejection_does_not_start_drain(self):
        """A rejected submit leaves the key idle."""
        queue = make_queue(max_queue_size=1)
        calls = []

        async def process(payload):
            calls.append(payload)
            return payload

        queue.register("k", process)
        future = queue.submit("k", "a")
        with pytest.raises(QueueFullError):
            queue.submit("k", "b")

        await future
        await queue.join()
        assert calls == ["a"]


class TestPaymentsScenario:
    """Two items fit, the third is rejected, results come back in order."""

    async def test_payments(self):
        """A full payments queue rejects the third item and settles the first two in order."""
        queue = TaskQueue()

        async def double(payload):
            return payload["n"] * 2

        queue.register("payments", double, {"max_queue_size": 2, "timeout_ms": 50, "processing_delay_ms": 0})

        f1 = queue.submit("payments", {"n": 1})
        f2 = queue.submit("payments", {"n": 2})
        assert queue.status("payments")["queue_length"] == 2

        with pytest.raises(QueueFullError):
            queue.submit("payments", {"n": 3})

        settled = []
        f1.add_done_callback(lambda f: settled.append(f.result()))
        f2.add_done_callback(lambda f: settled.append(f.result()))

        assert await asyncio.gather(f1, f2) == [2, 4]
        assert settled == [2, 4]
        assert queue.status("payments")["queue_length"] == 0
