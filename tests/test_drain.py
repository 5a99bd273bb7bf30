"""Tests for the per-key drain loop: ordering, serialization, pacing and independence."""

import asyncio
import random
import time

from lanequeue import QueueConfig, TaskQueue


def make_queue(**defaults) -> TaskQueue:
    defaults.setdefault("processing_delay_ms", 0)
    return TaskQueue(QueueConfig(**defaults))


class TestOrdering:
    """FIFO settlement within a key."""

    async def test_settlement_order_matches_enqueue_order(self):
        """Results settle in the order items were queued."""
        queue = make_queue()
        settled = []

        async def process(payload):
            # Later items are faster; order must still hold
            await asyncio.sleep((10 - payload) * 0.002)
            return payload

        queue.register("k", process)
        futures = [queue.submit("k", n) for n in range(10)]
        for future in futures:
            future.add_done_callback(lambda f: settled.append(f.result()))

        assert await asyncio.gather(*futures) == list(range(10))
        assert settled == list(range(10))

    async def test_order_holds_with_random_durations(self):
        """FIFO order holds when processing times vary."""
        queue = make_queue()
        seen = []

        async def process(payload):
            await asyncio.sleep(random.uniform(0, 0.005))
            seen.append(payload)
            return payload

        queue.register("k", process)
        futures = [queue.submit("k", n) for n in range(20)]
        await asyncio.gather(*futures)

        assert seen == list(range(20))


class TestSerialization:
    """At most one processor call per key at any time."""

    async def test_no_overlapping_calls_for_one_key(self):
        """A key never runs two processor calls at once."""
        queue = make_queue(max_concurrent=5)
        active = 0
        peak = 0

        async def process(payload):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.005)
            active -= 1
            return payload

        queue.register("k", process)
        futures = [queue.submit("k", n) for n in range(8)]
        await asyncio.gather(*futures)

        # max_concurrent is recorded but processing stays sequential
        assert peak == 1
        assert queue.status("k")["config"]["max_concurrent"] == 5

    async def test_single_drain_task_per_key(self):
        """Concurrent submits start only one drain loop per key."""
        queue = make_queue()

        async def process(payload):
            await asyncio.sleep(0.005)
            return payload

        queue.register("k", process)
        for n in range(5):
            queue.submit("k", n)

        assert queue.status("k")["busy"] is True
        assert list(queue._drain_tasks) == ["k"]
        await queue.join()
        assert queue.status("k")["busy"] is False
        assert queue._drain_tasks == {}

    async def test_item_added_while_draining_is_picked_up(self):
        """Items queued mid-drain are handled by the running loop."""
        queue = make_queue()

        async def process(payload):
            await asyncio.sleep(0.005)
            return payload

        queue.register("k", process)
        first = queue.submit("k", 1)
        await asyncio.sleep(0.001)
        second = queue.submit("k", 2)

        assert await first == 1
        assert await second == 2

    async def test_enqueue_after_drain_finishes_restarts_loop(self):
        """A new item after the loop ends starts a fresh loop."""
        queue = make_queue()

        async def process(payload):
            return payload

        queue.register("k", process)
        assert await queue.enqueue("k", 1) == 1
        await queue.join()
        assert queue.status("k")["busy"] is False

        assert await queue.enqueue("k", 2) == 2
        assert queue.status("k")["stats"]["total_processed"] == 2

    async def test_enqueue_from_done_callback_is_not_stranded(self):
        """An item queued from a result callback still gets processed."""
        queue = make_queue()
        follow_up = []

        async def process(payload):
            return payload

        queue.register("k", process)
        first = queue.submit("k", 1)
        # Runs right after the last item settles, around the time the loop exits
        first.add_done_callback(lambda f: follow_up.append(queue.submit("k", 2)))

        await first
        await asyncio.sleep(0.01)
        assert len(follow_up) == 1
        assert await asyncio.wait_for(follow_up[0], timeout=1) == 2
        assert queue.status("k")["queue_length"] == 0


class TestPacing:
    """processing_delay_ms runs before every item."""

    async def test_delay_before_each_item(self):
        """processing_delay_ms is applied before every item."""
        queue = make_queue(processing_delay_ms=20)

        async def process(payload):
            return time.monotonic()

        queue.register("k", process)
        start = time.monotonic()
        stamps = await asyncio.gather(*(queue.submit("k", n) for n in range(3)))

        assert stamps[0] - start >= 0.015
        assert stamps[1] - stamps[0] >= 0.015
        assert stamps[2] - stamps[1] >= 0.015

    async def test_average_wait_time_folds_pairwise(self):
        """average_wait_time follows the (avg + latest) / 2 rule."""
        queue = make_queue(processing_delay_ms=20)

        async def process(payload):
            return payload

        queue.register("k", process)
        await queue.enqueue("k", 1)
        first = queue.status("k")["stats"]["average_wait_time"]
        # (0 + ~20) / 2
        assert 8 <= first < 60

        await queue.enqueue("k", 2)
        second = queue.status("k")["stats"]["average_wait_time"]
        # (first + ~20) / 2
        assert second > first


class TestKeyIndependence:
    """Different keys drain independently."""

    async def test_slow_key_does_not_block_other_key(self):
        """A slow key does not hold up another key."""
        queue = make_queue()

        async def slow(payload):
            await asyncio.sleep(0.2)
            return "slow"

        async def fast(payload):
            return "fast"

        queue.register("slow", slow)
        queue.register("fast", fast)

        slow_future = queue.submit("slow", None)
        start = time.monotonic()
        assert await queue.enqueue("fast", None) == "fast"
        assert time.monotonic() - start < 0.1
        assert not slow_future.done()
        assert await slow_future == "slow"

    async def test_two_keys_with_delay_settle_concurrently(self):
        """Delays on different keys overlap."""
        queue = TaskQueue(QueueConfig(processing_delay_ms=50, timeout_ms=1000))

        async def process(payload):
            await asyncio.sleep(0.05)
            return payload

        queue.register("a", process)
        queue.register("b", process)

        start = time.monotonic()
        results = await asyncio.gather(queue.enqueue("a", "A"), queue.enqueue("b", "B"))
        elapsed = time.monotonic() - start

        assert results == ["A", "B"]
        # Serial execution would take at least 0.2s
        assert elapsed < 0.18
        assert queue.status("a")["stats"]["total_processed"] == 1
        assert queue.status("b")["stats"]["total_processed"] == 1
