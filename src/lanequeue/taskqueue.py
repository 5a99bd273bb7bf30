"""Core TaskQueue class."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Mapping, Union

from lanequeue.errors import (
    NoProcessorError,
    ProcessingTimeout,
    ProcessorError,
    QueueFullError,
    TaskQueueError,
)
from lanequeue.models import QueueConfig, QueueKeyState, QueueStats, WorkItem

logger = logging.getLogger(__name__)

ConfigLike = Union[QueueConfig, Mapping[str, Any], None]


class TaskQueue:
    """
    Multi-key sequential task queue.

    Every key is an independent FIFO lane. Items under one key are handed to
    that key's processor one at a time, in the order they were enqueued.
    Different keys drain independently of each other.

    All methods must be called from the event loop thread.

    Example:
        queue = TaskQueue()

        @queue.processor("payments", max_queue_size=50, processing_delay_ms=0)
        async def charge(payload):
            return await gateway.charge(payload)

        result = await queue.enqueue("payments", {"amount": 10})
    """

    def __init__(self, defaults: QueueConfig | None = None) -> None:
        self.defaults = defaults or QueueConfig()
        self._keys: dict[str, QueueKeyState] = {}
        self._drain_tasks: dict[str, asyncio.Task] = {}

        # Callbacks
        self._on_start_callback: Callable | None = None
        self._on_complete_callback: Callable | None = None
        self._on_failure_callback: Callable | None = None

    # --- Registration ---

    def register(
        self,
        key: str,
        processor: Callable | None,
        config: ConfigLike = None,
    ) -> None:
        """
        Bind a processor and configuration to a key.

        Args:
            key: Queue key.
            processor: Callable invoked with each payload. Coroutine functions
                and functions returning awaitables are awaited.
            config: Overrides applied on top of the queue defaults.

        Registering an existing key replaces its processor and config and
        resets its stats. Items already queued are kept.
        """
        queue_config = self.defaults.merge(config)
        state = self._keys.get(key)
        if state is None:
            self._keys[key] = QueueKeyState(key=key, config=queue_config, processor=processor)
        else:
            state.config = queue_config
            state.processor = processor
            state.stats = QueueStats()
            state.touch()
        logger.info("Queue %s registered with config %s", key, queue_config)

    def processor(self, key: str, **config: Any):
        """
        Decorator form of :meth:`register`.

        Example:
            @queue.processor("user-api", processing_delay_ms=1000, max_queue_size=50)
            async def update_user(payload):
                ...
        """
        def decorator(func):
            self.register(key, func, config or None)
            return func
        return decorator

    def get_processor(self, key: str) -> Callable | None:
        """Get the processor bound to a key."""
        state = self._keys.get(key)
        return state.processor if state else None

    def keys(self) -> list[str]:
        return list(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    # --- Event Callbacks ---

    def on_start(self, func):
        """
        Decorator to register the start callback.

        Called with (item) right before the processor is invoked.
        """
        self._on_start_callback = func
        return func

    def on_complete(self, func):
        """
        Decorator to register the completion callback.

        Called with (item, result, duration) where duration is in seconds.
        """
        self._on_complete_callback = func
        return func

    def on_failure(self, func):
        """
        Decorator to register the failure callback.

        Called with (item, error) where error is a TaskQueueError.
        """
        self._on_failure_callback = func
        return func

    def _emit(self, callback: Callable | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            # Callback errors never affect processing
            logger.exception("Callback %r failed", callback)

    # --- Enqueue ---

    def submit(
        self,
        key: str,
        payload: Any = None,
        processor: Callable | None = None,
        config: ConfigLike = None,
    ) -> asyncio.Future:
        """
        Add a payload to a key's queue and return a future for its result.

        ``processor`` and ``config`` are only used when the key has not been
        registered yet.

        Raises:
            QueueFullError: The key already holds ``max_queue_size`` items.
        """
        state = self._keys.get(key)
        if state is None:
            self.register(key, processor, config)
            state = self._keys[key]

        if len(state.pending) >= state.config.max_queue_size:
            raise QueueFullError(key, state.config.max_queue_size)

        future = asyncio.get_running_loop().create_future()
        item = WorkItem.create(key, payload, future)
        state.pending.append(item)
        state.touch()
        logger.debug("Item %s queued on %s, queue length: %d", item.id, key, len(state.pending))

        self._start_drain(key)
        return future

    async def enqueue(
        self,
        key: str,
        payload: Any = None,
        processor: Callable | None = None,
        config: ConfigLike = None,
    ) -> Any:
        """
        Queue a payload and wait for its result.

        Raises:
            QueueFullError: Admission was rejected.
            NoProcessorError: The key had no processor when the item came up.
            ProcessingTimeout: The processor exceeded ``timeout_ms``.
            ProcessorError: The processor raised.
        """
        return await self.submit(key, payload, processor, config)

    # --- Drain loop ---

    def _start_drain(self, key: str) -> None:
        """Schedule a drain loop for key unless one is running or nothing is queued."""
        state = self._keys.get(key)
        if state is None or state.busy or not state.pending:
            return

        # No await between the guard and the flag, so only one loop per key
        state.busy = True
        self._drain_tasks[key] = asyncio.create_task(self._drain(state))

    async def _drain(self, state: QueueKeyState) -> None:
        logger.info("Draining queue %s", state.key)
        try:
            while state.pending:
                item = state.pending.popleft()
                await self._process_item(state, item)
        finally:
            state.busy = False
            if self._drain_tasks.get(state.key) is asyncio.current_task():
                del self._drain_tasks[state.key]
        logger.info("Queue %s drained", state.key)

    async def _process_item(self, state: QueueKeyState, item: WorkItem) -> None:
        """Run one item through the processor and settle its future."""
        if item.future.done():
            # Caller went away before its turn
            logger.debug("Skipping abandoned item %s", item.id)
            return

        config = state.config
        start_time = time.time()
        logger.debug("Processing item %s on %s", item.id, state.key)

        try:
            if config.processing_delay_ms > 0:
                await asyncio.sleep(config.processing_delay_ms / 1000)

            processor = state.processor
            if processor is None:
                raise NoProcessorError(state.key)

            self._emit(self._on_start_callback, item)
            result = await self._invoke(processor, item, config.timeout_ms)

        except asyncio.CancelledError:
            item.future.cancel()
            raise
        except TaskQueueError as e:
            self._fail(state, item, e)
        except Exception as e:
            error = ProcessorError(state.key, item.id, e)
            error.__cause__ = e
            self._fail(state, item, error)
        else:
            duration = time.time() - start_time
            if not item.future.done():
                item.future.set_result(result)
            state.stats.total_processed += 1
            state.stats.average_wait_time = (state.stats.average_wait_time + duration * 1000) / 2
            state.touch()
            self._emit(self._on_complete_callback, item, result, duration)

    async def _invoke(self, processor: Callable, item: WorkItem, timeout_ms: int) -> Any:
        """Call processor, racing it against timeout_ms."""
        # Sync or async processor
        try:
            awaitable = processor(item.payload)
        except asyncio.CancelledError as e:
            # Raised by the processor itself, not a cancellation of the drain loop
            raise ProcessorError(item.key, item.id, e) from e
        if not inspect.isawaitable(awaitable):
            return awaitable

        task = asyncio.ensure_future(awaitable)
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            task.cancel()
            task.add_done_callback(_consume_result)
            raise ProcessingTimeout(item.key, item.id, timeout_ms)
        if task.cancelled():
            raise ProcessorError(item.key, item.id, asyncio.CancelledError("processor was cancelled"))
        return task.result()

    def _fail(self, state: QueueKeyState, item: WorkItem, error: TaskQueueError) -> None:
        logger.error("Item %s on %s failed: %s", item.id, state.key, error)
        if not item.future.done():
            item.future.set_exception(error)
        state.stats.total_errors += 1
        state.touch()
        self._emit(self._on_failure_callback, item, error)

    # --- Introspection ---

    def status(self, key: str | None = None) -> dict[str, Any] | None:
        """
        Snapshot of one key, or of every key when ``key`` is None.

        Returns:
            For one key: {"key", "queue_length", "busy", "config", "stats"},
            or None if the key is unknown. For all keys: a dict of those
            snapshots keyed by queue key.
        """
        if key is not None:
            state = self._keys.get(key)
            if state is None:
                return None
            return self._snapshot(state)

        return {k: self._snapshot(state) for k, state in self._keys.items()}

    @staticmethod
    def _snapshot(state: QueueKeyState) -> dict[str, Any]:
        stats = state.stats
        return {
            "key": state.key,
            "queue_length": len(state.pending),
            "busy": state.busy,
            "config": {
                "max_concurrent": state.config.max_concurrent,
                "processing_delay_ms": state.config.processing_delay_ms,
                "max_queue_size": state.config.max_queue_size,
                "timeout_ms": state.config.timeout_ms,
            },
            "stats": {
                "total_processed": stats.total_processed,
                "total_errors": stats.total_errors,
                "average_wait_time": stats.average_wait_time,
            },
        }

    def config_summary(self) -> dict[str, dict[str, Any]]:
        """Human-oriented configuration of every key."""
        return {key: state.config.summary() for key, state in self._keys.items()}

    # --- Maintenance ---

    def clear(self, key: str) -> int:
        """
        Drop every pending item of a key without settling them.

        The item currently being processed, if any, is unaffected.

        Returns:
            Number of items discarded.
        """
        state = self._keys.get(key)
        if state is None:
            return 0
        dropped = len(state.pending)
        state.pending.clear()
        logger.info("Queue %s cleared (%d items dropped)", key, dropped)
        return dropped

    def clear_all(self) -> int:
        """Clear every key. Returns the total number of items discarded."""
        dropped = 0
        for state in self._keys.values():
            dropped += len(state.pending)
            state.pending.clear()
        logger.info("All queues cleared (%d items dropped)", dropped)
        return dropped

    def prune_idle(self, idle_seconds: float) -> list[str]:
        """
        Forget keys that have been idle for at least ``idle_seconds``.

        A key is idle when it is not draining and has nothing queued.

        Returns:
            The removed keys.
        """
        cutoff = time.monotonic() - idle_seconds
        removed = [
            key for key, state in self._keys.items()
            if not state.busy and not state.pending and state.last_active <= cutoff
        ]
        for key in removed:
            del self._keys[key]
        if removed:
            logger.info("Pruned %d idle queue(s): %s", len(removed), ", ".join(removed))
        return removed

    # --- Lifecycle ---

    async def join(self, key: str | None = None) -> None:
        """Wait until key (or every key) has no active drain loop."""
        while True:
            tasks = [
                task for k, task in self._drain_tasks.items()
                if key is None or k == key
            ]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def stop(self, timeout: float | None = None) -> None:
        """
        Wait for active drain loops, then cancel whatever is left.

        Args:
            timeout: Max seconds to wait. None = wait until every key drains.

        Futures of interrupted or still-queued items are cancelled.
        """
        if self._drain_tasks:
            tasks = list(self._drain_tasks.values())
            if timeout is not None:
                _, pending = await asyncio.wait(tasks, timeout=timeout)
                for task in pending:
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass
            else:
                await self.join()

        for state in self._keys.values():
            while state.pending:
                state.pending.popleft().future.cancel()
        self._drain_tasks.clear()


def _consume_result(task: asyncio.Task) -> None:
    """Retrieve the outcome of a processor task abandoned after a timeout."""
    if not task.cancelled():
        task.exception()
