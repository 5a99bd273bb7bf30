"""Exceptions raised or delivered by the task queue."""

from __future__ import annotations


class TaskQueueError(Exception):
    """Base class for all queue errors."""

    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class QueueFullError(TaskQueueError):
    """Raised at admission when a key's queue is at capacity."""

    def __init__(self, key: str, limit: int):
        super().__init__(f"Queue {key} is full (max size: {limit})", key)
        self.limit = limit


class NoProcessorError(TaskQueueError):
    """Delivered to an item whose key has no processor bound."""

    def __init__(self, key: str):
        super().__init__(f"No processor registered for queue {key}", key)


class ProcessingTimeout(TaskQueueError, TimeoutError):
    """Delivered to an item whose processor did not finish in time."""

    def __init__(self, key: str, item_id: str, timeout_ms: int):
        super().__init__(f"Processing {item_id} timed out after {timeout_ms}ms", key)
        self.item_id = item_id
        self.timeout_ms = timeout_ms


class ProcessorError(TaskQueueError):
    """Delivered to an item whose processor raised.

    The underlying exception is available as ``original`` and ``__cause__``.
    """

    def __init__(self, key: str, item_id: str, original: BaseException):
        super().__init__(f"Processor for {item_id} failed: {original}", key)
        self.item_id = item_id
        self.original = original
