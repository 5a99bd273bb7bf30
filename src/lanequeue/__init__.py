"""lanequeue - Per-key sequential task queue for asyncio services."""

from lanequeue.errors import (
    NoProcessorError,
    ProcessingTimeout,
    ProcessorError,
    QueueFullError,
    TaskQueueError,
)
from lanequeue.models import QueueConfig, QueueKeyState, QueueStats, WorkItem
from lanequeue.taskqueue import TaskQueue

__version__ = "0.1.0"
__all__ = [
    "TaskQueue",
    "QueueConfig",
    "QueueStats",
    "QueueKeyState",
    "WorkItem",
    "TaskQueueError",
    "QueueFullError",
    "NoProcessorError",
    "ProcessingTimeout",
    "ProcessorError",
]
