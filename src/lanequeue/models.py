"""Core data models for lanequeue."""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import deque
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Mapping


@dataclass(frozen=True)
class QueueConfig:
    """Per-key queue settings.

    ``max_concurrent`` is recorded for reporting only. Items under one key
    are always processed one at a time.
    """

    max_concurrent: int = 1
    processing_delay_ms: int = 1000
    max_queue_size: int = 100
    timeout_ms: int = 30000

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {self.max_concurrent}")
        if self.processing_delay_ms < 0:
            raise ValueError(f"processing_delay_ms must be >= 0, got {self.processing_delay_ms}")
        if self.max_queue_size <= 0:
            raise ValueError(f"max_queue_size must be > 0, got {self.max_queue_size}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")

    def merge(self, overrides: QueueConfig | Mapping[str, Any] | None = None) -> QueueConfig:
        """Return a copy with ``overrides`` applied on top of these values.

        A QueueConfig passed as ``overrides`` contributes only the fields
        that differ from the class defaults.
        """
        if overrides is None:
            return self
        if isinstance(overrides, QueueConfig):
            # Only fields set away from the class defaults override
            overrides = {
                f.name: getattr(overrides, f.name)
                for f in fields(overrides)
                if getattr(overrides, f.name) != f.default
            }

        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown queue config field(s): {', '.join(sorted(unknown))}")
        return replace(self, **overrides)

    def summary(self) -> dict[str, Any]:
        """Human-oriented view of the settings."""
        return {
            "max_concurrent": self.max_concurrent,
            "processing_delay": f"{self.processing_delay_ms}ms",
            "max_queue_size": self.max_queue_size,
            "timeout": f"{self.timeout_ms}ms",
        }


@dataclass
class QueueStats:
    """Running counters for one key."""

    total_processed: int = 0
    total_errors: int = 0
    average_wait_time: float = 0.0  # ms, folded as (avg + latest) / 2


@dataclass
class WorkItem:
    """A single payload waiting for its turn under a key."""

    id: str
    key: str
    future: asyncio.Future = field(repr=False, compare=False)
    payload: Any = None
    enqueued_at: float = 0.0

    @classmethod
    def create(cls, key: str, payload: Any, future: asyncio.Future) -> WorkItem:
        now = time.time()
        item_id = f"{key}_{int(now * 1000)}_{uuid.uuid4().hex[:9]}"
        return cls(id=item_id, key=key, payload=payload, enqueued_at=now, future=future)


@dataclass
class QueueKeyState:
    """Everything the queue keeps for one key."""

    key: str
    config: QueueConfig
    processor: Callable | None = None
    pending: deque[WorkItem] = field(default_factory=deque)
    busy: bool = False
    stats: QueueStats = field(default_factory=QueueStats)
    last_active: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_active = time.monotonic()
