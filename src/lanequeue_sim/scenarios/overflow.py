"""Overflow scenario - bursts against a small queue.

Each burst is twice the queue size, so part of every burst is rejected at
admission with QueueFullError.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from lanequeue_sim.scenarios import Scenario, ScenarioInfo, simulated_processor, submit_item

if TYPE_CHECKING:
    from lanequeue import TaskQueue
    from lanequeue_sim.display import SimulationState
    from lanequeue_sim.runner import SimConfig

MAX_BURST_QUEUE_SIZE = 10


class OverflowScenario(Scenario):
    """Bursty producer, bounded queue."""

    KEY = "bursty"

    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="overflow",
            description="Bursts larger than the queue, some get rejected",
        )

    @staticmethod
    def queue_size(config: SimConfig) -> int:
        return min(config.max_queue_size, MAX_BURST_QUEUE_SIZE)

    def setup(self, queue: TaskQueue, config: SimConfig, state: SimulationState) -> None:
        queue.register(
            self.KEY,
            simulated_processor(config),
            config.queue_config(max_queue_size=self.queue_size(config)),
        )

    async def submit_workload(
        self, queue: TaskQueue, config: SimConfig, state: SimulationState
    ) -> list[asyncio.Future]:
        burst = self.queue_size(config) * 2
        futures = []
        for i in range(config.count):
            future = submit_item(queue, state, self.KEY, {"item": f"item_{i:04d}", "index": i})
            if future is not None:
                futures.append(future)

            # Pause between bursts so the lane can catch up
            if (i + 1) % burst == 0:
                await asyncio.sleep(burst / 2 * max(config.latency_ms, 1) / 1000.0)
        return futures
