"""Slow scenario - some items outlive their timeout.

Every ``SLOW_EVERY``-th item takes twice the configured timeout and fails
with ProcessingTimeout. The lane carries on with the next item.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from lanequeue_sim.scenarios import Scenario, ScenarioInfo, simulated_processor, submit_item

if TYPE_CHECKING:
    from lanequeue import TaskQueue
    from lanequeue_sim.display import SimulationState
    from lanequeue_sim.runner import SimConfig

SLOW_EVERY = 4


class SlowScenario(Scenario):
    """Timeouts mixed into normal traffic across two keys."""

    KEYS = ("fast", "flaky")

    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="slow",
            description="Some items exceed the timeout on one key",
        )

    def setup(self, queue: TaskQueue, config: SimConfig, state: SimulationState) -> None:
        processor = simulated_processor(config, slow_factor=2.0)
        for key in self.KEYS:
            queue.register(key, processor, config.queue_config())

    async def submit_workload(
        self, queue: TaskQueue, config: SimConfig, state: SimulationState
    ) -> list[asyncio.Future]:
        futures = []
        for i in range(config.count):
            key = self.KEYS[i % 2]
            payload = {
                "item": f"item_{i:04d}",
                "index": i,
                "slow": key == "flaky" and i % SLOW_EVERY == 1,
            }
            future = submit_item(queue, state, key, payload)
            if future is not None:
                futures.append(future)

            if config.submit_rate:
                await asyncio.sleep(1.0 / config.submit_rate)
        return futures
