"""Multi key scenario - work spread round-robin over several keys.

Each key drains on its own, so total throughput grows with the number of
keys while every key stays sequential.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from lanequeue_sim.scenarios import Scenario, ScenarioInfo, simulated_processor, submit_item

if TYPE_CHECKING:
    from lanequeue import TaskQueue
    from lanequeue_sim.display import SimulationState
    from lanequeue_sim.runner import SimConfig


class MultiKeyScenario(Scenario):
    """Independent lanes sharing one TaskQueue."""

    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="multi_key",
            description="Several keys draining independently (default)",
        )

    @staticmethod
    def key_names(config: SimConfig) -> list[str]:
        return [f"lane-{i}" for i in range(max(1, config.keys))]

    def setup(self, queue: TaskQueue, config: SimConfig, state: SimulationState) -> None:
        processor = simulated_processor(config)
        for key in self.key_names(config):
            queue.register(key, processor, config.queue_config())

    async def submit_workload(
        self, queue: TaskQueue, config: SimConfig, state: SimulationState
    ) -> list[asyncio.Future]:
        keys = self.key_names(config)
        futures = []
        for i in range(config.count):
            key = keys[i % len(keys)]
            future = submit_item(queue, state, key, {"item": f"item_{i:04d}", "index": i})
            if future is not None:
                futures.append(future)

            if config.submit_rate:
                await asyncio.sleep(1.0 / config.submit_rate)
        return futures
