"""Single key scenario - one lane, strictly sequential.

Throughput is bounded by latency + delay because nothing under one key
overlaps.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from lanequeue_sim.scenarios import Scenario, ScenarioInfo, simulated_processor, submit_item

if TYPE_CHECKING:
    from lanequeue import TaskQueue
    from lanequeue_sim.display import SimulationState
    from lanequeue_sim.runner import SimConfig


class SingleKeyScenario(Scenario):
    """All work goes through a single key."""

    KEY = "api"

    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="single_key",
            description="One key, sequential processing",
        )

    def setup(self, queue: TaskQueue, config: SimConfig, state: SimulationState) -> None:
        queue.register(self.KEY, simulated_processor(config), config.queue_config())

    async def submit_workload(
        self, queue: TaskQueue, config: SimConfig, state: SimulationState
    ) -> list[asyncio.Future]:
        futures = []
        for i in range(config.count):
            future = submit_item(queue, state, self.KEY, {"item": f"item_{i:04d}", "index": i})
            if future is not None:
                futures.append(future)

            if config.submit_rate:
                await asyncio.sleep(1.0 / config.submit_rate)
        return futures
