"""Simulation runner for lanequeue-sim.

This module handles the actual simulation logic, decoupled from display.
It updates a SimulationState object that can be rendered by any display.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lanequeue import QueueConfig, TaskQueue

if TYPE_CHECKING:
    from lanequeue_sim.display import SimulationState


@dataclass
class SimConfig:
    """Configuration for a simulation run."""

    count: int = 100
    keys: int = 3
    latency_ms: int = 50
    latency_jitter: float = 0.2  # ±20% variance
    error_rate: float = 0.0
    delay_ms: int = 0  # processing_delay_ms for every key
    timeout_ms: int = 1000
    max_queue_size: int = 100
    submit_rate: float | None = None  # work/second, None = batch
    duration: float | None = None
    scenario: str = "multi_key"

    def queue_config(self, **overrides: Any) -> QueueConfig:
        """Per-key QueueConfig derived from these settings."""
        values = {
            "processing_delay_ms": self.delay_ms,
            "max_queue_size": self.max_queue_size,
            "timeout_ms": self.timeout_ms,
        }
        values.update(overrides)
        return QueueConfig(**values)


class SimulationRunner:
    """Runs simulations and updates state for display.

    Usage:
        config = SimConfig(count=100, latency_ms=20)
        state = SimulationState()
        runner = SimulationRunner(config, state)

        # In your event loop:
        await runner.run()
    """

    def __init__(self, config: SimConfig, state: "SimulationState"):
        self.config = config
        self.state = state

        self._queue: TaskQueue | None = None
        self._futures: list[asyncio.Future] = []
        self._running = False

    async def run(self) -> None:
        """Run the simulation to completion."""
        from lanequeue_sim.scenarios import get_scenario

        scenario = get_scenario(self.config.scenario)

        self._running = True
        self.state.start_time = time.time()
        self.state.target_count = self.config.count
        self.state.latency_ms = self.config.latency_ms
        self.state.latency_jitter = self.config.latency_jitter
        self.state.error_rate = self.config.error_rate
        self.state.scenario_name = scenario.info.name

        self._queue = TaskQueue()
        scenario.setup(self._queue, self.config, self.state)
        scenario.install_callbacks(self._queue, self.state)
        self._update_state()

        submit_task = asyncio.create_task(
            scenario.submit_workload(self._queue, self.config, self.state)
        )
        try:
            await self._monitor(submit_task)
        finally:
            if not submit_task.done():
                submit_task.cancel()
                try:
                    await submit_task
                except asyncio.CancelledError:
                    pass

        # Short grace period for the item in flight on each key
        await self._queue.stop(timeout=1.0)
        self._update_state()
        self._running = False

    async def _monitor(self, submit_task: asyncio.Task) -> None:
        """Refresh state until all accepted work settles or duration is exceeded."""
        while self._running:
            self._update_state()

            if submit_task.done():
                self._futures = submit_task.result()
                if all(f.done() for f in self._futures):
                    break

            if self.config.duration and self._elapsed >= self.config.duration:
                break

            await asyncio.sleep(0.05)

    def _update_state(self) -> None:
        """Copy per-key status from the queue into the display state."""
        if not self._queue:
            return

        from lanequeue_sim.display import LaneStatus

        self.state.elapsed = self._elapsed
        for key, snapshot in self._queue.status().items():
            lane = self.state.lanes.get(key)
            if lane is None:
                lane = self.state.lanes[key] = LaneStatus(key=key)
            lane.queue_length = snapshot["queue_length"]
            lane.busy = snapshot["busy"]
            lane.max_queue_size = snapshot["config"]["max_queue_size"]
            lane.processed = snapshot["stats"]["total_processed"]
            lane.errors = snapshot["stats"]["total_errors"]
            lane.average_wait_ms = snapshot["stats"]["average_wait_time"]

    @property
    def queue(self) -> TaskQueue | None:
        return self._queue

    @property
    def _elapsed(self) -> float:
        """Elapsed time since start."""
        return time.time() - self.state.start_time

    def stop(self) -> None:
        """Request simulation stop."""
        self._running = False

    async def cleanup(self) -> None:
        """Cancel leftover work. Call after interrupt or completion."""
        if self._queue:
            await self._queue.stop(timeout=0)
            self._queue = None
        self._running = False
