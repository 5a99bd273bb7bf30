"""Built-in scenarios for lanequeue-sim.

Scenarios define workload patterns - which keys exist, how their processors
behave, and how work is submitted.
"""

from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lanequeue import ProcessingTimeout, QueueFullError

if TYPE_CHECKING:
    from lanequeue import TaskQueue
    from lanequeue_sim.display import SimulationState
    from lanequeue_sim.runner import SimConfig


@dataclass
class ScenarioInfo:
    """Metadata about a scenario."""
    name: str
    description: str


class Scenario(ABC):
    """Base class for simulation scenarios.

    A scenario defines:
    - Keys (queue size, delay, timeout)
    - Processors (latency, errors)
    - Workload (what gets enqueued, and when)
    """

    @property
    @abstractmethod
    def info(self) -> ScenarioInfo:
        """Return scenario metadata."""
        ...

    @abstractmethod
    def setup(self, queue: "TaskQueue", config: "SimConfig", state: "SimulationState") -> None:
        """Register keys and processors on the TaskQueue."""
        ...

    @abstractmethod
    async def submit_workload(
        self, queue: "TaskQueue", config: "SimConfig", state: "SimulationState"
    ) -> list[asyncio.Future]:
        """Enqueue the workload. Returns the futures of accepted items."""
        ...

    def install_callbacks(self, queue: "TaskQueue", state: "SimulationState") -> None:
        """Mirror queue events into the display state."""
        started: set[str] = set()

        @queue.on_start
        def on_start(item):
            started.add(item.id)
            state.running += 1
            state.queued = max(0, state.queued - 1)
            state.add_event("started", item.id, item.key)

        @queue.on_complete
        def on_complete(item, result, duration):
            started.discard(item.id)
            state.running = max(0, state.running - 1)
            state.completed += 1
            state.add_event("completed", item.id, item.key, f"{int(duration * 1000)}ms")

        @queue.on_failure
        def on_failure(item, error):
            # NoProcessorError fails before on_start fires
            if item.id in started:
                started.discard(item.id)
                state.running = max(0, state.running - 1)
            else:
                state.queued = max(0, state.queued - 1)
            state.failed += 1
            if isinstance(error, ProcessingTimeout):
                state.timed_out += 1
                state.add_event("timeout", item.id, item.key, f"{error.timeout_ms}ms")
            else:
                state.add_event("failed", item.id, item.key, str(error))


def simulated_processor(config: "SimConfig", slow_factor: float = 0.0):
    """Build an async processor that sleeps like a remote call and sometimes fails.

    Payloads carrying ``{"slow": True}`` take ``slow_factor`` times the
    configured timeout instead of the base latency.
    """

    async def process(payload: dict[str, Any]) -> dict[str, Any]:
        if payload.get("slow") and slow_factor > 0:
            latency = config.timeout_ms / 1000.0 * slow_factor
        else:
            base = config.latency_ms / 1000.0
            jitter = config.latency_jitter
            latency = base * random.uniform(1 - jitter, 1 + jitter) if base > 0 else 0.0

        if latency > 0:
            await asyncio.sleep(latency)

        if random.random() < config.error_rate:
            raise RuntimeError("Simulated error")

        return {"item": payload.get("item"), "latency_ms": int(latency * 1000)}

    return process


def submit_item(
    queue: "TaskQueue",
    state: "SimulationState",
    key: str,
    payload: dict[str, Any],
) -> asyncio.Future | None:
    """Enqueue one payload, recording a rejection instead of raising."""
    state.submitted += 1
    try:
        future = queue.submit(key, payload)
    except QueueFullError as e:
        state.rejected += 1
        state.add_event("rejected", payload.get("item", ""), key, f"max {e.limit}")
        return None

    state.queued += 1
    state.add_event("queued", payload.get("item", ""), key)
    # Outcomes are tracked through callbacks
    future.add_done_callback(_ignore_outcome)
    return future


def _ignore_outcome(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()


# Import built-in scenarios
from lanequeue_sim.scenarios.single_key import SingleKeyScenario
from lanequeue_sim.scenarios.multi_key import MultiKeyScenario
from lanequeue_sim.scenarios.overflow import OverflowScenario
from lanequeue_sim.scenarios.slow import SlowScenario

# Registry of built-in scenarios
SCENARIOS: dict[str, type[Scenario]] = {
    "single_key": SingleKeyScenario,
    "multi_key": MultiKeyScenario,
    "overflow": OverflowScenario,
    "slow": SlowScenario,
}


def get_scenario(name: str) -> Scenario:
    """Get a scenario instance by name."""
    if name not in SCENARIOS:
        available = ", ".join(SCENARIOS.keys())
        raise ValueError(f"Unknown scenario: {name}. Available: {available}")
    return SCENARIOS[name]()


def list_scenarios() -> list[ScenarioInfo]:
    """List all available scenarios."""
    return [cls().info for cls in SCENARIOS.values()]
