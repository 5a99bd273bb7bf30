"""Rich-based display for lanequeue-sim.

This module provides visual output for the simulator using Rich library.
It's decoupled from the simulation logic - it just renders data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text


@dataclass
class LaneStatus:
    """Status of one queue key for display."""

    key: str
    queue_length: int = 0
    max_queue_size: int = 0
    busy: bool = False
    processed: int = 0
    errors: int = 0
    average_wait_ms: float = 0.0


@dataclass
class EventRecord:
    """A recent event for display."""

    timestamp: datetime
    event_type: str
    item_id: str
    key: str | None = None
    details: str = ""


@dataclass
class SimulationState:
    """Current state of the simulation for display.

    This is the data contract between the runner and display.
    The runner updates this; the display renders it.
    """

    # Item counts
    submitted: int = 0
    rejected: int = 0
    queued: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    timed_out: int = 0

    # Timing
    start_time: float = 0.0
    elapsed: float = 0.0

    # Per-key status
    lanes: dict[str, LaneStatus] = field(default_factory=dict)

    # Recent events (most recent first)
    events: list[EventRecord] = field(default_factory=list)
    max_events: int = 10

    # Config display
    target_count: int = 0
    latency_ms: int = 0
    latency_jitter: float = 0.2
    error_rate: float = 0.0
    scenario_name: str = "multi_key"

    @property
    def throughput(self) -> float:
        """Items completed per second."""
        if self.elapsed > 0:
            return self.completed / self.elapsed
        return 0.0

    @property
    def accepted(self) -> int:
        return self.submitted - self.rejected

    @property
    def progress(self) -> float:
        """Fraction of accepted items settled (0.0 to 1.0)."""
        if self.accepted > 0:
            return (self.completed + self.failed) / self.accepted
        return 0.0

    def add_event(self, event_type: str, item_id: str, key: str | None = None, details: str = "") -> None:
        """Add an event to the display log."""
        self.events.insert(0, EventRecord(
            timestamp=datetime.now(),
            event_type=event_type,
            item_id=item_id,
            key=key,
            details=details,
        ))
        if len(self.events) > self.max_events:
            self.events = self.events[:self.max_events]


class SimulatorDisplay:
    """Rich-based TUI display for the simulator.

    Sections:
    - Totals panel
    - Lanes panel with queue fill bars
    - Recent events log
    - Config footer
    """

    def __init__(self, state: SimulationState, console: Console | None = None):
        self.state = state
        self.console = console or Console()
        self._live: Live | None = None

    def __enter__(self) -> SimulatorDisplay:
        self._live = Live(
            self._build_layout(),
            console=self.console,
            refresh_per_second=10,
            screen=False,
        )
        self._live.__enter__()
        return self

    def __exit__(self, *args) -> None:
        if self._live:
            self._live.__exit__(*args)
            self._live = None

    def refresh(self) -> None:
        """Update the display with current state."""
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Panel:
        s = self.state

        layout = Layout()
        layout.split_column(
            Layout(name="totals", size=4),
            Layout(name="lanes", size=4 + max(len(s.lanes), 1)),
            Layout(name="events", size=7),
            Layout(name="controls", size=3),
        )
        layout["totals"].update(self._build_totals_section())
        layout["lanes"].update(self._build_lanes_section())
        layout["events"].update(self._build_events_section())
        layout["controls"].update(self._build_controls_section())

        return Panel(
            layout,
            title=f"[bold cyan]lanequeue-sim[/bold cyan] [dim]{s.scenario_name}[/dim]",
            border_style="cyan",
        )

    def _build_totals_section(self) -> Panel:
        s = self.state

        stats = Table.grid(expand=True, padding=(0, 2))
        for _ in range(4):
            stats.add_column(justify="left")
        stats.add_row(
            f"[dim]Queued:[/dim] [bold]{s.queued:,}[/bold]",
            f"[dim]Running:[/dim] [bold yellow]{s.running}[/bold yellow]",
            f"[dim]Completed:[/dim] [bold green]{s.completed:,}[/bold green]",
            f"[dim]Failed:[/dim] [bold red]{s.failed}[/bold red]",
        )
        stats.add_row(
            f"[dim]Rejected:[/dim] [bold magenta]{s.rejected}[/bold magenta]",
            f"[dim]Timeouts:[/dim] [bold red]{s.timed_out}[/bold red]",
            f"[dim]Progress:[/dim] [bold]{s.progress * 100:.0f}%[/bold]",
            f"[dim]Throughput:[/dim] [bold]{s.throughput:.1f}/s[/bold]",
        )

        return Panel(stats, title="[bold]Items[/bold]", border_style="blue")

    def _build_lanes_section(self) -> Panel:
        s = self.state

        table = Table(box=None, expand=True, padding=(0, 1))
        table.add_column("Key", width=12)
        table.add_column("Queue", width=20)
        table.add_column("Processed", width=10, justify="right")
        table.add_column("Errors", width=8, justify="right")
        table.add_column("Avg wait", width=10, justify="right")
        table.add_column("State", width=8, justify="center")

        for key, lane in s.lanes.items():
            if lane.max_queue_size:
                bar = self._progress_bar(lane.queue_length / lane.max_queue_size, 8)
                queue = f"{bar} {lane.queue_length}/{lane.max_queue_size}"
            else:
                queue = str(lane.queue_length)

            errors = f"[red]{lane.errors}[/red]" if lane.errors else "0"
            status = "[yellow]●[/yellow]" if lane.busy else "[dim]○[/dim]"

            table.add_row(
                f"[bold]{key}[/bold]",
                queue,
                f"[green]{lane.processed}[/green]",
                errors,
                f"{lane.average_wait_ms:.0f}ms",
                status,
            )

        if not s.lanes:
            table.add_row("[dim]No keys registered[/dim]", "", "", "", "", "")

        return Panel(table, title="[bold]Lanes[/bold]", border_style="blue")

    def _build_events_section(self) -> Panel:
        s = self.state

        table = Table(box=None, expand=True, padding=(0, 1), show_header=False)
        table.add_column("Time", width=10, style="dim")
        table.add_column("Event", width=10)
        table.add_column("Key", width=10)
        table.add_column("Item", width=24)
        table.add_column("Details")

        event_styles = {
            "completed": "green",
            "failed": "red",
            "timeout": "red",
            "started": "yellow",
            "rejected": "magenta",
            "queued": "dim",
        }

        for event in s.events[:5]:
            style = event_styles.get(event.event_type, "white")
            table.add_row(
                event.timestamp.strftime("%H:%M:%S"),
                f"[{style}]{event.event_type}[/{style}]",
                event.key or "",
                event.item_id[-24:],
                event.details[:30],
            )

        if not s.events:
            table.add_row("[dim]No events yet[/dim]", "", "", "", "")

        return Panel(table, title="[bold]Recent Events[/bold]", border_style="blue")

    def _build_controls_section(self) -> Panel:
        s = self.state

        text = Text()
        text.append("Latency: ", style="dim")
        text.append(f"{s.latency_ms}ms", style="bold")
        if s.latency_jitter > 0:
            text.append(f" ±{s.latency_jitter*100:.0f}%", style="dim")
        text.append("  Error: ", style="dim")
        text.append(f"{s.error_rate*100:.0f}%", style="bold red" if s.error_rate > 0 else "bold")
        text.append("  Target: ", style="dim")
        text.append(f"{s.target_count:,}", style="bold")
        text.append("    Ctrl+C to stop", style="dim")

        return Panel(text, title="[bold]Config[/bold]", border_style="dim")

    @staticmethod
    def _progress_bar(pct: float, width: int = 10) -> str:
        """Create a mini progress bar."""
        pct = min(1.0, max(0.0, pct))
        filled = int(pct * width)
        empty = width - filled

        if pct >= 0.9:
            color = "red"
        elif pct >= 0.7:
            color = "yellow"
        else:
            color = "green"

        return f"[{color}]{'█' * filled}{'░' * empty}[/{color}]"


def print_simple_stats(state: SimulationState) -> None:
    """Print a one-line progress update."""
    s = state
    done = s.completed + s.failed

    print(
        f"\r[{done}/{s.accepted}] "
        f"Q:{s.queued} R:{s.running} ✓:{s.completed} ✗:{s.failed} "
        f"rejected:{s.rejected} ({s.progress * 100:.0f}%) {s.throughput:.1f}/s",
        end="",
        flush=True,
    )
