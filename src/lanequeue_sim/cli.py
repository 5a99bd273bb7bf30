#!/usr/bin/env python3
"""
lanequeue-sim: Interactive simulator for lanequeue.

Usage:
    lanequeue-sim --count 100 --keys 4 --latency 20
    lanequeue-sim --scenario overflow --count 60
    lanequeue-sim --scenario slow --timeout-ms 100 --no-tui
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import signal
import sys

from rich.console import Console
from rich.table import Table

from lanequeue_sim.display import SimulationState, SimulatorDisplay, print_simple_stats
from lanequeue_sim.runner import SimConfig, SimulationRunner


def configure_logging(verbose: bool = False) -> None:
    """Configure logging for the simulator."""
    lanequeue_logger = logging.getLogger("lanequeue")
    if verbose:
        lanequeue_logger.setLevel(logging.DEBUG)
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        lanequeue_logger.addHandler(handler)
    else:
        # Silence library logs - simulator handles its own display
        lanequeue_logger.setLevel(logging.CRITICAL)


async def run_with_display(config: SimConfig, use_tui: bool = True, verbose: bool = False) -> SimulationState:
    """Run simulation with visual display.

    Args:
        config: Simulation configuration
        use_tui: Use Rich TUI display (default True)
        verbose: Let library logs stream instead of a live display
    """
    state = SimulationState()
    runner = SimulationRunner(config, state)

    if use_tui and not verbose:
        display = SimulatorDisplay(state)

        async def update_loop():
            while True:
                display.refresh()
                await asyncio.sleep(0.1)

        with display:
            update_task = asyncio.create_task(update_loop())
            try:
                await runner.run()
            except (KeyboardInterrupt, asyncio.CancelledError):
                runner.stop()
            finally:
                update_task.cancel()
                try:
                    await update_task
                except asyncio.CancelledError:
                    pass
                await runner.cleanup()
                display.refresh()
    else:
        print(f"\nlanequeue-sim [{config.scenario}]")
        print(f"   Count: {config.count}, Latency: {config.latency_ms}ms, Error: {config.error_rate * 100:.0f}%")
        print()

        async def update_loop():
            while True:
                if not verbose:
                    print_simple_stats(state)
                await asyncio.sleep(0.5)

        update_task = asyncio.create_task(update_loop())
        try:
            await runner.run()
        except (KeyboardInterrupt, asyncio.CancelledError):
            runner.stop()
        finally:
            update_task.cancel()
            try:
                await update_task
            except asyncio.CancelledError:
                pass
            await runner.cleanup()

        print()
    print_final_summary(state)
    return state


def print_final_summary(state: SimulationState, console: Console | None = None) -> None:
    """Print final summary after simulation."""
    console = console or Console()
    console.print()

    table = Table(title="Simulation Results", show_header=False, border_style="green")
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Submitted", str(state.submitted))
    table.add_row("Rejected", f"[magenta]{state.rejected}[/magenta]" if state.rejected else "0")
    table.add_row("Completed", f"[green]{state.completed}[/green]")
    table.add_row("Failed", f"[red]{state.failed}[/red]" if state.failed else "0")
    table.add_row("Timeouts", f"[red]{state.timed_out}[/red]" if state.timed_out else "0")
    table.add_row("Duration", f"{state.elapsed:.2f}s")
    table.add_row("Throughput", f"{state.throughput:.2f}/s")

    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="lanequeue simulator - test keyed workloads interactively",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lanequeue-sim --count 100 --keys 4 --latency 20
  lanequeue-sim --scenario single_key --delay 100
  lanequeue-sim --scenario overflow --count 60
  lanequeue-sim --scenario slow --timeout-ms 100
  lanequeue-sim --list-scenarios
        """,
    )

    parser.add_argument(
        "--scenario",
        type=str,
        default="multi_key",
        help="Scenario to run (default: multi_key)",
    )
    parser.add_argument(
        "--list-scenarios",
        action="store_true",
        help="List available scenarios and exit",
    )
    parser.add_argument(
        "--count", "-n",
        type=int,
        default=100,
        help="Number of items to enqueue (default: 100)",
    )
    parser.add_argument(
        "--keys", "-k",
        type=int,
        default=3,
        help="Number of keys for multi_key (default: 3)",
    )
    parser.add_argument(
        "--latency", "-l",
        type=int,
        default=50,
        help="Base processor latency in ms (default: 50)",
    )
    parser.add_argument(
        "--jitter", "-j",
        type=float,
        default=0.2,
        help="Latency variance as fraction, e.g. 0.2 = ±20%% (default: 0.2)",
    )
    parser.add_argument(
        "--error-rate", "-e",
        type=float,
        default=0.0,
        help="Fraction of items whose processor raises, 0.0-1.0 (default: 0.0)",
    )
    parser.add_argument(
        "--delay",
        type=int,
        default=0,
        help="Processing delay before each item in ms (default: 0)",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=1000,
        help="Per-item processing timeout in ms (default: 1000)",
    )
    parser.add_argument(
        "--max-queue-size",
        type=int,
        default=100,
        help="Admission bound per key (default: 100)",
    )
    parser.add_argument(
        "--submit-rate", "-s",
        type=float,
        default=None,
        help="Submit rate (items/second), None = batch (default: batch)",
    )
    parser.add_argument(
        "--duration", "-d",
        type=float,
        default=None,
        help="Maximum duration in seconds (default: run until complete)",
    )
    parser.add_argument(
        "--no-tui",
        action="store_true",
        help="Disable TUI, use simple text output",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Stream library logs instead of status updates (no-tui)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible behavior (default: random)",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> SimConfig:
    return SimConfig(
        count=args.count,
        keys=args.keys,
        latency_ms=args.latency,
        latency_jitter=args.jitter,
        error_rate=args.error_rate,
        delay_ms=args.delay,
        timeout_ms=args.timeout_ms,
        max_queue_size=args.max_queue_size,
        submit_rate=args.submit_rate,
        duration=args.duration,
        scenario=args.scenario,
    )


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_scenarios:
        from lanequeue_sim.scenarios import list_scenarios
        print("\nAvailable scenarios:\n")
        for info in list_scenarios():
            print(f"  {info.name:<15} {info.description}")
        print()
        sys.exit(0)

    from lanequeue_sim.scenarios import SCENARIOS
    if args.scenario not in SCENARIOS:
        parser.error(f"Unknown scenario: {args.scenario}. Available: {', '.join(SCENARIOS)}")

    configure_logging(verbose=args.verbose)

    if args.seed is not None:
        random.seed(args.seed)

    try:
        config = config_from_args(args)
        config.queue_config()
    except ValueError as e:
        parser.error(str(e))

    use_tui = not args.no_tui

    async def run_main():
        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        main_task = asyncio.create_task(run_with_display(config, use_tui=use_tui, verbose=args.verbose))
        stop_task = asyncio.create_task(stop_event.wait())

        done, pending = await asyncio.wait(
            [main_task, stop_task],
            return_when=asyncio.FIRST_COMPLETED,
        )

        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if stop_task in done:
            print("\nInterrupted.")
            sys.exit(130)

    try:
        asyncio.run(run_main())
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
