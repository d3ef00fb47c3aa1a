from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .algorithms import ALGORITHMS, DEFAULT_QUANTUM, Policy, parse_policy, run_algorithm
from .errors import ConfigurationError, SchedulingError, ValidationError
from .gantt import build_rich_gantt, legend, process_color
from .metrics import rounded, summarize_process_metrics
from .models import ScheduleResult
from .stepper import SimulationStepper
from .workload_io import dump_result, dump_workload, generate_workload, load_multilevel_config, load_workload

logger = logging.getLogger(__name__)

QUANTUM_POLICIES = {Policy.ROUND_ROBIN, Policy.MULTILEVEL}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schedsim",
        description="Deterministic CPU scheduling simulator (FCFS, SJF, SRTF, Priority, RR, Multilevel).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (DEBUG shows every dispatch).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a scheduling policy on a workload file.")
    run_parser.add_argument(
        "--algorithm",
        "-a",
        required=True,
        help="Policy to use (" + ", ".join(p.value for p in ALGORITHMS) + ").",
    )
    run_parser.add_argument(
        "--workload",
        "-w",
        required=True,
        help="Path to JSON or CSV workload file.",
    )
    run_parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=None,
        help="Time quantum for round-robin / multilevel (ignored by the others).",
    )
    run_parser.add_argument(
        "--mlq-config",
        default=None,
        help="JSON file describing multilevel queues and the process assignment.",
    )
    run_parser.add_argument(
        "--output",
        "-o",
        default=None,
        help="Write the timeline, per-process records and metrics to this JSON file.",
    )
    run_parser.add_argument(
        "--step",
        action="store_true",
        help="Replay the schedule one time unit at a time in the terminal.",
    )
    run_parser.add_argument(
        "--step-delay",
        type=float,
        default=0.3,
        help="Seconds to wait between steps when --step is used (default: 0.3).",
    )

    compare_parser = subparsers.add_parser(
        "compare",
        help="Run multiple policies on the same workload and compare average metrics.",
    )
    compare_parser.add_argument(
        "--workload",
        "-w",
        required=True,
        help="Path to JSON or CSV workload file.",
    )
    compare_parser.add_argument(
        "--algorithms",
        "-a",
        nargs="+",
        default=[p.value for p in ALGORITHMS],
        help="Policies to compare (default: all).",
    )
    compare_parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=DEFAULT_QUANTUM,
        help=f"Time quantum used for round-robin / multilevel (default: {DEFAULT_QUANTUM}).",
    )

    gen_parser = subparsers.add_parser("generate", help="Write a random workload file.")
    gen_parser.add_argument("--count", "-n", type=int, default=5, help="Number of processes (default: 5).")
    gen_parser.add_argument("--output", "-o", required=True, help="Target .json or .csv file.")
    gen_parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible workload.")

    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _print_result(result: ScheduleResult, console: Console) -> None:
    console.print(f"[bold]Algorithm:[/bold] {result.algorithm}")
    if result.quantum is not None:
        console.print(f"[bold]Quantum:[/bold] {result.quantum}")

    console.print()

    panel, time_marks = build_rich_gantt(result.timeline)
    console.print(panel)
    if time_marks:
        console.print(time_marks)
        console.print(legend(result.timeline))

    console.print()

    headers = [
        "ID",
        "Label",
        "Arrive",
        "Burst",
        "Priority",
        "Start",
        "Complete",
        "Wait",
        "Turnaround",
        "Response",
    ]

    proc_table = Table(title="Per-process metrics", box=box.SIMPLE_HEAVY)
    for h in headers:
        justify = "center" if h in {"ID", "Label", "Priority"} else "right"
        proc_table.add_column(h, justify=justify)

    for row in summarize_process_metrics(result.completed):
        proc_table.add_row(
            str(row["id"]),
            escape(row["label"]),
            str(row["arrivalTime"]),
            str(row["burstTime"]),
            str(row["priority"]),
            str(row["startTime"]),
            str(row["completionTime"]),
            str(row["waitingTime"]),
            str(row["turnaroundTime"]),
            str(row["responseTime"]),
        )

    console.print(proc_table)
    console.print()

    m = rounded(result.metrics)
    sys_table = Table(title="System metrics", box=box.SIMPLE_HEAVY)
    sys_table.add_column("Metric")
    sys_table.add_column("Value", justify="right")

    sys_table.add_row("Avg waiting", f"{m.avg_waiting_time:.2f}")
    sys_table.add_row("Avg turnaround", f"{m.avg_turnaround_time:.2f}")
    sys_table.add_row("Avg response", f"{m.avg_response_time:.2f}")
    sys_table.add_row("Throughput (proc/time)", f"{m.throughput:.2f}")
    sys_table.add_row("CPU utilization", f"{m.cpu_utilization:.2f}%")
    sys_table.add_row("Total time", str(m.total_time))

    console.print(sys_table)


def _animate_result(result: ScheduleResult, delay: float, console: Console) -> None:
    """
    Time-stepped textual replay of the computed schedule.
    """
    stepper = SimulationStepper(result)
    if stepper.finished:
        console.print("[red]No execution to animate.[/red]")
        return

    console.print(f"[bold]Simulating {result.algorithm}[/bold] (duration {result.final_time} time units)")
    console.print("[dim]Press Ctrl+C to skip animation.[/dim]")

    while not stepper.finished:
        delta = stepper.step()
        if delta.idle:
            msg = f"t={delta.time:2d}: [dim]idle[/dim]"
        else:
            iv = delta.interval
            msg = f"t={delta.time:2d}: [{process_color(iv.pid)}]{escape(iv.label)}[/]"
        if delta.completed:
            msg += f"  [bold]done: {', '.join(f'#{pid}' for pid in delta.completed)}[/bold]"
        console.print(msg)
        time.sleep(delay)


def _run_compare(workload_path: Path, algorithms: list[str], quantum: int, console: Console) -> None:
    """
    Run each policy on a workload and print the summary table.
    """
    processes = load_workload(workload_path)

    summary_table = Table(title=f"Algorithm comparison: {workload_path}", box=box.SIMPLE_HEAVY)
    summary_table.add_column("Algorithm")
    summary_table.add_column("Quantum", justify="right")
    summary_table.add_column("Avg waiting", justify="right")
    summary_table.add_column("Avg turnaround", justify="right")
    summary_table.add_column("Avg response", justify="right")
    summary_table.add_column("CPU util.", justify="right")
    summary_table.add_column("Throughput", justify="right")

    for alg in algorithms:
        policy = parse_policy(alg)
        q = quantum if policy in QUANTUM_POLICIES else None
        result = run_algorithm(policy, processes, quantum=q)
        m = rounded(result.metrics)
        summary_table.add_row(
            result.algorithm,
            "" if result.quantum is None else str(result.quantum),
            f"{m.avg_waiting_time:.2f}",
            f"{m.avg_turnaround_time:.2f}",
            f"{m.avg_response_time:.2f}",
            f"{m.cpu_utilization:.2f}%",
            f"{m.throughput:.2f}",
        )

    console.print(summary_table)


def _dispatch(args: argparse.Namespace, console: Console) -> int:
    if args.command == "run":
        processes = load_workload(Path(args.workload))
        config = load_multilevel_config(args.mlq_config) if args.mlq_config else None
        result = run_algorithm(args.algorithm, processes, quantum=args.quantum, config=config)
        if args.step:
            try:
                _animate_result(result, delay=args.step_delay, console=console)
            except KeyboardInterrupt:
                console.print("[yellow]Animation skipped.[/yellow]")
        _print_result(result, console)
        if args.output:
            dump_result(result, args.output)
            console.print(f"[green]Result written to {args.output}[/green]")
        return 0

    if args.command == "compare":
        _run_compare(Path(args.workload), args.algorithms, args.quantum, console)
        return 0

    if args.command == "generate":
        specs = generate_workload(args.count, seed=args.seed)
        dump_workload(specs, args.output)
        console.print(f"[green]Wrote {len(specs)} processes to {args.output}[/green]")
        return 0

    return 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    console = Console()
    try:
        return _dispatch(args, console)
    except (ValidationError, ConfigurationError) as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        return 2
    except SchedulingError as exc:
        logger.exception("simulation failed")
        console.print(f"[red]Internal error: {escape(str(exc))}[/red]")
        return 3
    except OSError as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
