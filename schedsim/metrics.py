from __future__ import annotations

from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Sequence

from .models import Metrics, ProcessRunState


def round_half_away(value: float, places: int = 2) -> float:
    """
    Round half away from zero (2.345 -> 2.35, -2.345 -> -2.35).

    Goes through the decimal repr of ``value`` so that binary floating point
    artefacts do not flip a tie.
    """
    quant = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quant, rounding=ROUND_HALF_UP))


def compute_metrics(completed: Sequence[ProcessRunState], final_time: int) -> Metrics:
    """
    Aggregate statistics over the completed processes of a run.

    An empty run, or one whose clock never moved, yields all-zero metrics.
    """
    if not completed or final_time <= 0:
        return Metrics()

    n = len(completed)
    busy_time = sum(p.burst_time for p in completed)

    return Metrics(
        avg_waiting_time=sum(p.waiting_time for p in completed) / n,
        avg_turnaround_time=sum(p.turnaround_time for p in completed) / n,
        avg_response_time=sum(p.response_time for p in completed) / n,
        cpu_utilization=busy_time / final_time * 100,
        throughput=n / final_time,
        busy_time=busy_time,
        total_time=final_time,
    )


def rounded(metrics: Metrics, places: int = 2) -> Metrics:
    """
    Copy of ``metrics`` with every float field rounded for display.
    """
    return replace(
        metrics,
        avg_waiting_time=round_half_away(metrics.avg_waiting_time, places),
        avg_turnaround_time=round_half_away(metrics.avg_turnaround_time, places),
        avg_response_time=round_half_away(metrics.avg_response_time, places),
        cpu_utilization=round_half_away(metrics.cpu_utilization, places),
        throughput=round_half_away(metrics.throughput, places),
    )


def summarize_process_metrics(completed: List[ProcessRunState]) -> List[Dict[str, int]]:
    """
    Per-process rows (sorted by id) for tables and exports.
    """
    rows = []
    for p in sorted(completed, key=lambda s: s.pid):
        rows.append(
            {
                "id": p.pid,
                "label": p.label,
                "arrivalTime": p.arrival_time,
                "burstTime": p.burst_time,
                "priority": p.priority,
                "startTime": p.start_time,
                "completionTime": p.completion_time,
                "waitingTime": p.waiting_time,
                "turnaroundTime": p.turnaround_time,
                "responseTime": p.response_time,
            }
        )
    return rows
