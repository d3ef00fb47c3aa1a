import pytest

from schedsim.algorithms import run_algorithm
from schedsim.metrics import compute_metrics, round_half_away, rounded, summarize_process_metrics
from schedsim.models import Metrics, ProcessSpec, reset_run_state


def _procs():
    return [
        ProcessSpec(1, "P1", arrival_time=0, burst_time=5, priority=3),
        ProcessSpec(2, "P2", arrival_time=2, burst_time=3, priority=1),
        ProcessSpec(3, "P3", arrival_time=4, burst_time=8, priority=2),
    ]


@pytest.mark.parametrize(
    "value, expected",
    [
        (2.345, 2.35),
        (2.335, 2.34),
        (0.125, 0.13),
        (-1.005, -1.01),
        (7 / 3, 2.33),
        (3.0, 3.0),
    ],
)
def test_round_half_away(value, expected):
    assert round_half_away(value) == expected


def test_fcfs_metrics():
    res = run_algorithm("fcfs", _procs())
    m = rounded(res.metrics)
    assert m.avg_waiting_time == 2.33
    assert m.avg_turnaround_time == 7.67
    assert m.avg_response_time == 2.33
    assert m.cpu_utilization == 100.0
    assert m.throughput == 0.19
    assert m.busy_time == 16
    assert m.total_time == 16


def test_full_precision_is_kept():
    res = run_algorithm("fcfs", _procs())
    assert res.metrics.avg_waiting_time == pytest.approx(7 / 3)
    assert res.metrics.avg_waiting_time != 2.33
    assert res.metrics.throughput == pytest.approx(3 / 16)


def test_utilization_counts_idle_time():
    res = run_algorithm("fcfs", [ProcessSpec(1, "P1", 4, 4)])
    assert res.metrics.cpu_utilization == pytest.approx(50.0)
    assert res.metrics.throughput == pytest.approx(0.125)


def test_empty_completed_list_is_all_zero():
    assert compute_metrics([], 0) == Metrics()
    assert compute_metrics([], 10) == Metrics()


def test_zero_final_time_is_all_zero():
    states = reset_run_state(_procs())
    assert compute_metrics(states, 0) == Metrics()


def test_summarize_process_metrics_sorted_by_id():
    res = run_algorithm("sjf", list(reversed(_procs())))
    rows = summarize_process_metrics(res.completed)
    assert [r["id"] for r in rows] == [1, 2, 3]
    assert rows[2] == {
        "id": 3,
        "label": "P3",
        "arrivalTime": 4,
        "burstTime": 8,
        "priority": 2,
        "startTime": 8,
        "completionTime": 16,
        "waitingTime": 4,
        "turnaroundTime": 12,
        "responseTime": 4,
    }
