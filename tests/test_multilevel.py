import pytest

from schedsim.algorithms import default_multilevel_config, run_algorithm
from schedsim.errors import ConfigurationError
from schedsim.models import MultilevelConfig, ProcessSpec, QueueSpec


def _spans(result):
    return [(iv.pid, iv.start_time, iv.end_time) for iv in result.timeline]


def _procs():
    return [
        ProcessSpec(1, "P1", arrival_time=0, burst_time=5, priority=3),
        ProcessSpec(2, "P2", arrival_time=2, burst_time=3, priority=1),
        ProcessSpec(3, "P3", arrival_time=4, burst_time=8, priority=2),
    ]


def test_default_config_splits_by_priority():
    config = default_multilevel_config(_procs(), quantum=3)
    assert [q.name for q in config.queues] == ["foreground", "background"]
    assert config.queues[0].quantum == 3
    assert config.assignment == {1: "background", 2: "foreground", 3: "foreground"}


def test_default_multilevel_run():
    res = run_algorithm("multilevel", _procs(), quantum=2)
    # P1 (background) is preempted by P2's arrival and only resumes once the
    # foreground round robin has drained.
    assert _spans(res) == [(1, 0, 2), (2, 2, 4), (3, 4, 6), (2, 6, 7), (3, 7, 13), (1, 13, 16)]
    p1 = next(p for p in res.completed if p.pid == 1)
    assert p1.response_time == 0
    assert p1.waiting_time == 11
    assert res.quantum == 2


def test_default_quantum_when_none_given():
    res = run_algorithm("mlq", _procs())
    assert res.quantum == 2


def test_custom_queues_lower_queue_waits():
    config = MultilevelConfig(
        queues=[
            QueueSpec(name="system", policy="fcfs", rank=0),
            QueueSpec(name="batch", policy="sjf", rank=1),
        ],
        assignment={1: "batch", 2: "batch", 3: "system"},
    )
    procs = [
        ProcessSpec(1, "P1", 0, 6),
        ProcessSpec(2, "P2", 0, 2),
        ProcessSpec(3, "P3", 3, 2),
    ]
    res = run_algorithm("multilevel", procs, config=config)
    assert _spans(res) == [(2, 0, 2), (1, 2, 3), (3, 3, 5), (1, 5, 10)]
    assert res.quantum is None


def test_round_robin_queue_resumes_unused_slice():
    config = MultilevelConfig(
        queues=[
            QueueSpec(name="high", policy="fcfs", rank=0),
            QueueSpec(name="low", policy="round-robin", rank=1, quantum=3),
        ],
        assignment={1: "low", 2: "low", 3: "high"},
    )
    procs = [
        ProcessSpec(1, "P1", 0, 5),
        ProcessSpec(2, "P2", 1, 5),
        ProcessSpec(3, "P3", 2, 1),
    ]
    res = run_algorithm("multilevel", procs, config=config)
    assert _spans(res) == [(1, 0, 2), (3, 2, 3), (1, 3, 4), (2, 4, 7), (1, 7, 9), (2, 9, 11)]


def test_rank_not_list_order_decides():
    config = MultilevelConfig(
        queues=[
            QueueSpec(name="low", policy="fcfs", rank=5),
            QueueSpec(name="high", policy="fcfs", rank=1),
        ],
        assignment={1: "low", 2: "high"},
    )
    procs = [ProcessSpec(1, "P1", 0, 2), ProcessSpec(2, "P2", 0, 2)]
    res = run_algorithm("multilevel", procs, config=config)
    assert [iv.pid for iv in res.timeline] == [2, 1]


def _two_queue_config(**overrides):
    queues = overrides.pop(
        "queues",
        [QueueSpec(name="a", policy="fcfs", rank=0), QueueSpec(name="b", policy="fcfs", rank=1)],
    )
    assignment = overrides.pop("assignment", {1: "a", 2: "b", 3: "b"})
    return MultilevelConfig(queues=queues, assignment=assignment)


@pytest.mark.parametrize(
    "config, message",
    [
        (_two_queue_config(queues=[QueueSpec(name="a", policy="fcfs", rank=0)]), "at least two"),
        (
            _two_queue_config(
                queues=[QueueSpec(name="a", policy="fcfs", rank=0), QueueSpec(name="b", policy="sjf", rank=0)]
            ),
            "ranks must be unique",
        ),
        (
            _two_queue_config(
                queues=[QueueSpec(name="a", policy="fcfs", rank=0), QueueSpec(name="a", policy="sjf", rank=1)]
            ),
            "names must be unique",
        ),
        (
            _two_queue_config(
                queues=[QueueSpec(name="a", policy="multilevel", rank=0), QueueSpec(name="b", policy="fcfs", rank=1)]
            ),
            "cannot itself",
        ),
        (
            _two_queue_config(
                queues=[QueueSpec(name="a", policy="rr", rank=0), QueueSpec(name="b", policy="fcfs", rank=1)]
            ),
            "requires a quantum",
        ),
        (_two_queue_config(assignment={1: "a", 2: "b"}), "without a queue assignment"),
        (_two_queue_config(assignment={1: "a", 2: "b", 3: "c"}), "unknown queue"),
        (_two_queue_config(assignment={1: "a", 2: "b", 3: "b", 9: "a"}), "unknown process ids"),
    ],
)
def test_bad_configuration(config, message):
    with pytest.raises(ConfigurationError, match=message):
        run_algorithm("multilevel", _procs(), config=config)


def _contended():
    return [
        ProcessSpec(1, "P1", arrival_time=0, burst_time=7, priority=3),
        ProcessSpec(2, "P2", arrival_time=1, burst_time=4, priority=2),
        ProcessSpec(3, "P3", arrival_time=2, burst_time=1, priority=1),
        ProcessSpec(4, "P4", arrival_time=3, burst_time=3, priority=1),
        ProcessSpec(5, "P5", arrival_time=5, burst_time=2, priority=4),
    ]


@pytest.mark.parametrize("policy", ["srtf", "priority-preemptive", "sjf", "priority", "rr"])
def test_single_used_queue_matches_standalone_policy(policy):
    procs = _contended()
    quantum = 2 if policy == "rr" else None
    config = MultilevelConfig(
        queues=[
            QueueSpec(name="a", policy=policy, rank=0, quantum=quantum),
            QueueSpec(name="b", policy="fcfs", rank=1),
        ],
        assignment={p.pid: "a" for p in procs},
    )
    res = run_algorithm("multilevel", procs, config=config)
    assert _spans(res) == _spans(run_algorithm(policy, procs, quantum=quantum))


def test_higher_queue_interrupts_preemptive_lower_queue():
    config = MultilevelConfig(
        queues=[
            QueueSpec(name="high", policy="fcfs", rank=0),
            QueueSpec(name="low", policy="srtf", rank=1),
        ],
        assignment={1: "low", 2: "low", 3: "high", 4: "low"},
    )
    procs = [
        ProcessSpec(1, "P1", 0, 6),
        ProcessSpec(2, "P2", 1, 3),
        ProcessSpec(3, "P3", 2, 2),
        ProcessSpec(4, "P4", 3, 1),
    ]
    res = run_algorithm("multilevel", procs, config=config)
    # P2 displaces P1 inside the low queue, P3 interrupts P2, and once the
    # high queue drains P4 displaces the resumed P2.
    assert _spans(res) == [(1, 0, 1), (2, 1, 2), (3, 2, 4), (4, 4, 5), (2, 5, 7), (1, 7, 12)]
    p2 = next(p for p in res.completed if p.pid == 2)
    assert p2.response_time == 0
    assert p2.waiting_time == 3
