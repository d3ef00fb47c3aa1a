from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Sequence

from .errors import ConfigurationError, InvariantViolation, ResourceExhaustedError, ValidationError
from .metrics import compute_metrics
from .models import (
    ExecutionInterval,
    MultilevelConfig,
    ProcessRunState,
    ProcessSpec,
    QueueSpec,
    ScheduleResult,
    reset_run_state,
)

logger = logging.getLogger(__name__)

DEFAULT_QUANTUM = 2
MAX_SIMULATED_TIME = 1_000_000
# Default multilevel split: priority <= cutoff goes to the foreground queue.
DEFAULT_FOREGROUND_CUTOFF = 2


class Policy(str, Enum):
    FCFS = "fcfs"
    SJF = "sjf"
    SRTF = "sjf-preemptive"
    PRIORITY = "priority"
    PRIORITY_PREEMPTIVE = "priority-preemptive"
    ROUND_ROBIN = "round-robin"
    MULTILEVEL = "multilevel"


_ALIASES = {"srtf": Policy.SRTF, "rr": Policy.ROUND_ROBIN, "mlq": Policy.MULTILEVEL}

DISPLAY_NAMES = {
    Policy.FCFS: "FCFS",
    Policy.SJF: "SJF (non-preemptive)",
    Policy.SRTF: "SRTF (preemptive SJF)",
    Policy.PRIORITY: "Priority (non-preemptive)",
    Policy.PRIORITY_PREEMPTIVE: "Priority (preemptive)",
    Policy.ROUND_ROBIN: "Round Robin",
    Policy.MULTILEVEL: "Multilevel Queue",
}


def parse_policy(name: str | Policy) -> Policy:
    if isinstance(name, Policy):
        return name
    key = str(name).strip().lower()
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return Policy(key)
    except ValueError:
        raise ConfigurationError(f"Unknown scheduling policy '{name}'") from None


@dataclass
class RunOutcome:
    timeline: List[ExecutionInterval] = field(default_factory=list)
    completed: List[ProcessRunState] = field(default_factory=list)
    final_time: int = 0


class SimClock:
    """
    Monotonic simulated clock with an upper bound on elapsed time.
    """

    def __init__(self, limit: int = MAX_SIMULATED_TIME) -> None:
        self.now = 0
        self.limit = limit

    def advance_to(self, t: int) -> None:
        if t < self.now:
            raise InvariantViolation(f"clock moved backward from {self.now} to {t}", state={"clock": self.now})
        if t > self.limit:
            raise ResourceExhaustedError(f"simulated time {t} exceeds the limit of {self.limit} units")
        self.now = t


def append_interval(timeline: List[ExecutionInterval], pid: int, label: str, start: int, end: int) -> None:
    """
    Append an execution interval, merging it into the previous one when the
    same process simply keeps running.
    """
    if timeline:
        last = timeline[-1]
        if start < last.end_time:
            raise InvariantViolation(
                f"interval {label} {start}-{end} overlaps {last.label} {last.start_time}-{last.end_time}"
            )
        if last.pid == pid and last.end_time == start:
            timeline[-1] = replace(last, end_time=end)
            return
    timeline.append(ExecutionInterval(pid=pid, label=label, start_time=start, end_time=end))


class _Run:
    """
    Bookkeeping shared by every policy: clock, timeline and completion order.
    """

    def __init__(self, states: List[ProcessRunState], time_limit: int) -> None:
        self.states = states
        self.clock = SimClock(time_limit)
        self.timeline: List[ExecutionInterval] = []
        self.completed: List[ProcessRunState] = []

    @property
    def done(self) -> bool:
        return len(self.completed) == len(self.states)

    def execute(self, proc: ProcessRunState, units: int) -> None:
        start = self.clock.now
        if proc.arrival_time > start:
            raise InvariantViolation(f"{proc.label} dispatched before arrival", state=self.snapshot())
        proc.dispatch(start)
        proc.execute(units)
        self.clock.advance_to(start + units)
        append_interval(self.timeline, proc.pid, proc.label, start, self.clock.now)
        logger.debug("t=%d-%d run %s (remaining %d)", start, self.clock.now, proc.label, proc.remaining_time)
        if proc.remaining_time == 0:
            proc.finish(self.clock.now)
            self.completed.append(proc)

    def ready(self) -> List[ProcessRunState]:
        now = self.clock.now
        return [p for p in self.states if not p.completed and p.arrival_time <= now]

    def next_arrival(self) -> Optional[int]:
        future = [p.arrival_time for p in self.states if not p.completed and p.arrival_time > self.clock.now]
        return min(future) if future else None

    def idle_until_next_arrival(self) -> None:
        nxt = self.next_arrival()
        if nxt is None:
            raise InvariantViolation("no process can ever become eligible", state=self.snapshot())
        logger.debug("t=%d idle until %d", self.clock.now, nxt)
        self.clock.advance_to(nxt)

    def snapshot(self) -> Dict[str, object]:
        return {"clock": self.clock.now, "processes": [p.snapshot() for p in self.states]}

    def outcome(self) -> RunOutcome:
        if not self.done:
            raise InvariantViolation("run ended with unfinished processes", state=self.snapshot())
        return RunOutcome(timeline=self.timeline, completed=self.completed, final_time=self.clock.now)


def _require_quantum(quantum: Optional[int], policy: str) -> int:
    if quantum is None:
        raise ConfigurationError(f"{policy} requires a quantum (use --quantum)")
    if isinstance(quantum, bool) or not isinstance(quantum, int) or quantum <= 0:
        raise ValidationError(f"{policy} quantum must be a positive integer, got {quantum!r}")
    return quantum


def _by_remaining(p: ProcessRunState) -> int:
    return p.remaining_time


def _by_priority(p: ProcessRunState) -> int:
    return p.priority


def _by_arrival(p: ProcessRunState) -> int:
    return p.arrival_time


def _schedule_non_preemptive(
    states: List[ProcessRunState], key: Callable[[ProcessRunState], int], time_limit: int
) -> RunOutcome:
    run = _Run(states, time_limit)
    while not run.done:
        ready = run.ready()
        if not ready:
            run.idle_until_next_arrival()
            continue
        p = min(ready, key=lambda s: (key(s), s.pid))
        run.execute(p, p.remaining_time)
    return run.outcome()


def _schedule_preemptive(
    states: List[ProcessRunState], key: Callable[[ProcessRunState], int], time_limit: int
) -> RunOutcome:
    """
    Event-driven preemptive loop: decisions are only revisited at arrivals
    and completions, which is equivalent to re-deciding every time unit.
    """
    run = _Run(states, time_limit)
    current: Optional[ProcessRunState] = None
    while not run.done:
        ready = run.ready()
        if not ready:
            run.idle_until_next_arrival()
            continue

        best = min(ready, key=lambda s: (key(s), s.pid))
        # The running process keeps the CPU unless strictly beaten.
        if current is None or current.completed or key(best) < key(current):
            current = best

        nxt = run.next_arrival()
        units = current.remaining_time if nxt is None else min(current.remaining_time, nxt - run.clock.now)
        run.execute(current, units)
    return run.outcome()


def schedule_fcfs(
    states: List[ProcessRunState], quantum: Optional[int] = None, time_limit: int = MAX_SIMULATED_TIME
) -> RunOutcome:
    """
    First-Come First-Serve (non-preemptive) scheduling.
    """
    run = _Run(states, time_limit)
    for p in sorted(states, key=lambda s: (s.arrival_time, s.pid)):
        if run.clock.now < p.arrival_time:
            run.clock.advance_to(p.arrival_time)
        run.execute(p, p.remaining_time)
    return run.outcome()


def schedule_sjf(
    states: List[ProcessRunState], quantum: Optional[int] = None, time_limit: int = MAX_SIMULATED_TIME
) -> RunOutcome:
    """
    Shortest Job First (non-preemptive).

    At each decision point, among processes that have arrived and are not yet
    completed, choose the one with the smallest remaining time (lowest id on ties).
    """
    return _schedule_non_preemptive(states, _by_remaining, time_limit)


def schedule_srtf(
    states: List[ProcessRunState], quantum: Optional[int] = None, time_limit: int = MAX_SIMULATED_TIME
) -> RunOutcome:
    """
    Shortest Remaining Time First (preemptive SJF).
    """
    return _schedule_preemptive(states, _by_remaining, time_limit)


def schedule_priority(
    states: List[ProcessRunState], quantum: Optional[int] = None, time_limit: int = MAX_SIMULATED_TIME
) -> RunOutcome:
    """
    Static Priority scheduling (non-preemptive).

    Lower numeric priority value means higher priority. Among ready
    processes, choose the one with the smallest priority; break ties by id.
    """
    return _schedule_non_preemptive(states, _by_priority, time_limit)


def schedule_priority_preemptive(
    states: List[ProcessRunState], quantum: Optional[int] = None, time_limit: int = MAX_SIMULATED_TIME
) -> RunOutcome:
    """
    Preemptive priority: an arrival with a strictly smaller priority value
    takes the CPU from the running process.
    """
    return _schedule_preemptive(states, _by_priority, time_limit)


def schedule_rr(
    states: List[ProcessRunState], quantum: Optional[int] = None, time_limit: int = MAX_SIMULATED_TIME
) -> RunOutcome:
    """
    Round Robin scheduling with a fixed time quantum.

    Processes that arrive while a slice runs (or exactly when it ends) are
    queued ahead of the process whose slice just expired.
    """
    quantum = _require_quantum(quantum, "Round Robin")
    run = _Run(states, time_limit)

    pending: Deque[ProcessRunState] = deque(sorted(states, key=lambda s: (s.arrival_time, s.pid)))
    ready: Deque[ProcessRunState] = deque()

    def enqueue_new_arrivals() -> None:
        while pending and pending[0].arrival_time <= run.clock.now:
            ready.append(pending.popleft())

    enqueue_new_arrivals()
    while not run.done:
        if not ready:
            run.idle_until_next_arrival()
            enqueue_new_arrivals()
            continue

        p = ready.popleft()
        run.execute(p, min(quantum, p.remaining_time))
        enqueue_new_arrivals()
        if not p.completed:
            ready.append(p)

    return run.outcome()


_SELECTION_KEYS: Dict[Policy, Callable[[ProcessRunState], int]] = {
    Policy.FCFS: _by_arrival,
    Policy.SJF: _by_remaining,
    Policy.SRTF: _by_remaining,
    Policy.PRIORITY: _by_priority,
    Policy.PRIORITY_PREEMPTIVE: _by_priority,
}
_PREEMPTIVE = {Policy.SRTF, Policy.PRIORITY_PREEMPTIVE}


class _LevelQueue:
    """
    One sub-queue of the multilevel policy with its own dispatch rule.

    ``current`` is the process this queue last dispatched and that has not
    finished (or, under round robin, not used up its slice yet). It resumes
    when the queue next gets the CPU.
    """

    def __init__(self, spec: QueueSpec, policy: Policy, quantum: Optional[int]) -> None:
        self.spec = spec
        self.policy = policy
        self.quantum = quantum
        self.waiting: List[ProcessRunState] = []
        self.current: Optional[ProcessRunState] = None
        self.slice_used = 0

    def has_work(self) -> bool:
        return self.current is not None or bool(self.waiting)

    def select(self) -> ProcessRunState:
        if self.policy is Policy.ROUND_ROBIN:
            if self.current is None:
                self.current = self.waiting.pop(0)
                self.slice_used = 0
            return self.current

        if self.current is not None and (self.policy not in _PREEMPTIVE or not self.waiting):
            return self.current

        key = _SELECTION_KEYS[self.policy]
        best = min(self.waiting, key=lambda s: (key(s), s.pid))
        if self.current is None or key(best) < key(self.current):
            if self.current is not None:
                self.waiting.append(self.current)
            self.waiting.remove(best)
            self.current = best
        return self.current

    def budget(self, proc: ProcessRunState) -> int:
        if self.policy is Policy.ROUND_ROBIN:
            return min(self.quantum - self.slice_used, proc.remaining_time)
        return proc.remaining_time

    def after_run(self, proc: ProcessRunState, units: int) -> None:
        if proc.completed:
            self.current = None
            return
        if self.policy is Policy.ROUND_ROBIN:
            self.slice_used += units
            if self.slice_used >= self.quantum:
                self.waiting.append(proc)
                self.current = None


def default_multilevel_config(
    processes: Sequence[ProcessSpec | ProcessRunState],
    quantum: Optional[int] = None,
    cutoff: int = DEFAULT_FOREGROUND_CUTOFF,
) -> MultilevelConfig:
    """
    Two queues: a round-robin foreground for priority <= ``cutoff`` and an
    FCFS background for the rest.
    """
    queues = [
        QueueSpec(
            name="foreground",
            policy=Policy.ROUND_ROBIN.value,
            rank=0,
            quantum=DEFAULT_QUANTUM if quantum is None else quantum,
        ),
        QueueSpec(name="background", policy=Policy.FCFS.value, rank=1),
    ]
    assignment = {p.pid: ("foreground" if p.priority <= cutoff else "background") for p in processes}
    return MultilevelConfig(queues=queues, assignment=assignment)


def _build_levels(
    states: List[ProcessRunState], config: MultilevelConfig, quantum: Optional[int]
) -> Dict[int, _LevelQueue]:
    if len(config.queues) < 2:
        raise ConfigurationError("Multilevel scheduling needs at least two queues")

    names = [q.name for q in config.queues]
    ranks = [q.rank for q in config.queues]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"Multilevel queue names must be unique: {names}")
    if len(set(ranks)) != len(ranks):
        raise ConfigurationError(f"Multilevel queue ranks must be unique: {ranks}")

    levels: Dict[str, _LevelQueue] = {}
    for spec in config.queues:
        policy = parse_policy(spec.policy)
        if policy is Policy.MULTILEVEL:
            raise ConfigurationError(f"Queue '{spec.name}' cannot itself use the multilevel policy")
        level_quantum = None
        if policy is Policy.ROUND_ROBIN:
            level_quantum = _require_quantum(
                spec.quantum if spec.quantum is not None else quantum, f"Queue '{spec.name}' (Round Robin)"
            )
        levels[spec.name] = _LevelQueue(spec, policy, level_quantum)

    pids = {s.pid for s in states}
    unknown_pids = sorted(set(config.assignment) - pids)
    if unknown_pids:
        raise ConfigurationError(f"Queue assignment names unknown process ids: {unknown_pids}")
    unassigned = sorted(pids - set(config.assignment))
    if unassigned:
        raise ConfigurationError(f"Processes without a queue assignment: {unassigned}")

    by_pid: Dict[int, _LevelQueue] = {}
    for pid, name in config.assignment.items():
        if name not in levels:
            raise ConfigurationError(f"Process {pid} assigned to unknown queue '{name}'")
        by_pid[pid] = levels[name]
    return by_pid


def schedule_multilevel(
    states: List[ProcessRunState],
    quantum: Optional[int] = None,
    config: Optional[MultilevelConfig] = None,
    time_limit: int = MAX_SIMULATED_TIME,
) -> RunOutcome:
    """
    Multilevel Queue scheduling.

    - Each process belongs to one fixed queue; each queue has its own policy.
    - The CPU always serves the lowest-rank non-empty queue. An arrival into a
      higher queue preempts a lower-queue process at the arrival instant.
    - Lower queues can starve while higher ones stay busy; this is inherent
      to the policy.
    """
    if config is None:
        config = default_multilevel_config(states, quantum)
    by_pid = _build_levels(states, config, quantum)
    levels = sorted(set(by_pid.values()), key=lambda lv: lv.spec.rank)

    run = _Run(states, time_limit)
    pending: Deque[ProcessRunState] = deque(sorted(states, key=lambda s: (s.arrival_time, s.pid)))

    def enqueue_new_arrivals() -> None:
        while pending and pending[0].arrival_time <= run.clock.now:
            p = pending.popleft()
            by_pid[p.pid].waiting.append(p)

    enqueue_new_arrivals()
    while not run.done:
        level = next((lv for lv in levels if lv.has_work()), None)
        if level is None:
            run.idle_until_next_arrival()
            enqueue_new_arrivals()
            continue

        p = level.select()
        units = level.budget(p)
        if pending:
            units = min(units, pending[0].arrival_time - run.clock.now)
        run.execute(p, units)
        enqueue_new_arrivals()
        level.after_run(p, units)

    return run.outcome()


ALGORITHMS: Dict[Policy, Callable[..., RunOutcome]] = {
    Policy.FCFS: schedule_fcfs,
    Policy.SJF: schedule_sjf,
    Policy.SRTF: schedule_srtf,
    Policy.PRIORITY: schedule_priority,
    Policy.PRIORITY_PREEMPTIVE: schedule_priority_preemptive,
    Policy.ROUND_ROBIN: schedule_rr,
    Policy.MULTILEVEL: schedule_multilevel,
}


def run_algorithm(
    name: str | Policy,
    processes: Sequence[ProcessSpec],
    quantum: Optional[int] = None,
    config: Optional[MultilevelConfig] = None,
    time_limit: int = MAX_SIMULATED_TIME,
) -> ScheduleResult:
    """
    Simulate ``processes`` under the named policy and compute its metrics.

    Input specs are never mutated; every returned object is fresh.
    """
    policy = parse_policy(name)
    if policy is Policy.ROUND_ROBIN:
        _require_quantum(quantum, DISPLAY_NAMES[policy])
    elif policy is Policy.MULTILEVEL and config is None and quantum is None:
        quantum = DEFAULT_QUANTUM

    states = reset_run_state(processes)
    logger.info("running %s on %d processes", DISPLAY_NAMES[policy], len(states))

    func = ALGORITHMS[policy]
    if policy is Policy.MULTILEVEL:
        outcome = func(states, quantum=quantum, config=config, time_limit=time_limit)
    else:
        outcome = func(states, quantum=quantum, time_limit=time_limit)

    metrics = compute_metrics(outcome.completed, outcome.final_time)
    logger.info("%s finished at t=%d", DISPLAY_NAMES[policy], outcome.final_time)

    return ScheduleResult(
        algorithm=DISPLAY_NAMES[policy],
        policy=policy.value,
        quantum=quantum if policy in (Policy.ROUND_ROBIN, Policy.MULTILEVEL) else None,
        timeline=outcome.timeline,
        completed=outcome.completed,
        metrics=metrics,
        final_time=outcome.final_time,
    )
