from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .errors import InvariantViolation, ValidationError


@dataclass(frozen=True)
class ProcessSpec:
    """
    Caller-owned description of a CPU-bound process. Never mutated by the engine.

    Priority follows one convention everywhere: lower value = higher priority.
    """

    pid: int
    label: str
    arrival_time: int
    burst_time: int
    priority: int = 1


@dataclass
class ProcessRunState:
    """
    Per-run execution state of one process, owned by a single simulation run.
    """

    pid: int
    label: str
    arrival_time: int
    burst_time: int
    priority: int
    remaining_time: int
    start_time: Optional[int] = None
    completion_time: Optional[int] = None
    completed: bool = False

    @classmethod
    def from_spec(cls, spec: ProcessSpec) -> "ProcessRunState":
        return cls(
            pid=spec.pid,
            label=spec.label,
            arrival_time=spec.arrival_time,
            burst_time=spec.burst_time,
            priority=spec.priority,
            remaining_time=spec.burst_time,
        )

    def dispatch(self, now: int) -> None:
        # start_time is the first dispatch only
        if self.start_time is None:
            self.start_time = now

    def execute(self, units: int) -> None:
        if units <= 0 or units > self.remaining_time:
            raise InvariantViolation(
                f"cannot run {self.label} for {units} units with {self.remaining_time} remaining",
                state=self.snapshot(),
            )
        self.remaining_time -= units

    def finish(self, now: int) -> None:
        if self.remaining_time != 0 or self.completed:
            raise InvariantViolation(f"{self.label} finished twice or early", state=self.snapshot())
        self.completion_time = now
        self.completed = True

    @property
    def turnaround_time(self) -> Optional[int]:
        if self.completion_time is None:
            return None
        return self.completion_time - self.arrival_time

    @property
    def waiting_time(self) -> Optional[int]:
        turnaround = self.turnaround_time
        return None if turnaround is None else turnaround - self.burst_time

    @property
    def response_time(self) -> Optional[int]:
        if self.start_time is None:
            return None
        return self.start_time - self.arrival_time

    def snapshot(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ExecutionInterval:
    """
    One contiguous stretch of CPU time given to a single process.
    """

    pid: int
    label: str
    start_time: int
    end_time: int

    def __post_init__(self) -> None:
        if self.end_time <= self.start_time:
            raise InvariantViolation(
                f"empty interval for {self.label}: {self.start_time}-{self.end_time}"
            )

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class Metrics:
    """
    Aggregate statistics of a finished run, kept at full precision.
    """

    avg_waiting_time: float = 0.0
    avg_turnaround_time: float = 0.0
    avg_response_time: float = 0.0
    cpu_utilization: float = 0.0
    throughput: float = 0.0
    busy_time: int = 0
    total_time: int = 0


@dataclass(frozen=True)
class QueueSpec:
    """
    One sub-queue of the multilevel policy. Lower ``rank`` is served first.
    """

    name: str
    policy: str
    rank: int
    quantum: Optional[int] = None


@dataclass(frozen=True)
class MultilevelConfig:
    queues: List[QueueSpec]
    assignment: Dict[int, str] = field(default_factory=dict)


@dataclass
class ScheduleResult:
    algorithm: str
    policy: str
    quantum: Optional[int]
    timeline: List[ExecutionInterval] = field(default_factory=list)
    completed: List[ProcessRunState] = field(default_factory=list)
    metrics: Metrics = field(default_factory=Metrics)
    final_time: int = 0


def _spec_problems(spec: ProcessSpec) -> List[str]:
    problems = []
    for name in ("pid", "arrival_time", "burst_time", "priority"):
        value = getattr(spec, name)
        if isinstance(value, bool) or not isinstance(value, int):
            problems.append(f"{name} must be an integer, got {value!r}")
    if problems:
        return problems
    if spec.burst_time <= 0:
        problems.append(f"burst_time must be > 0, got {spec.burst_time}")
    if spec.arrival_time < 0:
        problems.append(f"arrival_time must be >= 0, got {spec.arrival_time}")
    return problems


def validate_specs(specs: Iterable[ProcessSpec]) -> List[ProcessSpec]:
    """
    Check a process list before a run and return it as a fresh list.

    Every problem found is reported in one ValidationError; the first
    offending spec is attached as ``record``.
    """
    specs = list(specs)
    problems: List[str] = []
    first_bad: Optional[ProcessSpec] = None
    seen: set[int] = set()

    for spec in specs:
        errs = _spec_problems(spec)
        pid_ok = not any(e.startswith("pid ") for e in errs)
        if pid_ok:
            if spec.pid in seen:
                errs.append(f"duplicate process id {spec.pid}")
            seen.add(spec.pid)
        if errs:
            problems.extend(f"process {spec.pid!r}: {e}" for e in errs)
            if first_bad is None:
                first_bad = spec

    if problems:
        raise ValidationError(problems, record=first_bad)
    return specs


def reset_run_state(specs: Iterable[ProcessSpec]) -> List[ProcessRunState]:
    """
    Validate ``specs`` and build fresh run state (remaining = burst, nothing started).
    """
    return [ProcessRunState.from_spec(spec) for spec in validate_specs(specs)]
