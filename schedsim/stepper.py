from __future__ import annotations

from bisect import bisect_right
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .algorithms import append_interval, run_algorithm
from .errors import ValidationError
from .models import ExecutionInterval, ProcessSpec, ScheduleResult


@dataclass(frozen=True)
class StepDelta:
    """
    What happened during ``[time, time + 1)``.
    """

    time: int
    interval: Optional[ExecutionInterval]
    completed: Tuple[int, ...] = ()

    @property
    def idle(self) -> bool:
        return self.interval is None


class TimelineIndex:
    """
    Start times and completion instants of a result, for O(log n) lookups.
    """

    def __init__(self, result: ScheduleResult) -> None:
        self.timeline = result.timeline
        self.starts = [iv.start_time for iv in result.timeline]
        finished: Dict[int, List[int]] = defaultdict(list)
        for p in result.completed:
            finished[p.completion_time].append(p.pid)
        self.finished = {t: tuple(sorted(pids)) for t, pids in finished.items()}

    def running_at(self, time: int) -> Optional[ExecutionInterval]:
        # timeline is sorted and non-overlapping
        idx = bisect_right(self.starts, time) - 1
        if idx >= 0 and time < self.timeline[idx].end_time:
            return self.timeline[idx]
        return None


def step_at(result: ScheduleResult, time: int, index: Optional[TimelineIndex] = None) -> StepDelta:
    """
    The one-unit timeline delta of an already computed run at ``time``.

    Pass a prebuilt ``index`` when stepping through many units of one result.
    """
    if time < 0 or time >= result.final_time:
        raise ValidationError(f"time {time} is outside the run [0, {result.final_time})")

    if index is None:
        index = TimelineIndex(result)
    running = index.running_at(time)
    interval = None
    if running is not None:
        interval = ExecutionInterval(pid=running.pid, label=running.label, start_time=time, end_time=time + 1)
    return StepDelta(time=time, interval=interval, completed=index.finished.get(time + 1, ()))


class SimulationStepper:
    """
    Replays a computed schedule one time unit per ``step()``.

    Runs are deterministic, so replaying the finished timeline gives the same
    deltas a unit-by-unit simulation would.
    """

    def __init__(self, result: ScheduleResult) -> None:
        self.result = result
        self.index = TimelineIndex(result)
        self.time = 0
        self._timeline: List[ExecutionInterval] = []

    @classmethod
    def for_run(cls, name: str, processes: Sequence[ProcessSpec], **params) -> "SimulationStepper":
        return cls(run_algorithm(name, processes, **params))

    @property
    def finished(self) -> bool:
        return self.time >= self.result.final_time

    @property
    def timeline_so_far(self) -> List[ExecutionInterval]:
        return list(self._timeline)

    def step(self) -> Optional[StepDelta]:
        if self.finished:
            return None
        delta = step_at(self.result, self.time, self.index)
        if delta.interval is not None:
            iv = delta.interval
            append_interval(self._timeline, iv.pid, iv.label, iv.start_time, iv.end_time)
        self.time += 1
        return delta

    def run_to_end(self) -> List[StepDelta]:
        deltas = []
        while not self.finished:
            deltas.append(self.step())
        return deltas

    def reset(self) -> None:
        self.time = 0
        self._timeline = []
