"""
schedsim: deterministic CPU scheduling simulation.

Computes the execution timeline and standard metrics (waiting, turnaround,
response, utilization, throughput) for a process set under FCFS, SJF, SRTF,
non-preemptive and preemptive Priority, Round Robin or Multilevel Queue
scheduling. Lower priority values mean higher priority throughout.
"""

from .algorithms import Policy, run_algorithm
from .errors import (
    ConfigurationError,
    InvariantViolation,
    ResourceExhaustedError,
    SchedulingError,
    ValidationError,
)
from .models import ExecutionInterval, Metrics, MultilevelConfig, ProcessSpec, QueueSpec, ScheduleResult
from .stepper import SimulationStepper

__all__ = [
    "ConfigurationError",
    "ExecutionInterval",
    "InvariantViolation",
    "Metrics",
    "MultilevelConfig",
    "Policy",
    "ProcessSpec",
    "QueueSpec",
    "ResourceExhaustedError",
    "ScheduleResult",
    "SchedulingError",
    "SimulationStepper",
    "ValidationError",
    "run_algorithm",
]
