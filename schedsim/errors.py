from __future__ import annotations

from typing import Any, Dict, List, Optional


class SchedulingError(Exception):
    """
    Base class for every error raised by the scheduling engine.
    """


class ValidationError(SchedulingError, ValueError):
    """
    Malformed input: bad process descriptors, duplicate ids, non-positive quantum.

    Raised before any simulation work begins.
    """

    def __init__(self, problems: List[str] | str, record: Any = None) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        self.record = record
        message = "; ".join(self.problems)
        if record is not None:
            message = f"{message} (record: {record!r})"
        super().__init__(message)


class ConfigurationError(SchedulingError, ValueError):
    """
    Unsupported policy or a policy parameter that is missing or inconsistent.
    """


class InvariantViolation(SchedulingError, RuntimeError):
    """
    Internal logic defect detected mid-run. ``state`` holds a snapshot for diagnosis.
    """

    def __init__(self, message: str, state: Optional[Dict[str, Any]] = None) -> None:
        self.state = state or {}
        super().__init__(message)


class ResourceExhaustedError(SchedulingError, RuntimeError):
    """
    The simulated clock would run past the configured time limit.
    """
