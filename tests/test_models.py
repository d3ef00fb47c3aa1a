import pytest

from schedsim.algorithms import SimClock, _Run, append_interval
from schedsim.errors import InvariantViolation, ValidationError
from schedsim.models import ExecutionInterval, ProcessSpec, reset_run_state, validate_specs


def test_idle_with_nothing_pending_is_an_invariant_violation():
    run = _Run(reset_run_state([ProcessSpec(1, "P1", 0, 2)]), time_limit=100)
    with pytest.raises(InvariantViolation, match="no process can ever become eligible") as exc_info:
        run.idle_until_next_arrival()
    assert exc_info.value.state["clock"] == 0
    assert exc_info.value.state["processes"][0]["remaining_time"] == 2


def test_unfinished_run_outcome_is_an_invariant_violation():
    run = _Run(reset_run_state([ProcessSpec(1, "P1", 0, 2)]), time_limit=100)
    run.execute(run.states[0], 1)
    with pytest.raises(InvariantViolation, match="unfinished") as exc_info:
        run.outcome()
    assert exc_info.value.state["clock"] == 1


def test_empty_interval_rejected():
    with pytest.raises(InvariantViolation, match="empty interval"):
        ExecutionInterval(1, "P1", 3, 3)


def test_overlapping_interval_rejected():
    timeline = [ExecutionInterval(1, "P1", 0, 4)]
    with pytest.raises(InvariantViolation, match="overlaps"):
        append_interval(timeline, 2, "P2", 3, 5)
    assert timeline == [ExecutionInterval(1, "P1", 0, 4)]


def test_append_interval_merges_same_process():
    timeline = [ExecutionInterval(1, "P1", 0, 4)]
    append_interval(timeline, 1, "P1", 4, 6)
    append_interval(timeline, 2, "P2", 7, 8)
    assert timeline == [ExecutionInterval(1, "P1", 0, 6), ExecutionInterval(2, "P2", 7, 8)]


def test_clock_never_moves_backward():
    clock = SimClock()
    clock.advance_to(5)
    with pytest.raises(InvariantViolation, match="backward") as exc_info:
        clock.advance_to(3)
    assert exc_info.value.state["clock"] == 5
    assert clock.now == 5


def test_overrunning_a_process_is_an_invariant_violation():
    state = reset_run_state([ProcessSpec(1, "P1", 0, 2)])[0]
    with pytest.raises(InvariantViolation) as exc_info:
        state.execute(3)
    assert exc_info.value.state["remaining_time"] == 2


def test_unhashable_pid_reported_as_validation_error():
    bad = ProcessSpec([1], "X", 0, 1)
    with pytest.raises(ValidationError, match="pid must be an integer") as exc_info:
        validate_specs([ProcessSpec(2, "P2", 0, 1), bad])
    assert exc_info.value.record is bad


def test_every_problem_reported_at_once():
    with pytest.raises(ValidationError) as exc_info:
        validate_specs([ProcessSpec("a", "A", 0, 1), ProcessSpec(2, "B", -1, 0), ProcessSpec(2, "C", 0, 1)])
    problems = exc_info.value.problems
    assert len(problems) == 4
    assert problems[-1] == "process 2: duplicate process id 2"
