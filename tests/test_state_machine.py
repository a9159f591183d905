import pytest

from pseudolite_nav.runtime.state_machine import (
    EpochOutcome,
    InvalidTransitionError,
    SolverState,
    SolverStateMachine,
)


def test_lifecycle_returns_to_ready_after_each_epoch() -> None:
    machine = SolverStateMachine()
    assert machine.state == SolverState.UNINITIALIZED

    machine.mark_ready("nav_loaded")
    assert machine.state == SolverState.READY
    assert machine.last_reason == "nav_loaded"

    for outcome in (EpochOutcome.SOLVED, EpochOutcome.NO_SOLUTION, EpochOutcome.FAILED, EpochOutcome.SOLVED):
        machine.begin_epoch()
        assert machine.state == SolverState.COMPUTING
        machine.finish_epoch(outcome)
        assert machine.state == SolverState.READY

    assert machine.epochs_started == 4
    assert machine.count(EpochOutcome.SOLVED) == 2
    assert machine.count(EpochOutcome.FAILED) == 1
    assert machine.last_reason == "solved"


def test_epoch_needs_ready_state() -> None:
    machine = SolverStateMachine()

    with pytest.raises(InvalidTransitionError):
        machine.begin_epoch()
    with pytest.raises(InvalidTransitionError):
        machine.finish_epoch(EpochOutcome.SOLVED)


def test_inputs_cannot_reload_mid_epoch() -> None:
    machine = SolverStateMachine()
    machine.mark_ready()
    machine.begin_epoch()

    with pytest.raises(InvalidTransitionError):
        machine.mark_ready()
    with pytest.raises(InvalidTransitionError):
        machine.begin_epoch()


def test_finish_records_reason_and_reset_clears() -> None:
    machine = SolverStateMachine()
    machine.mark_ready()
    machine.begin_epoch()
    machine.finish_epoch(EpochOutcome.NO_SOLUTION, "insufficient satellites")
    assert machine.last_reason == "insufficient satellites"

    machine.reset()

    assert machine.state == SolverState.UNINITIALIZED
    assert machine.epochs_started == 0
    assert machine.count(EpochOutcome.NO_SOLUTION) == 0
