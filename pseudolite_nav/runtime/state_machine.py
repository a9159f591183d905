"""Solver lifecycle state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SolverState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    COMPUTING = "computing"


class EpochOutcome(Enum):
    SOLVED = "solved"
    NO_SOLUTION = "no_solution"
    FAILED = "failed"


@dataclass
class _StateTracker:
    state: SolverState = SolverState.UNINITIALIZED
    epochs_started: int = 0
    outcomes: dict[EpochOutcome, int] = field(default_factory=lambda: {outcome: 0 for outcome in EpochOutcome})
    last_reason: str = ""


class InvalidTransitionError(RuntimeError):
    """A transition was requested from a state that does not allow it."""


class SolverStateMachine:
    """UNINITIALIZED -> READY once inputs are loaded; READY -> COMPUTING -> READY per batch.

    Every batch returns to READY whatever its outcome, so there is no
    terminal failure state.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._tracker = _StateTracker()

    @property
    def state(self) -> SolverState:
        return self._tracker.state

    @property
    def last_reason(self) -> str:
        return self._tracker.last_reason

    @property
    def epochs_started(self) -> int:
        return self._tracker.epochs_started

    def count(self, outcome: EpochOutcome) -> int:
        return self._tracker.outcomes[outcome]

    def mark_ready(self, reason: str = "inputs_loaded") -> None:
        if self._tracker.state == SolverState.COMPUTING:
            raise InvalidTransitionError("cannot reload inputs while computing")
        self._tracker.state = SolverState.READY
        self._tracker.last_reason = reason

    def begin_epoch(self) -> None:
        if self._tracker.state != SolverState.READY:
            raise InvalidTransitionError(f"cannot start an epoch from {self._tracker.state.value}")
        self._tracker.state = SolverState.COMPUTING
        self._tracker.epochs_started += 1

    def finish_epoch(self, outcome: EpochOutcome, reason: str = "") -> None:
        if self._tracker.state != SolverState.COMPUTING:
            raise InvalidTransitionError(f"cannot finish an epoch from {self._tracker.state.value}")
        self._tracker.outcomes[outcome] += 1
        self._tracker.last_reason = reason or outcome.value
        self._tracker.state = SolverState.READY
