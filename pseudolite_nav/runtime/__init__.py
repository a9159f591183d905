"""Runtime orchestration: per-batch pipelines, workers and sessions."""

from pseudolite_nav.runtime.diagnostics import DiagnosticsSnapshot, PseudoliteDiagnostics
from pseudolite_nav.runtime.events import (
    PositionFromRawEvents,
    PositionResult,
    PseudolitePositionFromRawEvents,
    PseudoliteResult,
)
from pseudolite_nav.runtime.session import PositioningSession
from pseudolite_nav.runtime.state_machine import EpochOutcome, SolverState, SolverStateMachine
from pseudolite_nav.runtime.worker import SolverWorker

__all__ = [
    "DiagnosticsSnapshot",
    "EpochOutcome",
    "PositionFromRawEvents",
    "PositionResult",
    "PositioningSession",
    "PseudoliteDiagnostics",
    "PseudolitePositionFromRawEvents",
    "PseudoliteResult",
    "SolverState",
    "SolverStateMachine",
    "SolverWorker",
]
