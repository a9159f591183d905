"""Receiver algorithms."""

from pseudolite_nav.receiver.pseudolite_ls import (
    PseudolitePositionSolver,
    PseudoliteSolveResult,
    damped_least_squares,
)
from pseudolite_nav.receiver.selection import SelectionResult, select_pseudolite_satellites
from pseudolite_nav.receiver.wls_pvt import UserPositionLeastSquares, WlsSolution, calculate_user_position

__all__ = [
    "PseudolitePositionSolver",
    "PseudoliteSolveResult",
    "SelectionResult",
    "UserPositionLeastSquares",
    "WlsSolution",
    "calculate_user_position",
    "damped_least_squares",
    "select_pseudolite_satellites",
]
