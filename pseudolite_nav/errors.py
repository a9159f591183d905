"""Exception taxonomy for the positioning pipeline."""

from __future__ import annotations


class PositioningError(Exception):
    """Base class for positioning failures."""


class InsufficientSatellitesError(PositioningError, ValueError):
    """Fewer usable satellites than the solve requires."""

    def __init__(self, available: int, required: int, reason: str = "insufficient satellites") -> None:
        super().__init__(f"{reason}: {available} usable, {required} required")
        self.available = available
        self.required = required
        self.reason = reason


class MissingEphemerisError(PositioningError, KeyError):
    """A tracked satellite has no ephemeris record."""

    def __init__(self, prn: int) -> None:
        super().__init__(prn)
        self.prn = prn

    def __str__(self) -> str:
        return f"no ephemeris for PRN {self.prn}"


class NonConvergenceError(PositioningError, RuntimeError):
    """Iterative least squares hit its iteration cap."""

    def __init__(self, iterations: int) -> None:
        super().__init__(f"least squares did not converge after {iterations} iterations")
        self.iterations = iterations
