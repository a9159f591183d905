"""GNSS and pseudolite positioning package."""

from pseudolite_nav.config import PseudoliteConfig, SolverConfig

__all__ = [
    "PseudoliteConfig",
    "SolverConfig",
    "sat",
    "meas",
    "receiver",
    "runtime",
    "utils",
]
