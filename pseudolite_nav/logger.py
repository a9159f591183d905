"""Text formatting and persistence of solved positions."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import numpy as np

NO_PSEUDOLITE_RESULT = "No result Calculated Yet"
NO_POSITION_RESULT = "No Position Calculated Yet"


def format_decimal(value: float, decimals: int) -> str:
    """Format with at most ``decimals`` digits after the point, trailing zeros dropped."""

    text = f"{value:.{decimals}f}".rstrip("0").rstrip(".")
    if text in {"-0", ""}:
        return "0"
    return text


def format_position_message(xyz_m: Sequence[float] | np.ndarray) -> str:
    """``xMeters = .. yMeters = .. zMeters = ..`` or the no-result status."""

    x, y, z = (float(v) for v in np.asarray(xyz_m, dtype=float)[:3])
    if np.isnan(x):
        return NO_PSEUDOLITE_RESULT
    return f"xMeters = {format_decimal(x, 3)} yMeters = {format_decimal(y, 3)} zMeters = {format_decimal(z, 3)}"


def format_lla_message(lla: Sequence[float] | np.ndarray) -> str:
    lat, lon, alt = (float(v) for v in np.asarray(lla, dtype=float)[:3])
    if np.isnan(lat):
        return NO_POSITION_RESULT
    return (
        f"latDegrees = {format_decimal(lat, 6)} lngDegrees = {format_decimal(lon, 6)} "
        f"altMeters = {format_decimal(alt, 1)}"
    )


def append_position_log(path: str | Path, xyz_m: Sequence[float] | np.ndarray) -> bool:
    """Append one solved position line; NaN positions are not written.

    Returns True when a line was written.
    """

    message = format_position_message(xyz_m)
    if message == NO_PSEUDOLITE_RESULT:
        return False
    target = Path(path)
    with target.open("a", encoding="utf-8") as handle:
        handle.write(message + "\n")
    return True


def read_position_log(path: str | Path) -> list[np.ndarray]:
    """Parse a position log back into XYZ arrays."""

    positions: list[np.ndarray] = []
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        tokens = line.split()
        if len(tokens) != 9:
            continue
        positions.append(np.array([float(tokens[2]), float(tokens[5]), float(tokens[8])], dtype=float))
    return positions
