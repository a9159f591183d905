"""Configuration objects for positioning sessions."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Sequence

import numpy as np


class SmoothingMode(Enum):
    NONE = "none"
    CARRIER_PHASE = "carrier_phase"
    DOPPLER = "doppler"


class SelectionPolicy(Enum):
    """How satellites are assigned to pseudolite channels."""

    STRONGEST_CN0 = "strongest_cn0"
    CONFIGURED_IDS = "configured_ids"


@dataclass(frozen=True)
class SolverConfig:
    """Solver thresholds and policies."""

    cn0_threshold_dbhz: float = 18.0
    min_satellites: int = 4
    lsq_tolerance_m: float = 4.0e-8
    pseudolite_tolerance_m: float = 1.0e-4
    atmospheric_threshold_m: float = 1000.0
    max_iterations: int = 100
    initial_lambda: float = 0.1
    lambda_factor: float = 10.0
    covariance_det_tolerance: float = 1.0e-10
    apply_atmospheric_corrections: bool = True
    smoothing: SmoothingMode = SmoothingMode.NONE
    smoothing_window: int = 100
    smoothing_max_gap_s: float = 1.0
    smoothing_slip_threshold_m: float = 10.0
    selection: SelectionPolicy = SelectionPolicy.STRONGEST_CN0
    apply_channel_delays: bool = False
    supl_refresh_s: float = 1800.0
    skip_first_batch: bool = True


@dataclass(frozen=True)
class PseudoliteConfig:
    """Fixed pseudolite installation geometry."""

    outdoor_antenna_lla: tuple[float, float, float]
    indoor_antennas_xyz: tuple[tuple[float, float, float], ...]
    outdoor_to_indoor_range_m: tuple[float, ...]
    satellite_ids: tuple[int, ...] = ()
    channel_delays_ns: tuple[float, ...] = ()
    extras: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if len(self.outdoor_antenna_lla) != 3:
            raise ValueError("outdoorAntennaLla must have three components (lat, lon, alt).")
        if not self.indoor_antennas_xyz:
            raise ValueError("indoorAntennaXyz must list at least one antenna.")
        for xyz in self.indoor_antennas_xyz:
            if len(xyz) != 3:
                raise ValueError("Each indoor antenna position needs three components.")
        if len(self.outdoor_to_indoor_range_m) != len(self.indoor_antennas_xyz):
            raise ValueError("outdoorToIndoorRange length must match the number of indoor antennas.")
        if self.channel_delays_ns and len(self.channel_delays_ns) != len(self.indoor_antennas_xyz):
            raise ValueError("channelDelay length must match the number of indoor antennas.")

    @property
    def num_pseudolites(self) -> int:
        return len(self.indoor_antennas_xyz)

    @property
    def indoor_antennas_array(self) -> np.ndarray:
        return np.array(self.indoor_antennas_xyz, dtype=float)


def default_pseudolite_config() -> PseudoliteConfig:
    """Return the reference four-antenna installation."""

    return PseudoliteConfig(
        outdoor_antenna_lla=(40.0, 118.0, 100.0),
        indoor_antennas_xyz=(
            (4.307, 2.591, 2.696),
            (-10.229, -1.914, 2.598),
            (1.509, -6.977, 2.781),
            (-4.867, 5.233, 2.598),
        ),
        outdoor_to_indoor_range_m=(12.0, 16.0, 12.0, 16.0),
        satellite_ids=(3, 23, 19, 10),
        channel_delays_ns=(10.0, 20.0, 30.0, 0.0),
    )


_KNOWN_KEYS = {
    "outdoorAntennaLla",
    "indoorAntennaXyz",
    "outdoorToIndoorRange",
    "satelliteId",
    "channelDelay",
}


def _three_floats(values: Sequence[Any], message: str) -> tuple[float, float, float]:
    if len(values) != 3:
        raise ValueError(message)
    return float(values[0]), float(values[1]), float(values[2])


def pseudolite_config_from_dict(data: Mapping[str, Any]) -> PseudoliteConfig:
    """Build a pseudolite configuration from the JSON key layout."""

    try:
        lla = _three_floats(data["outdoorAntennaLla"], "outdoorAntennaLla must have three components (lat, lon, alt).")
        xyz = tuple(
            _three_floats(row, "Each indoor antenna position needs three components.") for row in data["indoorAntennaXyz"]
        )
        ranges = tuple(float(v) for v in data["outdoorToIndoorRange"])
    except KeyError as exc:
        raise ValueError(f"Pseudolite config is missing key {exc.args[0]!r}.") from exc
    satellite_ids = tuple(int(v) for v in data.get("satelliteId", ()))
    channel_delays = tuple(float(v) for v in data.get("channelDelay", ()))
    extras = {key: value for key, value in data.items() if key not in _KNOWN_KEYS}
    return PseudoliteConfig(
        outdoor_antenna_lla=lla,
        indoor_antennas_xyz=xyz,
        outdoor_to_indoor_range_m=ranges,
        satellite_ids=satellite_ids,
        channel_delays_ns=channel_delays,
        extras=extras,
    )


def load_pseudolite_config(path: str | Path) -> PseudoliteConfig:
    """Load a pseudolite configuration JSON file."""

    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return pseudolite_config_from_dict(data)


def pseudolite_config_to_dict(config: PseudoliteConfig) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "outdoorAntennaLla": list(config.outdoor_antenna_lla),
        "satelliteId": list(config.satellite_ids),
        "indoorAntennaXyz": [list(row) for row in config.indoor_antennas_xyz],
        "outdoorToIndoorRange": list(config.outdoor_to_indoor_range_m),
        "channelDelay": list(config.channel_delays_ns),
    }
    payload.update(config.extras)
    return payload
