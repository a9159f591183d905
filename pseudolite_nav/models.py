"""Core data models and interfaces for pseudolite positioning."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Mapping

import numpy as np

MAX_NUMBER_OF_SATELLITES = 32


class Constellation(IntEnum):
    """Constellation identifiers as reported by the receiver."""

    UNKNOWN = 0
    GPS = 1
    SBAS = 2
    GLONASS = 3
    QZSS = 4
    BEIDOU = 5
    GALILEO = 6


@dataclass(frozen=True)
class GnssClock:
    """Receiver clock snapshot delivered once per measurement batch."""

    time_nanos: int
    full_bias_nanos: int
    bias_nanos: float = 0.0
    drift_nanos_per_second: float = 0.0
    bias_uncertainty_nanos: float = 0.0
    drift_uncertainty_nanos_per_second: float = 0.0

    @property
    def arrival_since_gps_epoch_nanos(self) -> int:
        return int(self.time_nanos - self.full_bias_nanos)


@dataclass(frozen=True)
class RawMeasurement:
    """Raw per-satellite receiver fields."""

    svid: int
    cn0_dbhz: float
    state: int
    received_sv_time_nanos: int
    constellation: Constellation = Constellation.GPS
    time_offset_nanos: float = 0.0
    accumulated_delta_range_m: float = 0.0
    accumulated_delta_range_state: int = 0
    accumulated_delta_range_uncertainty_m: float = 0.0
    pseudorange_rate_mps: float = 0.0
    pseudorange_rate_uncertainty_mps: float = 0.0


@dataclass(frozen=True)
class MeasurementBatch:
    """One epoch of raw measurements plus the receiver clock."""

    clock: GnssClock
    measurements: tuple[RawMeasurement, ...] = ()


@dataclass(frozen=True)
class GpsMeasurement:
    """Receiver measurement of one GPS satellite, referenced to the GPS week."""

    arrival_time_since_gps_week_ns: int
    accumulated_delta_range_m: float
    accumulated_delta_range_valid: bool
    pseudorange_rate_mps: float
    cn0_dbhz: float
    accumulated_delta_range_uncertainty_m: float
    pseudorange_rate_uncertainty_mps: float
    time_offset_nanos: float = 0.0


@dataclass(frozen=True)
class PseudorangeMeasurement(GpsMeasurement):
    """GPS measurement with a computed pseudorange and its uncertainty."""

    pseudorange_m: float = 0.0
    pseudorange_uncertainty_m: float = 0.0


@dataclass(frozen=True)
class IonoParams:
    """Klobuchar coefficients broadcast in the navigation message."""

    alpha: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    beta: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class GpsEphemeris:
    """Broadcast ephemeris and clock parameters of one GPS satellite."""

    prn: int
    week: int
    toc: float
    toe: float
    af0: float
    af1: float
    af2: float
    m0: float
    delta_n: float
    e: float
    sqrt_a: float
    omega0: float
    omega_dot: float
    i0: float
    i_dot: float
    omega: float
    cuc: float = 0.0
    cus: float = 0.0
    crc: float = 0.0
    crs: float = 0.0
    cic: float = 0.0
    cis: float = 0.0
    tgd: float = 0.0
    iode: int = 0
    iodc: int = 0
    sv_accuracy_m: float = 0.0
    sv_health: int = 0
    fit_interval_h: float = 4.0
    l2_code: int = 0
    l2_flag: int = 0


@dataclass(frozen=True)
class NavMessage:
    """Decoded navigation data: ephemerides keyed by PRN plus iono parameters."""

    ephemerides: Mapping[int, GpsEphemeris] = field(default_factory=dict)
    iono: IonoParams | None = None

    def contains(self, prn: int) -> bool:
        return prn in self.ephemerides

    def ephemeris(self, prn: int) -> GpsEphemeris | None:
        return self.ephemerides.get(prn)

    @property
    def prns(self) -> list[int]:
        return sorted(self.ephemerides)


def nan_position(size: int = 4) -> np.ndarray:
    """Return a NaN-filled position vector."""

    return np.full(size, np.nan, dtype=float)


class SuplClient(ABC):
    """Interface for the assistance-data collaborator."""

    @abstractmethod
    def fetch_nav_message(self, lat_e7: int, lng_e7: int) -> NavMessage:
        """Return navigation data for a reference location given in 1e-7 degrees."""


class ElevationProvider(ABC):
    """Interface for looking up terrain height above mean sea level."""

    @abstractmethod
    def elevation_above_sea_level_m(self, lat_deg: float, lon_deg: float) -> float:
        """Return height above mean sea level in meters."""
