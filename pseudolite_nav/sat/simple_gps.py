"""Simplified GPS-like constellation expressed as broadcast ephemerides."""

from __future__ import annotations

from dataclasses import dataclass
from math import ceil

import numpy as np

from pseudolite_nav.models import GpsEphemeris, IonoParams, NavMessage
from pseudolite_nav.sat.ephemeris import satellite_position_velocity
from pseudolite_nav.utils.angles import elevation_azimuth_rad

NOMINAL_SQRT_A = 5153.7
TYPICAL_IONO = IonoParams(
    alpha=(1.118e-08, 7.451e-09, -5.960e-08, -5.960e-08),
    beta=(9.011e04, 0.0, -1.966e05, -6.554e04),
)


@dataclass(frozen=True)
class SimpleGpsConfig:
    """Configuration for the simplified GPS constellation."""

    num_sats: int = 24
    num_planes: int = 6
    sqrt_a: float = NOMINAL_SQRT_A
    inclination_deg: float = 55.0
    eccentricity: float = 0.01
    seed: int | None = 0
    clock_bias_sigma_s: float = 50e-9
    clock_drift_sigma_sps: float = 1e-11
    group_delay_s: float = -1.0e-8
    harmonic_amplitude: float = 1.0e-6
    enable_clock: bool = True
    iono: IonoParams | None = TYPICAL_IONO


class SimpleGpsConstellation:
    """Deterministic GPS-like constellation with slightly eccentric orbits.

    Satellites are spread evenly over ``num_planes`` orbital planes. The
    result is a set of ``GpsEphemeris`` records so synthetic scenarios go
    through the same orbit and clock models as real broadcast data.
    """

    def __init__(self, config: SimpleGpsConfig | None = None) -> None:
        self.config = config or SimpleGpsConfig()
        self._rng = np.random.default_rng(self.config.seed)
        self._num_sats = min(self.config.num_sats, 32)
        self._num_planes = max(1, min(self.config.num_planes, self._num_sats))

        self._plane_raan = np.linspace(0.0, 2.0 * np.pi, self._num_planes, endpoint=False)
        self._plane_offsets = self._rng.uniform(0.0, 2.0 * np.pi, size=self._num_planes)
        self._plane_index = np.array([i % self._num_planes for i in range(self._num_sats)], dtype=int)
        sats_per_plane = ceil(self._num_sats / self._num_planes)
        self._mean_anom = np.array(
            [
                (2.0 * np.pi * (i // self._num_planes) / sats_per_plane)
                + self._plane_offsets[i % self._num_planes]
                for i in range(self._num_sats)
            ],
            dtype=float,
        )
        self._arg_perigee = self._rng.uniform(-np.pi, np.pi, size=self._num_sats)
        self._harmonics = self._rng.uniform(-1.0, 1.0, size=(self._num_sats, 6))

        if self.config.enable_clock:
            self._clk_bias = self._rng.normal(0.0, self.config.clock_bias_sigma_s, size=self._num_sats)
            self._clk_drift = self._rng.normal(0.0, self.config.clock_drift_sigma_sps, size=self._num_sats)
        else:
            self._clk_bias = np.zeros(self._num_sats)
            self._clk_drift = np.zeros(self._num_sats)

    @property
    def prns(self) -> list[int]:
        return list(range(1, self._num_sats + 1))

    def ephemeris(self, prn: int, week: int, toe_s: float) -> GpsEphemeris:
        idx = prn - 1
        if not 0 <= idx < self._num_sats:
            raise ValueError(f"PRN {prn} is not part of the simulated constellation.")
        amp = self.config.harmonic_amplitude
        cuc, cus, cic, cis, crc, crs = self._harmonics[idx]
        tgd = self.config.group_delay_s if self.config.enable_clock else 0.0
        return GpsEphemeris(
            prn=prn,
            week=week,
            toc=toe_s,
            toe=toe_s,
            af0=float(self._clk_bias[idx]),
            af1=float(self._clk_drift[idx]),
            af2=0.0,
            m0=float(self._mean_anom[idx]),
            delta_n=4.5e-9,
            e=self.config.eccentricity,
            sqrt_a=self.config.sqrt_a,
            omega0=float(self._plane_raan[self._plane_index[idx]]),
            omega_dot=-8.0e-9,
            i0=float(np.deg2rad(self.config.inclination_deg)),
            i_dot=1.0e-10,
            omega=float(self._arg_perigee[idx]),
            cuc=float(cuc * amp),
            cus=float(cus * amp),
            crc=float(crc * 200.0),
            crs=float(crs * 50.0),
            cic=float(cic * amp / 10.0),
            cis=float(cis * amp / 10.0),
            tgd=tgd,
            iode=idx,
            iodc=idx,
            sv_accuracy_m=2.0,
        )

    def nav_message(self, week: int, toe_s: float) -> NavMessage:
        """Ephemerides for every satellite, all referenced to one epoch."""

        return NavMessage(
            ephemerides={prn: self.ephemeris(prn, week, toe_s) for prn in self.prns},
            iono=self.config.iono,
        )

    def visible_prns(
        self,
        nav: NavMessage,
        user_ecef_m: np.ndarray,
        week: int,
        tow_s: float,
        mask_deg: float = 10.0,
    ) -> list[int]:
        """PRNs above the elevation mask, ascending."""

        visible: list[int] = []
        for prn, eph in sorted(nav.ephemerides.items()):
            sat = satellite_position_velocity(eph, tow_s, week, user_ecef_m).pos_ecef_m
            elev_rad, _ = elevation_azimuth_rad(user_ecef_m, sat)
            if np.rad2deg(elev_rad) >= mask_deg:
                visible.append(prn)
        return visible
