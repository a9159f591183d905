"""EGNOS (RTCA DO-229 MOPS) tropospheric delay model."""

from __future__ import annotations

import numpy as np

K1 = 77.604
K2 = 382_000.0
RD = 287.054
GM = 9.784
G = 9.80665

_LATITUDES_DEG = np.array([15.0, 30.0, 45.0, 60.0, 75.0])

# Columns: pressure [mbar], temperature [K], water vapour pressure [mbar],
# temperature lapse rate [K/m], water vapour lapse rate.
_AVERAGE = np.array(
    [
        [1013.25, 299.65, 26.31, 6.30e-3, 2.77],
        [1017.25, 294.15, 21.79, 6.05e-3, 3.15],
        [1015.75, 283.15, 11.66, 5.58e-3, 2.57],
        [1011.75, 272.15, 6.78, 5.39e-3, 1.81],
        [1013.00, 263.65, 4.11, 4.53e-3, 1.55],
    ]
)
_SEASONAL = np.array(
    [
        [0.00, 0.00, 0.00, 0.00, 0.00],
        [-3.75, 7.00, 8.85, 0.25e-3, 0.33],
        [-2.25, 11.00, 7.24, 0.32e-3, 0.46],
        [-1.75, 15.00, 5.36, 0.81e-3, 0.74],
        [-0.50, 14.50, 3.39, 0.62e-3, 0.30],
    ]
)


def mops_mapping(elev_rad: float) -> float:
    """Elevation mapping function, valid above about 4 degrees."""

    return float(1.001 / np.sqrt(0.002001 + np.sin(elev_rad) ** 2))


def _meteo_parameters(lat_deg: float, day_of_year: int) -> np.ndarray:
    abs_lat = abs(lat_deg)
    avg = np.array([np.interp(abs_lat, _LATITUDES_DEG, _AVERAGE[:, k]) for k in range(5)])
    seasonal = np.array([np.interp(abs_lat, _LATITUDES_DEG, _SEASONAL[:, k]) for k in range(5)])
    d_min = 28.0 if lat_deg >= 0.0 else 211.0
    return avg - seasonal * np.cos(2.0 * np.pi * (day_of_year - d_min) / 365.25)


def egnos_zenith_delays_m(lat_rad: float, height_m: float, day_of_year: int) -> tuple[float, float]:
    """Return (dry, wet) zenith delays in meters at a height above mean sea level."""

    pressure, temperature, vapour, beta, lam = _meteo_parameters(float(np.rad2deg(lat_rad)), day_of_year)
    z_dry = 1e-6 * K1 * RD * pressure / GM
    z_wet = 1e-6 * K2 * RD / (GM * (lam + 1.0) - beta * RD) * vapour / temperature

    base = 1.0 - beta * height_m / temperature
    if base <= 0.0:
        return 0.0, 0.0
    dry = z_dry * base ** (G / (RD * beta))
    wet = z_wet * base ** ((lam + 1.0) * G / (RD * beta) - 1.0)
    return float(dry), float(wet)


def egnos_tropo_delay_m(elev_rad: float, lat_rad: float, height_m: float, day_of_year: int) -> float:
    """Slant tropospheric delay in meters.

    Args:
        elev_rad: Satellite elevation in radians.
        lat_rad: Receiver latitude in radians.
        height_m: Receiver height above mean sea level in meters.
        day_of_year: Day of year, 1..366.
    """

    dry, wet = egnos_zenith_delays_m(lat_rad, height_m, day_of_year)
    return (dry + wet) * mops_mapping(elev_rad)
