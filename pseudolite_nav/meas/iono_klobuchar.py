"""Klobuchar ionospheric delay model."""

from __future__ import annotations

import numpy as np

from pseudolite_nav.utils.angles import elevation_azimuth_rad
from pseudolite_nav.utils.wgs84 import ecef_to_lla

LIGHT_SPEED_MPS = 299_792_458.0
L1_FREQ_HZ = 1_575.42e6

ZERO_COEFFS = (0.0, 0.0, 0.0, 0.0)


def klobuchar_delay_s(
    t_s: float,
    lat_sc: float,
    lon_sc: float,
    elev_sc: float,
    az_rad: float,
    alpha: tuple[float, float, float, float],
    beta: tuple[float, float, float, float],
) -> float:
    """Return the L1 ionospheric delay in seconds.

    Latitude, longitude and elevation are in semicircles, azimuth in radians.
    """

    elev_sc = max(elev_sc, 1e-3)
    psi = 0.0137 / (elev_sc + 0.11) - 0.022
    phi_i = float(np.clip(lat_sc + psi * np.cos(az_rad), -0.416, 0.416))
    lam_i = lon_sc + psi * np.sin(az_rad) / np.cos(phi_i * np.pi)
    phi_m = phi_i + 0.064 * np.cos((lam_i - 1.617) * np.pi)

    t_local = np.mod(43_200.0 * lam_i + t_s, 86_400.0)

    amp = alpha[0] + alpha[1] * phi_m + alpha[2] * phi_m**2 + alpha[3] * phi_m**3
    amp = max(0.0, amp)
    per = beta[0] + beta[1] * phi_m + beta[2] * phi_m**2 + beta[3] * phi_m**3
    per = max(72_000.0, per)

    x = 2.0 * np.pi * (t_local - 50_400.0) / per
    slant = 1.0 + 16.0 * (0.53 - elev_sc) ** 3
    if abs(x) < 1.57:
        return float(slant * (5e-9 + amp * (1.0 - x**2 / 2.0 + x**4 / 24.0)))
    return float(slant * 5e-9)


def klobuchar_delay_m(
    t_s: float,
    lat_deg: float,
    lon_deg: float,
    elev_deg: float,
    az_deg: float,
    alpha: tuple[float, float, float, float] | None = None,
    beta: tuple[float, float, float, float] | None = None,
) -> float:
    """Return L1 ionospheric group delay in meters from geodetic angles in degrees."""

    delay_s = klobuchar_delay_s(
        t_s,
        lat_deg / 180.0,
        lon_deg / 180.0,
        elev_deg / 180.0,
        float(np.deg2rad(az_deg)),
        ZERO_COEFFS if alpha is None else alpha,
        ZERO_COEFFS if beta is None else beta,
    )
    return max(LIGHT_SPEED_MPS * delay_s, 0.0)


def klobuchar_correction_s(
    user_ecef_m: np.ndarray,
    sat_ecef_m: np.ndarray,
    tow_s: float,
    alpha: tuple[float, float, float, float],
    beta: tuple[float, float, float, float],
    freq_hz: float = L1_FREQ_HZ,
) -> float:
    """Ionospheric delay in seconds for an ECEF user/satellite pair.

    The L1 model value is scaled by (f_L1 / f)^2 for other carriers.
    """

    elev_rad, az_rad = elevation_azimuth_rad(user_ecef_m, sat_ecef_m)
    lat_deg, lon_deg, _ = ecef_to_lla(*np.asarray(user_ecef_m, dtype=float)[:3])
    delay_s = klobuchar_delay_s(
        tow_s,
        lat_deg / 180.0,
        lon_deg / 180.0,
        elev_rad / np.pi,
        az_rad,
        alpha,
        beta,
    )
    return delay_s * (L1_FREQ_HZ / freq_hz) ** 2
