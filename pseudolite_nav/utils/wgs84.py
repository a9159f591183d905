"""WGS-84 geodetic conversions and local-level rotations."""

from __future__ import annotations

import numpy as np

SEMI_MAJOR_AXIS_M = 6_378_137.0
FLATTENING = 1.0 / 298.257223563
SEMI_MINOR_AXIS_M = SEMI_MAJOR_AXIS_M * (1.0 - FLATTENING)
ECCENTRICITY_SQ = FLATTENING * (2.0 - FLATTENING)
SECOND_ECCENTRICITY_SQ = ECCENTRICITY_SQ / (1.0 - ECCENTRICITY_SQ)

_LATITUDE_TOLERANCE_RAD = 1.0e-12
_MAX_LATITUDE_ITERATIONS = 5


def _prime_vertical_radius_m(sin_lat: float) -> float:
    return SEMI_MAJOR_AXIS_M / np.sqrt(1.0 - ECCENTRICITY_SQ * sin_lat * sin_lat)


def lla_to_ecef(lat_deg: float, lon_deg: float, alt_m: float) -> np.ndarray:
    """Geodetic latitude/longitude (deg) and ellipsoidal height (m) to ECEF metres."""

    lat, lon = np.deg2rad(lat_deg), np.deg2rad(lon_deg)
    sin_lat = float(np.sin(lat))
    n = _prime_vertical_radius_m(sin_lat)
    horizontal = (n + alt_m) * np.cos(lat)
    return np.array(
        [horizontal * np.cos(lon), horizontal * np.sin(lon), (n * (1.0 - ECCENTRICITY_SQ) + alt_m) * sin_lat],
        dtype=float,
    )


def ecef_to_lla(x_m: float, y_m: float, z_m: float) -> tuple[float, float, float]:
    """ECEF metres to (lat_deg, lon_deg, alt_m).

    Bowring's parametric latitude seeds a short fixed-point refinement. The
    polar axis has no defined longitude direction and is handled on its own.
    """

    lon = float(np.arctan2(y_m, x_m))
    p = float(np.hypot(x_m, y_m))
    if p == 0.0:
        lat_deg = 90.0 if z_m >= 0.0 else -90.0
        return lat_deg, float(np.rad2deg(lon)), float(abs(z_m) - SEMI_MINOR_AXIS_M)

    beta = np.arctan2(z_m * SEMI_MAJOR_AXIS_M, p * SEMI_MINOR_AXIS_M)
    lat = float(
        np.arctan2(
            z_m + SECOND_ECCENTRICITY_SQ * SEMI_MINOR_AXIS_M * np.sin(beta) ** 3,
            p - ECCENTRICITY_SQ * SEMI_MAJOR_AXIS_M * np.cos(beta) ** 3,
        )
    )
    for _ in range(_MAX_LATITUDE_ITERATIONS):
        n = _prime_vertical_radius_m(np.sin(lat))
        alt = p / np.cos(lat) - n
        refined = float(np.arctan2(z_m, p * (1.0 - ECCENTRICITY_SQ * n / (n + alt))))
        done = abs(refined - lat) < _LATITUDE_TOLERANCE_RAD
        lat = refined
        if done:
            break

    alt = p / np.cos(lat) - _prime_vertical_radius_m(np.sin(lat))
    return float(np.rad2deg(lat)), float(np.rad2deg(lon)), float(alt)


def ecef_to_enu_matrix(lat_deg: float, lon_deg: float) -> np.ndarray:
    """Rows are the east, north and up unit vectors expressed in ECEF."""

    lat, lon = np.deg2rad(lat_deg), np.deg2rad(lon_deg)
    east = [-np.sin(lon), np.cos(lon), 0.0]
    north = [-np.sin(lat) * np.cos(lon), -np.sin(lat) * np.sin(lon), np.cos(lat)]
    up = [np.cos(lat) * np.cos(lon), np.cos(lat) * np.sin(lon), np.sin(lat)]
    return np.array([east, north, up], dtype=float)


def enu_from_ecef_delta(delta_ecef_m: np.ndarray, lat_deg: float, lon_deg: float) -> np.ndarray:
    return ecef_to_enu_matrix(lat_deg, lon_deg) @ np.asarray(delta_ecef_m, dtype=float)


def ecef_from_enu_delta(delta_enu_m: np.ndarray, lat_deg: float, lon_deg: float) -> np.ndarray:
    return ecef_to_enu_matrix(lat_deg, lon_deg).T @ np.asarray(delta_enu_m, dtype=float)
