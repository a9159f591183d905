"""Elevation/azimuth geometry between a receiver and a satellite."""

from __future__ import annotations

import numpy as np

from pseudolite_nav.utils.wgs84 import ecef_to_lla, enu_from_ecef_delta


def elevation_azimuth_rad(user_ecef_m: np.ndarray, sat_ecef_m: np.ndarray) -> tuple[float, float]:
    """Elevation and azimuth (rad, azimuth in [0, 2pi)) of a satellite seen from the user."""

    user = np.asarray(user_ecef_m, dtype=float)[:3]
    sat = np.asarray(sat_ecef_m, dtype=float)[:3]
    lat_deg, lon_deg, _ = ecef_to_lla(*user)
    east, north, up = enu_from_ecef_delta(sat - user, lat_deg, lon_deg)
    elev = float(np.arctan2(up, np.hypot(east, north)))
    az = float(np.arctan2(east, north))
    if az < 0.0:
        az += 2.0 * np.pi
    return elev, az
