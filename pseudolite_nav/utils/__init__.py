"""Geodesy, time and logging helpers."""

from pseudolite_nav.utils.angles import elevation_azimuth_rad
from pseudolite_nav.utils.gps_time import GpsTime, wrap_week
from pseudolite_nav.utils.logging import get_logger, set_log_level
from pseudolite_nav.utils.wgs84 import (
    ecef_to_enu_matrix,
    ecef_to_lla,
    enu_from_ecef_delta,
    lla_to_ecef,
)

__all__ = [
    "GpsTime",
    "ecef_to_enu_matrix",
    "ecef_to_lla",
    "elevation_azimuth_rad",
    "enu_from_ecef_delta",
    "get_logger",
    "lla_to_ecef",
    "set_log_level",
    "wrap_week",
]
