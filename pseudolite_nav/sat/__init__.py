"""Satellite orbits and navigation data sources."""

from pseudolite_nav.sat.ephemeris import satellite_clock_correction, satellite_position_velocity
from pseudolite_nav.sat.nav_store import EphemerisSourceSelector, NavMessageStore, NavSource
from pseudolite_nav.sat.rinex_nav import parse_rinex_nav_lines, read_rinex_nav
from pseudolite_nav.sat.simple_gps import SimpleGpsConfig, SimpleGpsConstellation

__all__ = [
    "EphemerisSourceSelector",
    "NavMessageStore",
    "NavSource",
    "SimpleGpsConfig",
    "SimpleGpsConstellation",
    "parse_rinex_nav_lines",
    "read_rinex_nav",
    "satellite_clock_correction",
    "satellite_position_velocity",
]
