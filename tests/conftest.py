from __future__ import annotations

import numpy as np
import pytest

from pseudolite_nav.config import PseudoliteConfig
from pseudolite_nav.models import NavMessage
from pseudolite_nav.sat.simple_gps import SimpleGpsConfig, SimpleGpsConstellation
from pseudolite_nav.utils.wgs84 import lla_to_ecef

WEEK = 2300
TOE_S = 1000.0
RECEIVER_LLA = (40.0, 118.0, 100.0)


@pytest.fixture
def constellation() -> SimpleGpsConstellation:
    return SimpleGpsConstellation(SimpleGpsConfig(seed=3))


@pytest.fixture
def nav(constellation: SimpleGpsConstellation) -> NavMessage:
    return constellation.nav_message(WEEK, TOE_S)


@pytest.fixture
def receiver_ecef() -> np.ndarray:
    return lla_to_ecef(*RECEIVER_LLA)


@pytest.fixture
def visible_prns(constellation: SimpleGpsConstellation, nav: NavMessage, receiver_ecef: np.ndarray) -> list[int]:
    prns = constellation.visible_prns(nav, receiver_ecef, WEEK, TOE_S)
    assert len(prns) >= 5
    return prns


@pytest.fixture
def spread_pseudolites() -> PseudoliteConfig:
    """Four indoor antennas at clearly different heights."""

    return PseudoliteConfig(
        outdoor_antenna_lla=RECEIVER_LLA,
        indoor_antennas_xyz=(
            (8.0, 0.5, 3.0),
            (-7.5, 1.0, 0.2),
            (0.5, 9.0, 5.5),
            (1.0, -8.0, 1.0),
        ),
        outdoor_to_indoor_range_m=(12.0, 16.0, 12.0, 16.0),
        satellite_ids=(),
        channel_delays_ns=(10.0, 20.0, 30.0, 0.0),
    )
