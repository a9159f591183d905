import numpy as np
import pytest

from pseudolite_nav.sat.ephemeris import satellite_position_velocity
from pseudolite_nav.sat.simple_gps import SimpleGpsConfig, SimpleGpsConstellation


def test_simple_gps_states_are_finite() -> None:
    constellation = SimpleGpsConstellation(SimpleGpsConfig(num_sats=24, seed=42))
    nav = constellation.nav_message(2300, 0.0)
    assert nav.prns == list(range(1, 25))
    speeds = []
    for eph in nav.ephemerides.values():
        state = satellite_position_velocity(eph, 100.0, 2300)
        assert np.all(np.isfinite(state.pos_ecef_m))
        assert 25_000_000.0 < np.linalg.norm(state.pos_ecef_m) < 28_000_000.0
        speeds.append(float(np.linalg.norm(state.vel_ecef_mps)))
    assert all(1_500.0 < speed < 4_500.0 for speed in speeds)


def test_simple_gps_visibility_mask() -> None:
    receiver_ecef = np.array([6_378_000.0, 0.0, 0.0])
    constellation = SimpleGpsConstellation(SimpleGpsConfig(num_sats=24, seed=7))
    nav = constellation.nav_message(2300, 0.0)

    visible = constellation.visible_prns(nav, receiver_ecef, 2300, 0.0)

    assert 4 <= len(visible) <= 14
    assert visible == sorted(visible)
    assert len(constellation.visible_prns(nav, receiver_ecef, 2300, 0.0, mask_deg=-90.0)) == 24


def test_simple_gps_seed_repeatability() -> None:
    eph_a = SimpleGpsConstellation(SimpleGpsConfig(num_sats=12, seed=123)).ephemeris(5, 2300, 0.0)
    eph_b = SimpleGpsConstellation(SimpleGpsConfig(num_sats=12, seed=123)).ephemeris(5, 2300, 0.0)
    eph_c = SimpleGpsConstellation(SimpleGpsConfig(num_sats=12, seed=124)).ephemeris(5, 2300, 0.0)

    assert eph_a == eph_b
    assert eph_a != eph_c


def test_clock_terms_can_be_disabled() -> None:
    eph = SimpleGpsConstellation(SimpleGpsConfig(enable_clock=False)).ephemeris(1, 2300, 0.0)

    assert eph.af0 == 0.0
    assert eph.af1 == 0.0
    assert eph.tgd == 0.0


def test_unknown_prn_is_rejected() -> None:
    constellation = SimpleGpsConstellation(SimpleGpsConfig(num_sats=8))

    with pytest.raises(ValueError):
        constellation.ephemeris(9, 2300, 0.0)
