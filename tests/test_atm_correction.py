import numpy as np

from pseudolite_nav.meas.iono_klobuchar import L1_FREQ_HZ, klobuchar_correction_s, klobuchar_delay_m
from pseudolite_nav.meas.tropo_egnos import egnos_tropo_delay_m, egnos_zenith_delays_m, mops_mapping
from pseudolite_nav.utils.wgs84 import ecef_from_enu_delta, lla_to_ecef

ALPHA = (1.118e-08, 7.451e-09, -5.960e-08, -5.960e-08)
BETA = (9.011e04, 0.0, -1.966e05, -6.554e04)


def test_klobuchar_night_floor_with_zero_coefficients() -> None:
    delay = klobuchar_delay_m(0.0, 40.0, 118.0, 90.0, 0.0)
    assert np.isclose(delay, 299_792_458.0 * 5e-9, rtol=1e-3)


def test_klobuchar_grows_at_low_elevation() -> None:
    high = klobuchar_delay_m(50_000.0, 40.0, 10.0, 80.0, 45.0, ALPHA, BETA)
    low = klobuchar_delay_m(50_000.0, 40.0, 10.0, 10.0, 45.0, ALPHA, BETA)
    assert low > 2.0 * high > 0.0


def test_klobuchar_frequency_scaling() -> None:
    user = lla_to_ecef(40.0, 118.0, 100.0)
    sat = user + ecef_from_enu_delta(np.array([5e6, 5e6, 2e7]), 40.0, 118.0)
    l1 = klobuchar_correction_s(user, sat, 20_000.0, ALPHA, BETA)
    l2 = klobuchar_correction_s(user, sat, 20_000.0, ALPHA, BETA, freq_hz=1_227.6e6)
    assert l1 > 0.0
    assert np.isclose(l2 / l1, (L1_FREQ_HZ / 1_227.6e6) ** 2)


def test_mops_mapping_is_one_at_zenith() -> None:
    assert np.isclose(mops_mapping(np.pi / 2.0), 1.0, atol=1e-3)
    assert mops_mapping(np.deg2rad(10.0)) > 5.0


def test_egnos_zenith_delay_magnitude() -> None:
    dry, wet = egnos_zenith_delays_m(np.deg2rad(45.0), 0.0, 180)
    assert 2.2 < dry < 2.4
    assert 0.0 < wet < 0.4


def test_egnos_delay_decreases_with_height_and_elevation() -> None:
    lat = np.deg2rad(40.0)
    sea_level = egnos_tropo_delay_m(np.deg2rad(30.0), lat, 0.0, 100)
    mountain = egnos_tropo_delay_m(np.deg2rad(30.0), lat, 3000.0, 100)
    zenith = egnos_tropo_delay_m(np.pi / 2.0, lat, 0.0, 100)
    assert mountain < sea_level
    assert zenith < sea_level
    assert np.isclose(sea_level / zenith, mops_mapping(np.deg2rad(30.0)) / mops_mapping(np.pi / 2.0))
