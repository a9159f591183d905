import numpy as np

from pseudolite_nav.utils.angles import elevation_azimuth_rad
from pseudolite_nav.utils.wgs84 import ecef_to_enu_matrix, ecef_to_lla, lla_to_ecef


def test_lla_to_ecef_is_finite() -> None:
    ecef = lla_to_ecef(40.0, 118.0, 100.0)
    assert ecef.shape == (3,)
    assert np.all(np.isfinite(ecef))


def test_lla_ecef_roundtrip() -> None:
    lat_deg = 37.4275
    lon_deg = -122.1697
    alt_m = 30.0

    ecef = lla_to_ecef(lat_deg, lon_deg, alt_m)
    lat_rt, lon_rt, alt_rt = ecef_to_lla(*ecef)

    assert np.isclose(lat_rt, lat_deg, atol=1e-6)
    assert np.isclose(lon_rt, lon_deg, atol=1e-6)
    assert np.isclose(alt_rt, alt_m, atol=1e-3)


def test_enu_rotation_is_orthonormal() -> None:
    rot = ecef_to_enu_matrix(40.0, 118.0)

    assert np.allclose(rot @ rot.T, np.eye(3))


def test_elevation_overhead() -> None:
    pos_rx = lla_to_ecef(0.0, 0.0, 0.0)
    pos_sv = lla_to_ecef(0.0, 0.0, 20_200_000.0)

    elev_rad, az_rad = elevation_azimuth_rad(pos_rx, pos_sv)

    assert np.rad2deg(elev_rad) > 89.9
    assert 0.0 <= az_rad < 2.0 * np.pi


def test_azimuth_due_north() -> None:
    pos_rx = lla_to_ecef(10.0, 20.0, 0.0)
    pos_sv = lla_to_ecef(12.0, 20.0, 1_000_000.0)

    _, az_rad = elevation_azimuth_rad(pos_rx, pos_sv)

    assert min(az_rad, 2.0 * np.pi - az_rad) < 1e-6
