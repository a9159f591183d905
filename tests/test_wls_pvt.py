import numpy as np
import pytest

from pseudolite_nav.config import SolverConfig
from pseudolite_nav.errors import InsufficientSatellitesError, MissingEphemerisError, NonConvergenceError
from pseudolite_nav.meas.pseudorange import LIGHT_SPEED_MPS, epoch_pseudoranges, filter_gps_measurements
from pseudolite_nav.meas.synthetic import SyntheticMeasurementSource
from pseudolite_nav.models import NavMessage
from pseudolite_nav.receiver.wls_pvt import (
    UserPositionLeastSquares,
    calculate_user_position,
    corrected_transmit_time,
    geometry_matrix,
    least_squares_correction,
)
from pseudolite_nav.sat.simple_gps import SimpleGpsConstellation
from pseudolite_nav.utils.gps_time import SECONDS_IN_WEEK

WEEK = 2300
TOE_S = 1000.0


def _measurements(source: SyntheticMeasurementSource, tow_s: float):
    epoch = filter_gps_measurements(source.make_batch(tow_s))
    return epoch, epoch_pseudoranges(epoch)


def test_wls_zero_noise_converges_to_truth(nav: NavMessage, receiver_ecef: np.ndarray, visible_prns: list[int]) -> None:
    source = SyntheticMeasurementSource(
        nav=nav, receiver_ecef_m=receiver_ecef, week=WEEK, prns=tuple(visible_prns), clock_bias_m=1234.5
    )
    epoch, pseudoranges = _measurements(source, TOE_S)

    solution = calculate_user_position(nav, pseudoranges, epoch.tow_s, epoch.week, epoch.day_of_year)

    assert np.linalg.norm(solution.pos_ecef_m - receiver_ecef) < 1e-2
    assert np.isclose(solution.clock_bias_m, 1234.5, atol=1e-2)
    assert solution.iterations < 100
    assert solution.geometry.atmospheric_corrections
    assert solution.geometry.prns == tuple(visible_prns)
    assert np.max(np.abs(solution.geometry.residuals_m)) < 1e-2
    assert 0.5 <= solution.dop.pdop < 10.0


def test_wls_without_atmosphere(nav: NavMessage, receiver_ecef: np.ndarray, visible_prns: list[int]) -> None:
    config = SolverConfig(apply_atmospheric_corrections=False)
    source = SyntheticMeasurementSource(
        nav=nav, receiver_ecef_m=receiver_ecef, week=WEEK, prns=tuple(visible_prns), solver_config=config
    )
    epoch, pseudoranges = _measurements(source, TOE_S + 30.0)

    solution = calculate_user_position(
        nav, pseudoranges, epoch.tow_s, epoch.week, epoch.day_of_year, config=config
    )

    assert not solution.geometry.atmospheric_corrections
    assert np.linalg.norm(solution.pos_ecef_m - receiver_ecef) < 1e-2


def test_wls_noisy_measurements_stay_close(nav: NavMessage, receiver_ecef: np.ndarray, visible_prns: list[int]) -> None:
    source = SyntheticMeasurementSource(
        nav=nav,
        receiver_ecef_m=receiver_ecef,
        week=WEEK,
        prns=tuple(visible_prns),
        noise_sigma_m=1.0,
        rng=np.random.default_rng(42),
    )
    epoch, pseudoranges = _measurements(source, TOE_S)

    solution = calculate_user_position(nav, pseudoranges, epoch.tow_s, epoch.week, epoch.day_of_year)

    assert np.linalg.norm(solution.pos_ecef_m - receiver_ecef) < 15.0
    assert solution.p_value is None or 0.0 <= solution.p_value <= 1.0


def test_three_satellites_raise(nav: NavMessage, receiver_ecef: np.ndarray, visible_prns: list[int]) -> None:
    source = SyntheticMeasurementSource(nav=nav, receiver_ecef_m=receiver_ecef, week=WEEK, prns=tuple(visible_prns[:3]))
    epoch, pseudoranges = _measurements(source, TOE_S)

    with pytest.raises(InsufficientSatellitesError) as excinfo:
        calculate_user_position(nav, pseudoranges, epoch.tow_s, epoch.week, epoch.day_of_year)
    assert excinfo.value.available == 3
    assert excinfo.value.reason == "insufficient satellites"


def test_missing_ephemeris_raises(nav: NavMessage, receiver_ecef: np.ndarray, visible_prns: list[int]) -> None:
    source = SyntheticMeasurementSource(nav=nav, receiver_ecef_m=receiver_ecef, week=WEEK, prns=tuple(visible_prns))
    epoch, pseudoranges = _measurements(source, TOE_S)
    missing = visible_prns[0]
    partial = NavMessage(
        ephemerides={prn: eph for prn, eph in nav.ephemerides.items() if prn != missing}, iono=nav.iono
    )

    with pytest.raises(MissingEphemerisError) as excinfo:
        calculate_user_position(partial, pseudoranges, epoch.tow_s, epoch.week, epoch.day_of_year)
    assert excinfo.value.prn == missing


def test_iteration_cap_raises_non_convergence(
    nav: NavMessage, receiver_ecef: np.ndarray, visible_prns: list[int]
) -> None:
    source = SyntheticMeasurementSource(nav=nav, receiver_ecef_m=receiver_ecef, week=WEEK, prns=tuple(visible_prns))
    epoch, pseudoranges = _measurements(source, TOE_S)

    with pytest.raises(NonConvergenceError, match="did not converge"):
        calculate_user_position(
            nav, pseudoranges, epoch.tow_s, epoch.week, epoch.day_of_year, config=SolverConfig(max_iterations=1)
        )


def test_transmit_time_wraps_into_previous_week(constellation: SimpleGpsConstellation) -> None:
    eph = constellation.ephemeris(1, WEEK, 0.0)
    tow_tx, week_tx = corrected_transmit_time(eph, 0.01, WEEK, 0.07 * LIGHT_SPEED_MPS)
    assert week_tx == WEEK - 1
    assert SECONDS_IN_WEEK - 0.1 < tow_tx < SECONDS_IN_WEEK

    tow_tx, week_tx = corrected_transmit_time(eph, 100.0, WEEK, 0.07 * LIGHT_SPEED_MPS)
    assert week_tx == WEEK
    assert np.isclose(tow_tx, 99.93, atol=1e-3)


def test_solution_across_week_boundary(constellation: SimpleGpsConstellation, receiver_ecef: np.ndarray) -> None:
    nav = constellation.nav_message(WEEK, 0.0)
    prns = constellation.visible_prns(nav, receiver_ecef, WEEK, 0.0)
    source = SyntheticMeasurementSource(
        nav=nav, receiver_ecef_m=receiver_ecef, week=WEEK, start_tow_s=0.02, prns=tuple(prns)
    )
    epoch, pseudoranges = _measurements(source, 0.02)

    solution = calculate_user_position(nav, pseudoranges, epoch.tow_s, epoch.week, epoch.day_of_year)

    assert np.linalg.norm(solution.pos_ecef_m - receiver_ecef) < 1.0


def test_singular_covariance_falls_back_to_ordinary_least_squares() -> None:
    sats = np.array(
        [
            [2.0e7, 0.0, 0.0],
            [0.0, 2.0e7, 0.0],
            [0.0, 0.0, 2.0e7],
            [1.2e7, 1.2e7, 1.2e7],
            [-1.0e7, 1.5e7, 1.0e7],
        ]
    )
    g = geometry_matrix(sats, np.zeros(4))
    residuals = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    tiny = np.diag(np.full(5, 1e-3))
    expected = np.linalg.lstsq(g, residuals, rcond=None)[0]
    assert np.allclose(least_squares_correction(g, residuals, tiny), expected)


def test_geoid_height_is_cached(receiver_ecef: np.ndarray) -> None:
    calls: list[tuple[float, float]] = []

    class FixedElevation:
        def elevation_above_sea_level_m(self, lat_deg: float, lon_deg: float) -> float:
            calls.append((lat_deg, lon_deg))
            return 70.0

    solver = UserPositionLeastSquares(elevation_provider=FixedElevation())  # type: ignore[arg-type]
    assert np.isclose(solver.geoid_height_m(receiver_ecef), 30.0, atol=1e-6)
    assert np.isclose(solver.geoid_height_m(receiver_ecef + 1000.0), 30.0, atol=1e-6)
    assert len(calls) == 1


def test_geoid_lookup_failure_falls_back(receiver_ecef: np.ndarray) -> None:
    class Offline:
        def elevation_above_sea_level_m(self, lat_deg: float, lon_deg: float) -> float:
            raise OSError("offline")

    solver = UserPositionLeastSquares(elevation_provider=Offline())  # type: ignore[arg-type]
    assert np.isclose(solver.geoid_height_m(receiver_ecef), 100.0, atol=1e-6)
