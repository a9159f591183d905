"""Iterative weighted least squares position and clock bias solver."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import linalg
from scipy.stats import chi2

from pseudolite_nav.config import SolverConfig
from pseudolite_nav.errors import (
    InsufficientSatellitesError,
    MissingEphemerisError,
    NonConvergenceError,
    PositioningError,
)
from pseudolite_nav.meas.iono_klobuchar import klobuchar_correction_s
from pseudolite_nav.meas.pseudorange import LIGHT_SPEED_MPS
from pseudolite_nav.meas.smoothing import NoSmoothing, PseudorangeSmoother, make_smoother
from pseudolite_nav.meas.tropo_egnos import egnos_tropo_delay_m
from pseudolite_nav.models import (
    ElevationProvider,
    GpsEphemeris,
    IonoParams,
    NavMessage,
    PseudorangeMeasurement,
)
from pseudolite_nav.sat.ephemeris import satellite_clock_correction, satellite_position_velocity
from pseudolite_nav.utils.angles import elevation_azimuth_rad
from pseudolite_nav.utils.gps_time import wrap_week
from pseudolite_nav.utils.logging import get_logger
from pseudolite_nav.utils.wgs84 import ecef_to_lla

LOGGER = get_logger(__name__)

_ZERO_IONO = IonoParams()


@dataclass(frozen=True)
class DopMetrics:
    gdop: float
    pdop: float
    hdop: float
    vdop: float


@dataclass(frozen=True)
class SatelliteGeometry:
    """Per-satellite output of one residual evaluation, rows in ascending PRN order."""

    prns: tuple[int, ...]
    sat_positions_ecef_m: np.ndarray
    residuals_m: np.ndarray
    covariance_m2: np.ndarray
    atmospheric_corrections: bool

    @property
    def num_satellites(self) -> int:
        return len(self.prns)


@dataclass(frozen=True)
class WlsSolution:
    """Position [x, y, z, clock bias] in meters with the last satellite geometry."""

    position: np.ndarray
    geometry: SatelliteGeometry
    iterations: int
    dop: DopMetrics
    chi_square: float
    p_value: float | None

    @property
    def pos_ecef_m(self) -> np.ndarray:
        return self.position[:3]

    @property
    def clock_bias_m(self) -> float:
        return float(self.position[3])


def corrected_transmit_time(
    eph: GpsEphemeris,
    tow_rx_s: float,
    week: int,
    pseudorange_m: float,
) -> tuple[float, int]:
    """Transmit time of week, corrected for travel time and satellite clock, with week wrap."""

    tow_tx, week_tx = wrap_week(tow_rx_s - pseudorange_m / LIGHT_SPEED_MPS, week)
    clock_s = satellite_clock_correction(eph, tow_tx, week_tx).correction_s
    return wrap_week(tow_tx + clock_s, week_tx)


def geometry_matrix(sat_positions_ecef_m: np.ndarray, user_ecef_m: np.ndarray) -> np.ndarray:
    """Unit vectors from satellite to user in columns 0..2 and ones in column 3."""

    sats = np.atleast_2d(np.asarray(sat_positions_ecef_m, dtype=float))
    user = np.asarray(user_ecef_m, dtype=float)[:3]
    diff = user - sats
    norms = np.linalg.norm(diff, axis=1, keepdims=True)
    return np.hstack([diff / norms, np.ones((sats.shape[0], 1))])


def _compute_dop_from_geometry(geometry: np.ndarray) -> DopMetrics:
    try:
        q = linalg.inv(geometry.T @ geometry)
    except linalg.LinAlgError:
        return DopMetrics(gdop=float("inf"), pdop=float("inf"), hdop=float("inf"), vdop=float("inf"))
    diag = np.diag(q)
    return DopMetrics(
        gdop=float(np.sqrt(np.trace(q))),
        pdop=float(np.sqrt(np.sum(diag[:3]))),
        hdop=float(np.sqrt(np.sum(diag[:2]))),
        vdop=float(np.sqrt(diag[2])),
    )


def least_squares_correction(
    geometry: np.ndarray,
    residuals_m: np.ndarray,
    covariance_m2: np.ndarray,
    det_tolerance: float = 1.0e-10,
) -> np.ndarray:
    """Return ``H @ residuals`` with ``H = (G^T W G)^-1 G^T W``.

    W is the inverse covariance; a covariance whose determinant is not above
    ``det_tolerance`` falls back to ordinary least squares.
    """

    try:
        if linalg.det(covariance_m2) > det_tolerance:
            weights = linalg.inv(covariance_m2)
            return linalg.solve(geometry.T @ weights @ geometry, geometry.T @ weights @ residuals_m)
        return linalg.solve(geometry.T @ geometry, geometry.T @ residuals_m)
    except linalg.LinAlgError as exc:
        raise PositioningError("singular satellite geometry") from exc


class UserPositionLeastSquares:
    """Weighted least squares solver with smoothing and a per-instance geoid cache."""

    def __init__(
        self,
        config: SolverConfig | None = None,
        smoother: PseudorangeSmoother | None = None,
        elevation_provider: ElevationProvider | None = None,
    ) -> None:
        self.config = config or SolverConfig()
        self.smoother = smoother if smoother is not None else make_smoother(self.config)
        self.elevation_provider = elevation_provider
        self._geoid_height_m: float | None = None

    def smooth(self, measurements: list[PseudorangeMeasurement | None]) -> list[PseudorangeMeasurement | None]:
        return self.smoother.update(list(measurements))

    def geoid_height_m(self, user_ecef_m: np.ndarray) -> float:
        """Geoid height under the user, looked up once and then reused."""

        if self._geoid_height_m is None:
            if self.elevation_provider is None:
                self._geoid_height_m = 0.0
            else:
                lat_deg, lon_deg, alt_m = ecef_to_lla(*np.asarray(user_ecef_m, dtype=float)[:3])
                try:
                    above_sea_m = self.elevation_provider.elevation_above_sea_level_m(lat_deg, lon_deg)
                except (OSError, ValueError) as exc:
                    LOGGER.warning("Elevation lookup failed (%s); assuming 0 m above sea level", exc)
                    above_sea_m = 0.0
                self._geoid_height_m = alt_m - above_sea_m
        return self._geoid_height_m

    def atmospheric_delays_m(
        self,
        user_ecef_m: np.ndarray,
        sat_ecef_m: np.ndarray,
        tow_tx_s: float,
        iono: IonoParams | None,
        day_of_year: int,
    ) -> tuple[float, float]:
        """Return (ionospheric, tropospheric) delays in meters."""

        user = np.asarray(user_ecef_m, dtype=float)[:3]
        iono = iono or _ZERO_IONO
        iono_m = klobuchar_correction_s(user, sat_ecef_m, tow_tx_s, iono.alpha, iono.beta) * LIGHT_SPEED_MPS
        elev_rad, _ = elevation_azimuth_rad(user, sat_ecef_m)
        lat_deg, _, alt_m = ecef_to_lla(*user)
        height_m = alt_m - self.geoid_height_m(user)
        tropo_m = egnos_tropo_delay_m(elev_rad, np.deg2rad(lat_deg), height_m, day_of_year)
        return iono_m, tropo_m

    def predicted_pseudorange_m(
        self,
        eph: GpsEphemeris,
        sat_ecef_m: np.ndarray,
        user_ecef_m: np.ndarray,
        clock_bias_m: float,
        transmit: tuple[float, int],
        iono: IonoParams | None,
        day_of_year: int,
        atmospheric: bool,
    ) -> float:
        """Range minus satellite clock plus atmosphere plus receiver clock bias."""

        tow_tx, week_tx = transmit
        clock_m = satellite_clock_correction(eph, tow_tx, week_tx).correction_m
        range_m = float(np.linalg.norm(np.asarray(sat_ecef_m, dtype=float) - np.asarray(user_ecef_m, dtype=float)[:3]))
        iono_m = tropo_m = 0.0
        if atmospheric:
            iono_m, tropo_m = self.atmospheric_delays_m(user_ecef_m, sat_ecef_m, tow_tx, iono, day_of_year)
        return range_m - clock_m + iono_m + tropo_m + clock_bias_m

    def satellite_residuals(
        self,
        nav: NavMessage,
        measurements: list[PseudorangeMeasurement | None],
        tow_rx_s: float,
        week: int,
        day_of_year: int,
        user: np.ndarray,
        atmospheric: bool,
    ) -> SatelliteGeometry:
        """Satellite positions and measured-minus-predicted residuals at ``user``."""

        tow_rx_s -= user[3] / LIGHT_SPEED_MPS
        prns: list[int] = []
        positions: list[np.ndarray] = []
        residuals: list[float] = []
        variances: list[float] = []
        for idx, meas in enumerate(measurements):
            if meas is None:
                continue
            prn = idx + 1
            eph = nav.ephemeris(prn)
            if eph is None:
                raise MissingEphemerisError(prn)
            transmit = corrected_transmit_time(eph, tow_rx_s, week, meas.pseudorange_m)
            sat_pos = satellite_position_velocity(eph, transmit[0], transmit[1], user[:3]).pos_ecef_m
            predicted = self.predicted_pseudorange_m(
                eph, sat_pos, user[:3], float(user[3]), transmit, nav.iono, day_of_year, atmospheric
            )
            prns.append(prn)
            positions.append(sat_pos)
            residuals.append(meas.pseudorange_m - predicted)
            variances.append(meas.pseudorange_uncertainty_m**2)
        return SatelliteGeometry(
            prns=tuple(prns),
            sat_positions_ecef_m=np.array(positions, dtype=float).reshape(-1, 3),
            residuals_m=np.array(residuals, dtype=float),
            covariance_m2=np.diag(variances),
            atmospheric_corrections=atmospheric,
        )

    def _step(self, geometry: SatelliteGeometry, user: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        g = geometry_matrix(geometry.sat_positions_ecef_m, user)
        delta = least_squares_correction(
            g, geometry.residuals_m, geometry.covariance_m2, self.config.covariance_det_tolerance
        )
        return delta, g

    def solve(
        self,
        nav: NavMessage,
        measurements: list[PseudorangeMeasurement | None],
        tow_rx_s: float,
        week: int,
        day_of_year: int,
        seed: np.ndarray | None = None,
    ) -> WlsSolution:
        """Iterate until the position correction is below the configured tolerance.

        ``measurements`` are 32 PRN slots, already smoothed. Atmospheric
        corrections switch on once the correction is below the configured
        threshold.
        """

        count = sum(1 for meas in measurements if meas is not None)
        if count < self.config.min_satellites:
            raise InsufficientSatellitesError(count, self.config.min_satellites)

        user = np.zeros(4, dtype=float) if seed is None else np.array(seed, dtype=float).reshape(4).copy()
        atmospheric = False
        geometry = self.satellite_residuals(nav, measurements, tow_rx_s, week, day_of_year, user, atmospheric)
        delta, g = self._step(geometry, user)
        user += delta

        iterations = 0
        while np.sum(np.abs(delta[:3])) >= self.config.lsq_tolerance_m:
            if (
                self.config.apply_atmospheric_corrections
                and np.sum(np.abs(delta[:3])) < self.config.atmospheric_threshold_m
            ):
                atmospheric = True
            geometry = self.satellite_residuals(nav, measurements, tow_rx_s, week, day_of_year, user, atmospheric)
            delta, g = self._step(geometry, user)
            user += delta
            iterations += 1
            LOGGER.debug("WLS iteration %d: |dx| = %.3e m", iterations, float(np.sum(np.abs(delta[:3]))))
            if iterations > self.config.max_iterations:
                raise NonConvergenceError(iterations)

        weights = np.diag(1.0 / np.maximum(np.diag(geometry.covariance_m2), 1e-6))
        chi_square = float(geometry.residuals_m @ weights @ geometry.residuals_m)
        dof = geometry.num_satellites - 4
        p_value = float(chi2.sf(chi_square, dof)) if dof > 0 else None
        return WlsSolution(
            position=user,
            geometry=geometry,
            iterations=iterations,
            dop=_compute_dop_from_geometry(g),
            chi_square=chi_square,
            p_value=p_value,
        )


def calculate_user_position(
    nav: NavMessage,
    measurements: list[PseudorangeMeasurement | None],
    tow_rx_s: float,
    week: int,
    day_of_year: int,
    seed: np.ndarray | None = None,
    config: SolverConfig | None = None,
) -> WlsSolution:
    """One-shot solve without smoothing or cached state."""

    solver = UserPositionLeastSquares(config=config, smoother=NoSmoothing())
    return solver.solve(nav, measurements, tow_rx_s, week, day_of_year, seed)
