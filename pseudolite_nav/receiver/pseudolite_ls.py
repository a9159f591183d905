"""Two-stage pseudolite positioning with a damped least squares back end."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy import linalg

from pseudolite_nav.config import PseudoliteConfig, SolverConfig
from pseudolite_nav.errors import InsufficientSatellitesError, MissingEphemerisError
from pseudolite_nav.meas.pseudorange import LIGHT_SPEED_MPS, SECONDS_PER_NANO
from pseudolite_nav.meas.smoothing import PseudorangeSmoother
from pseudolite_nav.models import (
    MAX_NUMBER_OF_SATELLITES,
    ElevationProvider,
    NavMessage,
    PseudorangeMeasurement,
    nan_position,
)
from pseudolite_nav.receiver.wls_pvt import UserPositionLeastSquares, WlsSolution, corrected_transmit_time
from pseudolite_nav.utils.logging import get_logger
from pseudolite_nav.utils.wgs84 import lla_to_ecef

LOGGER = get_logger(__name__)

INCOMPLETE_PSEUDOLITE_SET = "incomplete pseudolite set"
_INITIAL_ERROR_M = 10.0


@dataclass(frozen=True)
class DampedLsResult:
    """Outcome of the Levenberg-Marquardt loop.

    ``position`` is [x, y, z, bias] in the pseudolite frame, NaN when the
    iteration cap ran out before the step size dropped below tolerance.
    ``residual_history`` holds the residual sum of squares of every accepted
    state, starting with the seed.
    """

    position: np.ndarray
    iterations: int
    converged: bool
    residual_history: tuple[float, ...]
    rejected_steps: int


def _ranges_and_geometry(antennas: np.ndarray, state: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    diff = state[:3] - antennas
    distances = np.linalg.norm(diff, axis=1)
    geometry = np.hstack([diff / distances[:, None], np.ones((antennas.shape[0], 1))])
    return distances + state[3], geometry


def damped_least_squares(
    antennas_xyz: np.ndarray,
    ranges_m: np.ndarray,
    seed: np.ndarray | None = None,
    tolerance_m: float = 1.0e-4,
    max_iterations: int = 100,
    initial_lambda: float = 0.1,
    lambda_factor: float = 10.0,
) -> DampedLsResult:
    """Fit a position and common bias to ranges from known antenna positions.

    Each iteration solves ``(G^T G + lambda I) dx = G^T r``. A step is kept
    when the residual sum of squares does not grow, in which case lambda is
    divided by ``lambda_factor``; otherwise the state is left alone and lambda
    is multiplied by it.
    """

    antennas = np.atleast_2d(np.asarray(antennas_xyz, dtype=float))
    ranges = np.asarray(ranges_m, dtype=float)
    state = np.zeros(4, dtype=float)
    if seed is not None:
        state[:3] = np.asarray(seed, dtype=float)[:3]

    lam = initial_lambda
    error = _INITIAL_ERROR_M
    iterations = 0
    rejected = 0
    predicted, geometry = _ranges_and_geometry(antennas, state)
    residual = ranges - predicted
    cost = float(residual @ residual)
    history = [cost]

    while error >= tolerance_m and iterations < max_iterations:
        iterations += 1
        normal = geometry.T @ geometry + lam * np.eye(4)
        dx = linalg.solve(normal, geometry.T @ residual)
        candidate = state + dx
        cand_predicted, cand_geometry = _ranges_and_geometry(antennas, candidate)
        cand_residual = ranges - cand_predicted
        cand_cost = float(cand_residual @ cand_residual)
        if cost >= cand_cost:
            lam /= lambda_factor
            state = candidate
            residual = cand_residual
            geometry = cand_geometry
            cost = cand_cost
            history.append(cost)
            error = float(np.linalg.norm(dx))
        else:
            lam *= lambda_factor
            rejected += 1
        LOGGER.debug("LM iteration %d: lambda = %.1e, cost = %.3e m^2", iterations, lam, cost)

    converged = error < tolerance_m
    if not converged:
        LOGGER.warning("Damped least squares stopped after %d iterations without converging", iterations)
    return DampedLsResult(
        position=state if converged else nan_position(4),
        iterations=iterations,
        converged=converged,
        residual_history=tuple(history),
        rejected_steps=rejected,
    )


@dataclass(frozen=True)
class PseudoliteSolveResult:
    """Indoor position plus the per-slot ranges derived on the way."""

    position_xyz: np.ndarray
    stage1: WlsSolution
    antenna_to_sat_m: np.ndarray
    antenna_to_user_m: np.ndarray
    channel_prns: tuple[int, ...]
    damped: DampedLsResult

    @property
    def is_valid(self) -> bool:
        return bool(np.all(np.isfinite(self.position_xyz)))


class PseudolitePositionSolver:
    """Phantom satellite fix followed by an indoor damped least squares fix."""

    def __init__(
        self,
        pseudolite_config: PseudoliteConfig,
        solver_config: SolverConfig | None = None,
        smoother: PseudorangeSmoother | None = None,
        elevation_provider: ElevationProvider | None = None,
    ) -> None:
        self.pseudolite_config = pseudolite_config
        self.solver_config = solver_config or SolverConfig()
        self.stage1 = UserPositionLeastSquares(self.solver_config, smoother, elevation_provider)
        self.outdoor_antenna_ecef_m = lla_to_ecef(*pseudolite_config.outdoor_antenna_lla)

    def smooth(self, measurements: list[PseudorangeMeasurement | None]) -> list[PseudorangeMeasurement | None]:
        return self.stage1.smooth(measurements)

    def _channel_delay_m(self, channel: int) -> float:
        delays = self.pseudolite_config.channel_delays_ns
        if not self.solver_config.apply_channel_delays or not delays:
            return 0.0
        return delays[channel] * SECONDS_PER_NANO * LIGHT_SPEED_MPS

    def solve(
        self,
        nav: NavMessage,
        measurements: list[PseudorangeMeasurement | None],
        tow_rx_s: float,
        week: int,
        day_of_year: int,
        channel_prns: Sequence[int] | None = None,
        seed: np.ndarray | None = None,
    ) -> PseudoliteSolveResult:
        """Solve one epoch of already-smoothed measurements.

        ``channel_prns[i]`` is the satellite rebroadcast by indoor antenna i.
        Without it the tracked PRNs are used in ascending order.
        """

        required = self.pseudolite_config.num_pseudolites
        if channel_prns is None:
            channel_prns = [idx + 1 for idx, meas in enumerate(measurements) if meas is not None]
        channel_prns = tuple(channel_prns)[:required]
        if len(channel_prns) < required:
            raise InsufficientSatellitesError(len(channel_prns), required, INCOMPLETE_PSEUDOLITE_SET)

        stage1 = self.stage1.solve(nav, measurements, tow_rx_s, week, day_of_year, seed=None)
        geometry = stage1.geometry
        antenna = self.outdoor_antenna_ecef_m
        antenna_to_sat = np.full(MAX_NUMBER_OF_SATELLITES, np.nan)
        antenna_to_user = np.full(MAX_NUMBER_OF_SATELLITES, np.nan)
        ranges = np.zeros(required, dtype=float)

        for channel, prn in enumerate(channel_prns):
            meas = measurements[prn - 1]
            if meas is None or prn not in geometry.prns:
                raise InsufficientSatellitesError(channel, required, INCOMPLETE_PSEUDOLITE_SET)
            eph = nav.ephemeris(prn)
            if eph is None:
                raise MissingEphemerisError(prn)
            sat_pos = geometry.sat_positions_ecef_m[geometry.prns.index(prn)]
            transmit = corrected_transmit_time(eph, tow_rx_s, week, meas.pseudorange_m)
            sat_to_antenna = self.stage1.predicted_pseudorange_m(
                eph,
                sat_pos,
                antenna,
                stage1.clock_bias_m,
                transmit,
                nav.iono,
                day_of_year,
                geometry.atmospheric_corrections,
            )
            to_user = (
                meas.pseudorange_m
                - sat_to_antenna
                - self.pseudolite_config.outdoor_to_indoor_range_m[channel]
                - self._channel_delay_m(channel)
            )
            antenna_to_sat[prn - 1] = sat_to_antenna
            antenna_to_user[prn - 1] = to_user
            ranges[channel] = to_user

        damped = damped_least_squares(
            self.pseudolite_config.indoor_antennas_array,
            ranges,
            seed=seed,
            tolerance_m=self.solver_config.pseudolite_tolerance_m,
            max_iterations=self.solver_config.max_iterations,
            initial_lambda=self.solver_config.initial_lambda,
            lambda_factor=self.solver_config.lambda_factor,
        )
        return PseudoliteSolveResult(
            position_xyz=damped.position[:3].copy(),
            stage1=stage1,
            antenna_to_sat_m=antenna_to_sat,
            antenna_to_user_m=antenna_to_user,
            channel_prns=channel_prns,
            damped=damped,
        )
