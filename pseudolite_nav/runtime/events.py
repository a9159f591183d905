"""Per-batch orchestration of the conventional and pseudolite solvers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from pseudolite_nav.config import PseudoliteConfig, SolverConfig
from pseudolite_nav.errors import InsufficientSatellitesError, MissingEphemerisError, PositioningError
from pseudolite_nav.logger import format_lla_message, format_position_message
from pseudolite_nav.meas.pseudorange import EpochMeasurements, epoch_pseudoranges, filter_gps_measurements
from pseudolite_nav.meas.smoothing import PseudorangeSmoother
from pseudolite_nav.models import (
    MAX_NUMBER_OF_SATELLITES,
    ElevationProvider,
    MeasurementBatch,
    NavMessage,
    PseudorangeMeasurement,
    nan_position,
)
from pseudolite_nav.receiver.pseudolite_ls import INCOMPLETE_PSEUDOLITE_SET, PseudolitePositionSolver
from pseudolite_nav.receiver.selection import select_pseudolite_satellites
from pseudolite_nav.receiver.wls_pvt import DopMetrics, UserPositionLeastSquares
from pseudolite_nav.runtime.diagnostics import DiagnosticsSnapshot, PseudoliteDiagnostics
from pseudolite_nav.runtime.state_machine import EpochOutcome, SolverStateMachine
from pseudolite_nav.sat.nav_store import EphemerisSourceSelector
from pseudolite_nav.utils.gps_time import NANOS_PER_SECOND, GpsTime
from pseudolite_nav.utils.logging import get_logger
from pseudolite_nav.utils.wgs84 import ecef_to_lla

LOGGER = get_logger(__name__)

PRIMING_BATCH = "first useful batch primes the pipeline"
NO_USABLE_MEASUREMENTS = "no usable measurements"


@dataclass(frozen=True)
class PositionResult:
    """Conventional fix for one batch; ``position`` is [x, y, z, bias] in ECEF metres."""

    position: np.ndarray
    status: str
    reason: str = ""
    gps_time: GpsTime | None = None
    prns: tuple[int, ...] = ()
    dop: DopMetrics | None = None
    iterations: int = 0

    @property
    def is_valid(self) -> bool:
        return bool(np.all(np.isfinite(self.position)))

    @property
    def lla(self) -> tuple[float, float, float]:
        if not self.is_valid:
            return float("nan"), float("nan"), float("nan")
        return ecef_to_lla(*self.position[:3])


@dataclass(frozen=True)
class PseudoliteResult:
    """Indoor fix for one batch with the diagnostic series of every slot."""

    position_xyz: np.ndarray
    status: str
    reason: str = ""
    gps_time: GpsTime | None = None
    channel_prns: tuple[int, ...] = ()
    rejected: tuple[dict[str, Any], ...] = ()
    diagnostics: DiagnosticsSnapshot = field(default_factory=DiagnosticsSnapshot.empty)
    iterations: int = 0
    residual_history: tuple[float, ...] = ()

    @property
    def is_valid(self) -> bool:
        return bool(np.all(np.isfinite(self.position_xyz)))


def _slot_values(measurements: list[PseudorangeMeasurement | None], attr: str) -> np.ndarray:
    values = np.full(MAX_NUMBER_OF_SATELLITES, np.nan)
    for idx, meas in enumerate(measurements):
        if meas is not None:
            values[idx] = getattr(meas, attr)
    return values


class _RawEventsBase:
    def __init__(self, config: SolverConfig | None, selector: EphemerisSourceSelector | None) -> None:
        self.config = config or SolverConfig()
        self.selector = selector or EphemerisSourceSelector(refresh_s=self.config.supl_refresh_s)
        self.state = SolverStateMachine()
        self._awaiting_first_batch = self.config.skip_first_batch

    def reset(self) -> None:
        self._awaiting_first_batch = self.config.skip_first_batch

    def _consume_priming_batch(self) -> bool:
        if self._awaiting_first_batch:
            self._awaiting_first_batch = False
            LOGGER.debug("Priming batch received; solving starts with the next one")
            return True
        return False

    def _filter(self, batch: MeasurementBatch) -> EpochMeasurements:
        return filter_gps_measurements(batch, self.config.cn0_threshold_dbhz)

    def _nav_for(self, prns: list[int], minimum: int | None) -> tuple[NavMessage | None, str]:
        selection = self.selector.select(prns, minimum)
        if selection.nav is None:
            LOGGER.warning("No navigation data: %s", selection.reason)
        return selection.nav, selection.reason


class PositionFromRawEvents(_RawEventsBase):
    """Conventional receiver pipeline: raw batch in, ECEF fix out."""

    def __init__(
        self,
        config: SolverConfig | None = None,
        selector: EphemerisSourceSelector | None = None,
        smoother: PseudorangeSmoother | None = None,
        elevation_provider: ElevationProvider | None = None,
    ) -> None:
        super().__init__(config, selector)
        self.solver = UserPositionLeastSquares(self.config, smoother, elevation_provider)
        self._last_position: np.ndarray | None = None
        self.state.mark_ready("solver_configured")

    def reset(self) -> None:
        super().reset()
        self.solver.smoother.reset()
        self._last_position = None

    def compute_position(self, batch: MeasurementBatch) -> PositionResult:
        self.state.begin_epoch()
        try:
            result = self._compute(batch)
        except Exception:
            self.state.finish_epoch(EpochOutcome.FAILED, "exception")
            raise
        outcome = EpochOutcome.SOLVED if result.is_valid else EpochOutcome.NO_SOLUTION
        self.state.finish_epoch(outcome, result.reason)
        return result

    def _no_result(self, reason: str, gps_time: GpsTime | None = None) -> PositionResult:
        return PositionResult(
            position=nan_position(4),
            status=format_lla_message(nan_position(3)),
            reason=reason,
            gps_time=gps_time,
        )

    def _compute(self, batch: MeasurementBatch) -> PositionResult:
        epoch = self._filter(batch)
        useful = epoch.useful_prns
        if not useful:
            return self._no_result(NO_USABLE_MEASUREMENTS, epoch.gps_time)

        nav, reason = self._nav_for(useful, self.config.min_satellites)
        if nav is None:
            return self._no_result(reason, epoch.gps_time)

        with_ephemeris = [prn for prn in useful if nav.contains(prn)]
        dropped = sorted(set(useful) - set(with_ephemeris))
        if dropped:
            LOGGER.debug("Dropping PRNs without ephemeris: %s", dropped)
        epoch = epoch.keep_only(with_ephemeris)
        smoothed = self.solver.smooth(epoch_pseudoranges(epoch))

        if len(with_ephemeris) < self.config.min_satellites:
            exc = InsufficientSatellitesError(len(with_ephemeris), self.config.min_satellites)
            LOGGER.warning("%s", exc)
            return self._no_result(exc.reason, epoch.gps_time)
        if self._consume_priming_batch():
            return self._no_result(PRIMING_BATCH, epoch.gps_time)

        seed = self._last_position
        try:
            solution = self.solver.solve(nav, smoothed, epoch.tow_s, epoch.week, epoch.day_of_year, seed)
        except PositioningError as exc:
            LOGGER.warning("No position for this batch: %s", exc)
            return self._no_result(str(exc), epoch.gps_time)

        self._last_position = solution.position.copy()
        status = format_lla_message(ecef_to_lla(*solution.pos_ecef_m))
        LOGGER.info("%s", status)
        return PositionResult(
            position=solution.position.copy(),
            status=status,
            gps_time=epoch.gps_time,
            prns=solution.geometry.prns,
            dop=solution.dop,
            iterations=solution.iterations,
        )


class PseudolitePositionFromRawEvents(_RawEventsBase):
    """Indoor pipeline: select satellites, solve both stages, track diagnostics."""

    def __init__(
        self,
        pseudolite_config: PseudoliteConfig,
        config: SolverConfig | None = None,
        selector: EphemerisSourceSelector | None = None,
        smoother: PseudorangeSmoother | None = None,
        elevation_provider: ElevationProvider | None = None,
    ) -> None:
        super().__init__(config, selector)
        self.pseudolite_config = pseudolite_config
        self.solver = PseudolitePositionSolver(pseudolite_config, self.config, smoother, elevation_provider)
        self.diagnostics = PseudoliteDiagnostics()
        self._last_xyz: np.ndarray | None = None
        self.state.mark_ready("pseudolite_config_loaded")

    def reset(self) -> None:
        super().reset()
        self.solver.stage1.smoother.reset()
        self.diagnostics.reset()
        self._last_xyz = None

    def compute_position(self, batch: MeasurementBatch) -> PseudoliteResult:
        self.state.begin_epoch()
        try:
            result = self._compute(batch)
        except Exception:
            self.state.finish_epoch(EpochOutcome.FAILED, "exception")
            raise
        outcome = EpochOutcome.SOLVED if result.is_valid else EpochOutcome.NO_SOLUTION
        self.state.finish_epoch(outcome, result.reason)
        return result

    def _no_result(
        self,
        reason: str,
        gps_time: GpsTime,
        rejected: tuple[dict[str, Any], ...],
        channel_prns: tuple[int, ...] = (),
        diagnostics: DiagnosticsSnapshot | None = None,
    ) -> PseudoliteResult:
        return PseudoliteResult(
            position_xyz=nan_position(3),
            status=format_position_message(nan_position(3)),
            reason=reason,
            gps_time=gps_time,
            channel_prns=channel_prns,
            rejected=rejected,
            diagnostics=diagnostics if diagnostics is not None else DiagnosticsSnapshot.empty(),
        )

    def _compute(self, batch: MeasurementBatch) -> PseudoliteResult:
        epoch = self._filter(batch)
        t_s = epoch.gps_time.nanos_since_gps_epoch / NANOS_PER_SECOND
        required = self.pseudolite_config.num_pseudolites
        selection = select_pseudolite_satellites(
            epoch.cn0_by_prn(), required, self.config.selection, self.pseudolite_config.satellite_ids
        )
        gps_time, rejected = epoch.gps_time, selection.rejected
        if not selection.complete:
            LOGGER.warning("%s: %d of %d satellites", INCOMPLETE_PSEUDOLITE_SET, len(selection.selected), required)
            return self._no_result(INCOMPLETE_PSEUDOLITE_SET, gps_time, rejected)

        channel_prns = selection.selected
        nav, reason = self._nav_for(list(channel_prns), None)
        if nav is None:
            return self._no_result(reason, gps_time, rejected, channel_prns)
        missing = [prn for prn in channel_prns if not nav.contains(prn)]
        if missing:
            for prn in missing:
                LOGGER.warning("%s", MissingEphemerisError(prn))
            return self._no_result(str(MissingEphemerisError(missing[0])), gps_time, rejected, channel_prns)

        epoch = epoch.keep_only(channel_prns)
        smoothed = self.solver.smooth(epoch_pseudoranges(epoch))
        raw = _slot_values(smoothed, "pseudorange_m")
        cn0 = _slot_values(smoothed, "cn0_dbhz")
        nan_slots = np.full(MAX_NUMBER_OF_SATELLITES, np.nan)

        if self._consume_priming_batch():
            snapshot = self.diagnostics.update(raw, nan_slots, nan_slots, cn0, t_s)
            return self._no_result(PRIMING_BATCH, gps_time, rejected, channel_prns, snapshot)

        try:
            solved = self.solver.solve(
                nav, smoothed, epoch.tow_s, epoch.week, epoch.day_of_year, channel_prns, self._last_xyz
            )
        except PositioningError as exc:
            LOGGER.warning("No pseudolite position for this batch: %s", exc)
            snapshot = self.diagnostics.update(raw, nan_slots, nan_slots, cn0, t_s)
            return self._no_result(str(exc), gps_time, rejected, channel_prns, snapshot)

        snapshot = self.diagnostics.update(raw, solved.antenna_to_sat_m, solved.antenna_to_user_m, cn0, t_s)
        status = format_position_message(solved.position_xyz)
        if solved.is_valid:
            self._last_xyz = solved.position_xyz.copy()
            LOGGER.info("%s", status)
            reason = ""
        else:
            reason = "damped least squares did not converge"
        return PseudoliteResult(
            position_xyz=solved.position_xyz,
            status=status,
            reason=reason,
            diagnostics=snapshot,
            iterations=solved.damped.iterations,
            residual_history=solved.damped.residual_history,
            gps_time=gps_time,
            channel_prns=channel_prns,
            rejected=rejected,
        )
