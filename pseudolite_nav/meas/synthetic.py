"""Synthetic raw measurement batches for conventional and pseudolite scenarios."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Mapping

import numpy as np

from pseudolite_nav.config import PseudoliteConfig, SelectionPolicy, SolverConfig
from pseudolite_nav.meas.pseudorange import (
    LIGHT_SPEED_MPS,
    SECONDS_PER_NANO,
    TOW_DECODED_STATE_BIT,
    VALID_ACCUMULATED_DELTA_RANGE_STATE,
)
from pseudolite_nav.meas.smoothing import NoSmoothing
from pseudolite_nav.models import (
    Constellation,
    GnssClock,
    MeasurementBatch,
    NavMessage,
    RawMeasurement,
)
from pseudolite_nav.receiver.wls_pvt import UserPositionLeastSquares, corrected_transmit_time
from pseudolite_nav.sat.ephemeris import satellite_position_velocity
from pseudolite_nav.utils.gps_time import NANOS_IN_WEEK, NANOS_PER_SECOND, GpsTime
from pseudolite_nav.utils.wgs84 import lla_to_ecef

_INITIAL_TRAVEL_S = 0.075
_FIXED_POINT_ITERATIONS = 10
_FIXED_POINT_TOLERANCE_M = 1.0e-7
_RECEIVER_TIME_NANOS = NANOS_PER_SECOND
_RATE_HALF_STEP_S = 0.5


@dataclass
class SyntheticMeasurementSource:
    """Generate raw receiver batches that reproduce a known truth.

    In conventional mode the receiver sits at ``receiver_ecef_m``. With a
    ``pseudolite_config`` the satellites are received at the outdoor antenna
    and each one is rebroadcast by an indoor antenna towards the user at
    ``indoor_position_xyz``.
    """

    nav: NavMessage
    receiver_ecef_m: np.ndarray
    week: int
    start_tow_s: float = 1000.0
    interval_s: float = 1.0
    clock_bias_m: float = 0.0
    prns: tuple[int, ...] = ()
    cn0_dbhz: Mapping[int, float] = field(default_factory=dict)
    default_cn0_dbhz: float = 45.0
    solver_config: SolverConfig = field(default_factory=SolverConfig)
    pseudolite_config: PseudoliteConfig | None = None
    indoor_position_xyz: np.ndarray | None = None
    indoor_bias_m: float = 0.0
    noise_sigma_m: float = 0.0
    rng: np.random.Generator = field(default_factory=lambda: np.random.default_rng(0))

    _model: UserPositionLeastSquares = field(init=False)
    _epoch: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.receiver_ecef_m = np.asarray(self.receiver_ecef_m, dtype=float)[:3]
        if not self.prns:
            self.prns = tuple(self.nav.prns)
        self._model = UserPositionLeastSquares(self.solver_config, smoother=NoSmoothing())
        if self.pseudolite_config is not None:
            if self.indoor_position_xyz is None:
                self.indoor_position_xyz = np.zeros(3)
            self.indoor_position_xyz = np.asarray(self.indoor_position_xyz, dtype=float)[:3]
            if len(self.channel_prns) < self.pseudolite_config.num_pseudolites:
                raise ValueError("Not enough satellites to feed every pseudolite channel.")

    @property
    def antenna_ecef_m(self) -> np.ndarray:
        if self.pseudolite_config is None:
            return self.receiver_ecef_m
        return lla_to_ecef(*self.pseudolite_config.outdoor_antenna_lla)

    @property
    def channel_prns(self) -> tuple[int, ...]:
        """Satellite rebroadcast on each pseudolite channel, in channel order."""

        if self.pseudolite_config is None:
            return ()
        count = self.pseudolite_config.num_pseudolites
        if self.solver_config.selection is SelectionPolicy.CONFIGURED_IDS:
            return tuple(self.pseudolite_config.satellite_ids[:count])
        return tuple(sorted(self.prns)[:count])

    def tow_at(self, epoch: int) -> float:
        return self.start_tow_s + epoch * self.interval_s

    def satellite_pseudorange_m(self, prn: int, tow_rx_s: float, user_ecef_m: np.ndarray | None = None) -> float:
        """Noise-free pseudorange from one satellite, matching the solver model.

        Transmit time and pseudorange depend on each other, so the pair is
        iterated to a fixed point.
        """

        eph = self.nav.ephemeris(prn)
        if eph is None:
            raise KeyError(prn)
        user = self.antenna_ecef_m if user_ecef_m is None else np.asarray(user_ecef_m, dtype=float)[:3]
        tow_true = tow_rx_s - self.clock_bias_m / LIGHT_SPEED_MPS
        day_of_year = GpsTime.from_week_and_tow(self.week, tow_rx_s).day_of_year
        pseudorange = _INITIAL_TRAVEL_S * LIGHT_SPEED_MPS
        for _ in range(_FIXED_POINT_ITERATIONS):
            transmit = corrected_transmit_time(eph, tow_true, self.week, pseudorange)
            sat = satellite_position_velocity(eph, transmit[0], transmit[1], user).pos_ecef_m
            updated = self._model.predicted_pseudorange_m(
                eph,
                sat,
                user,
                self.clock_bias_m,
                transmit,
                self.nav.iono,
                day_of_year,
                self.solver_config.apply_atmospheric_corrections,
            )
            change = abs(updated - pseudorange)
            pseudorange = updated
            if change < _FIXED_POINT_TOLERANCE_M:
                break
        return pseudorange

    def pseudolite_pseudorange_m(self, channel: int, tow_rx_s: float) -> float:
        """Range seen indoors on one pseudolite channel."""

        config = self.pseudolite_config
        if config is None or self.indoor_position_xyz is None:
            raise ValueError("pseudolite ranges need a pseudolite configuration")
        prn = self.channel_prns[channel]
        antenna = config.indoor_antennas_array[channel]
        delay_m = 0.0
        if self.solver_config.apply_channel_delays and config.channel_delays_ns:
            delay_m = config.channel_delays_ns[channel] * SECONDS_PER_NANO * LIGHT_SPEED_MPS
        return (
            self.satellite_pseudorange_m(prn, tow_rx_s)
            + config.outdoor_to_indoor_range_m[channel]
            + float(np.linalg.norm(self.indoor_position_xyz - antenna))
            + self.indoor_bias_m
            + delay_m
        )

    def pseudoranges_m(self, tow_rx_s: float) -> dict[int, float]:
        """Noise-free pseudoranges keyed by PRN."""

        if self.pseudolite_config is None:
            return {prn: self.satellite_pseudorange_m(prn, tow_rx_s) for prn in self.prns}
        return {prn: self.pseudolite_pseudorange_m(ch, tow_rx_s) for ch, prn in enumerate(self.channel_prns)}

    def make_batch(self, tow_rx_s: float) -> MeasurementBatch:
        """Raw batch whose fields reproduce the generated pseudoranges."""

        arrival_week_ns = int(round(tow_rx_s * NANOS_PER_SECOND))
        arrival_gps_ns = self.week * NANOS_IN_WEEK + arrival_week_ns
        ranges = self.pseudoranges_m(tow_rx_s)
        before = self.pseudoranges_m(tow_rx_s - _RATE_HALF_STEP_S)
        after = self.pseudoranges_m(tow_rx_s + _RATE_HALF_STEP_S)
        state = (1 << TOW_DECODED_STATE_BIT) | 1
        raws: list[RawMeasurement] = []
        for prn, pseudorange in ranges.items():
            carrier = pseudorange
            if self.noise_sigma_m > 0.0:
                pseudorange += float(self.rng.normal(0.0, self.noise_sigma_m))
            travel_ns = pseudorange / LIGHT_SPEED_MPS * NANOS_PER_SECOND
            transmit_ns = arrival_week_ns - travel_ns
            tow_ns = int(np.floor(transmit_ns))
            offset_ns = float(transmit_ns - tow_ns)
            raws.append(
                RawMeasurement(
                    svid=prn,
                    cn0_dbhz=float(self.cn0_dbhz.get(prn, self.default_cn0_dbhz)),
                    state=state,
                    received_sv_time_nanos=tow_ns % NANOS_IN_WEEK,
                    constellation=Constellation.GPS,
                    time_offset_nanos=offset_ns,
                    accumulated_delta_range_m=carrier,
                    accumulated_delta_range_state=VALID_ACCUMULATED_DELTA_RANGE_STATE,
                    accumulated_delta_range_uncertainty_m=0.002,
                    pseudorange_rate_mps=(after[prn] - before[prn]) / (2.0 * _RATE_HALF_STEP_S),
                    pseudorange_rate_uncertainty_mps=0.05,
                )
            )
        clock = GnssClock(
            time_nanos=_RECEIVER_TIME_NANOS,
            full_bias_nanos=_RECEIVER_TIME_NANOS - arrival_gps_ns,
            bias_nanos=0.0,
        )
        return MeasurementBatch(clock=clock, measurements=tuple(raws))

    def next_batch(self) -> MeasurementBatch:
        batch = self.make_batch(self.tow_at(self._epoch))
        self._epoch += 1
        return batch

    def batches(self, count: int) -> Iterator[MeasurementBatch]:
        for _ in range(count):
            yield self.next_batch()
