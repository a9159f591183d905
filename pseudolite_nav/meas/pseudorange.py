"""Raw receiver fields to pseudoranges and their uncertainties."""

from __future__ import annotations

from dataclasses import dataclass, fields

import numpy as np

from pseudolite_nav.models import (
    MAX_NUMBER_OF_SATELLITES,
    Constellation,
    GpsMeasurement,
    MeasurementBatch,
    PseudorangeMeasurement,
    RawMeasurement,
)
from pseudolite_nav.utils.gps_time import NANOS_PER_SECOND, SECONDS_IN_WEEK, GpsTime

LIGHT_SPEED_MPS = 299_792_458.0
SECONDS_PER_NANO = 1.0e-9

CN0_THRESHOLD_DBHZ = 18.0
TOW_DECODED_STATE_BIT = 3
VALID_ACCUMULATED_DELTA_RANGE_STATE = 1

GPS_CHIP_WIDTH_S = 1.0e-6
GPS_CORRELATOR_SPACING_CHIPS = 0.1
GPS_DLL_AVERAGING_TIME_S = 20.0e-3


@dataclass(frozen=True)
class EpochMeasurements:
    """A batch reduced to the 32-slot GPS layout, indexed by PRN - 1."""

    gps_time: GpsTime
    measurements: tuple[GpsMeasurement | None, ...]
    received_tow_ns: tuple[int | None, ...]
    bias_nanos: float = 0.0

    @property
    def week(self) -> int:
        return self.gps_time.week

    @property
    def arrival_since_week_ns(self) -> int:
        return self.gps_time.nanos_of_week

    @property
    def tow_s(self) -> float:
        return self.gps_time.tow_s

    @property
    def day_of_year(self) -> int:
        return self.gps_time.day_of_year

    @property
    def useful_prns(self) -> list[int]:
        return [idx + 1 for idx, meas in enumerate(self.measurements) if meas is not None]

    def cn0_by_prn(self) -> dict[int, float]:
        return {idx + 1: meas.cn0_dbhz for idx, meas in enumerate(self.measurements) if meas is not None}

    def keep_only(self, prns: set[int] | list[int]) -> EpochMeasurements:
        """Return a copy with every slot outside ``prns`` cleared."""

        keep = set(prns)
        meas = tuple(m if idx + 1 in keep else None for idx, m in enumerate(self.measurements))
        tows = tuple(t if idx + 1 in keep else None for idx, t in enumerate(self.received_tow_ns))
        return EpochMeasurements(
            gps_time=self.gps_time,
            measurements=meas,
            received_tow_ns=tows,
            bias_nanos=self.bias_nanos,
        )


def is_usable_measurement(raw: RawMeasurement, cn0_threshold_dbhz: float = CN0_THRESHOLD_DBHZ) -> bool:
    """GPS only, strong enough, and with a decoded time of week."""

    if raw.constellation != Constellation.GPS:
        return False
    if not 1 <= raw.svid <= MAX_NUMBER_OF_SATELLITES:
        return False
    if raw.cn0_dbhz < cn0_threshold_dbhz:
        return False
    return bool(raw.state & (1 << TOW_DECODED_STATE_BIT))


def filter_gps_measurements(
    batch: MeasurementBatch,
    cn0_threshold_dbhz: float = CN0_THRESHOLD_DBHZ,
) -> EpochMeasurements:
    """Keep usable GPS measurements of a batch in PRN slots."""

    gps_time = GpsTime.from_gps_epoch_nanos(batch.clock.arrival_since_gps_epoch_nanos)
    arrival_since_week_ns = gps_time.nanos_of_week
    slots: list[GpsMeasurement | None] = [None] * MAX_NUMBER_OF_SATELLITES
    tows: list[int | None] = [None] * MAX_NUMBER_OF_SATELLITES
    for raw in batch.measurements:
        if not is_usable_measurement(raw, cn0_threshold_dbhz):
            continue
        slot = raw.svid - 1
        tows[slot] = int(raw.received_sv_time_nanos)
        slots[slot] = GpsMeasurement(
            arrival_time_since_gps_week_ns=arrival_since_week_ns,
            accumulated_delta_range_m=raw.accumulated_delta_range_m,
            accumulated_delta_range_valid=raw.accumulated_delta_range_state == VALID_ACCUMULATED_DELTA_RANGE_STATE,
            pseudorange_rate_mps=raw.pseudorange_rate_mps,
            cn0_dbhz=raw.cn0_dbhz,
            accumulated_delta_range_uncertainty_m=raw.accumulated_delta_range_uncertainty_m,
            pseudorange_rate_uncertainty_mps=raw.pseudorange_rate_uncertainty_mps,
            time_offset_nanos=raw.time_offset_nanos,
        )
    return EpochMeasurements(
        gps_time=gps_time,
        measurements=tuple(slots),
        received_tow_ns=tuple(tows),
        bias_nanos=float(batch.clock.bias_nanos),
    )


def pseudorange_uncertainty_m(cn0_dbhz: float) -> float:
    """DLL tracking noise of a GPS C/A code pseudorange for a given C/N0."""

    snr_linear = 10.0 ** (cn0_dbhz / 10.0)
    return float(
        LIGHT_SPEED_MPS
        * GPS_CHIP_WIDTH_S
        * np.sqrt(GPS_CORRELATOR_SPACING_CHIPS / (4.0 * GPS_DLL_AVERAGING_TIME_S * snr_linear))
    )


def with_pseudorange(meas: GpsMeasurement, pseudorange_m: float, uncertainty_m: float) -> PseudorangeMeasurement:
    values = {f.name: getattr(meas, f.name) for f in fields(GpsMeasurement)}
    return PseudorangeMeasurement(**values, pseudorange_m=pseudorange_m, pseudorange_uncertainty_m=uncertainty_m)


def compute_pseudorange_and_uncertainties(
    measurements: tuple[GpsMeasurement | None, ...] | list[GpsMeasurement | None],
    received_tow_ns: tuple[int | None, ...] | list[int | None],
    bias_nanos: float,
) -> list[PseudorangeMeasurement | None]:
    """Pseudoranges by the common reception time method.

    The reception time is the arrival time within the week corrected by the
    per-measurement time offset and the receiver sub-nanosecond bias. A
    transmit time in the other week (either side of the rollover) is handled by
    removing whole weeks.
    """

    result: list[PseudorangeMeasurement | None] = [None] * MAX_NUMBER_OF_SATELLITES
    for idx, (meas, tow_ns) in enumerate(zip(measurements, received_tow_ns)):
        if meas is None or tow_ns is None:
            continue
        t_rx_s = (meas.arrival_time_since_gps_week_ns - meas.time_offset_nanos - bias_nanos) * SECONDS_PER_NANO
        t_tx_s = tow_ns / NANOS_PER_SECOND
        pr_s = t_rx_s - t_tx_s
        if abs(pr_s) > SECONDS_IN_WEEK / 2:
            pr_s -= round(pr_s / SECONDS_IN_WEEK) * SECONDS_IN_WEEK
        result[idx] = with_pseudorange(meas, pr_s * LIGHT_SPEED_MPS, pseudorange_uncertainty_m(meas.cn0_dbhz))
    return result


def epoch_pseudoranges(epoch: EpochMeasurements) -> list[PseudorangeMeasurement | None]:
    return compute_pseudorange_and_uncertainties(epoch.measurements, epoch.received_tow_ns, epoch.bias_nanos)
