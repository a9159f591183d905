"""Pseudorange smoothing strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import replace

from pseudolite_nav.config import SmoothingMode, SolverConfig
from pseudolite_nav.models import PseudorangeMeasurement
from pseudolite_nav.utils.logging import get_logger

LOGGER = get_logger(__name__)

Slots = list[PseudorangeMeasurement | None]


class PseudorangeSmoother(ABC):
    """Takes one epoch of 32 pseudorange slots and returns the smoothed slots."""

    @abstractmethod
    def update(self, measurements: Slots) -> Slots:
        """Return a new list; the input list is never modified."""

    def reset(self) -> None:
        """Forget all per-satellite history."""


class NoSmoothing(PseudorangeSmoother):
    def update(self, measurements: Slots) -> Slots:
        return list(measurements)


class _HatchSmoother(PseudorangeSmoother):
    """Hatch filter over a sliding window with gap and jump resets."""

    def __init__(self, window: int = 100, max_gap_s: float = 1.0, slip_threshold_m: float = 10.0) -> None:
        self.window = window
        self.max_gap_s = max_gap_s
        self.slip_threshold_m = slip_threshold_m
        self._count: dict[int, int] = {}
        self._smoothed: dict[int, float] = {}
        self._last_t_s: dict[int, float] = {}
        self._last_meas: dict[int, PseudorangeMeasurement] = {}

    def reset(self) -> None:
        self._count.clear()
        self._smoothed.clear()
        self._last_t_s.clear()
        self._last_meas.clear()

    @abstractmethod
    def _propagation_m(self, prev: PseudorangeMeasurement, curr: PseudorangeMeasurement, dt_s: float) -> float | None:
        """Range change since the previous epoch, or None when it cannot be used."""

    def _smooth_one(self, slot: int, meas: PseudorangeMeasurement) -> float:
        t_s = meas.arrival_time_since_gps_week_ns * 1e-9
        raw = meas.pseudorange_m
        prev = self._last_meas.get(slot)
        dt_s = t_s - self._last_t_s[slot] if slot in self._last_t_s else None
        if prev is None or dt_s is None or dt_s <= 0.0 or dt_s > self.max_gap_s:
            self._count[slot] = 1

        propagation = None
        if self._count.get(slot, 1) > 1 and prev is not None and dt_s is not None:
            propagation = self._propagation_m(prev, meas, dt_s)
        if propagation is None:
            self._count[slot] = 1
            smoothed = raw
        else:
            predicted = self._smoothed[slot] + propagation
            if abs(raw - predicted) < self.slip_threshold_m:
                alpha = 1.0 / self._count[slot]
                smoothed = alpha * raw + (1.0 - alpha) * predicted
            else:
                LOGGER.debug("PRN %d: smoothing reset after %.2f m jump", slot + 1, raw - predicted)
                self._count[slot] = 1
                smoothed = raw

        self._count[slot] = min(self._count[slot] + 1, self.window)
        self._smoothed[slot] = smoothed
        self._last_t_s[slot] = t_s
        self._last_meas[slot] = meas
        return smoothed

    def update(self, measurements: Slots) -> Slots:
        out: Slots = []
        for slot, meas in enumerate(measurements):
            if meas is None:
                self._count.pop(slot, None)
                self._last_meas.pop(slot, None)
                self._last_t_s.pop(slot, None)
                out.append(None)
                continue
            out.append(replace(meas, pseudorange_m=self._smooth_one(slot, meas)))
        return out


class CarrierPhaseSmoother(_HatchSmoother):
    """Smooths code with the accumulated delta range (carrier phase)."""

    def _propagation_m(self, prev: PseudorangeMeasurement, curr: PseudorangeMeasurement, dt_s: float) -> float | None:
        if not (prev.accumulated_delta_range_valid and curr.accumulated_delta_range_valid):
            return None
        return curr.accumulated_delta_range_m - prev.accumulated_delta_range_m


class DopplerSmoother(_HatchSmoother):
    """Smooths code with the integrated pseudorange rate."""

    def _propagation_m(self, prev: PseudorangeMeasurement, curr: PseudorangeMeasurement, dt_s: float) -> float | None:
        return 0.5 * (prev.pseudorange_rate_mps + curr.pseudorange_rate_mps) * dt_s


def make_smoother(config: SolverConfig | None = None) -> PseudorangeSmoother:
    config = config or SolverConfig()
    kwargs = {
        "window": config.smoothing_window,
        "max_gap_s": config.smoothing_max_gap_s,
        "slip_threshold_m": config.smoothing_slip_threshold_m,
    }
    if config.smoothing is SmoothingMode.CARRIER_PHASE:
        return CarrierPhaseSmoother(**kwargs)
    if config.smoothing is SmoothingMode.DOPPLER:
        return DopplerSmoother(**kwargs)
    return NoSmoothing()
