"""Per-slot pseudorange diagnostic series."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from pseudolite_nav.models import MAX_NUMBER_OF_SATELLITES

Series = tuple[float, ...]


def _nan_slots() -> np.ndarray:
    return np.full(MAX_NUMBER_OF_SATELLITES, np.nan)


class SeriesTracker:
    """Tracks value, change since first seen and rate for 32 slots.

    First-seen and previous values persist across batches, so a slot that
    drops out for a while resumes its change series from the same origin.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._first = _nan_slots()
        self._previous = _nan_slots()
        self._previous_t = _nan_slots()

    def update(self, values: np.ndarray, t_s: float) -> tuple[Series, Series, Series]:
        current = np.asarray(values, dtype=float).reshape(MAX_NUMBER_OF_SATELLITES)
        seen = np.isfinite(current)
        new = seen & np.isnan(self._first)
        self._first[new] = current[new]

        change = np.where(seen, current - self._first, np.nan)
        dt = t_s - self._previous_t
        with np.errstate(invalid="ignore", divide="ignore"):
            rate = np.where(seen & np.isfinite(self._previous) & (dt > 0.0), (current - self._previous) / dt, np.nan)

        self._previous[seen] = current[seen]
        self._previous_t[seen] = t_s
        return tuple(current.tolist()), tuple(change.tolist()), tuple(rate.tolist())


@dataclass(frozen=True)
class DiagnosticsSnapshot:
    raw: Series
    raw_change: Series
    raw_rate: Series
    antenna_to_sat: Series
    antenna_to_sat_change: Series
    antenna_to_sat_rate: Series
    antenna_to_user: Series
    antenna_to_user_change: Series
    antenna_to_user_rate: Series
    cn0_dbhz: Series

    @classmethod
    def empty(cls) -> DiagnosticsSnapshot:
        nan = tuple(_nan_slots().tolist())
        return cls(*([nan] * 10))

    def as_dict(self) -> dict[str, Series]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


class PseudoliteDiagnostics:
    """Raw, antenna-to-satellite and antenna-to-user series for one session."""

    def __init__(self) -> None:
        self.raw = SeriesTracker()
        self.antenna_to_sat = SeriesTracker()
        self.antenna_to_user = SeriesTracker()

    def reset(self) -> None:
        self.raw.reset()
        self.antenna_to_sat.reset()
        self.antenna_to_user.reset()

    def update(
        self,
        raw_m: np.ndarray,
        antenna_to_sat_m: np.ndarray,
        antenna_to_user_m: np.ndarray,
        cn0_dbhz: np.ndarray,
        t_s: float,
    ) -> DiagnosticsSnapshot:
        raw = self.raw.update(raw_m, t_s)
        to_sat = self.antenna_to_sat.update(antenna_to_sat_m, t_s)
        to_user = self.antenna_to_user.update(antenna_to_user_m, t_s)
        return DiagnosticsSnapshot(
            *raw,
            *to_sat,
            *to_user,
            cn0_dbhz=tuple(np.asarray(cn0_dbhz, dtype=float).reshape(MAX_NUMBER_OF_SATELLITES).tolist()),
        )
