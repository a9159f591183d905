"""Satellite-to-pseudolite channel selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from pseudolite_nav.config import SelectionPolicy


@dataclass(frozen=True)
class SelectionResult:
    """Satellites assigned to pseudolite channels, in channel order."""

    selected: tuple[int, ...]
    rejected: tuple[dict[str, Any], ...]
    required: int

    @property
    def complete(self) -> bool:
        return len(self.selected) >= self.required

    @property
    def rejected_prns(self) -> list[int]:
        return [int(meta["prn"]) for meta in self.rejected]


def _strongest(cn0_by_prn: Mapping[int, float], required: int) -> SelectionResult:
    ranked = sorted(cn0_by_prn.items(), key=lambda item: (-item[1], item[0]))
    kept = sorted(prn for prn, _ in ranked[:required])
    rejected = tuple(
        {"prn": prn, "reasons": ["weaker_than_pseudolite_set"], "cn0_dbhz": float(cn0)}
        for prn, cn0 in ranked[required:]
    )
    return SelectionResult(selected=tuple(kept), rejected=rejected, required=required)


def _configured(cn0_by_prn: Mapping[int, float], satellite_ids: Sequence[int], required: int) -> SelectionResult:
    if not satellite_ids:
        raise ValueError("configured_ids selection needs satellite IDs in the pseudolite config.")
    kept = tuple(prn for prn in satellite_ids if prn in cn0_by_prn)
    rejected: list[dict[str, Any]] = []
    for prn, cn0 in sorted(cn0_by_prn.items()):
        if prn not in satellite_ids:
            rejected.append({"prn": prn, "reasons": ["not_configured"], "cn0_dbhz": float(cn0)})
    for prn in satellite_ids:
        if prn not in cn0_by_prn:
            rejected.append({"prn": prn, "reasons": ["not_tracked"], "cn0_dbhz": float("nan")})
    return SelectionResult(selected=kept, rejected=tuple(rejected), required=required)


def select_pseudolite_satellites(
    cn0_by_prn: Mapping[int, float],
    num_pseudolites: int,
    policy: SelectionPolicy = SelectionPolicy.STRONGEST_CN0,
    satellite_ids: Sequence[int] = (),
) -> SelectionResult:
    """Pick which tracked satellites feed the pseudolite channels.

    ``STRONGEST_CN0`` keeps the ``num_pseudolites`` highest C/N0 satellites and
    orders channels by ascending PRN. ``CONFIGURED_IDS`` keeps the configured
    satellite IDs in configuration order.
    """

    if policy is SelectionPolicy.CONFIGURED_IDS:
        return _configured(cn0_by_prn, satellite_ids, num_pseudolites)
    return _strongest(cn0_by_prn, num_pseudolites)
