"""Navigation data sources: hardware store, file, SUPL, and the choice between them."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from pseudolite_nav.models import GpsEphemeris, IonoParams, NavMessage, SuplClient
from pseudolite_nav.utils.logging import get_logger

LOGGER = get_logger(__name__)


class NavSource(Enum):
    FILE = "file"
    HARDWARE = "hardware"
    SUPL = "supl"


class NavMessageStore:
    """Accumulates ephemerides and iono parameters decoded by the receiver."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ephemerides: dict[int, GpsEphemeris] = {}
        self._iono: IonoParams | None = None

    def update_ephemeris(self, eph: GpsEphemeris) -> None:
        with self._lock:
            previous = self._ephemerides.get(eph.prn)
            self._ephemerides[eph.prn] = eph
        if previous is None or previous.iode != eph.iode:
            LOGGER.debug("Hardware ephemeris for PRN %d (IODE %d)", eph.prn, eph.iode)

    def update_iono(self, iono: IonoParams) -> None:
        with self._lock:
            self._iono = iono

    def clear(self) -> None:
        with self._lock:
            self._ephemerides.clear()
            self._iono = None

    def snapshot(self) -> NavMessage:
        with self._lock:
            return NavMessage(ephemerides=dict(self._ephemerides), iono=self._iono)


@dataclass(frozen=True)
class ReferenceLocation:
    """Rough receiver location in 1e-7 degrees used for assistance requests."""

    lat_e7: int
    lng_e7: int
    alt_e7: int = 0


@dataclass(frozen=True)
class NavSelection:
    """Navigation data chosen for one epoch; ``nav`` is None when nothing is usable."""

    nav: NavMessage | None
    source: NavSource | None
    reason: str = ""


def hardware_covers(nav: NavMessage, prns: Iterable[int], minimum: int | None = None) -> bool:
    """Whether hardware data has iono parameters and enough of ``prns``.

    With ``minimum`` None every PRN must be covered.
    """

    if nav.iono is None or not nav.ephemerides:
        return False
    wanted = list(prns)
    covered = sum(1 for prn in wanted if nav.contains(prn))
    if minimum is None:
        return covered == len(wanted)
    return covered >= minimum


class EphemerisSourceSelector:
    """Chooses file, hardware or SUPL navigation data for each epoch.

    A loaded file always wins. Otherwise the hardware store is used when it
    covers the tracked satellites, and SUPL is the fallback. SUPL answers are
    cached and re-requested after ``refresh_s`` seconds.
    """

    def __init__(
        self,
        hardware: NavMessageStore | None = None,
        supl_client: SuplClient | None = None,
        file_nav: NavMessage | None = None,
        refresh_s: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.hardware = hardware or NavMessageStore()
        self.supl_client = supl_client
        self.refresh_s = refresh_s
        self._clock = clock
        self._lock = threading.Lock()
        self._file_nav = file_nav
        self._reference: ReferenceLocation | None = None
        self._supl_nav: NavMessage | None = None
        self._supl_fetched_at: float | None = None
        self._last_source: NavSource | None = None

    @property
    def file_nav(self) -> NavMessage | None:
        return self._file_nav

    def set_file_nav(self, nav: NavMessage | None) -> None:
        with self._lock:
            self._file_nav = nav

    @property
    def reference_location(self) -> ReferenceLocation | None:
        return self._reference

    def set_reference_location(self, lat_e7: int, lng_e7: int, alt_e7: int = 0) -> None:
        with self._lock:
            self._reference = ReferenceLocation(int(lat_e7), int(lng_e7), int(alt_e7))

    def _fetch_supl(self) -> NavMessage | None:
        if self._reference is None:
            return None
        now = self._clock()
        stale = self._supl_fetched_at is None or now - self._supl_fetched_at >= self.refresh_s
        if self._supl_nav is None or stale:
            if self.supl_client is None:
                return None
            LOGGER.info(
                "Requesting SUPL navigation data at (%d, %d)e-7 deg",
                self._reference.lat_e7,
                self._reference.lng_e7,
            )
            self._supl_nav = self.supl_client.fetch_nav_message(self._reference.lat_e7, self._reference.lng_e7)
            self._supl_fetched_at = now
        return self._supl_nav

    def select(self, prns: Iterable[int], minimum: int | None = None) -> NavSelection:
        """Pick navigation data for the tracked ``prns``.

        ``minimum`` is the number of PRNs the hardware store must cover; None
        means all of them.
        """

        wanted = list(prns)
        with self._lock:
            if self._file_nav is not None:
                selection = NavSelection(self._file_nav, NavSource.FILE)
            else:
                hardware_nav = self.hardware.snapshot()
                if hardware_covers(hardware_nav, wanted, minimum):
                    selection = NavSelection(hardware_nav, NavSource.HARDWARE)
                elif self._reference is None:
                    selection = NavSelection(None, None, "no reference location for SUPL request")
                else:
                    supl_nav = self._fetch_supl()
                    if supl_nav is None:
                        selection = NavSelection(None, None, "no SUPL client configured")
                    else:
                        selection = NavSelection(supl_nav, NavSource.SUPL)
            if selection.source is not None and selection.source != self._last_source:
                LOGGER.info("Using navigation data from %s", selection.source.value)
                self._last_source = selection.source
        return selection
