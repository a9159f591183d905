"""GPS time conversions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

GPS_EPOCH = datetime(1980, 1, 6, tzinfo=timezone.utc)
SECONDS_IN_WEEK = 604_800
NANOS_PER_SECOND = 1_000_000_000
NANOS_IN_WEEK = SECONDS_IN_WEEK * NANOS_PER_SECOND

# GPS - UTC offset in seconds, effective from the given UTC date.
LEAP_SECONDS_HISTORY = [
    (datetime(1981, 7, 1, tzinfo=timezone.utc), 1),
    (datetime(1982, 7, 1, tzinfo=timezone.utc), 2),
    (datetime(1983, 7, 1, tzinfo=timezone.utc), 3),
    (datetime(1985, 7, 1, tzinfo=timezone.utc), 4),
    (datetime(1988, 1, 1, tzinfo=timezone.utc), 5),
    (datetime(1990, 1, 1, tzinfo=timezone.utc), 6),
    (datetime(1991, 1, 1, tzinfo=timezone.utc), 7),
    (datetime(1992, 7, 1, tzinfo=timezone.utc), 8),
    (datetime(1993, 7, 1, tzinfo=timezone.utc), 9),
    (datetime(1994, 7, 1, tzinfo=timezone.utc), 10),
    (datetime(1996, 1, 1, tzinfo=timezone.utc), 11),
    (datetime(1997, 7, 1, tzinfo=timezone.utc), 12),
    (datetime(1999, 1, 1, tzinfo=timezone.utc), 13),
    (datetime(2006, 1, 1, tzinfo=timezone.utc), 14),
    (datetime(2009, 1, 1, tzinfo=timezone.utc), 15),
    (datetime(2012, 7, 1, tzinfo=timezone.utc), 16),
    (datetime(2015, 7, 1, tzinfo=timezone.utc), 17),
    (datetime(2017, 1, 1, tzinfo=timezone.utc), 18),
]


def leap_seconds_at_utc(utc: datetime) -> int:
    """Return the GPS - UTC offset in whole seconds at a UTC instant."""

    if utc.tzinfo is None:
        utc = utc.replace(tzinfo=timezone.utc)
    leap = 0
    for effective, seconds in LEAP_SECONDS_HISTORY:
        if utc >= effective:
            leap = seconds
        else:
            break
    return leap


@dataclass(frozen=True)
class GpsTime:
    """A GPS instant held as nanoseconds since the GPS epoch."""

    nanos_since_gps_epoch: int

    @classmethod
    def from_gps_epoch_nanos(cls, nanos: int) -> GpsTime:
        return cls(int(nanos))

    @classmethod
    def from_week_and_tow(cls, week: int, tow_s: float) -> GpsTime:
        return cls(int(week) * NANOS_IN_WEEK + int(round(tow_s * NANOS_PER_SECOND)))

    @classmethod
    def from_utc(cls, utc: datetime) -> GpsTime:
        if utc.tzinfo is None:
            utc = utc.replace(tzinfo=timezone.utc)
        delta = utc - GPS_EPOCH + timedelta(seconds=leap_seconds_at_utc(utc))
        nanos = (delta.days * 86_400 + delta.seconds) * NANOS_PER_SECOND + delta.microseconds * 1_000
        return cls(nanos)

    @property
    def week(self) -> int:
        return self.nanos_since_gps_epoch // NANOS_IN_WEEK

    @property
    def week_start_nanos(self) -> int:
        return self.week * NANOS_IN_WEEK

    @property
    def nanos_of_week(self) -> int:
        return self.nanos_since_gps_epoch - self.week_start_nanos

    @property
    def tow_s(self) -> float:
        return self.nanos_of_week / NANOS_PER_SECOND

    @property
    def utc(self) -> datetime:
        gps_dt = GPS_EPOCH + timedelta(microseconds=self.nanos_since_gps_epoch // 1_000)
        leap = 0
        for effective, seconds in LEAP_SECONDS_HISTORY:
            if gps_dt - timedelta(seconds=seconds) >= effective:
                leap = seconds
        return gps_dt - timedelta(seconds=leap)

    @property
    def day_of_year(self) -> int:
        """Day of year (1..366) of the UTC date."""

        return self.utc.timetuple().tm_yday


def gps_week_and_tow_from_utc(utc: datetime) -> tuple[int, float]:
    """Return (GPS week, seconds of week) for a UTC timestamp."""

    gps_time = GpsTime.from_utc(utc)
    return gps_time.week, gps_time.tow_s


def wrap_week(tow_s: float, week: int) -> tuple[float, int]:
    """Move a time of week back inside one week, adjusting the week counter by one."""

    if tow_s < 0.0:
        return tow_s + SECONDS_IN_WEEK, week - 1
    if tow_s >= SECONDS_IN_WEEK:
        return tow_s - SECONDS_IN_WEEK, week + 1
    return tow_s, week


def week_time_difference_s(tow_s: float, week: int, ref_tow_s: float, ref_week: int) -> float:
    """Seconds from a reference (week, tow) to another, across week boundaries."""

    return (week - ref_week) * SECONDS_IN_WEEK + (tow_s - ref_tow_s)
