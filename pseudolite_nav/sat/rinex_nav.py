"""RINEX 2 GPS navigation file reader."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable

from pseudolite_nav.models import GpsEphemeris, IonoParams, NavMessage
from pseudolite_nav.utils.gps_time import gps_week_and_tow_from_utc
from pseudolite_nav.utils.logging import get_logger

LOGGER = get_logger(__name__)

LINES_PER_RECORD = 8
_ORBIT_COLUMNS = ((3, 22), (22, 41), (41, 60), (60, 79))
_CLOCK_COLUMNS = ((22, 41), (41, 60), (60, 79))
_IONO_COLUMNS = ((2, 14), (14, 26), (26, 38), (38, 50))


def _float(field: str) -> float:
    text = field.strip().replace("D", "E").replace("d", "e")
    if not text:
        return 0.0
    return float(text)


def _orbit_values(line: str) -> list[float]:
    padded = line.ljust(79)
    return [_float(padded[start:end]) for start, end in _ORBIT_COLUMNS]


def _parse_epoch(line: str) -> tuple[int, float]:
    year = int(line[2:6])
    year += 2000 if year < 80 else 1900
    seconds = float(line[18:22])
    utc = datetime(
        year,
        int(line[6:9]),
        int(line[9:12]),
        int(line[12:15]),
        int(line[15:18]),
        tzinfo=timezone.utc,
    ) + timedelta(seconds=seconds)
    return gps_week_and_tow_from_utc(utc)


def parse_record(lines: list[str]) -> GpsEphemeris:
    """Parse one eight-line ephemeris record."""

    if len(lines) != LINES_PER_RECORD:
        raise ValueError(f"Ephemeris record needs {LINES_PER_RECORD} lines, got {len(lines)}.")
    first = lines[0].ljust(79)
    try:
        prn = int(first[0:2])
        _, toc = _parse_epoch(first)
        af0, af1, af2 = (_float(first[start:end]) for start, end in _CLOCK_COLUMNS)
        iode, crs, delta_n, m0 = _orbit_values(lines[1])
        cuc, e, cus, sqrt_a = _orbit_values(lines[2])
        toe, cic, omega0, cis = _orbit_values(lines[3])
        i0, crc, omega, omega_dot = _orbit_values(lines[4])
        i_dot, l2_code, week, l2_flag = _orbit_values(lines[5])
        accuracy, health, tgd, iodc = _orbit_values(lines[6])
        _, fit_interval, _, _ = _orbit_values(lines[7])
    except ValueError as exc:
        raise ValueError(f"Malformed ephemeris record starting {lines[0]!r}: {exc}") from exc
    return GpsEphemeris(
        prn=prn,
        week=int(week),
        toc=toc,
        toe=toe,
        af0=af0,
        af1=af1,
        af2=af2,
        m0=m0,
        delta_n=delta_n,
        e=e,
        sqrt_a=sqrt_a,
        omega0=omega0,
        omega_dot=omega_dot,
        i0=i0,
        i_dot=i_dot,
        omega=omega,
        cuc=cuc,
        cus=cus,
        crc=crc,
        crs=crs,
        cic=cic,
        cis=cis,
        tgd=tgd,
        iode=int(iode),
        iodc=int(iodc),
        sv_accuracy_m=accuracy,
        sv_health=int(health),
        fit_interval_h=fit_interval,
        l2_code=int(l2_code),
        l2_flag=int(l2_flag),
    )


def _iono_row(line: str) -> tuple[float, float, float, float]:
    a, b, c, d = (_float(line[start:end]) for start, end in _IONO_COLUMNS)
    return a, b, c, d


def _iono_from_header(header: list[str]) -> IonoParams:
    alpha = beta = (0.0, 0.0, 0.0, 0.0)
    for line in header:
        label = line[60:].strip()
        if label == "ION ALPHA":
            alpha = _iono_row(line)
        elif label == "ION BETA":
            beta = _iono_row(line)
    return IonoParams(alpha=alpha, beta=beta)


def parse_rinex_nav_lines(lines: Iterable[str]) -> NavMessage:
    """Parse navigation file lines into a :class:`NavMessage`.

    Lines up to ``END OF HEADER`` are treated as header when that marker is
    present. The first record seen for a PRN wins. Klobuchar coefficients are
    taken from the header when given, zeros otherwise.
    """

    all_lines = [line.rstrip("\r\n") for line in lines]
    header: list[str] = []
    body = all_lines
    for idx, line in enumerate(all_lines):
        if "END OF HEADER" in line:
            header = all_lines[:idx]
            body = all_lines[idx + 1 :]
            break
    body = [line for line in body if line.strip()]
    if len(body) % LINES_PER_RECORD:
        raise ValueError(
            f"Navigation body has {len(body)} lines, not a multiple of {LINES_PER_RECORD}."
        )

    ephemerides: dict[int, GpsEphemeris] = {}
    for start in range(0, len(body), LINES_PER_RECORD):
        eph = parse_record(body[start : start + LINES_PER_RECORD])
        if eph.prn not in ephemerides:
            ephemerides[eph.prn] = eph
    LOGGER.debug("Parsed %d ephemerides", len(ephemerides))
    return NavMessage(ephemerides=ephemerides, iono=_iono_from_header(header))


def read_rinex_nav(path: str | Path) -> NavMessage:
    """Read a RINEX 2 GPS navigation file."""

    text = Path(path).read_text(encoding="utf-8")
    nav = parse_rinex_nav_lines(text.splitlines())
    LOGGER.info("Loaded %d ephemerides from %s", len(nav.ephemerides), path)
    return nav


def format_rinex_nav_record(eph: GpsEphemeris, toc_utc: datetime) -> list[str]:
    """Render one ephemeris as an eight-line record readable by :func:`parse_record`."""

    def num(value: float) -> str:
        return f"{value:19.12E}".replace("E", "D")

    def orbit(values: tuple[float, float, float, float]) -> str:
        return "   " + "".join(num(v) for v in values)

    seconds = toc_utc.second + toc_utc.microsecond * 1e-6
    first = (
        f"{eph.prn:2d}{toc_utc.year % 100:4d}{toc_utc.month:3d}{toc_utc.day:3d}"
        f"{toc_utc.hour:3d}{toc_utc.minute:3d}{seconds:4.1f}"
        + num(eph.af0)
        + num(eph.af1)
        + num(eph.af2)
    )
    return [
        first,
        orbit((float(eph.iode), eph.crs, eph.delta_n, eph.m0)),
        orbit((eph.cuc, eph.e, eph.cus, eph.sqrt_a)),
        orbit((eph.toe, eph.cic, eph.omega0, eph.cis)),
        orbit((eph.i0, eph.crc, eph.omega, eph.omega_dot)),
        orbit((eph.i_dot, float(eph.l2_code), float(eph.week), float(eph.l2_flag))),
        orbit((eph.sv_accuracy_m, float(eph.sv_health), eph.tgd, float(eph.iodc))),
        orbit((0.0, eph.fit_interval_h, 0.0, 0.0)),
    ]
