from dataclasses import fields, replace
from datetime import datetime, timezone

import numpy as np
import pytest

from pseudolite_nav.models import GpsEphemeris
from pseudolite_nav.sat.rinex_nav import (
    format_rinex_nav_record,
    parse_record,
    parse_rinex_nav_lines,
    read_rinex_nav,
)
from pseudolite_nav.sat.simple_gps import SimpleGpsConfig, SimpleGpsConstellation
from pseudolite_nav.utils.gps_time import GpsTime

TOC_UTC = datetime(2024, 1, 10, 2, 0, 0, tzinfo=timezone.utc)
ALPHA = (1.118e-08, 7.451e-09, -5.960e-08, -5.960e-08)
BETA = (9.011e04, 0.0, -1.966e05, -6.554e04)


def _ephemeris(prn: int) -> GpsEphemeris:
    toc = GpsTime.from_utc(TOC_UTC)
    eph = SimpleGpsConstellation(SimpleGpsConfig(seed=11)).ephemeris(prn, toc.week, toc.tow_s)
    return replace(eph, iode=prn + 40, iodc=prn + 40, sv_health=0, fit_interval_h=4.0)


def _header() -> list[str]:
    def iono_line(values: tuple[float, ...], label: str) -> str:
        body = "  " + "".join(f"{v:12.4E}".replace("E", "D") for v in values)
        return body.ljust(60) + label

    return [
        "     2.10           N: GPS NAV DATA                         RINEX VERSION / TYPE",
        iono_line(ALPHA, "ION ALPHA"),
        iono_line(BETA, "ION BETA"),
        "                                                            END OF HEADER",
    ]


def _assert_same(parsed: GpsEphemeris, expected: GpsEphemeris) -> None:
    for item in fields(GpsEphemeris):
        got = getattr(parsed, item.name)
        want = getattr(expected, item.name)
        assert np.isclose(got, want, rtol=1e-11, atol=1e-20), item.name


def test_record_round_trip() -> None:
    eph = _ephemeris(5)
    parsed = parse_record(format_rinex_nav_record(eph, TOC_UTC))
    _assert_same(parsed, eph)


def test_file_with_header_and_duplicates(tmp_path) -> None:
    first = _ephemeris(3)
    later = replace(_ephemeris(3), iode=99)
    other = _ephemeris(17)
    lines = _header()
    for eph in (first, other, later):
        lines += format_rinex_nav_record(eph, TOC_UTC)
    path = tmp_path / "brdc0100.24n"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    nav = read_rinex_nav(path)

    assert nav.prns == [3, 17]
    assert nav.ephemeris(3).iode == first.iode
    assert nav.iono is not None
    assert np.allclose(nav.iono.alpha, ALPHA)
    assert np.allclose(nav.iono.beta, BETA)


def test_missing_header_gives_zero_iono() -> None:
    nav = parse_rinex_nav_lines(format_rinex_nav_record(_ephemeris(9), TOC_UTC))
    assert nav.contains(9)
    assert nav.iono is not None
    assert nav.iono.alpha == (0.0, 0.0, 0.0, 0.0)


def test_truncated_body_is_rejected() -> None:
    lines = format_rinex_nav_record(_ephemeris(9), TOC_UTC)[:-1]
    with pytest.raises(ValueError):
        parse_rinex_nav_lines(lines)


def test_malformed_number_is_rejected() -> None:
    lines = format_rinex_nav_record(_ephemeris(9), TOC_UTC)
    lines[2] = "   " + "not-a-number".rjust(19) + lines[2][22:]
    with pytest.raises(ValueError, match="Malformed"):
        parse_record(lines)
