import json

import numpy as np
import pytest

from pseudolite_nav.logger import NO_POSITION_RESULT, read_position_log
from pseudolite_nav.sat.rinex_nav import format_rinex_nav_record
from pseudolite_nav.sat.simple_gps import SimpleGpsConstellation
from pseudolite_nav.utils.gps_time import GpsTime
from sim.cli import build_parser, main

SPREAD_CONFIG = {
    "outdoorAntennaLla": [40.0, 118.0, 100.0],
    "indoorAntennaXyz": [[8.0, 0.5, 3.0], [-7.5, 1.0, 0.2], [0.5, 9.0, 5.5], [1.0, -8.0, 1.0]],
    "outdoorToIndoorRange": [12, 16, 12, 16],
}


def test_parser_defaults() -> None:
    args = build_parser().parse_args(["simulate"])

    assert args.mode == "conventional"
    assert args.epochs == 5
    assert args.smoothing == "none"
    assert args.selection == "strongest_cn0"
    assert args.indoor_xyz == [0.5, -1.0, 1.2]


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_simulate_conventional_prints_each_batch(capsys: pytest.CaptureFixture[str]) -> None:
    main(["simulate", "--epochs", "3", "--seed", "3"])

    lines = [line for line in capsys.readouterr().out.splitlines() if line.startswith("[position]")]
    assert len(lines) == 3
    assert lines[0] == f"[position] {NO_POSITION_RESULT}"
    assert all(line.startswith("[position] latDegrees = ") for line in lines[1:])


def test_simulate_pseudolite_writes_log(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = tmp_path / "pseudolite.json"
    config_path.write_text(json.dumps(SPREAD_CONFIG), encoding="utf-8")
    output = tmp_path / "positions.txt"

    main(
        [
            "simulate",
            "--mode",
            "pseudolite",
            "--epochs",
            "3",
            "--seed",
            "3",
            "--pseudolite-config",
            str(config_path),
            "--output",
            str(output),
        ]
    )

    lines = [line for line in capsys.readouterr().out.splitlines() if line.startswith("[pseudolite]")]
    assert len(lines) == 3
    logged = read_position_log(output)
    assert len(logged) == 2
    assert np.linalg.norm(logged[-1] - np.array([0.5, -1.0, 1.2])) < 0.05


def test_rinex_command_lists_prns(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    toc = GpsTime.from_week_and_tow(2300, 7200.0)
    constellation = SimpleGpsConstellation()
    lines = ["                                                            END OF HEADER"]
    for prn in (4, 9):
        lines.extend(format_rinex_nav_record(constellation.ephemeris(prn, toc.week, toc.tow_s), toc.utc))
    path = tmp_path / "brdc.nav"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    main(["rinex", str(path)])

    out = capsys.readouterr().out
    assert "2 ephemerides: PRNs 4 9" in out
