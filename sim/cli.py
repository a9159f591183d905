"""Command line entry point.

Two run modes:
  1) simulate: solve synthetic raw batches through a positioning session
  2) rinex: list the ephemerides of a RINEX navigation file
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import numpy as np

from pseudolite_nav.config import (
    SelectionPolicy,
    SmoothingMode,
    SolverConfig,
    default_pseudolite_config,
    load_pseudolite_config,
)
from pseudolite_nav.meas.synthetic import SyntheticMeasurementSource
from pseudolite_nav.runtime.events import PositionResult, PseudoliteResult
from pseudolite_nav.runtime.session import PositioningSession
from pseudolite_nav.sat.rinex_nav import read_rinex_nav
from pseudolite_nav.sat.simple_gps import SimpleGpsConfig, SimpleGpsConstellation
from pseudolite_nav.utils.logging import get_logger, set_log_level
from pseudolite_nav.utils.wgs84 import lla_to_ecef

LOGGER = get_logger("pseudolite_nav.cli")

DEFAULT_WEEK = 2300
DEFAULT_START_TOW_S = 1000.0


def _solver_config(args: argparse.Namespace) -> SolverConfig:
    return SolverConfig(
        smoothing=SmoothingMode(args.smoothing),
        selection=SelectionPolicy(args.selection),
        apply_atmospheric_corrections=not args.no_atmosphere,
        apply_channel_delays=args.channel_delays,
    )


def _cmd_simulate(args: argparse.Namespace) -> None:
    solver_config = _solver_config(args)
    constellation = SimpleGpsConstellation(SimpleGpsConfig(seed=args.seed))
    nav = constellation.nav_message(DEFAULT_WEEK, DEFAULT_START_TOW_S)
    receiver = lla_to_ecef(args.lat, args.lon, args.alt)

    pseudolite_config = None
    indoor_xyz = None
    if args.mode == "pseudolite":
        pseudolite_config = (
            load_pseudolite_config(args.pseudolite_config) if args.pseudolite_config else default_pseudolite_config()
        )
        receiver = lla_to_ecef(*pseudolite_config.outdoor_antenna_lla)
        indoor_xyz = np.array(args.indoor_xyz, dtype=float)

    visible = constellation.visible_prns(nav, receiver, DEFAULT_WEEK, DEFAULT_START_TOW_S)
    source = SyntheticMeasurementSource(
        nav=nav,
        receiver_ecef_m=receiver,
        week=DEFAULT_WEEK,
        start_tow_s=DEFAULT_START_TOW_S,
        prns=tuple(visible),
        solver_config=solver_config,
        pseudolite_config=pseudolite_config,
        indoor_position_xyz=indoor_xyz,
        noise_sigma_m=args.noise,
        rng=np.random.default_rng(args.seed),
    )

    def show_position(result: PositionResult) -> None:
        print(f"[position] {result.status}")

    def show_pseudolite(result: PseudoliteResult) -> None:
        print(f"[pseudolite] {result.status}")

    session = PositioningSession(
        solver_config=solver_config,
        pseudolite_config=pseudolite_config,
        log_path=args.output,
        on_position=show_position,
        on_pseudolite=show_pseudolite,
    )
    session.set_file_nav(nav)
    session.set_positioning_enabled(args.mode == "conventional")
    LOGGER.info("Simulating %d epochs in %s mode with PRNs %s", args.epochs, args.mode, visible)
    with session:
        for batch in source.batches(args.epochs):
            session.submit(batch)
        session.wait()


def _cmd_rinex(args: argparse.Namespace) -> None:
    nav = read_rinex_nav(args.path)
    print(f"{len(nav.ephemerides)} ephemerides: PRNs {' '.join(str(prn) for prn in nav.prns)}")
    if nav.iono is not None:
        print(f"iono alpha {nav.iono.alpha} beta {nav.iono.beta}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pseudolite-nav", description="GNSS and pseudolite positioning runner")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log solver iterations")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sim = sub.add_parser("simulate", help="Solve synthetic measurement batches")
    sim.add_argument("--mode", choices=["conventional", "pseudolite"], default="conventional")
    sim.add_argument("--epochs", type=int, default=5, help="Number of one-second batches")
    sim.add_argument("--seed", type=int, default=0, help="Constellation and noise RNG seed")
    sim.add_argument("--noise", type=float, default=0.0, help="Pseudorange noise sigma in metres")
    sim.add_argument("--lat", type=float, default=40.0)
    sim.add_argument("--lon", type=float, default=118.0)
    sim.add_argument("--alt", type=float, default=100.0)
    sim.add_argument("--indoor-xyz", type=float, nargs=3, default=[0.5, -1.0, 1.2], metavar=("X", "Y", "Z"))
    sim.add_argument("--pseudolite-config", type=Path, default=None, help="Pseudolite JSON configuration")
    sim.add_argument("--smoothing", choices=[m.value for m in SmoothingMode], default=SmoothingMode.NONE.value)
    sim.add_argument(
        "--selection", choices=[p.value for p in SelectionPolicy], default=SelectionPolicy.STRONGEST_CN0.value
    )
    sim.add_argument("--no-atmosphere", action="store_true", help="Disable iono/tropo corrections")
    sim.add_argument("--channel-delays", action="store_true", help="Remove configured channel delays")
    sim.add_argument("--output", type=Path, default=None, help="Append solved pseudolite positions to this file")
    sim.set_defaults(func=_cmd_simulate)

    rinex = sub.add_parser("rinex", help="Parse a RINEX navigation file")
    rinex.add_argument("path", type=Path)
    rinex.set_defaults(func=_cmd_rinex)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        set_log_level(logging.DEBUG)
    args.func(args)


if __name__ == "__main__":
    main()
