"""Positioning session: owns the orchestrators, their workers and the inputs."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable, TypeVar

from pseudolite_nav.config import PseudoliteConfig, SolverConfig, load_pseudolite_config
from pseudolite_nav.logger import append_position_log
from pseudolite_nav.models import (
    ElevationProvider,
    GpsEphemeris,
    IonoParams,
    MeasurementBatch,
    NavMessage,
    SuplClient,
)
from pseudolite_nav.runtime.events import (
    PositionFromRawEvents,
    PositionResult,
    PseudolitePositionFromRawEvents,
    PseudoliteResult,
)
from pseudolite_nav.runtime.worker import BatchSolver, SolverWorker
from pseudolite_nav.sat.nav_store import EphemerisSourceSelector, NavMessageStore
from pseudolite_nav.sat.rinex_nav import read_rinex_nav
from pseudolite_nav.utils.logging import get_logger

LOGGER = get_logger(__name__)

R = TypeVar("R")


class PositioningSession:
    """Explicit session state shared by the conventional and pseudolite pipelines.

    Raw batches are fanned out to one worker per enabled pipeline. Inputs
    (navigation data, pseudolite geometry, reference location, flags) can be
    changed from any thread.
    """

    def __init__(
        self,
        solver_config: SolverConfig | None = None,
        pseudolite_config: PseudoliteConfig | None = None,
        supl_client: SuplClient | None = None,
        elevation_provider: ElevationProvider | None = None,
        log_path: str | Path | None = None,
        on_position: Callable[[PositionResult], None] | None = None,
        on_pseudolite: Callable[[PseudoliteResult], None] | None = None,
    ) -> None:
        self.solver_config = solver_config or SolverConfig()
        self.elevation_provider = elevation_provider
        self.log_path = Path(log_path) if log_path is not None else None
        self.on_position = on_position
        self.on_pseudolite = on_pseudolite
        self.nav_store = NavMessageStore()
        self.selector = EphemerisSourceSelector(
            hardware=self.nav_store,
            supl_client=supl_client,
            refresh_s=self.solver_config.supl_refresh_s,
        )
        self._lock = threading.Lock()
        self._positioning_enabled = True
        self._pseudolite_enabled = pseudolite_config is not None
        self._started = False
        self._last_position: PositionResult | None = None
        self._last_pseudolite: PseudoliteResult | None = None

        self.conventional = PositionFromRawEvents(self.solver_config, self.selector, elevation_provider=elevation_provider)
        self.pseudolite: PseudolitePositionFromRawEvents | None = None
        self._conventional_worker: SolverWorker[PositionResult] | None = None
        self._pseudolite_worker: SolverWorker[PseudoliteResult] | None = None
        if pseudolite_config is not None:
            self.pseudolite = self._make_pseudolite(pseudolite_config)

    def _make_pseudolite(self, config: PseudoliteConfig) -> PseudolitePositionFromRawEvents:
        return PseudolitePositionFromRawEvents(
            config, self.solver_config, self.selector, elevation_provider=self.elevation_provider
        )

    # Inputs

    def load_rinex(self, path: str | Path) -> NavMessage:
        """Use a navigation file for every later epoch."""

        try:
            nav = read_rinex_nav(path)
        except (OSError, ValueError):
            LOGGER.exception("Could not load navigation file %s", path)
            raise
        self.selector.set_file_nav(nav)
        return nav

    def set_file_nav(self, nav: NavMessage | None) -> None:
        self.selector.set_file_nav(nav)

    def on_ephemeris(self, eph: GpsEphemeris) -> None:
        self.nav_store.update_ephemeris(eph)

    def on_iono(self, iono: IonoParams) -> None:
        self.nav_store.update_iono(iono)

    def set_reference_location(self, lat_e7: int, lng_e7: int, alt_e7: int = 0) -> None:
        self.selector.set_reference_location(lat_e7, lng_e7, alt_e7)

    def load_pseudolite_config(self, path: str | Path) -> PseudoliteConfig:
        """Replace the pseudolite geometry; the previous one stays on failure."""

        try:
            config = load_pseudolite_config(path)
        except (OSError, ValueError):
            LOGGER.exception("Could not load pseudolite configuration %s", path)
            raise
        self.set_pseudolite_config(config)
        return config

    def set_pseudolite_config(self, config: PseudoliteConfig) -> None:
        pipeline = self._make_pseudolite(config)
        with self._lock:
            old_worker = self._pseudolite_worker
            self.pseudolite = pipeline
            self._pseudolite_enabled = True
            self._pseudolite_worker = None
            if self._started:
                self._pseudolite_worker = self._start_worker(pipeline, self._publish_pseudolite, "pseudolite-solver")
        if old_worker is not None:
            old_worker.stop()

    # Flags

    @property
    def positioning_enabled(self) -> bool:
        with self._lock:
            return self._positioning_enabled

    def set_positioning_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._positioning_enabled = bool(enabled)

    @property
    def pseudolite_enabled(self) -> bool:
        with self._lock:
            return self._pseudolite_enabled and self.pseudolite is not None

    def set_pseudolite_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._pseudolite_enabled = bool(enabled)

    # Results

    @property
    def last_position(self) -> PositionResult | None:
        with self._lock:
            return self._last_position

    @property
    def last_pseudolite(self) -> PseudoliteResult | None:
        with self._lock:
            return self._last_pseudolite

    def _publish_position(self, result: PositionResult) -> None:
        with self._lock:
            self._last_position = result
        if self.on_position is not None:
            self.on_position(result)

    def _publish_pseudolite(self, result: PseudoliteResult) -> None:
        with self._lock:
            self._last_pseudolite = result
        if self.log_path is not None and result.is_valid:
            append_position_log(self.log_path, result.position_xyz)
        if self.on_pseudolite is not None:
            self.on_pseudolite(result)

    # Lifecycle

    @staticmethod
    def _start_worker(solver: BatchSolver[R], callback: Callable[[R], None], name: str) -> SolverWorker[R]:
        worker = SolverWorker(solver, callback, name=name)
        worker.start()
        return worker

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True
            self._conventional_worker = self._start_worker(self.conventional, self._publish_position, "position-solver")
            if self.pseudolite is not None:
                self._pseudolite_worker = self._start_worker(
                    self.pseudolite, self._publish_pseudolite, "pseudolite-solver"
                )

    def submit(self, batch: MeasurementBatch) -> None:
        with self._lock:
            if not self._started:
                raise RuntimeError("session is not started")
            targets: list[SolverWorker[Any]] = []
            if self._positioning_enabled and self._conventional_worker is not None:
                targets.append(self._conventional_worker)
            if self._pseudolite_enabled and self._pseudolite_worker is not None:
                targets.append(self._pseudolite_worker)
        for worker in targets:
            worker.submit(batch)

    def wait(self) -> None:
        """Block until every submitted batch has been processed."""

        for worker in (self._conventional_worker, self._pseudolite_worker):
            if worker is not None:
                worker.join_pending()

    def stop(self) -> None:
        with self._lock:
            workers = [self._conventional_worker, self._pseudolite_worker]
            self._conventional_worker = None
            self._pseudolite_worker = None
            self._started = False
        for worker in workers:
            if worker is not None:
                worker.stop()

    def __enter__(self) -> PositioningSession:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
