"""Single-consumer worker thread bound to one solver."""

from __future__ import annotations

import queue
import threading
from typing import Callable, Generic, Protocol, TypeVar

from pseudolite_nav.models import MeasurementBatch
from pseudolite_nav.utils.logging import get_logger

LOGGER = get_logger(__name__)

ResultT = TypeVar("ResultT", covariant=True)
R = TypeVar("R")


class BatchSolver(Protocol[ResultT]):
    def compute_position(self, batch: MeasurementBatch) -> ResultT: ...


class SolverWorker(threading.Thread, Generic[R]):
    """Consumes measurement batches one at a time and publishes each result.

    The solver is only touched from this thread. A batch that raises is
    logged and skipped; later batches are still processed.
    """

    def __init__(
        self,
        solver: BatchSolver[R],
        on_result: Callable[[R], None] | None = None,
        name: str = "solver-worker",
        maxsize: int = 0,
    ) -> None:
        super().__init__(name=name)
        self.solver = solver
        self.on_result = on_result
        self.daemon = True
        self.running = False
        self.processed = 0
        self.failed = 0
        # None is the stop marker.
        self._queue: queue.Queue[MeasurementBatch | None] = queue.Queue(maxsize=maxsize)

    def submit(self, batch: MeasurementBatch) -> None:
        if not self.running:
            raise RuntimeError(f"{self.name} is not running")
        self._queue.put(batch)

    def start(self) -> None:
        self.running = True
        super().start()

    def run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    return
                self._handle(item)
            finally:
                self._queue.task_done()

    def _handle(self, batch: MeasurementBatch) -> None:
        try:
            result = self.solver.compute_position(batch)
        except Exception:
            self.failed += 1
            LOGGER.exception("%s: batch failed", self.name)
            return
        self.processed += 1
        if self.on_result is not None:
            try:
                self.on_result(result)
            except Exception:
                LOGGER.exception("%s: result callback failed", self.name)

    def join_pending(self) -> None:
        """Block until every submitted batch has been handled."""

        self._queue.join()

    def stop(self, timeout: float | None = None) -> None:
        """Drain queued batches, then stop and join the thread."""

        if not self.running:
            return
        self.running = False
        self._queue.put(None)
        self.join(timeout)
