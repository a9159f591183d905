import logging
import threading

import pytest

from pseudolite_nav.models import GnssClock, MeasurementBatch
from pseudolite_nav.runtime.worker import SolverWorker


def _batch(time_nanos: int) -> MeasurementBatch:
    return MeasurementBatch(clock=GnssClock(time_nanos=time_nanos, full_bias_nanos=0))


class RecordingSolver:
    def __init__(self, fail_on: set[int] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.threads: set[str] = set()

    def compute_position(self, batch: MeasurementBatch) -> int:
        self.threads.add(threading.current_thread().name)
        if batch.clock.time_nanos in self.fail_on:
            raise RuntimeError("bad batch")
        return batch.clock.time_nanos


def test_results_are_published_in_order() -> None:
    results: list[int] = []
    solver = RecordingSolver()
    worker = SolverWorker(solver, results.append, name="test-worker")
    worker.start()

    for nanos in range(5):
        worker.submit(_batch(nanos))
    worker.join_pending()
    worker.stop(timeout=5.0)

    assert results == [0, 1, 2, 3, 4]
    assert worker.processed == 5
    assert solver.threads == {"test-worker"}
    assert not worker.is_alive()


def test_failed_batch_is_logged_and_skipped(caplog: pytest.LogCaptureFixture) -> None:
    results: list[int] = []
    worker = SolverWorker(RecordingSolver(fail_on={1}), results.append, name="failing-worker")
    worker.start()

    with caplog.at_level(logging.ERROR, logger="pseudolite_nav.runtime.worker"):
        for nanos in range(3):
            worker.submit(_batch(nanos))
        worker.join_pending()
    worker.stop(timeout=5.0)

    assert results == [0, 2]
    assert worker.failed == 1
    assert "failing-worker: batch failed" in caplog.text


def test_callback_errors_do_not_stop_the_worker() -> None:
    seen: list[int] = []

    def callback(result: int) -> None:
        seen.append(result)
        raise ValueError("consumer broke")

    worker = SolverWorker(RecordingSolver(), callback)
    worker.start()
    worker.submit(_batch(1))
    worker.submit(_batch(2))
    worker.join_pending()
    worker.stop(timeout=5.0)

    assert seen == [1, 2]
    assert worker.processed == 2


def test_submit_requires_running_worker() -> None:
    worker = SolverWorker(RecordingSolver())

    with pytest.raises(RuntimeError):
        worker.submit(_batch(0))
