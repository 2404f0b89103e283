import threading
import time

import pytest

from electoral.services.job_manager import ProjectionJobManager
from electoral.services.projection.errors import Cancelled


class BlockingEngine:
    """Reports half progress, then waits for the cancel signal."""

    def __init__(self):
        self.started = threading.Event()

    def run(self, request, cancel_event=None, progress=None):
        progress(0.5)
        self.started.set()
        cancel_event.wait(5)
        raise Cancelled("stopped by request")


class CrashingEngine:
    def run(self, request, cancel_event=None, progress=None):
        raise RuntimeError("boom")


@pytest.fixture
def manager():
    manager = ProjectionJobManager(max_workers=2)
    yield manager
    manager.shutdown()


class TestJobLifecycle:
    def test_completed(self, manager, make_request):
        job = manager.submit(make_request())
        job.future.result(timeout=30)
        status = manager.get(job.job_id).snapshot()
        assert status.status == "completed"
        assert status.progress == 1.0
        assert status.outcome.kind == "prediction"
        assert status.started_at is not None and status.finished_at is not None

    def test_validation_failure(self, manager, make_request):
        job = manager.submit(make_request(iterations=0))
        job.future.result(timeout=30)
        status = job.snapshot()
        assert status.status == "failed"
        assert status.error_kind == "validation"
        assert status.outcome is None

    def test_unexpected_error_is_internal(self, make_request):
        manager = ProjectionJobManager(engine=CrashingEngine(), max_workers=1)
        try:
            job = manager.submit(make_request())
            job.future.result(timeout=30)
            assert job.status == "failed"
            assert job.error_kind == "internal"
            assert "boom" in job.error
        finally:
            manager.shutdown()

    def test_unknown_job(self, manager):
        assert manager.get("missing") is None
        assert manager.cancel("missing") is False


class TestCancellation:
    def test_cancel_running_job(self, make_request):
        engine = BlockingEngine()
        manager = ProjectionJobManager(engine=engine, max_workers=1)
        try:
            job = manager.submit(make_request())
            assert engine.started.wait(5)
            assert job.snapshot().status == "running"
            assert job.snapshot().progress == 0.5
            assert manager.cancel(job.job_id) is True
            job.future.result(timeout=5)
            assert job.status == "cancelled"
            assert job.error_kind == "cancelled"
            assert manager.cancel(job.job_id) is False
        finally:
            manager.shutdown()

    def test_cancel_pending_job(self, make_request):
        engine = BlockingEngine()
        manager = ProjectionJobManager(engine=engine, max_workers=1)
        try:
            running = manager.submit(make_request())
            assert engine.started.wait(5)
            queued = manager.submit(make_request())
            assert manager.cancel(queued.job_id) is True
            assert queued.status == "cancelled"
            manager.cancel(running.job_id)
            running.future.result(timeout=5)
        finally:
            manager.shutdown()


class TestRetention:
    def test_finished_jobs_expire(self, make_request):
        manager = ProjectionJobManager(max_workers=1, retention_seconds=0)
        try:
            job = manager.submit(make_request(iterations=0))
            job.future.result(timeout=30)
            time.sleep(0.01)
            assert manager.get(job.job_id) is None
        finally:
            manager.shutdown()
