from __future__ import annotations

import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone

from electoral.config import settings
from electoral.schemas.projection import JobStatusResponse, ProjectionRequest
from electoral.services.projection.engine import ProjectionEngine
from electoral.services.projection.errors import Cancelled, ProjectionError
from electoral.utils.logger import get_logger

logger = get_logger(__name__)

FINISHED = ("completed", "failed", "cancelled")


@dataclass
class ProjectionJob:
    job_id: str
    request: ProjectionRequest
    status: str = "pending"
    progress: float = 0.0
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: datetime | None = None
    finished_at: datetime | None = None
    finished_monotonic: float | None = None
    error_kind: str | None = None
    error: str | None = None
    outcome: object | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    future: Future | None = None

    def snapshot(self) -> JobStatusResponse:
        return JobStatusResponse(
            job_id=self.job_id,
            status=self.status,
            progress=round(self.progress, 4),
            submitted_at=self.submitted_at,
            started_at=self.started_at,
            finished_at=self.finished_at,
            error_kind=self.error_kind,
            error=self.error,
            outcome=self.outcome,
        )


class ProjectionJobManager:
    """Runs projection requests in the background and tracks their status.

    The engine stays stateless; this layer owns job status, progress relay
    and the cancel signal handed to each run.
    """

    def __init__(
        self,
        engine: ProjectionEngine | None = None,
        max_workers: int | None = None,
        retention_seconds: int | None = None,
    ):
        self.engine = engine or ProjectionEngine()
        self.retention_seconds = (
            settings.JOB_RETENTION_SECONDS if retention_seconds is None else retention_seconds
        )
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.JOB_WORKERS,
            thread_name_prefix="projection-job",
        )
        self._jobs: dict[str, ProjectionJob] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def submit(self, request: ProjectionRequest) -> ProjectionJob:
        self._evict_expired()
        job = ProjectionJob(job_id=uuid.uuid4().hex, request=request)
        with self._lock:
            self._jobs[job.job_id] = job
        job.future = self._executor.submit(self._run, job)
        logger.info("Job %s submitted (%s)", job.job_id, request.simulation.kind)
        return job

    def get(self, job_id: str) -> ProjectionJob | None:
        self._evict_expired()
        with self._lock:
            return self._jobs.get(job_id)

    def cancel(self, job_id: str) -> bool:
        """Request cancellation. False if the job is unknown or already finished."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status in FINISHED:
                return False
            job.cancel_event.set()
            if job.status == "pending" and job.future is not None and job.future.cancel():
                self._finish(job, "cancelled", error_kind=Cancelled.kind, error="cancelled before start")
        logger.info("Job %s cancellation requested", job_id)
        return True

    def shutdown(self):
        with self._lock:
            for job in self._jobs.values():
                if job.status not in FINISHED:
                    job.cancel_event.set()
        self._executor.shutdown(wait=True, cancel_futures=True)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _run(self, job: ProjectionJob):
        with self._lock:
            if job.cancel_event.is_set():
                self._finish(job, "cancelled", error_kind=Cancelled.kind, error="cancelled before start")
                return
            job.status = "running"
            job.started_at = datetime.now(timezone.utc)

        def on_progress(fraction: float):
            job.progress = fraction

        try:
            outcome = self.engine.run(job.request, cancel_event=job.cancel_event, progress=on_progress)
        except Cancelled as e:
            with self._lock:
                self._finish(job, "cancelled", error_kind=e.kind, error=e.message)
            logger.info("Job %s cancelled", job.job_id)
        except ProjectionError as e:
            with self._lock:
                self._finish(job, "failed", error_kind=e.kind, error=e.message)
            logger.warning("Job %s failed (%s): %s", job.job_id, e.kind, e.message)
        except Exception as e:
            with self._lock:
                self._finish(job, "failed", error_kind="internal", error=str(e))
            logger.exception("Job %s crashed", job.job_id)
        else:
            with self._lock:
                job.outcome = outcome
                job.progress = 1.0
                self._finish(job, "completed")
            logger.info("Job %s completed", job.job_id)

    def _finish(self, job: ProjectionJob, status: str, error_kind: str | None = None, error: str | None = None):
        job.status = status
        job.error_kind = error_kind
        job.error = error
        job.finished_at = datetime.now(timezone.utc)
        job.finished_monotonic = time.monotonic()

    def _evict_expired(self):
        now = time.monotonic()
        with self._lock:
            expired = [
                job_id for job_id, job in self._jobs.items()
                if job.finished_monotonic is not None
                and now - job.finished_monotonic > self.retention_seconds
            ]
            for job_id in expired:
                del self._jobs[job_id]
