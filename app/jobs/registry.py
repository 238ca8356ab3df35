import copy
import threading
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from app.exceptions import NotFoundError
from app.jobs.models import (
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_PENDING,
    JOB_STATUS_RUNNING,
    Job,
)
from app.logging.logger import Log


class JobNotFoundError(NotFoundError):
    """Raised when a job id is unknown or already reaped."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobRegistry:
    """Process-wide table of jobs addressed by id.

    One lock guards every read and write. Counters only grow, never past
    total, and status only moves forward. Readers get copies.
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[str, Job] = {}
        self._clock = clock

    def create(self, job_type: str, total: int, created_by: str) -> Job:
        job = Job(
            id=str(uuid.uuid4()),
            job_type=job_type,
            total=total,
            created_by=created_by,
            created_at=self._clock(),
        )
        with self._lock:
            self._jobs[job.id] = job
            return copy.deepcopy(job)

    def get(self, job_id: str) -> Job:
        with self._lock:
            return copy.deepcopy(self._require(job_id))

    def list_for_creator(self, created_by: str) -> list[Job]:
        """Jobs created by one user, newest first."""
        with self._lock:
            jobs = [copy.deepcopy(j) for j in self._jobs.values() if j.created_by == created_by]
        return sorted(jobs, key=lambda job: job.created_at, reverse=True)

    def start(self, job_id: str) -> None:
        with self._lock:
            job = self._require(job_id)
            if job.status != JOB_STATUS_PENDING:
                return
            job.status = JOB_STATUS_RUNNING
            job.started_at = self._clock()

    def record_success(self, job_id: str) -> None:
        with self._lock:
            job = self._require(job_id)
            if job.completed + job.failed < job.total:
                job.completed += 1

    def record_failure(self, job_id: str, error: str) -> None:
        with self._lock:
            job = self._require(job_id)
            if job.completed + job.failed < job.total:
                job.failed += 1
                job.errors.append(error)

    def complete(self, job_id: str) -> None:
        self._finish(job_id, JOB_STATUS_COMPLETED)

    def fail(self, job_id: str, error: str) -> None:
        """Fail the whole job. Reserved for errors outside individual items."""
        self._finish(job_id, JOB_STATUS_FAILED, error)

    def reap(self, retention_seconds: int) -> int:
        """Drop finished jobs whose completion is older than retention_seconds."""
        cutoff = self._clock() - timedelta(seconds=retention_seconds)
        with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if job.is_terminal and job.completed_at is not None and job.completed_at < cutoff
            ]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            Log.info(f"Reaped {len(expired)} finished jobs")
        return len(expired)

    def _finish(self, job_id: str, status: str, error: str | None = None) -> None:
        with self._lock:
            job = self._require(job_id)
            if job.is_terminal:
                return
            if error is not None:
                job.errors.append(error)
            job.status = status
            job.completed_at = self._clock()

    def _require(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job
