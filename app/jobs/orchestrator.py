import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any, TypeVar

from app.config.settings import Settings
from app.documents.service import DocumentService
from app.exceptions import ValidationError
from app.ingestion.coordinator import UploadCoordinator
from app.ingestion.models import UploadRequest
from app.jobs.models import (
    JOB_TYPE_BULK_DELETE,
    JOB_TYPE_BULK_METADATA_UPDATE,
    JOB_TYPE_BULK_UPLOAD,
    Job,
)
from app.jobs.registry import JobRegistry
from app.logging.logger import Log

T = TypeVar("T")

METADATA_UPDATE_FIELDS = frozenset({"title", "description", "metadata"})


class BatchOrchestrator:
    """Runs bulk operations in the background with bounded concurrency.

    Each job fans its items out to at most ``concurrency`` threads and
    records every outcome in the JobRegistry. An item that raises counts as
    that item's failure; the job still completes once every item was tried.
    """

    def __init__(
        self,
        registry: JobRegistry,
        coordinator: UploadCoordinator,
        document_service: DocumentService,
        concurrency: int = 5,
        max_parallel_jobs: int = 4,
    ) -> None:
        self._registry = registry
        self._coordinator = coordinator
        self._document_service = document_service
        self._concurrency = concurrency
        self._job_executor = ThreadPoolExecutor(
            max_workers=max_parallel_jobs, thread_name_prefix="batch-job"
        )
        self._lock = threading.Lock()
        self._futures: dict[str, Future[None]] = {}

    def submit_bulk_upload(self, requests: Sequence[UploadRequest], created_by: str) -> Job:
        if not requests:
            raise ValidationError("No files provided")
        return self._submit(
            JOB_TYPE_BULK_UPLOAD,
            created_by,
            list(requests),
            label=lambda request: request.filename,
            operation=self._coordinator.upload,
        )

    def submit_bulk_metadata_update(
        self,
        document_ids: Sequence[str],
        updates: dict[str, Any],
        created_by: str,
    ) -> Job:
        if not document_ids:
            raise ValidationError("No documents provided")
        unknown = set(updates) - METADATA_UPDATE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be bulk updated: {sorted(unknown)}")
        if not updates:
            raise ValidationError("No updates provided")
        return self._submit(
            JOB_TYPE_BULK_METADATA_UPDATE,
            created_by,
            list(document_ids),
            label=lambda document_id: document_id,
            operation=lambda document_id: self._document_service.update_metadata(
                document_id, **updates
            ),
        )

    def submit_bulk_delete(self, document_ids: Sequence[str], created_by: str) -> Job:
        if not document_ids:
            raise ValidationError("No documents provided")
        return self._submit(
            JOB_TYPE_BULK_DELETE,
            created_by,
            list(document_ids),
            label=lambda document_id: document_id,
            operation=self._document_service.delete,
        )

    def wait(self, job_id: str, timeout: float | None = None) -> Job:
        """Block until the job's background run has finished, then return it."""
        with self._lock:
            future = self._futures.get(job_id)
        if future is not None:
            future.result(timeout=timeout)
        return self._registry.get(job_id)

    def shutdown(self, wait: bool = True) -> None:
        self._job_executor.shutdown(wait=wait)

    def _submit(
        self,
        job_type: str,
        created_by: str,
        items: list[T],
        label: Callable[[T], str],
        operation: Callable[[T], object],
    ) -> Job:
        job = self._registry.create(job_type, total=len(items), created_by=created_by)
        Log.info(f"Job {job.id} ({job_type}) accepted with {job.total} items")
        future = self._job_executor.submit(self._run, job.id, items, label, operation)
        with self._lock:
            self._futures[job.id] = future
        future.add_done_callback(lambda _: self._forget(job.id))
        return job

    def _run(
        self,
        job_id: str,
        items: list[T],
        label: Callable[[T], str],
        operation: Callable[[T], object],
    ) -> None:
        try:
            self._registry.start(job_id)
            with ThreadPoolExecutor(
                max_workers=self._concurrency, thread_name_prefix=f"job-{job_id[:8]}"
            ) as pool:
                futures = {pool.submit(operation, item): label(item) for item in items}
                for future in as_completed(futures):
                    item_label = futures[future]
                    try:
                        future.result()
                    except Exception as exc:
                        Log.warning(f"Job {job_id}: item {item_label} failed: {exc}")
                        self._registry.record_failure(job_id, f"{item_label}: {exc}")
                    else:
                        self._registry.record_success(job_id)
            self._registry.complete(job_id)
            job = self._registry.get(job_id)
            Log.info(
                f"Job {job_id} completed: {job.completed} succeeded, {job.failed} failed"
            )
        except Exception as exc:
            Log.exception(f"Job {job_id} aborted")
            self._registry.fail(job_id, f"Job aborted: {exc}")

    def _forget(self, job_id: str) -> None:
        with self._lock:
            self._futures.pop(job_id, None)


def build_batch_orchestrator(
    settings: Settings,
    registry: JobRegistry,
    coordinator: UploadCoordinator,
    document_service: DocumentService,
) -> BatchOrchestrator:
    return BatchOrchestrator(
        registry=registry,
        coordinator=coordinator,
        document_service=document_service,
        concurrency=settings.batch_concurrency,
        max_parallel_jobs=settings.batch_max_parallel_jobs,
    )
