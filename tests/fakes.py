import copy
import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

from app.database.models import STATUS_ACTIVE, STATUS_FAILED, STATUS_PENDING, DocumentRecord
from app.exceptions import ConflictError, DocumentNotFoundError
from app.scanning.base import BaseVirusScanner, ScanResult


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDocumentRepository:
    """DocumentRepository stand-in with the same row semantics, kept in a dict."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, DocumentRecord] = {}
        self._clock = clock
        self.fail_next: dict[str, Exception] = {}

    def create(self, document: DocumentRecord) -> DocumentRecord:
        self._maybe_fail("create")
        now = self._clock()
        with self._lock:
            for row in self._rows.values():
                if row.deleted_at is None and row.hash == document.hash:
                    raise ConflictError("duplicate hash", existing_id=row.id)
            stored = replace(document, created_at=now, updated_at=now)
            self._rows[stored.id] = stored
            return copy.deepcopy(stored)

    def find_by_id(self, document_id: str) -> DocumentRecord:
        with self._lock:
            return copy.deepcopy(self._live(document_id))

    def find_by_hash(self, content_hash: str) -> DocumentRecord | None:
        with self._lock:
            for row in self._rows.values():
                if row.deleted_at is None and row.hash == content_hash:
                    return copy.deepcopy(row)
        return None

    def find_stale_pending(self, older_than_seconds: int, limit: int) -> list[DocumentRecord]:
        cutoff = self._clock() - timedelta(seconds=older_than_seconds)
        with self._lock:
            rows = [
                row
                for row in self._rows.values()
                if row.status == STATUS_PENDING
                and row.deleted_at is None
                and row.updated_at is not None
                and row.updated_at < cutoff
            ]
        rows.sort(key=lambda row: row.updated_at or cutoff)
        return [copy.deepcopy(row) for row in rows[:limit]]

    def update_metadata(
        self,
        document_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DocumentRecord:
        changes: dict[str, Any] = {}
        if title is not None:
            changes["title"] = title
        if description is not None:
            changes["description"] = description
        if metadata is not None:
            changes["metadata"] = metadata
        return self._update(document_id, **changes)

    def set_thumbnail_path(self, document_id: str, thumbnail_path: str) -> None:
        self._update(document_id, thumbnail_path=thumbnail_path)

    def mark_indexed(self, document_id: str) -> None:
        self._maybe_fail("mark_indexed")
        self._update(
            document_id,
            is_indexed=True,
            indexed_at=self._clock(),
            status=STATUS_ACTIVE,
            processing_error=None,
        )

    def record_processing_error(self, document_id: str, error: str) -> None:
        self._update(document_id, processing_error=error)

    def touch(self, document_id: str) -> None:
        self._update(document_id)

    def mark_failed(self, document_id: str, error: str) -> None:
        self._update(document_id, status=STATUS_FAILED, is_indexed=False, processing_error=error)

    def reset_for_reindex(self, document_id: str) -> None:
        self._update(
            document_id,
            status=STATUS_PENDING,
            is_indexed=False,
            indexed_at=None,
            processing_error=None,
        )

    def increment_view_count(self, document_id: str) -> None:
        with self._lock:
            self._live(document_id).view_count += 1

    def increment_download_count(self, document_id: str) -> None:
        with self._lock:
            self._live(document_id).download_count += 1

    def soft_delete(self, document_id: str) -> None:
        self._maybe_fail("soft_delete")
        self._update(document_id, deleted_at=self._clock())

    def purge(self, document_id: str) -> None:
        with self._lock:
            self._rows.pop(document_id, None)

    def all_rows(self) -> list[DocumentRecord]:
        """Every row including soft-deleted ones."""
        with self._lock:
            return [copy.deepcopy(row) for row in self._rows.values()]

    def set_updated_at(self, document_id: str, updated_at: datetime) -> None:
        with self._lock:
            self._rows[document_id].updated_at = updated_at

    def _update(self, document_id: str, **changes: Any) -> DocumentRecord:
        with self._lock:
            row = self._live(document_id)
            for name, value in changes.items():
                setattr(row, name, value)
            row.updated_at = self._clock()
            return copy.deepcopy(row)

    def _live(self, document_id: str) -> DocumentRecord:
        row = self._rows.get(document_id)
        if row is None or row.deleted_at is not None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return row

    def _maybe_fail(self, operation: str) -> None:
        exc = self.fail_next.pop(operation, None)
        if exc is not None:
            raise exc


class StaticScanner(BaseVirusScanner):
    """Returns a fixed verdict, or raises the configured error."""

    def __init__(self, result: ScanResult | None = None, error: Exception | None = None) -> None:
        self._result = result or ScanResult(clean=True)
        self._error = error
        self.calls = 0

    def scan(self, data: bytes, filename: str) -> ScanResult:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return self._result
