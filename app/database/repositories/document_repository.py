from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from app.database.connection import get_connection
from app.database.models import STATUS_ACTIVE, STATUS_FAILED, STATUS_PENDING, DocumentRecord
from app.exceptions import ConflictError, DocumentNotFoundError, TransientError

_COLUMNS = """
    id, title, description, collection_id, uploader_id, status,
    original_filename, file_type, mime_type, file_size, storage_path,
    thumbnail_path, hash, metadata, is_indexed, indexed_at, processing_error,
    view_count, download_count, created_at, updated_at, deleted_at
"""


@contextmanager
def _connection(action: str) -> Generator[psycopg.Connection[Any], None, None]:
    """Yield a pooled connection, mapping connectivity failures to TransientError."""
    try:
        with get_connection() as conn:
            yield conn
    except psycopg.OperationalError as exc:
        raise TransientError(f"Database unavailable while {action}: {exc}") from exc


def _row_to_record(row: dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(
        id=str(row["id"]),
        title=row["title"],
        description=row["description"] or "",
        collection_id=str(row["collection_id"]),
        uploader_id=str(row["uploader_id"]),
        status=row["status"],
        original_filename=row["original_filename"],
        file_type=row["file_type"],
        mime_type=row["mime_type"],
        file_size=row["file_size"],
        storage_path=row["storage_path"],
        thumbnail_path=row["thumbnail_path"],
        hash=row["hash"],
        metadata=row["metadata"] or {},
        is_indexed=row["is_indexed"],
        indexed_at=row["indexed_at"],
        processing_error=row["processing_error"],
        view_count=row["view_count"],
        download_count=row["download_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        deleted_at=row["deleted_at"],
    )


class DocumentRepository:
    """Database operations for the documents table.

    Soft-deleted rows (deleted_at set) are invisible to every query except
    purge(). The partial unique index on hash only covers live rows.
    """

    def create(self, document: DocumentRecord) -> DocumentRecord:
        """Insert a new document row.

        Raises:
            ConflictError: if a live document already has the same hash.
                This is the authoritative dedup check; the coordinator's
                pre-check only avoids useless work.
        """
        try:
            with _connection("creating document") as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO documents (
                            id, title, description, collection_id, uploader_id,
                            status, original_filename, file_type, mime_type,
                            file_size, storage_path, thumbnail_path, hash, metadata
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING {_COLUMNS}
                        """,
                        (
                            document.id,
                            document.title,
                            document.description,
                            document.collection_id,
                            document.uploader_id,
                            document.status,
                            document.original_filename,
                            document.file_type,
                            document.mime_type,
                            document.file_size,
                            document.storage_path,
                            document.thumbnail_path,
                            document.hash,
                            Jsonb(document.metadata),
                        ),
                    )
                    row = cur.fetchone()
                conn.commit()
        except pg_errors.UniqueViolation as exc:
            existing = self.find_by_hash(document.hash)
            existing_id = existing.id if existing is not None else None
            raise ConflictError(
                f"A document with the same content already exists (ID: {existing_id})",
                existing_id=existing_id,
            ) from exc

        if row is None:
            raise RuntimeError(f"INSERT for document {document.id} returned no row")
        return _row_to_record(row)

    def find_by_id(self, document_id: str) -> DocumentRecord:
        """Find a live document by ID.

        Raises:
            DocumentNotFoundError: if no live document with this ID exists.
        """
        with _connection("loading document") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM documents
                    WHERE id = %s AND deleted_at IS NULL
                    """,
                    (document_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return _row_to_record(row)

    def find_by_hash(self, content_hash: str) -> DocumentRecord | None:
        """Return the live document with this content hash, if any."""
        with _connection("checking for duplicates") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM documents
                    WHERE hash = %s AND deleted_at IS NULL
                    """,
                    (content_hash,),
                )
                row = cur.fetchone()
        return _row_to_record(row) if row is not None else None

    def find_stale_pending(self, older_than_seconds: int, limit: int) -> list[DocumentRecord]:
        """Pending documents with no activity for older_than_seconds, oldest first."""
        with _connection("listing stale pending documents") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM documents
                    WHERE status = %s
                      AND deleted_at IS NULL
                      AND updated_at < NOW() - make_interval(secs => %s)
                    ORDER BY updated_at
                    LIMIT %s
                    """,
                    (STATUS_PENDING, older_than_seconds, limit),
                )
                rows = cur.fetchall()
        return [_row_to_record(row) for row in rows]

    def update_metadata(
        self,
        document_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DocumentRecord:
        """Update the editable fields that were provided; None leaves a field as is."""
        with _connection("updating document metadata") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    UPDATE documents
                    SET title = COALESCE(%s, title),
                        description = COALESCE(%s, description),
                        metadata = COALESCE(%s, metadata),
                        updated_at = NOW()
                    WHERE id = %s AND deleted_at IS NULL
                    RETURNING {_COLUMNS}
                    """,
                    (
                        title,
                        description,
                        Jsonb(metadata) if metadata is not None else None,
                        document_id,
                    ),
                )
                row = cur.fetchone()
            conn.commit()

        if row is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return _row_to_record(row)

    def set_thumbnail_path(self, document_id: str, thumbnail_path: str) -> None:
        self._execute_update(
            "recording thumbnail",
            """
            UPDATE documents
            SET thumbnail_path = %s, updated_at = NOW()
            WHERE id = %s AND deleted_at IS NULL
            """,
            (thumbnail_path, document_id),
            document_id,
        )

    def mark_indexed(self, document_id: str) -> None:
        """Flag the document searchable and move it to active."""
        self._execute_update(
            "marking document indexed",
            """
            UPDATE documents
            SET is_indexed = true, indexed_at = NOW(), status = %s,
                processing_error = NULL, updated_at = NOW()
            WHERE id = %s AND deleted_at IS NULL
            """,
            (STATUS_ACTIVE, document_id),
            document_id,
        )

    def record_processing_error(self, document_id: str, error: str) -> None:
        """Store the last retry failure; also refreshes updated_at as retry activity."""
        self._execute_update(
            "recording processing error",
            """
            UPDATE documents
            SET processing_error = %s, updated_at = NOW()
            WHERE id = %s AND deleted_at IS NULL
            """,
            (error, document_id),
            document_id,
        )

    def touch(self, document_id: str) -> None:
        """Refresh updated_at so reconciliation treats the row as recently active."""
        self._execute_update(
            "touching document",
            "UPDATE documents SET updated_at = NOW() WHERE id = %s AND deleted_at IS NULL",
            (document_id,),
            document_id,
        )

    def mark_failed(self, document_id: str, error: str) -> None:
        """Mark indexing as permanently failed. The stored bytes are kept."""
        self._execute_update(
            "marking document failed",
            """
            UPDATE documents
            SET status = %s, is_indexed = false, processing_error = %s,
                updated_at = NOW()
            WHERE id = %s AND deleted_at IS NULL
            """,
            (STATUS_FAILED, error, document_id),
            document_id,
        )

    def reset_for_reindex(self, document_id: str) -> None:
        self._execute_update(
            "resetting document for reindex",
            """
            UPDATE documents
            SET status = %s, is_indexed = false, indexed_at = NULL,
                processing_error = NULL, updated_at = NOW()
            WHERE id = %s AND deleted_at IS NULL
            """,
            (STATUS_PENDING, document_id),
            document_id,
        )

    def increment_view_count(self, document_id: str) -> None:
        self._execute_update(
            "incrementing view count",
            """
            UPDATE documents SET view_count = view_count + 1
            WHERE id = %s AND deleted_at IS NULL
            """,
            (document_id,),
            document_id,
        )

    def increment_download_count(self, document_id: str) -> None:
        self._execute_update(
            "incrementing download count",
            """
            UPDATE documents SET download_count = download_count + 1
            WHERE id = %s AND deleted_at IS NULL
            """,
            (document_id,),
            document_id,
        )

    def soft_delete(self, document_id: str) -> None:
        """Hide the document from every query and free its hash for re-upload."""
        self._execute_update(
            "deleting document",
            """
            UPDATE documents SET deleted_at = NOW(), updated_at = NOW()
            WHERE id = %s AND deleted_at IS NULL
            """,
            (document_id,),
            document_id,
        )

    def purge(self, document_id: str) -> None:
        """Remove the row entirely. Used to roll back a failed upload."""
        with _connection("purging document") as conn:
            conn.execute("DELETE FROM documents WHERE id = %s", (document_id,))
            conn.commit()

    def _execute_update(
        self,
        action: str,
        query: str,
        params: tuple[Any, ...],
        document_id: str,
    ) -> None:
        with _connection(action) as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                if cur.rowcount == 0:
                    raise DocumentNotFoundError(f"Document {document_id} not found")
            conn.commit()
