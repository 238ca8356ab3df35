from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import psycopg
import pytest
from psycopg import errors as pg_errors

from app.database.models import DocumentRecord
from app.database.repositories.document_repository import DocumentRepository
from app.exceptions import ConflictError, DocumentNotFoundError, TransientError

_PATCH = "app.database.repositories.document_repository.get_connection"


def _make_row(**overrides: object) -> dict:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    row = {
        "id": "0b8f6c1e-9a43-4d0e-8f0e-6f1c2d3e4a5b",
        "title": "Annual report",
        "description": None,
        "collection_id": "c0ffee00-0000-4000-8000-000000000001",
        "uploader_id": "beef0000-0000-4000-8000-000000000002",
        "status": "pending",
        "original_filename": "report.pdf",
        "file_type": "PDF",
        "mime_type": "application/pdf",
        "file_size": 2048,
        "storage_path": "documents/c0ffee00/0b8f6c1e.pdf",
        "thumbnail_path": None,
        "hash": "a" * 64,
        "metadata": None,
        "is_indexed": False,
        "indexed_at": None,
        "processing_error": None,
        "view_count": 0,
        "download_count": 0,
        "created_at": now,
        "updated_at": now,
        "deleted_at": None,
    }
    row.update(overrides)
    return row


def _make_record() -> DocumentRecord:
    return DocumentRecord(
        id="0b8f6c1e-9a43-4d0e-8f0e-6f1c2d3e4a5b",
        title="Annual report",
        collection_id="c0ffee00-0000-4000-8000-000000000001",
        uploader_id="beef0000-0000-4000-8000-000000000002",
        original_filename="report.pdf",
        file_type="PDF",
        mime_type="application/pdf",
        file_size=2048,
        storage_path="documents/c0ffee00/0b8f6c1e.pdf",
        hash="a" * 64,
    )


def _mock_connection(mock_get_conn: MagicMock) -> tuple[MagicMock, MagicMock]:
    """Wire up a mock connection + cursor and return (mock_conn, mock_cursor)."""
    mock_cursor = MagicMock()
    mock_conn = MagicMock()
    mock_conn.cursor.return_value.__enter__ = MagicMock(return_value=mock_cursor)
    mock_conn.cursor.return_value.__exit__ = MagicMock(return_value=False)
    mock_get_conn.return_value.__enter__ = MagicMock(return_value=mock_conn)
    mock_get_conn.return_value.__exit__ = MagicMock(return_value=False)
    return mock_conn, mock_cursor


class TestCreate:
    @patch(_PATCH)
    def test_returns_inserted_record(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = _make_row()

        result = DocumentRepository().create(_make_record())

        assert result.title == "Annual report"
        assert result.description == ""
        assert result.metadata == {}
        mock_conn.commit.assert_called_once()

    @patch(_PATCH)
    def test_unique_violation_becomes_conflict_with_existing_id(
        self, mock_get_conn: MagicMock
    ) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.execute.side_effect = [pg_errors.UniqueViolation("dup"), None]
        mock_cursor.fetchone.return_value = _make_row(id="11111111-1111-4111-8111-111111111111")

        with pytest.raises(ConflictError) as exc_info:
            DocumentRepository().create(_make_record())

        assert exc_info.value.existing_id == "11111111-1111-4111-8111-111111111111"

    @patch(_PATCH)
    def test_operational_error_is_transient(self, mock_get_conn: MagicMock) -> None:
        mock_get_conn.side_effect = psycopg.OperationalError("connection refused")

        with pytest.raises(TransientError, match="Database unavailable"):
            DocumentRepository().create(_make_record())


class TestFindById:
    @patch(_PATCH)
    def test_returns_record_when_found(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = _make_row(status="active", is_indexed=True)

        result = DocumentRepository().find_by_id("0b8f6c1e-9a43-4d0e-8f0e-6f1c2d3e4a5b")

        assert isinstance(result, DocumentRecord)
        assert result.status == "active"
        assert result.is_indexed is True

    @patch(_PATCH)
    def test_raises_not_found_when_missing(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        with pytest.raises(DocumentNotFoundError, match="Document missing not found"):
            DocumentRepository().find_by_id("missing")

    @patch(_PATCH)
    def test_query_excludes_soft_deleted(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = _make_row()

        DocumentRepository().find_by_id("x")

        sql = mock_cursor.execute.call_args[0][0]
        assert "deleted_at IS NULL" in sql


class TestFindByHash:
    @patch(_PATCH)
    def test_returns_none_when_no_match(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert DocumentRepository().find_by_hash("b" * 64) is None


class TestFindStalePending:
    @patch(_PATCH)
    def test_passes_threshold_and_limit(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = [_make_row()]

        result = DocumentRepository().find_stale_pending(900, 50)

        assert len(result) == 1
        params = mock_cursor.execute.call_args[0][1]
        assert params == ("pending", 900, 50)


class TestUpdates:
    @patch(_PATCH)
    def test_mark_indexed_commits(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 1

        DocumentRepository().mark_indexed("doc-1")

        sql, params = mock_cursor.execute.call_args[0]
        assert "is_indexed = true" in sql
        assert params == ("active", "doc-1")
        mock_conn.commit.assert_called_once()

    @patch(_PATCH)
    def test_mark_indexed_missing_row_raises(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 0

        with pytest.raises(DocumentNotFoundError):
            DocumentRepository().mark_indexed("gone")
        mock_conn.commit.assert_not_called()

    @patch(_PATCH)
    def test_mark_failed_keeps_error(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 1

        DocumentRepository().mark_failed("doc-1", "PermanentError: corrupt")

        params = mock_cursor.execute.call_args[0][1]
        assert params == ("failed", "PermanentError: corrupt", "doc-1")

    @patch(_PATCH)
    def test_update_metadata_returns_updated_record(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = _make_row(title="Renamed")

        result = DocumentRepository().update_metadata("doc-1", title="Renamed")

        assert result.title == "Renamed"
        params = mock_cursor.execute.call_args[0][1]
        assert params[0] == "Renamed"
        assert params[1] is None
        assert params[2] is None

    @patch(_PATCH)
    def test_increment_view_count(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 1

        DocumentRepository().increment_view_count("doc-1")

        sql = mock_cursor.execute.call_args[0][0]
        assert "view_count = view_count + 1" in sql

    @patch(_PATCH)
    def test_purge_deletes_row(self, mock_get_conn: MagicMock) -> None:
        mock_conn, _cursor = _mock_connection(mock_get_conn)

        DocumentRepository().purge("doc-1")

        mock_conn.execute.assert_called_once_with(
            "DELETE FROM documents WHERE id = %s", ("doc-1",)
        )
        mock_conn.commit.assert_called_once()
