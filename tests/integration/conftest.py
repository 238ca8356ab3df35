import os
import uuid
from collections.abc import Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest

from app.config.settings import Settings
from app.database.connection import close_pool, get_connection, init_pool
from app.database.models import DocumentRecord

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "app" / "database" / "schema.sql"


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "docindex_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        with get_connection() as conn:
            conn.execute(SCHEMA_PATH.read_text(encoding="utf-8"))
            conn.commit()
    except Exception as e:
        close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(
    integration_pool: None,
) -> Generator[list[tuple[str, str]], None, None]:
    """Collects (table, key) pairs to delete after the test."""
    cleanup: list[tuple[str, str]] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for table, key in cleanup:
                if table == "documents":
                    cur.execute("DELETE FROM documents WHERE id = %s", (key,))
                elif table == "search_documents":
                    cur.execute("DELETE FROM search_documents WHERE id = %s", (key,))
                elif table == "topic":
                    cur.execute("DELETE FROM channel_messages WHERE topic = %s", (key,))
                    cur.execute("DELETE FROM channel_offsets WHERE topic = %s", (key,))
        conn.commit()


@pytest.fixture
def make_document(
    integration_cleanup: list[tuple[str, str]],
) -> Any:
    """Factory for unsaved DocumentRecords whose rows are removed after the test."""

    def _make(**overrides: Any) -> DocumentRecord:
        document_id = str(uuid.uuid4())
        fields: dict[str, Any] = {
            "id": document_id,
            "title": "Quarterly report",
            "collection_id": str(uuid.uuid4()),
            "uploader_id": str(uuid.uuid4()),
            "original_filename": "report.pdf",
            "file_type": "PDF",
            "mime_type": "application/pdf",
            "file_size": 1024,
            "storage_path": f"documents/x/{document_id}.pdf",
            "hash": uuid.uuid4().hex * 2,
        }
        fields.update(overrides)
        integration_cleanup.append(("documents", fields["id"]))
        return DocumentRecord(**fields)

    return _make


@pytest.fixture
def topic(integration_cleanup: list[tuple[str, str]]) -> str:
    """A topic name unique to the test."""
    name = f"test.{uuid.uuid4().hex[:12]}"
    integration_cleanup.append(("topic", name))
    integration_cleanup.append(("topic", f"{name}-dlq"))
    return name
