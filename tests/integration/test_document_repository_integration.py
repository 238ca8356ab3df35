from datetime import timedelta

import pytest

from app.database.connection import get_connection
from app.database.models import STATUS_ACTIVE, STATUS_FAILED, STATUS_PENDING
from app.database.repositories.document_repository import DocumentRepository
from app.exceptions import ConflictError, DocumentNotFoundError


@pytest.mark.integration
class TestDocumentRepositoryIntegration:
    def test_create_and_find(self, make_document) -> None:
        repo = DocumentRepository()
        document = make_document(metadata={"year": 2026})

        created = repo.create(document)
        found = repo.find_by_id(document.id)

        assert created.status == STATUS_PENDING
        assert found.metadata == {"year": 2026}
        assert found.created_at is not None
        assert repo.find_by_hash(document.hash).id == document.id  # type: ignore[union-attr]

    def test_duplicate_hash_conflicts(self, make_document) -> None:
        repo = DocumentRepository()
        first = repo.create(make_document(hash="b" * 64))

        with pytest.raises(ConflictError) as exc_info:
            repo.create(make_document(hash="b" * 64))

        assert exc_info.value.existing_id == first.id

    def test_soft_delete_frees_hash(self, make_document) -> None:
        repo = DocumentRepository()
        first = repo.create(make_document(hash="c" * 64))

        repo.soft_delete(first.id)
        second = repo.create(make_document(hash="c" * 64))

        with pytest.raises(DocumentNotFoundError):
            repo.find_by_id(first.id)
        assert repo.find_by_hash("c" * 64).id == second.id  # type: ignore[union-attr]

    def test_status_transitions(self, make_document) -> None:
        repo = DocumentRepository()
        document = repo.create(make_document())

        repo.mark_indexed(document.id)
        indexed = repo.find_by_id(document.id)
        assert indexed.status == STATUS_ACTIVE
        assert indexed.is_indexed is True

        repo.mark_failed(document.id, "PermanentError: corrupt")
        failed = repo.find_by_id(document.id)
        assert failed.status == STATUS_FAILED
        assert failed.is_indexed is False
        assert failed.processing_error == "PermanentError: corrupt"

        repo.reset_for_reindex(document.id)
        assert repo.find_by_id(document.id).status == STATUS_PENDING

    def test_counters_and_metadata(self, make_document) -> None:
        repo = DocumentRepository()
        document = repo.create(make_document())

        repo.increment_view_count(document.id)
        repo.increment_download_count(document.id)
        updated = repo.update_metadata(document.id, description="Edited")

        assert updated.view_count == 1
        assert updated.download_count == 1
        assert updated.description == "Edited"
        assert updated.title == "Quarterly report"

    def test_find_stale_pending(self, make_document) -> None:
        repo = DocumentRepository()
        stale = repo.create(make_document())
        repo.create(make_document())
        with get_connection() as conn:
            conn.execute(
                "UPDATE documents SET updated_at = updated_at - %s WHERE id = %s",
                (timedelta(hours=1), stale.id),
            )
            conn.commit()

        found = repo.find_stale_pending(older_than_seconds=900, limit=100)

        assert stale.id in [document.id for document in found]
        repo.touch(stale.id)
        assert stale.id not in [
            document.id for document in repo.find_stale_pending(older_than_seconds=900, limit=100)
        ]

    def test_missing_document_updates_raise(self, make_document) -> None:
        repo = DocumentRepository()
        missing = make_document()

        with pytest.raises(DocumentNotFoundError):
            repo.mark_indexed(missing.id)

    def test_purge_removes_row(self, make_document) -> None:
        repo = DocumentRepository()
        document = repo.create(make_document())

        repo.purge(document.id)

        assert repo.find_by_hash(document.hash) is None
