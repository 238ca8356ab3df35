from typing import Any

from app.database.models import DocumentRecord
from app.database.repositories.document_repository import DocumentRepository
from app.events.base import BaseEventChannel
from app.events.models import TOPIC_DOCUMENT_DELETED, utc_now
from app.events.publisher import publish_ingestion_event
from app.exceptions import ValidationError
from app.ingestion.dispatcher import BackgroundDispatcher
from app.logging.logger import Log
from app.storage.base import BaseObjectStore


class DocumentService:
    """Operations on already ingested documents."""

    def __init__(
        self,
        doc_repo: DocumentRepository,
        object_store: BaseObjectStore,
        event_channel: BaseEventChannel,
        dispatcher: BackgroundDispatcher,
        presign_ttl_seconds: int = 900,
    ) -> None:
        self._doc_repo = doc_repo
        self._object_store = object_store
        self._event_channel = event_channel
        self._dispatcher = dispatcher
        self._presign_ttl_seconds = presign_ttl_seconds

    def get(self, document_id: str) -> DocumentRecord:
        return self._doc_repo.find_by_id(document_id)

    def update_metadata(
        self,
        document_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DocumentRecord:
        """Update the fields that were provided.

        Raises:
            ValidationError: if title is provided but blank.
            DocumentNotFoundError: if the document does not exist.
        """
        if title is not None and not title.strip():
            raise ValidationError("Title is required")
        return self._doc_repo.update_metadata(
            document_id,
            title=title.strip() if title is not None else None,
            description=description,
            metadata=metadata,
        )

    def delete(self, document_id: str) -> None:
        """Soft delete the row, remove its blobs (best effort), announce the deletion."""
        document = self._doc_repo.find_by_id(document_id)
        self._doc_repo.soft_delete(document_id)

        for path in (document.storage_path, document.thumbnail_path):
            if not path:
                continue
            try:
                self._object_store.delete(path)
            except Exception as exc:
                Log.warning(f"Could not delete blob {path} of document {document_id}: {exc}")
        Log.info(f"Deleted document {document_id}")

        payload = {
            "id": document_id,
            "collection_id": document.collection_id,
            "deleted_at": utc_now().isoformat(),
        }
        self._dispatcher.submit(
            f"deletion event for {document_id}",
            lambda: self._event_channel.publish(TOPIC_DOCUMENT_DELETED, document_id, payload),
        )

    def record_view(self, document_id: str) -> None:
        self._doc_repo.increment_view_count(document_id)

    def record_download(self, document_id: str) -> None:
        self._doc_repo.increment_download_count(document_id)

    def download_url(self, document_id: str, ttl_seconds: int | None = None) -> str:
        """Presigned URL for the document bytes; also counts as a download."""
        document = self._doc_repo.find_by_id(document_id)
        url = self._object_store.presign(
            document.storage_path, ttl_seconds or self._presign_ttl_seconds
        )
        self._doc_repo.increment_download_count(document_id)
        return url

    def reindex(self, document_id: str) -> DocumentRecord:
        """Reset indexing state and emit a fresh ingestion event."""
        self._doc_repo.reset_for_reindex(document_id)
        document = self._doc_repo.find_by_id(document_id)
        publish_ingestion_event(self._event_channel, document)
        Log.info(f"Document {document_id} queued for reindexing")
        return document
