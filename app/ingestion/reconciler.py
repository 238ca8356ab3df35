from app.database.repositories.document_repository import DocumentRepository
from app.events.base import BaseEventChannel
from app.events.publisher import publish_ingestion_event
from app.logging.logger import Log


class Reconciler:
    """Re-emits ingestion events for documents stuck in pending.

    Emission after upload is fire-and-forget, so a lost event would leave a
    document pending forever. Documents whose row saw activity within
    pending_after_seconds (including indexer retries) are left alone.
    """

    def __init__(
        self,
        doc_repo: DocumentRepository,
        event_channel: BaseEventChannel,
        pending_after_seconds: int,
        batch_size: int = 100,
    ) -> None:
        self._doc_repo = doc_repo
        self._event_channel = event_channel
        self._pending_after_seconds = pending_after_seconds
        self._batch_size = batch_size

    def run_once(self) -> int:
        """Run one sweep. Returns the number of events re-emitted."""
        stale = self._doc_repo.find_stale_pending(self._pending_after_seconds, self._batch_size)
        emitted = 0
        for document in stale:
            try:
                publish_ingestion_event(self._event_channel, document)
                self._doc_repo.touch(document.id)
                emitted += 1
            except Exception as exc:
                Log.warning(f"Could not re-emit ingestion event for {document.id}: {exc}")
        Log.info(f"Reconciliation re-emitted {emitted} of {len(stale)} stale pending documents")
        return emitted
