import time
from collections.abc import Callable

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config.settings import Settings
from app.database.repositories.document_repository import DocumentRepository
from app.events.base import BaseEventChannel
from app.events.exceptions import MalformedEventError
from app.events.models import ChannelMessage, IngestionEvent, build_dead_letter, dead_letter_topic
from app.exceptions import DocumentIndexError, DocumentNotFoundError, InternalError, TransientError
from app.logging.logger import Log
from app.processor.processor import IndexProcessor


class IndexingRunner:
    """Handle one ingestion message: retry transient failures, dead-letter the rest.

    Retries happen inside the handling of a single delivery, so the channel
    does not hand the same document to another consumer while a retry is
    pending. The runner only raises when the dead-letter publish itself
    fails, which leaves the offset uncommitted for redelivery.
    """

    def __init__(
        self,
        processor: IndexProcessor,
        doc_repo: DocumentRepository,
        event_channel: BaseEventChannel,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._processor = processor
        self._doc_repo = doc_repo
        self._event_channel = event_channel
        self._settings = settings
        self._sleep = sleep

    def handle(self, message: ChannelMessage) -> None:
        try:
            event = IngestionEvent.from_payload(message.payload)
        except MalformedEventError as exc:
            Log.error(f"Malformed event at {message.topic}[{message.partition}]@{message.offset}: {exc}")
            self._dead_letter(message, None, exc, attempts=0)
            return

        attempts = 0

        def attempt() -> None:
            nonlocal attempts
            attempts += 1
            self._processor.process(event, attempt=attempts)

        try:
            self._retrying(event.id)(attempt)
        except DocumentIndexError as exc:
            self._dead_letter(message, event.id, exc, attempts)
        except Exception as exc:
            Log.exception(f"Unexpected error indexing document {event.id}")
            self._dead_letter(message, event.id, InternalError(str(exc)), attempts)
        else:
            Log.info(f"Document {event.id} indexed after {attempts} attempt(s)")

    def _retrying(self, document_id: str) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self._settings.indexer_max_attempts),
            wait=wait_exponential(
                multiplier=self._settings.indexer_backoff_base_seconds,
                max=self._settings.indexer_backoff_max_seconds,
            ),
            retry=retry_if_exception_type(TransientError),
            sleep=self._sleep,
            before_sleep=lambda state: self._record_retry(document_id, state),
            reraise=True,
        )

    def _record_retry(self, document_id: str, state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        Log.warning(
            f"Indexing document {document_id} failed on attempt {state.attempt_number}, "
            f"retrying in {delay:.1f}s: {exc}"
        )
        try:
            self._doc_repo.record_processing_error(document_id, str(exc))
        except DocumentIndexError as repo_exc:
            Log.warning(f"Could not record retry activity for {document_id}: {repo_exc}")

    def _dead_letter(
        self,
        message: ChannelMessage,
        document_id: str | None,
        exc: Exception,
        attempts: int,
    ) -> None:
        reason = f"{type(exc).__name__}: {exc}"
        self._event_channel.publish(
            dead_letter_topic(message.topic),
            message.key,
            build_dead_letter(message, reason, attempts),
        )
        Log.error(
            f"Document {document_id or message.key} dead-lettered after "
            f"{attempts} attempt(s): {reason}"
        )
        if document_id is None:
            return
        try:
            if self._doc_repo.find_by_id(document_id).is_indexed:
                # An indexed row only goes back through an explicit re-index.
                Log.info(f"Dead-lettered document {document_id} is already indexed")
                return
            self._doc_repo.mark_failed(document_id, reason)
        except DocumentNotFoundError:
            Log.info(f"Dead-lettered document {document_id} no longer exists")
        except DocumentIndexError as repo_exc:
            Log.warning(f"Could not mark document {document_id} failed: {repo_exc}")
