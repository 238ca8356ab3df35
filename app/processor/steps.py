from datetime import datetime

from app.database.models import STATUS_ACTIVE
from app.database.repositories.document_repository import DocumentRepository
from app.events.base import BaseEventChannel
from app.events.models import TOPIC_DOCUMENT_INDEXED, utc_now
from app.exceptions import DocumentIndexError, DocumentNotFoundError, TransientError
from app.extraction.pipeline import ExtractionPipeline
from app.logging.logger import Log
from app.processor.pipeline import IndexingContext, PipelineStep
from app.search.base import BaseSearchEngine
from app.search.models import SearchDocument
from app.storage.base import BaseObjectStore
from app.storage.exceptions import BlobNotFoundError


def _parse_timestamp(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class LoadDocumentStep(PipelineStep):
    def __init__(self, doc_repo: DocumentRepository) -> None:
        self._doc_repo = doc_repo

    def run(self, context: IndexingContext) -> IndexingContext:
        try:
            context.document = self._doc_repo.find_by_id(context.document_id)
        except DocumentNotFoundError:
            Log.info(f"Document {context.document_id} no longer exists, skipping")
            context.finish("document deleted")
        return context


class DownloadBlobStep(PipelineStep):
    def __init__(self, object_store: BaseObjectStore) -> None:
        self._object_store = object_store

    def run(self, context: IndexingContext) -> IndexingContext:
        path = context.event.storage_path
        try:
            context.raw_bytes = self._object_store.get(path)
        except BlobNotFoundError as exc:
            # The blob may not be visible yet; treated like any download failure.
            raise TransientError(f"Blob {path} not found: {exc}") from exc
        Log.info(f"Downloaded {len(context.raw_bytes)} bytes for document {context.document_id}")
        return context


class ExtractTextStep(PipelineStep):
    def __init__(self, pipeline: ExtractionPipeline) -> None:
        self._pipeline = pipeline

    def run(self, context: IndexingContext) -> IndexingContext:
        result = self._pipeline.extract(context.raw_bytes, context.event.mime_type)
        context.extraction = result
        Log.info(
            f"Extracted {len(result.text)} chars from document {context.document_id} "
            f"via {result.extractor} ({result.provenance})"
        )
        return context


class UpsertIndexStep(PipelineStep):
    def __init__(self, search_engine: BaseSearchEngine) -> None:
        self._search_engine = search_engine

    def run(self, context: IndexingContext) -> IndexingContext:
        if context.extraction is None:
            raise ValueError("IndexingContext.extraction must be set before indexing")
        event = context.event
        document = context.document
        search_document = SearchDocument(
            id=event.id,
            title=document.title if document else event.title,
            description=document.description if document else event.description,
            content=context.extraction.text,
            file_type=event.file_type,
            mime_type=event.mime_type,
            collection_id=event.collection_id,
            uploader_id=event.uploader_id,
            status=STATUS_ACTIVE,
            created_at=document.created_at if document else _parse_timestamp(event.created_at),
        )
        self._search_engine.upsert(search_document)
        context.search_document = search_document
        return context


class MarkIndexedStep(PipelineStep):
    def __init__(self, doc_repo: DocumentRepository, search_engine: BaseSearchEngine) -> None:
        self._doc_repo = doc_repo
        self._search_engine = search_engine

    def run(self, context: IndexingContext) -> IndexingContext:
        try:
            self._doc_repo.mark_indexed(context.document_id)
        except DocumentNotFoundError:
            self._search_engine.delete(context.document_id)
            Log.info(
                f"Document {context.document_id} was deleted during indexing; "
                f"index entry removed"
            )
            context.finish("document deleted during indexing")
            return context
        Log.info(f"Document {context.document_id} marked as indexed")
        return context


class PublishIndexedStep(PipelineStep):
    def __init__(self, event_channel: BaseEventChannel) -> None:
        self._event_channel = event_channel

    def run(self, context: IndexingContext) -> IndexingContext:
        extraction = context.extraction
        try:
            self._event_channel.publish(
                TOPIC_DOCUMENT_INDEXED,
                context.document_id,
                {
                    "id": context.document_id,
                    "collection_id": context.event.collection_id,
                    "provenance": extraction.provenance if extraction else "",
                    "extractor": extraction.extractor if extraction else "",
                    "content_length": len(extraction.text) if extraction else 0,
                    "indexed_at": utc_now().isoformat(),
                },
            )
        except DocumentIndexError as exc:
            # The row is already active and searchable at this point.
            Log.warning(f"Could not publish indexed event for {context.document_id}: {exc}")
        return context
