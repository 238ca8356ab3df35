from app.database.repositories.document_repository import DocumentRepository
from app.events.base import BaseEventChannel
from app.events.models import IngestionEvent
from app.extraction.pipeline import ExtractionPipeline
from app.logging.logger import Log
from app.processor.pipeline import IndexingContext, PipelineStep
from app.processor.steps import (
    DownloadBlobStep,
    ExtractTextStep,
    LoadDocumentStep,
    MarkIndexedStep,
    PublishIndexedStep,
    UpsertIndexStep,
)
from app.search.base import BaseSearchEngine
from app.storage.base import BaseObjectStore


class IndexProcessor:
    """Runs the indexing steps for one ingestion event.

    Pipeline: load -> download -> extract -> upsert -> mark indexed -> publish.
    Every step is safe to repeat, so a redelivered or retried event converges
    on the same index entry.
    """

    def __init__(self, steps: list[PipelineStep]) -> None:
        self._steps = steps

    def process(self, event: IngestionEvent, attempt: int = 1) -> IndexingContext:
        Log.info(f"Indexing document {event.id} (attempt {attempt})")
        context = IndexingContext(event=event, attempt=attempt)
        for step in self._steps:
            context = step.run(context)
            if context.finished:
                Log.info(f"Indexing of {event.id} finished early: {context.finish_reason}")
                break
        return context


def build_index_processor(
    doc_repo: DocumentRepository,
    object_store: BaseObjectStore,
    pipeline: ExtractionPipeline,
    search_engine: BaseSearchEngine,
    event_channel: BaseEventChannel,
) -> IndexProcessor:
    """Build an IndexProcessor with the standard step order."""
    return IndexProcessor(
        steps=[
            LoadDocumentStep(doc_repo),
            DownloadBlobStep(object_store),
            ExtractTextStep(pipeline),
            UpsertIndexStep(search_engine),
            MarkIndexedStep(doc_repo, search_engine),
            PublishIndexedStep(event_channel),
        ]
    )
