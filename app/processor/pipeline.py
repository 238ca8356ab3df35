from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.database.models import DocumentRecord
from app.events.models import IngestionEvent
from app.extraction.models import ExtractionResult
from app.search.models import SearchDocument


@dataclass(slots=True)
class IndexingContext:
    event: IngestionEvent
    attempt: int = 1
    document: DocumentRecord | None = None
    raw_bytes: bytes = b""
    extraction: ExtractionResult | None = None
    search_document: SearchDocument | None = None
    finished: bool = False
    finish_reason: str = ""

    @property
    def document_id(self) -> str:
        return self.event.id

    def finish(self, reason: str) -> None:
        """Stop the remaining steps; the event is considered handled."""
        self.finished = True
        self.finish_reason = reason


class PipelineStep(ABC):
    @abstractmethod
    def run(self, context: IndexingContext) -> IndexingContext:
        raise NotImplementedError
