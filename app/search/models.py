from dataclasses import dataclass, field
from datetime import datetime

FACET_FIELDS = ("file_type", "status", "collection_id")


@dataclass(frozen=True)
class SearchDocument:
    """The indexed view of a document, keyed by the document id."""

    id: str
    title: str
    description: str
    content: str
    file_type: str
    mime_type: str
    collection_id: str
    uploader_id: str
    status: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class SearchHit:
    id: str
    title: str
    description: str
    file_type: str
    collection_id: str
    status: str
    score: float


@dataclass
class SearchResults:
    """One page of hits plus facet counts over the whole match set."""

    hits: list[SearchHit]
    total: int
    page: int
    page_size: int
    facets: dict[str, dict[str, int]] = field(default_factory=dict)
