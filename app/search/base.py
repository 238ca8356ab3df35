import re
from abc import ABC, abstractmethod

from app.exceptions import ValidationError
from app.search.models import SearchDocument, SearchResults

_TERM_RE = re.compile(r"\w+", re.UNICODE)


def query_terms(text: str) -> list[str]:
    """Lower-cased word tokens of a free-text query."""
    return [term.lower() for term in _TERM_RE.findall(text)]


class BaseSearchEngine(ABC):
    """Contract for full-text search backends."""

    def __init__(self, max_page_size: int = 100) -> None:
        self._max_page_size = max_page_size

    @abstractmethod
    def upsert(self, document: SearchDocument) -> None:
        """Insert or replace the entry for document.id."""

    @abstractmethod
    def delete(self, document_id: str) -> None:
        """Remove the entry for document_id. Unknown ids are a no-op."""

    @abstractmethod
    def query(self, text: str, page: int = 1, page_size: int = 20) -> SearchResults:
        """Fuzzy multi-field search with title boosting and facet counts.

        Raises:
            ValidationError: if page or page_size is out of range.
        """

    def _validate_page(self, page: int, page_size: int) -> None:
        if page < 1:
            raise ValidationError("page must be >= 1")
        if page_size < 1 or page_size > self._max_page_size:
            raise ValidationError(f"page_size must be between 1 and {self._max_page_size}")
