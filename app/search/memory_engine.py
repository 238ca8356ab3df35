import threading
from collections import Counter
from difflib import SequenceMatcher

from app.search.base import BaseSearchEngine, query_terms
from app.search.models import FACET_FIELDS, SearchDocument, SearchHit, SearchResults

FIELD_WEIGHTS = {"title": 3.0, "description": 2.0, "content": 1.0}
FUZZY_THRESHOLD = 0.8


def term_similarity(term: str, tokens: set[str]) -> float:
    """Best match of term against tokens: 1.0 exact or prefix, else difflib ratio."""
    if term in tokens:
        return 1.0
    best = 0.0
    for token in tokens:
        if token.startswith(term):
            return 1.0
        ratio = SequenceMatcher(None, term, token).ratio()
        if ratio > best:
            best = ratio
    return best if best >= FUZZY_THRESHOLD else 0.0


class InMemorySearchEngine(BaseSearchEngine):
    """Dictionary-backed engine for local development and tests."""

    def __init__(self, max_page_size: int = 100) -> None:
        super().__init__(max_page_size)
        self._lock = threading.Lock()
        self._documents: dict[str, SearchDocument] = {}
        self._tokens: dict[str, dict[str, set[str]]] = {}

    def upsert(self, document: SearchDocument) -> None:
        tokens = {
            name: set(query_terms(getattr(document, name))) for name in FIELD_WEIGHTS
        }
        with self._lock:
            self._documents[document.id] = document
            self._tokens[document.id] = tokens

    def delete(self, document_id: str) -> None:
        with self._lock:
            self._documents.pop(document_id, None)
            self._tokens.pop(document_id, None)

    def get(self, document_id: str) -> SearchDocument | None:
        with self._lock:
            return self._documents.get(document_id)

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def query(self, text: str, page: int = 1, page_size: int = 20) -> SearchResults:
        self._validate_page(page, page_size)
        terms = query_terms(text)
        with self._lock:
            snapshot = [(doc, self._tokens[doc.id]) for doc in self._documents.values()]

        scored: list[tuple[float, SearchDocument]] = []
        for document, tokens in snapshot:
            score = self._score(terms, tokens)
            if terms and score <= 0:
                continue
            scored.append((score, document))
        scored.sort(key=lambda item: (-item[0], item[1].id))

        facets = {
            name: dict(Counter(getattr(doc, name) for _, doc in scored))
            for name in FACET_FIELDS
        }
        start = (page - 1) * page_size
        hits = [
            SearchHit(
                id=doc.id,
                title=doc.title,
                description=doc.description,
                file_type=doc.file_type,
                collection_id=doc.collection_id,
                status=doc.status,
                score=round(score, 4),
            )
            for score, doc in scored[start : start + page_size]
        ]
        return SearchResults(
            hits=hits, total=len(scored), page=page, page_size=page_size, facets=facets
        )

    def _score(self, terms: list[str], tokens: dict[str, set[str]]) -> float:
        score = 0.0
        for term in terms:
            score += max(
                weight * term_similarity(term, tokens[name])
                for name, weight in FIELD_WEIGHTS.items()
            )
        return score
