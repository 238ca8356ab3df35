from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg.rows import dict_row

from app.database.connection import get_connection
from app.exceptions import TransientError
from app.search.base import BaseSearchEngine, query_terms
from app.search.models import FACET_FIELDS, SearchDocument, SearchHit, SearchResults

TITLE_BOOST = 2.0
TITLE_SIMILARITY_THRESHOLD = 0.3


@contextmanager
def _search_connection(action: str) -> Generator[psycopg.Connection[Any], None, None]:
    try:
        with get_connection() as conn:
            yield conn
    except psycopg.OperationalError as exc:
        raise TransientError(f"Search index unavailable while {action}: {exc}") from exc


def build_tsquery(terms: list[str]) -> str:
    """OR of prefix terms, e.g. ``quick:* | fox:*``. Terms are word tokens only."""
    return " | ".join(f"{term}:*" for term in terms)


class PostgresSearchEngine(BaseSearchEngine):
    """Search over the search_documents table.

    Relevance is ts_rank over a weighted tsvector (title A, description B,
    content C) plus a pg_trgm word_similarity boost on the title, which also
    lets misspelled title words match.
    """

    def upsert(self, document: SearchDocument) -> None:
        with _search_connection(f"indexing {document.id}") as conn:
            conn.execute(
                """
                INSERT INTO search_documents (
                    id, title, description, content, file_type, mime_type,
                    collection_id, uploader_id, status, created_at, indexed_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
                ON CONFLICT (id) DO UPDATE SET
                    title = EXCLUDED.title,
                    description = EXCLUDED.description,
                    content = EXCLUDED.content,
                    file_type = EXCLUDED.file_type,
                    mime_type = EXCLUDED.mime_type,
                    collection_id = EXCLUDED.collection_id,
                    uploader_id = EXCLUDED.uploader_id,
                    status = EXCLUDED.status,
                    created_at = EXCLUDED.created_at,
                    indexed_at = NOW()
                """,
                (
                    document.id,
                    document.title,
                    document.description,
                    document.content,
                    document.file_type,
                    document.mime_type,
                    document.collection_id,
                    document.uploader_id,
                    document.status,
                    document.created_at,
                ),
            )
            conn.commit()

    def delete(self, document_id: str) -> None:
        with _search_connection(f"removing {document_id}") as conn:
            conn.execute("DELETE FROM search_documents WHERE id = %s", (document_id,))
            conn.commit()

    def query(self, text: str, page: int = 1, page_size: int = 20) -> SearchResults:
        self._validate_page(page, page_size)
        terms = query_terms(text)
        params: dict[str, Any] = {
            "text": " ".join(terms),
            "tsq": build_tsquery(terms),
            "boost": TITLE_BOOST,
            "threshold": TITLE_SIMILARITY_THRESHOLD,
            "limit": page_size,
            "offset": (page - 1) * page_size,
        }
        if terms:
            matched = """
                SELECT id, title, description, file_type, collection_id, status,
                       ts_rank(search_vector, to_tsquery('english', %(tsq)s))
                       + %(boost)s * word_similarity(%(text)s, title) AS score
                FROM search_documents
                WHERE search_vector @@ to_tsquery('english', %(tsq)s)
                   OR word_similarity(%(text)s, title) > %(threshold)s
            """
        else:
            matched = """
                SELECT id, title, description, file_type, collection_id, status,
                       0.0::float8 AS score
                FROM search_documents
            """

        with _search_connection("querying") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    WITH matched AS ({matched})
                    SELECT * FROM matched
                    ORDER BY score DESC, id
                    LIMIT %(limit)s OFFSET %(offset)s
                    """,
                    params,
                )
                rows = cur.fetchall()
                cur.execute(
                    f"""
                    WITH matched AS ({matched})
                    SELECT file_type, status, collection_id::text AS collection_id,
                           COUNT(*) AS n,
                           GROUPING(file_type) AS g_file_type,
                           GROUPING(status) AS g_status,
                           GROUPING(collection_id) AS g_collection_id
                    FROM matched
                    GROUP BY GROUPING SETS ((file_type), (status), (collection_id), ())
                    """,
                    params,
                )
                facet_rows = cur.fetchall()

        total, facets = _collect_facets(facet_rows)
        hits = [
            SearchHit(
                id=str(row["id"]),
                title=row["title"],
                description=row["description"],
                file_type=row["file_type"],
                collection_id=str(row["collection_id"]),
                status=row["status"],
                score=float(row["score"]),
            )
            for row in rows
        ]
        return SearchResults(
            hits=hits, total=total, page=page, page_size=page_size, facets=facets
        )


def _collect_facets(rows: list[dict[str, Any]]) -> tuple[int, dict[str, dict[str, int]]]:
    total = 0
    facets: dict[str, dict[str, int]] = {name: {} for name in FACET_FIELDS}
    for row in rows:
        grouped = [name for name in FACET_FIELDS if row[f"g_{name}"] == 0]
        if not grouped:
            total = int(row["n"])
            continue
        name = grouped[0]
        facets[name][str(row[name])] = int(row["n"])
    return total, facets
