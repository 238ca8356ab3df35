from app.config.settings import Settings
from app.search.base import BaseSearchEngine
from app.search.memory_engine import InMemorySearchEngine
from app.search.postgres_engine import PostgresSearchEngine


class SearchEngineFactory:
    """Creates the configured search backend."""

    BACKENDS: dict[str, type[BaseSearchEngine]] = {
        "memory": InMemorySearchEngine,
        "postgres": PostgresSearchEngine,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseSearchEngine:
        backend = settings.search_backend.lower()
        engine_cls = cls.BACKENDS.get(backend)
        if engine_cls is None:
            raise ValueError(
                f"Unknown search backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
            )
        return engine_cls(max_page_size=settings.search_max_page_size)
