from app.config.settings import Settings
from app.events.base import BaseEventChannel
from app.events.memory_channel import InMemoryEventChannel
from app.events.postgres_channel import PostgresEventChannel


class EventChannelFactory:
    """Creates the configured event channel backend."""

    BACKENDS: dict[str, type[BaseEventChannel]] = {
        "memory": InMemoryEventChannel,
        "postgres": PostgresEventChannel,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseEventChannel:
        backend = settings.event_backend.lower()
        channel_cls = cls.BACKENDS.get(backend)
        if channel_cls is None:
            raise ValueError(
                f"Unknown event backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
            )
        return channel_cls(partitions=settings.event_partitions)
