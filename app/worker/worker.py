import time
from collections.abc import Callable

from app.config.settings import Settings
from app.events.base import BaseEventChannel, MessageHandler
from app.events.models import TOPIC_DOCUMENT_DELETED, TOPIC_DOCUMENT_UPLOADED
from app.logging.logger import Log
from app.worker.deletion_handler import DeletionHandler
from app.worker.indexing_runner import IndexingRunner


class IndexerWorker:
    """Poll loop: poll each subscribed topic -> dispatch -> sleep when idle."""

    def __init__(
        self,
        event_channel: BaseEventChannel,
        indexing_runner: IndexingRunner,
        deletion_handler: DeletionHandler,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._event_channel = event_channel
        self._settings = settings
        self._sleep = sleep
        self._subscriptions: list[tuple[str, MessageHandler]] = [
            (TOPIC_DOCUMENT_UPLOADED, indexing_runner.handle),
            (TOPIC_DOCUMENT_DELETED, deletion_handler.handle),
        ]

    def run(self, max_events: int | None = None) -> None:
        """Main poll loop. Runs forever until interrupted.

        If max_events is set, stop after handling that many messages (for testing).
        """
        group = self._settings.indexer_consumer_group
        Log.info(f"Indexer worker started in consumer group {group}")
        events_done = 0
        try:
            while max_events is None or events_done < max_events:
                handled = False
                for topic, handler in self._subscriptions:
                    if self._poll(topic, group, handler):
                        handled = True
                        events_done += 1
                        if max_events is not None and events_done >= max_events:
                            break
                if not handled:
                    Log.debug("No events available, sleeping")
                    self._sleep(self._settings.event_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Indexer worker shutting down gracefully")

    def _poll(self, topic: str, group: str, handler: MessageHandler) -> bool:
        """Poll one topic. Channel and handler errors are logged; the message is redelivered."""
        try:
            return self._event_channel.poll(topic, group, handler)
        except Exception as exc:
            Log.warning(f"Handling {topic} failed, will retry: {exc}")
            return False
