import copy
import threading
from collections import defaultdict
from typing import Any

from app.events.base import BaseEventChannel, MessageHandler
from app.events.models import ChannelMessage, partition_for
from app.logging.logger import Log


class InMemoryEventChannel(BaseEventChannel):
    """Process-local channel with the same delivery rules as the Postgres one.

    Each (group, topic, partition) is handled by one caller at a time and its
    offset only advances after the handler returns.
    """

    def __init__(self, partitions: int = 6) -> None:
        self._partitions = partitions
        self._lock = threading.Lock()
        self._logs: dict[str, list[list[ChannelMessage]]] = {}
        self._offsets: dict[tuple[str, str, int], int] = defaultdict(int)
        self._claimed: set[tuple[str, str, int]] = set()

    def publish(self, topic: str, key: str, payload: dict[str, Any]) -> None:
        partition = partition_for(key, self._partitions)
        with self._lock:
            log = self._topic_log(topic)[partition]
            log.append(
                ChannelMessage(
                    topic=topic,
                    partition=partition,
                    offset=len(log),
                    key=key,
                    payload=copy.deepcopy(payload),
                )
            )
        Log.debug(f"Published {topic}[{partition}] key={key}")

    def poll(self, topic: str, group: str, handler: MessageHandler) -> bool:
        claim = self._claim(topic, group)
        if claim is None:
            return False
        slot, message = claim
        try:
            handler(message)
            with self._lock:
                self._offsets[slot] = message.offset + 1
        finally:
            with self._lock:
                self._claimed.discard(slot)
        return True

    def messages(self, topic: str) -> list[ChannelMessage]:
        """All messages of a topic across partitions, in publish order per partition."""
        with self._lock:
            return [m for log in self._logs.get(topic, []) for m in log]

    def committed_offset(self, topic: str, group: str, partition: int) -> int:
        with self._lock:
            return self._offsets[(group, topic, partition)]

    def _claim(
        self, topic: str, group: str
    ) -> tuple[tuple[str, str, int], ChannelMessage] | None:
        with self._lock:
            logs = self._topic_log(topic)
            for partition, log in enumerate(logs):
                slot = (group, topic, partition)
                if slot in self._claimed:
                    continue
                offset = self._offsets[slot]
                if offset < len(log):
                    self._claimed.add(slot)
                    return slot, log[offset]
        return None

    def _topic_log(self, topic: str) -> list[list[ChannelMessage]]:
        if topic not in self._logs:
            self._logs[topic] = [[] for _ in range(self._partitions)]
        return self._logs[topic]
