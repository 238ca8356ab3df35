from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from app.database.connection import get_connection
from app.events.base import BaseEventChannel, MessageHandler
from app.events.exceptions import EventChannelError
from app.events.models import ChannelMessage, partition_for
from app.logging.logger import Log


@contextmanager
def _channel_connection(action: str) -> Generator[psycopg.Connection[Any], None, None]:
    try:
        with get_connection() as conn:
            yield conn
    except psycopg.OperationalError as exc:
        raise EventChannelError(f"Event channel unavailable while {action}: {exc}") from exc


def append_message(
    conn: psycopg.Connection[Any],
    topic: str,
    partition: int,
    key: str,
    payload: dict[str, Any],
) -> None:
    """Append to one partition inside the caller's transaction.

    The advisory lock serializes writers of a (topic, partition) until they
    commit, so partition offsets become visible in the order they were
    assigned and a consumer never skips past an uncommitted one.
    """
    conn.execute("SELECT pg_advisory_xact_lock(hashtext(%s), %s::int)", (topic, partition))
    conn.execute(
        """
        INSERT INTO channel_messages (topic, partition, partition_offset, message_key, payload)
        SELECT %s, %s, COALESCE(MAX(partition_offset), 0) + 1, %s, %s
        FROM channel_messages
        WHERE topic = %s AND partition = %s
        """,
        (topic, partition, key, Jsonb(payload), topic, partition),
    )


class PostgresEventChannel(BaseEventChannel):
    """Topics stored in channel_messages, consumer progress in channel_offsets.

    Each partition numbers its messages 1, 2, 3... in partition_offset and
    consumers track the last one they handled. A poll locks one
    channel_offsets row (FOR UPDATE SKIP LOCKED) that has unread messages,
    so concurrent members of a group never share a partition. The lock is
    held while the handler runs and the offset is updated in the same
    transaction; a handler failure rolls it back.
    """

    def __init__(self, partitions: int = 6) -> None:
        self._partitions = partitions
        self._registered: set[tuple[str, str]] = set()

    def publish(self, topic: str, key: str, payload: dict[str, Any]) -> None:
        partition = partition_for(key, self._partitions)
        with _channel_connection(f"publishing to {topic}") as conn:
            append_message(conn, topic, partition, key, payload)
            conn.commit()
        Log.debug(f"Published {topic}[{partition}] key={key}")

    def poll(self, topic: str, group: str, handler: MessageHandler) -> bool:
        self._ensure_group(topic, group)
        with _channel_connection(f"polling {topic}") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT o.partition, o.committed_offset
                    FROM channel_offsets o
                    WHERE o.consumer_group = %s
                      AND o.topic = %s
                      AND EXISTS (
                          SELECT 1 FROM channel_messages m
                          WHERE m.topic = o.topic
                            AND m.partition = o.partition
                            AND m.partition_offset > o.committed_offset
                      )
                    ORDER BY o.updated_at
                    LIMIT 1
                    FOR UPDATE OF o SKIP LOCKED
                    """,
                    (group, topic),
                )
                claimed = cur.fetchone()
                if claimed is None:
                    conn.rollback()
                    return False

                cur.execute(
                    """
                    SELECT partition_offset, message_key, payload
                    FROM channel_messages
                    WHERE topic = %s AND partition = %s AND partition_offset > %s
                    ORDER BY partition_offset
                    LIMIT 1
                    """,
                    (topic, claimed["partition"], claimed["committed_offset"]),
                )
                row = cur.fetchone()
                if row is None:
                    conn.rollback()
                    return False

                message = ChannelMessage(
                    topic=topic,
                    partition=claimed["partition"],
                    offset=row["partition_offset"],
                    key=row["message_key"] or "",
                    payload=row["payload"],
                )
                handler(message)

                cur.execute(
                    """
                    UPDATE channel_offsets
                    SET committed_offset = %s, updated_at = NOW()
                    WHERE consumer_group = %s AND topic = %s AND partition = %s
                    """,
                    (message.offset, group, topic, message.partition),
                )
            conn.commit()
        return True

    def _ensure_group(self, topic: str, group: str) -> None:
        if (topic, group) in self._registered:
            return
        with _channel_connection(f"registering group {group}") as conn:
            conn.execute(
                """
                INSERT INTO channel_offsets (consumer_group, topic, partition)
                SELECT %s, %s, p FROM generate_series(0, %s - 1) AS p
                ON CONFLICT DO NOTHING
                """,
                (group, topic, self._partitions),
            )
            conn.commit()
        self._registered.add((topic, group))
        Log.info(f"Consumer group {group} registered on {topic}")
