import zlib
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from app.database.models import DocumentRecord
from app.events.exceptions import MalformedEventError

TOPIC_DOCUMENT_UPLOADED = "document.uploaded"
TOPIC_DOCUMENT_INDEXED = "document.indexed"
TOPIC_DOCUMENT_DELETED = "document.deleted"

DEAD_LETTER_SUFFIX = "-dlq"


def dead_letter_topic(topic: str) -> str:
    return f"{topic}{DEAD_LETTER_SUFFIX}"


def partition_for(key: str, partitions: int) -> int:
    """Stable partition for a message key, identical across processes."""
    return zlib.crc32(key.encode("utf-8")) % partitions


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IngestionEvent:
    """Announces that a document's bytes are stored and ready for indexing."""

    id: str
    title: str
    description: str
    uploader_id: str
    collection_id: str
    mime_type: str
    file_type: str
    storage_path: str
    original_filename: str
    created_at: str

    @classmethod
    def from_document(cls, document: DocumentRecord) -> "IngestionEvent":
        created_at = document.created_at or utc_now()
        return cls(
            id=document.id,
            title=document.title,
            description=document.description,
            uploader_id=document.uploader_id,
            collection_id=document.collection_id,
            mime_type=document.mime_type,
            file_type=document.file_type,
            storage_path=document.storage_path,
            original_filename=document.original_filename,
            created_at=created_at.isoformat(),
        )

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "IngestionEvent":
        """Parse a consumed payload.

        Raises:
            MalformedEventError: if a required field is missing or not a string.
        """
        values: dict[str, str] = {}
        for name in cls.__dataclass_fields__:
            value = payload.get(name, "" if name == "description" else None)
            if not isinstance(value, str):
                raise MalformedEventError(f"Event field '{name}' is missing or invalid")
            values[name] = value
        if not values["id"] or not values["storage_path"]:
            raise MalformedEventError("Event has an empty id or storage_path")
        return cls(**values)

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ChannelMessage:
    """One delivered message with its position in the partition log."""

    topic: str
    partition: int
    offset: int
    key: str
    payload: dict[str, Any] = field(default_factory=dict)


def build_dead_letter(
    message: ChannelMessage,
    error: str,
    retry_count: int,
    failed_at: datetime | None = None,
) -> dict[str, Any]:
    """Dead-letter payload wrapping the unmodified original message value."""
    return {
        "original": message.payload,
        "error": error,
        "retry_count": retry_count,
        "source_topic": message.topic,
        "failed_at": (failed_at or utc_now()).isoformat(),
    }
