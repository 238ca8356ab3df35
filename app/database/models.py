from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_FAILED = "failed"

DOCUMENT_STATUSES = frozenset({STATUS_PENDING, STATUS_ACTIVE, STATUS_FAILED})


@dataclass
class DocumentRecord:
    """Represents a row from the documents table."""

    id: str
    title: str
    collection_id: str
    uploader_id: str
    original_filename: str
    file_type: str
    mime_type: str
    file_size: int
    storage_path: str
    hash: str
    status: str = STATUS_PENDING
    description: str = ""
    thumbnail_path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    is_indexed: bool = False
    indexed_at: datetime | None = None
    processing_error: str | None = None
    view_count: int = 0
    download_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
