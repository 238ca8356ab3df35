from dataclasses import dataclass, field
from typing import Any


@dataclass
class UploadRequest:
    """One file to ingest, with the metadata the uploader supplied."""

    data: bytes
    mime_type: str
    filename: str
    title: str
    uploader_id: str
    collection_id: str
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
