from pathlib import PurePosixPath

from app.exceptions import ValidationError
from app.extraction.pipeline import normalize_mime_type
from app.ingestion.models import UploadRequest

FILE_TYPES_BY_MIME = {
    "application/pdf": "PDF",
    "application/x-pdf": "PDF",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "DOCX",
    "application/msword": "DOCX",
    "text/plain": "TXT",
    "text/html": "HTML",
    "application/xhtml+xml": "HTML",
    "application/epub+zip": "EPUB",
}

FILE_TYPES_BY_EXTENSION = {
    ".pdf": "PDF",
    ".docx": "DOCX",
    ".doc": "DOCX",
    ".txt": "TXT",
    ".html": "HTML",
    ".htm": "HTML",
    ".epub": "EPUB",
}

EXTENSIONS_BY_MIME = {
    "application/pdf": ".pdf",
    "application/x-pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "text/plain": ".txt",
    "text/html": ".html",
    "application/epub+zip": ".epub",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/tiff": ".tiff",
    "image/bmp": ".bmp",
    "image/gif": ".gif",
}

UNKNOWN_FILE_TYPE = "Unknown"


def file_type_for(mime_type: str, filename: str = "") -> str:
    """Display label for a document: PDF, DOCX, TXT, HTML, EPUB, IMAGE or Unknown."""
    mime = normalize_mime_type(mime_type)
    if mime in FILE_TYPES_BY_MIME:
        return FILE_TYPES_BY_MIME[mime]
    if mime.startswith("image/"):
        return "IMAGE"
    suffix = PurePosixPath(filename).suffix.lower()
    return FILE_TYPES_BY_EXTENSION.get(suffix, UNKNOWN_FILE_TYPE)


def extension_for(mime_type: str, filename: str) -> str:
    """Storage key extension: the filename's own, else one implied by the mime type."""
    suffix = PurePosixPath(filename).suffix.lower()
    if suffix and suffix[1:].isalnum():
        return suffix
    return EXTENSIONS_BY_MIME.get(normalize_mime_type(mime_type), "")


class UploadValidator:
    """Checks an upload before any byte is scanned or stored."""

    def __init__(self, max_bytes: int, allowed_mime_types: list[str]) -> None:
        self._max_bytes = max_bytes
        self._allowed = frozenset(normalize_mime_type(m) for m in allowed_mime_types)

    def validate(self, request: UploadRequest) -> None:
        """Raises ValidationError for the first rule the request breaks."""
        if not request.title.strip():
            raise ValidationError("Title is required")
        if not request.data:
            raise ValidationError("File is empty")
        if len(request.data) > self._max_bytes:
            raise ValidationError(
                f"File size {len(request.data)} exceeds maximum of {self._max_bytes} bytes"
            )
        mime = normalize_mime_type(request.mime_type)
        if mime not in self._allowed:
            raise ValidationError(f"File type '{mime}' is not allowed")
