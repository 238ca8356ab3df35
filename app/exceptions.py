class DocumentIndexError(Exception):
    """Base exception for all ingestion and indexing errors."""


class ValidationError(DocumentIndexError):
    """Raised for bad input: empty file, disallowed type, infected content."""


class ConflictError(DocumentIndexError):
    """Raised when a non-deleted document with the same content hash exists."""

    def __init__(self, message: str, existing_id: str | None = None) -> None:
        super().__init__(message)
        self.existing_id = existing_id


class NotFoundError(DocumentIndexError):
    """Raised when a document, blob, or job cannot be found."""


class DocumentNotFoundError(NotFoundError):
    """Raised when a document cannot be found in the database."""


class TransientError(DocumentIndexError):
    """Raised for storage/network hiccups. Retryable."""


class PermanentError(DocumentIndexError):
    """Raised for corrupt or unparseable content. Not retryable."""


class InternalError(DocumentIndexError):
    """Raised for unexpected failures."""
