from app.exceptions import NotFoundError, PermanentError, TransientError


class StorageError(TransientError):
    """Raised when the object store cannot be read or written."""


class BlobNotFoundError(NotFoundError):
    """Raised when no blob is stored at the requested path."""


class InvalidStoragePathError(PermanentError):
    """Raised when a path escapes the storage root."""
