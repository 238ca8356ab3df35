from app.exceptions import DocumentIndexError


class ThumbnailError(DocumentIndexError):
    """Raised when a preview image cannot be rendered."""
