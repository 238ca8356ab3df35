from app.exceptions import PermanentError, TransientError


class ExtractionError(PermanentError):
    """Raised when content cannot be parsed. Retrying will not help."""

    def __init__(self, message: str, attempts: list[str] | None = None) -> None:
        super().__init__(message)
        self.attempts = list(attempts or [])


class UnsupportedFormatError(ExtractionError):
    """Raised when no extractor handles the mime type."""


class PdfExtractionError(ExtractionError):
    """Raised when a PDF cannot be parsed."""


class OcrUnavailableError(TransientError):
    """Raised when the OCR engine is not installed or cannot be started."""


class ExtractionTimeoutError(TransientError):
    """Raised when extraction or OCR exceeds its time budget."""
