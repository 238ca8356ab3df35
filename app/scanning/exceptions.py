from app.exceptions import TransientError


class ScannerUnavailableError(TransientError):
    """Raised when the virus scanner cannot be reached or answers garbage."""
