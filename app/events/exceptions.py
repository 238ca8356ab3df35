from app.exceptions import PermanentError, TransientError


class EventChannelError(TransientError):
    """Raised when the channel backend cannot publish or consume."""


class MalformedEventError(PermanentError):
    """Raised when a consumed payload does not match the event schema."""
