import hashlib


def content_hash(data: bytes) -> str:
    """SHA-256 hex digest of the raw bytes; the deduplication key."""
    return hashlib.sha256(data).hexdigest()
