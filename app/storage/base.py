from abc import ABC, abstractmethod


class BaseObjectStore(ABC):
    """Contract for content blob storage adapters."""

    @abstractmethod
    def put(self, path: str, data: bytes, content_type: str) -> None:
        """Store data at path, replacing any existing blob.

        Raises:
            StorageError: if the blob cannot be written.
        """

    @abstractmethod
    def get(self, path: str) -> bytes:
        """Return the blob at path.

        Raises:
            BlobNotFoundError: if nothing is stored at path.
            StorageError: if the backend cannot be read.
        """

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete the blob at path. Deleting a missing blob is not an error."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return whether a blob is stored at path."""

    @abstractmethod
    def presign(self, path: str, ttl_seconds: int) -> str:
        """Return a time-limited download URL for path."""
