from abc import ABC, abstractmethod


class BaseTextExtractor(ABC):
    """Contract for all text extraction adapters."""

    name: str = "extractor"

    @abstractmethod
    def extract(self, data: bytes) -> str:
        """Extract plain text from raw file bytes.

        Args:
            data: Raw file content.

        Returns:
            Extracted text as a single string; empty when the file holds no
            machine-readable text.

        Raises:
            ExtractionError: if the content cannot be parsed.
        """
