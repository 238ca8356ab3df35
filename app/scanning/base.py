from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ScanResult:
    """Outcome of a virus scan."""

    clean: bool
    signature: str | None = None


class BaseVirusScanner(ABC):
    """Contract for virus scanner adapters."""

    @abstractmethod
    def scan(self, data: bytes, filename: str) -> ScanResult:
        """Scan a payload.

        Args:
            data: Raw upload bytes.
            filename: Original filename, used for logging only.

        Returns:
            ScanResult; clean=False carries the matched signature.

        Raises:
            ScannerUnavailableError: if the scanner cannot be reached.
        """
