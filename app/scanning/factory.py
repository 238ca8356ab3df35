from app.config.settings import Settings
from app.scanning.base import BaseVirusScanner
from app.scanning.clamav_adapter import ClamAvScanner
from app.scanning.disabled_adapter import DisabledScanner


class ScannerFactory:
    """Creates the configured virus scanner."""

    BACKENDS = ("clamav", "disabled")

    @classmethod
    def create(cls, settings: Settings) -> BaseVirusScanner:
        backend = settings.scanner_backend.lower()
        if backend == "clamav":
            return ClamAvScanner(
                host=settings.clamav_host,
                port=settings.clamav_port,
                timeout_seconds=settings.clamav_timeout_seconds,
            )
        if backend == "disabled":
            return DisabledScanner()
        raise ValueError(
            f"Unknown scanner backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
        )
