import threading

from app.jobs.registry import JobRegistry
from app.logging.logger import Log


class JobReaper:
    """Periodically drops finished jobs older than the retention window."""

    def __init__(
        self,
        registry: JobRegistry,
        retention_seconds: int,
        interval_seconds: int,
    ) -> None:
        self._registry = registry
        self._retention_seconds = retention_seconds
        self._interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        return self._registry.reap(self._retention_seconds)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="job-reaper", daemon=True)
        self._thread.start()
        Log.info(f"Job reaper started (retention {self._retention_seconds}s)")

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self._interval_seconds):
            try:
                self.run_once()
            except Exception as exc:
                Log.warning(f"Job reaper sweep failed: {exc}")
