import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait

from app.logging.logger import Log


class BackgroundDispatcher:
    """Runs fire-and-forget tasks off the caller's thread.

    Failures are logged and never reach the caller. Pending futures are
    tracked so tests and shutdown can wait for quiescence.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="background"
        )
        self._lock = threading.Lock()
        self._pending: set[Future[None]] = set()

    def submit(self, description: str, task: Callable[[], None]) -> None:
        future = self._executor.submit(self._run, description, task)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every submitted task has finished. False on timeout."""
        with self._lock:
            pending = set(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_tasks)

    def _run(self, description: str, task: Callable[[], None]) -> None:
        try:
            task()
        except Exception as exc:
            Log.warning(f"Background task '{description}' failed: {exc}")

    def _discard(self, future: Future[None]) -> None:
        with self._lock:
            self._pending.discard(future)
