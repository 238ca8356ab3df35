import threading

from app.ingestion.dispatcher import BackgroundDispatcher


class TestBackgroundDispatcher:
    def test_runs_tasks_and_waits_idle(self) -> None:
        dispatcher = BackgroundDispatcher(max_workers=2)
        done: list[int] = []
        lock = threading.Lock()

        def task(n: int) -> None:
            with lock:
                done.append(n)

        for n in range(5):
            dispatcher.submit(f"task {n}", lambda n=n: task(n))

        assert dispatcher.wait_idle(timeout=5)
        assert sorted(done) == [0, 1, 2, 3, 4]
        dispatcher.shutdown()

    def test_failures_are_contained(self) -> None:
        dispatcher = BackgroundDispatcher(max_workers=1)

        def boom() -> None:
            raise RuntimeError("boom")

        dispatcher.submit("failing task", boom)

        assert dispatcher.wait_idle(timeout=5)
        dispatcher.shutdown()

    def test_wait_idle_times_out_on_blocked_task(self) -> None:
        dispatcher = BackgroundDispatcher(max_workers=1)
        release = threading.Event()
        dispatcher.submit("blocked", lambda: release.wait(5) and None)

        assert dispatcher.wait_idle(timeout=0.05) is False
        release.set()
        assert dispatcher.wait_idle(timeout=5)
        dispatcher.shutdown()
