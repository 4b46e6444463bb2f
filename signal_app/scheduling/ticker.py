"""Fixed-interval timer that drives the periodic jobs."""

import threading
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class Ticker:
    """
    Runs ``job`` every ``interval_seconds`` on a daemon thread.

    The interval is measured from the end of one run to the start of the
    next, so a slow run never overlaps the following one in this process.
    Job exceptions are logged and the ticker keeps going.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        job: Callable[[], Any],
        stop_event: Optional[threading.Event] = None,
        run_immediately: bool = True,
    ):
        self.name = name
        self.interval_seconds = interval_seconds
        self.job = job
        self.stop_event = stop_event or threading.Event()
        self.run_immediately = run_immediately
        self.logger = logger.bind(ticker=name)
        self.tick_count = 0
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._thread = threading.Thread(
            target=self._run, name=f"ticker-{self.name}", daemon=True
        )
        self._thread.start()
        self.logger.info("Ticker started", interval_seconds=self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        self.stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self.logger.info("Ticker stopped", ticks=self.tick_count)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> None:
        """Run the job once, isolating its failures."""
        self.tick_count += 1
        try:
            self.job()
        except Exception as e:
            self.logger.error("Ticker job failed", error=str(e), exc_info=True)

    def _run(self) -> None:
        if not self.run_immediately and self.stop_event.wait(self.interval_seconds):
            return

        while not self.stop_event.is_set():
            self.tick()
            if self.stop_event.wait(self.interval_seconds):
                break
