"""Cancelable periodic task on a daemon thread."""
import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run ``fn`` every ``interval`` seconds until cancelled.

    ``cancel`` takes effect exactly once; later calls are no-ops returning
    False. A failing run is logged and the schedule continues.
    """

    def __init__(self, name: str, interval: float, fn: Callable[[], object]):
        self.name = name
        self.interval = interval
        self.fn = fn
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None or self._cancelled:
                return
            self._thread = threading.Thread(target=self._run, name=f"periodic-{self.name}", daemon=True)
            self._thread.start()
        logger.info("Started periodic task %s every %.1fs", self.name, self.interval)

    def cancel(self, join: bool = True) -> bool:
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
        self._stop_event.set()
        thread = self._thread
        if join and thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self.interval))
        logger.info("Cancelled periodic task %s", self.name)
        return True

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.fn()
            except Exception:
                logger.exception("Periodic task %s failed", self.name)
