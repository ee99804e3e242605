import threading
import time
from typing import Callable

from loguru import logger


def seconds_until_next_minute(now: float | None = None) -> float:
    """Delay until the next top-of-minute on the wall clock."""
    if now is None:
        now = time.time()
    return 60.0 - (now % 60.0)


class Ticker:
    """
    Calls ``callback`` repeatedly on a background thread.

    ``interval`` is either a fixed number of seconds or a callable returning
    the delay before the next call, which lets a ticker align itself to
    minute boundaries. ``stop`` wakes the thread immediately.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        interval: float | Callable[[], float],
        name: str = "ticker",
    ):
        self.callback = callback
        self.interval = interval
        self.name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _next_delay(self) -> float:
        if callable(self.interval):
            return max(0.0, self.interval())
        return self.interval

    def start(self):
        if self.running:
            logger.warning(f"Ticker {self.name} is already running.")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug(f"Ticker {self.name} started.")

    def stop(self):
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        logger.debug(f"Ticker {self.name} stopped.")

    def _run(self):
        try:
            while not self._stop_event.wait(timeout=self._next_delay()):
                self.callback()
        except Exception as e:
            logger.exception(f"Error in ticker {self.name}: {e}")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.stop()
