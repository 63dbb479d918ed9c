import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class StallWatchdog:
    """
    Fires ``on_stall`` once if ``touch()`` is not called within ``timeout`` seconds.

    Uses a single timer thread per active stream that sleeps until the current
    deadline; each ``touch()`` just moves the deadline forward.
    """

    def __init__(self, on_stall: Callable[[], None], timeout: float = 10.0,
                 name: str = "stall-watchdog"):
        self._on_stall = on_stall
        self._timeout = timeout
        self._name = name
        self._lock = threading.Lock()
        self._deadline = 0.0
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.fired = False

    def start(self):
        """Arm the watchdog. Starting an armed watchdog only resets its deadline."""
        with self._lock:
            self._deadline = time.monotonic() + self._timeout
            if self._thread is not None and self._thread.is_alive():
                return
            self._stopped.clear()
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def touch(self):
        with self._lock:
            self._deadline = time.monotonic() + self._timeout

    def stop(self):
        self._stopped.set()
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def _run(self):
        while True:
            with self._lock:
                remaining = self._deadline - time.monotonic()
            if remaining <= 0:
                break
            if self._stopped.wait(remaining):
                return

        self.fired = True
        logger.debug("%s: no progress for %.1fs", self._name, self._timeout)
        self._on_stall()
