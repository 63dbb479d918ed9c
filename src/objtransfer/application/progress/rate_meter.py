import threading
import time


class RateMeter:
    """Cumulative transfer rate of one stream: bytes so far over time since it began."""

    def __init__(self, clock=time.monotonic):
        self._lock = threading.Lock()
        self._clock = clock
        self._started = clock()
        self._bytes = 0

    def add(self, count: int) -> int:
        """Record ``count`` more bytes and return the running total."""
        with self._lock:
            self._bytes += max(0, count)
            return self._bytes

    @property
    def bytes_written(self) -> int:
        with self._lock:
            return self._bytes

    @property
    def rate(self) -> float:
        """Bytes per second; 0 until any time has elapsed."""
        with self._lock:
            elapsed = self._clock() - self._started
            if elapsed <= 0:
                return 0.0
            return self._bytes / elapsed
