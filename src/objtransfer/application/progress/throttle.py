import threading
import time
from typing import Any, Callable, Optional, Tuple


class Throttle:
    """
    Invoke ``func`` at most once per ``interval`` seconds.

    The first call goes through immediately; calls inside the interval only
    replace the pending arguments, which ``flush()`` delivers at stream end.
    """

    def __init__(self, func: Callable[..., Any], interval: float = 0.5, clock=time.monotonic):
        self._func = func
        self._interval = interval
        self._clock = clock
        self._lock = threading.Lock()
        self._last_call: Optional[float] = None
        self._pending: Optional[Tuple[tuple, dict]] = None

    def __call__(self, *args, **kwargs):
        with self._lock:
            now = self._clock()
            if self._last_call is not None and now - self._last_call < self._interval:
                self._pending = (args, kwargs)
                return
            self._last_call = now
            self._pending = None
        self._func(*args, **kwargs)

    def flush(self):
        """Deliver the last suppressed call, if any."""
        with self._lock:
            pending = self._pending
            self._pending = None
            if pending is not None:
                self._last_call = self._clock()
        if pending is not None:
            args, kwargs = pending
            self._func(*args, **kwargs)

    def cancel(self):
        with self._lock:
            self._pending = None
