import threading
from typing import Callable, Optional

from objtransfer.domain.errors import StreamAbortedError


class PartReader:
    """
    Read-only view of ``size`` bytes of a file starting at ``start``.

    Used as a request body: every ``read`` reports its byte count through
    ``on_read`` and ``abort()`` makes the next read raise, which fails the
    request that is consuming it.
    """

    def __init__(self, path, start: int, size: int, on_read: Optional[Callable[[int], None]] = None):
        self._path = path
        self._size = size
        self._on_read = on_read
        self._position = 0
        self._aborted = threading.Event()
        self._fp = open(path, "rb")
        self._fp.seek(start)

    def __len__(self):
        return self._size

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def remaining(self) -> int:
        return self._size - self._position

    def tell(self) -> int:
        """Offset within the part, so HTTP clients size the body as ``len - tell``."""
        return self._position

    def read(self, size: int = -1) -> bytes:
        if self._aborted.is_set():
            raise StreamAbortedError(f"read of {self._path} aborted")
        if self.remaining <= 0:
            return b""

        if size is None or size < 0 or size > self.remaining:
            size = self.remaining
        data = self._fp.read(size)
        self._position += len(data)
        if data and self._on_read is not None:
            self._on_read(len(data))
        return data

    def abort(self):
        self._aborted.set()

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    def close(self):
        if not self._fp.closed:
            self._fp.close()
