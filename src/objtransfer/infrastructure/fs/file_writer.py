from pathlib import Path
import threading

from objtransfer.domain.errors import PermissionDeniedError


class FileWriter:
    """Download sink: appends to a partial file or rewrites it from scratch."""

    def __init__(self, path):
        self.path = Path(path)
        self.fp = None
        self.bytes_written = 0
        self._lock = threading.Lock()

    def open(self, append=False):
        # Append keeps the bytes of an earlier run so a ranged GET can continue them
        mode = "ab" if append else "wb"
        try:
            self.fp = open(self.path, mode)
        except PermissionError as ex:
            raise PermissionDeniedError(f"cannot write {self.path}: {ex.strerror}", cause=ex) from ex
        self.bytes_written = 0
        return self

    def write(self, data: bytes):
        with self._lock:
            if self.fp is None or self.fp.closed:
                raise ValueError(f"write to closed file {self.path}")
            try:
                self.fp.write(data)
            except PermissionError as ex:
                raise PermissionDeniedError(f"cannot write {self.path}: {ex.strerror}", cause=ex) from ex
            self.bytes_written += len(data)

    def close(self):
        """Flush and close; safe to call twice or from another thread."""
        with self._lock:
            if self.fp is not None and not self.fp.closed:
                self.fp.close()
