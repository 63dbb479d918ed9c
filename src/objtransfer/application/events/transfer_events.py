import threading
from dataclasses import dataclass
from typing import List, Optional, Protocol

from objtransfer.application.progress.progress_snapshot import ProgressSnapshot
from objtransfer.domain.errors import ErrorKind


@dataclass(frozen=True)
class TransferStarted:
    task_id: str
    object_key: str
    local_path: str
    upload_id: Optional[str] = None


@dataclass(frozen=True)
class TransferPaused:
    task_id: str
    object_key: str


@dataclass(frozen=True)
class TransferFinished:
    task_id: str
    object_key: str


@dataclass(frozen=True)
class TransferFailed:
    task_id: str
    object_key: str
    kind: ErrorKind
    detail: str


class TransferEventListener(Protocol):
    """Protocol for transfer lifecycle listeners."""

    def on_transfer_started(self, event: TransferStarted):
        ...

    def on_transfer_progress(self, snapshot: ProgressSnapshot):
        ...

    def on_transfer_paused(self, event: TransferPaused):
        ...

    def on_transfer_finished(self, event: TransferFinished):
        """Called once when the transfer completed."""
        ...

    def on_transfer_failed(self, event: TransferFailed):
        """Called once when the transfer ended with an error."""
        ...


class TransferEventManager:
    """Fans a transport's events out to its listeners."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: List[TransferEventListener] = []

    def add_listener(self, listener: TransferEventListener):
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: TransferEventListener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _snapshot(self) -> List[TransferEventListener]:
        with self._lock:
            return list(self._listeners)

    def notify_started(self, event: TransferStarted):
        for listener in self._snapshot():
            listener.on_transfer_started(event)

    def notify_progress(self, snapshot: ProgressSnapshot):
        for listener in self._snapshot():
            listener.on_transfer_progress(snapshot)

    def notify_paused(self, event: TransferPaused):
        for listener in self._snapshot():
            listener.on_transfer_paused(event)

    def notify_finished(self, event: TransferFinished):
        for listener in self._snapshot():
            listener.on_transfer_finished(event)

    def notify_failed(self, event: TransferFailed):
        for listener in self._snapshot():
            listener.on_transfer_failed(event)
