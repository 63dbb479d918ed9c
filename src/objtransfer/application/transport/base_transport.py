import logging
import threading
from abc import ABC, abstractmethod

from objtransfer.application.events.transfer_events import (
    TransferEventListener,
    TransferEventManager,
    TransferFailed,
    TransferFinished,
    TransferPaused,
    TransferStarted,
)
from objtransfer.application.progress.progress_snapshot import ProgressSnapshot
from objtransfer.config import TransferConfig
from objtransfer.domain.entities.transfer_state import TransferState
from objtransfer.domain.entities.transfer_task import TransferTask
from objtransfer.domain.errors import classify_exception
from objtransfer.domain.storage.storage_client import StorageClient

logger = logging.getLogger(__name__)


class Transport(ABC):
    """
    Lifecycle shared by upload and download transports.

    State moves UNSTARTED -> RUNNING -> {PAUSED, FINISHED, ERROR}; ``start()`` may
    be called again from any state but RUNNING and reconciles with the remote
    and local state. Only the first transition out of RUNNING emits an event,
    so a run ends with exactly one of paused, finished or failed.
    """

    def __init__(self, client: StorageClient, task: TransferTask, config: TransferConfig | None = None):
        self.task = task
        self._client = client
        self._config = config or TransferConfig()
        self._events = TransferEventManager()
        self._lock = threading.RLock()

    @property
    def task_id(self) -> str:
        return self.task.task_id

    @property
    def state(self) -> TransferState:
        return self.task.state

    def add_listener(self, listener: TransferEventListener):
        self._events.add_listener(listener)

    def remove_listener(self, listener: TransferEventListener):
        self._events.remove_listener(listener)

    def is_running(self) -> bool:
        return self.task.state == TransferState.RUNNING

    def is_paused(self) -> bool:
        return self.task.state == TransferState.PAUSED

    def is_unstarted(self) -> bool:
        return self.task.state == TransferState.UNSTARTED

    def is_finished(self) -> bool:
        return self.task.state == TransferState.FINISHED

    @abstractmethod
    def start(self):
        """Reconcile with remote/local state and run the transfer to a terminal state."""

    @abstractmethod
    def _end_stream(self):
        """Close whatever stream is active. May be called from any thread."""

    def pause(self):
        """End the active stream and mark the task paused. Use ``start()`` to continue."""
        with self._lock:
            if self.task.state in (TransferState.PAUSED, TransferState.FINISHED):
                return
            self.task.state = TransferState.PAUSED

        self._end_stream()
        logger.info("Paused %s (%s)", self.task_id, self.task.object_key)
        self._events.notify_paused(TransferPaused(self.task_id, self.task.object_key))

    def fail(self, exc: BaseException):
        """Move a running transport to ERROR for a failure raised outside its own handling."""
        self._check_error(exc)

    def _begin(self) -> bool:
        with self._lock:
            if self.is_running():
                logger.warning("Transport %s is already running", self.task_id)
                return False
            self.task.state = TransferState.RUNNING
        logger.info("Starting %s %s -> %s", self.task.direction.value, self.task.object_key,
                    self.task.local_path)
        return True

    def _check_finish(self):
        with self._lock:
            if not self.is_running():
                return
            self.task.state = TransferState.FINISHED

        logger.info("Finished %s (%s)", self.task_id, self.task.object_key)
        self._events.notify_finished(TransferFinished(self.task_id, self.task.object_key))

    def _check_error(self, exc: BaseException):
        error = classify_exception(exc)
        with self._lock:
            if not self.is_running():
                logger.debug("Ignoring error on %s in state %s: %s", self.task_id,
                             self.task.state.value, error)
                return
            self.task.state = TransferState.ERROR

        logger.warning("Transfer %s (%s) failed [%s]: %s", self.task_id, self.task.object_key,
                       error.kind.value, error.message)
        self._events.notify_failed(
            TransferFailed(self.task_id, self.task.object_key, error.kind, error.message)
        )

    def _notify_started(self, upload_id: str | None = None):
        self._events.notify_started(
            TransferStarted(self.task_id, self.task.object_key, self.task.local_path, upload_id)
        )

    def _notify_progress(self, rate: float, bytes_written: int):
        self.task.bytes_transferred = bytes_written
        self._events.notify_progress(ProgressSnapshot(
            task_id=self.task_id,
            object_key=self.task.object_key,
            rate=rate,
            bytes_written=bytes_written,
            total=self.task.total_size,
        ))
