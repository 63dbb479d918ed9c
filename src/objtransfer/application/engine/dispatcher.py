import logging
import os
import posixpath
import threading
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

from objtransfer.application.events.notifications import Command, Notification
from objtransfer.application.events.transfer_events import (
    TransferFailed,
    TransferFinished,
    TransferPaused,
    TransferStarted,
)
from objtransfer.application.progress.progress_snapshot import ProgressSnapshot
from objtransfer.application.transport.base_transport import Transport
from objtransfer.application.transport.download_transport import DownloadTransport
from objtransfer.application.transport.upload_transport import MultipartUploadTransport
from objtransfer.config import TransferConfig
from objtransfer.domain.entities.transfer_state import Direction
from objtransfer.domain.entities.transfer_task import TransferTask
from objtransfer.domain.storage.storage_client import StorageClient

logger = logging.getLogger(__name__)

TaskKey = Tuple[str, str]


class Dispatcher:
    """
    Runs transfer tasks with at most ``max_concurrent`` of them active at once.

    Transports are cached by (task_id, object_key) until they finish, so a
    paused or failed task keeps its upload session and can be resumed. The
    admission queue is FIFO; resumed tasks jump to its front. Each admitted
    transport runs on its own worker thread and its slot is freed when that
    worker returns.
    """

    def __init__(self, client: StorageClient, send: Callable[[dict], None],
                 config: TransferConfig | None = None):
        self._client = client
        self._send_message = send
        self._config = config or TransferConfig()
        self.max_concurrent = self._config.max_concurrent_tasks
        self._transport_cache: Dict[TaskKey, Transport] = {}
        self._queue: Deque[TaskKey] = deque()
        self._active: Dict[TaskKey, threading.Thread] = {}
        self._lock = threading.RLock()
        self._handlers = {
            Command.ADD_ITEM: self.add_item,
            Command.ADD_PATCH: self.add_patch,
            Command.PAUSE_ITEM: self.pause_item,
            Command.PAUSE_ALL: self.pause_all,
            Command.RESUME_ITEM: self.resume_item,
        }

    def dispatch(self, message: dict):
        """Route a ``{category, config}`` command to its handler."""
        category = message.get("category")
        try:
            handler = self._handlers[Command(category)]
        except ValueError:
            logger.warning("Ignoring unknown command %r", category)
            return
        handler(message.get("config") or {})

    def add_item(self, config: dict):
        task = TransferTask.from_command(config)
        with self._lock:
            if task.key in self._transport_cache:
                # A known task is resumed, so it goes ahead of new work
                self._admit(task.key, front=True)
            else:
                transport = self._create_transport(task)
                transport.add_listener(self)
                self._transport_cache[task.key] = transport
                self._admit(task.key)
        self._pump()

    def add_patch(self, config: dict):
        """Expand a batch (shared prefix plus object keys) into individual items."""
        prefix = config.get("prefix", "")
        local_path = config["localPath"]
        for item in config.get("objectKeys", []):
            self.add_item({
                "taskId": config["taskId"],
                "bucketName": config["bucketName"],
                "objectKey": posixpath.join(prefix, item),
                "localPath": os.path.join(local_path, item),
                "totalSize": config.get("totalSize"),
                "direction": config.get("direction", Direction.DOWNLOAD.value),
            })

    def pause_item(self, config: dict):
        task_id = config["taskId"]
        with self._lock:
            keys = self._keys_for(task_id)
            for key in keys:
                if key in self._queue:
                    self._queue.remove(key)
            transports = [self._transport_cache[key] for key in keys]

        for transport in transports:
            transport.pause()

    def pause_all(self, config: Optional[dict] = None):
        """Drop every pending task from the queue and pause it."""
        with self._lock:
            keys = list(self._queue)
            self._queue.clear()
            transports = [self._transport_cache[key] for key in keys if key in self._transport_cache]

        for transport in transports:
            transport.pause()
        logger.info("Paused %d pending tasks", len(transports))

    def resume_item(self, config: dict):
        task_id = config["taskId"]
        with self._lock:
            for key in reversed(self._keys_for(task_id)):
                self._admit(key, front=True)
        self._pump()

    def shutdown(self, timeout: float = 5.0):
        """Stop admitting, pause running transports and release the client."""
        with self._lock:
            self._queue.clear()
            running = [(self._transport_cache.get(key), thread) for key, thread in self._active.items()]

        for transport, _ in running:
            if transport is not None:
                transport.pause()
        for _, thread in running:
            thread.join(timeout=timeout)
        self._client.close()

    def get_transport(self, task_id: str, object_key: str) -> Optional[Transport]:
        with self._lock:
            return self._transport_cache.get((task_id, object_key))

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    @property
    def pending(self) -> List[TaskKey]:
        with self._lock:
            return list(self._queue)

    def _create_transport(self, task: TransferTask) -> Transport:
        if task.direction == Direction.UPLOAD:
            return MultipartUploadTransport(self._client, task, self._config)
        return DownloadTransport(self._client, task, self._config)

    def _keys_for(self, task_id: str) -> List[TaskKey]:
        return [key for key in self._transport_cache if key[0] == task_id]

    def _admit(self, key: TaskKey, front: bool = False):
        transport = self._transport_cache.get(key)
        if transport is None or transport.is_finished():
            return
        # A worker that has not yet begun, or is still running, needs no second slot
        if key in self._active and (transport.is_running() or transport.is_unstarted()):
            return
        if key in self._queue:
            if not front:
                return
            self._queue.remove(key)

        if front:
            self._queue.appendleft(key)
        else:
            self._queue.append(key)

    def _next_admissible(self) -> Optional[TaskKey]:
        # A task still unwinding from a pause waits for its previous worker
        for key in self._queue:
            if key not in self._active:
                self._queue.remove(key)
                return key
        return None

    def _pump(self):
        with self._lock:
            while len(self._active) < self.max_concurrent:
                key = self._next_admissible()
                if key is None:
                    break
                transport = self._transport_cache.get(key)
                if transport is None:
                    continue

                thread = threading.Thread(target=self._invoke, args=(key, transport),
                                          name=f"transfer-{key[0]}", daemon=True)
                self._active[key] = thread
                thread.start()

    def _invoke(self, key: TaskKey, transport: Transport):
        try:
            transport.start()
        except Exception as ex:
            logger.exception("Transport %s crashed", key[0])
            transport.fail(ex)
        finally:
            with self._lock:
                self._active.pop(key, None)
            self._pump()

    def _send(self, command: Notification, **fields):
        self._send_message({"command": command.value, **fields})

    # Listener callbacks, one instance shared by every cached transport

    def on_transfer_started(self, event: TransferStarted):
        fields = {"taskId": event.task_id, "objectKey": event.object_key, "localPath": event.local_path}
        if event.upload_id:
            fields["uploadId"] = event.upload_id
        self._send(Notification.START, **fields)

    def on_transfer_progress(self, snapshot: ProgressSnapshot):
        self._send(Notification.RATE, taskId=snapshot.task_id, objectKey=snapshot.object_key,
                   rate=snapshot.rate, bytesWritten=snapshot.bytes_written)

    def on_transfer_paused(self, event: TransferPaused):
        self._send(Notification.PAUSED, taskId=event.task_id, objectKey=event.object_key)

    def on_transfer_finished(self, event: TransferFinished):
        with self._lock:
            transport = self._transport_cache.pop((event.task_id, event.object_key), None)
        if transport is not None:
            transport.remove_listener(self)
        self._send(Notification.FINISHED, taskId=event.task_id, objectKey=event.object_key)

    def on_transfer_failed(self, event: TransferFailed):
        self._send(Notification.ERROR, taskId=event.task_id, objectKey=event.object_key,
                   error=event.detail, kind=event.kind.value)
