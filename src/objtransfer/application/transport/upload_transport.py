import logging
from collections import deque
from pathlib import Path
from typing import Iterable

from objtransfer.application.planning.chunk_planner import decompose
from objtransfer.application.progress.rate_meter import RateMeter
from objtransfer.application.progress.throttle import Throttle
from objtransfer.application.transport.base_transport import Transport
from objtransfer.application.transport.stall_watchdog import StallWatchdog
from objtransfer.domain.entities.upload_part import Part
from objtransfer.domain.errors import (
    LocalFileNotFoundError,
    NetworkTimeoutError,
    ServerError,
    TransferError,
)
from objtransfer.infrastructure.fs.part_reader import PartReader

logger = logging.getLogger(__name__)


class MultipartUploadTransport(Transport):
    """
    Resumable multipart upload of one local file.

    The ``upload_id`` is kept across pauses and errors; every ``start()`` asks
    the service which parts it already holds and uploads only the rest, one
    part at a time.
    """

    def __init__(self, client, task, config=None):
        super().__init__(client, task, config)
        self.upload_id: str | None = None
        self.uploaded_size = 0
        self._reader: PartReader | None = None

    def start(self):
        if not self._begin():
            return

        path = Path(self.task.local_path)
        try:
            if not path.is_file():
                raise LocalFileNotFoundError(f"file not found {path}")

            size = path.stat().st_size
            self.task.total_size = size

            if not self.upload_id:
                # Skip files the remote side already holds
                if self._check_consistency(path, size):
                    logger.info("%s already uploaded as %s", path, self.task.object_key)
                    self.task.bytes_transferred = size
                    return self._check_finish()

                self.upload_id = self._client.initiate_multipart_upload(
                    self.task.bucket_name, self.task.object_key)
                logger.debug("%s: initiated upload %s", self.task_id, self.upload_id)

            listing = self._client.list_parts(self.task.bucket_name, self.task.object_key, self.upload_id)
            ordered_parts = sorted(listing.parts, key=lambda part: part.part_number)
            self.uploaded_size = sum(part.size for part in ordered_parts)
            self.task.bytes_transferred = self.uploaded_size

            remaining = decompose(ordered_parts, listing.max_parts, self.uploaded_size, size,
                                  self._config.part_size)
            if not remaining and not ordered_parts:
                # Multipart completion needs at least one part, even for an empty file
                remaining = [Part(part_number=1, part_size=0, start=0)]

            if not self.is_running():
                # Paused while the session was being set up
                return

            if remaining:
                logger.debug("%s: %d parts uploaded (%d bytes), %d remaining", self.task_id,
                             len(ordered_parts), self.uploaded_size, len(remaining))
                self._notify_started(self.upload_id)
                self._upload_parts(remaining)

            if not self.is_running():
                return

            self._complete_upload(size)
            self._check_finish()
        except Exception as ex:
            self._check_error(ex)

    def _check_consistency(self, path: Path, size: int) -> bool:
        try:
            remote = self._client.get_object_metadata(self.task.bucket_name, self.task.object_key)
        except ServerError as ex:
            if ex.is_not_found:
                return False
            raise
        return remote.size == size and remote.last_modified.timestamp() >= path.stat().st_mtime

    def _upload_parts(self, parts: Iterable[Part]):
        queue = deque(parts)
        while queue:
            if not self.is_running():
                queue.clear()
                return
            part = queue.popleft()
            try:
                self._invoke(part)
            except Exception:
                queue.clear()
                raise

    def _invoke(self, part: Part):
        meter = RateMeter()
        notify_progress = Throttle(self._notify_progress, self._config.rate_interval)
        uploaded_before = self.uploaded_size

        def on_read(count: int):
            written = meter.add(count)
            watchdog.touch()
            notify_progress(meter.rate, uploaded_before + written)

        reader = PartReader(self.task.local_path, part.start, part.part_size, on_read=on_read)
        watchdog = StallWatchdog(reader.abort, self._config.stall_timeout,
                                 name=f"stall-{self.task_id}-{part.part_number}")

        with self._lock:
            if not self.is_running():
                reader.close()
                return
            self._reader = reader

        try:
            with reader, watchdog:
                self._client.upload_part(self.task.bucket_name, self.task.object_key, self.upload_id,
                                         part.part_number, reader, part.part_size)
        except Exception as ex:
            notify_progress.cancel()
            if watchdog.fired:
                raise NetworkTimeoutError(f"part {part.part_number} stalled") from ex
            raise
        finally:
            with self._lock:
                self._reader = None

        self.uploaded_size += part.part_size
        notify_progress.flush()
        logger.debug("%s: part %d done (%d bytes)", self.task_id, part.part_number, part.part_size)

    def _complete_upload(self, size: int):
        listing = self._client.list_parts(self.task.bucket_name, self.task.object_key, self.upload_id)
        parts = sorted(listing.parts, key=lambda part: part.part_number)
        uploaded = sum(part.size for part in parts)
        if uploaded != size:
            raise TransferError(f"uploaded parts cover {uploaded} bytes, local file has {size}")

        self._client.complete_multipart_upload(self.task.bucket_name, self.task.object_key,
                                               self.upload_id, parts)
        self.task.bytes_transferred = size
        self.upload_id = None

    def _end_stream(self):
        with self._lock:
            reader = self._reader
        if reader is not None:
            reader.abort()
