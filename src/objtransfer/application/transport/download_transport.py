import logging
from enum import Enum
from pathlib import Path

from objtransfer.application.progress.rate_meter import RateMeter
from objtransfer.application.progress.throttle import Throttle
from objtransfer.application.transport.base_transport import Transport
from objtransfer.application.transport.stall_watchdog import StallWatchdog
from objtransfer.domain.entities.upload_part import DownloadRange
from objtransfer.domain.errors import NetworkTimeoutError
from objtransfer.infrastructure.fs.file_writer import FileWriter

logger = logging.getLogger(__name__)


class ResumeDecision(Enum):
    RESTART = "restart"
    RESUME = "resume"
    FINISHED = "finished"


def decide_resume(local_size: int, local_mtime: float, remote_size: int, remote_mtime: float) -> ResumeDecision:
    """
    Decide what to do with an existing local file, using size and mtime only.

    A same-sized file that is not older than the remote object counts as
    complete; anything at least as large, or older, is stale and restarted;
    a smaller, newer file is a partial download and continues where it stopped.
    Same-size content drift cannot be detected this way.
    """
    if local_size == remote_size and local_mtime >= remote_mtime:
        return ResumeDecision.FINISHED
    if local_size >= remote_size or local_mtime <= remote_mtime:
        return ResumeDecision.RESTART
    return ResumeDecision.RESUME


class DownloadTransport(Transport):
    """Resumable single-stream GET of one object into a local file."""

    def __init__(self, client, task, config=None):
        super().__init__(client, task, config)
        self._response = None
        self._writer: FileWriter | None = None

    def start(self):
        if not self._begin():
            return

        path = Path(self.task.local_path)
        try:
            if not path.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
                local = None
            else:
                local = path.stat()
                remote = self._client.get_object_metadata(self.task.bucket_name, self.task.object_key)
                self.task.total_size = remote.size
                decision = decide_resume(local.st_size, local.st_mtime, remote.size,
                                         remote.last_modified.timestamp())
        except Exception as ex:
            return self._check_error(ex)

        if local is None:
            return self._stream(0, None)

        logger.debug("%s: local %d bytes, remote %d bytes -> %s", self.task_id, local.st_size,
                     remote.size, decision.value)

        if decision is ResumeDecision.FINISHED:
            self.task.bytes_transferred = local.st_size
            return self._check_finish()
        if decision is ResumeDecision.RESUME:
            return self._stream(local.st_size, remote.size - 1)
        return self._stream(0, None)

    def resume(self, begin: int = 0, end: int | None = None):
        """Stream the whole object, or bytes ``begin..end`` appended to the local file."""
        if not self._begin():
            return
        self._stream(begin, end)

    def _stream(self, begin: int, end: int | None):
        if not self.is_running():
            return
        byte_range = DownloadRange(begin, end) if begin else None
        writer = FileWriter(self.task.local_path)
        try:
            writer.open(append=bool(begin))
        except Exception as ex:
            return self._check_error(ex)

        meter = RateMeter()
        notify_progress = Throttle(self._notify_progress, self._config.rate_interval)
        watchdog = StallWatchdog(self._on_timeout, self._config.stall_timeout,
                                 name=f"stall-{self.task_id}")

        with self._lock:
            self._writer = writer
        try:
            response = self._client.get_object(self.task.bucket_name, self.task.object_key, byte_range)
            with self._lock:
                self._response = response
                if not self.is_running():
                    return
            if self.task.total_size is None and getattr(response, "content_length", None) is not None:
                self.task.total_size = begin + response.content_length

            self._notify_started()
            watchdog.start()
            for chunk in response:
                if not self.is_running():
                    break
                if not chunk:
                    continue
                writer.write(chunk)
                written = meter.add(len(chunk))
                notify_progress(meter.rate, begin + written)
                watchdog.touch()

            writer.close()
            if self.is_running():
                notify_progress.flush()
            self._check_finish()
        except Exception as ex:
            notify_progress.cancel()
            self._check_error(ex)
        finally:
            watchdog.stop()
            self._end_stream()

    def _on_timeout(self):
        if self.is_running():
            self._check_error(NetworkTimeoutError("network connection timed out"))
            self._end_stream()

    def _end_stream(self):
        with self._lock:
            response, self._response = self._response, None
            writer, self._writer = self._writer, None
        if response is not None:
            response.close()
        if writer is not None:
            writer.close()
