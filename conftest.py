"""Pytest configuration and fixtures"""

import os
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple

import pytest

from objtransfer.config import TransferConfig
from objtransfer.domain.entities.upload_part import DownloadRange, PartListing, UploadedPart
from objtransfer.domain.errors import ServerError
from objtransfer.domain.storage.storage_client import ObjectMetadata, ObjectStream, StorageClient


class FakeObjectStream(ObjectStream):
    """In-memory GET body that can be held back by a gate or made to hang."""

    def __init__(self, client: "FakeStorageClient", data: bytes):
        self._client = client
        self._data = data
        self._closed = threading.Event()
        self.content_length = len(data)

    def __iter__(self):
        client = self._client
        client._enter_stream()
        try:
            for offset in range(0, len(self._data), client.chunk_size):
                while client.download_gate is not None and not client.download_gate.is_set():
                    if self._closed.wait(0.01):
                        break
                if client.stall_downloads_after is not None and offset >= client.stall_downloads_after:
                    self._closed.wait()
                if self._closed.is_set():
                    raise ConnectionError("stream closed")
                yield self._data[offset:offset + client.chunk_size]
        finally:
            client._exit_stream()

    def close(self):
        self._closed.set()


class FakeStorageClient(StorageClient):
    """In-memory object store that records every call."""

    def __init__(self, max_parts: int = 1000, chunk_size: int = 4):
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.modified: Dict[Tuple[str, str], datetime] = {}
        self.uploads: Dict[str, Dict[int, bytes]] = {}
        self.max_parts = max_parts
        self.chunk_size = chunk_size
        self.calls = []
        self.ranges = []
        self.fail_part: Optional[int] = None
        self.part_gate: Optional[threading.Event] = None
        self.gated_part: Optional[int] = None  # None gates every part
        self.download_gate: Optional[threading.Event] = None
        self.list_gate: Optional[threading.Event] = None
        self.stall_downloads_after: Optional[int] = None
        self.concurrent_streams = 0
        self.max_concurrent_streams = 0
        self.closed = False
        self._lock = threading.Lock()
        self._next_upload = 0

    def put_object(self, bucket: str, key: str, data: bytes, modified: Optional[datetime] = None):
        self.objects[(bucket, key)] = data
        self.modified[(bucket, key)] = modified or datetime.now(timezone.utc)

    def add_uploaded_part(self, upload_id: str, part_number: int, data: bytes):
        self.uploads.setdefault(upload_id, {})[part_number] = data

    def _enter_stream(self):
        with self._lock:
            self.concurrent_streams += 1
            self.max_concurrent_streams = max(self.max_concurrent_streams, self.concurrent_streams)

    def _exit_stream(self):
        with self._lock:
            self.concurrent_streams -= 1

    def get_object_metadata(self, bucket_name, key):
        self.calls.append(("get_object_metadata", key))
        if (bucket_name, key) not in self.objects:
            raise ServerError("not found", status_code=404)
        data = self.objects[(bucket_name, key)]
        return ObjectMetadata(size=len(data), last_modified=self.modified[(bucket_name, key)])

    def initiate_multipart_upload(self, bucket_name, key):
        self.calls.append(("initiate_multipart_upload", key))
        with self._lock:
            self._next_upload += 1
            upload_id = f"upload-{self._next_upload}"
        self.uploads[upload_id] = {}
        return upload_id

    def list_parts(self, bucket_name, key, upload_id):
        self.calls.append(("list_parts", upload_id))
        if self.list_gate is not None:
            self.list_gate.wait(5)
        if upload_id not in self.uploads:
            raise ServerError("NoSuchUpload", status_code=404)
        parts = [UploadedPart(number, len(data), f"etag-{number}")
                 for number, data in self.uploads[upload_id].items()]
        return PartListing(parts=parts, max_parts=self.max_parts)

    def upload_part(self, bucket_name, key, upload_id, part_number, body, content_length):
        self.calls.append(("upload_part", part_number))
        self._enter_stream()
        try:
            if self.part_gate is not None and self.gated_part in (None, part_number):
                while not self.part_gate.wait(0.01):
                    body.read(0)
            if self.fail_part == part_number:
                raise ServerError("Server code = 500", status_code=500)

            received = b""
            while True:
                chunk = body.read(self.chunk_size)
                if not chunk:
                    break
                received += chunk
            assert len(received) == content_length
            self.uploads[upload_id][part_number] = received
        finally:
            self._exit_stream()

    def complete_multipart_upload(self, bucket_name, key, upload_id, parts):
        self.calls.append(("complete_multipart_upload", upload_id))
        stored = self.uploads.pop(upload_id)
        data = b"".join(stored[part.part_number] for part in parts)
        self.put_object(bucket_name, key, data)

    def get_object(self, bucket_name, key, byte_range: Optional[DownloadRange] = None):
        self.calls.append(("get_object", key))
        self.ranges.append(byte_range)
        if (bucket_name, key) not in self.objects:
            raise ServerError("not found", status_code=404)
        data = self.objects[(bucket_name, key)]
        if byte_range is not None:
            end = len(data) - 1 if byte_range.end is None else byte_range.end
            data = data[byte_range.begin:end + 1]
        return FakeObjectStream(self, data)

    def close(self):
        self.closed = True

    def call_names(self):
        return [name for name, _ in self.calls]


class RecordingListener:
    """Collects transport events in arrival order."""

    def __init__(self):
        self.events = []
        self.lock = threading.Lock()

    def _record(self, name, event):
        with self.lock:
            self.events.append((name, event))

    def on_transfer_started(self, event):
        self._record("started", event)

    def on_transfer_progress(self, snapshot):
        self._record("progress", snapshot)

    def on_transfer_paused(self, event):
        self._record("paused", event)

    def on_transfer_finished(self, event):
        self._record("finished", event)

    def on_transfer_failed(self, event):
        self._record("failed", event)

    def names(self):
        with self.lock:
            return [name for name, _ in self.events]

    def of(self, name):
        with self.lock:
            return [event for event_name, event in self.events if event_name == name]


def set_mtime(path: Path, when: datetime):
    stamp = when.timestamp()
    os.utime(path, (stamp, stamp))


@pytest.fixture
def client():
    return FakeStorageClient()


@pytest.fixture
def config():
    """Small parts and short timers so tests run quickly."""
    return TransferConfig(part_size=4, stall_timeout=0.3, rate_interval=0.0, max_concurrent_tasks=2)


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def past():
    return datetime.now(timezone.utc) - timedelta(days=1)


@pytest.fixture
def wait_until():
    def _wait(predicate, timeout=5.0, interval=0.01):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait


@pytest.fixture
def mtime():
    """Set a file's modification time from an aware datetime."""
    return set_mtime
