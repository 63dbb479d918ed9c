from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Dict, Iterator, List, Optional

from objtransfer.domain.entities.upload_part import DownloadRange, PartListing, UploadedPart


@dataclass
class ObjectMetadata:
    size: int
    last_modified: datetime
    content_md5: str = ""
    custom_metadata: Dict[str, str] = field(default_factory=dict)


class ObjectStream(ABC):
    """A readable response body. ``close()`` may be called from another thread."""

    @abstractmethod
    def __iter__(self) -> Iterator[bytes]: ...

    @abstractmethod
    def close(self): ...


class StorageClient(ABC):
    """Object-storage operations the transfer engine depends on.

    Implementations raise ``ServerError`` (with ``status_code=404`` for a
    missing object) rather than library-specific exceptions.
    """

    @abstractmethod
    def get_object_metadata(self, bucket_name: str, key: str) -> ObjectMetadata: ...

    @abstractmethod
    def initiate_multipart_upload(self, bucket_name: str, key: str) -> str: ...

    @abstractmethod
    def list_parts(self, bucket_name: str, key: str, upload_id: str) -> PartListing: ...

    @abstractmethod
    def upload_part(self, bucket_name: str, key: str, upload_id: str, part_number: int,
                    body: BinaryIO, content_length: int): ...

    @abstractmethod
    def complete_multipart_upload(self, bucket_name: str, key: str, upload_id: str,
                                  parts: List[UploadedPart]): ...

    @abstractmethod
    def get_object(self, bucket_name: str, key: str,
                   byte_range: Optional[DownloadRange] = None) -> ObjectStream: ...

    def close(self):
        """Release pooled connections."""
