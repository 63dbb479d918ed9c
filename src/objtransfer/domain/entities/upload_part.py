from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class Part:
    """A planned byte range of the local file, uploaded as one PUT."""
    part_number: int
    part_size: int
    start: int

    @property
    def end(self) -> int:
        """Exclusive end offset."""
        return self.start + self.part_size


@dataclass(frozen=True)
class UploadedPart:
    """A part the storage service has already accepted."""
    part_number: int
    size: int
    etag: str = ""


@dataclass
class PartListing:
    parts: List[UploadedPart] = field(default_factory=list)
    max_parts: int = 1000


@dataclass(frozen=True)
class DownloadRange:
    """Inclusive byte range for a resumed GET."""
    begin: int
    end: int | None = None

    @property
    def header(self) -> str:
        if self.end is None:
            return f"bytes={self.begin}-"
        return f"bytes={self.begin}-{self.end}"
