from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)  # frozen=True makes it immutable
class ProgressSnapshot:
    """Immutable progress sample handed to listeners on another thread."""

    task_id: str
    object_key: str
    rate: float  # bytes per second since the stream began
    bytes_written: int
    total: Optional[int] = None

    def __post_init__(self):
        # Clamp values to prevent invalid states
        object.__setattr__(self, 'bytes_written', max(0, self.bytes_written))
        object.__setattr__(self, 'rate', max(0.0, self.rate))
        if self.total is not None:
            object.__setattr__(self, 'total', max(0, self.total))
            object.__setattr__(self, 'bytes_written', min(self.bytes_written, self.total))

    @property
    def percentage(self) -> int:
        """Calculate percentage, clamped to 100."""
        if self.total is None or self.total <= 0:
            return 0
        pct = int((self.bytes_written / self.total) * 100)
        return min(pct, 100)
