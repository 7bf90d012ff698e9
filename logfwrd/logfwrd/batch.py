"""
Batch - the immutable snapshot of one window handed to a Sink.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class FlushReason(Enum):
    """Why a window was closed."""
    SIZE = "size"
    AGE = "age"
    MANUAL = "manual"


@dataclass(frozen=True)
class Batch:
    """
    One window's compressed content plus metadata.

    Attributes:
        data: Concatenated gzip members, one per record
        window_start: UTC time of the first record in the window
        window_end: UTC time of the most recent record in the window
        entry_count: Number of records in the window
        label: Optional opaque tag, empty when unset
    """
    data: bytes
    window_start: datetime
    window_end: datetime
    entry_count: int
    label: str = ""

    @property
    def size(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return (
            f"Batch(entries={self.entry_count}, bytes={self.size}, "
            f"window={self.window_start.isoformat()}..{self.window_end.isoformat()})"
        )
