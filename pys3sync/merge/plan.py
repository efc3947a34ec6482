"""Merge plan, options and outcome types."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..locator import RemoteLocator
from ..models import MultipartSession, Part
from ..utils import DEFAULT_CONTENT_TYPE, MERGE_FLUSH_THRESHOLD, MIN_PART_SIZE


class MergePath(str, Enum):
    """How a merge produced (or would produce) its destination."""

    DRY_RUN = "dry_run"
    """Nothing written; the summary only"""

    EMPTY = "empty"
    """No non-empty sources; nothing written"""

    SINGLE_COPY = "single_copy"
    """One source, copied server-side"""

    BUFFERED_PUT = "buffered_put"
    """Every source was buffered; written with one put"""

    MULTIPART = "multipart"
    """Assembled from parts with a multipart upload"""


@dataclass
class MergeOptions:
    """Options for a merge."""

    part_threshold: int = MIN_PART_SIZE
    """Sources larger than this are added with a server-side part copy"""

    dry_run: bool = False
    """Compute the plan summary without writing"""

    content_type: str = DEFAULT_CONTENT_TYPE
    """Content type of the destination object"""

    def __post_init__(self) -> None:
        if self.part_threshold < 1:
            raise ValueError(
                f"part_threshold must be positive, got {self.part_threshold}"
            )


@dataclass(frozen=True)
class MergeSource:
    """One non-empty object to append to the destination."""

    locator: RemoteLocator
    size: int

    @property
    def url(self) -> str:
        return self.locator.url


@dataclass
class MergePlan:
    """Ordered sources plus the state accumulated while merging them."""

    sources: list[MergeSource]
    """Sources sorted by URL"""

    part_threshold: int = MIN_PART_SIZE
    flush_threshold: int = MERGE_FLUSH_THRESHOLD

    buffer: bytearray = field(default_factory=bytearray)
    """Bytes of buffered sources not yet sent as a part"""

    parts: list[Part] = field(default_factory=list)
    """Completed parts, numbered 1..N in commit order"""

    session: Optional[MultipartSession] = None
    """In-progress multipart session, if one was opened"""

    def __post_init__(self) -> None:
        self.sources = sorted(self.sources, key=lambda s: s.url)

    @property
    def next_part_number(self) -> int:
        return len(self.parts) + 1

    def is_part_copy(self, source: MergeSource) -> bool:
        """Whether a source should be added as a server-side part copy.

        A large source is copied only if the buffer is empty or already big
        enough to be a valid part on its own.
        """
        return source.size > self.part_threshold and (
            len(self.buffer) == 0 or len(self.buffer) > self.part_threshold
        )

    @property
    def should_flush(self) -> bool:
        return len(self.buffer) > self.flush_threshold

    def copy_sources(self) -> list[MergeSource]:
        return [s for s in self.sources if s.size > self.part_threshold]

    def buffer_sources(self) -> list[MergeSource]:
        return [s for s in self.sources if s.size <= self.part_threshold]

    def summary(self) -> dict[str, int]:
        """Counts and bytes of sources to copy versus to buffer."""
        copy = self.copy_sources()
        buffered = self.buffer_sources()
        return {
            "copy_count": len(copy),
            "copy_bytes": sum(s.size for s in copy),
            "buffer_count": len(buffered),
            "buffer_bytes": sum(s.size for s in buffered),
        }


@dataclass
class MergeOutcome:
    """Result of a merge."""

    path: MergePath
    destination: str
    copy_count: int = 0
    copy_bytes: int = 0
    buffer_count: int = 0
    buffer_bytes: int = 0
    parts: list[Part] = field(default_factory=list)
    upload_id: str = ""
    success: bool = True

    @property
    def source_count(self) -> int:
        return self.copy_count + self.buffer_count

    @property
    def total_bytes(self) -> int:
        return self.copy_bytes + self.buffer_bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path.value,
            "destination": self.destination,
            "copy_count": self.copy_count,
            "copy_bytes": self.copy_bytes,
            "buffer_count": self.buffer_count,
            "buffer_bytes": self.buffer_bytes,
            "parts": [
                {"number": p.number, "etag": p.etag, "size": p.size}
                for p in self.parts
            ],
            "upload_id": self.upload_id,
            "success": self.success,
        }
