"""Sync pair and option definitions."""

from dataclasses import dataclass, field
from typing import Any, Union

from ..locator import Locator, parse_locator
from .modes import SyncMode


@dataclass
class SyncOptions:
    """Options controlling one sync run."""

    parallelism: int = 1
    """Number of concurrent transfer workers"""

    verify_content: bool = True
    """Compare digests of equal-sized entries"""

    delete: bool = False
    """Delete destination entries absent from the source"""

    dry_run: bool = False
    """Report what would happen without transferring or deleting"""

    def __post_init__(self) -> None:
        if isinstance(self.parallelism, bool) or not isinstance(self.parallelism, int):
            raise ValueError(f"parallelism must be an integer, got {self.parallelism!r}")
        if self.parallelism < 1:
            raise ValueError(f"parallelism must be at least 1, got {self.parallelism}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "parallelism": self.parallelism,
            "verifyContent": self.verify_content,
            "delete": self.delete,
            "dryRun": self.dry_run,
        }


@dataclass
class SyncPair:
    """A source and destination to keep in sync.

    Strings are parsed into locators; the sync mode is derived from them, so
    a local-to-local pair is rejected on construction.

    Examples:
        >>> pair = SyncPair(source="./photos", dest="s3://bucket/photos")
        >>> pair.mode
        <SyncMode.LOCAL_TO_REMOTE: 'localToRemote'>
    """

    source: Union[Locator, str]
    """Where entries are read from"""

    dest: Union[Locator, str]
    """Where entries are written to"""

    options: SyncOptions = field(default_factory=SyncOptions)
    """Options for this pair"""

    def __post_init__(self) -> None:
        if isinstance(self.source, str):
            self.source = parse_locator(self.source)
        if isinstance(self.dest, str):
            self.dest = parse_locator(self.dest)
        self.mode = SyncMode.from_locators(self.source, self.dest)
