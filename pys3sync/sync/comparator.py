"""Catalog comparison logic for sync operations."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .catalog import Catalog, Entry
from .digest import DigestLookup, Side

logger = logging.getLogger(__name__)


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    TRANSFER = "transfer"
    """Copy the source entry to the destination"""

    DELETE = "delete"
    """Delete the destination entry (only applied with delete enabled)"""

    SKIP = "skip"
    """Skip entry (no action needed)"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync one key."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    key: str
    """Relative key of the entry"""

    source: Optional[Entry] = None
    """Source entry (if exists)"""

    dest: Optional[Entry] = None
    """Destination entry (if exists)"""


@dataclass
class Changelist:
    """Result of comparing a source catalog against a destination catalog."""

    to_transfer: list[str] = field(default_factory=list)
    """Sorted keys to copy from source to destination"""

    to_delete: list[str] = field(default_factory=list)
    """Sorted destination keys absent from the source"""

    decisions: list[SyncDecision] = field(default_factory=list)
    """Every decision taken, in key order"""

    @property
    def is_empty(self) -> bool:
        return not self.to_transfer and not self.to_delete

    def transfer_size(self, source: Catalog) -> int:
        """Total bytes of the keys to transfer."""
        return sum(source[key].size for key in self.to_transfer if key in source)


class FileComparator:
    """Compares a source and a destination catalog to determine sync actions."""

    def __init__(
        self, verify_content: bool = True, digest_of: Optional[DigestLookup] = None
    ):
        """Initialize comparator.

        Args:
            verify_content: Compare digests of entries whose sizes are equal
            digest_of: Lookup for digests missing from the catalog entries
        """
        self.verify_content = verify_content
        self.digest_of = digest_of

    def compare(self, source: Catalog, dest: Catalog) -> Changelist:
        """Compare two catalogs without modifying either.

        Args:
            source: Catalog of the sync source
            dest: Catalog of the sync destination

        Returns:
            Changelist with sorted transfer and delete keys
        """
        changes = Changelist()

        for key in sorted(source):
            decision = self._compare_single(key, source[key], dest.get(key))
            changes.decisions.append(decision)
            if decision.action == SyncAction.TRANSFER:
                changes.to_transfer.append(key)

        for key in sorted(dest):
            if key in source:
                continue
            changes.decisions.append(
                SyncDecision(
                    action=SyncAction.DELETE,
                    reason="Not present in source",
                    key=key,
                    dest=dest[key],
                )
            )
            changes.to_delete.append(key)

        logger.debug(
            f"Compared {len(source)} source and {len(dest)} destination entries: "
            f"{len(changes.to_transfer)} to transfer, "
            f"{len(changes.to_delete)} to delete"
        )
        return changes

    def _compare_single(
        self, key: str, source: Entry, dest: Optional[Entry]
    ) -> SyncDecision:
        """Decide the action for a key present in the source."""
        if dest is None:
            return SyncDecision(
                action=SyncAction.TRANSFER, reason="New file", key=key, source=source
            )

        if source.size != dest.size:
            return SyncDecision(
                action=SyncAction.TRANSFER,
                reason=f"Size differs ({source.size} vs {dest.size})",
                key=key,
                source=source,
                dest=dest,
            )

        if not self.verify_content:
            return SyncDecision(
                action=SyncAction.SKIP,
                reason="Same size",
                key=key,
                source=source,
                dest=dest,
            )

        source_digest = self._digest(Side.SOURCE, key, source)
        dest_digest = self._digest(Side.DEST, key, dest)
        if not source_digest or not dest_digest:
            return SyncDecision(
                action=SyncAction.TRANSFER,
                reason="Content digest unknown",
                key=key,
                source=source,
                dest=dest,
            )
        if source_digest == dest_digest:
            return SyncDecision(
                action=SyncAction.SKIP,
                reason="Same content",
                key=key,
                source=source,
                dest=dest,
            )
        return SyncDecision(
            action=SyncAction.TRANSFER,
            reason="Content differs",
            key=key,
            source=source,
            dest=dest,
        )

    def _digest(self, side: Side, key: str, entry: Entry) -> str:
        if entry.digest or self.digest_of is None:
            return entry.digest
        return self.digest_of(side, key)


def diff(
    source: Catalog,
    dest: Catalog,
    verify_content: bool,
    digest_of: Optional[DigestLookup] = None,
) -> Changelist:
    """Compute the changelist that makes ``dest`` mirror ``source``.

    Args:
        source: Catalog of the sync source
        dest: Catalog of the sync destination
        verify_content: Compare digests when sizes are equal
        digest_of: Lookup for digests the catalogs do not carry

    Returns:
        Changelist of keys to transfer and keys to delete

    Examples:
        >>> a = {"x": Entry(size=1, digest="aa")}
        >>> diff(a, {}, verify_content=False).to_transfer
        ['x']
        >>> diff({}, a, verify_content=True).to_delete
        ['x']
    """
    return FileComparator(verify_content, digest_of).compare(source, dest)
