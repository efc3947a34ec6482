"""Sync directions derived from the kinds of the two locators."""

from enum import Enum

from ..exceptions import InvalidLocatorError
from ..locator import Locator


class SyncMode(str, Enum):
    """Direction of a one-way sync."""

    LOCAL_TO_REMOTE = "localToRemote"
    """Upload a local tree to a remote prefix"""

    REMOTE_TO_LOCAL = "remoteToLocal"
    """Download a remote prefix to a local tree"""

    REMOTE_TO_REMOTE = "remoteToRemote"
    """Copy one remote prefix to another, server-side"""

    @classmethod
    def from_locators(cls, source: Locator, dest: Locator) -> "SyncMode":
        """Derive the mode from a source and destination.

        Raises:
            InvalidLocatorError: If both locators are local
        """
        if source.is_remote and dest.is_remote:
            return cls.REMOTE_TO_REMOTE
        if source.is_remote:
            return cls.REMOTE_TO_LOCAL
        if dest.is_remote:
            return cls.LOCAL_TO_REMOTE
        raise InvalidLocatorError(
            f"Cannot sync local {source} to local {dest}: "
            "at least one side must be remote"
        )
