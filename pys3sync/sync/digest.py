"""Lazily computed, memoized content digests for catalog entries."""

import logging
import threading
from enum import Enum
from typing import Callable

from ..locator import Locator
from ..utils import file_md5, strip_etag
from .catalog import Catalog

logger = logging.getLogger(__name__)


class Side(str, Enum):
    """Which side of a comparison a key belongs to."""

    SOURCE = "source"
    DEST = "dest"


DigestLookup = Callable[[Side, str], str]
"""Callable returning the digest of a key on one side of a comparison"""


class DigestCache:
    """Memoizes content digests by locator URL for the lifetime of one run.

    Local digests are the MD5 hex of the file contents, computed on first
    request. Remote digests are the ETag already known from the listing, so
    no request is made for them.
    """

    def __init__(self) -> None:
        self._digests: dict[str, str] = {}
        self._lock = threading.Lock()
        self.computed = 0
        """Number of digests actually computed (cache misses)"""

    def __len__(self) -> int:
        return len(self._digests)

    def digest_of(self, locator: Locator, known: str = "") -> str:
        """Get the digest of a file or object.

        Args:
            locator: Local file or remote object
            known: Digest already known from a listing (used for remote objects)

        Returns:
            Hex digest, or an empty string if the content cannot be read
        """
        url = locator.url
        with self._lock:
            if url in self._digests:
                return self._digests[url]

        if locator.is_remote:
            digest = strip_etag(known)
        else:
            try:
                digest = file_md5(locator.path)
            except OSError as e:
                logger.debug(f"Cannot digest {url}: {e}")
                digest = ""

        with self._lock:
            self._digests[url] = digest
            self.computed += 1
        return digest

    def bind(
        self,
        source_root: Locator,
        dest_root: Locator,
        source: Catalog,
        dest: Catalog,
    ) -> DigestLookup:
        """Bind the cache to a pair of roots and their catalogs.

        Args:
            source_root: Root locator of the source catalog
            dest_root: Root locator of the destination catalog
            source: Source catalog (provides remote ETags)
            dest: Destination catalog (provides remote ETags)

        Returns:
            Lookup function suitable for ``diff(..., digest_of=...)``
        """
        roots = {Side.SOURCE: (source_root, source), Side.DEST: (dest_root, dest)}

        def lookup(side: Side, key: str) -> str:
            root, catalog = roots[side]
            entry = catalog.get(key)
            return self.digest_of(root.join(key), entry.digest if entry else "")

        return lookup
