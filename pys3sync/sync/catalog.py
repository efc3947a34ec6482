"""Entry catalogs: key -> metadata snapshots of a local tree or a remote prefix."""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..api import S3Client
from ..exceptions import ListingError
from ..utils import FOLDER_MARKER_SUFFIXES, LIST_PAGE_SIZE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entry:
    """Metadata of one file or object."""

    size: int
    """Size in bytes"""

    digest: str = ""
    """Content fingerprint (MD5 hex or ETag); empty means unknown"""

    modified: Optional[datetime] = None
    """Last modification time"""


Catalog = dict[str, Entry]
"""Mapping of relative key (forward slashes) to Entry"""


def normalize_prefix(prefix: str, delimiter: str = "/") -> str:
    """Normalize a listing prefix so that ``dir`` and ``dir/`` list the same keys.

    Examples:
        >>> normalize_prefix("photos")
        'photos/'
        >>> normalize_prefix("photos//")
        'photos/'
        >>> normalize_prefix("")
        ''
    """
    if delimiter:
        while prefix.endswith(delimiter):
            prefix = prefix[: -len(delimiter)]
    if prefix:
        prefix = prefix + delimiter
    return prefix


def is_folder_marker(key: str, size: int) -> bool:
    """Check whether a listed key is a zero-byte directory placeholder."""
    return size == 0 and key.endswith(FOLDER_MARKER_SUFFIXES)


def build_local_catalog(root: Path) -> Catalog:
    """Walk a local directory tree and catalog its regular files.

    Args:
        root: Directory to scan

    Returns:
        Catalog keyed by the path relative to ``root``; empty if ``root``
        does not exist

    Examples:
        >>> catalog = build_local_catalog(Path("/home/user/documents"))
        >>> for key, entry in sorted(catalog.items()):
        ...     print(key, entry.size)
    """
    catalog: Catalog = {}
    if not root.exists():
        logger.debug(f"Local root {root} does not exist, catalog is empty")
        return catalog

    def on_error(error: OSError) -> None:
        logger.debug(f"Skipping unreadable directory: {error}")

    for dirpath, _dirnames, filenames in os.walk(root, onerror=on_error):
        for name in filenames:
            file_path = Path(dirpath) / name
            try:
                stat = file_path.lstat()
            except OSError as e:
                logger.debug(f"Skipping unreadable file {file_path}: {e}")
                continue
            # Only regular files; symlinks, sockets and fifos are not content
            if not file_path.is_file() or file_path.is_symlink():
                continue
            key = file_path.relative_to(root).as_posix().lstrip("/")
            catalog[key] = Entry(
                size=stat.st_size,
                modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            )

    logger.debug(f"Local catalog of {root}: {len(catalog)} file(s)")
    return catalog


class RemoteCatalogBuilder:
    """Builds catalogs of remote prefixes with automatic pagination."""

    def __init__(self, client: S3Client, page_size: int = LIST_PAGE_SIZE):
        """Initialize the builder.

        Args:
            client: Object store client
            page_size: Keys requested per listing page
        """
        self.client = client
        self.page_size = page_size

    def build(self, bucket: str, prefix: str, delimiter: str = "/") -> Catalog:
        """List every object below a prefix.

        A listing error ends the loop early; whatever was collected before
        the failing page is returned as the catalog.

        Args:
            bucket: Bucket name
            prefix: Key prefix (``dir`` and ``dir/`` are equivalent)
            delimiter: Path delimiter used to normalize the prefix

        Returns:
            Catalog keyed by the object key with the prefix stripped
        """
        prefix = normalize_prefix(prefix, delimiter)
        catalog: Catalog = {}
        marker = ""
        pages = 0

        while True:
            try:
                result = self.client.list_objects(
                    bucket,
                    prefix=prefix,
                    delimiter="",
                    marker=marker,
                    max_keys=self.page_size,
                )
            except ListingError as e:
                logger.warning(
                    f"Listing s3://{bucket}/{prefix} failed after {pages} page(s), "
                    f"continuing with {len(catalog)} partial result(s): {e}"
                )
                break
            pages += 1

            for obj in result.contents:
                key = obj.key[len(prefix) :] if obj.key.startswith(prefix) else obj.key
                if is_folder_marker(key, obj.size):
                    continue
                catalog[key] = Entry(
                    size=obj.size, digest=obj.etag, modified=obj.last_modified
                )

            if not result.truncated:
                break
            if not result.next_marker or result.next_marker == marker:
                logger.warning(
                    f"Listing s3://{bucket}/{prefix} is truncated but has no "
                    "usable marker, stopping"
                )
                break
            marker = result.next_marker

        logger.debug(
            f"Remote catalog of s3://{bucket}/{prefix}: "
            f"{len(catalog)} object(s) in {pages} page(s)"
        )
        return catalog


def build_remote_catalog(
    client: S3Client, bucket: str, prefix: str, delimiter: str = "/"
) -> Catalog:
    """Catalog a remote prefix. See :meth:`RemoteCatalogBuilder.build`."""
    return RemoteCatalogBuilder(client).build(bucket, prefix, delimiter)
