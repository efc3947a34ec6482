"""Single-object transfers: put, get, ranged reads, split uploads and archives."""

import logging
import posixpath
import re
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Optional

from .api import S3Client
from .exceptions import InvalidLocatorError, S3APIError
from .locator import RemoteLocator
from .models import Part
from .sync.catalog import RemoteCatalogBuilder
from .utils import DEFAULT_CONTENT_TYPE, MIN_PART_SIZE, PUT_SPLIT_SIZE, copy_stream

logger = logging.getLogger(__name__)

_RANGE_PATTERN = re.compile(r"^(\d+-\d*|-\d+)$")


@dataclass
class PutResult:
    """Outcome of uploading one local file."""

    source: str
    url: str
    size: int = 0
    parts: int = 0
    """Number of parts of a split upload (0 for a single request)"""

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "url": self.url,
            "size": self.size,
            "parts": self.parts,
        }


def target_locator(dest: RemoteLocator, name: str, many: bool) -> RemoteLocator:
    """Destination of one source among the sources written to ``dest``.

    A single source is written to the destination key itself unless that key
    is empty or ends with a slash. Several sources are written below it, each
    under its own base name.

    Examples:
        >>> target_locator(RemoteLocator("b", "dir"), "a.txt", many=True).key
        'dir/a.txt'
        >>> target_locator(RemoteLocator("b", "x.bin"), "a.txt", many=False).key
        'x.bin'
        >>> target_locator(RemoteLocator("b", "dir/"), "a.txt", many=False).key
        'dir/a.txt'
    """
    if not many and dest.key and not dest.key.endswith("/"):
        return dest
    base = posixpath.basename(name.rstrip("/"))
    if not base:
        raise InvalidLocatorError(f"Cannot derive an object name from {name!r}")
    return RemoteLocator(dest.bucket, posixpath.join(dest.key, base))


def range_header(spec: str) -> dict[str, str]:
    """Build the request headers for a byte range such as ``0-99``.

    Raises:
        ValueError: If the range is not ``FIRST-LAST``, ``FIRST-`` or ``-SUFFIX``
    """
    spec = spec.strip()
    if spec.startswith("bytes="):
        spec = spec[len("bytes=") :]
    if not _RANGE_PATTERN.match(spec):
        raise ValueError(f"Invalid byte range: {spec!r}")
    first, _, last = spec.partition("-")
    if first and last and int(last) < int(first):
        raise ValueError(f"Invalid byte range: {spec!r}")
    return {"Range": f"bytes={spec}"}


def put_file(
    client: S3Client,
    path: Path,
    dest: RemoteLocator,
    content_type: str = DEFAULT_CONTENT_TYPE,
) -> PutResult:
    """Upload a local file with a single request."""
    size = path.stat().st_size
    with open(path, "rb") as f:
        client.put_object(dest.bucket, dest.key, f, size, content_type=content_type)
    logger.debug(f"Uploaded {path} => {dest} ({size} bytes)")
    return PutResult(source=str(path), url=dest.url, size=size)


def put_file_multipart(
    client: S3Client,
    path: Path,
    dest: RemoteLocator,
    split_size: int = PUT_SPLIT_SIZE,
    content_type: str = DEFAULT_CONTENT_TYPE,
) -> PutResult:
    """Upload a local file in parts of ``split_size`` bytes.

    Files no larger than one part are uploaded with a single request. If any
    part or the completion fails the upload is aborted and the error raised.

    Args:
        client: Object store client
        path: File to upload
        dest: Destination object
        split_size: Size of every part except the last one
        content_type: Content type of the new object

    Returns:
        PutResult with the number of parts

    Raises:
        ValueError: If ``split_size`` is below the minimum part size
    """
    if split_size < MIN_PART_SIZE:
        raise ValueError(
            f"Split size must be at least {MIN_PART_SIZE} bytes, got {split_size}"
        )
    size = path.stat().st_size
    if size <= split_size:
        return put_file(client, path, dest, content_type)

    session = client.initiate_multipart(dest.bucket, dest.key, content_type)
    logger.debug(f"Opened multipart upload {session.upload_id} for {dest}")
    parts: list[Part] = []
    try:
        with open(path, "rb") as f:
            while True:
                chunk = f.read(split_size)
                if not chunk:
                    break
                parts.append(client.upload_part(session, len(parts) + 1, chunk))
        client.complete_multipart(session, parts)
    except Exception:
        logger.warning(f"Aborting multipart upload {session.upload_id} of {dest}")
        try:
            client.abort_multipart(session)
        except S3APIError as abort_error:
            logger.warning(f"Abort of {session.upload_id} failed: {abort_error}")
        raise

    logger.debug(f"Uploaded {path} => {dest} in {len(parts)} part(s)")
    return PutResult(source=str(path), url=dest.url, size=size, parts=len(parts))


def stream_object(
    client: S3Client,
    source: RemoteLocator,
    target: BinaryIO,
    headers: Optional[dict[str, str]] = None,
) -> int:
    """Copy an object (or a range of it) into a writable binary stream.

    Returns:
        Number of bytes written
    """
    body = client.get_object(source.bucket, source.key, headers=headers)
    try:
        return copy_stream(body, target)
    finally:
        body.close()


def download_object(client: S3Client, source: RemoteLocator, target: Path) -> int:
    """Download an object into a local file.

    Returns:
        Number of bytes written
    """
    with open(target, "wb") as f:
        written = stream_object(client, source, f)
    logger.debug(f"Downloaded {source} => {target} ({written} bytes)")
    return written


def write_tar(
    client: S3Client,
    prefixes: Iterable[RemoteLocator],
    target: BinaryIO,
    compress: bool = False,
) -> int:
    """Stream every object below the prefixes into a tar archive.

    Members are named ``bucket/key``. The archive is written as a stream, so
    ``target`` need not be seekable.

    Args:
        client: Object store client
        prefixes: Remote prefixes to archive
        target: Writable binary stream
        compress: Gzip the archive

    Returns:
        Number of archived objects
    """
    builder = RemoteCatalogBuilder(client)
    count = 0
    with tarfile.open(fileobj=target, mode="w|gz" if compress else "w|") as archive:
        for prefix in prefixes:
            catalog = builder.build(prefix.bucket, prefix.key, delimiter="")
            for key in sorted(catalog):
                entry = catalog[key]
                source = RemoteLocator(prefix.bucket, prefix.key + key)
                info = tarfile.TarInfo(name=f"{source.bucket}/{source.key}")
                info.size = entry.size
                info.mode = 0o644
                if entry.modified is not None:
                    info.mtime = int(entry.modified.timestamp())
                body = client.get_object(source.bucket, source.key)
                try:
                    archive.addfile(info, body)
                finally:
                    body.close()
                count += 1
                logger.debug(f"Archived {source} ({entry.size} bytes)")
    return count
