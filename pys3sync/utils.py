"""Utility functions and constants for pys3sync."""

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

# =============================================================================
# Constants for object store operations
# =============================================================================

# Keys returned per listing page
LIST_PAGE_SIZE: int = 1000

# Keys per quiet batch delete request (backend limit)
DELETE_BATCH_SIZE: int = 1000

# Minimum size of every multipart part except the last one (5 MiB)
MIN_PART_SIZE: int = 5 * 1024 * 1024

# Buffered merge data is flushed as a part once it grows past this (16 MiB)
MERGE_FLUSH_THRESHOLD: int = 16 * 1024 * 1024

# Read size when streaming files and response bodies
STREAM_CHUNK_SIZE: int = 1024 * 1024

DEFAULT_CONTENT_TYPE: str = "binary/octet-stream"
SYNC_CONTENT_TYPE: str = "application/octet-stream"

# Region used for signing when none is configured
DEFAULT_REGION: str = "us-east-1"

# Part size of split uploads (16 MiB)
PUT_SPLIT_SIZE: int = 16 * 1024 * 1024

# Lifetime of pre-signed URLs in seconds
PRESIGN_EXPIRES: int = 3600

# Zero-byte keys with these suffixes are folder placeholders, not content
FOLDER_MARKER_SUFFIXES: tuple[str, ...] = ("_$folder$", "/")


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a LastModified value from a listing.

    boto3 already returns timezone-aware datetimes; raw XML listings carry
    strings like ``2025-01-15T10:30:00.000Z``.

    Args:
        value: Datetime, ISO format timestamp string or None

    Returns:
        Timezone-aware datetime or None if parsing fails
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    timestamp_str = value
    if timestamp_str.endswith("Z"):
        timestamp_str = timestamp_str[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(timestamp_str)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Digest utilities
# =============================================================================


def strip_etag(etag: Optional[str]) -> str:
    """Strip the surrounding quote characters the backend puts on ETags.

    Examples:
        >>> strip_etag('"d41d8cd98f00b204e9800998ecf8427e"')
        'd41d8cd98f00b204e9800998ecf8427e'
        >>> strip_etag(None)
        ''
    """
    if not etag:
        return ""
    return etag.strip('"')


def file_md5(path: Path, chunk_size: int = STREAM_CHUNK_SIZE) -> str:
    """Calculate the MD5 hex digest of a file, streaming it in chunks.

    Args:
        path: File to hash
        chunk_size: Bytes read per iteration

    Returns:
        Lowercase hex digest, comparable to a single-part ETag

    Raises:
        OSError: If the file cannot be read
    """
    digest = hashlib.md5()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def copy_stream(source: Any, target: Any, chunk_size: int = STREAM_CHUNK_SIZE) -> int:
    """Copy a readable stream into a writable one.

    Returns:
        Number of bytes copied
    """
    total = 0
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        target.write(chunk)
        total += len(chunk)
    return total


def chunked(items: list, size: int) -> list[list]:
    """Split a list into consecutive slices of at most ``size`` items."""
    return [items[i : i + size] for i in range(0, len(items), size)]
