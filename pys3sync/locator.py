"""Locators: addresses of a local path or a bucket+key in the object store."""

from dataclasses import dataclass
from pathlib import Path
from typing import Union
from urllib.parse import urlparse

from .exceptions import InvalidLocatorError

REMOTE_SCHEMES = ("s3", "dag")


@dataclass(frozen=True)
class LocalLocator:
    """A path on the local filesystem."""

    path: Path

    @property
    def is_remote(self) -> bool:
        return False

    @property
    def url(self) -> str:
        return str(self.path)

    def join(self, key: str) -> "LocalLocator":
        """Return the locator of a relative key below this path.

        Raises:
            InvalidLocatorError: If the key would resolve outside this path
        """
        parts = [part for part in key.split("/") if part]
        if not parts or any(part in (".", "..") for part in parts):
            raise InvalidLocatorError(f"Key {key!r} escapes {self.path}")
        return LocalLocator(self.path.joinpath(*parts))

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class RemoteLocator:
    """A bucket and key (or key prefix) in the object store."""

    bucket: str
    key: str = ""

    @property
    def is_remote(self) -> bool:
        return True

    @property
    def url(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    def join(self, key: str) -> "RemoteLocator":
        """Return the locator of a relative key below this prefix.

        Examples:
            >>> RemoteLocator("bkt", "dir").join("a/b.txt").key
            'dir/a/b.txt'
            >>> RemoteLocator("bkt", "").join("a.txt").key
            'a.txt'
        """
        if not self.key:
            return RemoteLocator(self.bucket, key)
        if not key:
            return self
        return RemoteLocator(self.bucket, f"{self.key.rstrip('/')}/{key}")

    def __str__(self) -> str:
        return self.url


Locator = Union[LocalLocator, RemoteLocator]


def is_remote_url(value: str) -> bool:
    """Check whether a string looks like a remote URL (has any scheme)."""
    return "://" in value


def parse_remote(value: str) -> RemoteLocator:
    """Parse an ``s3://bucket/key`` URL.

    Args:
        value: URL to parse

    Returns:
        RemoteLocator with the leading slash of the key removed

    Raises:
        InvalidLocatorError: If the scheme is not supported or the bucket is missing
    """
    parsed = urlparse(value)
    if parsed.scheme not in REMOTE_SCHEMES:
        raise InvalidLocatorError(f"invalid scheme: {parsed.scheme or '(none)'}")
    if not parsed.netloc:
        raise InvalidLocatorError(f"missing bucket in {value}")
    key = parsed.path
    if key.startswith("/"):
        key = key[1:]
    return RemoteLocator(bucket=parsed.netloc, key=key)


def parse_locator(value: str) -> Locator:
    """Parse a command-line argument into a local or remote locator.

    Strings without a scheme are local paths; anything with a scheme must be
    one of the supported remote schemes.

    Examples:
        >>> parse_locator("s3://bucket/dir/file.txt")
        RemoteLocator(bucket='bucket', key='dir/file.txt')
        >>> parse_locator("./local/dir")
        LocalLocator(path=PosixPath('local/dir'))
    """
    if not value:
        raise InvalidLocatorError("empty locator")
    if is_remote_url(value):
        return parse_remote(value)
    return LocalLocator(Path(value))
