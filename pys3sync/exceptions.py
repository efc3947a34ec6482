"""Exception hierarchy for pys3sync."""

from typing import Optional


class S3SyncError(Exception):
    """Base exception for all pys3sync errors."""


class S3ConfigError(S3SyncError):
    """Raised when credentials or endpoint configuration is missing or invalid."""


class InvalidLocatorError(S3SyncError):
    """Raised when a locator is malformed or uses an unsupported scheme."""


class S3APIError(S3SyncError):
    """Raised when a call to the object store fails."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class S3NotFoundError(S3APIError):
    """Raised when a bucket, key or upload does not exist."""


class S3PermissionError(S3APIError):
    """Raised when the credentials are not allowed to perform a call."""


class S3NetworkError(S3APIError):
    """Raised when the endpoint cannot be reached."""


class ListingError(S3APIError):
    """Raised when a paginated listing call fails mid-stream."""


class TransferError(S3SyncError):
    """Raised when a single get, put or copy of a sync item fails."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class ShortReadError(S3SyncError):
    """Raised when a buffered merge source yields fewer or more bytes than listed."""

    def __init__(self, url: str, expected: int, actual: int):
        super().__init__(
            f"Short read from {url}: expected {expected} bytes, got {actual}"
        )
        self.url = url
        self.expected = expected
        self.actual = actual


class MultipartError(S3APIError):
    """Raised when a part upload, part copy or completion fails.

    The multipart session is intentionally left open so the parts already
    uploaded can be inspected with ``listmulti`` and then aborted or completed
    with ``cleanmulti``.
    """

    def __init__(self, message: str, upload_id: str = "", code: Optional[str] = None):
        super().__init__(message, code=code)
        self.upload_id = upload_id


class QueueClosedError(S3SyncError):
    """Raised when a request is pushed onto a closed transfer queue."""
