"""pys3sync - Sync directory trees with and merge objects in S3-compatible storage."""

from .api import S3Client
from .config import Config, S3Settings
from .exceptions import (
    InvalidLocatorError,
    ListingError,
    MultipartError,
    QueueClosedError,
    S3APIError,
    S3ConfigError,
    S3NetworkError,
    S3NotFoundError,
    S3PermissionError,
    S3SyncError,
    ShortReadError,
    TransferError,
)
from .locator import LocalLocator, RemoteLocator, parse_locator
from .merge import MergeEngine, MergeOptions, MergeOutcome, MergePath
from .sync import SyncEngine, SyncOptions, SyncReport

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "S3Client",
    "Config",
    "S3Settings",
    "LocalLocator",
    "RemoteLocator",
    "parse_locator",
    "SyncEngine",
    "SyncOptions",
    "SyncReport",
    "MergeEngine",
    "MergeOptions",
    "MergeOutcome",
    "MergePath",
    "S3SyncError",
    "S3ConfigError",
    "InvalidLocatorError",
    "S3APIError",
    "S3NotFoundError",
    "S3PermissionError",
    "S3NetworkError",
    "ListingError",
    "TransferError",
    "ShortReadError",
    "MultipartError",
    "QueueClosedError",
]
