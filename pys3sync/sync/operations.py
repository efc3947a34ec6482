"""Transfer operations: the per-item primitives used by sync workers."""

import logging
from dataclasses import dataclass
from enum import Enum

from ..api import S3Client
from ..exceptions import InvalidLocatorError
from ..locator import LocalLocator, Locator, RemoteLocator
from ..utils import SYNC_CONTENT_TYPE, copy_stream

logger = logging.getLogger(__name__)


class TransferKind(str, Enum):
    """Kind of a transfer, derived from its endpoints."""

    UPLOAD = "upload"
    DOWNLOAD = "download"
    COPY = "copy"


@dataclass(frozen=True)
class TransferRequest:
    """One entry to move from a source locator to a destination locator."""

    source: Locator
    dest: Locator
    key: str
    size: int = 0

    @property
    def kind(self) -> TransferKind:
        """Classify the request.

        Raises:
            InvalidLocatorError: If both endpoints are local
        """
        if self.source.is_remote and self.dest.is_remote:
            return TransferKind.COPY
        if self.source.is_remote:
            return TransferKind.DOWNLOAD
        if self.dest.is_remote:
            return TransferKind.UPLOAD
        raise InvalidLocatorError(
            f"Cannot transfer {self.source} to {self.dest}: both are local"
        )


class TransferOperations:
    """Unified get/put/copy/delete operations with a common interface."""

    def __init__(self, client: S3Client, content_type: str = SYNC_CONTENT_TYPE):
        """Initialize transfer operations.

        Args:
            client: Object store client
            content_type: Content type of uploaded objects
        """
        self.client = client
        self.content_type = content_type

    def execute(self, request: TransferRequest) -> int:
        """Perform one transfer.

        Args:
            request: Request to perform

        Returns:
            Number of bytes transferred
        """
        kind = request.kind
        if kind == TransferKind.UPLOAD:
            return self.upload(request.source, request.dest)
        if kind == TransferKind.DOWNLOAD:
            return self.download(request.source, request.dest)
        return self.copy(request.source, request.dest, request.size)

    def upload(self, source: LocalLocator, dest: RemoteLocator) -> int:
        """Upload a local file to a remote key."""
        size = source.path.stat().st_size
        with open(source.path, "rb") as f:
            self.client.put_object(
                dest.bucket, dest.key, f, size, content_type=self.content_type
            )
        logger.debug(f"Uploaded {source} => {dest} ({size} bytes)")
        return size

    def download(self, source: RemoteLocator, dest: LocalLocator) -> int:
        """Download a remote object into a local file.

        Parent directories are created as needed.
        """
        dest.path.parent.mkdir(parents=True, exist_ok=True)
        body = self.client.get_object(source.bucket, source.key)
        try:
            with open(dest.path, "wb") as f:
                written = copy_stream(body, f)
        finally:
            body.close()
        logger.debug(f"Downloaded {source} => {dest} ({written} bytes)")
        return written

    def copy(self, source: RemoteLocator, dest: RemoteLocator, size: int = 0) -> int:
        """Copy an object server-side."""
        self.client.copy_object(dest.bucket, dest.key, source.bucket, source.key)
        logger.debug(f"Copied {source} => {dest}")
        return size

    def delete_remote_batch(self, root: RemoteLocator, keys: list[str]) -> list[str]:
        """Delete relative keys below a remote prefix with quiet batch deletes.

        Args:
            root: Remote prefix the keys are relative to
            keys: Relative keys to delete

        Returns:
            Full keys the backend reported as not deleted
        """
        full_keys = [root.join(key).key for key in keys]
        errors = self.client.delete_objects(root.bucket, full_keys, quiet=True)
        failed = []
        for error in errors:
            logger.warning(
                f"Failed to delete s3://{root.bucket}/{error.get('Key', '')}: "
                f"{error.get('Code', '')} {error.get('Message', '')}"
            )
            failed.append(str(error.get("Key", "")))
        return failed

    def delete_local(self, root: LocalLocator, key: str) -> None:
        """Delete a local file below a root directory."""
        target = root.join(key)
        target.path.unlink()
        logger.debug(f"Deleted {target}")
