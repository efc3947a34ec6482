"""Maintenance of pending multipart upload sessions."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .api import S3Client
from .exceptions import S3APIError
from .models import MultipartSession, UploadSummary

logger = logging.getLogger(__name__)


@dataclass
class UploadListing:
    """Pending sessions and sub-prefixes below one prefix."""

    uploads: list[UploadSummary] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)


@dataclass
class CleanResult:
    """Result of aborting or completing one pending session."""

    session: MultipartSession
    action: str
    """``abort`` or ``complete``"""

    success: bool
    parts: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "url": self.session.url,
            "upload_id": self.session.upload_id,
            "action": self.action,
            "success": self.success,
            "parts": self.parts,
            "error": self.error,
        }


def list_uploads(
    client: S3Client,
    bucket: str,
    prefix: str = "",
    recursive: bool = False,
    with_parts: bool = True,
) -> UploadListing:
    """List pending multipart sessions below a prefix.

    Args:
        client: Object store client
        bucket: Bucket name
        prefix: Key prefix
        recursive: List all sessions instead of grouping by ``/``
        with_parts: Fetch the parts already uploaded to each session

    Returns:
        UploadListing with one summary per session
    """
    delimiter = "" if recursive else "/"
    sessions, prefixes = client.list_multipart_uploads(bucket, prefix, delimiter)
    logger.debug(
        f"Found {len(sessions)} pending upload(s) and {len(prefixes)} prefix(es) "
        f"below s3://{bucket}/{prefix}"
    )
    listing = UploadListing(prefixes=prefixes)
    for session in sessions:
        summary = UploadSummary(session=session)
        if with_parts:
            try:
                summary.parts = client.list_parts(session)
            except S3APIError as e:
                logger.warning(f"Cannot list parts of {session.url}: {e}")
        listing.uploads.append(summary)
    return listing


def clean_uploads(
    client: S3Client,
    bucket: str,
    prefix: str = "",
    recursive: bool = False,
    upload_id: Optional[str] = None,
    complete: bool = False,
) -> list[CleanResult]:
    """Abort, or complete with the parts already uploaded, pending sessions.

    A failure on one session is recorded and the remaining sessions are
    still processed.

    Args:
        client: Object store client
        bucket: Bucket name
        prefix: Key prefix
        recursive: Include sessions below sub-prefixes
        upload_id: Only act on the session with this upload id
        complete: Complete sessions instead of aborting them

    Returns:
        One CleanResult per matching session
    """
    delimiter = "" if recursive else "/"
    sessions, _ = client.list_multipart_uploads(bucket, prefix, delimiter)
    results: list[CleanResult] = []
    for session in sessions:
        if upload_id and session.upload_id != upload_id:
            continue
        if complete:
            results.append(_complete(client, session))
        else:
            results.append(_abort(client, session))
    return results


def _complete(client: S3Client, session: MultipartSession) -> CleanResult:
    try:
        parts = client.list_parts(session)
        logger.debug(f"Completing {session.url} {session.upload_id} with {len(parts)} part(s)")
        client.complete_multipart(session, parts)
    except S3APIError as e:
        logger.warning(f"Complete of {session.url} {session.upload_id} failed: {e}")
        return CleanResult(session, "complete", success=False, error=str(e))
    return CleanResult(session, "complete", success=True, parts=len(parts))


def _abort(client: S3Client, session: MultipartSession) -> CleanResult:
    logger.debug(f"Aborting {session.url} {session.upload_id}")
    try:
        client.abort_multipart(session)
    except S3APIError as e:
        logger.warning(f"Abort of {session.url} {session.upload_id} failed: {e}")
        return CleanResult(session, "abort", success=False, error=str(e))
    return CleanResult(session, "abort", success=True)
