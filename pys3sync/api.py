"""API client for S3-compatible object stores."""

from __future__ import annotations

import logging
import threading
from typing import Any, BinaryIO, Union

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    EndpointConnectionError,
)

from .config import S3Settings, config
from .exceptions import (
    ListingError,
    MultipartError,
    S3APIError,
    S3NetworkError,
    S3NotFoundError,
    S3PermissionError,
)
from .models import Bucket, ListResult, MultipartSession, Part
from .utils import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_REGION,
    DELETE_BATCH_SIZE,
    LIST_PAGE_SIZE,
    PRESIGN_EXPIRES,
    chunked,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NoSuchUpload", "NotFound"}
PERMISSION_CODES = {"403", "AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"}

# Request headers accepted by get_object, mapped to boto3 parameter names
GET_HEADER_PARAMS = {
    "range": "Range",
    "if-match": "IfMatch",
    "if-none-match": "IfNoneMatch",
    "if-modified-since": "IfModifiedSince",
    "if-unmodified-since": "IfUnmodifiedSince",
}

Body = Union[bytes, BinaryIO]


class S3Client:
    """Client for the object store primitives used by sync and merge."""

    def __init__(
        self,
        settings: S3Settings | None = None,
        max_retries: int = 3,
        timeout: float = 60.0,
    ):
        """Initialize the S3 client.

        Args:
            settings: Connection settings (loaded from config if not provided)
            max_retries: Maximum number of retry attempts for transient errors
            timeout: Connect and read timeout in seconds
        """
        self.settings = settings or config.load()
        self.max_retries = max_retries
        self.timeout = timeout
        self._client: Any = None
        self._lock = threading.Lock()

    def _get_client(self) -> Any:
        """Get or create the underlying boto3 client."""
        with self._lock:
            if self._client is None:
                boto_config = BotoConfig(
                    retries={"max_attempts": self.max_retries + 1, "mode": "standard"},
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    s3={
                        "addressing_style": (
                            "path" if self.settings.force_path_style else "auto"
                        )
                    },
                )
                self._client = boto3.client(
                    "s3",
                    aws_access_key_id=self.settings.access_key,
                    aws_secret_access_key=self.settings.secret_key,
                    endpoint_url=self.settings.endpoint,
                    region_name=self.settings.region,
                    config=boto_config,
                )
            return self._client

    def close(self) -> None:
        """Close the client and release pooled connections."""
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def _translate_error(
        self,
        e: Exception,
        operation: str,
        error_cls: type[S3APIError] | None = None,
        **extra: Any,
    ) -> S3APIError:
        """Map a botocore exception onto the pys3sync hierarchy.

        Args:
            e: Exception raised by botocore
            operation: Human-readable name of the failed operation
            error_cls: Force this exception class instead of mapping by code
            **extra: Additional keyword arguments for the exception class

        Returns:
            Exception to raise
        """
        if isinstance(e, ClientError):
            error = e.response.get("Error", {})
            code = str(error.get("Code", ""))
            message = f"{operation} failed: {code} {error.get('Message', '')}".strip()
            if error_cls is not None:
                return error_cls(message, code=code, **extra)
            if code in NOT_FOUND_CODES:
                return S3NotFoundError(message, code=code)
            if code in PERMISSION_CODES:
                return S3PermissionError(message, code=code)
            return S3APIError(message, code=code)

        message = f"{operation} failed: {e}"
        if error_cls is not None:
            return error_cls(message, **extra)
        if isinstance(e, (EndpointConnectionError, BotoConnectionError)):
            return S3NetworkError(message)
        return S3APIError(message)

    # =========================================================================
    # Buckets and listing
    # =========================================================================

    def list_buckets(self) -> tuple[str, list[Bucket]]:
        """List all buckets owned by the credentials.

        Returns:
            Tuple of (owner display name, buckets)
        """
        try:
            response = self._get_client().list_buckets()
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "ListBuckets") from e
        owner = (response.get("Owner") or {}).get("DisplayName", "")
        return owner, [Bucket.from_api_response(b) for b in response.get("Buckets", [])]

    def create_bucket(self, bucket: str, acl: str = "private") -> None:
        """Create a bucket in the configured region."""
        params: dict[str, Any] = {"Bucket": bucket, "ACL": acl}
        region = self.settings.region
        if region and region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self._get_client().create_bucket(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f"CreateBucket s3://{bucket}") from e

    def delete_bucket(self, bucket: str) -> None:
        """Delete an empty bucket."""
        try:
            self._get_client().delete_bucket(Bucket=bucket)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f"DeleteBucket s3://{bucket}") from e

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        marker: str = "",
        max_keys: int = LIST_PAGE_SIZE,
    ) -> ListResult:
        """List one page of objects below a prefix.

        Args:
            bucket: Bucket name
            prefix: Key prefix
            delimiter: Group keys sharing a prefix up to this character
            marker: Continue the listing after this key
            max_keys: Maximum keys per page

        Returns:
            ListResult for this page

        Raises:
            ListingError: If the listing call fails
        """
        params: dict[str, Any] = {"Bucket": bucket, "MaxKeys": max_keys}
        if prefix:
            params["Prefix"] = prefix
        if delimiter:
            params["Delimiter"] = delimiter
        if marker:
            params["Marker"] = marker
        try:
            response = self._get_client().list_objects(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "ListObjects", ListingError) from e
        return ListResult.from_api_response(response)

    # =========================================================================
    # Single objects
    # =========================================================================

    def get_object(
        self, bucket: str, key: str, headers: dict[str, str] | None = None
    ) -> Any:
        """Open a streaming reader for an object.

        Args:
            bucket: Bucket name
            key: Object key
            headers: Optional request headers (Range, If-Match, ...)

        Returns:
            Readable stream with ``read()`` and ``close()``
        """
        params: dict[str, Any] = {"Bucket": bucket, "Key": key}
        for name, value in (headers or {}).items():
            param = GET_HEADER_PARAMS.get(name.lower())
            if param is None:
                logger.debug(f"Ignoring unsupported get header {name}")
                continue
            params[param] = value
        try:
            response = self._get_client().get_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f"GetObject s3://{bucket}/{key}") from e
        return response["Body"]

    def head_object(self, bucket: str, key: str) -> dict[str, str]:
        """Fetch the response headers of an object without its body.

        Returns:
            Header names (lower case) mapped to their values
        """
        try:
            response = self._get_client().head_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f"HeadObject s3://{bucket}/{key}") from e
        return dict(response.get("ResponseMetadata", {}).get("HTTPHeaders", {}))

    def object_exists(self, bucket: str, key: str) -> bool:
        """Check whether an object exists."""
        try:
            self.head_object(bucket, key)
        except S3NotFoundError:
            return False
        return True

    def presigned_url(
        self, bucket: str, key: str, expires: int = PRESIGN_EXPIRES
    ) -> str:
        """Build a pre-signed GET URL for an object.

        Args:
            bucket: Bucket name
            key: Object key
            expires: Lifetime of the URL in seconds
        """
        try:
            return self._get_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f"Presign s3://{bucket}/{key}") from e

    def put_object(
        self,
        bucket: str,
        key: str,
        body: Body,
        size: int,
        content_type: str = DEFAULT_CONTENT_TYPE,
        acl: str = "private",
    ) -> str:
        """Upload an object in a single request.

        Returns:
            ETag of the new object (quotes stripped)
        """
        try:
            response = self._get_client().put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentLength=size,
                ContentType=content_type,
                ACL=acl,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f"PutObject s3://{bucket}/{key}") from e
        return str(response.get("ETag", "")).strip('"')

    def copy_object(
        self,
        dest_bucket: str,
        dest_key: str,
        source_bucket: str,
        source_key: str,
        acl: str = "private",
    ) -> str:
        """Copy an object server-side.

        Returns:
            ETag of the new object (quotes stripped)
        """
        try:
            response = self._get_client().copy_object(
                Bucket=dest_bucket,
                Key=dest_key,
                CopySource={"Bucket": source_bucket, "Key": source_key},
                ACL=acl,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(
                e,
                f"CopyObject s3://{source_bucket}/{source_key} "
                f"=> s3://{dest_bucket}/{dest_key}",
            ) from e
        result = response.get("CopyObjectResult", {})
        return str(result.get("ETag", "")).strip('"')

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self._get_client().delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f"DeleteObject s3://{bucket}/{key}") from e

    def delete_objects(
        self, bucket: str, keys: list[str], quiet: bool = True
    ) -> list[dict[str, Any]]:
        """Delete many keys with batch delete requests.

        Keys are sent in batches of at most 1000, the backend's per-request
        limit. In quiet mode the backend only reports failures.

        Args:
            bucket: Bucket name
            keys: Keys to delete
            quiet: Suppress per-key success entries

        Returns:
            List of per-key error dicts (``Key``, ``Code``, ``Message``)
        """
        errors: list[dict[str, Any]] = []
        for batch in chunked(keys, DELETE_BATCH_SIZE):
            try:
                response = self._get_client().delete_objects(
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": quiet},
                )
            except (ClientError, BotoCoreError) as e:
                raise self._translate_error(e, f"DeleteObjects s3://{bucket}") from e
            errors.extend(response.get("Errors", []))
        return errors

    # =========================================================================
    # Multipart uploads
    # =========================================================================

    def initiate_multipart(
        self,
        bucket: str,
        key: str,
        content_type: str = DEFAULT_CONTENT_TYPE,
        acl: str = "private",
    ) -> MultipartSession:
        """Open a multipart upload session."""
        try:
            response = self._get_client().create_multipart_upload(
                Bucket=bucket, Key=key, ContentType=content_type, ACL=acl
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(
                e, f"CreateMultipartUpload s3://{bucket}/{key}", MultipartError
            ) from e
        return MultipartSession(bucket=bucket, key=key, upload_id=response["UploadId"])

    def upload_part(
        self, session: MultipartSession, part_number: int, body: bytes
    ) -> Part:
        """Upload one part from an in-memory buffer."""
        try:
            response = self._get_client().upload_part(
                Bucket=session.bucket,
                Key=session.key,
                UploadId=session.upload_id,
                PartNumber=part_number,
                Body=body,
                ContentLength=len(body),
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(
                e,
                f"UploadPart {part_number} of {session.url}",
                MultipartError,
                upload_id=session.upload_id,
            ) from e
        return Part(number=part_number, etag=str(response["ETag"]).strip('"'), size=len(body))

    def copy_part(
        self,
        session: MultipartSession,
        part_number: int,
        source_bucket: str,
        source_key: str,
        size: int = 0,
    ) -> Part:
        """Add an existing object as one part, server-side."""
        try:
            response = self._get_client().upload_part_copy(
                Bucket=session.bucket,
                Key=session.key,
                UploadId=session.upload_id,
                PartNumber=part_number,
                CopySource={"Bucket": source_bucket, "Key": source_key},
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(
                e,
                f"UploadPartCopy {part_number} s3://{source_bucket}/{source_key}",
                MultipartError,
                upload_id=session.upload_id,
            ) from e
        etag = str(response.get("CopyPartResult", {}).get("ETag", "")).strip('"')
        return Part(number=part_number, etag=etag, size=size)

    def complete_multipart(self, session: MultipartSession, parts: list[Part]) -> None:
        """Complete a multipart upload with parts in increasing number order."""
        ordered = sorted(parts, key=lambda p: p.number)
        try:
            self._get_client().complete_multipart_upload(
                Bucket=session.bucket,
                Key=session.key,
                UploadId=session.upload_id,
                MultipartUpload={"Parts": [p.to_api() for p in ordered]},
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(
                e,
                f"CompleteMultipartUpload {session.url}",
                MultipartError,
                upload_id=session.upload_id,
            ) from e

    def abort_multipart(self, session: MultipartSession) -> None:
        try:
            self._get_client().abort_multipart_upload(
                Bucket=session.bucket, Key=session.key, UploadId=session.upload_id
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(
                e,
                f"AbortMultipartUpload {session.url}",
                MultipartError,
                upload_id=session.upload_id,
            ) from e

    def list_multipart_uploads(
        self, bucket: str, prefix: str = "", delimiter: str = ""
    ) -> tuple[list[MultipartSession], list[str]]:
        """List all pending multipart uploads below a prefix.

        Returns:
            Tuple of (sessions, common prefixes)
        """
        sessions: list[MultipartSession] = []
        prefixes: list[str] = []
        params: dict[str, Any] = {"Bucket": bucket}
        if prefix:
            params["Prefix"] = prefix
        if delimiter:
            params["Delimiter"] = delimiter

        while True:
            try:
                response = self._get_client().list_multipart_uploads(**params)
            except (ClientError, BotoCoreError) as e:
                raise self._translate_error(
                    e, f"ListMultipartUploads s3://{bucket}/{prefix}"
                ) from e
            sessions.extend(
                MultipartSession.from_api_response(bucket, u)
                for u in response.get("Uploads", [])
            )
            prefixes.extend(
                p["Prefix"] for p in response.get("CommonPrefixes", []) if "Prefix" in p
            )
            if not response.get("IsTruncated"):
                break
            params["KeyMarker"] = response.get("NextKeyMarker", "")
            params["UploadIdMarker"] = response.get("NextUploadIdMarker", "")
        return sessions, prefixes

    def list_parts(self, session: MultipartSession) -> list[Part]:
        """List the parts already uploaded to a session."""
        parts: list[Part] = []
        params: dict[str, Any] = {
            "Bucket": session.bucket,
            "Key": session.key,
            "UploadId": session.upload_id,
        }
        while True:
            try:
                response = self._get_client().list_parts(**params)
            except (ClientError, BotoCoreError) as e:
                raise self._translate_error(e, f"ListParts {session.url}") from e
            parts.extend(Part.from_api_response(p) for p in response.get("Parts", []))
            if not response.get("IsTruncated"):
                break
            params["PartNumberMarker"] = response.get("NextPartNumberMarker", 0)
        return parts
