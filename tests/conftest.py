"""Shared fixtures: an in-memory stand-in for the object store client."""

import hashlib
import io
import tempfile
from pathlib import Path
from typing import Any, Optional

import pytest

from pys3sync.exceptions import MultipartError, S3NotFoundError
from pys3sync.models import Bucket, ListResult, MultipartSession, ObjectEntry, Part
from pys3sync.output import OutputFormatter


class FakeS3Client:
    """In-memory object store implementing the S3Client primitives.

    Every call is recorded in ``calls`` as ``(method_name, args)`` so tests
    can assert on ordering. ETags are the MD5 hex of the content.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.content_types: dict[tuple[str, str], str] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.sessions: dict[str, dict[int, bytes]] = {}
        self.aborted: list[str] = []
        self.completed: list[str] = []
        self.fail_keys: set[str] = set()
        self.short_reads: set[str] = set()
        self.fail_part_numbers: set[int] = set()
        self.buckets: set[str] = set()
        self._next_upload = 0

    def add(self, bucket: str, key: str, data: bytes) -> None:
        self.objects[(bucket, key)] = data

    def data(self, bucket: str, key: str) -> bytes:
        return self.objects[(bucket, key)]

    def keys(self, bucket: str) -> list[str]:
        return sorted(k for b, k in self.objects if b == bucket)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    # Client primitives

    def close(self) -> None:
        self.calls.append(("close", ()))

    def list_buckets(self) -> tuple[str, list[Bucket]]:
        self.calls.append(("list_buckets", ()))
        names = sorted({b for b, _ in self.objects} | self.buckets)
        return "tester", [Bucket(name=name) for name in names]

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        marker: str = "",
        max_keys: int = 1000,
    ) -> ListResult:
        self.calls.append(("list_objects", (bucket, prefix, marker)))
        keys = [k for k in self.keys(bucket) if k.startswith(prefix) and k > marker]
        page = keys[:max_keys]
        contents = [
            ObjectEntry(
                key=k,
                size=len(self.objects[(bucket, k)]),
                etag=hashlib.md5(self.objects[(bucket, k)]).hexdigest(),
            )
            for k in page
        ]
        truncated = len(keys) > max_keys
        return ListResult(
            contents=contents,
            next_marker=page[-1] if truncated else "",
            truncated=truncated,
        )

    def create_bucket(self, bucket: str, acl: str = "private") -> None:
        self.calls.append(("create_bucket", (bucket, acl)))
        self.buckets.add(bucket)

    def delete_bucket(self, bucket: str) -> None:
        self.calls.append(("delete_bucket", (bucket,)))
        if bucket not in self.buckets and not self.keys(bucket):
            raise S3NotFoundError(f"DeleteBucket s3://{bucket} failed: NoSuchBucket")
        self.buckets.discard(bucket)

    def head_object(self, bucket: str, key: str) -> dict[str, str]:
        self.calls.append(("head_object", (bucket, key)))
        if (bucket, key) not in self.objects:
            raise S3NotFoundError(f"HeadObject s3://{bucket}/{key} failed: 404")
        data = self.objects[(bucket, key)]
        return {
            "content-length": str(len(data)),
            "etag": f'"{hashlib.md5(data).hexdigest()}"',
        }

    def object_exists(self, bucket: str, key: str) -> bool:
        try:
            self.head_object(bucket, key)
        except S3NotFoundError:
            return False
        return True

    def presigned_url(self, bucket: str, key: str, expires: int = 3600) -> str:
        self.calls.append(("presigned_url", (bucket, key, expires)))
        return f"https://{bucket}.example.com/{key}?Expires={expires}"

    def get_object(
        self, bucket: str, key: str, headers: Optional[dict[str, str]] = None
    ) -> Any:
        self.calls.append(("get_object", (bucket, key)))
        if (bucket, key) not in self.objects:
            raise S3NotFoundError(f"GetObject s3://{bucket}/{key} failed: NoSuchKey")
        data = self.objects[(bucket, key)]
        if key in self.short_reads:
            data = data[: len(data) // 2]
        byte_range = (headers or {}).get("Range")
        if byte_range:
            first, _, last = byte_range[len("bytes=") :].partition("-")
            if not first:
                data = data[-int(last) :]
            else:
                data = data[int(first) : int(last) + 1 if last else None]
        return io.BytesIO(data)

    def put_object(
        self,
        bucket: str,
        key: str,
        body: Any,
        size: int,
        content_type: str = "binary/octet-stream",
        acl: str = "private",
    ) -> str:
        self.calls.append(("put_object", (bucket, key)))
        if key in self.fail_keys:
            raise S3NotFoundError(f"PutObject s3://{bucket}/{key} failed: NoSuchBucket")
        data = body if isinstance(body, bytes) else body.read()
        self.objects[(bucket, key)] = data
        self.content_types[(bucket, key)] = content_type
        return hashlib.md5(data).hexdigest()

    def copy_object(
        self,
        dest_bucket: str,
        dest_key: str,
        source_bucket: str,
        source_key: str,
        acl: str = "private",
    ) -> str:
        self.calls.append(("copy_object", (dest_bucket, dest_key, source_bucket, source_key)))
        data = self.objects[(source_bucket, source_key)]
        self.objects[(dest_bucket, dest_key)] = data
        return hashlib.md5(data).hexdigest()

    def delete_object(self, bucket: str, key: str) -> None:
        self.calls.append(("delete_object", (bucket, key)))
        self.objects.pop((bucket, key), None)

    def delete_objects(
        self, bucket: str, keys: list[str], quiet: bool = True
    ) -> list[dict[str, Any]]:
        self.calls.append(("delete_objects", (bucket, tuple(keys), quiet)))
        for key in keys:
            self.objects.pop((bucket, key), None)
        return []

    def initiate_multipart(
        self,
        bucket: str,
        key: str,
        content_type: str = "binary/octet-stream",
        acl: str = "private",
    ) -> MultipartSession:
        self._next_upload += 1
        upload_id = f"upload-{self._next_upload}"
        self.calls.append(("initiate_multipart", (bucket, key)))
        self.sessions[upload_id] = {}
        self.content_types[(bucket, key)] = content_type
        return MultipartSession(bucket=bucket, key=key, upload_id=upload_id)

    def upload_part(self, session: MultipartSession, part_number: int, body: bytes) -> Part:
        self.calls.append(("upload_part", (part_number, len(body))))
        if part_number in self.fail_part_numbers:
            raise MultipartError(
                f"UploadPart {part_number} failed", upload_id=session.upload_id
            )
        self.sessions[session.upload_id][part_number] = bytes(body)
        return Part(number=part_number, etag=hashlib.md5(body).hexdigest(), size=len(body))

    def copy_part(
        self,
        session: MultipartSession,
        part_number: int,
        source_bucket: str,
        source_key: str,
        size: int = 0,
    ) -> Part:
        self.calls.append(("copy_part", (part_number, source_key)))
        if part_number in self.fail_part_numbers:
            raise MultipartError(
                f"UploadPartCopy {part_number} failed", upload_id=session.upload_id
            )
        data = self.objects[(source_bucket, source_key)]
        self.sessions[session.upload_id][part_number] = data
        return Part(number=part_number, etag=hashlib.md5(data).hexdigest(), size=len(data))

    def complete_multipart(self, session: MultipartSession, parts: list[Part]) -> None:
        self.calls.append(("complete_multipart", tuple(p.number for p in parts)))
        stored = self.sessions.pop(session.upload_id)
        ordered = sorted(parts, key=lambda p: p.number)
        self.objects[(session.bucket, session.key)] = b"".join(
            stored[p.number] for p in ordered
        )
        self.completed.append(session.upload_id)

    def abort_multipart(self, session: MultipartSession) -> None:
        self.calls.append(("abort_multipart", (session.upload_id,)))
        self.sessions.pop(session.upload_id, None)
        self.aborted.append(session.upload_id)


@pytest.fixture
def fake_client():
    """Create an empty in-memory object store client."""
    return FakeS3Client()


@pytest.fixture
def quiet_output():
    """Create an output formatter that prints nothing but errors."""
    return OutputFormatter(quiet=True)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
