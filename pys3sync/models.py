"""Data models for object store API responses."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .utils import format_size, parse_iso_timestamp, strip_etag


@dataclass
class ObjectEntry:
    """One object from a bucket listing."""

    key: str
    size: int
    etag: str = ""
    last_modified: Optional[datetime] = None
    owner: str = ""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ObjectEntry":
        """Create an ObjectEntry from one ``Contents`` item of a listing."""
        owner = data.get("Owner") or {}
        return cls(
            key=data["Key"],
            size=int(data.get("Size", 0)),
            etag=strip_etag(data.get("ETag")),
            last_modified=parse_iso_timestamp(data.get("LastModified")),
            owner=owner.get("DisplayName", "") if isinstance(owner, dict) else "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "size": self.size,
            "etag": self.etag,
            "last_modified": (
                self.last_modified.isoformat() if self.last_modified else None
            ),
            "owner": self.owner,
        }


@dataclass
class ListResult:
    """One page of a bucket listing."""

    contents: list[ObjectEntry] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
    next_marker: str = ""
    truncated: bool = False

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ListResult":
        """Create a ListResult from a ``ListObjects`` response.

        Some backends omit ``NextMarker`` when no delimiter is given; the
        last key of the page is the marker to continue from in that case.
        """
        contents = [ObjectEntry.from_api_response(c) for c in data.get("Contents", [])]
        prefixes = [p["Prefix"] for p in data.get("CommonPrefixes", []) if "Prefix" in p]
        truncated = bool(data.get("IsTruncated", False))
        next_marker = data.get("NextMarker") or ""
        if truncated and not next_marker:
            if contents:
                next_marker = contents[-1].key
            elif prefixes:
                next_marker = prefixes[-1]
        return cls(
            contents=contents,
            common_prefixes=prefixes,
            next_marker=next_marker,
            truncated=truncated,
        )


@dataclass
class Bucket:
    """A bucket returned by ``ListBuckets``."""

    name: str
    creation_date: Optional[datetime] = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Bucket":
        return cls(
            name=data["Name"],
            creation_date=parse_iso_timestamp(data.get("CreationDate")),
        )


@dataclass(frozen=True)
class Part:
    """A committed part of a multipart upload."""

    number: int
    etag: str
    size: int = 0

    def to_api(self) -> dict[str, Any]:
        return {"PartNumber": self.number, "ETag": f'"{strip_etag(self.etag)}"'}

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Part":
        return cls(
            number=int(data["PartNumber"]),
            etag=strip_etag(data.get("ETag")),
            size=int(data.get("Size", 0)),
        )


@dataclass(frozen=True)
class MultipartSession:
    """Handle of an in-progress multipart upload."""

    bucket: str
    key: str
    upload_id: str
    initiated: Optional[datetime] = None

    @property
    def url(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    @classmethod
    def from_api_response(cls, bucket: str, data: dict[str, Any]) -> "MultipartSession":
        """Create a session from a ``ListMultipartUploads`` ``Uploads`` item."""
        return cls(
            bucket=bucket,
            key=data["Key"],
            upload_id=data["UploadId"],
            initiated=parse_iso_timestamp(data.get("Initiated")),
        )


@dataclass
class UploadSummary:
    """A pending multipart upload together with its uploaded parts."""

    session: MultipartSession
    parts: list[Part] = field(default_factory=list)

    @property
    def current_size(self) -> int:
        return sum(p.size for p in self.parts)

    def to_text(self, long_format: bool = False) -> str:
        if not long_format:
            return self.session.url
        lines = [f"{self.session.url}  {self.session.upload_id}"]
        for part in self.parts:
            lines.append(f"  part[{part.number}]: ETag={part.etag} Size={part.size}")
        lines.append(f"  current size: {format_size(self.current_size)}")
        return "\n".join(lines)
