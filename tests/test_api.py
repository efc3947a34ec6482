"""Unit tests for the S3 API client."""

from dataclasses import replace
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from pys3sync.api import S3Client
from pys3sync.config import S3Settings
from pys3sync.exceptions import (
    ListingError,
    MultipartError,
    S3APIError,
    S3NetworkError,
    S3NotFoundError,
    S3PermissionError,
)
from pys3sync.models import MultipartSession, Part


def client_error(code, operation="Operation", message="boom"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@pytest.fixture
def settings():
    return S3Settings(
        access_key="key",
        secret_key="secret",
        endpoint="http://localhost:9000",
        force_path_style=True,
    )


@pytest.fixture
def boto():
    """Patch boto3.client and yield the mock low-level client."""
    with patch("pys3sync.api.boto3.client") as factory:
        yield factory.return_value


@pytest.fixture
def client(settings, boto):
    return S3Client(settings)


@pytest.fixture
def session():
    return MultipartSession(bucket="bkt", key="big", upload_id="up-1")


class TestS3Client:
    """Tests for S3Client initialization."""

    def test_boto_client_created_lazily_once(self, settings):
        """Test that the boto3 client is built on first use only."""
        with patch("pys3sync.api.boto3.client") as factory:
            client = S3Client(settings)
            factory.assert_not_called()

            client._get_client()
            client._get_client()

        factory.assert_called_once()
        kwargs = factory.call_args.kwargs
        assert kwargs["aws_access_key_id"] == "key"
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert kwargs["config"].s3 == {"addressing_style": "path"}

    def test_close_releases_client(self, client, boto):
        """Test that close drops the underlying client."""
        client._get_client()
        client.close()
        boto.close.assert_called_once()
        assert client._client is None

    def test_settings_loaded_from_config(self):
        """Test that settings come from the config layer by default."""
        with patch("pys3sync.api.config") as mock_config:
            mock_config.load.return_value = S3Settings(region="eu-west-1")
            client = S3Client()
        assert client.settings.region == "eu-west-1"


class TestErrorTranslation:
    """Tests for mapping botocore errors onto the pys3sync hierarchy."""

    @pytest.mark.parametrize(
        "code, error_cls",
        [
            ("NoSuchKey", S3NotFoundError),
            ("404", S3NotFoundError),
            ("AccessDenied", S3PermissionError),
            ("InternalError", S3APIError),
        ],
    )
    def test_client_error_codes(self, client, boto, code, error_cls):
        """Test error code translation."""
        boto.get_object.side_effect = client_error(code)

        with pytest.raises(error_cls) as exc_info:
            client.get_object("bkt", "k")

        assert exc_info.value.code == code
        assert "GetObject s3://bkt/k failed" in str(exc_info.value)

    def test_connection_error(self, client, boto):
        """Test that connection failures become network errors."""
        boto.put_object.side_effect = EndpointConnectionError(
            endpoint_url="http://localhost:9000"
        )
        with pytest.raises(S3NetworkError):
            client.put_object("bkt", "k", b"x", 1)

    def test_listing_errors(self, client, boto):
        """Test that listing failures become listing errors."""
        boto.list_objects.side_effect = client_error("InternalError")
        with pytest.raises(ListingError):
            client.list_objects("bkt")


class TestObjects:
    """Tests for single-object and listing calls."""

    def test_list_objects_params(self, client, boto):
        """Test list request parameters and the derived marker."""
        boto.list_objects.return_value = {
            "Contents": [{"Key": "p/a", "Size": 3, "ETag": '"abc"'}],
            "IsTruncated": True,
        }

        result = client.list_objects("bkt", prefix="p/", marker="p/0", max_keys=10)

        boto.list_objects.assert_called_once_with(
            Bucket="bkt", MaxKeys=10, Prefix="p/", Marker="p/0"
        )
        assert result.contents[0].etag == "abc"
        assert result.next_marker == "p/a"

    def test_get_object_maps_headers(self, client, boto):
        """Test that only supported get headers are passed on."""
        boto.get_object.return_value = {"Body": "stream"}

        body = client.get_object("bkt", "k", {"Range": "bytes=0-9", "X-Other": "1"})

        assert body == "stream"
        boto.get_object.assert_called_once_with(Bucket="bkt", Key="k", Range="bytes=0-9")

    def test_put_object_content_type(self, client, boto):
        """Test put request content type and length."""
        boto.put_object.return_value = {"ETag": '"e1"'}

        etag = client.put_object("bkt", "k", b"data", 4, content_type="text/plain")

        assert etag == "e1"
        kwargs = boto.put_object.call_args.kwargs
        assert kwargs["ContentType"] == "text/plain"
        assert kwargs["ContentLength"] == 4

    def test_copy_object(self, client, boto):
        """Test server-side copy."""
        boto.copy_object.return_value = {"CopyObjectResult": {"ETag": '"e2"'}}

        assert client.copy_object("dst", "b", "src", "a") == "e2"
        assert boto.copy_object.call_args.kwargs["CopySource"] == {
            "Bucket": "src",
            "Key": "a",
        }

    def test_delete_objects_batches(self, client, boto):
        """Test that batch deletes are split into groups of 1000."""
        boto.delete_objects.side_effect = [
            {"Errors": [{"Key": "k3", "Code": "AccessDenied"}]},
            {},
        ]
        keys = [f"k{i}" for i in range(1500)]

        errors = client.delete_objects("bkt", keys)

        assert boto.delete_objects.call_count == 2
        first, second = boto.delete_objects.call_args_list
        assert len(first.kwargs["Delete"]["Objects"]) == 1000
        assert len(second.kwargs["Delete"]["Objects"]) == 500
        assert first.kwargs["Delete"]["Quiet"] is True
        assert errors == [{"Key": "k3", "Code": "AccessDenied"}]

    def test_list_buckets(self, client, boto):
        """Test listing buckets with their owner."""
        boto.list_buckets.return_value = {
            "Owner": {"DisplayName": "me"},
            "Buckets": [{"Name": "one"}, {"Name": "two"}],
        }

        owner, buckets = client.list_buckets()

        assert owner == "me"
        assert [b.name for b in buckets] == ["one", "two"]


class TestBucketsAndHeads:
    """Tests for bucket management, HEAD requests and pre-signed URLs."""

    def test_create_bucket_default_region(self, client, boto):
        """Test that no location constraint is sent without a region."""
        client.create_bucket("new")
        boto.create_bucket.assert_called_once_with(Bucket="new", ACL="private")

    def test_create_bucket_location_constraint(self, settings, boto):
        """Test that a non-default region becomes the location constraint."""
        regional = replace(settings, region="eu-west-1")
        S3Client(regional).create_bucket("new", acl="public-read")
        boto.create_bucket.assert_called_once_with(
            Bucket="new",
            ACL="public-read",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )

    def test_delete_bucket_error(self, client, boto):
        """Test that a non-empty bucket error is translated."""
        boto.delete_bucket.side_effect = client_error("BucketNotEmpty")
        with pytest.raises(S3APIError) as exc_info:
            client.delete_bucket("full")
        assert "DeleteBucket s3://full failed" in str(exc_info.value)

    def test_head_object_headers(self, client, boto):
        """Test that the HTTP response headers are returned."""
        boto.head_object.return_value = {
            "ResponseMetadata": {
                "HTTPHeaders": {"content-length": "5", "etag": '"abc"'}
            }
        }
        assert client.head_object("bkt", "k") == {
            "content-length": "5",
            "etag": '"abc"',
        }

    def test_object_exists(self, client, boto):
        """Test that a 404 on HEAD means the object is missing."""
        boto.head_object.side_effect = [{}, client_error("404")]
        assert client.object_exists("bkt", "here") is True
        assert client.object_exists("bkt", "gone") is False

    def test_object_exists_propagates_other_errors(self, client, boto):
        """Test that permission errors are not reported as missing objects."""
        boto.head_object.side_effect = client_error("AccessDenied")
        with pytest.raises(S3PermissionError):
            client.object_exists("bkt", "k")

    def test_presigned_url(self, client, boto):
        """Test that a GET URL is signed with the requested lifetime."""
        boto.generate_presigned_url.return_value = "https://signed"
        assert client.presigned_url("bkt", "k", expires=60) == "https://signed"
        boto.generate_presigned_url.assert_called_once_with(
            "get_object", Params={"Bucket": "bkt", "Key": "k"}, ExpiresIn=60
        )


class TestMultipart:
    """Tests for multipart calls."""

    def test_initiate(self, client, boto):
        """Test opening a multipart upload."""
        boto.create_multipart_upload.return_value = {"UploadId": "up-9"}

        session = client.initiate_multipart("bkt", "big", content_type="text/plain")

        assert session == MultipartSession("bkt", "big", "up-9")

    def test_upload_part_error_carries_upload_id(self, client, boto, session):
        """Test that a part failure carries the upload ID."""
        boto.upload_part.side_effect = client_error("InternalError")

        with pytest.raises(MultipartError) as exc_info:
            client.upload_part(session, 3, b"x")

        assert exc_info.value.upload_id == "up-1"
        assert exc_info.value.code == "InternalError"

    def test_copy_part(self, client, boto, session):
        """Test copying an object as a part."""
        boto.upload_part_copy.return_value = {"CopyPartResult": {"ETag": '"cp"'}}

        part = client.copy_part(session, 2, "src", "a", size=7)

        assert part == Part(number=2, etag="cp", size=7)

    def test_complete_sorts_parts(self, client, boto, session):
        """Test that parts are completed in number order."""
        client.complete_multipart(
            session, [Part(2, "b"), Part(1, "a"), Part(3, "c")]
        )

        parts = boto.complete_multipart_upload.call_args.kwargs["MultipartUpload"][
            "Parts"
        ]
        assert [p["PartNumber"] for p in parts] == [1, 2, 3]
        assert parts[0]["ETag"] == '"a"'

    def test_list_multipart_uploads_paginates(self, client, boto):
        """Test that pending uploads are listed across pages."""
        boto.list_multipart_uploads.side_effect = [
            {
                "Uploads": [{"Key": "a", "UploadId": "u1"}],
                "CommonPrefixes": [{"Prefix": "d/"}],
                "IsTruncated": True,
                "NextKeyMarker": "a",
                "NextUploadIdMarker": "u1",
            },
            {"Uploads": [{"Key": "b", "UploadId": "u2"}]},
        ]

        sessions, prefixes = client.list_multipart_uploads("bkt", "", "/")

        assert [s.upload_id for s in sessions] == ["u1", "u2"]
        assert prefixes == ["d/"]
        second = boto.list_multipart_uploads.call_args_list[1].kwargs
        assert second["KeyMarker"] == "a"
        assert second["UploadIdMarker"] == "u1"

    def test_list_parts(self, client, boto, session):
        """Test listing the parts of an upload."""
        boto.list_parts.return_value = {
            "Parts": [{"PartNumber": 1, "ETag": '"p1"', "Size": 10}]
        }

        assert client.list_parts(session) == [Part(1, "p1", 10)]

    def test_abort_error(self, client, boto, session):
        """Test that an abort failure is a multipart error."""
        boto.abort_multipart_upload.side_effect = client_error("NoSuchUpload")
        with pytest.raises(MultipartError):
            client.abort_multipart(session)
