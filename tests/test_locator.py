"""Unit tests for locator parsing."""

from pathlib import Path

import pytest

from pys3sync.exceptions import InvalidLocatorError
from pys3sync.locator import (
    LocalLocator,
    RemoteLocator,
    is_remote_url,
    parse_locator,
    parse_remote,
)


class TestParseLocator:
    """Tests for parse_locator and parse_remote."""

    def test_remote_url(self):
        """Test parsing a bucket and key."""
        locator = parse_locator("s3://bucket/dir/file.txt")
        assert locator == RemoteLocator("bucket", "dir/file.txt")
        assert locator.is_remote

    def test_remote_bucket_only(self):
        """Test parsing a bucket without a key."""
        assert parse_remote("s3://bucket") == RemoteLocator("bucket", "")
        assert parse_remote("s3://bucket/") == RemoteLocator("bucket", "")

    def test_dag_scheme_is_alias(self):
        """Test that dag:// is accepted like s3://."""
        assert parse_locator("dag://bucket/key") == RemoteLocator("bucket", "key")

    def test_unknown_scheme_rejected(self):
        """Test that other schemes are rejected."""
        with pytest.raises(InvalidLocatorError, match="invalid scheme"):
            parse_locator("http://bucket/key")

    def test_missing_bucket_rejected(self):
        """Test that a URL without a bucket is rejected."""
        with pytest.raises(InvalidLocatorError, match="missing bucket"):
            parse_locator("s3:///key")

    def test_empty_rejected(self):
        """Test that an empty argument is rejected."""
        with pytest.raises(InvalidLocatorError):
            parse_locator("")

    def test_plain_path_is_local(self):
        """Test that a plain path is local."""
        locator = parse_locator("./data/dir")
        assert isinstance(locator, LocalLocator)
        assert locator.path == Path("data/dir")
        assert not locator.is_remote

    def test_is_remote_url(self):
        """Test remote URL detection."""
        assert is_remote_url("s3://b/k")
        assert not is_remote_url("/tmp/file")


class TestJoin:
    """Tests for joining relative keys onto locators."""

    def test_remote_join_adds_separator(self):
        """Test that join inserts one separator."""
        assert RemoteLocator("b", "dir").join("a/b.txt").key == "dir/a/b.txt"
        assert RemoteLocator("b", "dir/").join("a.txt").key == "dir/a.txt"

    def test_remote_join_on_bucket_root(self):
        """Test joining below the bucket root."""
        assert RemoteLocator("b", "").join("a.txt") == RemoteLocator("b", "a.txt")

    def test_remote_url(self):
        """Test the URL of a remote locator."""
        assert RemoteLocator("b", "k/x").url == "s3://b/k/x"

    def test_local_join(self, tmp_path):
        """Test joining a nested key below a local path."""
        child = LocalLocator(tmp_path).join("sub/file.txt")
        assert child.path == tmp_path / "sub" / "file.txt"

    @pytest.mark.parametrize("key", ["../x", "a/../../x", "a/./b", "", "/"])
    def test_local_join_rejects_escaping_keys(self, tmp_path, key):
        """Test that keys leaving the local root are rejected."""
        with pytest.raises(InvalidLocatorError, match="escapes"):
            LocalLocator(tmp_path).join(key)

    def test_local_join_ignores_empty_segments(self, tmp_path):
        """Test that repeated and leading separators collapse."""
        child = LocalLocator(tmp_path).join("/a//b.txt")
        assert child.path == tmp_path / "a" / "b.txt"
