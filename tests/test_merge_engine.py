"""Tests for the merge engine."""

import pytest

from pys3sync.exceptions import MultipartError, S3NetworkError, ShortReadError
from pys3sync.locator import RemoteLocator
from pys3sync.merge import MergeEngine, MergeOptions, MergePath, MergePlan, MergeSource

MIB = 1024 * 1024


def calls_of(client, name):
    return [args for n, args in client.calls if n == name]


@pytest.fixture
def small_engine(fake_client):
    """Merge engine with thresholds small enough for byte-sized test objects."""
    return MergeEngine(fake_client, part_threshold=10, flush_threshold=20)


class TestExpandSources:
    """Tests for source expansion."""

    def test_lists_prefix_and_sorts_by_url(self, fake_client, small_engine):
        """Test that sources are listed and sorted by URL."""
        fake_client.add("src", "m/b", b"bb")
        fake_client.add("src", "m/a", b"a")
        fake_client.add("src", "other", b"x")

        sources = small_engine.expand_sources([RemoteLocator("src", "m/")])

        assert [s.url for s in sources] == ["s3://src/m/a", "s3://src/m/b"]
        assert [s.size for s in sources] == [1, 2]

    def test_zero_size_and_duplicates_dropped(self, fake_client, small_engine):
        """Test that empty and repeated sources are dropped."""
        fake_client.add("src", "m/a", b"abc")
        fake_client.add("src", "m/empty", b"")

        sources = small_engine.expand_sources(
            [RemoteLocator("src", "m/"), RemoteLocator("src", "m/a")]
        )

        assert [s.url for s in sources] == ["s3://src/m/a"]

    def test_exact_key(self, fake_client, small_engine):
        """Test that an exact key is a source."""
        fake_client.add("src", "logs/one.log", b"12345")

        sources = small_engine.expand_sources([RemoteLocator("src", "logs/one.log")])

        assert sources == [MergeSource(RemoteLocator("src", "logs/one.log"), 5)]


class TestMergePaths:
    """Tests for the paths a merge can take."""

    def test_dry_run_writes_nothing(self, fake_client, small_engine):
        """Test that a dry run only lists."""
        fake_client.add("src", "m/a", b"x" * 15)
        fake_client.add("src", "m/b", b"y" * 3)

        outcome = small_engine.merge(
            [RemoteLocator("src", "m/")],
            RemoteLocator("dst", "out"),
            MergeOptions(part_threshold=10, dry_run=True),
        )

        assert outcome.path == MergePath.DRY_RUN
        assert (outcome.copy_count, outcome.copy_bytes) == (1, 15)
        assert (outcome.buffer_count, outcome.buffer_bytes) == (1, 3)
        assert set(fake_client.call_names()) == {"list_objects"}

    def test_no_sources(self, fake_client, small_engine):
        """Test merging nothing."""
        fake_client.add("src", "m/empty", b"")

        outcome = small_engine.merge(
            [RemoteLocator("src", "m/")], RemoteLocator("dst", "out")
        )

        assert outcome.path == MergePath.EMPTY
        assert fake_client.keys("dst") == []

    def test_single_source_is_copied(self, fake_client, small_engine):
        """Test that one source is copied server-side."""
        fake_client.add("src", "m/a", b"abc")
        fake_client.add("src", "m/z", b"")

        outcome = small_engine.merge(
            [RemoteLocator("src", "m/")], RemoteLocator("dst", "out")
        )

        assert outcome.path == MergePath.SINGLE_COPY
        assert calls_of(fake_client, "copy_object") == [("dst", "out", "src", "m/a")]
        assert "initiate_multipart" not in fake_client.call_names()
        assert fake_client.data("dst", "out") == b"abc"

    def test_small_sources_use_buffered_put(self, fake_client, small_engine):
        """Test that small sources are joined in one put."""
        fake_client.add("src", "m/2", b"two")
        fake_client.add("src", "m/1", b"one")
        fake_client.add("src", "m/3", b"three")

        outcome = small_engine.merge(
            [RemoteLocator("src", "m/")],
            RemoteLocator("dst", "out"),
            MergeOptions(part_threshold=10, content_type="text/plain"),
        )

        assert outcome.path == MergePath.BUFFERED_PUT
        assert fake_client.data("dst", "out") == b"onetwothree"
        assert fake_client.content_types[("dst", "out")] == "text/plain"
        assert fake_client.aborted == ["upload-1"]
        names = fake_client.call_names()
        assert names.index("abort_multipart") < names.index("put_object")
        assert "upload_part" not in names

    def test_parts_numbered_in_commit_order(self, fake_client, small_engine):
        """Test that parts are numbered as they are committed."""
        fake_client.add("src", "m/a", b"A" * 15)
        fake_client.add("src", "m/b", b"b" * 5)
        fake_client.add("src", "m/c", b"c" * 5)
        fake_client.add("src", "m/d", b"D" * 15)

        outcome = small_engine.merge(
            [RemoteLocator("src", "m/")],
            RemoteLocator("dst", "out"),
            MergeOptions(part_threshold=10),
        )

        assert outcome.path == MergePath.MULTIPART
        assert [p.number for p in outcome.parts] == [1, 2]
        assert calls_of(fake_client, "copy_part") == [(1, "m/a")]
        # the buffer was too small to stand alone, so "d" was read into it
        assert calls_of(fake_client, "upload_part") == [(2, 25)]
        assert calls_of(fake_client, "complete_multipart") == [(1, 2)]
        assert fake_client.data("dst", "out") == (
            b"A" * 15 + b"b" * 5 + b"c" * 5 + b"D" * 15
        )
        assert fake_client.aborted == []

    def test_buffer_flushed_before_part_copy(self, fake_client, small_engine):
        """Test that buffered data is flushed before a part copy."""
        fake_client.add("src", "m/a", b"a" * 5)
        fake_client.add("src", "m/b", b"b" * 8)
        fake_client.add("src", "m/c", b"c" * 30)

        small_engine.merge(
            [RemoteLocator("src", "m/")],
            RemoteLocator("dst", "out"),
            MergeOptions(part_threshold=10),
        )

        parts = [
            (n, args[0])
            for n, args in fake_client.calls
            if n in ("copy_part", "upload_part")
        ]
        assert parts == [("upload_part", 1), ("copy_part", 2)]
        assert fake_client.data("dst", "out") == b"a" * 5 + b"b" * 8 + b"c" * 30


class TestMergeMiB:
    """Merges using the default part and flush thresholds."""

    def test_large_first_is_multipart(self, fake_client):
        """Test that a large first source starts a multipart merge."""
        fake_client.add("src", "m/a", b"a" * (6 * MIB))
        fake_client.add("src", "m/b", b"b" * (3 * MIB))
        fake_client.add("src", "m/c", b"c" * (2 * MIB))

        outcome = MergeEngine(fake_client).merge(
            [RemoteLocator("src", "m/")], RemoteLocator("dst", "big")
        )

        assert outcome.path == MergePath.MULTIPART
        assert len(outcome.parts) == 2
        assert calls_of(fake_client, "upload_part") == [(2, 5 * MIB)]
        assert len(fake_client.data("dst", "big")) == 11 * MIB

    def test_small_first_is_buffered(self, fake_client):
        """Test that a small first source is buffered."""
        fake_client.add("src", "m/a", b"a" * (3 * MIB))
        fake_client.add("src", "m/b", b"b" * (6 * MIB))
        fake_client.add("src", "m/c", b"c" * (2 * MIB))

        outcome = MergeEngine(fake_client).merge(
            [RemoteLocator("src", "m/")], RemoteLocator("dst", "big")
        )

        assert outcome.path == MergePath.BUFFERED_PUT
        assert "copy_part" not in fake_client.call_names()
        assert len(fake_client.data("dst", "big")) == 11 * MIB


class TestMergeFailures:
    """Tests for merge error handling."""

    def test_short_read_aborts(self, fake_client, small_engine):
        """Test that a short read aborts the upload."""
        fake_client.add("src", "m/a", b"a" * 5)
        fake_client.add("src", "m/b", b"b" * 6)
        fake_client.short_reads.add("m/b")

        with pytest.raises(ShortReadError) as exc_info:
            small_engine.merge(
                [RemoteLocator("src", "m/")],
                RemoteLocator("dst", "out"),
                MergeOptions(part_threshold=10),
            )

        assert exc_info.value.expected == 6
        assert exc_info.value.actual == 3
        assert fake_client.aborted == ["upload-1"]
        assert ("dst", "out") not in fake_client.objects

    def test_part_failure_leaves_session_open(self, fake_client, small_engine):
        """Test that a part failure leaves the upload open."""
        fake_client.add("src", "m/a", b"a" * 15)
        fake_client.add("src", "m/b", b"b" * 5)
        fake_client.fail_part_numbers.add(1)

        with pytest.raises(MultipartError) as exc_info:
            small_engine.merge(
                [RemoteLocator("src", "m/")],
                RemoteLocator("dst", "out"),
                MergeOptions(part_threshold=10),
            )

        assert exc_info.value.upload_id == "upload-1"
        assert fake_client.aborted == []
        assert "upload-1" in fake_client.sessions

    def test_unexpected_error_aborts(self, fake_client, small_engine, monkeypatch):
        """Test that an unexpected error aborts the upload."""
        fake_client.add("src", "m/a", b"a" * 5)
        fake_client.add("src", "m/b", b"b" * 5)

        def broken_get(bucket, key, headers=None):
            raise S3NetworkError("connection reset")

        monkeypatch.setattr(fake_client, "get_object", broken_get)

        with pytest.raises(S3NetworkError):
            small_engine.merge(
                [RemoteLocator("src", "m/")],
                RemoteLocator("dst", "out"),
                MergeOptions(part_threshold=10),
            )

        assert fake_client.aborted == ["upload-1"]


class TestMergePlan:
    """Tests for the plan helpers."""

    def make_plan(self, sizes):
        return MergePlan(
            sources=[
                MergeSource(RemoteLocator("b", f"k{i}"), size)
                for i, size in enumerate(sizes)
            ],
            part_threshold=10,
            flush_threshold=20,
        )

    def test_is_part_copy(self):
        """Test the part copy threshold."""
        plan = self.make_plan([15])
        big = plan.sources[0]
        assert plan.is_part_copy(big)
        plan.buffer.extend(b"x" * 5)
        assert not plan.is_part_copy(big)
        plan.buffer.extend(b"x" * 6)
        assert plan.is_part_copy(big)

    def test_summary(self):
        """Test the outcome summary counts."""
        plan = self.make_plan([15, 10, 3])
        assert plan.summary() == {
            "copy_count": 1,
            "copy_bytes": 15,
            "buffer_count": 2,
            "buffer_bytes": 13,
        }

    def test_invalid_threshold(self):
        """Test that thresholds below the part minimum are rejected."""
        with pytest.raises(ValueError):
            MergeOptions(part_threshold=0)
