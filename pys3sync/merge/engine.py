"""Merge engine: assemble one remote object out of many remote objects."""

import io
import logging
import time
from typing import Optional

from ..api import S3Client
from ..exceptions import MultipartError, S3APIError, ShortReadError
from ..locator import RemoteLocator
from ..sync.catalog import RemoteCatalogBuilder
from ..utils import MERGE_FLUSH_THRESHOLD, MIN_PART_SIZE, copy_stream
from .plan import MergeOptions, MergeOutcome, MergePath, MergePlan, MergeSource

logger = logging.getLogger(__name__)


class MergeEngine:
    """Concatenates remote objects into one destination object.

    Large sources are added as server-side part copies; small ones are
    downloaded into a buffer that is uploaded as a part once it grows past
    the flush threshold. If no part is ever produced the buffer is written
    with a single put instead.
    """

    def __init__(
        self,
        client: S3Client,
        part_threshold: int = MIN_PART_SIZE,
        flush_threshold: int = MERGE_FLUSH_THRESHOLD,
    ):
        """Initialize the merge engine.

        Args:
            client: Object store client
            part_threshold: Default size above which a source is part-copied
            flush_threshold: Buffer size above which the buffer is sent as a part
        """
        self.client = client
        self.part_threshold = part_threshold
        self.flush_threshold = flush_threshold

    def expand_sources(self, sources: list[RemoteLocator]) -> list[MergeSource]:
        """List every source locator as a prefix and collect non-empty objects.

        A locator naming an exact key yields that key (its stripped key is
        empty). Objects reached through more than one locator appear once.

        Returns:
            Sources sorted by URL
        """
        builder = RemoteCatalogBuilder(self.client)
        expanded: dict[str, MergeSource] = {}
        for locator in sources:
            catalog = builder.build(locator.bucket, locator.key, delimiter="")
            logger.debug(f"Source {locator}: {len(catalog)} object(s)")
            for key, entry in catalog.items():
                if entry.size == 0:
                    continue
                source = MergeSource(
                    locator=RemoteLocator(locator.bucket, locator.key + key),
                    size=entry.size,
                )
                expanded[source.url] = source
        return sorted(expanded.values(), key=lambda s: s.url)

    def merge(
        self,
        sources: list[RemoteLocator],
        destination: RemoteLocator,
        options: Optional[MergeOptions] = None,
    ) -> MergeOutcome:
        """Merge the objects below ``sources`` into ``destination``.

        Args:
            sources: Source locators, each listed recursively as a prefix
            destination: Object to create
            options: Merge options

        Returns:
            MergeOutcome describing the path taken and the parts written

        Raises:
            ShortReadError: If a buffered source returned a different size than
                listed (the multipart session is aborted)
            MultipartError: If a part or the completion failed (the session is
                left open for ``cleanmulti``)

        Examples:
            >>> engine = MergeEngine(client)
            >>> outcome = engine.merge(
            ...     [RemoteLocator("logs", "2024/01/")],
            ...     RemoteLocator("archive", "2024-01.log"),
            ... )
            >>> outcome.path
            <MergePath.MULTIPART: 'multipart'>
        """
        options = options or MergeOptions(part_threshold=self.part_threshold)
        plan = MergePlan(
            sources=self.expand_sources(sources),
            part_threshold=options.part_threshold,
            flush_threshold=self.flush_threshold,
        )
        summary = plan.summary()
        logger.debug(
            f"Merge into {destination}: copy {summary['copy_count']} "
            f"({summary['copy_bytes']} bytes), buffer {summary['buffer_count']} "
            f"({summary['buffer_bytes']} bytes)"
        )

        def outcome(path: MergePath) -> MergeOutcome:
            return MergeOutcome(
                path=path,
                destination=destination.url,
                parts=list(plan.parts),
                upload_id=plan.session.upload_id if plan.session else "",
                **summary,
            )

        if options.dry_run:
            return outcome(MergePath.DRY_RUN)
        if not plan.sources:
            logger.debug("No non-empty sources, nothing to merge")
            return outcome(MergePath.EMPTY)
        if len(plan.sources) == 1:
            source = plan.sources[0].locator
            logger.debug(f"Single source, copying {source} => {destination}")
            self.client.copy_object(
                destination.bucket, destination.key, source.bucket, source.key
            )
            return outcome(MergePath.SINGLE_COPY)

        start = time.time()
        plan.session = self.client.initiate_multipart(
            destination.bucket, destination.key, content_type=options.content_type
        )
        session = plan.session
        logger.debug(f"Initiated multipart upload {session.upload_id} for {destination}")

        try:
            for source in plan.sources:
                if plan.is_part_copy(source):
                    self._flush(plan)
                    logger.debug(f"Part {plan.next_part_number}: copy {source.url}")
                    plan.parts.append(
                        self.client.copy_part(
                            session,
                            plan.next_part_number,
                            source.locator.bucket,
                            source.locator.key,
                            size=source.size,
                        )
                    )
                else:
                    self._read_into(plan, source)
                    if plan.should_flush:
                        self._flush(plan)

            if plan.parts:
                self._flush(plan)
                self.client.complete_multipart(session, plan.parts)
        except MultipartError as e:
            logger.warning(
                f"Multipart upload {session.upload_id} to {destination} failed and "
                f"was left open with {len(plan.parts)} part(s): {e}"
            )
            raise
        except Exception:
            self._abort(plan)
            raise

        if not plan.parts:
            self._abort(plan)
            logger.debug(f"Single put of {len(plan.buffer)} bytes to {destination}")
            self.client.put_object(
                destination.bucket,
                destination.key,
                bytes(plan.buffer),
                len(plan.buffer),
                content_type=options.content_type,
            )
            plan.buffer.clear()
            return outcome(MergePath.BUFFERED_PUT)

        logger.debug(
            f"Completed {destination} from {len(plan.parts)} part(s) "
            f"in {time.time() - start:.2f}s"
        )
        return outcome(MergePath.MULTIPART)

    def _read_into(self, plan: MergePlan, source: MergeSource) -> None:
        """Download a whole source into the plan's buffer."""
        logger.debug(f"Read {source.url} ({source.size} bytes), buffer {len(plan.buffer)}")
        data = io.BytesIO()
        body = self.client.get_object(source.locator.bucket, source.locator.key)
        try:
            read = copy_stream(body, data)
        finally:
            body.close()
        if read != source.size:
            raise ShortReadError(source.url, source.size, read)
        plan.buffer.extend(data.getvalue())

    def _flush(self, plan: MergePlan) -> None:
        """Upload the buffer as the next part; a no-op when it is empty."""
        if not plan.buffer:
            return
        assert plan.session is not None
        logger.debug(f"Part {plan.next_part_number}: upload {len(plan.buffer)} bytes")
        plan.parts.append(
            self.client.upload_part(
                plan.session, plan.next_part_number, bytes(plan.buffer)
            )
        )
        plan.buffer.clear()

    def _abort(self, plan: MergePlan) -> None:
        assert plan.session is not None
        try:
            self.client.abort_multipart(plan.session)
        except S3APIError as e:
            logger.warning(f"Abort of multipart upload {plan.session.upload_id} failed: {e}")
        else:
            logger.debug(f"Aborted multipart upload {plan.session.upload_id}")
