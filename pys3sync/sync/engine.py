"""Core sync engine for executing one-way sync operations."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from rich.progress import Progress, SpinnerColumn, TextColumn

from ..api import S3Client
from ..exceptions import InvalidLocatorError, S3APIError
from ..locator import LocalLocator, Locator, RemoteLocator
from ..output import OutputFormatter
from .catalog import Catalog, build_local_catalog, build_remote_catalog
from .comparator import Changelist, diff
from .digest import DigestCache
from .modes import SyncMode
from .operations import TransferOperations, TransferRequest
from .pair import SyncOptions, SyncPair
from .scheduler import TransferOutcome, TransferScheduler

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    """Phases of a sync run, entered in declaration order."""

    LISTING = "listing"
    DIFFING = "diffing"
    TRANSFERRING = "transferring"
    DELETING = "deleting"
    DONE = "done"


@dataclass
class SyncReport:
    """Outcome of one sync run."""

    mode: SyncMode
    source: str
    dest: str
    dry_run: bool = False

    phases: list[SyncPhase] = field(default_factory=list)
    """Phases entered, in order"""

    to_transfer: list[str] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)
    skipped: int = 0

    rejected: list[str] = field(default_factory=list)
    """Source keys that cannot be written below a local destination"""

    options: dict = field(default_factory=dict)
    """Options the run was started with"""

    outcomes: list[TransferOutcome] = field(default_factory=list)
    """Per-item transfer outcomes"""

    transferred: int = 0
    failed: int = 0
    deleted: int = 0
    delete_failed: int = 0
    bytes_transferred: int = 0
    elapsed: float = 0.0

    @property
    def success(self) -> bool:
        return self.failed == 0 and self.delete_failed == 0 and not self.rejected

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "source": self.source,
            "dest": self.dest,
            "dry_run": self.dry_run,
            "options": self.options,
            "phases": [p.value for p in self.phases],
            "to_transfer": self.to_transfer,
            "to_delete": self.to_delete,
            "skipped": self.skipped,
            "rejected": self.rejected,
            "transferred": self.transferred,
            "failed": self.failed,
            "deleted": self.deleted,
            "delete_failed": self.delete_failed,
            "bytes_transferred": self.bytes_transferred,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "success": self.success,
        }


class SyncEngine:
    """Core sync engine that orchestrates catalog, diff, transfer and delete."""

    def __init__(
        self,
        client: S3Client,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Object store client
            output: Output formatter for displaying progress/status
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.operations = TransferOperations(client)

    def sync_pair(
        self,
        pair: SyncPair,
        progress_callback: Optional[Callable[[TransferOutcome], None]] = None,
    ) -> SyncReport:
        """Sync a configured pair. See :meth:`sync`."""
        return self.sync(pair.source, pair.dest, pair.options, progress_callback)

    def sync(
        self,
        source: Locator,
        dest: Locator,
        options: Optional[SyncOptions] = None,
        progress_callback: Optional[Callable[[TransferOutcome], None]] = None,
    ) -> SyncReport:
        """Make ``dest`` mirror ``source``.

        Args:
            source: Local directory or remote prefix to read from
            dest: Local directory or remote prefix to write to
            options: Sync options (defaults apply if omitted)
            progress_callback: Called with each transfer outcome

        Returns:
            SyncReport with the changelist and per-item outcomes

        Raises:
            InvalidLocatorError: If both locators are local

        Examples:
            >>> engine = SyncEngine(client)
            >>> report = engine.sync(
            ...     LocalLocator(Path("photos")),
            ...     RemoteLocator("bucket", "photos"),
            ...     SyncOptions(parallelism=4, dry_run=True),
            ... )
            >>> print(f"Would transfer {len(report.to_transfer)} files")
        """
        options = options or SyncOptions()
        mode = SyncMode.from_locators(source, dest)
        start = time.time()
        report = SyncReport(
            mode=mode,
            source=str(source),
            dest=str(dest),
            dry_run=options.dry_run,
            options=options.to_dict(),
        )

        self.output.info(f"Syncing: {source} => {dest}")
        self.output.info(f"Mode: {mode.value}")
        if options.dry_run:
            self.output.info("Dry run: No changes will be made")

        self._enter(report, SyncPhase.LISTING)
        source_catalog, dest_catalog = self._list(source, dest)
        if isinstance(dest, LocalLocator):
            source_catalog = self._drop_unsafe_keys(dest, source_catalog, report)

        self._enter(report, SyncPhase.DIFFING)
        cache = DigestCache()
        changes = diff(
            source_catalog,
            dest_catalog,
            options.verify_content,
            cache.bind(source, dest, source_catalog, dest_catalog),
        )
        logger.debug(f"Computed {cache.computed} digest(s) while diffing")
        report.to_transfer = changes.to_transfer
        report.to_delete = changes.to_delete
        report.skipped = len(source_catalog) - len(changes.to_transfer)
        self._display_sync_plan(changes, source_catalog, options)

        self._enter(report, SyncPhase.TRANSFERRING)
        if not options.dry_run and changes.to_transfer:
            requests = [
                TransferRequest(
                    source=source.join(key),
                    dest=dest.join(key),
                    key=key,
                    size=source_catalog[key].size,
                )
                for key in changes.to_transfer
            ]
            scheduler = TransferScheduler(
                self.operations, options.parallelism, progress_callback
            )
            results = scheduler.run(requests)
            report.outcomes = sorted(results.outcomes, key=lambda o: o.key)
            report.transferred = results.succeeded
            report.failed = results.failed
            report.bytes_transferred = results.bytes_transferred
            for outcome in report.outcomes:
                if not outcome.success:
                    self.output.error(f"Error syncing {outcome.key}: {outcome.error}")

        # Deletes start only after every transfer has finished
        if options.delete:
            self._enter(report, SyncPhase.DELETING)
            if not options.dry_run and changes.to_delete:
                self._delete(dest, changes.to_delete, report)

        self._enter(report, SyncPhase.DONE)
        report.elapsed = time.time() - start
        self._display_summary(report)
        return report

    def _enter(self, report: SyncReport, phase: SyncPhase) -> None:
        report.phases.append(phase)
        logger.debug(f"Sync phase: {phase.value}")

    def _catalog(self, locator: Locator) -> Catalog:
        if isinstance(locator, RemoteLocator):
            return build_remote_catalog(self.client, locator.bucket, locator.key)
        return build_local_catalog(locator.path)

    def _list(self, source: Locator, dest: Locator) -> tuple[Catalog, Catalog]:
        """Build the source and destination catalogs."""
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=self.output.quiet or self.output.json_output,
        ) as progress:
            task = progress.add_task(f"Listing {source}...", total=None)
            source_catalog = self._catalog(source)
            progress.update(
                task, description=f"Found {len(source_catalog)} source file(s)"
            )

            task = progress.add_task(f"Listing {dest}...", total=None)
            dest_catalog = self._catalog(dest)
            progress.update(
                task, description=f"Found {len(dest_catalog)} destination file(s)"
            )
        return source_catalog, dest_catalog

    def _drop_unsafe_keys(
        self, dest: LocalLocator, source: Catalog, report: SyncReport
    ) -> Catalog:
        """Remove source keys that would be written outside a local root."""
        safe: Catalog = {}
        for key, entry in source.items():
            try:
                dest.join(key)
            except InvalidLocatorError as e:
                logger.warning(f"Skipping {key!r}: {e}")
                self.output.warning(f"Skipping unsafe key {key!r}")
                report.rejected.append(key)
                continue
            safe[key] = entry
        report.rejected.sort()
        return safe

    def _delete(self, dest: Locator, keys: list[str], report: SyncReport) -> None:
        """Delete extraneous destination entries.

        Remote deletes are issued without re-checking transfer outcomes.
        """
        if isinstance(dest, RemoteLocator):
            try:
                failed = self.operations.delete_remote_batch(dest, keys)
            except S3APIError as e:
                logger.warning(f"Batch delete below {dest} failed: {e}")
                self.output.error(f"Delete failed: {e}")
                report.delete_failed = len(keys)
                return
            report.delete_failed = len(failed)
            report.deleted = len(keys) - len(failed)
            return

        assert isinstance(dest, LocalLocator)
        for key in keys:
            try:
                self.operations.delete_local(dest, key)
            except OSError as e:
                logger.warning(f"Failed to delete {dest.join(key)}: {e}")
                self.output.error(f"Error deleting {key}: {e}")
                report.delete_failed += 1
            else:
                report.deleted += 1

    def _display_sync_plan(
        self, changes: Changelist, source: Catalog, options: SyncOptions
    ) -> None:
        """Display the changelist before it is applied."""
        self.output.info("")
        self.output.info("Sync plan:")
        if changes.is_empty:
            self.output.info("  Nothing to transfer or delete")
        if changes.to_transfer:
            size = self.output.format_size(changes.transfer_size(source))
            self.output.info(f"  => Transfer: {len(changes.to_transfer)} file(s), {size}")
        if changes.to_delete:
            action = "Delete" if options.delete else "Extraneous (not deleted)"
            self.output.info(f"  x  {action}: {len(changes.to_delete)} file(s)")
        skipped = len(source) - len(changes.to_transfer)
        if skipped > 0:
            self.output.info(f"  =  Skip: {skipped} file(s)")

        if options.dry_run:
            for key in changes.to_transfer:
                self.output.info(f"  would transfer: {key}")
            if options.delete:
                for key in changes.to_delete:
                    self.output.info(f"  would delete: {key}")

    def _display_summary(self, report: SyncReport) -> None:
        """Display sync summary."""
        self.output.info("")
        if report.dry_run:
            self.output.success("Dry run complete!")
        elif report.success:
            self.output.success("Sync complete!")
        else:
            self.output.warning("Sync finished with errors")

        if report.dry_run:
            return
        total_actions = report.transferred + report.failed + report.deleted
        if total_actions == 0 and report.delete_failed == 0 and not report.rejected:
            self.output.info("No changes needed - everything is in sync!")
            return
        self.output.print_summary(
            "Summary",
            [
                ("Transferred", str(report.transferred)),
                ("Bytes", self.output.format_size(report.bytes_transferred)),
                ("Failed", str(report.failed)),
                ("Rejected", str(len(report.rejected))),
                ("Deleted", str(report.deleted)),
                ("Delete failed", str(report.delete_failed)),
                ("Elapsed", f"{report.elapsed:.2f}s"),
            ],
        )
