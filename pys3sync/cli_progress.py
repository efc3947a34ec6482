"""CLI progress display for sync operations.

This module provides a Rich-based progress display that is fed with the
per-item outcomes reported by the transfer scheduler.
"""

import threading
from typing import Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from .sync.engine import SyncEngine, SyncReport
from .sync.pair import SyncPair
from .sync.scheduler import TransferOutcome
from .utils import format_size


class TransferProgressDisplay:
    """Rich-based progress display for sync transfers.

    Shows the number of completed items and the bytes transferred so far.
    Outcomes may arrive from several worker threads at once.
    """

    def __init__(self) -> None:
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self._lock = threading.Lock()
        self._active = False
        self.completed = 0
        self.failed = 0
        self.bytes_transferred = 0

    def _format_counts(self) -> str:
        text = f"{self.completed} done, {format_size(self.bytes_transferred)}"
        if self.failed:
            text += f", {self.failed} failed"
        return text

    def _start(self) -> None:
        """Start the live display on the first outcome.

        Listing runs its own transient spinner, so the bar only appears once
        transfers are under way.
        """
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[cyan]{task.fields[counts]}"),
            TransferSpeedColumn(),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.start()
        self._task = self._progress.add_task(
            "Transferring...", total=None, counts="0 done, 0 B"
        )

    def handle_outcome(self, outcome: TransferOutcome) -> None:
        """Record one outcome and refresh the display.

        Args:
            outcome: Outcome reported by the scheduler
        """
        with self._lock:
            if outcome.success:
                self.completed += 1
                self.bytes_transferred += outcome.bytes_transferred
            else:
                self.failed += 1
            if not self._active:
                return
            if self._progress is None:
                self._start()
            assert self._progress is not None and self._task is not None
            self._progress.update(
                self._task,
                advance=outcome.request.size,
                description=f"Transferring: {outcome.key}",
                counts=self._format_counts(),
            )

    def __enter__(self) -> "TransferProgressDisplay":
        """Enter context manager - the display starts with the first outcome."""
        self._active = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        with self._lock:
            self._active = False
            if self._progress is not None:
                if self._task is not None:
                    self._progress.update(self._task, description="Transfer complete")
                self._progress.stop()
                self._progress = None
                self._task = None


def run_sync_with_progress(
    engine: SyncEngine,
    pair: SyncPair,
    show_progress: bool = True,
) -> SyncReport:
    """Run a sync with a Rich progress display.

    Args:
        engine: SyncEngine instance
        pair: Source, destination and options of the sync
        show_progress: Show the progress bar (ignored for dry runs)

    Returns:
        SyncReport of the run
    """
    # For dry-run, don't show progress bar (just text output)
    if pair.options.dry_run or not show_progress:
        return engine.sync_pair(pair)

    with TransferProgressDisplay() as display:
        return engine.sync_pair(pair, display.handle_outcome)
