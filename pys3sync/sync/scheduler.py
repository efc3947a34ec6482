"""Transfer scheduler: a fixed pool of workers draining a closable queue."""

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from ..exceptions import QueueClosedError, TransferError
from .operations import TransferOperations, TransferRequest

logger = logging.getLogger(__name__)

_END_OF_WORK = object()


class TransferQueue:
    """Bounded thread-safe queue of transfer requests that can be closed.

    Closing enqueues one end-of-work marker per consumer, so each consumer
    observes shutdown exactly once, after every request put before the close.
    """

    def __init__(self, maxsize: int, consumers: int):
        """Initialize the queue.

        Args:
            maxsize: Maximum number of pending requests (``put`` blocks beyond it)
            consumers: Number of consumers that will call ``get``
        """
        if consumers < 1:
            raise ValueError(f"consumers must be at least 1, got {consumers}")
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._consumers = consumers
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, request: TransferRequest) -> None:
        """Enqueue a request, blocking while the queue is full.

        Raises:
            QueueClosedError: If the queue has been closed
        """
        with self._lock:
            if self._closed:
                raise QueueClosedError(f"Cannot enqueue {request.key}: queue is closed")
        self._queue.put(request)

    def close(self) -> None:
        """Signal end of work. Calling it more than once has no effect."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        for _ in range(self._consumers):
            self._queue.put(_END_OF_WORK)

    def get(self) -> Optional[TransferRequest]:
        """Take the next request.

        Returns:
            The next request, or None once this consumer has reached its
            end-of-work marker (the consumer must then stop calling ``get``)
        """
        item = self._queue.get()
        if item is _END_OF_WORK:
            return None
        return item  # type: ignore[return-value]


@dataclass
class TransferOutcome:
    """Result of one transfer request."""

    request: TransferRequest
    """Request that was processed"""

    success: bool
    """Whether the transfer completed"""

    bytes_transferred: int = 0
    """Bytes moved (0 on failure)"""

    error: Optional[str] = None
    """Error message on failure"""

    elapsed: float = 0.0
    """Seconds spent on this request"""

    @property
    def key(self) -> str:
        return self.request.key

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "kind": self.request.kind.value,
            "success": self.success,
            "bytes": self.bytes_transferred,
            "error": self.error,
        }


@dataclass
class TransferResults:
    """Collected outcomes of a scheduler run."""

    outcomes: list[TransferOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def bytes_transferred(self) -> int:
        return sum(o.bytes_transferred for o in self.outcomes)

    @property
    def failed_keys(self) -> list[str]:
        return sorted(o.key for o in self.outcomes if not o.success)


class TransferScheduler:
    """Runs transfer requests on a fixed number of long-lived workers."""

    def __init__(
        self,
        operations: TransferOperations,
        parallelism: int = 1,
        progress_callback: Optional[Callable[[TransferOutcome], None]] = None,
    ):
        """Initialize the scheduler.

        Args:
            operations: Operations that perform each transfer
            parallelism: Number of workers (also the queue bound)
            progress_callback: Called with each outcome as it completes

        Raises:
            ValueError: If parallelism is less than 1
        """
        if parallelism < 1:
            raise ValueError(f"parallelism must be at least 1, got {parallelism}")
        self.operations = operations
        self.parallelism = parallelism
        self.progress_callback = progress_callback

    def run(self, requests: Iterable[TransferRequest]) -> TransferResults:
        """Push every request through the workers and wait for all of them.

        Args:
            requests: Requests to perform; each is consumed by exactly one worker

        Returns:
            TransferResults with one outcome per request
        """
        results = TransferResults()
        results_lock = threading.Lock()
        work = TransferQueue(maxsize=self.parallelism, consumers=self.parallelism)

        def record(outcome: TransferOutcome) -> None:
            with results_lock:
                results.outcomes.append(outcome)
            if self.progress_callback is None:
                return
            try:
                self.progress_callback(outcome)
            except Exception as e:
                # A worker must keep draining the queue whatever the display does
                logger.warning(f"Progress callback failed for {outcome.key}: {e}")

        def worker(worker_id: int) -> int:
            handled = 0
            while True:
                request = work.get()
                if request is None:
                    logger.debug(f"Worker {worker_id} done after {handled} item(s)")
                    return handled
                record(self._perform(request))
                handled += 1

        start = time.time()
        logger.debug(f"Starting {self.parallelism} transfer worker(s)")
        with ThreadPoolExecutor(
            max_workers=self.parallelism, thread_name_prefix="transfer"
        ) as executor:
            futures = [executor.submit(worker, i) for i in range(self.parallelism)]
            try:
                for request in requests:
                    work.put(request)
            finally:
                work.close()
            wait(futures)
            for future in futures:
                # Surface errors raised outside per-item handling
                future.result()

        logger.debug(
            f"Transferred {results.succeeded} item(s), {results.failed} failed, "
            f"in {time.time() - start:.2f}s"
        )
        return results

    def _perform(self, request: TransferRequest) -> TransferOutcome:
        """Perform one request, turning any failure into a failed outcome."""
        start = time.time()
        try:
            transferred = self.operations.execute(request)
        except Exception as e:
            error = TransferError(
                f"Transfer {request.source} => {request.dest} failed: {e}",
                key=request.key,
            )
            logger.warning(str(error))
            return TransferOutcome(
                request=request,
                success=False,
                error=str(error),
                elapsed=time.time() - start,
            )
        elapsed = time.time() - start
        logger.debug(f"Completed {request.key} in {elapsed:.2f}s")
        return TransferOutcome(
            request=request,
            success=True,
            bytes_transferred=transferred,
            elapsed=elapsed,
        )
