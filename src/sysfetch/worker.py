"""Background snapshot collection for sysfetch."""

import logging
import threading
from dataclasses import dataclass
from queue import Queue

from sysfetch.collector import HostInfoCollector
from sysfetch.models import HostSnapshot

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CollectionFailure:
    """A collection request that produced no snapshot."""

    reason: str


CollectionResult = HostSnapshot | CollectionFailure


class SnapshotWorker:
    """
    Runs HostInfoCollector.collect() off the UI thread.

    Each request runs in its own daemon thread and posts exactly one result to
    a thread-safe Queue: the snapshot, or a CollectionFailure if collection
    raised or outlived the timeout. A timeout or cancel() sets a stop event
    the collector checks between probes; requests are rejected until the
    previous collection thread has ended.
    """

    def __init__(
        self,
        collector: HostInfoCollector,
        result_queue: Queue[CollectionResult],
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the SnapshotWorker.

        Args:
            collector: Collector to run.
            result_queue: Thread-safe queue to push results to.
            timeout: Overall time limit for one collection (in seconds).
        """
        self._collector = collector
        self._queue = result_queue
        self._timeout = timeout
        self._lock = threading.Lock()
        self._generation = 0
        self._in_flight: int | None = None
        self._timer: threading.Timer | None = None
        self._stop: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @property
    def timeout(self) -> float:
        """Get the collection timeout."""
        return self._timeout

    @property
    def is_busy(self) -> bool:
        """Check if a collection is still running or awaiting its result."""
        with self._lock:
            return self._busy()

    def _busy(self) -> bool:
        # A timed-out or cancelled collection stays busy until its thread ends
        return self._in_flight is not None or (
            self._thread is not None and self._thread.is_alive()
        )

    def request(self) -> bool:
        """
        Start a collection in the background.

        Returns:
            False if a collection is already running, True otherwise.
        """
        with self._lock:
            if self._busy():
                return False
            self._generation += 1
            generation = self._generation
            stop = threading.Event()
            timer = threading.Timer(self._timeout, self._expire, args=(generation, stop))
            timer.daemon = True
            thread = threading.Thread(
                target=self._run,
                args=(generation, stop),
                daemon=True,
                name="SnapshotWorker",
            )
            self._in_flight = generation
            self._stop = stop
            self._timer = timer
            self._thread = thread
            timer.start()
            thread.start()
        return True

    def cancel(self) -> None:
        """Stop the in-flight collection; its result will not be delivered."""
        with self._lock:
            self._in_flight = None
            if self._stop is not None:
                self._stop.set()
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def join(self, timeout: float | None = 5.0) -> None:
        """
        Wait for the collection thread to end.

        Args:
            timeout: How long to wait for the thread (seconds).
        """
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)

    def _run(self, generation: int, stop: threading.Event) -> None:
        """Collection body running in the background thread."""
        try:
            result: CollectionResult = self._collector.collect(stop=stop)
        except Exception as exc:
            logger.error("Collection failed: %s", exc)
            result = CollectionFailure(reason=str(exc) or type(exc).__name__)
        self._finish(generation, result)

    def _expire(self, generation: int, stop: threading.Event) -> None:
        logger.error("Collection timed out after %ss", self._timeout)
        stop.set()
        self._finish(
            generation,
            CollectionFailure(reason=f"timed out after {self._timeout:g} seconds"),
        )

    def _finish(self, generation: int, result: CollectionResult) -> None:
        """Deliver the first result of the current request; drop the rest."""
        with self._lock:
            if self._in_flight != generation:
                return
            self._in_flight = None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        self._queue.put(result)
