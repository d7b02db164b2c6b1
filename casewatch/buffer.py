"""
In-memory metric buffer with a background flusher.

Records are appended under a lock and periodically written to the metric
store as one batch. A flush swaps the whole list out under the lock, so
appends made while the write is in flight land in a fresh list. Appending
never touches the store: a full buffer only wakes the flusher. A failed
write puts its batch back in front of the current list and the next flush
retries it together with anything recorded since. Nothing is dropped.
"""

import logging
from threading import Event, Lock, Thread
from typing import List, Optional

from .errors import TransientFlushFailure
from .models import OperationRecord
from .ports import MetricStore

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 100
DEFAULT_FLUSH_INTERVAL = 30.0
BACKLOG_WARNING_FACTOR = 10


class MetricBuffer:
    """Buffers records and flushes them on an interval or when full."""

    def __init__(
        self,
        store: MetricStore,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
    ):
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        if flush_interval <= 0:
            raise ValueError("flush_interval must be positive")

        self.store = store
        self.buffer_size = buffer_size
        self.flush_interval = flush_interval

        self._records: List[OperationRecord] = []
        self._lock = Lock()
        self._flush_lock = Lock()

        self._wake = Event()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def append(self, record: OperationRecord) -> None:
        with self._lock:
            self._records.append(record)
            full = len(self._records) >= self.buffer_size

        # Writes only happen on the flusher thread or an explicit flush().
        # A stopped flusher keeps the wake flag set and start() picks it up.
        if full:
            self._wake.set()

    def pending(self) -> int:
        with self._lock:
            return len(self._records)

    def snapshot(self) -> List[OperationRecord]:
        with self._lock:
            return list(self._records)

    def flush(self) -> int:
        """
        Write the current buffer to the store.

        Returns:
            Number of records written. 0 when the buffer was empty or another
            flush was already in progress.

        Raises:
            TransientFlushFailure: the write failed and the batch was requeued.
        """
        if not self._flush_lock.acquire(blocking=False):
            logger.debug("Flush already in progress, skipping")
            return 0

        try:
            with self._lock:
                batch = self._records
                self._records = []

            if not batch:
                return 0

            try:
                self.store.insert_records(batch)
            except Exception as exc:
                with self._lock:
                    self._records = batch + self._records
                    backlog = len(self._records)
                if backlog >= self.buffer_size * BACKLOG_WARNING_FACTOR:
                    logger.warning("Metric backlog at %d records after failed flushes", backlog)
                raise TransientFlushFailure(len(batch), exc) from exc

            logger.info("Flushed %d metrics to store", len(batch))
            return len(batch)
        finally:
            self._flush_lock.release()

    def start(self) -> None:
        if self.running:
            logger.warning("MetricBuffer flusher already running")
            return

        self._stop_event.clear()
        if self.pending() < self.buffer_size:
            self._wake.clear()
        self._thread = Thread(target=self._flush_loop, name="MetricBufferFlusher", daemon=True)
        self._thread.start()
        logger.info("MetricBuffer flusher started", extra={"flush_interval": self.flush_interval})

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop the flusher and make one last best-effort flush."""
        thread = self._thread
        if thread is not None:
            self._stop_event.set()
            self._wake.set()
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("MetricBuffer flusher did not stop within %.1fs", timeout)
            self._thread = None

        self._flush_quietly()
        remaining = self.pending()
        if remaining:
            logger.warning("Shutting down with %d unflushed metrics", remaining)

    def _flush_loop(self) -> None:
        while not self._stop_event.is_set():
            self._wake.wait(timeout=self.flush_interval)
            self._wake.clear()
            if self._stop_event.is_set():
                break
            try:
                self.flush()
            except TransientFlushFailure as failure:
                logger.error("%s", failure)
                # Retry on the interval, not on every append to the backlog.
                self._stop_event.wait(self.flush_interval)

    def _flush_quietly(self) -> int:
        try:
            return self.flush()
        except TransientFlushFailure as failure:
            logger.error("%s", failure)
            return 0
