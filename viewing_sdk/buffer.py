"""
viewing_sdk/buffer.py - Telemetry Queue with flush/re-queue contract

FLUSH TRIGGERS (any may fire while another is running):
1. Periodic timer (default every 5 seconds)
2. Queue reaching max_size (default 50)
3. Process teardown (one best-effort attempt, no retry)

GUARANTEES:
- At most one flush in flight; a second request returns SKIPPED_IN_FLIGHT
- A flush delivers in batches of at most max_batch events, oldest first
- After a failed flush, reaching max_size no longer triggers a flush of its
  own; the backlog waits for the next periodic or explicit flush
- A failed batch is put back AHEAD of events recorded during the attempt
- The lock is never held across delivery
"""
import atexit
import logging
import threading
from enum import Enum
from typing import Any, Callable, List, Optional

from .errors import DeliveryFailure
from .events import TrackingEvent

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_INTERVAL = 5.0
DEFAULT_MAX_SIZE = 50
# Server default for MAX_BATCH_SIZE
DEFAULT_MAX_BATCH = 100


class FlushResult(str, Enum):
    EMPTY = "EMPTY"
    DELIVERED = "DELIVERED"
    REQUEUED = "REQUEUED"
    SKIPPED_IN_FLIGHT = "SKIPPED_IN_FLIGHT"


# Delivers one batch; raises DeliveryFailure when the batch was not accepted
BatchSender = Callable[[List[TrackingEvent]], Any]


class TelemetryQueue:
    def __init__(
        self,
        sender: BatchSender,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        max_size: int = DEFAULT_MAX_SIZE,
        register_atexit: bool = True,
        max_batch: int = DEFAULT_MAX_BATCH,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if max_batch < 1:
            raise ValueError("max_batch must be >= 1")
        if flush_interval <= 0:
            raise ValueError("flush_interval must be > 0")

        self.sender = sender
        self.flush_interval = flush_interval
        self.max_size = max_size
        self.max_batch = max_batch
        self.queue: List[TrackingEvent] = []

        self._lock = threading.Lock()
        self._flush_in_progress = False
        self._retry_pending = False
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None
        self._closed = False

        # Counters for operators; not part of the delivery contract
        self.delivered_count = 0
        self.failed_flushes = 0

        self._atexit_registered = register_atexit
        if register_atexit:
            atexit.register(self.shutdown)

    def __len__(self) -> int:
        with self._lock:
            return len(self.queue)

    def pending(self) -> List[TrackingEvent]:
        """Snapshot of the queued events, oldest first."""
        with self._lock:
            return list(self.queue)

    @property
    def flush_in_progress(self) -> bool:
        return self._flush_in_progress

    def enqueue(self, event: TrackingEvent) -> None:
        """
        Append an event. Reaching max_size triggers a flush: handed to the
        timer thread when it runs, otherwise performed inline. While a failed
        batch is waiting for its retry, the threshold triggers nothing.
        """
        with self._lock:
            self.queue.append(event)
            threshold_hit = len(self.queue) >= self.max_size

        if not threshold_hit or self._retry_pending:
            return

        if self._timer_thread is not None and self._timer_thread.is_alive():
            self._wake.set()
        else:
            self.flush()

    def flush(self) -> FlushResult:
        """
        Deliver everything queued at call time, oldest first, in batches of
        at most max_batch events.

        On DeliveryFailure the failing batch is prepended back onto the live
        queue, ahead of the undelivered backlog and of events recorded during
        the attempt, and the flush stops. The next flush retries the same
        events first.
        """
        with self._lock:
            if self._flush_in_progress:
                return FlushResult.SKIPPED_IN_FLIGHT
            if not self.queue:
                return FlushResult.EMPTY
            remaining = len(self.queue)
            self._flush_in_progress = True

        try:
            while remaining > 0:
                with self._lock:
                    batch = self.queue[:min(remaining, self.max_batch)]
                    del self.queue[:len(batch)]
                if not batch:
                    break
                remaining -= len(batch)
                if not self._send(batch):
                    return FlushResult.REQUEUED
        finally:
            with self._lock:
                self._flush_in_progress = False

        self._retry_pending = False
        return FlushResult.DELIVERED

    def _send(self, batch: List[TrackingEvent]) -> bool:
        try:
            self.sender(batch)
        except DeliveryFailure as e:
            self._requeue(batch)
            if e.retryable:
                logger.warning(
                    "Telemetry flush failed (%s); %d events re-queued: %s",
                    e.error_class, len(batch), e,
                )
            else:
                logger.error(
                    "Telemetry batch refused by server (HTTP %s); %d events re-queued: %s",
                    e.status_code, len(batch), e,
                )
            return False
        except Exception:
            self._requeue(batch)
            logger.exception("Unexpected error delivering %d events; re-queued", len(batch))
            raise

        self.delivered_count += len(batch)
        logger.debug("Telemetry batch delivered: %d events", len(batch))
        return True

    def _requeue(self, batch: List[TrackingEvent]) -> None:
        with self._lock:
            self.queue[:0] = batch
        self.failed_flushes += 1
        self._retry_pending = True

    # --- Timer ---

    def start(self) -> None:
        """Start the periodic flush thread. Calling twice is a no-op."""
        if self._closed:
            raise RuntimeError("Queue already shut down")
        if self._timer_thread is not None and self._timer_thread.is_alive():
            return

        self._stop.clear()
        self._timer_thread = threading.Thread(
            target=self._run, name="telemetry-flush", daemon=True
        )
        self._timer_thread.start()

    def _run(self) -> None:
        while not self._stop.is_set():
            self._wake.wait(self.flush_interval)
            self._wake.clear()
            if self._stop.is_set():
                break
            try:
                self.flush()
            except Exception:
                # Already logged and re-queued; keep the timer alive
                pass

    def shutdown(self, timeout: float = 10.0) -> FlushResult:
        """
        Stop the timer and make one best-effort synchronous flush.

        Never raises: whatever is still queued after this attempt is an
        accepted loss at process teardown.
        """
        if self._closed:
            return FlushResult.EMPTY
        self._closed = True

        self._stop.set()
        self._wake.set()
        if self._timer_thread is not None:
            self._timer_thread.join(timeout)

        if self._atexit_registered:
            atexit.unregister(self.shutdown)
            self._atexit_registered = False

        try:
            result = self.flush()
        except Exception:
            result = FlushResult.REQUEUED

        if result != FlushResult.DELIVERED and result != FlushResult.EMPTY:
            logger.warning("Teardown flush incomplete; %d events not delivered", len(self))
        return result
