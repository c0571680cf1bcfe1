# src/pagepulse/telemetry/dispatcher.py
"""BatchDispatcher decides when to flush the event queue and applies the
requeue policy.

Flush triggers, each able to start a flush on its own:
1. Threshold: queue length reaches batch_size right after an append
2. Timer: every batch_interval seconds
3. Forced: the session exits (force_flush / close)

Delivery policy:
- Threshold and timer flushes dequeue up to batch_size events (FIFO) and
  send them on the confirmable transport.
- On failure the whole batch goes back to the head of the queue, in its
  original order. No backoff and no retry cap: the next trigger retries.
- The forced flush drains the whole queue in one beacon call and never
  retries.

Thread Safety:
    Producers call enqueue() from the host thread; confirmable sends run on
    the background delivery thread so producers never wait on the network.
    - _queue_lock guards every queue mutation (append, dequeue, requeue,
      drain) and the closed flag.
    - _delivery_lock is held for a whole flush cycle, from dequeue until the
      outcome is applied. At most one confirmable batch is ever in flight,
      so a failed batch is back at the head before the next dequeue and
      two triggers can never take interleaved partial batches.
    - Appends only take _queue_lock, so they proceed while a batch is in
      flight; the in-flight batch has already left the queue.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from pagepulse.contracts.enums import FlushTrigger
from pagepulse.telemetry.buffer import EventQueue
from pagepulse.telemetry.errors import DeliveryError

if TYPE_CHECKING:
    from pagepulse.contracts.events import Event
    from pagepulse.telemetry.protocols import BeaconTransport, ConfirmableTransport

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FlushResult:
    """Outcome of one flush cycle.

    Attributes:
        trigger: What started the cycle
        attempted: Number of events handed to a transport (0 = no-op)
        delivered: True if the confirmable transport accepted the batch
    """

    trigger: FlushTrigger
    attempted: int
    delivered: bool


class BatchDispatcher:
    """Owns the event queue and moves batches to the transports.

    Failure handling:
    - DeliveryError (network error, non-2xx) requeues the batch at the head
    - Any other exception from a transport is treated the same way and
      logged at ERROR, since it points at a transport bug
    - The first failure of a streak and every _LOG_INTERVAL-th consecutive
      failure after it are logged at WARNING, the rest at DEBUG

    Example:
        >>> dispatcher = BatchDispatcher(transport, beacon, batch_size=10, batch_interval=5.0)
        >>> dispatcher.start()
        >>> dispatcher.enqueue(event)
        >>> dispatcher.close()  # forced flush via beacon
    """

    _LOG_INTERVAL = 100

    def __init__(
        self,
        transport: ConfirmableTransport,
        beacon: BeaconTransport,
        *,
        batch_size: int = 10,
        batch_interval: float = 5.0,
        queue: EventQueue | None = None,
    ) -> None:
        """Initialize the dispatcher. Call start() to run the timer.

        Args:
            transport: Confirmable transport for threshold/timer flushes
            beacon: Fire-and-forget transport for the forced flush
            batch_size: Threshold length and maximum confirmable batch size
            batch_interval: Timer period in seconds
            queue: Queue to drain (a fresh one by default)

        Raises:
            ValueError: If batch_size < 1 or batch_interval <= 0.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if batch_interval <= 0:
            raise ValueError(f"batch_interval must be > 0, got {batch_interval}")

        self._transport = transport
        self._beacon = beacon
        self._batch_size = batch_size
        self._batch_interval = batch_interval
        self._queue = queue if queue is not None else EventQueue()

        self._queue_lock = threading.Lock()
        self._delivery_lock = threading.Lock()
        self._closed = False

        # Health metrics
        self._batches_sent = 0
        self._batches_failed = 0
        self._events_delivered = 0
        self._events_requeued = 0
        self._events_beaconed = 0
        self._beacons_refused = 0
        self._consecutive_failures = 0

        # Worker coordination
        self._wake = threading.Event()
        self._shutdown_event = threading.Event()
        self._worker_ready = threading.Event()
        self._worker: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def enqueue(self, event: Event) -> None:
        """Append an event; fire the threshold trigger when batch_size is reached.

        After close() there is no later flush, so the event goes straight
        to the beacon.
        """
        with self._queue_lock:
            if not self._closed:
                length = self._queue.append(event)
                if length >= self._batch_size:
                    self._wake.set()
                return
        logger.debug("Event after close sent by beacon", event_type=event.event_type)
        self._send_beacon([event], FlushTrigger.FORCED)

    @property
    def flush_requested(self) -> bool:
        """True while a threshold trigger is waiting for the delivery worker."""
        return self._wake.is_set()

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def flush(self, trigger: FlushTrigger = FlushTrigger.MANUAL) -> FlushResult:
        """Run one confirmable flush cycle on the calling thread.

        Blocks while another cycle is in flight. The delivery worker calls
        this for threshold and timer triggers; hosts and tests may call it
        directly.

        Args:
            trigger: What started this cycle (for logs)

        Returns:
            FlushResult describing the attempt. attempted == 0 means the
            queue was empty and nothing was sent.
        """
        with self._delivery_lock:
            with self._queue_lock:
                batch = self._queue.dequeue_batch(self._batch_size)
            if not batch:
                return FlushResult(trigger=trigger, attempted=0, delivered=False)

            try:
                self._transport.send(batch)
            except DeliveryError as e:
                self._handle_failure(batch, trigger, e)
                return FlushResult(trigger=trigger, attempted=len(batch), delivered=False)
            except Exception as e:
                logger.error(
                    "Transport raised unexpected error",
                    transport=self._transport.name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                self._handle_failure(batch, trigger, e)
                return FlushResult(trigger=trigger, attempted=len(batch), delivered=False)

            self._batches_sent += 1
            self._events_delivered += len(batch)
            if self._consecutive_failures:
                logger.info(
                    "Delivery recovered",
                    transport=self._transport.name,
                    failed_attempts=self._consecutive_failures,
                )
            self._consecutive_failures = 0
            return FlushResult(trigger=trigger, attempted=len(batch), delivered=True)

    def _handle_failure(self, batch: list[Event], trigger: FlushTrigger, error: Exception) -> None:
        """Requeue a failed batch at the head, or beacon it if already closed.

        Must be called while holding _delivery_lock.
        """
        self._batches_failed += 1
        self._consecutive_failures += 1

        with self._queue_lock:
            closed = self._closed
            if not closed:
                self._queue.requeue_front(batch)
                self._events_requeued += len(batch)

        if closed:
            # The forced flush already ran; this is the last chance for the batch
            logger.warning(
                "Delivery failed after close, batch sent by beacon",
                events=len(batch),
                error=str(error),
            )
            self._send_beacon(batch, FlushTrigger.FORCED)
            return

        streak = self._consecutive_failures
        log = logger.warning if streak == 1 or streak % self._LOG_INTERVAL == 0 else logger.debug
        log(
            "Batch delivery failed, requeued",
            transport=self._transport.name,
            trigger=trigger.value,
            events=len(batch),
            status_code=getattr(error, "status_code", None),
            consecutive_failures=streak,
            error=str(error),
        )

    def force_flush(self) -> int:
        """Drain the entire queue through the beacon in a single call.

        Not capped at batch_size and never retried. Does not wait for an
        in-flight confirmable batch.

        Returns:
            Number of events handed to the beacon.
        """
        with self._queue_lock:
            events = self._queue.drain()
        if not events:
            return 0
        self._send_beacon(events, FlushTrigger.FORCED)
        return len(events)

    def _send_beacon(self, events: list[Event], trigger: FlushTrigger) -> None:
        try:
            queued = self._beacon.send_beacon(events)
        except Exception as e:
            # Beacons must not raise; a misbehaving one still must not reach the host
            logger.error("Beacon raised", beacon=self._beacon.name, events=len(events), error=str(e))
            queued = False
        with self._queue_lock:
            if queued:
                self._events_beaconed += len(events)
            else:
                self._beacons_refused += 1
        if not queued:
            logger.warning("Beacon refused batch, events lost", trigger=trigger.value, events=len(events))

    # ------------------------------------------------------------------
    # Worker lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background delivery worker (timer and threshold triggers)."""
        if self._worker is not None:
            return
        if self._shutdown_event.is_set():
            raise RuntimeError("BatchDispatcher cannot be restarted after close()")
        # Daemon: the host owns the lifecycle and signals exit explicitly;
        # a forgotten exit must not keep the host process alive.
        self._worker = threading.Thread(
            target=self._delivery_loop,
            name="pagepulse-delivery",
            daemon=True,
        )
        self._worker.start()
        self._worker_ready.wait(timeout=5.0)

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def _delivery_loop(self) -> None:
        """Background thread: wait for a trigger, then flush.

        Timer ticks run on a fixed cadence independent of threshold wakes,
        measured on the real monotonic clock that Event.wait() sleeps on.
        The worker owns the confirmable transport and closes it on exit,
        after any in-flight batch has completed.
        """
        self._worker_ready.set()
        next_tick = time.monotonic() + self._batch_interval

        try:
            while not self._shutdown_event.is_set():
                timeout = max(0.0, next_tick - time.monotonic())
                woken = self._wake.wait(timeout=timeout)
                if self._shutdown_event.is_set():
                    break

                if woken:
                    self._wake.clear()
                    trigger = FlushTrigger.THRESHOLD
                else:
                    trigger = FlushTrigger.TIMER
                    now = time.monotonic()
                    next_tick += self._batch_interval
                    if next_tick <= now:
                        # Fell behind (slow send); do not fire a burst of catch-up ticks
                        next_tick = now + self._batch_interval

                try:
                    self._run_cycle(trigger)
                except Exception as e:
                    # Log but don't die - the timer must keep retrying
                    logger.error("Delivery loop failed unexpectedly", trigger=trigger.value, error=str(e))
        finally:
            self._close_transport()

    def _run_cycle(self, trigger: FlushTrigger) -> None:
        """Flush once; keep going while the threshold condition still holds."""
        result = self.flush(trigger)
        while result.delivered and not self._shutdown_event.is_set():
            with self._queue_lock:
                backlog = len(self._queue)
            if backlog < self._batch_size:
                break
            result = self.flush(FlushTrigger.THRESHOLD)

    def close(self, timeout: float | None = 0.0) -> int:
        """Stop triggering and force-flush everything still queued.

        Shutdown sequence:
        1. Mark closed under the queue lock and drain: nothing can be
           requeued afterwards, late failures go to the beacon instead
        2. Beacon the drained events
        3. Signal the worker; it exits after any in-flight send and closes
           the confirmable transport

        Args:
            timeout: Seconds to wait for the worker to exit. The exit path
                passes 0 (do not wait); None waits indefinitely.

        Returns:
            Number of events handed to the beacon by the forced flush.
        """
        with self._queue_lock:
            if self._closed:
                return 0
            self._closed = True
            events = self._queue.drain()

        if events:
            self._send_beacon(events, FlushTrigger.FORCED)

        self._shutdown_event.set()
        self._wake.set()

        if self._worker is None:
            self._close_transport()
        elif timeout is None or timeout > 0:
            self._worker.join(timeout=timeout)
            if self._worker.is_alive():
                logger.warning("Delivery worker still sending at close")

        logger.info("Dispatcher closed", forced_events=len(events), **self.health_metrics)
        return len(events)

    def _close_transport(self) -> None:
        try:
            self._transport.close()
        except Exception as e:
            logger.warning("Transport close failed", transport=self._transport.name, error=str(e))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        with self._queue_lock:
            return self._closed

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def __len__(self) -> int:
        with self._queue_lock:
            return len(self._queue)

    def pending(self) -> list[Event]:
        """Snapshot of queued events, oldest first."""
        with self._queue_lock:
            return self._queue.snapshot()

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Return delivery health metrics for monitoring.

        Reads are approximately consistent: counters written by the
        delivery thread may be one cycle stale.
        """
        with self._queue_lock:
            queue_depth = len(self._queue)
            events_beaconed = self._events_beaconed
            beacons_refused = self._beacons_refused
        return {
            "batches_sent": self._batches_sent,
            "batches_failed": self._batches_failed,
            "events_delivered": self._events_delivered,
            "events_requeued": self._events_requeued,
            "events_beaconed": events_beaconed,
            "beacons_refused": beacons_refused,
            "consecutive_failures": self._consecutive_failures,
            "queue_depth": queue_depth,
        }
