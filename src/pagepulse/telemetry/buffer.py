# src/pagepulse/telemetry/buffer.py
"""Ordered event queue awaiting delivery.

Insertion order is capture order. Entries leave the queue only through
dequeue_batch() (for a delivery attempt) or drain() (for the forced exit
flush); a failed attempt puts its batch back at the head with
requeue_front(), ahead of anything appended since.

There is no capacity limit: under a sustained outage the
queue grows until the session ends. See DESIGN.md.
"""

from collections import deque
from collections.abc import Sequence

from pagepulse.contracts.events import Event


class EventQueue:
    """FIFO buffer of events with head reinsertion for retries.

    Thread Safety:
        NOT thread-safe. The BatchDispatcher serializes every mutation
        (append, dequeue_batch, requeue_front, drain) under its queue lock.

    Example:
        queue = EventQueue()
        queue.append(event)
        batch = queue.dequeue_batch(max_count=10)
        queue.requeue_front(batch)  # delivery failed
    """

    def __init__(self) -> None:
        self._events: deque[Event] = deque()

    def append(self, event: Event) -> int:
        """Add event at the tail.

        Returns:
            Queue length after the append.
        """
        self._events.append(event)
        return len(self._events)

    def dequeue_batch(self, max_count: int) -> list[Event]:
        """Remove and return up to max_count oldest events (FIFO order).

        Args:
            max_count: Maximum number of events to remove.

        Returns:
            List of events, oldest first. Empty if the queue is empty.

        Raises:
            ValueError: If max_count < 1.
        """
        if max_count < 1:
            raise ValueError(f"max_count must be >= 1, got {max_count}")
        return [self._events.popleft() for _ in range(min(max_count, len(self._events)))]

    def requeue_front(self, batch: Sequence[Event]) -> None:
        """Reinsert batch at the head, preserving its internal order."""
        # extendleft reverses its argument, so feed it reversed
        self._events.extendleft(reversed(batch))

    def drain(self) -> list[Event]:
        """Remove and return every queued event, oldest first."""
        events = list(self._events)
        self._events.clear()
        return events

    def snapshot(self) -> list[Event]:
        """Return queued events without removing them."""
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)
