# src/pagepulse/telemetry/protocols.py
"""Protocol definitions for delivery transports.

Two separate capabilities:

- ConfirmableTransport: the normal path. The outcome is observable and
  drives the requeue policy.
- BeaconTransport: the exit path. Best-effort, no outcome channel at all.
  It has no way to report delivery failure, so it never takes part in
  retries.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pagepulse.contracts.events import Event


@runtime_checkable
class ConfirmableTransport(Protocol):
    """Transport whose delivery outcome is observable.

    Error handling:
        - send() returns normally only when the endpoint accepted the batch
        - send() MUST raise DeliveryError for network failures and
          non-success responses; anything else raised is treated the same
          way by the dispatcher
        - close() MUST be idempotent
    """

    @property
    def name(self) -> str:
        """Transport name for logs."""
        ...

    def send(self, batch: Sequence["Event"]) -> None:
        """Deliver a batch, blocking the calling (delivery) thread until done.

        Raises:
            DeliveryError: If the batch was not accepted.
        """
        ...

    def close(self) -> None:
        """Release connections."""
        ...


@runtime_checkable
class BeaconTransport(Protocol):
    """Fire-and-forget transport used when the session is terminating.

    send_beacon() must not block on the network and must not raise.
    """

    @property
    def name(self) -> str:
        """Transport name for logs."""
        ...

    def send_beacon(self, batch: Sequence["Event"]) -> bool:
        """Hand a batch off for best-effort delivery.

        Returns:
            True if the send was queued. This says nothing about whether
            the endpoint received it.
        """
        ...
