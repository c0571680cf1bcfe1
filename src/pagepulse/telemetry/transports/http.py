# src/pagepulse/telemetry/transports/http.py
"""Confirmable HTTP transport.

POSTs a batch as a JSON array of wire-format events. Any non-2xx response
is treated exactly like a network failure: both raise DeliveryError and
the dispatcher requeues the batch.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import TYPE_CHECKING

import httpx
import structlog

from pagepulse.telemetry.errors import DeliveryError, TransportConfigurationError

if TYPE_CHECKING:
    from pagepulse.contracts.events import Event

logger = structlog.get_logger(__name__)


def encode_batch(batch: Sequence[Event]) -> bytes:
    """Serialize a batch to the JSON array body sent to the endpoint."""
    return json.dumps([event.to_wire() for event in batch], separators=(",", ":")).encode("utf-8")


class HttpTransport:
    """Deliver batches with a blocking httpx POST on the delivery thread.

    The delivery worker is the only caller, so the host thread never
    waits on the network.

    Example:
        transport = HttpTransport("https://collect.example.com/collect", timeout=10.0)
        transport.send(batch)  # raises DeliveryError on failure
        transport.close()
    """

    _name = "http"

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            url: Full delivery URL ({endpoint}/collect)
            timeout: Request timeout in seconds
            client: Optional preconfigured client (closed by close())

        Raises:
            TransportConfigurationError: If url is not http(s) or timeout <= 0
        """
        if not url.startswith(("http://", "https://")):
            raise TransportConfigurationError(self._name, f"url must be http(s), got {url!r}")
        if timeout <= 0:
            raise TransportConfigurationError(self._name, f"timeout must be > 0, got {timeout}")
        self._url = url
        self._client = client if client is not None else httpx.Client(timeout=timeout)
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def url(self) -> str:
        return self._url

    def send(self, batch: Sequence[Event]) -> None:
        """POST the batch and confirm a 2xx response.

        Raises:
            DeliveryError: On transport error or non-success status.
        """
        try:
            response = self._client.post(
                self._url,
                content=encode_batch(batch),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise DeliveryError(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise DeliveryError("Collection endpoint rejected batch", status_code=response.status_code)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._client.close()
