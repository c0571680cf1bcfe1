# src/pagepulse/telemetry/transports/beacon.py
"""Fire-and-forget HTTP beacon.

Used only for the forced flush at session end, when there is no later
opportunity to look at a response. The batch is serialized on the caller's
thread (so a bad payload is reported immediately) and POSTed from a
short-lived background thread. The response is never inspected.

The sender threads are non-daemon: at interpreter shutdown Python waits for
them, bounded by the request timeout, which is the closest analogue to a
browser completing a beacon after the page is gone.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING

import httpx
import structlog

from pagepulse.telemetry.errors import TransportConfigurationError
from pagepulse.telemetry.transports.http import encode_batch

if TYPE_CHECKING:
    from pagepulse.contracts.events import Event

logger = structlog.get_logger(__name__)


class HttpBeacon:
    """Best-effort POST with no outcome observation.

    Example:
        beacon = HttpBeacon("https://collect.example.com/collect")
        queued = beacon.send_beacon(batch)  # True: handed off, not delivered
    """

    _name = "beacon"

    def __init__(self, url: str, *, timeout: float = 5.0) -> None:
        """Initialize the beacon.

        Args:
            url: Full delivery URL ({endpoint}/collect)
            timeout: Upper bound on how long a sender thread may live

        Raises:
            TransportConfigurationError: If url is not http(s) or timeout <= 0
        """
        if not url.startswith(("http://", "https://")):
            raise TransportConfigurationError(self._name, f"url must be http(s), got {url!r}")
        if timeout <= 0:
            raise TransportConfigurationError(self._name, f"timeout must be > 0, got {timeout}")
        self._url = url
        self._timeout = timeout
        self._threads: list[threading.Thread] = []
        self._threads_lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def send_beacon(self, batch: Sequence[Event]) -> bool:
        """Queue the batch for delivery on a background thread.

        Returns:
            True if a sender thread was started, False if the batch could not
            be serialized or the thread could not be started.
        """
        if not batch:
            return True
        try:
            body = encode_batch(batch)
        except (TypeError, ValueError) as e:
            logger.error("Beacon payload not serializable", events=len(batch), error=str(e))
            return False

        thread = threading.Thread(
            target=self._post,
            args=(body, len(batch)),
            name="pagepulse-beacon",
            daemon=False,
        )
        try:
            thread.start()
        except RuntimeError as e:
            # Interpreter shutting down or thread limit reached
            logger.error("Beacon could not be started", events=len(batch), error=str(e))
            return False

        with self._threads_lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        return True

    def _post(self, body: bytes, count: int) -> None:
        try:
            httpx.post(
                self._url,
                content=body,
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            # No outcome channel: the loss is visible only in debug logs
            logger.debug("Beacon send failed", events=count, error=str(e))

    def wait(self, timeout: float | None = None) -> None:
        """Block until outstanding beacon threads finish.

        Not part of the beacon contract; used by the CLI before exiting and
        by tests.
        """
        with self._threads_lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=timeout)
