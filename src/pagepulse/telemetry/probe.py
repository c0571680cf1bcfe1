# src/pagepulse/telemetry/probe.py
"""Connection-speed probe.

Estimates throughput from one GET to {endpoint}/beacon: response size
divided by elapsed time. Purely informational; it is not part of the
delivery guarantee and never touches the event queue. A failed probe is
logged and yields None. It is not retried.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from pagepulse.core.clock import DEFAULT_CLOCK

if TYPE_CHECKING:
    from pagepulse.core.clock import Clock

logger = structlog.get_logger(__name__)


def throughput_mbps(body_bytes: int, elapsed_seconds: float) -> float:
    """Convert a transfer of body_bytes over elapsed_seconds to megabits/second.

    Raises:
        ValueError: If elapsed_seconds is not positive.
    """
    if elapsed_seconds <= 0:
        raise ValueError(f"elapsed_seconds must be > 0, got {elapsed_seconds}")
    return (body_bytes * 8) / elapsed_seconds / 1_000_000


class ConnectionProbe:
    """Measure throughput against the collection endpoint.

    Example:
        probe = ConnectionProbe("https://collect.example.com/beacon")
        speed = probe.measure()  # Mbps, or None on failure
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        clock: Clock | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._clock = clock if clock is not None else DEFAULT_CLOCK

    @property
    def url(self) -> str:
        return self._url

    def measure(self) -> float | None:
        """Run the probe.

        Size comes from Content-Length when present, otherwise from the
        received body.

        Returns:
            Throughput in Mbps, or None if the probe failed.
        """
        start = self._clock.monotonic()
        try:
            response = httpx.get(
                self._url,
                headers={"Cache-Control": "no-cache", "Pragma": "no-cache"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Error measuring connection speed", url=self._url, error=str(e))
            return None
        elapsed = self._clock.monotonic() - start

        content_length = response.headers.get("content-length")
        try:
            body_bytes = int(content_length) if content_length is not None else len(response.content)
        except ValueError:
            body_bytes = len(response.content)

        try:
            speed = throughput_mbps(body_bytes, elapsed)
        except ValueError as e:
            logger.warning("Error measuring connection speed", url=self._url, error=str(e))
            return None

        logger.debug("Connection probe complete", url=self._url, bytes=body_bytes, seconds=elapsed, mbps=speed)
        return speed
