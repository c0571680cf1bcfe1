# src/pagepulse/contracts/events.py
"""Event record contract.

An Event is built once from the session state and page context at capture
time and never mutated afterwards. The queue, the dispatcher and both
transports only ever read it.

Wire format (one element of the JSON array POSTed to {endpoint}/collect):

    {
      "eventType": "scroll_depth",
      "timestamp": "2026-10-18T12:00:00.123000+00:00",
      "visitorId": "...",
      "sessionId": "...",
      "domainId": "site-1",
      "url": "https://example.com/",
      "userAgent": "...",
      "depth": 42
    }

Payload fields are spread at the top level next to the envelope keys.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

# Envelope keys as they appear on the wire. Payload keys may not reuse them.
ENVELOPE_KEYS: frozenset[str] = frozenset(
    {
        "eventType",
        "timestamp",
        "visitorId",
        "sessionId",
        "domainId",
        "url",
        "userAgent",
    }
)


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable telemetry event.

    Attributes:
        event_type: String tag (see EventType for built-in tags)
        timestamp: Capture-time instant (timezone-aware)
        visitor_id: Long-lived client identity
        session_id: Identity of this collector lifecycle
        domain_id: Tenant/site identifier, None if unconfigured
        url: Page URL at capture time
        user_agent: Client user agent at capture time
        payload: Event-specific fields, exposed as a read-only mapping
    """

    event_type: str
    timestamp: datetime
    visitor_id: str
    session_id: str
    domain_id: str | None
    url: str
    user_agent: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.event_type:
            raise ValueError("event_type must be a non-empty string")
        if self.timestamp.tzinfo is None:
            raise ValueError(f"timestamp must be timezone-aware, got naive {self.timestamp!r}")
        collisions = ENVELOPE_KEYS.intersection(self.payload)
        if collisions:
            raise ValueError(f"payload keys collide with envelope keys: {sorted(collisions)}")
        # Snapshot the caller's mapping so later mutation of it cannot leak in.
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-serializable form sent to the collection endpoint."""
        return {
            "eventType": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            "visitorId": self.visitor_id,
            "sessionId": self.session_id,
            "domainId": self.domain_id,
            "url": self.url,
            "userAgent": self.user_agent,
            **self.payload,
        }
