# src/pagepulse/telemetry/transports/__init__.py
"""Built-in delivery transports.

Available transports:
- HttpTransport: confirmable JSON POST to {endpoint}/collect
- HttpBeacon: fire-and-forget POST to {endpoint}/collect for the exit flush

Usage:
    from pagepulse.telemetry.transports import HttpBeacon, HttpTransport
"""

from pagepulse.telemetry.transports.beacon import HttpBeacon
from pagepulse.telemetry.transports.http import HttpTransport, encode_batch

__all__ = [
    "HttpBeacon",
    "HttpTransport",
    "encode_batch",
]
