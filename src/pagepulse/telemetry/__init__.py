# src/pagepulse/telemetry/__init__.py
"""Event buffering and delivery.

Components:
- buffer: EventQueue, ordered FIFO with head reinsertion for retries
- dispatcher: BatchDispatcher, flush triggers and the requeue policy
- protocols: ConfirmableTransport and BeaconTransport capabilities
- transports: HttpTransport (confirmable) and HttpBeacon (fire-and-forget)
- probe: ConnectionProbe for throughput estimation
- errors: DeliveryError and TransportConfigurationError

Usage:
    from pagepulse.telemetry import BatchDispatcher, HttpBeacon, HttpTransport

    dispatcher = BatchDispatcher(
        HttpTransport(settings.collect_url),
        HttpBeacon(settings.collect_url),
        batch_size=settings.batch_size,
        batch_interval=settings.batch_interval_seconds,
    )
    dispatcher.start()
"""

from pagepulse.telemetry.buffer import EventQueue
from pagepulse.telemetry.dispatcher import BatchDispatcher, FlushResult
from pagepulse.telemetry.errors import DeliveryError, TransportConfigurationError
from pagepulse.telemetry.probe import ConnectionProbe, throughput_mbps
from pagepulse.telemetry.protocols import BeaconTransport, ConfirmableTransport
from pagepulse.telemetry.transports import HttpBeacon, HttpTransport

__all__ = [
    "BatchDispatcher",
    "BeaconTransport",
    "ConfirmableTransport",
    "ConnectionProbe",
    "DeliveryError",
    "EventQueue",
    "FlushResult",
    "HttpBeacon",
    "HttpTransport",
    "TransportConfigurationError",
    "throughput_mbps",
]
