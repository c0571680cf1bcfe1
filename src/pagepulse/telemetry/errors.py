# src/pagepulse/telemetry/errors.py
"""Delivery-specific exceptions.

These are for the delivery subsystem only. None of them may escape into
the host application: the dispatcher catches DeliveryError and requeues,
and TransportConfigurationError is raised only while wiring transports.
"""


class DeliveryError(Exception):
    """Raised by a confirmable transport when a batch was not accepted.

    Covers both network failures (status_code is None) and non-success
    responses (status_code set).

    Attributes:
        status_code: HTTP status returned by the endpoint, if any
        message: Human-readable error description
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message if status_code is None else f"{message} (status {status_code})")


class TransportConfigurationError(Exception):
    """Raised when a transport is constructed with invalid settings.

    Attributes:
        transport_name: Name of the transport that failed
        message: Human-readable error description
    """

    def __init__(self, transport_name: str, message: str) -> None:
        self.transport_name = transport_name
        self.message = message
        super().__init__(f"Transport '{transport_name}' misconfigured: {message}")
