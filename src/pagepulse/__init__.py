"""
pagepulse: client-embedded engagement and performance telemetry.

Observes user-activity and page-performance signals fed in by a host
application and forwards them, batched, to a remote collection endpoint.
"""

__version__ = "0.1.0"
