# src/pagepulse/collector.py
"""Collector: composition root for one observed session.

Wires the session state, engagement tracker, command buffer, dispatcher
and transports together and exposes the signal API the host calls:

    collector = Collector(CollectorSettings(domain_id="site-1"), visitor_store=store,
                          page_context=PageContext(url="https://example.com/"))
    collector.on_activity()
    collector.on_scroll(scroll_top=800, document_height=3000, viewport_height=900)
    collector.on_visibility_change(hidden=True)
    collector.on_exit()

Error handling:
    No signal handler or tracking call raises into the host. Failures are
    logged and degrade to drop (bad input, probe failure) or retry
    (delivery failure). Initialization steps that fail are logged; steps
    already completed stay active.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

from pagepulse.commands import CommandBuffer
from pagepulse.contracts.enums import EventType
from pagepulse.contracts.events import Event
from pagepulse.core.clock import DEFAULT_CLOCK
from pagepulse.core.identity import InMemoryVisitorStore, generate_id, load_or_create_visitor_id
from pagepulse.page import PageContext, PerformanceTiming, utm_params
from pagepulse.session.engagement import EngagementTracker
from pagepulse.session.state import SessionState
from pagepulse.telemetry.dispatcher import BatchDispatcher
from pagepulse.telemetry.probe import ConnectionProbe
from pagepulse.telemetry.transports import HttpBeacon, HttpTransport

if TYPE_CHECKING:
    from pagepulse.core.clock import Clock
    from pagepulse.core.config import CollectorSettings
    from pagepulse.core.identity import VisitorStore
    from pagepulse.telemetry.protocols import BeaconTransport, ConfirmableTransport

logger = structlog.get_logger(__name__)

PageContextProvider = Callable[[], PageContext]


class Collector:
    """One collector instance per observed session.

    Lifecycle:
        1. Construction: reads (or creates) the visitor id, creates the session
        2. start(): page view, delivery worker, performance collection, then
           replay of commands buffered before start. Runs automatically when
           settings.domain_id is set and autostart is True.
        3. Signals: on_activity / on_scroll / on_visibility_change
        4. on_exit(): page_exit summary, forced beacon flush, dispatcher closed.
           Later calls are ignored.

    Thread Safety:
        Signal handlers and track() may be called from any thread; they are
        serialized by an internal lock. Delivery runs on the dispatcher's
        worker thread and the connection probe on its own thread.
    """

    def __init__(
        self,
        settings: CollectorSettings,
        *,
        visitor_store: VisitorStore | None = None,
        page_context: PageContext | PageContextProvider | None = None,
        performance: PerformanceTiming | None = None,
        transport: ConfirmableTransport | None = None,
        beacon: BeaconTransport | None = None,
        probe: ConnectionProbe | None = None,
        clock: Clock | None = None,
        id_factory: Callable[[], str] = generate_id,
        autostart: bool = True,
    ) -> None:
        """Create the collector.

        Args:
            settings: Validated collector settings
            visitor_store: Client-local storage for the visitor id
                (in-memory by default, i.e. a new visitor per process)
            page_context: Current page context, or a callable returning it
                at capture time
            performance: Navigation timings to report during start()
            transport: Confirmable transport (HttpTransport by default)
            beacon: Fire-and-forget transport (HttpBeacon by default)
            probe: Connection probe (against {endpoint}/beacon by default)
            clock: Clock for engagement timing and timestamps
            id_factory: Generator for visitor/session ids
            autostart: Start immediately when settings.domain_id is set
        """
        self._settings = settings
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._performance = performance
        self._lock = threading.RLock()
        self._started = False
        self._exited = False

        self._page_context: PageContextProvider
        self.set_page_context(page_context if page_context is not None else PageContext(url=""))

        store = visitor_store if visitor_store is not None else InMemoryVisitorStore()
        self._state = SessionState.begin(
            visitor_id=load_or_create_visitor_id(store, id_factory),
            session_id=id_factory(),
            now=self._clock.monotonic(),
        )

        self._probe = probe if probe is not None else ConnectionProbe(
            settings.beacon_url, timeout=settings.request_timeout, clock=self._clock
        )
        self._dispatcher = BatchDispatcher(
            transport if transport is not None else HttpTransport(settings.collect_url, timeout=settings.request_timeout),
            beacon if beacon is not None else HttpBeacon(settings.collect_url, timeout=settings.request_timeout),
            batch_size=settings.batch_size,
            batch_interval=settings.batch_interval_seconds,
        )
        self._tracker = EngagementTracker(
            self._state,
            emit=self._emit,
            on_forced_flush=self._forced_flush,
            clock=self._clock,
        )
        self._commands = CommandBuffer(max_size=settings.command_buffer_size)
        self._probe_thread: threading.Thread | None = None

        if settings.domain_id is not None and autostart:
            self.start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, *, page_view: bool = True) -> None:
        """Run initialization steps, then replay buffered commands.

        Idempotent. A step that raises is logged and stops the remaining
        steps; whatever started before it stays active.

        Args:
            page_view: Record the initial page view (off for replays)
        """
        with self._lock:
            if self._started or self._exited:
                return
            self._started = True

            steps: list[tuple[str, Callable[[], None]]] = []
            if page_view:
                steps.append(("pageview", self.page_view))
            steps.append(("delivery", self._dispatcher.start))
            if self._performance is not None:
                timing = self._performance
                steps.append(("performance", lambda: self.track_performance(timing)))

            for step_name, step in steps:
                try:
                    step()
                except Exception as e:
                    logger.error("Initialization step failed", step=step_name, error_type=type(e).__name__, error=str(e))
                    break

            if len(self._commands):
                replayed = self._commands.replay(self)
                logger.debug("Replayed buffered commands", count=replayed)

        logger.info(
            "Collector started",
            domain_id=self._settings.domain_id,
            session_id=self._state.session_id,
            endpoint=self._settings.endpoint,
        )

    def close(self) -> None:
        """Equivalent to on_exit()."""
        self.on_exit()

    def __enter__(self) -> Collector:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.on_exit()

    @property
    def started(self) -> bool:
        return self._started

    @property
    def exited(self) -> bool:
        return self._exited

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def set_page_context(self, page_context: PageContext | PageContextProvider) -> None:
        """Replace the page context (e.g. after a client-side navigation)."""
        if isinstance(page_context, PageContext):
            fixed = page_context
            self._page_context = lambda: fixed
        else:
            self._page_context = page_context

    def track(self, event_type: str, payload: Mapping[str, Any] | None = None) -> None:
        """Record an event.

        Before start() the call is buffered and replayed on start; after
        exit it is ignored.
        """
        with self._lock:
            if self._exited:
                logger.debug("Event after exit ignored", event_type=event_type)
                return
            if not self._started:
                self._commands.push("track", event_type, dict(payload) if payload is not None else None)
                return
            self._emit(event_type, payload)

    def _emit(self, event_type: str, payload: Mapping[str, Any] | None) -> None:
        """Build an event from the current session and page, and enqueue it."""
        with self._guard("track"):
            page = self._page_context()
            event = Event(
                event_type=str(event_type),
                timestamp=self._clock.now(),
                visitor_id=self._state.visitor_id,
                session_id=self._state.session_id,
                domain_id=self._settings.domain_id,
                url=page.url,
                user_agent=page.user_agent,
                payload=payload if payload is not None else {},
            )
            if self._settings.debug:
                logger.debug("Tracked event", event_type=event.event_type, wire=event.to_wire())
            self._dispatcher.enqueue(event)

    def page_view(self) -> None:
        """Record a page view with referrer, title and campaign parameters."""
        page = self._page_context()
        self.track(
            EventType.PAGEVIEW,
            {
                "referrer": page.referrer,
                "title": page.title,
                "utmParams": utm_params(page.url),
            },
        )

    def track_performance(self, timing: PerformanceTiming) -> None:
        """Record navigation timings, then probe connection speed in the background."""
        with self._lock:
            if not self._started:
                self._commands.push("track_performance", timing)
                return
        self.track(
            EventType.PERFORMANCE,
            {
                "loadTime": timing.load_time_ms,
                "domLoadTime": timing.dom_load_time_ms,
                "firstPaint": timing.first_paint,
            },
        )
        self._probe_thread = threading.Thread(
            target=self.measure_connection_speed,
            name="pagepulse-probe",
            daemon=True,
        )
        self._probe_thread.start()

    def measure_connection_speed(self) -> float | None:
        """Run the connection probe and record connection_speed on success.

        Returns:
            Measured Mbps, or None if the probe failed (nothing is recorded).
        """
        with self._guard("connection_probe"):
            speed = self._probe.measure()
            if speed is not None:
                self.track(EventType.CONNECTION_SPEED, {"speed": speed})
            return speed
        return None

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def on_activity(self) -> None:
        """Pointer, keyboard or click activity."""
        self._deliver_signal("activity", self._tracker.on_activity)

    def on_scroll(self, scroll_top: float, document_height: float, viewport_height: float) -> None:
        """Scroll position change."""
        self._deliver_signal("scroll", self._tracker.on_scroll, scroll_top, document_height, viewport_height)

    def on_visibility_change(self, hidden: bool) -> None:
        """Document hidden or shown."""
        self._deliver_signal("visibility", self._tracker.on_visibility_change, hidden)

    def on_exit(self) -> None:
        """Session end: page_exit summary, then forced flush via the beacon."""
        with self._lock:
            if self._exited:
                return
            if not self._started:
                self._exited = True
                logger.debug("Exit before start; nothing to flush", dropped_commands=len(self._commands))
                return
            with self._guard("exit"):
                self._tracker.on_exit()
            self._exited = True
            # Dispatcher closes in _forced_flush; make sure it happened even if
            # the tracker failed before reaching it
            if not self._dispatcher.closed:
                self._forced_flush()

    def _forced_flush(self) -> None:
        with self._guard("forced_flush"):
            self._dispatcher.close(timeout=0.0)

    def _deliver_signal(self, name: str, handler: Callable[..., None], *args: Any) -> None:
        """Serialize a signal; drop it before start and after exit."""
        with self._lock:
            if not self._started or self._exited:
                logger.debug("Signal ignored", signal=name, started=self._started, exited=self._exited)
                return
            with self._guard(name):
                handler(*args)

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        """Log and contain failures so they never reach the host."""
        try:
            yield
        except Exception as e:
            logger.error(
                "Collector operation failed",
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
            )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def settings(self) -> CollectorSettings:
        return self._settings

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def dispatcher(self) -> BatchDispatcher:
        return self._dispatcher

    @property
    def visitor_id(self) -> str:
        return self._state.visitor_id

    @property
    def session_id(self) -> str:
        return self._state.session_id

    @property
    def pending_commands(self) -> int:
        return len(self._commands)

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Delivery metrics plus the session's engagement summary."""
        return {
            **self._dispatcher.health_metrics,
            "active_time_ms": self._state.active_time_ms,
            "interactions": self._state.interactions,
            "max_scroll_depth": self._state.max_scroll_depth,
        }
