# src/pagepulse/page.py
"""Page context supplied by the host.

The collector does not read a document itself. The host hands it the
current page identity (url, user agent, referrer, title) through a
context provider and, once the page has loaded, its navigation timings.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit

UTM_FIELDS: tuple[str, ...] = ("source", "medium", "campaign", "term", "content")


@dataclass(frozen=True, slots=True)
class PageContext:
    """Context strings captured into every event.

    Attributes:
        url: Current page URL
        user_agent: Client user agent string
        referrer: Referring URL ("" when none)
        title: Document title
    """

    url: str
    user_agent: str = ""
    referrer: str = ""
    title: str = ""


@dataclass(frozen=True, slots=True)
class PerformanceTiming:
    """Navigation timings in milliseconds on a common time origin.

    Mirrors the fields a browser exposes for the navigation entry. Values
    of 0 mean "not reached yet".
    """

    navigation_start: float
    dom_content_loaded_event_end: float
    load_event_end: float
    first_paint: float | None = None

    @property
    def load_time_ms(self) -> float:
        return self.load_event_end - self.navigation_start

    @property
    def dom_load_time_ms(self) -> float:
        return self.dom_content_loaded_event_end - self.navigation_start


def utm_params(url: str) -> dict[str, str | None]:
    """Extract utm_* campaign parameters from a URL's query string.

    Every field is present in the result; missing ones are None. A
    repeated parameter yields its first value.
    """
    query = parse_qs(urlsplit(url).query, keep_blank_values=True)
    return {name: query.get(f"utm_{name}", [None])[0] for name in UTM_FIELDS}
