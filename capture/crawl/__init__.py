"""
Playwright-facing helpers: browser sessions, navigation, settle steps, link frontier.

Public API: re-exports the symbols used by the engine, the batch orchestrator,
the API service and tests so that `from capture.crawl import ...` is enough.
"""

from __future__ import annotations

from capture.crawl.browser import BrowserSession, SessionProvider, batch_session
from capture.crawl.frontier import (
    crawl,
    extract_links,
    filter_same_origin_links,
    normalize_url,
    origin_of,
)
from capture.crawl.navigation import navigate
from capture.crawl.readiness import auto_scroll, settle, suppress_animations

__all__ = [
    # browser
    "BrowserSession",
    "SessionProvider",
    "batch_session",
    # navigation
    "navigate",
    # readiness
    "auto_scroll",
    "suppress_animations",
    "settle",
    # frontier
    "crawl",
    "extract_links",
    "filter_same_origin_links",
    "normalize_url",
    "origin_of",
]
