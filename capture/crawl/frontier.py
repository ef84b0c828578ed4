"""
Link frontier: breadth-first discovery of same-origin pages from a seed URL.

URL handling helpers are pure functions (unit-tested without a browser):
fragments are stripped and scheme/host lowercased, default ports dropped and
an empty path mapped to "/", so normalization is idempotent. Same-origin
means identical scheme, host and port.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

from playwright.async_api import Page

from capture.constants import CRAWL_NAV_TIMEOUT_MS, EXTRACT_LINKS_SCRIPT
from capture.crawl.browser import BrowserSession
from capture.crawl.navigation import navigate
from capture.errors import CrawlError
from shared.logging import get_logger

logger = get_logger(__name__)

Origin = tuple[str, str, Optional[int]]

DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """
    Return `url` without its fragment, in canonical form.

    Raises ValueError if `url` is not an absolute http(s) URL.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    if scheme not in DEFAULT_PORTS or not parts.hostname:
        raise ValueError(f"Not an absolute http(s) URL: {url!r}")

    host = parts.hostname.lower()
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    netloc = host if port is None or port == DEFAULT_PORTS[scheme] else f"{host}:{port}"
    if parts.username or parts.password:
        userinfo = parts.username or ""
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


def origin_of(url: str) -> Origin:
    """(scheme, host, port) with the scheme's default port filled in."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    port = parts.port or DEFAULT_PORTS.get(scheme)
    return scheme, (parts.hostname or "").lower(), port


def filter_same_origin_links(links: Iterable[str], base_origin: Origin) -> list[str]:
    """
    Keep same-origin links, normalized, in their original order.

    Malformed links are dropped silently; duplicates are kept (the frontier
    dedupes against its queue and visited set).
    """
    result: list[str] = []
    for link in links:
        if not isinstance(link, str):
            continue
        try:
            normalized = normalize_url(link)
            if origin_of(normalized) != base_origin:
                continue
        except ValueError:
            continue
        result.append(normalized)
    return result


async def extract_links(page: Page) -> list[str]:
    """Every anchor target on the page, absolute, in document order."""
    links = await page.evaluate(EXTRACT_LINKS_SCRIPT)
    return [link for link in links or [] if isinstance(link, str)]


async def _visit(session: BrowserSession, url: str, nav_timeout_ms: int) -> list[str]:
    async with session.open_page() as page:
        await navigate(page, url, nav_timeout_ms)
        return await extract_links(page)


async def crawl(
    session: BrowserSession,
    seed_url: str,
    max_pages: int,
    *,
    nav_timeout_ms: int = CRAWL_NAV_TIMEOUT_MS,
    time_budget_ms: Optional[int] = None,
) -> list[str]:
    """
    Discover up to `max_pages` same-origin URLs breadth-first from `seed_url`.

    Output is BFS discovery order and always starts with the (normalized)
    seed. A page that fails to load contributes no links; it still counts
    as visited. When `time_budget_ms` is set, the crawl stops once that
    much wall-clock time has elapsed and returns what it has.

    Raises CrawlError if the seed is not an absolute http(s) URL or
    `max_pages` is not positive.
    """
    if max_pages < 1:
        raise CrawlError("maxPages must be at least 1")
    try:
        seed = normalize_url(seed_url)
    except (ValueError, AttributeError) as e:
        raise CrawlError(f"Crawler error: {e}") from e

    base_origin = origin_of(seed)
    visited: set[str] = set()
    output: list[str] = []
    queue: deque[str] = deque([seed])
    queued: set[str] = {seed}
    start = time.monotonic()

    logger.info("crawl.started", seed_url=seed, max_pages=max_pages)

    while queue and len(visited) < max_pages:
        if time_budget_ms is not None:
            elapsed_ms = (time.monotonic() - start) * 1000
            if elapsed_ms >= time_budget_ms:
                logger.warning(
                    "crawl.time_budget_exhausted",
                    time_budget_ms=time_budget_ms,
                    visited=len(visited),
                    queued=len(queue),
                )
                break

        current = queue.popleft()
        queued.discard(current)
        if current in visited:
            continue
        visited.add(current)
        output.append(current)

        try:
            links = await _visit(session, current, nav_timeout_ms)
        except Exception as e:
            logger.warning(
                "crawl.page_failed",
                url=current,
                error=str(e),
                error_type=type(e).__name__,
            )
            continue

        discovered = 0
        for link in filter_same_origin_links(links, base_origin):
            if link in visited or link in queued:
                continue
            queue.append(link)
            queued.add(link)
            discovered += 1
        logger.debug("crawl.page_visited", url=current, links=len(links), discovered=discovered)

    logger.info(
        "crawl.completed",
        seed_url=seed,
        pages=len(output),
        elapsed_ms=round((time.monotonic() - start) * 1000),
    )
    return output
