"""
Browser session handles: launch, page scoping, process-wide reuse.

A BrowserSession owns one Playwright driver and one Chromium browser. Pages
are opened through `open_page`, which gives each unit of work its own
browser context (viewport, device scale factor 1) and closes page and
context on every exit path.

Two lifecycles are supported:
- process-scoped: `SessionProvider.acquire()` launches lazily and keeps the
  session until `shutdown()` (called from the app lifespan on exit).
- batch-scoped: `batch_session()` launches a fresh browser and closes it when
  the batch finishes.

Only one unit of work holds a given page at a time. Concurrent use of the
shared session would need a page pool with checkout discipline; that is a
known scaling limitation, not something this module attempts.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

from capture.constants import DEFAULT_VIEWPORT, DEVICE_SCALE_FACTOR
from capture.errors import BrowserLaunchError
from capture.models import ViewportSpec, get_viewport
from shared.config import AppConfig
from shared.logging import get_logger

logger = get_logger(__name__)


class BrowserSession:
    """Explicit handle on one launched browser."""

    def __init__(self, browser: Browser, playwright: Optional[Playwright] = None) -> None:
        self._browser = browser
        self._playwright = playwright
        self._closed = False

    @classmethod
    async def launch(cls, config: AppConfig) -> "BrowserSession":
        """Start the driver and Chromium; raises BrowserLaunchError on failure."""
        try:
            playwright = await async_playwright().start()
        except Exception as e:
            logger.error("browser.launch_failed", stage="driver", error=str(e))
            raise BrowserLaunchError(f"Browser launch failed: {e}") from e
        try:
            browser = await playwright.chromium.launch(
                headless=config.browser_headless,
                args=list(config.browser_args),
            )
        except Exception as e:
            logger.error("browser.launch_failed", stage="chromium", error=str(e))
            await playwright.stop()
            raise BrowserLaunchError(f"Browser launch failed: {e}") from e
        logger.info("browser.launched", headless=config.browser_headless)
        return cls(browser, playwright)

    @property
    def closed(self) -> bool:
        return self._closed

    @asynccontextmanager
    async def open_page(self, viewport: Optional[ViewportSpec] = None) -> AsyncIterator[Page]:
        """
        Open a page sized to `viewport` (desktop when omitted).

        Page and context are closed on exit, including when the body raises.
        A failure while closing is logged and does not replace the body's error.
        """
        if self._closed:
            raise RuntimeError("Browser session is closed")
        viewport = viewport or get_viewport(DEFAULT_VIEWPORT)
        context = await self._browser.new_context(
            viewport={"width": viewport.width, "height": viewport.height},
            device_scale_factor=DEVICE_SCALE_FACTOR,
        )
        page = None
        try:
            page = await context.new_page()
            yield page
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.warning("page_close_failed", error=str(e), error_type=type(e).__name__)
            try:
                await context.close()
            except Exception as e:
                logger.warning("context_close_failed", error=str(e), error_type=type(e).__name__)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()
        logger.info("browser.closed")


class SessionProvider:
    """Process-wide browser session, launched on first use."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._session: Optional[BrowserSession] = None
        self._lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        return self._session is not None and not self._session.closed

    async def acquire(self) -> BrowserSession:
        async with self._lock:
            if self._session is None or self._session.closed:
                self._session = await BrowserSession.launch(self._config)
            return self._session

    async def shutdown(self) -> None:
        async with self._lock:
            session, self._session = self._session, None
        if session is not None:
            await session.close()


@asynccontextmanager
async def batch_session(
    provider: SessionProvider,
    config: AppConfig,
) -> AsyncIterator[BrowserSession]:
    """
    Yield the session a batch should run on.

    In `per_batch` mode a fresh browser is launched and closed when the
    batch ends; in `shared` mode the provider's session is reused and left open.
    """
    if config.batch_session_mode == "shared":
        yield await provider.acquire()
        return

    session = await BrowserSession.launch(config)
    try:
        yield session
    finally:
        await session.close()
