"""
Pytest configuration and fixtures for API tests.

This module provides a FastAPI test client whose browser sessions are backed
by a fake Chromium: pages "navigate" over an in-memory site map and return
deterministic image bytes, so the full request path (routes, service,
frontier, batch orchestrator, archive) runs without a real browser.
"""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from api.main import create_app
from capture.constants import EXTRACT_LINKS_SCRIPT
from capture.crawl.browser import BrowserSession
from capture.errors import BrowserLaunchError
from shared.config import AppConfig

SITE = {
    "https://example.test/": [
        "https://example.test/about",
        "https://example.test/slow",
        "https://elsewhere.test/",
    ],
    "https://example.test/about": ["https://example.test/"],
    "https://example.test/slow": PlaywrightTimeoutError("Timeout 30000ms exceeded."),
    "https://unreachable.test/": Exception("net::ERR_NAME_NOT_RESOLVED at https://unreachable.test/"),
}


class FakeBrowser:
    """Stands in for a Playwright Browser; every context gets one site-backed page."""

    def __init__(self, site: dict) -> None:
        self.site = site
        self.navigations: list[str] = []
        self.close = AsyncMock()

    async def new_context(self, **kwargs):
        context = AsyncMock()
        context.new_page = AsyncMock(return_value=self._page(kwargs["viewport"]))
        return context

    def _page(self, viewport: dict) -> AsyncMock:
        page = AsyncMock()
        state = {"url": None, "size": dict(viewport)}

        async def goto(url, **kwargs):
            self.navigations.append(url)
            entry = self.site.get(url, [])
            if isinstance(entry, BaseException):
                raise entry
            state["url"] = url
            return MagicMock(status=200)

        async def evaluate(script, *args):
            if script == EXTRACT_LINKS_SCRIPT:
                entry = self.site.get(state["url"], [])
                return list(entry) if isinstance(entry, list) else []
            return 0

        async def set_viewport_size(size):
            state["size"] = dict(size)

        async def screenshot(**kwargs):
            size = state["size"]
            return f"{state['url']}|{size['width']}x{size['height']}|{kwargs['type']}".encode()

        page.goto = AsyncMock(side_effect=goto)
        page.evaluate = AsyncMock(side_effect=evaluate)
        page.set_viewport_size = AsyncMock(side_effect=set_viewport_size)
        page.screenshot = AsyncMock(side_effect=screenshot)
        return page


@pytest.fixture
def app_config(monkeypatch) -> AppConfig:
    for name in ("APP_ENV", "BATCH_SESSION_MODE", "LOG_FILE"):
        monkeypatch.delenv(name, raising=False)
    return replace(
        AppConfig.from_env(),
        default_delay_ms=0,
        default_auto_scroll=False,
        batch_session_mode="shared",
        crawl_time_budget_ms=None,
    )


@pytest.fixture
def fake_browser() -> FakeBrowser:
    return FakeBrowser(SITE)


@pytest.fixture
def client(app_config, fake_browser):
    """Create a FastAPI test client whose browser launches are faked."""
    app = create_app(app_config)

    async def launch(config):
        return BrowserSession(fake_browser)

    with patch.object(BrowserSession, "launch", AsyncMock(side_effect=launch)):
        with TestClient(app) as test_client:
            yield test_client


@pytest.fixture
def no_browser_client(app_config):
    """Test client on per-batch sessions where every browser launch fails."""
    app = create_app(replace(app_config, batch_session_mode="per_batch"))
    failing = AsyncMock(side_effect=BrowserLaunchError("Browser launch failed: no chromium"))

    with patch.object(BrowserSession, "launch", failing):
        with TestClient(app) as test_client:
            yield test_client
