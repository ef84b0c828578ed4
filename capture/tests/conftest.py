"""
Shared fixtures for capture pipeline tests.

Playwright objects are replaced by mocks: a fake browser whose contexts hand
out AsyncMock pages, and a fake "site" that maps URLs to the anchors found
on them (or to the exception navigation should raise). No network or real
browser is required.
"""

from __future__ import annotations

from typing import Callable, Union
from unittest.mock import AsyncMock, MagicMock

import pytest

from capture.constants import EXTRACT_LINKS_SCRIPT, SCROLL_HEIGHT_SCRIPT
from capture.crawl.browser import BrowserSession

SiteEntry = Union[list[str], BaseException]


class FakeBrowser:
    """Records every context/page opened; pages come from `page_factory`."""

    def __init__(self, page_factory: Callable[[], AsyncMock]) -> None:
        self.page_factory = page_factory
        self.contexts: list[AsyncMock] = []
        self.context_kwargs: list[dict] = []
        self.pages: list[AsyncMock] = []
        self.new_context = AsyncMock(side_effect=self._new_context)
        self.close = AsyncMock()

    async def _new_context(self, **kwargs):
        context = AsyncMock()
        page = self.page_factory()
        context.new_page = AsyncMock(return_value=page)
        self.contexts.append(context)
        self.context_kwargs.append(kwargs)
        self.pages.append(page)
        return context


def make_site_page(site: dict[str, SiteEntry], navigations: list[str]) -> AsyncMock:
    page = AsyncMock()
    state: dict[str, str] = {}

    async def goto(url, **kwargs):
        navigations.append(url)
        entry = site.get(url, [])
        if isinstance(entry, BaseException):
            raise entry
        state["url"] = url
        response = MagicMock()
        response.status = 200
        return response

    async def evaluate(script, *args):
        if script == EXTRACT_LINKS_SCRIPT:
            entry = site.get(state.get("url", ""), [])
            return list(entry) if isinstance(entry, list) else []
        if script == SCROLL_HEIGHT_SCRIPT:
            return 0
        return None

    def screenshot(**kwargs):
        return f"image:{state.get('url')}:{kwargs.get('type')}".encode()

    page.goto = AsyncMock(side_effect=goto)
    page.evaluate = AsyncMock(side_effect=evaluate)
    page.screenshot = AsyncMock(side_effect=screenshot)
    return page


@pytest.fixture
def navigations() -> list[str]:
    return []


@pytest.fixture
def site_session(navigations):
    """Factory: build (session, browser) over a fake site mapping."""

    def _build(site: dict[str, SiteEntry]) -> tuple[BrowserSession, FakeBrowser]:
        browser = FakeBrowser(lambda: make_site_page(site, navigations))
        return BrowserSession(browser), browser

    return _build


@pytest.fixture
def page_session():
    """Factory: build (session, browser) where every page is the given mock."""

    def _build(page: AsyncMock) -> tuple[BrowserSession, FakeBrowser]:
        browser = FakeBrowser(lambda: page)
        return BrowserSession(browser), browser

    return _build


@pytest.fixture
def no_sleep(monkeypatch) -> AsyncMock:
    """Replace asyncio.sleep so settle pauses do not slow tests down."""
    sleep = AsyncMock()
    monkeypatch.setattr("asyncio.sleep", sleep)
    return sleep
