"""
Settle behavior run between navigation and capture.

Order: auto-scroll (exposes scroll-triggered content, then back to top),
animation suppression (style rule zeroing durations and delays), and the
caller's settle delay.
"""

from __future__ import annotations

import asyncio

from playwright.async_api import Page

from capture.constants import (
    MAX_SCROLL_STEPS,
    POST_SCROLL_SETTLE_MS,
    SCROLL_HEIGHT_SCRIPT,
    SCROLL_STEP_PX,
    SCROLL_STEP_WAIT_MS,
    SUPPRESS_ANIMATIONS_CSS,
)
from capture.models import CaptureRequest
from shared.logging import get_logger

logger = get_logger(__name__)


async def auto_scroll(
    page: Page,
    step_px: int = SCROLL_STEP_PX,
    step_wait_ms: int = SCROLL_STEP_WAIT_MS,
    max_steps: int = MAX_SCROLL_STEPS,
) -> int:
    """
    Scroll down in fixed increments until the accumulated scroll covers the
    page's measured height, then return to the top.

    Height is re-measured before every step since lazy content can grow the
    page. The loop is bounded by `max_steps` so an ever-growing or unstable
    height cannot keep it running. Returns the number of steps taken.
    """
    scrolled = 0
    steps = 0
    while steps < max_steps:
        height = await page.evaluate(SCROLL_HEIGHT_SCRIPT)
        await page.evaluate(f"window.scrollBy(0, {step_px})")
        scrolled += step_px
        steps += 1
        if scrolled >= (height or 0):
            break
        await asyncio.sleep(step_wait_ms / 1000)
    else:
        logger.warning("auto_scroll_step_ceiling_reached", steps=steps, scrolled_px=scrolled)

    await page.evaluate("window.scrollTo(0, 0)")
    await asyncio.sleep(POST_SCROLL_SETTLE_MS / 1000)
    logger.debug("auto_scroll_complete", steps=steps, scrolled_px=scrolled)
    return steps


async def suppress_animations(page: Page) -> None:
    """Inject the style rule that stops CSS animations and transitions."""
    await page.add_style_tag(content=SUPPRESS_ANIMATIONS_CSS)


async def settle(page: Page, request: CaptureRequest) -> None:
    """Run the settle steps requested by `request` on a navigated page."""
    if request.auto_scroll:
        await auto_scroll(page)
    if request.suppress_animations:
        await suppress_animations(page)
    if request.settle_delay_ms > 0:
        await asyncio.sleep(request.settle_delay_ms / 1000)
