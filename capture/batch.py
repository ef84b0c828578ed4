"""
Batch orchestration: crawl batches and multi-viewport batches.

Both shapes fold over their input in order, turning each step into a
tagged BatchItem rather than raising, so one item's failure never aborts
its siblings and the batch counts always match the item list.

Exception: in a multi-viewport batch the single shared navigation (and the
settle steps that follow it) is batch-fatal; there is nothing to amortize
if it never completed.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

from capture.constants import CAPTURE_NAV_TIMEOUT_MS, VIEWPORT_RESIZE_SETTLE_MS
from capture.crawl.browser import BrowserSession
from capture.crawl.navigation import navigate
from capture.crawl.readiness import settle
from capture.engine import capture, failure_from_exception, take_screenshot
from capture.errors import CaptureValidationError, classify_driver_error
from capture.models import (
    BatchItem,
    BatchResult,
    CaptureFailure,
    CaptureRequest,
    CaptureSuccess,
    ViewportSpec,
    validate_capture_request,
)
from shared.config import DELAY_CEILING_MS
from shared.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def collect(
    inputs: Sequence[T],
    step: Callable[[int, T], Awaitable[BatchItem]],
) -> BatchResult:
    """
    Run `step` over `inputs` strictly in order and gather the items.

    `step` receives a 1-based index and must return a BatchItem; it is
    expected to record failures as data instead of raising.
    """
    items: list[BatchItem] = []
    for index, value in enumerate(inputs, start=1):
        items.append(await step(index, value))
    return BatchResult(items=tuple(items))


async def run_crawl_batch(
    session: BrowserSession,
    urls: Sequence[str],
    template: CaptureRequest,
    *,
    nav_timeout_ms: int = CAPTURE_NAV_TIMEOUT_MS,
    max_delay_ms: int = DELAY_CEILING_MS,
) -> BatchResult:
    """
    Capture every URL in `urls` with the settings of `template`.

    The template is validated once up front (CaptureValidationError is
    raised before any page is opened). Each URL gets its own page on the
    shared session; a URL that fails, including one rejected by validation,
    is recorded as a failure and the batch moves on.
    """
    validate_capture_request(template, max_delay_ms)
    total = len(urls)

    async def step(index: int, url: str) -> BatchItem:
        logger.info("batch.capture", index=index, total=total, url=url)
        try:
            result = await capture(
                session,
                template.for_url(url),
                nav_timeout_ms=nav_timeout_ms,
                max_delay_ms=max_delay_ms,
            )
        except CaptureValidationError as e:
            result = CaptureFailure(target_url=url, reason_kind=e.reason_kind, message=e.message)
        return BatchItem(source_url=url, index=index, result=result, viewport=template.viewport)

    result = await collect(urls, step)
    logger.info(
        "batch.completed",
        shape="crawl",
        total=result.total,
        success_count=result.success_count,
        fail_count=result.fail_count,
    )
    return result


async def run_multi_viewport_batch(
    session: BrowserSession,
    template: CaptureRequest,
    viewports: Sequence[ViewportSpec],
    *,
    nav_timeout_ms: int = CAPTURE_NAV_TIMEOUT_MS,
    max_delay_ms: int = DELAY_CEILING_MS,
) -> BatchResult:
    """
    Capture one URL at each viewport in `viewports`, navigating once.

    Navigation and settle steps run once on a page sized to the first
    viewport; then for each viewport the page is resized, given a short
    layout pause, and captured. A failed capture is recorded and the
    remaining viewports still run. Navigation or settle failure raises the
    typed capture error and aborts the whole batch.
    """
    if not viewports:
        raise CaptureValidationError("At least one screen size is required")
    for viewport in viewports:
        validate_capture_request(template.for_viewport(viewport), max_delay_ms)

    url = template.target_url
    logger.info(
        "batch.multi_viewport_started",
        url=url,
        viewports=[v.name for v in viewports],
    )

    async with session.open_page(viewports[0]) as page:
        await navigate(page, url, nav_timeout_ms)
        try:
            await settle(page, template)
        except Exception as e:
            raise classify_driver_error(e, nav_timeout_ms, during_navigation=False) from e

        async def step(index: int, viewport: ViewportSpec) -> BatchItem:
            try:
                await page.set_viewport_size({"width": viewport.width, "height": viewport.height})
                await asyncio.sleep(VIEWPORT_RESIZE_SETTLE_MS / 1000)
                image_bytes = await take_screenshot(page, template)
                result = CaptureSuccess(
                    image_bytes=image_bytes,
                    viewport=viewport,
                    image_format=template.image_format,
                )
                logger.info(
                    "batch.viewport_captured",
                    viewport=viewport.name,
                    width=viewport.width,
                    height=viewport.height,
                )
            except Exception as e:
                result = failure_from_exception(url, e, nav_timeout_ms)
                logger.error(
                    "batch.viewport_failed",
                    viewport=viewport.name,
                    reason_kind=result.reason_kind,
                    error=str(e),
                )
            return BatchItem(source_url=url, index=index, result=result, viewport=viewport)

        result = await collect(viewports, step)

    logger.info(
        "batch.completed",
        shape="multi_viewport",
        total=result.total,
        success_count=result.success_count,
        fail_count=result.fail_count,
    )
    return result
