"""
Capture engine: drive one page from navigation to encoded image.

`capture` validates the request (no page is opened for invalid input),
opens a page sized to the request's viewport, navigates with the quiescence
wait, runs the settle steps, and takes the screenshot. Driver failures come
back as CaptureFailure records; the page is closed on every path.
"""

from __future__ import annotations

from playwright.async_api import Page

from capture.constants import CAPTURE_NAV_TIMEOUT_MS
from capture.crawl.browser import BrowserSession
from capture.crawl.navigation import navigate
from capture.crawl.readiness import settle
from capture.errors import ScreenshotError, classify_driver_error
from capture.models import (
    CaptureFailure,
    CaptureRequest,
    CaptureResult,
    CaptureSuccess,
    validate_capture_request,
)
from shared.config import DELAY_CEILING_MS
from shared.logging import get_logger

logger = get_logger(__name__)


async def take_screenshot(page: Page, request: CaptureRequest) -> bytes:
    """Encode the current page; quality is passed only for the lossy format."""
    options: dict = {"type": request.image_format, "full_page": request.full_page}
    if request.is_lossy:
        options["quality"] = request.quality
    return await page.screenshot(**options)


def failure_from_exception(url: str, exc: BaseException, timeout_ms: int) -> CaptureFailure:
    """
    Turn an exception raised while capturing `url` into a CaptureFailure record.

    Navigation failures arrive already typed; anything else was raised after
    the page loaded, so a driver timeout here is a capture failure.
    """
    if isinstance(exc, ScreenshotError):
        error = exc
    else:
        error = classify_driver_error(exc, timeout_ms, during_navigation=False)
    return CaptureFailure(target_url=url, reason_kind=error.reason_kind, message=error.message)


async def capture(
    session: BrowserSession,
    request: CaptureRequest,
    *,
    nav_timeout_ms: int = CAPTURE_NAV_TIMEOUT_MS,
    max_delay_ms: int = DELAY_CEILING_MS,
) -> CaptureResult:
    """
    Capture one page as described by `request`.

    Raises CaptureValidationError for invalid requests. Every other failure
    is returned as a CaptureFailure carrying the reason kind
    (navigation_timeout, host_unreachable, connection_refused, capture_error).
    """
    validate_capture_request(request, max_delay_ms)

    url = request.target_url
    viewport = request.viewport
    logger.info(
        "capture.started",
        url=url,
        viewport=viewport.name,
        image_format=request.image_format,
        full_page=request.full_page,
    )

    try:
        async with session.open_page(viewport) as page:
            await navigate(page, url, nav_timeout_ms)
            await settle(page, request)
            image_bytes = await take_screenshot(page, request)
    except Exception as e:
        failure = failure_from_exception(url, e, nav_timeout_ms)
        logger.error(
            "capture.failed",
            url=url,
            viewport=viewport.name,
            reason_kind=failure.reason_kind,
            error=str(e),
            error_type=type(e).__name__,
        )
        return failure

    logger.info(
        "capture.completed",
        url=url,
        viewport=viewport.name,
        size_bytes=len(image_bytes),
    )
    return CaptureSuccess(
        image_bytes=image_bytes,
        viewport=viewport,
        image_format=request.image_format,
    )
