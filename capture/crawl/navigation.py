"""
Page navigation with the quiescence wait condition and typed failures.

Every navigation in the pipeline (capture, multi-viewport, crawl visit) goes
through `navigate`, which waits for network idle under a per-navigation
timeout and converts driver exceptions into the capture error taxonomy.
"""

from __future__ import annotations

import time

from playwright.async_api import Page

from capture.constants import NAVIGATION_WAIT_UNTIL
from capture.errors import classify_driver_error
from shared.logging import get_logger

logger = get_logger(__name__)


async def navigate(page: Page, url: str, timeout_ms: int) -> None:
    """
    Navigate `page` to `url`; complete once the network has gone quiet.

    Raises NavigationTimeout, HostUnreachable, ConnectionRefused or
    CaptureError. HTTP error statuses are not failures: the page renders
    whatever the server returned.
    """
    logger.info("navigation.attempt", url=url, timeout_ms=timeout_ms)
    start = time.monotonic()
    try:
        response = await page.goto(url, wait_until=NAVIGATION_WAIT_UNTIL, timeout=timeout_ms)
    except Exception as e:
        error = classify_driver_error(e, timeout_ms)
        logger.warning(
            "navigation.failed",
            url=url,
            failure_classification=error.reason_kind,
            error=str(e),
            elapsed_ms=round((time.monotonic() - start) * 1000),
        )
        raise error from e

    logger.info(
        "navigation.success",
        url=url,
        status=response.status if response is not None else None,
        elapsed_ms=round((time.monotonic() - start) * 1000),
    )
