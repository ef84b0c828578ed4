"""
Error taxonomy for the capture pipeline and driver failure classification.

Validation and crawl-start errors are raised to the caller. Per-item capture
errors (navigation timeout, unreachable host, refused connection, opaque
driver failure) are turned into CaptureFailure records by the engine and the
batch orchestrator. ArchiveWriteError always aborts the output stream.
"""

from __future__ import annotations

from typing import ClassVar, Literal

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

ReasonKind = Literal[
    "validation_error",
    "navigation_timeout",
    "host_unreachable",
    "connection_refused",
    "capture_error",
    "crawl_error",
    "archive_write_error",
]

NAME_NOT_RESOLVED = "net::err_name_not_resolved"
CONNECTION_REFUSED = "net::err_connection_refused"


class ScreenshotError(Exception):
    """Base class for all errors raised by the capture pipeline."""

    reason_kind: ClassVar[ReasonKind] = "capture_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CaptureValidationError(ScreenshotError):
    """Bad input shape or range; never reaches the browser."""

    reason_kind = "validation_error"


class CaptureError(ScreenshotError):
    """Opaque driver failure while capturing one page."""

    reason_kind = "capture_error"


class NavigationTimeout(CaptureError):
    reason_kind = "navigation_timeout"


class HostUnreachable(CaptureError):
    reason_kind = "host_unreachable"


class ConnectionRefused(CaptureError):
    reason_kind = "connection_refused"


class BrowserLaunchError(CaptureError):
    """The browser engine could not be started."""


class CrawlError(ScreenshotError):
    """The crawl could not start (e.g. malformed seed URL)."""

    reason_kind = "crawl_error"


class ArchiveWriteError(ScreenshotError):
    """Writing the archive stream failed; the stream is aborted."""

    reason_kind = "archive_write_error"


def _driver_message(exc: BaseException) -> str:
    return getattr(exc, "message", None) or str(exc) or type(exc).__name__


def classify_driver_error(
    exc: BaseException,
    timeout_ms: int,
    *,
    during_navigation: bool = True,
) -> CaptureError:
    """
    Map an exception raised by the browser engine to a typed capture error.

    Typed errors pass through unchanged. Timeouts become NavigationTimeout
    while navigating and a plain CaptureError once the page has loaded;
    DNS and refused-connection net errors are recognized by their
    net::ERR_* marker; everything else becomes a CaptureError wrapping the
    driver message.
    """
    if isinstance(exc, CaptureError):
        return exc
    if isinstance(exc, PlaywrightTimeoutError) and during_navigation:
        return NavigationTimeout(
            f"Timeout: could not load the page within {timeout_ms / 1000:g} seconds"
        )
    msg = _driver_message(exc)
    lowered = msg.lower()
    if NAME_NOT_RESOLVED in lowered:
        return HostUnreachable("Could not find the server. Check that the URL is correct")
    if CONNECTION_REFUSED in lowered:
        return ConnectionRefused("The connection was refused by the server")
    return CaptureError(f"Screenshot failed: {msg}")
