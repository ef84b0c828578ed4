"""
Route handlers for screenshot endpoints.

Validation errors answer 400; per-page capture failures on the single
capture endpoint map to 502/504/500 by reason kind. A browser that cannot
be launched answers 500 with a capture or crawl reason kind. Batch endpoints
answer 200 with successCount/failCount next to the per-item detail, except
when the one shared navigation of a multi-viewport batch fails.
"""

from __future__ import annotations

import base64
import time
from typing import Annotated, Any, Union

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, StreamingResponse

from api.schemas import (
    CrawlData,
    CrawlRequest,
    CrawlResponse,
    CrawlScreenshot,
    Dimensions,
    ErrorResponse,
    GenerateZipRequest,
    InfoResponse,
    MultipleSizesData,
    MultipleSizesRequest,
    MultipleSizesResponse,
    ScreenshotData,
    ScreenshotRequest,
    ScreenshotResponse,
    ViewportInfo,
    ViewportScreenshot,
)
from api.services.screenshot_service import ScreenshotService, utc_now
from capture.constants import SUPPORTED_FORMATS
from capture.errors import CaptureError, CaptureValidationError, CrawlError, ScreenshotError
from capture.models import CaptureFailure, list_viewports
from shared.logging import bind_request_context, get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/screenshot", tags=["screenshots"])
info_router = APIRouter(tags=["info"])

STATUS_BY_REASON = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "crawl_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "navigation_timeout": status.HTTP_504_GATEWAY_TIMEOUT,
    "host_unreachable": status.HTTP_502_BAD_GATEWAY,
    "connection_refused": status.HTTP_502_BAD_GATEWAY,
    "capture_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "archive_write_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_screenshot_service(request: Request) -> ScreenshotService:
    """Dependency to get a ScreenshotService bound to the app's session provider."""
    return ScreenshotService(request.app.state.config, request.app.state.session_provider)


ServiceDep = Annotated[ScreenshotService, Depends(get_screenshot_service)]


def error_response(
    status_code: int,
    error: str,
    message: str,
    reason_kind: Union[str, None] = None,
    **extra: Any,
) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        message=message,
        reason_kind=reason_kind,
        timestamp=utc_now(),
    )
    content = body.model_dump(mode="json", by_alias=True)
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def _error_for_exception(error: str, exc: ScreenshotError) -> JSONResponse:
    return error_response(
        STATUS_BY_REASON.get(exc.reason_kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        error,
        exc.message,
        exc.reason_kind,
    )


def _encode(image_bytes: bytes) -> str:
    return base64.b64encode(image_bytes).decode("ascii")


def _zip_response(chunks) -> StreamingResponse:
    filename = f"screenshots-{int(time.time() * 1000)}.zip"
    return StreamingResponse(
        chunks,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@info_router.get("/info", response_model=InfoResponse, summary="Capabilities and defaults")
def get_info(request: Request) -> InfoResponse:
    """List named screen sizes, supported formats and capture defaults."""
    config = request.app.state.config
    return InfoResponse(
        screen_sizes=[
            ViewportInfo(name=v.name, width=v.width, height=v.height) for v in list_viewports()
        ],
        formats=list(SUPPORTED_FORMATS),
        default_format=config.default_format,
        default_quality=config.default_quality,
        default_delay=config.default_delay_ms,
        max_delay=config.max_delay_ms,
        auto_scroll=config.default_auto_scroll,
        timeout=config.capture_timeout_ms,
        max_pages=config.max_pages_limit,
        options={
            "fullPage": "boolean - capture the whole scrollable page (default: false)",
            "delay": f"number - extra wait in ms after load (default: {config.default_delay_ms})",
            "disableAnimations": "boolean - disable CSS animations (default: true)",
            "autoScroll": (
                "boolean - scroll through the page to trigger scroll animations "
                f"(default: {str(config.default_auto_scroll).lower()})"
            ),
        },
    )


@router.post(
    "",
    response_model=ScreenshotResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Capture one URL",
)
async def take_screenshot(body: ScreenshotRequest, service: ServiceDep):
    """Capture a single page on the shared browser session; returns a base64 image."""
    bind_request_context(url=body.url, viewport=body.screen_size)
    try:
        capture_request = service.build_request(body.url, body.screen_size, body)
    except CaptureValidationError as e:
        logger.warning("screenshot_request_invalid", error=e.message)
        return _error_for_exception("Invalid request", e)

    try:
        result = await service.capture_single(capture_request)
    except CaptureError as e:
        logger.error("screenshot_failed", reason_kind=e.reason_kind, error=e.message)
        return _error_for_exception("Screenshot failed", e)
    if isinstance(result, CaptureFailure):
        logger.error("screenshot_failed", reason_kind=result.reason_kind, error=result.message)
        return error_response(
            STATUS_BY_REASON[result.reason_kind],
            "Screenshot failed",
            result.message,
            result.reason_kind,
        )

    now = utc_now()
    return ScreenshotResponse(
        data=ScreenshotData(
            screenshot=_encode(result.image_bytes),
            image_format=result.image_format,
            screen_size=result.viewport.name,
            dimensions=Dimensions(**result.viewport.dimensions()),
            full_page=capture_request.full_page,
            delay=capture_request.settle_delay_ms,
            disable_animations=capture_request.suppress_animations,
            auto_scroll=capture_request.auto_scroll,
            url=capture_request.target_url,
            timestamp=now,
        ),
        timestamp=now,
    )


@router.post(
    "/multiple-sizes",
    response_model=MultipleSizesResponse,
    responses={400: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
    summary="Capture one URL at several screen sizes",
)
async def take_multiple_sizes(body: MultipleSizesRequest, service: ServiceDep):
    """
    Navigate once, then capture at every requested screen size in order.

    A failure for one size is reported in its item; a failed navigation
    fails the request.
    """
    bind_request_context(url=body.url)
    try:
        first_size = body.screen_sizes[0] if body.screen_sizes else "desktop"
        template = service.build_request(body.url, first_size, body)
        batch = await service.capture_multiple(template, body.screen_sizes)
    except CaptureValidationError as e:
        logger.warning("multiple_sizes_request_invalid", error=e.message)
        return _error_for_exception("Invalid request", e)
    except CaptureError as e:
        logger.error("multiple_sizes_failed", reason_kind=e.reason_kind, error=e.message)
        return _error_for_exception("Multiple screenshots failed", e)

    screenshots = []
    for item in batch.items:
        result = item.result
        viewport = item.viewport
        screenshots.append(
            ViewportScreenshot(
                screen_size=viewport.name,
                dimensions=Dimensions(**viewport.dimensions()),
                screenshot=_encode(result.image_bytes) if result.success else None,
                image_format=template.image_format,
                success=result.success,
                error=None if result.success else result.message,
                reason_kind=None if result.success else result.reason_kind,
            )
        )

    return MultipleSizesResponse(
        data=MultipleSizesData(
            url=template.target_url,
            screenshots=screenshots,
            total_screenshots=batch.total,
            success_count=batch.success_count,
            fail_count=batch.fail_count,
            settings=template.settings(),
        ),
        timestamp=utc_now(),
    )


@router.post(
    "/crawl",
    response_model=CrawlResponse,
    responses={
        200: {"content": {"application/zip": {}}},
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Crawl a site and capture every discovered page",
)
async def crawl_and_capture(body: CrawlRequest, service: ServiceDep):
    """
    Crawl same-origin pages from `url` (up to maxPages) and capture each.

    outputFormat=json returns per-page results with counts; outputFormat=zip
    streams an archive of the successful captures plus metadata.json.
    """
    bind_request_context(url=body.url, viewport=body.screen_size)
    try:
        max_pages = service.resolve_max_pages(body.max_pages)
        output_format = service.resolve_output_format(body.output_format)
        template = service.build_request(body.url, body.screen_size, body)
    except CaptureValidationError as e:
        logger.warning("crawl_request_invalid", error=e.message)
        return _error_for_exception("Invalid request", e)

    logger.info("crawl_requested", max_pages=max_pages, output_format=output_format)
    try:
        outcome = await service.crawl_and_capture(template, max_pages)
    except (CrawlError, CaptureValidationError) as e:
        logger.error("crawl_failed", reason_kind=e.reason_kind, error=e.message)
        return _error_for_exception("Crawler failed", e)

    batch = outcome.batch
    if output_format == "zip":
        return _zip_response(service.crawl_archive(outcome))

    screenshots = [
        CrawlScreenshot(
            url=item.source_url,
            index=item.index,
            success=item.result.success,
            screenshot=_encode(item.result.image_bytes) if item.result.success else None,
            screen_size=template.viewport.name if item.result.success else None,
            image_format=template.image_format if item.result.success else None,
            error=None if item.result.success else item.result.message,
            reason_kind=None if item.result.success else item.result.reason_kind,
        )
        for item in batch.items
    ]
    return CrawlResponse(
        data=CrawlData(
            total_pages=batch.total,
            success_count=batch.success_count,
            fail_count=batch.fail_count,
            screenshots=screenshots,
            screen_size=template.viewport.name,
            dimensions=Dimensions(**template.viewport.dimensions()),
            settings=template.settings(),
        ),
        timestamp=utc_now(),
    )


@router.post(
    "/generate-zip",
    responses={200: {"content": {"application/zip": {}}}, 400: {"model": ErrorResponse}},
    summary="Build a zip archive from previously captured screenshots",
)
def generate_zip(body: GenerateZipRequest, service: ServiceDep):
    """Package base64 screenshots (failed entries skipped) and metadata into a zip."""
    try:
        items = service.archive_items_from_artifacts(body.screenshots)
    except CaptureValidationError as e:
        logger.warning("generate_zip_request_invalid", error=e.message)
        return _error_for_exception("Invalid request", e)

    metadata = body.metadata if body.metadata is not None else service.default_archive_metadata(items)
    logger.info("generate_zip_requested", items=len(items))
    return _zip_response(service.archive(items, metadata))
