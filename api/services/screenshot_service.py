"""
Service layer for screenshot operations.

Coordinates the browser session provider, capture engine, link frontier,
batch orchestrator and archive assembler behind a small interface for the
route handlers. Request defaults come from `AppConfig`.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterator, Optional
from urllib.parse import urlsplit
from uuid import uuid4

from api.schemas import ArtifactInput, CaptureOptions
from capture.archive import ArchiveItem, items_from_batch, stream_archive
from capture.batch import run_crawl_batch, run_multi_viewport_batch
from capture.crawl import SessionProvider, batch_session, crawl
from capture.engine import capture
from capture.errors import BrowserLaunchError, CaptureValidationError, CrawlError
from capture.models import (
    BatchResult,
    CaptureRequest,
    CaptureResult,
    build_capture_request,
    resolve_viewports,
)
from shared.config import AppConfig
from shared.logging import bind_request_context, get_logger

logger = get_logger(__name__)

OUTPUT_FORMATS = ("json", "zip")


@dataclass(frozen=True)
class CrawlOutcome:
    urls: list[str]
    batch: BatchResult
    template: CaptureRequest


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScreenshotService:
    """Service for capture, multi-viewport, crawl and archive operations."""

    def __init__(self, config: AppConfig, provider: SessionProvider) -> None:
        self.config = config
        self.provider = provider

    def build_request(
        self,
        url: str,
        screen_size: str,
        options: CaptureOptions,
    ) -> CaptureRequest:
        """Apply configured defaults to `options` and validate the result."""
        config = self.config
        return build_capture_request(
            url,
            screen_size=screen_size,
            image_format=options.image_format or config.default_format,
            quality=config.default_quality if options.quality is None else options.quality,
            full_page=options.full_page,
            delay_ms=config.default_delay_ms if options.delay is None else options.delay,
            disable_animations=options.disable_animations,
            auto_scroll=(
                config.default_auto_scroll if options.auto_scroll is None else options.auto_scroll
            ),
            max_delay_ms=config.max_delay_ms,
        )

    def resolve_max_pages(self, max_pages: Optional[int]) -> int:
        value = self.config.default_max_pages if max_pages is None else max_pages
        if value < 1 or value > self.config.max_pages_limit:
            raise CaptureValidationError(
                f"maxPages must be between 1 and {self.config.max_pages_limit}"
            )
        return value

    @staticmethod
    def resolve_output_format(output_format: str) -> str:
        value = (output_format or "").lower()
        if value not in OUTPUT_FORMATS:
            raise CaptureValidationError('outputFormat must be "json" or "zip"')
        return value

    async def capture_single(self, request: CaptureRequest) -> CaptureResult:
        """Capture one page on the process-wide session."""
        session = await self.provider.acquire()
        return await capture(
            session,
            request,
            nav_timeout_ms=self.config.capture_timeout_ms,
            max_delay_ms=self.config.max_delay_ms,
        )

    async def capture_multiple(
        self,
        template: CaptureRequest,
        screen_sizes: list[str],
    ) -> BatchResult:
        """Capture one URL at several viewports with a single navigation."""
        bind_request_context(batch_id=uuid4().hex)
        viewports = resolve_viewports(screen_sizes)
        async with batch_session(self.provider, self.config) as session:
            return await run_multi_viewport_batch(
                session,
                template,
                viewports,
                nav_timeout_ms=self.config.capture_timeout_ms,
                max_delay_ms=self.config.max_delay_ms,
            )

    async def crawl_and_capture(self, template: CaptureRequest, max_pages: int) -> CrawlOutcome:
        """Discover same-origin pages from the template's URL and capture each one.

        Raises CrawlError when the crawl cannot start, including when no
        browser could be launched for it.
        """
        bind_request_context(
            batch_id=uuid4().hex,
            domain=urlsplit(template.target_url).hostname,
        )
        try:
            async with batch_session(self.provider, self.config) as session:
                urls = await crawl(
                    session,
                    template.target_url,
                    max_pages,
                    nav_timeout_ms=self.config.crawl_page_timeout_ms,
                    time_budget_ms=self.config.crawl_time_budget_ms,
                )
                logger.info("crawl_pages_found", count=len(urls))
                batch = await run_crawl_batch(
                    session,
                    urls,
                    template,
                    nav_timeout_ms=self.config.capture_timeout_ms,
                    max_delay_ms=self.config.max_delay_ms,
                )
        except BrowserLaunchError as e:
            raise CrawlError(f"Crawler error: {e.message}") from e
        return CrawlOutcome(urls=urls, batch=batch, template=template)

    @staticmethod
    def crawl_metadata(outcome: CrawlOutcome) -> dict[str, Any]:
        """Metadata record written as metadata.json into crawl archives."""
        batch = outcome.batch
        template = outcome.template
        return {
            "totalPages": batch.total,
            "successCount": batch.success_count,
            "failCount": batch.fail_count,
            "timestamp": utc_now().isoformat(),
            "screenSize": template.viewport.name,
            "dimensions": template.viewport.dimensions(),
            "settings": template.settings(),
            "pages": [
                {
                    "index": item.index,
                    "url": item.source_url,
                    "success": item.result.success,
                    "error": None if item.result.success else item.result.message,
                }
                for item in batch.items
            ],
        }

    def crawl_archive(self, outcome: CrawlOutcome) -> Iterator[bytes]:
        return self.archive(items_from_batch(outcome.batch), self.crawl_metadata(outcome))

    def archive(self, items: list[ArchiveItem], metadata: dict[str, Any]) -> Iterator[bytes]:
        return stream_archive(
            items,
            metadata,
            compression_level=self.config.archive_compression_level,
        )

    @staticmethod
    def archive_items_from_artifacts(artifacts: list[ArtifactInput]) -> list[ArchiveItem]:
        """
        Decode previously produced artifacts; failed or empty entries are skipped.

        Raises CaptureValidationError for undecodable image data.
        """
        items: list[ArchiveItem] = []
        for position, artifact in enumerate(artifacts, start=1):
            if not artifact.success or not artifact.screenshot:
                continue
            try:
                data = base64.b64decode(artifact.screenshot, validate=True)
            except (binascii.Error, ValueError) as e:
                raise CaptureValidationError(
                    f"screenshots[{position}] is not valid base64 image data"
                ) from e
            items.append(
                ArchiveItem(
                    index=artifact.index if artifact.index is not None else position,
                    image_format=(artifact.image_format or "png").lower(),
                    data=data,
                    source_url=artifact.url,
                    viewport_name=artifact.screen_size,
                )
            )
        return items

    @staticmethod
    def default_archive_metadata(items: list[ArchiveItem]) -> dict[str, Any]:
        return {"totalScreenshots": len(items), "timestamp": utc_now().isoformat()}
