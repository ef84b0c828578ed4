"""
Capture data model: viewports, capture requests, results and batch results.

All records are frozen dataclasses. BatchResult derives its counts from its
items, so success_count + fail_count always equals the number of items.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal, Optional, Union
from urllib.parse import urlsplit

from capture.constants import (
    LOSSY_FORMATS,
    QUALITY_MAX,
    QUALITY_MIN,
    SUPPORTED_FORMATS,
    VIEWPORT_CONFIGS,
    ImageFormat,
)
from capture.errors import CaptureValidationError, ReasonKind
from shared.config import DELAY_CEILING_MS


@dataclass(frozen=True)
class ViewportSpec:
    name: str
    width: int
    height: int

    def dimensions(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


def get_viewport(name: str) -> ViewportSpec:
    """Return the named viewport; unknown names fail with CaptureValidationError."""
    config = VIEWPORT_CONFIGS.get(name)
    if config is None:
        raise CaptureValidationError(
            f"Invalid screen size {name!r}. Available: {', '.join(VIEWPORT_CONFIGS)}"
        )
    return ViewportSpec(name=name, width=config["width"], height=config["height"])


def list_viewports() -> list[ViewportSpec]:
    return [get_viewport(name) for name in VIEWPORT_CONFIGS]


@dataclass(frozen=True)
class CaptureRequest:
    target_url: str
    viewport: ViewportSpec
    image_format: ImageFormat = "png"
    quality: int = 80
    full_page: bool = False
    settle_delay_ms: int = 2000
    suppress_animations: bool = True
    auto_scroll: bool = True

    @property
    def is_lossy(self) -> bool:
        return self.image_format in LOSSY_FORMATS

    def for_url(self, url: str) -> "CaptureRequest":
        return replace(self, target_url=url)

    def for_viewport(self, viewport: ViewportSpec) -> "CaptureRequest":
        return replace(self, viewport=viewport)

    def settings(self) -> dict:
        """Request settings as reported back to callers and in archive metadata."""
        return {
            "format": self.image_format,
            "fullPage": self.full_page,
            "delay": self.settle_delay_ms,
            "disableAnimations": self.suppress_animations,
            "autoScroll": self.auto_scroll,
        }


@dataclass(frozen=True)
class CaptureSuccess:
    image_bytes: bytes = field(repr=False)
    viewport: ViewportSpec
    image_format: ImageFormat
    success: Literal[True] = True


@dataclass(frozen=True)
class CaptureFailure:
    target_url: str
    reason_kind: ReasonKind
    message: str
    success: Literal[False] = False


CaptureResult = Union[CaptureSuccess, CaptureFailure]


@dataclass(frozen=True)
class BatchItem:
    source_url: str
    index: int
    result: CaptureResult
    # Viewport the item was captured at; names the archive entry.
    viewport: Optional[ViewportSpec] = None


@dataclass(frozen=True)
class BatchResult:
    items: tuple[BatchItem, ...] = ()

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.result.success)

    @property
    def fail_count(self) -> int:
        return self.total - self.success_count

    def successes(self) -> list[BatchItem]:
        return [item for item in self.items if item.result.success]


def _validate_url(url: str) -> None:
    if not url or not isinstance(url, str):
        raise CaptureValidationError("URL is required")
    try:
        parsed = urlsplit(url)
    except ValueError as exc:
        raise CaptureValidationError(f"Invalid URL: {exc}") from exc
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise CaptureValidationError("Invalid URL. The URL must start with http:// or https://")


def validate_capture_request(request: CaptureRequest, max_delay_ms: int = DELAY_CEILING_MS) -> None:
    """
    Check a capture request before any page is opened.

    Quality is only range-checked for lossy formats; a lossless request
    carries whatever quality value it was given and it is never used.
    """
    _validate_url(request.target_url)

    if request.viewport.name not in VIEWPORT_CONFIGS:
        raise CaptureValidationError(
            f"Invalid screen size {request.viewport.name!r}. "
            f"Available: {', '.join(VIEWPORT_CONFIGS)}"
        )
    if request.viewport.width <= 0 or request.viewport.height <= 0:
        raise CaptureValidationError("Viewport dimensions must be positive")

    if request.image_format not in SUPPORTED_FORMATS:
        raise CaptureValidationError('Invalid format. Use "png" or "jpeg"')

    if request.is_lossy and not (QUALITY_MIN <= request.quality <= QUALITY_MAX):
        raise CaptureValidationError(
            f"Quality must be a number between {QUALITY_MIN} and {QUALITY_MAX}"
        )

    ceiling = min(max_delay_ms, DELAY_CEILING_MS)
    if request.settle_delay_ms < 0 or request.settle_delay_ms > ceiling:
        raise CaptureValidationError(f"Delay must be between 0 and {ceiling} milliseconds")


def build_capture_request(
    url: str,
    screen_size: str = "desktop",
    image_format: str = "png",
    quality: int = 80,
    full_page: bool = False,
    delay_ms: int = 2000,
    disable_animations: bool = True,
    auto_scroll: bool = True,
    *,
    max_delay_ms: int = DELAY_CEILING_MS,
) -> CaptureRequest:
    """Build a CaptureRequest from raw request fields, validating as it goes."""
    fmt = (image_format or "").lower()
    if fmt not in SUPPORTED_FORMATS:
        raise CaptureValidationError('Invalid format. Use "png" or "jpeg"')

    request = CaptureRequest(
        target_url=(url or "").strip(),
        viewport=get_viewport(screen_size),
        image_format=fmt,  # type: ignore[arg-type]
        quality=quality,
        full_page=bool(full_page),
        settle_delay_ms=delay_ms,
        suppress_animations=bool(disable_animations),
        auto_scroll=bool(auto_scroll),
    )
    validate_capture_request(request, max_delay_ms)
    return request


def resolve_viewports(names: list[str]) -> list[ViewportSpec]:
    """Resolve an ordered list of viewport names; must be non-empty."""
    if not names:
        raise CaptureValidationError(
            "screenSizes must be a list with at least one screen size. "
            f"Available: {', '.join(VIEWPORT_CONFIGS)}"
        )
    return [get_viewport(name) for name in names]
