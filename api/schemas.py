"""
Pydantic schemas for API request/response contracts.

JSON field names are camelCase on the wire (`screenSize`, `fullPage`,
`maxPages`, ...) via an alias generator; Python code uses snake_case and
either form is accepted on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Request schemas
class CaptureOptions(CamelModel):
    """Capture settings shared by every capture endpoint; None means "use the default"."""

    image_format: Optional[str] = Field(default=None, alias="format")
    quality: Optional[int] = None
    full_page: bool = False
    delay: Optional[int] = Field(default=None, description="Extra wait in ms after load")
    disable_animations: bool = True
    auto_scroll: Optional[bool] = None


class ScreenshotRequest(CaptureOptions):
    """Request schema for POST /screenshot."""

    url: str = Field(..., min_length=1, description="URL to capture (http:// or https://)")
    screen_size: str = "desktop"


class MultipleSizesRequest(CaptureOptions):
    """Request schema for POST /screenshot/multiple-sizes."""

    url: str = Field(..., min_length=1)
    screen_sizes: list[str] = Field(default_factory=lambda: ["desktop"])


class CrawlRequest(CaptureOptions):
    """Request schema for POST /screenshot/crawl."""

    url: str = Field(..., min_length=1)
    screen_size: str = "desktop"
    max_pages: Optional[int] = None
    output_format: str = "json"


class ArtifactInput(CamelModel):
    """One previously produced screenshot, as returned by the crawl endpoint."""

    url: Optional[str] = None
    index: Optional[int] = None
    screenshot: Optional[str] = Field(default=None, description="Base64-encoded image")
    image_format: Optional[str] = Field(default=None, alias="format")
    screen_size: Optional[str] = None
    success: bool = True


class GenerateZipRequest(CamelModel):
    """Request schema for POST /screenshot/generate-zip."""

    screenshots: list[ArtifactInput]
    metadata: Optional[dict[str, Any]] = None


# Response schemas
class Dimensions(BaseModel):
    width: int
    height: int


class ErrorResponse(CamelModel):
    """Failure envelope returned by every endpoint."""

    success: Literal[False] = False
    error: str
    message: str
    reason_kind: Optional[str] = None
    timestamp: datetime


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    service: str
    timestamp: datetime


class ViewportInfo(Dimensions):
    name: str


class InfoResponse(CamelModel):
    """Capabilities: named viewports, formats and defaults."""

    screen_sizes: list[ViewportInfo]
    formats: list[str]
    default_format: str
    default_quality: int
    default_delay: int
    max_delay: int
    auto_scroll: bool
    timeout: int
    max_pages: int
    options: dict[str, str]


class ScreenshotData(CamelModel):
    screenshot: str
    image_format: str = Field(alias="format")
    screen_size: str
    dimensions: Dimensions
    full_page: bool
    delay: int
    disable_animations: bool
    auto_scroll: bool
    url: str
    timestamp: datetime


class ScreenshotResponse(CamelModel):
    """Response schema for POST /screenshot."""

    success: Literal[True] = True
    data: ScreenshotData
    timestamp: datetime


class ViewportScreenshot(CamelModel):
    screen_size: str
    dimensions: Dimensions
    screenshot: Optional[str] = None
    image_format: str = Field(alias="format")
    success: bool
    error: Optional[str] = None
    reason_kind: Optional[str] = None


class MultipleSizesData(CamelModel):
    url: str
    screenshots: list[ViewportScreenshot]
    total_screenshots: int
    success_count: int
    fail_count: int
    settings: dict[str, Any]


class MultipleSizesResponse(CamelModel):
    """Response schema for POST /screenshot/multiple-sizes."""

    success: Literal[True] = True
    data: MultipleSizesData
    timestamp: datetime


class CrawlScreenshot(CamelModel):
    url: str
    index: int
    success: bool
    screenshot: Optional[str] = None
    screen_size: Optional[str] = None
    image_format: Optional[str] = Field(default=None, alias="format")
    error: Optional[str] = None
    reason_kind: Optional[str] = None


class CrawlData(CamelModel):
    total_pages: int
    success_count: int
    fail_count: int
    screenshots: list[CrawlScreenshot]
    screen_size: str
    dimensions: Dimensions
    settings: dict[str, Any]


class CrawlResponse(CamelModel):
    """Response schema for POST /screenshot/crawl with outputFormat=json."""

    success: Literal[True] = True
    data: CrawlData
    timestamp: datetime
