"""
Capture constants: named viewports, formats, timeouts, scroll and settle windows.
"""

from __future__ import annotations

from typing import Literal

ImageFormat = Literal["png", "jpeg"]

# Closed set of named viewports; fixed at process start.
VIEWPORT_CONFIGS = {
    "desktop": {"width": 1920, "height": 1080},
    "laptop": {"width": 1366, "height": 768},
    "tablet": {"width": 768, "height": 1024},
    "mobile": {"width": 375, "height": 667},
    "mobile-large": {"width": 414, "height": 896},
}
DEFAULT_VIEWPORT = "desktop"

# png is lossless (quality ignored); jpeg is lossy (quality 0-100).
LOSSLESS_FORMATS = frozenset({"png"})
LOSSY_FORMATS = frozenset({"jpeg"})
SUPPORTED_FORMATS = ("png", "jpeg")

QUALITY_MIN = 0
QUALITY_MAX = 100

DEVICE_SCALE_FACTOR = 1

# Navigation is complete once the network has been idle (Playwright: 500 ms window).
NAVIGATION_WAIT_UNTIL = "networkidle"

# Timeout constants (in milliseconds)
CAPTURE_NAV_TIMEOUT_MS = 30000
CRAWL_NAV_TIMEOUT_MS = 15000

# Auto-scroll: fixed increments with a pause after each step.
SCROLL_STEP_PX = 100
SCROLL_STEP_WAIT_MS = 100
# Ceiling on scroll steps: tallest page we bother exposing / step size.
MAX_SCROLLABLE_HEIGHT_PX = 50000
MAX_SCROLL_STEPS = MAX_SCROLLABLE_HEIGHT_PX // SCROLL_STEP_PX
POST_SCROLL_SETTLE_MS = 500

# Pause after a viewport resize in multi-viewport batches.
VIEWPORT_RESIZE_SETTLE_MS = 300

SUPPRESS_ANIMATIONS_CSS = """
*, *::before, *::after {
  animation-duration: 0s !important;
  animation-delay: 0s !important;
  transition-duration: 0s !important;
  transition-delay: 0s !important;
  scroll-behavior: auto !important;
}
"""

# Every anchor target, resolved to an absolute URL by the browser, in document order.
EXTRACT_LINKS_SCRIPT = (
    "() => Array.from(document.querySelectorAll('a[href]'))"
    ".map(a => a.href).filter(href => href)"
)

SCROLL_HEIGHT_SCRIPT = "() => document.body ? document.body.scrollHeight : 0"
