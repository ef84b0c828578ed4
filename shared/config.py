"""
Environment-based configuration for the Screenshot Service.

This module exposes a small, typed configuration surface shared by the
HTTP layer and the capture pipeline. All values are sourced from
environment variables with sensible, non-secret defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, Optional

Environment = Literal["local", "dev", "staging", "prod"]
BatchSessionMode = Literal["per_batch", "shared"]

# Upper bound for any settle delay; keeps one request from holding a page indefinitely.
DELAY_CEILING_MS = 30000

DEFAULT_BROWSER_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
)


@dataclass(frozen=True)
class AppConfig:
    """
    Top-level application configuration.

    Viewports are not configured here; the named set lives in
    `capture.constants.VIEWPORT_CONFIGS` and is fixed at process start.
    """

    environment: Environment
    log_level: str

    # Optional file path for structured JSON logs; when set, logs are written
    # to file (and stdout if log_stdout).
    log_file: Optional[str]
    log_stdout: bool

    host: str
    port: int

    # Browser launch
    browser_headless: bool
    browser_args: tuple[str, ...]

    # Per-navigation timeouts (ms). Crawl visits use the shorter one.
    capture_timeout_ms: int
    crawl_page_timeout_ms: int

    # Capture defaults
    default_format: str
    default_quality: int
    default_delay_ms: int
    max_delay_ms: int
    default_auto_scroll: bool

    # Crawl
    default_max_pages: int
    max_pages_limit: int
    crawl_time_budget_ms: Optional[int]

    # per_batch: crawl / multi-viewport batches launch their own browser.
    # shared: batches reuse the process-wide session.
    batch_session_mode: BatchSessionMode

    archive_compression_level: int

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Construct configuration from environment variables.

        All fields have defaults suitable for local development.
        """

        environment = os.getenv("APP_ENV", "local")
        if environment not in {"local", "dev", "staging", "prod"}:
            raise ValueError(f"Unsupported APP_ENV value: {environment!r}")

        batch_session_mode = os.getenv("BATCH_SESSION_MODE", "per_batch").strip().lower()
        if batch_session_mode not in {"per_batch", "shared"}:
            raise ValueError(f"Unsupported BATCH_SESSION_MODE value: {batch_session_mode!r}")

        def _bool_env(name: str, default: bool) -> bool:
            raw = (os.getenv(name) or str(default)).strip().lower()
            return raw in ("true", "1", "yes")

        def _optional_int_env(name: str) -> Optional[int]:
            raw = (os.getenv(name) or "").strip()
            if not raw:
                return None
            value = int(raw)
            return value if value > 0 else None

        def _browser_args() -> tuple[str, ...]:
            raw = os.getenv("BROWSER_ARGS")
            if raw is None:
                return DEFAULT_BROWSER_ARGS
            return tuple(arg.strip() for arg in raw.split(",") if arg.strip())

        max_delay_ms = int(os.getenv("MAX_DELAY_MS", str(DELAY_CEILING_MS)))
        compression_level = int(os.getenv("ARCHIVE_COMPRESSION_LEVEL", "9"))

        return cls(
            environment=environment,  # type: ignore[arg-type]
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
            log_stdout=_bool_env("LOG_STDOUT", True),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            browser_headless=_bool_env("BROWSER_HEADLESS", True),
            browser_args=_browser_args(),
            capture_timeout_ms=int(os.getenv("CAPTURE_TIMEOUT_MS", "30000")),
            crawl_page_timeout_ms=int(os.getenv("CRAWL_PAGE_TIMEOUT_MS", "15000")),
            default_format=os.getenv("DEFAULT_FORMAT", "png").lower(),
            default_quality=int(os.getenv("DEFAULT_QUALITY", "80")),
            default_delay_ms=int(os.getenv("DEFAULT_DELAY_MS", "2000")),
            max_delay_ms=max(0, min(DELAY_CEILING_MS, max_delay_ms)),
            default_auto_scroll=_bool_env("DEFAULT_AUTO_SCROLL", True),
            default_max_pages=int(os.getenv("DEFAULT_MAX_PAGES", "10")),
            max_pages_limit=int(os.getenv("MAX_PAGES_LIMIT", "100")),
            crawl_time_budget_ms=_optional_int_env("CRAWL_TIME_BUDGET_MS"),
            batch_session_mode=batch_session_mode,  # type: ignore[arg-type]
            archive_compression_level=max(0, min(9, compression_level)),
        )


def get_config() -> AppConfig:
    """
    Helper to obtain the current configuration.

    Long-lived processes construct one `AppConfig` at startup (see
    `api.main.create_app`) and pass it explicitly through the code.
    """

    return AppConfig.from_env()
