"""
FastAPI application entrypoint for the Screenshot Service.

This module sets up the FastAPI app, configures logging, registers route
handlers, and owns the process-wide browser session: it is created lazily
on first use and closed in the lifespan shutdown, which uvicorn runs on
SIGINT and SIGTERM.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.routes import screenshots
from api.routes.screenshots import error_response
from api.schemas import HealthResponse
from api.services.screenshot_service import utc_now
from capture.crawl import SessionProvider
from shared.config import AppConfig, get_config
from shared.logging import clear_request_context, configure_logging, get_logger

SERVICE_NAME = "screenshot-service"

AVAILABLE_ENDPOINTS = [
    "GET /health - service status",
    "GET /info - available screen sizes and settings",
    "POST /screenshot - capture one URL",
    "POST /screenshot/multiple-sizes - capture one URL at several screen sizes",
    "POST /screenshot/crawl - crawl a website and capture every page",
    "POST /screenshot/generate-zip - build a zip from existing screenshots",
]


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or get_config()

    log_level = logging.getLevelName(config.log_level.upper())
    configure_logging(level=log_level, log_file=config.log_file, log_stdout=config.log_stdout)
    logger = get_logger(__name__)

    provider = SessionProvider(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("service_starting", environment=config.environment)
        try:
            yield
        finally:
            await provider.shutdown()
            logger.info("service_stopped")

    app = FastAPI(
        title="Screenshot Service",
        description="Capture web pages through a headless browser, optionally after crawling a site",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.session_provider = provider

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def reset_log_context(request: Request, call_next):
        clear_request_context()
        return await call_next(request)

    app.include_router(screenshots.info_router)
    app.include_router(screenshots.router)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid body"
        logger.warning("request_validation_failed", path=request.url.path, error=message)
        return error_response(
            status.HTTP_400_BAD_REQUEST, "Invalid request", message, "validation_error"
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return error_response(
                status.HTTP_404_NOT_FOUND,
                "Endpoint not found",
                f"{request.method} {request.url.path} does not exist",
                availableEndpoints=AVAILABLE_ENDPOINTS,
            )
        return error_response(exc.status_code, "Request failed", str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(
            "unhandled_error",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal error", "Request failed"
        )

    @app.get("/health", response_model=HealthResponse)
    def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(service=SERVICE_NAME, timestamp=utc_now())

    return app


app = create_app()
