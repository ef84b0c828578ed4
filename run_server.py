#!/usr/bin/env python3
"""
Server entrypoint: load .env, configure logging, serve the API with uvicorn.

uvicorn handles SIGINT/SIGTERM and runs the app's lifespan shutdown, which
closes the shared browser session before the process exits.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from shared.config import get_config
from shared.logging import configure_logging, get_logger

load_dotenv()


def main() -> None:
    """Start the HTTP server."""
    try:
        config = get_config()
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    log_level = logging.getLevelName(config.log_level.upper())
    configure_logging(
        level=log_level,
        log_file=config.log_file,
        log_stdout=config.log_stdout,
    )
    logger = get_logger(__name__)
    logger.info("server_starting", host=config.host, port=config.port)

    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
