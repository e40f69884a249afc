"""Shared logging utilities for structured logging across the application.

This module provides a centralized logging configuration using structlog.
Ingestion and retrieval events are emitted as structured key/value records
so a single channel batch or chat request can be followed end to end.
"""

import logging
import os
import sys

import structlog

_configured = False


def _renderer() -> structlog.types.Processor:
    """Pick the final renderer from LOG_FORMAT (json or console)."""
    if os.getenv("LOG_FORMAT", "json").lower() == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging() -> None:
    """Configure structlog and the stdlib root logger once per process.

    Reads LOG_LEVEL (default: INFO) and LOG_FORMAT (default: json).
    """
    global _configured
    if _configured:
        return

    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured structured logger instance.

    Args:
        name: Logger name (typically __name__ from the calling module).

    Returns:
        Configured structlog logger instance ready for use.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("chunks_inserted", source="dQw4w9WgXcQ", count=4)
        >>> logger.exception("transcription_failed", video_id="dQw4w9WgXcQ")
    """
    configure_logging()
    return structlog.get_logger(name)
