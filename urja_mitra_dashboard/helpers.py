"""Logging helpers."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the CLI and the web server."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    # aiohttp logs every request at INFO
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


def _format(context: str, message: str, kwargs: dict) -> tuple[str, str, str, str]:
    extra = " ".join(f"{k}={v}" for k, v in kwargs.items())
    return "%s: %s %s", context, message, extra


def log_debug(logger: logging.Logger, context: str, message: str, **kwargs):
    """Log debug."""
    logger.debug(*_format(context, message, kwargs))


def log_info(logger: logging.Logger, context: str, message: str, **kwargs):
    """Log info."""
    logger.info(*_format(context, message, kwargs))


def log_warning(logger: logging.Logger, context: str, message: str, **kwargs):
    """Log warning."""
    logger.warning(*_format(context, message, kwargs))


def log_error(logger: logging.Logger, context: str, message: str, **kwargs):
    """Log error."""
    logger.error(*_format(context, message, kwargs))
