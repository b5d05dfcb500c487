"""Shared logging utilities for consistent client observability.

Usage example:
    from resilient_api_client.observability.logging import get_logger

    logger = get_logger("resilient_api_client.coordinator")
    logger.debug("Cache hit for %s", key)
"""

from __future__ import annotations

import logging
import os
import time

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
_LEVEL_ENV = "API_LOG_LEVEL"


def _resolve_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    text = (level or os.getenv(_LEVEL_ENV, "")).strip().upper()
    if not text:
        return logging.INFO
    resolved = logging.getLevelName(text)
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(name: str, level: int | str | None = None) -> logging.Logger:
    """Return a client logger with a single UTC-formatted stream handler.

    Args:
        name: Logger name (use a stable module-qualified name).
        level: Optional level; falls back to `API_LOG_LEVEL`, then INFO.

    Returns:
        The configured logger. Repeated calls return the same instance without
        adding handlers.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
        formatter.converter = time.gmtime
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(_resolve_level(level))
        logger.propagate = False
    elif level is not None:
        logger.setLevel(_resolve_level(level))
    return logger
