#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Logging module: centralized logging configuration for all modules.

Per-request work logs through `request_logger`, which prefixes every
message with the request id carried by the valuation context.
"""

import logging
from typing import Optional

from .config import LOG_LEVEL, LOG_FORMAT

def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger instance for a module.

    Args:
        name: Module name (typically __name__)
        level: Optional level override (defaults to LOG_LEVEL)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only add handler if not already present (avoid duplicates)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    level_name = (level or LOG_LEVEL).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    return logger


class RequestLoggerAdapter(logging.LoggerAdapter):
    """Prefix messages with `[request_id]`."""

    def process(self, msg, kwargs):
        return f"[{self.extra['request_id']}] {msg}", kwargs


def request_logger(logger: logging.Logger, request_id: str) -> logging.LoggerAdapter:
    """Wrap a module logger for one valuation request."""
    return RequestLoggerAdapter(logger, {"request_id": request_id})
