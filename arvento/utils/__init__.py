"""Configuration and logging."""

from .logger import get_logger, request_logger
from . import config

__all__ = ["get_logger", "request_logger", "config"]
