#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Per-request context threaded through the valuation pipeline.

The engine keeps no module-level state between requests: the HTTP session,
timeout and clock a request uses all travel in this object.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

import requests

from .utils import get_logger, request_logger
from .utils.config import ECB_TIMEOUT_SECONDS


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ValuationContext:
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    session: requests.Session = field(default_factory=requests.Session)
    timeout: float = ECB_TIMEOUT_SECONDS
    clock: Callable[[], datetime] = _utcnow

    def now(self) -> datetime:
        return self.clock()

    def logger(self, name: str):
        """Module logger tagged with this request's id."""
        return request_logger(get_logger(name), self.request_id)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "ValuationContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
