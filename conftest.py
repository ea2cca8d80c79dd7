#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Shared pytest fixtures: offline HTTP sessions for the market data service.
"""

import sys
from datetime import datetime, timezone

import pytest
import requests

sys.path.insert(0, ".")

from arvento.context import ValuationContext

FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def ecb_payload(percent):
    """Minimal SDMX-JSON body as returned by the ECB data API."""
    return {
        "dataSets": [
            {"series": {"0:0:0:0:0:0:0": {"observations": {"0": [percent]}}}}
        ]
    }


class FakeResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; records every GET."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


def make_context(session):
    return ValuationContext(request_id="test", session=session, timeout=2.0, clock=lambda: FIXED_NOW)


@pytest.fixture
def offline_context():
    """Context whose ECB call fails with a connection error."""
    return make_context(FakeSession(error=requests.ConnectionError("network unreachable")))


@pytest.fixture
def ecb_context():
    """Factory: context whose ECB call returns the given yield (percent)."""
    def _make(percent=2.85, status_code=200):
        return make_context(FakeSession(response=FakeResponse(status_code, ecb_payload(percent))))
    return _make
