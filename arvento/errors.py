#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Domain exceptions shared by the valuation pipeline, the DCF engine and the API.
"""

from typing import List, Optional


class ArventoError(Exception):
    """Base class for valuation engine errors."""

    pass


class MissingDataError(ArventoError):
    """Raised when a document has no financial periods to value."""

    pass


class DCFValidationError(ArventoError):
    """Raised when DCF inputs or a generated scenario break a numeric invariant."""

    def __init__(self, errors: List[str], scenario: Optional[str] = None):
        self.errors = list(errors)
        self.scenario = scenario
        prefix = f"{scenario}: " if scenario else ""
        super().__init__(prefix + "; ".join(self.errors))


class InvalidStatusTransition(ArventoError):
    """Raised when a finished DCF analysis is asked to change status again."""

    pass


class AnalysisNotFound(ArventoError):
    """Raised when a DCF analysis id is unknown to the store."""

    pass
