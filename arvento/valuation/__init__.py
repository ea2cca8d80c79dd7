"""Multiple selection and multi-method valuation of financial periods."""

from .multiples import select_multiples, classify_industry, ebitda_margin
from .calculator import calculate_valuation_metrics
from .pipeline import calculate_document_metrics, value_period

__all__ = [
    "select_multiples", "classify_industry", "ebitda_margin",
    "calculate_valuation_metrics", "calculate_document_metrics", "value_period",
]
