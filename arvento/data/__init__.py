"""Financial document models, loading and period normalization."""

from .models import (
    IncomeStatement, BalanceSheet, CalculatedFields, MultipleEntry, ValuationMultiples,
    ValuationRange, ValuationMetrics, MetricsError, FinancialPeriod, CompanyInfo,
)
from .loader import DocumentShape, ResolvedDocument, detect_shape, parse_period, resolve_document, load_document
from .prep import normalize_period, latest_period, net_debt, debt_to_equity

__all__ = [
    "IncomeStatement", "BalanceSheet", "CalculatedFields", "MultipleEntry", "ValuationMultiples",
    "ValuationRange", "ValuationMetrics", "MetricsError", "FinancialPeriod", "CompanyInfo",
    "DocumentShape", "ResolvedDocument", "detect_shape", "parse_period", "resolve_document",
    "load_document", "normalize_period", "latest_period", "net_debt", "debt_to_equity",
]
