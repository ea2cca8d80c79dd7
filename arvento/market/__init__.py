"""Market data: risk-free rate, inflation, beta, size premium and WACC."""

from .data import (
    MarketDataSnapshot, FetchError, FallbackPolicy, RISK_FREE_FALLBACK,
    request_risk_free_rate, fetch_risk_free_rate, fetch_inflation_expectation,
    industry_beta, size_premium, WACCCalculation, calculate_wacc,
    MarketDataForDCF, get_market_data_for_dcf,
)

__all__ = [
    "MarketDataSnapshot", "FetchError", "FallbackPolicy", "RISK_FREE_FALLBACK",
    "request_risk_free_rate", "fetch_risk_free_rate", "fetch_inflation_expectation",
    "industry_beta", "size_premium", "WACCCalculation", "calculate_wacc",
    "MarketDataForDCF", "get_market_data_for_dcf",
]
