#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Market data service: risk-free rate, inflation expectation, industry beta,
size premium and the resulting WACC for a DCF.

Each fetch returns a FetchResult (a snapshot or a FetchError). The degraded
path is a named FallbackPolicy applied to the FetchError, so a failed fetch
never raises and never blocks the sibling fetch.
"""

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Union

import requests
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..context import ValuationContext
from ..utils import get_logger
from ..utils.config import (
    ECB_YIELD_URL,
    FALLBACK_RISK_FREE_RATE,
    INFLATION_EXPECTATION,
    MARKET_RISK_PREMIUM,
    CREDIT_SPREAD,
    DEFAULT_DEBT_TO_EQUITY,
    DEFAULT_TAX_RATE,
    DEFAULT_BETA,
    TERMINAL_GROWTH_RF_RATIO,
    SIZE_PREMIUM_BRACKETS,
    INDUSTRY_BETAS,
)

logger = get_logger(__name__)

ECB_PARAMS = {"format": "jsondata", "lastNObservations": 1, "detail": "dataonly"}


# ============================================================================
# Fetch results
# ============================================================================


@dataclass(frozen=True)
class MarketDataSnapshot:
    """One market indicator as fetched (or substituted) for a request."""

    value: float
    source: str
    timestamp: datetime
    success: bool


@dataclass(frozen=True)
class FetchError:
    """Why a fetch produced no usable value."""

    indicator: str
    reason: str


FetchResult = Union[MarketDataSnapshot, FetchError]


@dataclass(frozen=True)
class FallbackPolicy:
    """Static substitute used when a fetch fails."""

    indicator: str
    value: float
    source: str = "fallback"

    def resolve(self, result: FetchResult, now: datetime) -> MarketDataSnapshot:
        if isinstance(result, MarketDataSnapshot):
            return result
        logger.warning(
            f"{self.indicator}: {result.reason}; using {self.source} value {self.value}"
        )
        return MarketDataSnapshot(value=self.value, source=self.source, timestamp=now, success=False)


RISK_FREE_FALLBACK = FallbackPolicy("risk_free_rate", FALLBACK_RISK_FREE_RATE)


# ============================================================================
# Fetchers
# ============================================================================


def _parse_ecb_yield(payload: Any) -> Optional[float]:
    """Pull the latest observation (percent) out of an ECB SDMX-JSON payload."""
    if not isinstance(payload, dict):
        return None
    data_sets = payload.get("dataSets")
    if not isinstance(data_sets, list) or not data_sets:
        return None
    series = data_sets[0].get("series") if isinstance(data_sets[0], dict) else None
    if not isinstance(series, dict) or not series:
        return None
    first_series = next(iter(series.values()))
    observations = first_series.get("observations") if isinstance(first_series, dict) else None
    if not isinstance(observations, dict) or not observations:
        return None
    first_obs = next(iter(observations.values()))
    if not isinstance(first_obs, list) or not first_obs or first_obs[0] is None:
        return None
    try:
        return float(first_obs[0])
    except (TypeError, ValueError):
        return None


def request_risk_free_rate(context: ValuationContext) -> FetchResult:
    """
    One GET to the ECB euro-area AAA 10Y yield series, no retries.

    Returns:
        MarketDataSnapshot (decimal rate) or FetchError
    """
    try:
        response = context.session.get(
            ECB_YIELD_URL,
            params=ECB_PARAMS,
            headers={"Accept": "application/json"},
            timeout=context.timeout,
        )
    except requests.RequestException as e:
        return FetchError("risk_free_rate", f"request failed: {type(e).__name__}: {e}")

    if not response.ok:
        return FetchError("risk_free_rate", f"HTTP {response.status_code}")

    try:
        payload = response.json()
    except ValueError:
        return FetchError("risk_free_rate", "response is not valid JSON")

    percent = _parse_ecb_yield(payload)
    if percent is None:
        return FetchError("risk_free_rate", "no observation in ECB response")

    return MarketDataSnapshot(
        value=percent / 100, source="ECB", timestamp=context.now(), success=True
    )


def fetch_risk_free_rate(context: Optional[ValuationContext] = None) -> MarketDataSnapshot:
    """Risk-free rate snapshot; falls back to the static rate on any failure."""
    if context is None:
        with ValuationContext() as context:
            return fetch_risk_free_rate(context)
    return RISK_FREE_FALLBACK.resolve(request_risk_free_rate(context), context.now())


def fetch_inflation_expectation(context: Optional[ValuationContext] = None) -> MarketDataSnapshot:
    """Inflation expectation. A static ECB-target estimate; no market-derived figure yet."""
    now = context.now() if context is not None else datetime.now(timezone.utc)
    return MarketDataSnapshot(
        value=INFLATION_EXPECTATION, source="ECB_target", timestamp=now, success=True
    )


# ============================================================================
# Risk components
# ============================================================================


def _normalize_industry(industry: Optional[str]) -> str:
    return re.sub(r"[^a-z]", "_", (industry or "").lower())


def industry_beta(industry: Optional[str]) -> float:
    """
    Beta for an industry: exact key, then substring match in either direction.
    Unknown or empty industries get DEFAULT_BETA.
    """
    key = _normalize_industry(industry)
    if not key.strip("_"):
        return DEFAULT_BETA
    if key in INDUSTRY_BETAS:
        return INDUSTRY_BETAS[key]
    for name, beta in INDUSTRY_BETAS.items():
        if name in key or key in name:
            return beta
    return DEFAULT_BETA


def size_premium(revenue: Optional[float]) -> float:
    """Small-company premium by revenue bracket; 0 when revenue is unknown."""
    if revenue is None or revenue <= 0:
        return 0.0
    for upper, premium in SIZE_PREMIUM_BRACKETS:
        if revenue < upper:
            return premium
    return 0.0


class WACCCalculation(BaseModel):
    risk_free_rate: float
    beta: float
    market_risk_premium: float
    size_premium: float
    cost_of_equity: float
    cost_of_debt: float
    debt_to_equity: float
    equity_weight: float
    debt_weight: float
    tax_rate: float
    wacc: float


def calculate_wacc(
    risk_free_rate: float,
    beta: float,
    premium: float = 0.0,
    debt_to_equity: Optional[float] = None,
    tax_rate: Optional[float] = None,
) -> WACCCalculation:
    """
    CAPM cost of equity and after-tax cost of debt blended by capital weights.

    Args:
        risk_free_rate: Decimal risk-free rate
        beta: Equity beta
        premium: Size premium (decimal)
        debt_to_equity: D/E ratio (defaults to DEFAULT_DEBT_TO_EQUITY)
        tax_rate: Corporate tax rate (defaults to DEFAULT_TAX_RATE)

    Returns:
        WACCCalculation with every intermediate figure
    """
    de = DEFAULT_DEBT_TO_EQUITY if debt_to_equity is None else max(0.0, debt_to_equity)
    tax = DEFAULT_TAX_RATE if tax_rate is None else tax_rate

    cost_of_equity = risk_free_rate + beta * MARKET_RISK_PREMIUM + premium
    cost_of_debt = risk_free_rate + CREDIT_SPREAD
    equity_weight = 1 / (1 + de)
    debt_weight = de / (1 + de)
    wacc = equity_weight * cost_of_equity + debt_weight * cost_of_debt * (1 - tax)

    return WACCCalculation(
        risk_free_rate=risk_free_rate,
        beta=beta,
        market_risk_premium=MARKET_RISK_PREMIUM,
        size_premium=premium,
        cost_of_equity=cost_of_equity,
        cost_of_debt=cost_of_debt,
        debt_to_equity=de,
        equity_weight=equity_weight,
        debt_weight=debt_weight,
        tax_rate=tax,
        wacc=wacc,
    )


# ============================================================================
# DCF market data
# ============================================================================


class MarketDataForDCF(BaseModel):
    """Market inputs handed to the DCF engine (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    wacc: float
    risk_free_rate: float
    industry_beta: float
    market_risk_premium: float
    size_premium: float
    recommended_terminal_growth: float
    data_quality: str
    last_updated: datetime
    sources: List[str]


def get_market_data_for_dcf(
    industry: Optional[str] = None,
    revenue: Optional[float] = None,
    debt_to_equity: Optional[float] = None,
    tax_rate: Optional[float] = None,
    context: Optional[ValuationContext] = None,
) -> MarketDataForDCF:
    """
    Fetch both market indicators concurrently and derive WACC and terminal growth.

    Args:
        industry: Industry name for beta lookup
        revenue: Company revenue for the size premium
        debt_to_equity: D/E ratio (default 0.3)
        tax_rate: Tax rate (default 20 %)
        context: Per-request context (session, timeout, clock)

    Returns:
        MarketDataForDCF
    """
    if context is None:
        with ValuationContext() as context:
            return get_market_data_for_dcf(industry, revenue, debt_to_equity, tax_rate, context)

    log = context.logger(__name__)

    with ThreadPoolExecutor(max_workers=2) as pool:
        rf_future = pool.submit(fetch_risk_free_rate, context)
        infl_future = pool.submit(fetch_inflation_expectation, context)
        risk_free = rf_future.result()
        inflation = infl_future.result()

    snapshots = [risk_free, inflation]
    beta = industry_beta(industry)
    premium = size_premium(revenue)
    calc = calculate_wacc(risk_free.value, beta, premium, debt_to_equity, tax_rate)

    data_quality = "high" if all(s.success for s in snapshots) else "medium"
    recommended_tg = min(inflation.value, TERMINAL_GROWTH_RF_RATIO * risk_free.value)

    log.info(
        f"Market data: rf={risk_free.value:.4f} ({risk_free.source}), beta={beta}, "
        f"size_premium={premium}, wacc={calc.wacc:.4f}, tg={recommended_tg:.4f}, "
        f"quality={data_quality}"
    )

    return MarketDataForDCF(
        wacc=calc.wacc,
        risk_free_rate=risk_free.value,
        industry_beta=beta,
        market_risk_premium=MARKET_RISK_PREMIUM,
        size_premium=premium,
        recommended_terminal_growth=recommended_tg,
        data_quality=data_quality,
        last_updated=context.now(),
        sources=[s.source for s in snapshots],
    )
