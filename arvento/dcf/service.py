#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DCF analysis service: request -> market data -> three scenarios ->
weighted value, sensitivity and confidence -> stored record.

The record is saved as `processing` first and then exactly once as either
`completed` or `failed`. Invalid numerics never produce a completed record.
"""

import threading
from typing import Dict, List, Optional, Tuple

from ..context import ValuationContext
from ..data.models import FinancialPeriod
from ..data.prep import debt_to_equity, latest_period, net_debt
from ..errors import AnalysisNotFound, ArventoError, DCFValidationError, InvalidStatusTransition
from ..market.data import MarketDataForDCF, get_market_data_for_dcf
from ..utils.config import DEFAULT_DEPRECIATION_PCT, DEFAULT_SCENARIO_WEIGHTS, DEFAULT_TAX_RATE, PROJECTION_YEARS
from .confidence import assess_confidence
from .logic import build_scenarios, probability_weighted_value
from .models import (
    DCFRequest,
    DCFStructuredData,
    EquityValueRange,
    ScenarioAssumptions,
    ScenarioInput,
    ScenarioName,
    ValuationSummary,
)
from .sensitivity import run_sensitivity
from .validation import validate_assumptions, validate_scenario, validate_weights


class InMemoryAnalysisStore:
    """Thread-safe record store keyed by valuation id."""

    def __init__(self):
        self._records: Dict[str, DCFStructuredData] = {}
        self._lock = threading.Lock()

    def save(self, record: DCFStructuredData) -> None:
        """
        Raises:
            InvalidStatusTransition: If a finished record would be overwritten
        """
        with self._lock:
            existing = self._records.get(record.valuation_id)
            if existing is not None and existing.is_finished:
                raise InvalidStatusTransition(
                    f"Analysis {record.valuation_id} is already {existing.status.value}"
                )
            self._records[record.valuation_id] = record

    def get(self, valuation_id: str) -> DCFStructuredData:
        with self._lock:
            record = self._records.get(valuation_id)
        if record is None:
            raise AnalysisNotFound(f"No DCF analysis with id '{valuation_id}'")
        return record


# ===== Input resolution =====


def _company_figures(request: DCFRequest) -> Tuple[Optional[float], float, Optional[float], int]:
    """(base revenue, net debt, D/E, period errors) from the request and its latest period."""
    latest: Optional[FinancialPeriod] = latest_period(request.periods)
    period_errors = sum(1 for p in request.periods if p.parse_error)

    base_revenue = request.base_revenue
    if base_revenue is None and latest is not None:
        base_revenue = latest.income_statement.revenue
    if base_revenue is None:
        base_revenue = request.company.revenue

    debt = request.net_debt
    if debt is None:
        debt = net_debt(latest) if latest is not None else 0.0

    de = request.company.debt_to_equity
    if de is None and latest is not None:
        de = debt_to_equity(latest)

    return base_revenue, debt, de, period_errors


def resolve_assumptions(
    scenario: ScenarioInput, market: MarketDataForDCF, tax_rate: float
) -> ScenarioAssumptions:
    """Fill rates the caller left open from market data and defaults."""
    return ScenarioAssumptions(
        revenue_growth=scenario.revenue_growth,
        ebitda_margin=scenario.ebitda_margin,
        capex_percent=scenario.capex_percent,
        working_capital_percent=scenario.working_capital_percent,
        depreciation_percent=(
            scenario.depreciation_percent
            if scenario.depreciation_percent is not None
            else [DEFAULT_DEPRECIATION_PCT] * PROJECTION_YEARS
        ),
        terminal_growth=(
            scenario.terminal_growth
            if scenario.terminal_growth is not None
            else market.recommended_terminal_growth
        ),
        wacc=scenario.wacc if scenario.wacc is not None else market.wacc,
        tax_rate=scenario.tax_rate if scenario.tax_rate is not None else tax_rate,
    )


# ===== Analysis =====


def run_dcf_analysis(
    request: DCFRequest,
    context: Optional[ValuationContext] = None,
    store: Optional[InMemoryAnalysisStore] = None,
) -> DCFStructuredData:
    """
    Run a full DCF analysis and persist its record.

    Args:
        request: DCF request
        context: Per-request context (HTTP session, clock)
        store: Record store (a private one is used when omitted)

    Returns:
        The finished record, status `completed` or `failed`

    Raises:
        InvalidStatusTransition: If the valuation id already has a finished record
        Exception: Unexpected errors are re-raised after the record is saved as `failed`
    """
    if context is None:
        with ValuationContext() as context:
            return run_dcf_analysis(request, context, store)

    store = store or InMemoryAnalysisStore()
    log = context.logger(__name__)

    record = DCFStructuredData.start(
        request.valuation_id, request.company_id, request.user_id, context.now()
    )
    store.save(record)
    log.info(f"=== DCF ANALYSIS {request.valuation_id} (company {request.company_id}) ===")

    try:
        base_revenue, debt, de, period_errors = _company_figures(request)
        tax_rate = request.tax_rate if request.tax_rate is not None else DEFAULT_TAX_RATE

        market = get_market_data_for_dcf(
            industry=request.company.industry,
            revenue=request.company.revenue if request.company.revenue is not None else base_revenue,
            debt_to_equity=de,
            tax_rate=tax_rate,
            context=context,
        )

        missing = [n.value for n in ScenarioName if n not in request.scenarios]
        if missing:
            raise DCFValidationError([f"Missing scenario(s): {', '.join(missing)}"])

        weights = validate_weights(request.scenario_weights or DEFAULT_SCENARIO_WEIGHTS)

        assumptions = {
            name: resolve_assumptions(request.scenarios[name], market, tax_rate)
            for name in ScenarioName
        }
        warnings: List[str] = []
        for name, a in assumptions.items():
            warnings.extend(validate_assumptions(name, a, base_revenue))

        scenarios = build_scenarios(
            assumptions,
            base_revenue,
            debt,
            request.base_working_capital,
            rationales={n: request.scenarios[n].rationale for n in ScenarioName},
        )
        for scenario in scenarios.values():
            validate_scenario(scenario, check_assumptions=False)

        weighted = probability_weighted_value(scenarios, weights)
        sensitivity = run_sensitivity(
            assumptions[ScenarioName.BASE], base_revenue, debt, request.base_working_capital
        )
        confidence = assess_confidence(
            factors=request.confidence_factors,
            period_count=len(request.periods) - period_errors,
            data_quality=market.data_quality,
            period_errors=period_errors,
            beta=market.industry_beta,
            normalization_adjustments=request.normalization_adjustments,
        )

        values = [s.projections.equity_value for s in scenarios.values()]
        summary = ValuationSummary(
            equity_value_range=EquityValueRange(
                low=min(values),
                base=scenarios[ScenarioName.BASE].projections.equity_value,
                high=max(values),
            ),
            scenario_weights=weights,
            probability_weighted_valuation=weighted,
            sensitivity_analysis=sensitivity,
        )
        record = record.complete(scenarios, summary, confidence, market, warnings, context.now())
        log.info(f"DCF analysis {request.valuation_id} completed: weighted equity {weighted:,.0f}")

    except (ArventoError, ValueError) as e:
        log.error(f"DCF analysis {request.valuation_id} failed: {e}")
        record = record.fail(str(e), context.now())
    except Exception as e:
        log.error(f"DCF analysis {request.valuation_id} crashed: {type(e).__name__}: {e}", exc_info=True)
        store.save(record.fail(f"Internal error: {type(e).__name__}: {e}", context.now()))
        raise

    store.save(record)
    return record
