#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DCF data contract: scenario assumptions, generated scenarios, the valuation
summary and the analysis record with its status lifecycle.

Generated scenarios and analysis records are frozen. A record changes status
only through `complete()` / `fail()`, each of which returns a new record and
is allowed once.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..data.models import CompanyInfo, FinancialPeriod
from ..errors import InvalidStatusTransition
from ..market.data import MarketDataForDCF
from ..utils.config import DEFAULT_DEPRECIATION_PCT, DEFAULT_SCENARIO_ASSUMPTIONS, PROJECTION_YEARS


class ScenarioName(str, Enum):
    PESSIMISTIC = "pessimistic"
    BASE = "base"
    OPTIMISTIC = "optimistic"


class DCFStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# ============================================================================
# Inputs
# ============================================================================


class ScenarioInput(BaseModel):
    """Assumptions as supplied by the caller; rates may be left to market data."""

    revenue_growth: List[float]
    ebitda_margin: List[float]
    capex_percent: List[float]
    working_capital_percent: List[float]
    depreciation_percent: Optional[List[float]] = None
    terminal_growth: Optional[float] = None
    wacc: Optional[float] = None
    tax_rate: Optional[float] = None
    rationale: Optional[str] = None


def default_scenario_inputs() -> Dict[ScenarioName, ScenarioInput]:
    """Uniform five-year assumptions from configuration."""
    return {
        ScenarioName(name): ScenarioInput(
            **{key: [value] * PROJECTION_YEARS for key, value in values.items()}
        )
        for name, values in DEFAULT_SCENARIO_ASSUMPTIONS.items()
    }


class ScenarioAssumptions(BaseModel):
    """Fully resolved assumptions for one scenario."""

    model_config = ConfigDict(frozen=True)

    revenue_growth: List[float]
    ebitda_margin: List[float]
    capex_percent: List[float]
    working_capital_percent: List[float]
    depreciation_percent: List[float] = Field(
        default_factory=lambda: [DEFAULT_DEPRECIATION_PCT] * PROJECTION_YEARS
    )
    terminal_growth: float
    wacc: float
    tax_rate: float


class DCFRequest(BaseModel):
    """DCF analysis request. Accepts snake_case or camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    valuation_id: str
    company_id: str
    user_id: str

    company: CompanyInfo = Field(default_factory=CompanyInfo)
    periods: List[FinancialPeriod] = Field(default_factory=list)

    base_revenue: Optional[float] = None
    net_debt: Optional[float] = None
    base_working_capital: Optional[float] = None
    tax_rate: Optional[float] = None

    scenarios: Dict[ScenarioName, ScenarioInput] = Field(default_factory=default_scenario_inputs)
    scenario_weights: Optional[Dict[ScenarioName, float]] = None

    confidence_factors: Optional["ConfidenceFactors"] = None
    normalization_adjustments: int = Field(default=0, ge=0)


# ============================================================================
# Generated scenario
# ============================================================================


class YearlyBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    revenue: float
    revenue_growth: float
    ebitda: float
    ebitda_margin: float
    depreciation: float
    ebit: float
    taxes: float
    nopat: float
    capex: float
    working_capital: float
    working_capital_change: float
    free_cash_flow: float
    discount_factor: float
    present_value: float


class DetailedCalculations(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_revenue: float
    base_working_capital: float
    yearly_breakdown: List[YearlyBreakdown]


class TerminalValueCalculation(BaseModel):
    model_config = ConfigDict(frozen=True)

    terminal_fcf: float
    terminal_growth: float
    wacc: float
    terminal_value: float
    discount_factor: float
    present_value: float


class ValuationBridge(BaseModel):
    model_config = ConfigDict(frozen=True)

    sum_pv_fcf: float
    terminal_value_pv: float
    enterprise_value: float
    net_debt: float
    equity_value: float


class Projections(BaseModel):
    model_config = ConfigDict(frozen=True)

    revenue: List[float]
    ebitda: List[float]
    free_cash_flows: List[float]
    terminal_value: float
    present_value: float
    enterprise_value: float
    equity_value: float


class DCFScenario(BaseModel):
    """One five-year scenario with its full calculation trail."""

    model_config = ConfigDict(frozen=True)

    name: ScenarioName
    assumptions: ScenarioAssumptions
    projections: Projections
    detailed_calculations: DetailedCalculations
    terminal_value_calculation: TerminalValueCalculation
    valuation_bridge: ValuationBridge
    rationale: Optional[str] = None


# ============================================================================
# Summary
# ============================================================================


class SensitivityEntry(BaseModel):
    parameter: str
    step: float
    plus_value: float
    minus_value: float
    impact_plus: float
    impact_minus: float
    impact_percentage_plus: Optional[float] = None
    impact_percentage_minus: Optional[float] = None


class TornadoEntry(BaseModel):
    parameter: str
    impact_range: float
    percentage_impact: Optional[float] = None


class SensitivityAnalysis(BaseModel):
    base_equity_value: float
    parameters: Dict[str, SensitivityEntry]
    tornado_chart_data: List[TornadoEntry]
    most_sensitive_parameters: List[str]
    skipped_parameters: List[str] = Field(default_factory=list)


class EquityValueRange(BaseModel):
    low: float
    base: float
    high: float


class ValuationSummary(BaseModel):
    equity_value_range: EquityValueRange
    scenario_weights: Dict[ScenarioName, float]
    probability_weighted_valuation: float
    sensitivity_analysis: SensitivityAnalysis


class ConfidenceFactors(BaseModel):
    """Sub-scores on a 1-10 scale."""

    historical_data_adequacy: float = Field(ge=1, le=10)
    financial_data_quality: float = Field(ge=1, le=10)
    industry_stability: float = Field(ge=1, le=10)
    normalization_impact: float = Field(ge=1, le=10)


class ConfidenceAssessment(BaseModel):
    overall_confidence_score: float
    confidence_factors: ConfidenceFactors
    key_uncertainties: List[str]
    reliability_statement: str


DCFRequest.model_rebuild()


# ============================================================================
# Analysis record
# ============================================================================


class DCFStructuredData(BaseModel):
    """Stored result of one DCF analysis run."""

    model_config = ConfigDict(frozen=True)

    valuation_id: str
    company_id: str
    user_id: str
    status: DCFStatus
    scenario_projections: Optional[Dict[ScenarioName, DCFScenario]] = None
    valuation_summary: Optional[ValuationSummary] = None
    confidence_assessment: Optional[ConfidenceAssessment] = None
    market_data: Optional[MarketDataForDCF] = None
    warnings: List[str] = Field(default_factory=list)
    error_message: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def start(cls, valuation_id: str, company_id: str, user_id: str, now: datetime) -> "DCFStructuredData":
        return cls(
            valuation_id=valuation_id,
            company_id=company_id,
            user_id=user_id,
            status=DCFStatus.PROCESSING,
            created_at=now,
        )

    @property
    def is_finished(self) -> bool:
        return self.status is not DCFStatus.PROCESSING

    def _require_processing(self, target: DCFStatus) -> None:
        if self.is_finished:
            raise InvalidStatusTransition(
                f"Analysis {self.valuation_id} is already {self.status.value}; "
                f"cannot move to {target.value}"
            )

    def complete(
        self,
        scenarios: Dict[ScenarioName, DCFScenario],
        summary: ValuationSummary,
        confidence: ConfidenceAssessment,
        market_data: MarketDataForDCF,
        warnings: List[str],
        now: datetime,
    ) -> "DCFStructuredData":
        self._require_processing(DCFStatus.COMPLETED)
        return self.model_copy(update={
            "status": DCFStatus.COMPLETED,
            "scenario_projections": scenarios,
            "valuation_summary": summary,
            "confidence_assessment": confidence,
            "market_data": market_data,
            "warnings": list(warnings),
            "completed_at": now,
        })

    def fail(self, message: str, now: datetime) -> "DCFStructuredData":
        self._require_processing(DCFStatus.FAILED)
        return self.model_copy(update={
            "status": DCFStatus.FAILED,
            "scenario_projections": None,
            "valuation_summary": None,
            "confidence_assessment": None,
            "market_data": None,
            "error_message": message,
            "completed_at": now,
        })
