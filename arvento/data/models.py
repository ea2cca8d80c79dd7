#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Financial data models: reporting periods and the records the valuation
pipeline attaches to them.

A FinancialPeriod is owned by its document and mutated in place by the
normalizer, the multiplier selector and the valuation calculator.
"""

from datetime import date
from typing import Dict, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ============================================================================
# Raw statements
# ============================================================================


class IncomeStatement(BaseModel):
    """Income statement line items. Missing items count as zero."""

    model_config = ConfigDict(extra="ignore")

    revenue: Optional[float] = None
    other_income: Optional[float] = None
    materials_and_services: Optional[float] = None
    personnel_expenses: Optional[float] = None
    other_expenses: Optional[float] = None
    depreciation: Optional[float] = None
    net_income: Optional[float] = None
    financial_income_expenses: Optional[float] = None
    taxes: Optional[float] = None


class BalanceSheet(BaseModel):
    """Balance sheet line items used by the valuation."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    equity: Optional[float] = None
    assets_total: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("assets_total", "total_assets")
    )
    liabilities_total: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("liabilities_total", "total_liabilities")
    )
    interest_bearing_debt: Optional[float] = None
    cash_and_equivalents: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("cash_and_equivalents", "cash")
    )


# ============================================================================
# Derived records
# ============================================================================


class CalculatedFields(BaseModel):
    """Figures derived from one period's statements."""

    ebit: float
    ebitda: float
    free_cash_flow: float
    roe: Optional[float] = None
    equity_ratio: Optional[float] = None


class MultipleEntry(BaseModel):
    multiple: float
    justification: str


class ValuationMultiples(BaseModel):
    """Four named multiples with their generated justification text."""

    model_config = ConfigDict(frozen=True)

    revenue_multiple: MultipleEntry
    ev_ebit: MultipleEntry
    ev_ebitda: MultipleEntry
    p_e: MultipleEntry

    def as_numbers(self) -> Dict[str, float]:
        return {
            "revenue_multiple": self.revenue_multiple.multiple,
            "ev_ebit": self.ev_ebit.multiple,
            "ev_ebitda": self.ev_ebitda.multiple,
            "p_e": self.p_e.multiple,
        }


class ValuationRange(BaseModel):
    low: float
    high: float


class ValuationMetrics(BaseModel):
    """Per-method values, degeneracy flags and the resulting range."""

    substance_value: float
    ev_revenue_value: float
    ev_ebit_value: float
    ev_ebitda_value: float
    multiples_used: Dict[str, float]
    is_substance_negative: bool
    is_ebit_negative_or_zero: bool
    is_ebitda_negative_or_zero: bool
    range: ValuationRange
    average_valuation: float


class MetricsError(BaseModel):
    """Stored in place of metrics when one period fails."""

    error: str


# ============================================================================
# Period and company
# ============================================================================


class FinancialPeriod(BaseModel):
    """One reporting period with its derived valuation records."""

    model_config = ConfigDict(extra="ignore")

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    description: Optional[str] = None
    income_statement: IncomeStatement = Field(default_factory=IncomeStatement)
    balance_sheet: BalanceSheet = Field(default_factory=BalanceSheet)

    calculated_fields: Optional[CalculatedFields] = None
    valuation_multiples: Optional[ValuationMultiples] = None
    valuation_metrics: Optional[Union[ValuationMetrics, MetricsError]] = None

    # Set by the loader when the raw period could not be parsed
    parse_error: Optional[str] = None

    @property
    def label(self) -> str:
        if self.end_date is not None:
            return self.end_date.isoformat()
        return self.description or "undated"


class CompanyInfo(BaseModel):
    """Company facts supplied next to the financial documents."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    industry: Optional[str] = None
    revenue: Optional[float] = None
    debt_to_equity: Optional[float] = Field(default=None, ge=0)
