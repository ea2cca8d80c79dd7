#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Metrics pipeline: normalizer -> multiplier selector -> valuation calculator
over every period of a document.
"""

from typing import List, Optional

from ..context import ValuationContext
from ..data.models import CompanyInfo, FinancialPeriod, MetricsError
from ..data.prep import normalize_period
from ..errors import MissingDataError
from .calculator import calculate_valuation_metrics
from .multiples import ebitda_margin, select_multiples


def value_period(period: FinancialPeriod, industry: Optional[str]) -> None:
    """
    Run the three stages for one period, mutating it in place.

    Raises:
        ValueError: If the period could not be parsed
    """
    if period.parse_error:
        raise ValueError(period.parse_error)

    fields = normalize_period(period)
    if period.valuation_multiples is None:
        margin = ebitda_margin(period.income_statement.revenue, fields.ebitda)
        period.valuation_multiples = select_multiples(
            industry, period.income_statement.revenue, margin
        )
    period.valuation_metrics = calculate_valuation_metrics(
        period, fields, period.valuation_multiples
    )


def calculate_document_metrics(
    periods: List[FinancialPeriod],
    company_info: Optional[CompanyInfo] = None,
    document_company: Optional[CompanyInfo] = None,
    context: Optional[ValuationContext] = None,
) -> List[FinancialPeriod]:
    """
    Value every period of a document.

    A failing period gets `valuation_metrics = {error: message}`; its
    siblings are still processed.

    Args:
        periods: Periods of one document (mutated in place)
        company_info: Company facts from the caller
        document_company: Company block found inside the document
        context: Per-request context

    Returns:
        The same period list

    Raises:
        MissingDataError: If there are no periods
    """
    if context is None:
        with ValuationContext() as context:
            return calculate_document_metrics(periods, company_info, document_company, context)

    log = context.logger(__name__)

    if not periods:
        raise MissingDataError("No financial periods found in document")

    industry = None
    if company_info is not None and company_info.industry:
        industry = company_info.industry
    elif document_company is not None:
        industry = document_company.industry

    log.info(f"Calculating valuation metrics for {len(periods)} period(s), industry='{industry or ''}'")

    failed = 0
    for period in periods:
        try:
            value_period(period, industry)
        except Exception as e:
            failed += 1
            log.error(f"Period {period.label} failed: {type(e).__name__}: {e}")
            period.valuation_metrics = MetricsError(error=str(e))

    log.info(f"Valuation metrics done: {len(periods) - failed} ok, {failed} failed")
    return periods
