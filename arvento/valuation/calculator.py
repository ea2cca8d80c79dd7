#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Valuation calculator: substance value and multiple-based enterprise values
for one period, combined into a low/high range and an average.
"""

from typing import List

import numpy as np

from ..data.models import (
    CalculatedFields,
    FinancialPeriod,
    ValuationMetrics,
    ValuationMultiples,
    ValuationRange,
)


def calculate_valuation_metrics(
    period: FinancialPeriod,
    fields: CalculatedFields,
    multiples: ValuationMultiples,
) -> ValuationMetrics:
    """
    Apply the substance method and the revenue, EV/EBIT and EV/EBITDA multiples.

    Negative equity and non-positive EBIT/EBITDA are reported as flags, not
    errors; the remaining positive methods still produce the range.

    Args:
        period: Period supplying equity and revenue
        fields: Normalized figures for the period
        multiples: Multiples selected for the period

    Returns:
        ValuationMetrics
    """
    equity = period.balance_sheet.equity or 0.0
    revenue = period.income_statement.revenue or 0.0
    ebit = fields.ebit
    ebitda = fields.ebitda

    substance_value = float(equity)
    ev_revenue_value = revenue * multiples.revenue_multiple.multiple
    ev_ebit_value = ebit * multiples.ev_ebit.multiple if ebit > 0 else 0.0
    ev_ebitda_value = ebitda * multiples.ev_ebitda.multiple if ebitda > 0 else 0.0

    methods: List[float] = [substance_value, ev_revenue_value, ev_ebit_value, ev_ebitda_value]
    positive = [v for v in methods if v > 0]

    low = min(positive) if positive else 0.0
    high = max([0.0] + methods)
    average = float(np.mean(positive)) if positive else 0.0

    return ValuationMetrics(
        substance_value=substance_value,
        ev_revenue_value=ev_revenue_value,
        ev_ebit_value=ev_ebit_value,
        ev_ebitda_value=ev_ebitda_value,
        multiples_used=multiples.as_numbers(),
        is_substance_negative=substance_value < 0,
        is_ebit_negative_or_zero=ebit <= 0,
        is_ebitda_negative_or_zero=ebitda <= 0,
        range=ValuationRange(low=low, high=high),
        average_valuation=average,
    )
