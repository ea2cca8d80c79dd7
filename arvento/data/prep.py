#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Data preparation module: derive EBIT, EBITDA, free cash flow, ROE and equity
ratio for a reporting period, plus the period helpers the DCF needs.
"""

from datetime import date
from typing import List, Optional

from ..utils import get_logger
from .models import CalculatedFields, FinancialPeriod

logger = get_logger(__name__)


def _num(value: Optional[float]) -> float:
    return float(value) if value is not None else 0.0


def normalize_period(period: FinancialPeriod) -> CalculatedFields:
    """
    Compute `calculated_fields` for one period and attach them to it.

    EBIT is built bottom-up from the operating lines. The net-income based
    EBIT is only logged next to it; the two are never reconciled.

    Args:
        period: Period to normalize (mutated in place)

    Returns:
        The attached CalculatedFields
    """
    inc = period.income_statement
    bal = period.balance_sheet

    revenue = _num(inc.revenue)
    depreciation = _num(inc.depreciation)
    net_income = _num(inc.net_income)

    ebit = (
        revenue
        + _num(inc.other_income)
        - _num(inc.materials_and_services)
        - _num(inc.personnel_expenses)
        - _num(inc.other_expenses)
        - depreciation
    )
    ebitda = ebit + depreciation

    ebit_alt = net_income + abs(_num(inc.taxes)) + abs(_num(inc.financial_income_expenses))
    logger.debug(
        f"Period {period.label}: ebit={ebit:.2f}, ebit_alt={ebit_alt:.2f}, "
        f"diff={ebit - ebit_alt:.2f}"
    )

    equity = _num(bal.equity)
    assets_total = _num(bal.assets_total)

    fields = CalculatedFields(
        ebit=ebit,
        ebitda=ebitda,
        free_cash_flow=net_income + depreciation,
        roe=net_income / equity * 100 if equity != 0 else None,
        equity_ratio=equity / assets_total * 100 if assets_total != 0 else None,
    )
    period.calculated_fields = fields
    return fields


def latest_period(periods: List[FinancialPeriod]) -> Optional[FinancialPeriod]:
    """
    Pick the most recent usable period by end date.
    Undated periods rank below dated ones; unparseable periods are skipped.
    """
    usable = [p for p in periods if not p.parse_error]
    if not usable:
        return None
    return max(usable, key=lambda p: (p.end_date is not None, p.end_date or date.min))


def net_debt(period: FinancialPeriod) -> float:
    """Interest-bearing debt minus cash; 0 when debt is not reported."""
    bal = period.balance_sheet
    if bal.interest_bearing_debt is None:
        return 0.0
    return float(bal.interest_bearing_debt) - _num(bal.cash_and_equivalents)


def debt_to_equity(period: FinancialPeriod) -> Optional[float]:
    """Interest-bearing debt over equity, None unless both are known and equity > 0."""
    bal = period.balance_sheet
    if bal.interest_bearing_debt is None or bal.equity is None or bal.equity <= 0:
        return None
    return max(0.0, float(bal.interest_bearing_debt)) / float(bal.equity)
