#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DCF validation: numeric checks for scenario assumptions, complete scenarios
(engine-built or supplied upstream) and scenario weights.

Hard violations raise DCFValidationError with every message collected.
Soft range checks return warnings.
"""

import math
from typing import Dict, List, Mapping, Tuple

from ..errors import DCFValidationError
from ..utils import get_logger
from ..utils.config import (
    PROJECTION_YEARS,
    MAX_TAX_RATE,
    GROWTH_WARNING_RANGE,
    MARGIN_WARNING_RANGE,
    WACC_WARNING_RANGE,
    TERMINAL_GROWTH_WARNING_RANGE,
    REVENUE_TOLERANCE,
    EBITDA_TOLERANCE,
    TERMINAL_VALUE_TOLERANCE,
    DISCOUNT_FACTOR_TOLERANCE,
    PRESENT_VALUE_TOLERANCE,
    BRIDGE_TOLERANCE,
    WEIGHT_TOLERANCE,
)
from .models import DCFScenario, ScenarioAssumptions, ScenarioName

logger = get_logger(__name__)

ARRAY_FIELDS = (
    "revenue_growth",
    "ebitda_margin",
    "capex_percent",
    "working_capital_percent",
    "depreciation_percent",
)


def _close(actual: float, expected: float, tolerance: float) -> bool:
    return abs(actual - expected) <= tolerance * max(abs(expected), 1.0)


def _outside(value: float, bounds: Tuple[float, float]) -> bool:
    return value < bounds[0] or value > bounds[1]


def validate_assumptions(
    name: ScenarioName, assumptions: ScenarioAssumptions, base_revenue: float
) -> List[str]:
    """
    Check one scenario's assumptions before projecting it.

    Returns:
        Warnings for values outside their usual range

    Raises:
        DCFValidationError: On wrong array lengths, non-finite values, wacc <= -1,
            wacc <= terminal growth, a tax rate outside [0, 1) or non-positive base revenue
    """
    errors: List[str] = []
    warnings: List[str] = []
    a = assumptions

    for field in ARRAY_FIELDS:
        values = getattr(a, field)
        if len(values) != PROJECTION_YEARS:
            errors.append(f"{field} must have {PROJECTION_YEARS} values, got {len(values)}")
        if any(not math.isfinite(v) for v in values):
            errors.append(f"{field} contains non-finite values")

    for field in ("wacc", "terminal_growth", "tax_rate"):
        if not math.isfinite(getattr(a, field)):
            errors.append(f"{field} is not finite")

    if a.wacc <= -1:
        errors.append(f"WACC ({a.wacc:.4f}) must be greater than -100%")
    if a.wacc <= a.terminal_growth:
        errors.append(
            f"WACC ({a.wacc:.4f}) must be greater than terminal growth ({a.terminal_growth:.4f})"
        )
    if a.tax_rate < 0 or a.tax_rate >= MAX_TAX_RATE:
        errors.append(f"tax_rate {a.tax_rate} outside [0, {MAX_TAX_RATE})")
    if base_revenue is None or base_revenue <= 0:
        errors.append(f"base revenue must be positive, got {base_revenue}")

    if errors:
        raise DCFValidationError(errors, scenario=name.value)

    for year, g in enumerate(a.revenue_growth, 1):
        if _outside(g, GROWTH_WARNING_RANGE):
            warnings.append(f"{name.value}: year {year} revenue growth {g:.1%} is unusual")
    for year, m in enumerate(a.ebitda_margin, 1):
        if _outside(m, MARGIN_WARNING_RANGE):
            warnings.append(f"{name.value}: year {year} EBITDA margin {m:.1%} is unusual")
    if _outside(a.wacc, WACC_WARNING_RANGE):
        warnings.append(f"{name.value}: WACC {a.wacc:.1%} outside typical range")
    if _outside(a.terminal_growth, TERMINAL_GROWTH_WARNING_RANGE):
        warnings.append(f"{name.value}: terminal growth {a.terminal_growth:.1%} outside typical range")

    for w in warnings:
        logger.warning(w)
    return warnings


def validate_scenario(scenario: DCFScenario, check_assumptions: bool = True) -> List[str]:
    """
    Re-check a complete scenario against its own assumptions.

    Covers the revenue chain, EBITDA, discount factors, present values, the
    terminal value round trip and the valuation bridge.

    Args:
        scenario: Scenario to check
        check_assumptions: Also run validate_assumptions (skip when already done)

    Returns:
        Warnings from the assumption range checks

    Raises:
        DCFValidationError: If any check fails
    """
    name = scenario.name
    a = scenario.assumptions
    rows = scenario.detailed_calculations.yearly_breakdown
    proj = scenario.projections
    tv_calc = scenario.terminal_value_calculation
    bridge = scenario.valuation_bridge
    base_revenue = scenario.detailed_calculations.base_revenue

    warnings = validate_assumptions(name, a, base_revenue) if check_assumptions else []
    errors: List[str] = []

    if len(rows) != PROJECTION_YEARS:
        raise DCFValidationError(
            [f"yearly_breakdown must have {PROJECTION_YEARS} rows, got {len(rows)}"],
            scenario=name.value,
        )
    if a.wacc <= -1:
        raise DCFValidationError([f"WACC ({a.wacc:.4f}) must be greater than -100%"], scenario=name.value)

    prev_revenue = base_revenue
    for i, row in enumerate(rows):
        t = i + 1
        if not (math.isfinite(row.free_cash_flow) and math.isfinite(row.present_value)):
            errors.append(f"year {t}: free cash flow or present value is not finite")
            prev_revenue = row.revenue
            continue
        if row.revenue < 0:
            errors.append(f"year {t}: projected revenue is negative ({row.revenue:,.0f})")
        expected_revenue = prev_revenue * (1 + a.revenue_growth[i])
        if not _close(row.revenue, expected_revenue, REVENUE_TOLERANCE):
            errors.append(
                f"year {t}: revenue {row.revenue:,.0f} does not follow growth "
                f"(expected {expected_revenue:,.0f})"
            )
        if not _close(row.ebitda, row.revenue * a.ebitda_margin[i], EBITDA_TOLERANCE):
            errors.append(f"year {t}: EBITDA does not match revenue x margin")
        if not _close(row.discount_factor, 1 / (1 + a.wacc) ** t, DISCOUNT_FACTOR_TOLERANCE):
            errors.append(f"year {t}: discount factor does not match WACC")
        if not _close(row.present_value, row.free_cash_flow * row.discount_factor, PRESENT_VALUE_TOLERANCE):
            errors.append(f"year {t}: present value does not match FCF x discount factor")
        prev_revenue = row.revenue

    if any(r < 0 for r in proj.revenue):
        errors.append("projections contain negative revenue")

    if tv_calc.wacc <= tv_calc.terminal_growth:
        errors.append("terminal value WACC must exceed terminal growth")
    else:
        recomputed = tv_calc.terminal_fcf * (1 + tv_calc.terminal_growth) / (
            tv_calc.wacc - tv_calc.terminal_growth
        )
        if not _close(tv_calc.terminal_value, recomputed, TERMINAL_VALUE_TOLERANCE):
            errors.append(
                f"terminal value {tv_calc.terminal_value:,.0f} does not match "
                f"recomputed {recomputed:,.0f}"
            )

    expected_ev = bridge.sum_pv_fcf + bridge.terminal_value_pv
    if not _close(bridge.enterprise_value, expected_ev, BRIDGE_TOLERANCE):
        errors.append("enterprise value does not equal PV(FCF) + PV(TV)")
    if not _close(bridge.equity_value, bridge.enterprise_value - bridge.net_debt, BRIDGE_TOLERANCE):
        errors.append("equity value does not equal enterprise value - net debt")
    if not _close(proj.equity_value, bridge.equity_value, BRIDGE_TOLERANCE):
        errors.append("projected equity value differs from valuation bridge")

    if errors:
        raise DCFValidationError(errors, scenario=name.value)
    return warnings


def validate_weights(weights: Mapping[ScenarioName, float]) -> Dict[ScenarioName, float]:
    """
    Check scenario weights: one per scenario, each >= 0, summing to 1.

    Returns:
        Weights keyed by ScenarioName

    Raises:
        DCFValidationError: If the weights are invalid
    """
    known = {n.value for n in ScenarioName}
    unknown = [str(k) for k in weights if getattr(k, "value", k) not in known]
    if unknown:
        raise DCFValidationError([f"unknown scenario weight(s): {', '.join(unknown)}"])

    resolved = {ScenarioName(k): float(v) for k, v in weights.items()}
    errors = []

    missing = [n.value for n in ScenarioName if n not in resolved]
    if missing:
        errors.append(f"missing weight(s) for: {', '.join(missing)}")
    negative = [n.value for n, w in resolved.items() if w < 0 or not math.isfinite(w)]
    if negative:
        errors.append(f"weights must be non-negative: {', '.join(negative)}")

    total = sum(resolved.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        errors.append(f"scenario weights must sum to 1.0, got {total:.6f}")

    if errors:
        raise DCFValidationError(errors)
    return resolved
