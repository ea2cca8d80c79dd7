#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Sensitivity analysis: move one base-scenario assumption at a time, hold
everything else fixed, and rank the equity value impacts for a tornado chart.
"""

from typing import Dict, List, Optional, Tuple

from ..errors import DCFValidationError
from ..utils import get_logger
from ..utils.config import (
    SENSITIVITY_STEP,
    TERMINAL_GROWTH_SENSITIVITY_STEP,
    MOST_SENSITIVE_COUNT,
)
from .logic import equity_value
from .models import ScenarioAssumptions, SensitivityAnalysis, SensitivityEntry, TornadoEntry

logger = get_logger(__name__)

# parameter -> (assumption field, step)
SENSITIVITY_PARAMETERS: Dict[str, Tuple[str, float]] = {
    "revenue_growth": ("revenue_growth", SENSITIVITY_STEP),
    "ebitda_margin": ("ebitda_margin", SENSITIVITY_STEP),
    "wacc": ("wacc", SENSITIVITY_STEP),
    "terminal_growth": ("terminal_growth", TERMINAL_GROWTH_SENSITIVITY_STEP),
    "capex_percent": ("capex_percent", SENSITIVITY_STEP),
    "working_capital_efficiency": ("working_capital_percent", SENSITIVITY_STEP),
}


def shift_assumption(assumptions: ScenarioAssumptions, field: str, delta: float) -> ScenarioAssumptions:
    """Copy of the assumptions with one field (every year for arrays) moved by delta."""
    current = getattr(assumptions, field)
    if isinstance(current, list):
        shifted = [v + delta for v in current]
    else:
        shifted = current + delta
    return assumptions.model_copy(update={field: shifted})


def _pct(impact: float, base: float) -> Optional[float]:
    return impact / base * 100 if base != 0 else None


def _dominant(a: Optional[float], b: Optional[float]) -> Optional[float]:
    """The larger-magnitude of two signed percentages."""
    if a is None:
        return b
    if b is None:
        return a
    return a if abs(a) >= abs(b) else b


def tornado_ranking(entries: List[SensitivityEntry]) -> List[TornadoEntry]:
    """Tornado rows sorted by abs(percentage_impact), largest first."""
    rows = [
        TornadoEntry(
            parameter=e.parameter,
            impact_range=abs(e.plus_value - e.minus_value),
            percentage_impact=_dominant(e.impact_percentage_plus, e.impact_percentage_minus),
        )
        for e in entries
    ]
    return sorted(rows, key=lambda r: abs(r.percentage_impact or 0.0), reverse=True)


def run_sensitivity(
    assumptions: ScenarioAssumptions,
    base_revenue: float,
    net_debt: float = 0.0,
    base_working_capital: Optional[float] = None,
) -> SensitivityAnalysis:
    """
    One-at-a-time sensitivity on the base scenario.

    A perturbation that breaks wacc > terminal growth is skipped and listed in
    `skipped_parameters` rather than failing the analysis.

    Args:
        assumptions: Base scenario assumptions
        base_revenue: Year-0 revenue
        net_debt: Net debt for the equity bridge
        base_working_capital: Year-0 working capital

    Returns:
        SensitivityAnalysis
    """
    # Year-0 working capital stays fixed across every perturbation
    if base_working_capital is None:
        base_working_capital = base_revenue * assumptions.working_capital_percent[0]
    base_value = equity_value(assumptions, base_revenue, net_debt, base_working_capital)

    entries: Dict[str, SensitivityEntry] = {}
    skipped: List[str] = []

    for parameter, (field, step) in SENSITIVITY_PARAMETERS.items():
        try:
            plus = equity_value(
                shift_assumption(assumptions, field, step), base_revenue, net_debt, base_working_capital
            )
            minus = equity_value(
                shift_assumption(assumptions, field, -step), base_revenue, net_debt, base_working_capital
            )
        except DCFValidationError as e:
            logger.warning(f"Sensitivity for {parameter} skipped: {e}")
            skipped.append(parameter)
            continue

        entries[parameter] = SensitivityEntry(
            parameter=parameter,
            step=step,
            plus_value=plus,
            minus_value=minus,
            impact_plus=plus - base_value,
            impact_minus=minus - base_value,
            impact_percentage_plus=_pct(plus - base_value, base_value),
            impact_percentage_minus=_pct(minus - base_value, base_value),
        )

    tornado = tornado_ranking(list(entries.values()))
    most_sensitive = [row.parameter for row in tornado[:MOST_SENSITIVE_COUNT]]
    logger.info(f"Sensitivity done; most sensitive: {', '.join(most_sensitive)}")

    return SensitivityAnalysis(
        base_equity_value=base_value,
        parameters=entries,
        tornado_chart_data=tornado,
        most_sensitive_parameters=most_sensitive,
        skipped_parameters=skipped,
    )
