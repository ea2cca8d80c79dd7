#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DCF scenario engine: five-year free cash flow projection, Gordon-growth
terminal value and the enterprise-to-equity valuation bridge.
Handles the three scenarios and their probability-weighted equity value.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Mapping, Optional

import pandas as pd

from ..errors import DCFValidationError
from ..utils import get_logger
from .models import (
    DCFScenario,
    DetailedCalculations,
    Projections,
    ScenarioAssumptions,
    ScenarioName,
    TerminalValueCalculation,
    ValuationBridge,
    YearlyBreakdown,
)
from .validation import validate_weights

logger = get_logger(__name__)


def discount_factor(wacc: float, t: int) -> float:
    """1 / (1 + wacc)^t"""
    return 1.0 / ((1.0 + wacc) ** t)


def terminal_value(terminal_fcf: float, terminal_growth: float, wacc: float) -> float:
    """
    Gordon-growth terminal value at the end of the projection.

    Raises:
        DCFValidationError: If wacc <= terminal_growth
    """
    if wacc <= terminal_growth:
        raise DCFValidationError(
            [f"WACC ({wacc:.4f}) must be greater than terminal growth ({terminal_growth:.4f})"]
        )
    return terminal_fcf * (1.0 + terminal_growth) / (wacc - terminal_growth)


def project_scenario(
    name: ScenarioName,
    assumptions: ScenarioAssumptions,
    base_revenue: float,
    net_debt: float = 0.0,
    base_working_capital: Optional[float] = None,
    rationale: Optional[str] = None,
) -> DCFScenario:
    """
    Build one scenario from its assumptions.

    Args:
        name: Scenario name
        assumptions: Resolved five-year assumptions
        base_revenue: Revenue of the last actual year (year 0)
        net_debt: Interest-bearing debt minus cash
        base_working_capital: Year-0 working capital (defaults to base revenue x year-1 %)
        rationale: Optional text carried through from the caller

    Returns:
        DCFScenario

    Raises:
        DCFValidationError: If wacc <= -1 or wacc <= terminal growth
    """
    a = assumptions
    wacc = a.wacc
    tg = a.terminal_growth

    if wacc <= -1:
        raise DCFValidationError(
            [f"WACC ({wacc:.4f}) must be greater than -100%"], scenario=name.value
        )
    if wacc <= tg:
        raise DCFValidationError(
            [f"WACC ({wacc:.4f}) must be greater than terminal growth ({tg:.4f})"],
            scenario=name.value,
        )

    if base_working_capital is None:
        base_working_capital = base_revenue * a.working_capital_percent[0]

    # ===== Five-Year Forecast =====
    rows = []
    revenue = base_revenue
    prev_wc = base_working_capital

    for i, growth in enumerate(a.revenue_growth):
        t = i + 1
        revenue = revenue * (1.0 + growth)
        ebitda = revenue * a.ebitda_margin[i]
        depreciation = revenue * a.depreciation_percent[i]
        ebit = ebitda - depreciation
        taxes = ebit * a.tax_rate
        nopat = ebit * (1.0 - a.tax_rate)
        capex = revenue * a.capex_percent[i]
        working_capital = revenue * a.working_capital_percent[i]
        wc_change = working_capital - prev_wc
        fcf = nopat + depreciation - capex - wc_change
        df = discount_factor(wacc, t)

        rows.append({
            "year": t,
            "revenue": revenue,
            "revenue_growth": growth,
            "ebitda": ebitda,
            "ebitda_margin": a.ebitda_margin[i],
            "depreciation": depreciation,
            "ebit": ebit,
            "taxes": taxes,
            "nopat": nopat,
            "capex": capex,
            "working_capital": working_capital,
            "working_capital_change": wc_change,
            "free_cash_flow": fcf,
            "discount_factor": df,
            "present_value": fcf * df,
        })
        prev_wc = working_capital

    f = pd.DataFrame(rows)

    # ===== Terminal Value =====
    horizon = int(f.iloc[-1]["year"])
    terminal_fcf = float(f.iloc[-1]["free_cash_flow"])
    tv = terminal_value(terminal_fcf, tg, wacc)
    tv_df = discount_factor(wacc, horizon)
    tv_pv = tv * tv_df

    # ===== Valuation Bridge =====
    sum_pv_fcf = float(f["present_value"].sum())
    enterprise_value = sum_pv_fcf + tv_pv
    equity_value = enterprise_value - net_debt

    logger.info(
        f"Scenario {name.value}: EV={enterprise_value:,.0f} "
        f"(PV(FCF)={sum_pv_fcf:,.0f}, PV(TV)={tv_pv:,.0f}), equity={equity_value:,.0f}"
    )

    breakdown = [YearlyBreakdown(**row) for row in rows]

    return DCFScenario(
        name=name,
        assumptions=a,
        projections=Projections(
            revenue=[float(v) for v in f["revenue"]],
            ebitda=[float(v) for v in f["ebitda"]],
            free_cash_flows=[float(v) for v in f["free_cash_flow"]],
            terminal_value=tv,
            present_value=sum_pv_fcf,
            enterprise_value=enterprise_value,
            equity_value=equity_value,
        ),
        detailed_calculations=DetailedCalculations(
            base_revenue=base_revenue,
            base_working_capital=base_working_capital,
            yearly_breakdown=breakdown,
        ),
        terminal_value_calculation=TerminalValueCalculation(
            terminal_fcf=terminal_fcf,
            terminal_growth=tg,
            wacc=wacc,
            terminal_value=tv,
            discount_factor=tv_df,
            present_value=tv_pv,
        ),
        valuation_bridge=ValuationBridge(
            sum_pv_fcf=sum_pv_fcf,
            terminal_value_pv=tv_pv,
            enterprise_value=enterprise_value,
            net_debt=net_debt,
            equity_value=equity_value,
        ),
        rationale=rationale,
    )


def equity_value(
    assumptions: ScenarioAssumptions,
    base_revenue: float,
    net_debt: float = 0.0,
    base_working_capital: Optional[float] = None,
) -> float:
    """Equity value of a base-scenario projection (used for sensitivity runs)."""
    scenario = project_scenario(
        ScenarioName.BASE, assumptions, base_revenue, net_debt, base_working_capital
    )
    return scenario.projections.equity_value


def build_scenarios(
    assumptions: Mapping[ScenarioName, ScenarioAssumptions],
    base_revenue: float,
    net_debt: float = 0.0,
    base_working_capital: Optional[float] = None,
    rationales: Optional[Mapping[ScenarioName, Optional[str]]] = None,
) -> Dict[ScenarioName, DCFScenario]:
    """
    Project all three scenarios in parallel.

    Either every scenario is built or the first failure is raised.

    Raises:
        DCFValidationError: If a scenario is missing or invalid
    """
    missing = [n.value for n in ScenarioName if n not in assumptions]
    if missing:
        raise DCFValidationError([f"Missing scenario(s): {', '.join(missing)}"])

    rationales = rationales or {}
    with ThreadPoolExecutor(max_workers=len(ScenarioName)) as pool:
        futures = {
            name: pool.submit(
                project_scenario,
                name,
                assumptions[name],
                base_revenue,
                net_debt,
                base_working_capital,
                rationales.get(name),
            )
            for name in ScenarioName
        }
        return {name: future.result() for name, future in futures.items()}


def probability_weighted_value(
    scenarios: Mapping[ScenarioName, DCFScenario],
    weights: Mapping[ScenarioName, float],
) -> float:
    """
    Blend scenario equity values with weights that sum to one.

    Raises:
        DCFValidationError: If the weights are invalid
    """
    weights = validate_weights(weights)
    values = [scenarios[name].projections.equity_value for name in ScenarioName]
    weighted = sum(weights[name] * scenarios[name].projections.equity_value for name in ScenarioName)
    # Clip float noise so the blend stays inside the scenario range
    weighted = min(max(weighted, min(values)), max(values))
    logger.info(f"Probability-weighted equity value: {weighted:,.0f}")
    return weighted
