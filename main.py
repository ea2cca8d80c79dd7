#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Interactive valuation runner over a parsed financial document (JSON).

Steps:
  1. Load the document and value every period
       (EBIT/EBITDA -> industry multiples -> substance / EV range)
  2. Fetch market data: ECB 10Y AAA yield (or 2.5 % fallback), beta,
     size premium and WACC
  3. Optionally run the three-scenario DCF:
       equity = sum PV(FCF_1..FCF_5) + PV(TV) - net debt,
       TV = FCF_5 x (1+g) / (WACC - g)
"""

import sys
import uuid
from typing import Optional

import pandas as pd

from arvento.context import ValuationContext
from arvento.data.loader import load_document
from arvento.data.models import CompanyInfo, MetricsError
from arvento.dcf.models import DCFRequest, DCFStatus, ScenarioName
from arvento.dcf.service import run_dcf_analysis
from arvento.errors import MissingDataError
from arvento.market.data import get_market_data_for_dcf
from arvento.utils.config import DOCUMENT_PATH
from arvento.valuation.pipeline import calculate_document_metrics


# ----------------------------- prompt helpers -----------------------------
def prompt_str(msg: str, default: Optional[str] = None) -> str:
    try:
        s = input(f"{msg}{' [' + default + ']' if default is not None else ''}: ").strip()
    except EOFError:
        s = ""
    return s if s else (default or "")

def prompt_float(msg: str, default: Optional[float]) -> Optional[float]:
    shown = f"{default:.4f}" if default is not None else "NA"
    try:
        s = input(f"{msg} [default {shown}]: ").strip()
    except EOFError:
        s = ""
    if s == "":
        return default
    try:
        value = float(s)
    except ValueError:
        print("Invalid number. Using default.")
        return default
    if value < 0:
        print("Value cannot be negative. Using default.")
        return default
    return value


# ----------------------------- output -----------------------------
def metrics_table(periods) -> pd.DataFrame:
    rows = []
    for p in periods:
        m = p.valuation_metrics
        if isinstance(m, MetricsError) or m is None:
            rows.append({"period": p.label, "error": m.error if m is not None else "not valued"})
            continue
        rows.append({
            "period": p.label,
            "revenue": p.income_statement.revenue or 0.0,
            "ebit": p.calculated_fields.ebit,
            "ebitda": p.calculated_fields.ebitda,
            "low": m.range.low,
            "average": m.average_valuation,
            "high": m.range.high,
        })
    return pd.DataFrame(rows)


def main():
    print("=" * 70)
    print("  Arvento valuation")
    print("=" * 70)

    path = prompt_str("Financial document (JSON)", DOCUMENT_PATH)
    try:
        resolved = load_document(path)
    except (OSError, ValueError, MissingDataError) as e:
        print(f"Could not load document: {e}")
        sys.exit(1)

    doc_company = resolved.company or CompanyInfo()
    industry = prompt_str("Industry", doc_company.industry or "")
    company = CompanyInfo(
        name=doc_company.name,
        industry=industry or None,
        revenue=doc_company.revenue,
        debt_to_equity=doc_company.debt_to_equity,
    )

    with ValuationContext() as context:
        try:
            periods = calculate_document_metrics(resolved.periods, company, doc_company, context)
        except MissingDataError as e:
            print(f"Valuation failed: {e}")
            sys.exit(1)

        print(f"\n--- Valuation metrics ({resolved.shape.value}) ---")
        print(metrics_table(periods).to_string(index=False, float_format=lambda x: f"{x:,.0f}"))

        de = prompt_float("\nDebt-to-equity ratio", company.debt_to_equity if company.debt_to_equity is not None else 0.3)
        company = company.model_copy(update={"debt_to_equity": de})

        market = get_market_data_for_dcf(company.industry, company.revenue, de, None, context)
        print("\n--- Market data ---")
        print(f"Risk-free rate: {market.risk_free_rate:.4f} (sources: {', '.join(market.sources)})")
        print(f"Industry beta: {market.industry_beta}")
        print(f"Size premium: {market.size_premium:.4f}")
        print(f"WACC: {market.wacc:.4f}")
        print(f"Recommended terminal growth: {market.recommended_terminal_growth:.4f}")
        print(f"Data quality: {market.data_quality}")

        run = prompt_str("\nRun DCF with default scenario assumptions? (y/n)", "y").lower() in ("y", "yes", "1")
        if not run:
            return

        request = DCFRequest(
            valuation_id=uuid.uuid4().hex,
            company_id=company.name or "cli",
            user_id="cli",
            company=company,
            periods=periods,
        )
        record = run_dcf_analysis(request, context=context)

    if record.status is DCFStatus.FAILED:
        print(f"\nDCF failed: {record.error_message}")
        sys.exit(1)

    print("\n--- DCF scenarios ---")
    scen = pd.DataFrame([
        {
            "scenario": name.value,
            "wacc": s.assumptions.wacc,
            "terminal_growth": s.assumptions.terminal_growth,
            "enterprise_value": s.projections.enterprise_value,
            "equity_value": s.projections.equity_value,
        }
        for name, s in record.scenario_projections.items()
    ])
    print(scen.to_string(index=False, float_format=lambda x: f"{x:,.4f}" if abs(x) < 1 else f"{x:,.0f}"))

    summary = record.valuation_summary
    print("\nProbability-weighted equity value: {:,.0f}".format(summary.probability_weighted_valuation))

    print("\n--- Tornado (equity value sensitivity) ---")
    tornado = pd.DataFrame([t.model_dump() for t in summary.sensitivity_analysis.tornado_chart_data])
    print(tornado.to_string(index=False, float_format=lambda x: f"{x:,.2f}"))

    conf = record.confidence_assessment
    print(f"\nConfidence: {conf.overall_confidence_score}/10")
    print(conf.reliability_statement)
    for w in record.warnings:
        print(f"  warning: {w}")

    save = prompt_str("\nSave base-scenario breakdown to CSV? (y/n)", "n").lower() in ("y", "yes", "1")
    if save:
        outp = prompt_str("Output CSV path", "dcf_base_scenario.csv")
        base = record.scenario_projections[ScenarioName.BASE]
        rows = [r.model_dump() for r in base.detailed_calculations.yearly_breakdown]
        pd.DataFrame(rows).to_csv(outp, index=False)
        print(f"Saved: {outp}")

if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
