#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test suite for the valuation API (arvento/api/api.py)

Covers the metrics, market data and DCF endpoints end to end with an offline
HTTP session, so the market data always takes the fallback path.
"""

import sys

sys.path.insert(0, ".")

import requests
from fastapi.testclient import TestClient

from conftest import FakeSession, make_context
from arvento.api.api import app, get_context, get_store
from arvento.dcf.logic import project_scenario
from arvento.dcf.models import ScenarioAssumptions, ScenarioName, default_scenario_inputs
from arvento.dcf.service import InMemoryAnalysisStore

# ============================================================================
# Test Client Setup
# ============================================================================

store = InMemoryAnalysisStore()


def offline_request_context():
    context = make_context(FakeSession(error=requests.ConnectionError("offline")))
    try:
        yield context
    finally:
        context.close()


app.dependency_overrides[get_context] = offline_request_context
app.dependency_overrides[get_store] = lambda: store

client = TestClient(app)

# ============================================================================
# Test Data
# ============================================================================

PERIOD = {
    "start_date": "2023-01-01",
    "end_date": "2023-12-31",
    "income_statement": {
        "revenue": 1_000_000,
        "materials_and_services": 300_000,
        "personnel_expenses": 400_000,
        "other_expenses": 100_000,
        "depreciation": 20_000,
        "net_income": 130_000,
    },
    "balance_sheet": {"equity": 500_000, "assets_total": 1_250_000},
}

DCF_REQUEST = {
    "valuationId": "api-val-1",
    "companyId": "api-comp-1",
    "userId": "api-user-1",
    "company": {"industry": "software"},
    "periods": [PERIOD],
}

# ============================================================================
# Utility Functions
# ============================================================================


def print_header(title):
    """Print test header."""
    print("\n" + "=" * 80)
    print(f"  {title}")
    print("=" * 80)


def print_test(num, name, status):
    """Print test result."""
    symbol = "✅" if status else "❌"
    print(f"{symbol} Test {num}: {name}")


def scenario_json():
    assumptions = ScenarioAssumptions(
        revenue_growth=[0.05] * 5,
        ebitda_margin=[0.15] * 5,
        capex_percent=[0.03] * 5,
        working_capital_percent=[0.10] * 5,
        terminal_growth=0.02,
        wacc=0.10,
        tax_rate=0.20,
    )
    return project_scenario(ScenarioName.BASE, assumptions, 2_000_000, net_debt=100_000).model_dump(mode="json")


# ============================================================================
# Tests
# ============================================================================


def test_health_check():
    """Test 1: Health check endpoint."""
    print_header("TEST 1: HEALTH CHECK")

    response = client.get("/health")
    assert response.status_code == 200, f"Expected 200, got {response.status_code}"

    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "Arvento Valuation API"
    assert data["version"] == "1.0.0"
    print_test(1, "Health Check", True)


def test_valuation_metrics():
    """Test 2: Per-period metrics for a single document."""
    print_header("TEST 2: VALUATION METRICS")

    response = client.post("/valuation/metrics", json={
        "document": {"financial_periods": [PERIOD]},
        "company": {"industry": "software"},
    })
    assert response.status_code == 200, response.text

    data = response.json()
    assert data["shape"] == "single_document"
    assert data["period_count"] == 1
    assert data["failed_periods"] == 0

    period = data["periods"][0]
    assert period["calculated_fields"]["ebit"] == 180_000
    assert period["valuation_multiples"]["ev_ebit"]["multiple"] == 12
    assert period["valuation_metrics"]["range"]["low"] <= period["valuation_metrics"]["range"]["high"]
    print(f"  Average valuation: {period['valuation_metrics']['average_valuation']:,.0f}")
    print_test(2, "Valuation Metrics", True)


def test_valuation_metrics_failed_period():
    """Test 3: A malformed period is reported, its sibling is valued."""
    print_header("TEST 3: FAILED PERIOD")

    response = client.post("/valuation/metrics", json={
        "document": [PERIOD, {"income_statement": {"revenue": "unknown"}}],
    })
    assert response.status_code == 200

    data = response.json()
    assert data["shape"] == "period_list"
    assert data["failed_periods"] == 1
    assert "error" in data["periods"][1]["valuation_metrics"]
    assert "range" in data["periods"][0]["valuation_metrics"]
    print_test(3, "Failed Period", True)


def test_valuation_metrics_no_periods():
    """Test 4: Empty document is rejected with 400."""
    print_header("TEST 4: NO PERIODS")

    response = client.post("/valuation/metrics", json={"document": {"financial_periods": []}})
    assert response.status_code == 400

    error = response.json()
    assert error["error_code"] == "HTTP_400"
    assert "No financial periods" in error["error_message"]
    print_test(4, "No Periods (400)", True)


def test_valuation_metrics_unknown_shape():
    """Test 5: Unknown document shape is rejected with 400."""
    print_header("TEST 5: UNKNOWN SHAPE")

    response = client.post("/valuation/metrics", json={"document": {"pages": []}})
    assert response.status_code == 400
    print_test(5, "Unknown Shape (400)", True)


def test_market_data():
    """Test 6: Market data with the fallback risk-free rate."""
    print_header("TEST 6: MARKET DATA")

    response = client.get("/market_data", params={"industry": "software", "revenue": 15_000_000})
    assert response.status_code == 200

    data = response.json()
    assert data["riskFreeRate"] == 0.025
    assert data["dataQuality"] == "medium"
    assert data["industryBeta"] == 1.4
    assert data["sizePremium"] == 0.025
    assert 0 < data["recommendedTerminalGrowth"] < data["wacc"]
    print(f"  WACC: {data['wacc']:.4f}")
    print_test(6, "Market Data", True)


def test_market_data_rejects_negative_leverage():
    """Test 7: Negative D/E is a request validation error."""
    print_header("TEST 7: NEGATIVE D/E")

    response = client.get("/market_data", params={"debt_to_equity": -1})
    assert response.status_code == 422
    print_test(7, "Negative D/E (422)", True)


def test_dcf_lifecycle():
    """Test 8: Completed analysis is stored once and cannot be rerun."""
    print_header("TEST 8: DCF LIFECYCLE")

    response = client.post("/dcf", json=DCF_REQUEST)
    assert response.status_code == 200, response.text

    data = response.json()
    assert data["status"] == "completed"
    assert set(data["scenario_projections"]) == {"pessimistic", "base", "optimistic"}
    summary = data["valuation_summary"]
    rng = summary["equity_value_range"]
    assert rng["low"] <= summary["probability_weighted_valuation"] <= rng["high"]
    assert data["market_data"]["dataQuality"] == "medium"
    print(f"  Weighted equity value: {summary['probability_weighted_valuation']:,.0f}")

    stored = client.get("/dcf/api-val-1")
    assert stored.status_code == 200
    assert stored.json()["status"] == "completed"

    again = client.post("/dcf", json=DCF_REQUEST)
    assert again.status_code == 409
    assert again.json()["error_code"] == "HTTP_409"
    print_test(8, "DCF Lifecycle", True)


def test_dcf_failed_analysis():
    """Test 9: Invalid numerics return the failed record with 422."""
    print_header("TEST 9: DCF FAILED")

    body = dict(DCF_REQUEST, valuationId="api-val-2", scenarioWeights={
        "pessimistic": 0.5, "base": 0.5, "optimistic": 0.5,
    })
    response = client.post("/dcf", json=body)
    assert response.status_code == 422

    data = response.json()
    assert data["status"] == "failed"
    assert data["error_message"]
    assert data["scenario_projections"] is None
    assert client.get("/dcf/api-val-2").json()["status"] == "failed"
    print_test(9, "DCF Failed (422)", True)


def test_dcf_unknown_id():
    """Test 10: Unknown analysis id."""
    print_header("TEST 10: UNKNOWN ANALYSIS")

    response = client.get("/dcf/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error_code"] == "HTTP_404"
    print_test(10, "Unknown Analysis (404)", True)


def test_validate_scenario():
    """Test 11: Upstream scenario validation."""
    print_header("TEST 11: SCENARIO VALIDATION")

    scenario = scenario_json()
    response = client.post("/dcf/scenario/validate", json=scenario)
    assert response.status_code == 200, response.text
    assert response.json() == {"valid": True, "scenario": "base", "warnings": []}

    scenario["terminal_value_calculation"]["terminal_value"] *= 1.5
    response = client.post("/dcf/scenario/validate", json=scenario)
    assert response.status_code == 422
    assert "terminal value" in response.json()["error_message"]
    print_test(11, "Scenario Validation", True)


def test_dcf_wacc_at_minus_one():
    """Test 12: WACC of -100 % fails the analysis instead of crashing."""
    print_header("TEST 12: DCF WACC -100 %")

    scenarios = {
        name.value: dict(scenario.model_dump(), wacc=-1.0, terminal_growth=-1.5)
        for name, scenario in default_scenario_inputs().items()
    }
    response = client.post("/dcf", json=dict(DCF_REQUEST, valuationId="api-val-3", scenarios=scenarios))
    assert response.status_code == 422, response.text

    data = response.json()
    assert data["status"] == "failed"
    assert "-100%" in data["error_message"]
    assert client.get("/dcf/api-val-3").json()["status"] == "failed"
    print_test(12, "DCF WACC -100 % (422)", True)


def test_validate_scenario_wacc_at_minus_one():
    """Test 13: Upstream scenario with WACC of -100 % is rejected."""
    print_header("TEST 13: SCENARIO WACC -100 %")

    scenario = scenario_json()
    scenario["assumptions"]["wacc"] = -1.0
    scenario["terminal_value_calculation"]["wacc"] = -1.0
    response = client.post("/dcf/scenario/validate", json=scenario)
    assert response.status_code == 422, response.text
    assert "-100%" in response.json()["error_message"]
    print_test(13, "Scenario WACC -100 % (422)", True)


# ============================================================================
# Main Test Runner
# ============================================================================


def run_all_tests():
    """Run all tests in order."""
    print("\n" + "=" * 80)
    print("  ARVENTO VALUATION API - TEST SUITE")
    print("=" * 80)

    tests = [
        test_health_check,
        test_valuation_metrics,
        test_valuation_metrics_failed_period,
        test_valuation_metrics_no_periods,
        test_valuation_metrics_unknown_shape,
        test_market_data,
        test_market_data_rejects_negative_leverage,
        test_dcf_lifecycle,
        test_dcf_failed_analysis,
        test_dcf_unknown_id,
        test_validate_scenario,
        test_dcf_wacc_at_minus_one,
        test_validate_scenario_wacc_at_minus_one,
    ]

    passed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except AssertionError as e:
            print(f"❌ {test.__name__}: {e}")

    print("\n" + "=" * 80)
    print(f"  RESULTS: {passed}/{len(tests)} passed")
    print("=" * 80)
    return passed == len(tests)


if __name__ == "__main__":
    sys.exit(0 if run_all_tests() else 1)
