#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for the DCF scenario engine: projection, terminal value, validation,
scenario weights, sensitivity, confidence and the analysis lifecycle.
"""

import sys

import pytest
import requests

sys.path.insert(0, ".")

from conftest import FakeSession, make_context
from arvento.dcf.confidence import assess_confidence, derive_factors, overall_score
from arvento.dcf.logic import (
    build_scenarios,
    discount_factor,
    probability_weighted_value,
    project_scenario,
    terminal_value,
)
from arvento.dcf.models import (
    ConfidenceFactors,
    DCFRequest,
    DCFStatus,
    DCFStructuredData,
    ScenarioAssumptions,
    ScenarioInput,
    ScenarioName,
    default_scenario_inputs,
)
from arvento.dcf.sensitivity import run_sensitivity, shift_assumption, tornado_ranking
from arvento.dcf.service import InMemoryAnalysisStore, run_dcf_analysis
from arvento.dcf.validation import validate_assumptions, validate_scenario, validate_weights
from arvento.errors import AnalysisNotFound, DCFValidationError, InvalidStatusTransition

# ============================================================================
# Test Data
# ============================================================================


def flat(value):
    return [value] * 5


def assumptions(**overrides):
    values = dict(
        revenue_growth=flat(0.10),
        ebitda_margin=flat(0.20),
        capex_percent=flat(0.03),
        working_capital_percent=flat(0.10),
        depreciation_percent=flat(0.02),
        terminal_growth=0.02,
        wacc=0.10,
        tax_rate=0.20,
    )
    values.update(overrides)
    return ScenarioAssumptions(**values)


BASE = assumptions()
SCENARIO_SET = {
    ScenarioName.PESSIMISTIC: assumptions(revenue_growth=flat(0.0), ebitda_margin=flat(0.12)),
    ScenarioName.BASE: BASE,
    ScenarioName.OPTIMISTIC: assumptions(revenue_growth=flat(0.15), ebitda_margin=flat(0.25)),
}


@pytest.fixture
def base_scenario():
    return project_scenario(ScenarioName.BASE, BASE, 1_000_000)


# ============================================================================
# Building blocks
# ============================================================================


def test_terminal_value_gordon_growth():
    assert terminal_value(500_000, 0.02, 0.10) == pytest.approx(6_375_000)


@pytest.mark.parametrize("growth,wacc", [(0.10, 0.10), (0.12, 0.10)])
def test_terminal_value_requires_wacc_above_growth(growth, wacc):
    with pytest.raises(DCFValidationError):
        terminal_value(500_000, growth, wacc)


def test_discount_factor():
    assert discount_factor(0.10, 1) == pytest.approx(1 / 1.1)
    assert discount_factor(0.10, 0) == 1.0


# ============================================================================
# Projection
# ============================================================================


class TestProjection:

    def test_first_year(self, base_scenario):
        y1 = base_scenario.detailed_calculations.yearly_breakdown[0]

        assert y1.revenue == pytest.approx(1_100_000)
        assert y1.ebitda == pytest.approx(220_000)
        assert y1.depreciation == pytest.approx(22_000)
        assert y1.nopat == pytest.approx(158_400)
        assert y1.capex == pytest.approx(33_000)
        assert y1.working_capital_change == pytest.approx(10_000)
        assert y1.free_cash_flow == pytest.approx(137_400)
        assert y1.present_value == pytest.approx(124_909.09, abs=0.01)

    def test_five_years(self, base_scenario):
        assert len(base_scenario.projections.revenue) == 5
        assert base_scenario.projections.revenue[-1] == pytest.approx(1_000_000 * 1.1 ** 5)

    def test_bridge(self, base_scenario):
        bridge = base_scenario.valuation_bridge

        # Constant growth makes every year's PV equal
        assert bridge.sum_pv_fcf == pytest.approx(5 * 124_909.0909, rel=1e-6)
        assert bridge.terminal_value_pv == pytest.approx(124_909.0909 * 1.02 / 0.08, rel=1e-6)
        assert bridge.enterprise_value == pytest.approx(bridge.sum_pv_fcf + bridge.terminal_value_pv)
        assert bridge.equity_value == bridge.enterprise_value

    def test_net_debt_reduces_equity(self):
        scenario = project_scenario(ScenarioName.BASE, BASE, 1_000_000, net_debt=250_000)
        bridge = scenario.valuation_bridge
        assert bridge.equity_value == pytest.approx(bridge.enterprise_value - 250_000)

    def test_terminal_value_round_trip(self, base_scenario):
        tv = base_scenario.terminal_value_calculation
        last = base_scenario.detailed_calculations.yearly_breakdown[-1]

        assert tv.terminal_fcf == last.free_cash_flow
        assert tv.terminal_value == pytest.approx(tv.terminal_fcf * 1.02 / 0.08)
        assert tv.present_value == pytest.approx(tv.terminal_value * tv.discount_factor)

    def test_base_working_capital_override(self):
        scenario = project_scenario(ScenarioName.BASE, BASE, 1_000_000, base_working_capital=60_000)
        y1 = scenario.detailed_calculations.yearly_breakdown[0]
        assert y1.working_capital_change == pytest.approx(50_000)

    def test_wacc_not_above_growth_raises(self):
        with pytest.raises(DCFValidationError) as exc:
            project_scenario(ScenarioName.BASE, assumptions(wacc=0.02), 1_000_000)
        assert exc.value.scenario == "base"

    @pytest.mark.parametrize("wacc", [-1.0, -1.2])
    def test_wacc_at_or_below_minus_one_raises(self, wacc):
        with pytest.raises(DCFValidationError) as exc:
            project_scenario(ScenarioName.BASE, assumptions(wacc=wacc, terminal_growth=-1.5), 1_000_000)
        assert "-100%" in exc.value.errors[0]

    def test_build_all_scenarios(self):
        scenarios = build_scenarios(SCENARIO_SET, 1_000_000, 100_000)

        assert set(scenarios) == set(ScenarioName)
        values = {n: s.projections.equity_value for n, s in scenarios.items()}
        assert values[ScenarioName.PESSIMISTIC] < values[ScenarioName.BASE] < values[ScenarioName.OPTIMISTIC]

    def test_build_requires_every_scenario(self):
        with pytest.raises(DCFValidationError):
            build_scenarios({ScenarioName.BASE: BASE}, 1_000_000)


# ============================================================================
# Validation
# ============================================================================


class TestValidation:

    def test_engine_scenario_passes(self, base_scenario):
        assert validate_scenario(base_scenario) == []

    def test_tampered_terminal_value_fails(self, base_scenario):
        tv = base_scenario.terminal_value_calculation
        tampered = base_scenario.model_copy(update={
            "terminal_value_calculation": tv.model_copy(update={"terminal_value": tv.terminal_value * 1.2})
        })
        with pytest.raises(DCFValidationError) as exc:
            validate_scenario(tampered)
        assert any("terminal value" in e for e in exc.value.errors)

    def test_tampered_bridge_fails(self, base_scenario):
        bridge = base_scenario.valuation_bridge
        tampered = base_scenario.model_copy(update={
            "valuation_bridge": bridge.model_copy(update={"equity_value": bridge.equity_value + 500_000})
        })
        with pytest.raises(DCFValidationError):
            validate_scenario(tampered)

    def test_negative_revenue_fails(self):
        scenario = project_scenario(ScenarioName.PESSIMISTIC, assumptions(revenue_growth=flat(-1.5)), 1_000_000)
        with pytest.raises(DCFValidationError) as exc:
            validate_scenario(scenario)
        assert any("negative" in e for e in exc.value.errors)

    def test_assumption_errors_are_collected(self):
        bad = assumptions(revenue_growth=[0.1] * 4, tax_rate=1.0, wacc=0.02)
        with pytest.raises(DCFValidationError) as exc:
            validate_assumptions(ScenarioName.BASE, bad, 0)
        assert len(exc.value.errors) == 4

    def test_wacc_at_minus_one_fails(self):
        with pytest.raises(DCFValidationError) as exc:
            validate_assumptions(ScenarioName.BASE, assumptions(wacc=-1.0, terminal_growth=-1.5), 1_000_000)
        assert exc.value.errors == ["WACC (-1.0000) must be greater than -100%"]

    def test_upstream_scenario_with_wacc_at_minus_one_fails(self, base_scenario):
        tampered = base_scenario.model_copy(update={
            "assumptions": base_scenario.assumptions.model_copy(update={"wacc": -1.0, "terminal_growth": -1.5})
        })
        with pytest.raises(DCFValidationError):
            validate_scenario(tampered, check_assumptions=False)

    def test_non_finite_cash_flow_fails(self, base_scenario):
        rows = list(base_scenario.detailed_calculations.yearly_breakdown)
        rows[2] = rows[2].model_copy(update={"free_cash_flow": float("inf"), "present_value": float("inf")})
        tampered = base_scenario.model_copy(update={
            "detailed_calculations": base_scenario.detailed_calculations.model_copy(update={"yearly_breakdown": rows})
        })
        with pytest.raises(DCFValidationError) as exc:
            validate_scenario(tampered)
        assert any("not finite" in e for e in exc.value.errors)

    def test_non_finite_assumption_fails(self):
        with pytest.raises(DCFValidationError):
            validate_assumptions(ScenarioName.BASE, assumptions(ebitda_margin=[0.2, 0.2, float("nan"), 0.2, 0.2]), 1.0)

    def test_unusual_values_only_warn(self):
        warnings = validate_assumptions(
            ScenarioName.OPTIMISTIC, assumptions(revenue_growth=flat(2.5), wacc=0.35), 1_000_000
        )
        assert len(warnings) == 6
        assert all(w.startswith("optimistic:") for w in warnings)


# ============================================================================
# Scenario weights
# ============================================================================


class TestWeights:

    def test_valid_weights(self):
        resolved = validate_weights({"pessimistic": 0.25, "base": 0.5, "optimistic": 0.25})
        assert resolved[ScenarioName.BASE] == 0.5

    def test_degenerate_weights_allowed(self):
        validate_weights({ScenarioName.PESSIMISTIC: 0.0, ScenarioName.BASE: 1.0, ScenarioName.OPTIMISTIC: 0.0})

    @pytest.mark.parametrize("weights", [
        {"pessimistic": 0.25, "base": 0.5, "optimistic": 0.3},
        {"pessimistic": -0.25, "base": 1.0, "optimistic": 0.25},
        {"base": 1.0},
        {"pessimistic": 0.25, "base": 0.5, "bull": 0.25},
    ])
    def test_invalid_weights(self, weights):
        with pytest.raises(DCFValidationError):
            validate_weights(weights)

    @pytest.mark.parametrize("weights", [
        {"pessimistic": 0.25, "base": 0.5, "optimistic": 0.25},
        {"pessimistic": 1.0, "base": 0.0, "optimistic": 0.0},
        {"pessimistic": 0.1, "base": 0.2, "optimistic": 0.7},
    ])
    def test_weighted_value_within_range(self, weights):
        scenarios = build_scenarios(SCENARIO_SET, 1_000_000)
        values = [s.projections.equity_value for s in scenarios.values()]

        weighted = probability_weighted_value(scenarios, weights)
        assert min(values) <= weighted <= max(values)


# ============================================================================
# Sensitivity
# ============================================================================


class TestSensitivity:

    def test_tornado_sorted_by_impact(self):
        analysis = run_sensitivity(BASE, 1_000_000)
        impacts = [abs(row.percentage_impact) for row in analysis.tornado_chart_data]

        assert impacts == sorted(impacts, reverse=True)
        assert len(analysis.tornado_chart_data) == 6
        assert analysis.most_sensitive_parameters == [r.parameter for r in analysis.tornado_chart_data[:3]]

    def test_higher_wacc_lowers_value(self):
        analysis = run_sensitivity(BASE, 1_000_000)
        wacc = analysis.parameters["wacc"]

        assert wacc.impact_plus < 0
        assert wacc.impact_minus > 0

    def test_shift_moves_every_year(self):
        shifted = shift_assumption(BASE, "working_capital_percent", 0.01)
        assert shifted.working_capital_percent == pytest.approx(flat(0.11))
        assert BASE.working_capital_percent == flat(0.10)

    def test_invalid_perturbations_are_skipped(self):
        analysis = run_sensitivity(assumptions(wacc=0.03, terminal_growth=0.025), 1_000_000)

        assert set(analysis.skipped_parameters) == {"wacc", "terminal_growth"}
        assert "wacc" not in analysis.parameters
        assert "revenue_growth" in analysis.parameters

    def test_zero_base_value_has_no_percentage(self):
        zero = assumptions(
            ebitda_margin=flat(0.0), depreciation_percent=flat(0.0),
            capex_percent=flat(0.0), working_capital_percent=flat(0.0),
        )
        analysis = run_sensitivity(zero, 1_000_000)

        assert analysis.base_equity_value == pytest.approx(0.0)
        assert analysis.parameters["wacc"].impact_percentage_plus is None
        # rows without a percentage sort last
        assert tornado_ranking(list(analysis.parameters.values()))[-1].percentage_impact is None

    def test_every_parameter_moves_value(self):
        analysis = run_sensitivity(assumptions(revenue_growth=flat(0.0)), 1_000_000)

        assert analysis.skipped_parameters == []
        for entry in analysis.parameters.values():
            assert entry.impact_plus != pytest.approx(0.0), entry.parameter
            assert entry.impact_minus != pytest.approx(0.0), entry.parameter

    def test_working_capital_shift_hits_first_year_only(self):
        # flat revenue: +1 pp working capital is a one-off 10 000 outflow in year 1
        analysis = run_sensitivity(assumptions(revenue_growth=flat(0.0)), 1_000_000)
        wc = analysis.parameters["working_capital_efficiency"]

        assert wc.impact_plus == pytest.approx(-10_000 / 1.1)
        assert wc.impact_minus == pytest.approx(10_000 / 1.1)

    def test_explicit_base_working_capital_is_kept(self):
        analysis = run_sensitivity(assumptions(revenue_growth=flat(0.0)), 1_000_000, base_working_capital=100_000)
        implied = run_sensitivity(assumptions(revenue_growth=flat(0.0)), 1_000_000)

        explicit_wc = analysis.parameters["working_capital_efficiency"]
        implied_wc = implied.parameters["working_capital_efficiency"]
        assert explicit_wc.impact_plus == pytest.approx(implied_wc.impact_plus)
        assert explicit_wc.impact_minus == pytest.approx(implied_wc.impact_minus)

    def test_wacc_near_minus_one_is_skipped(self):
        analysis = run_sensitivity(assumptions(wacc=-0.995, terminal_growth=-0.999), 1_000_000)
        assert "wacc" in analysis.skipped_parameters


# ============================================================================
# Confidence
# ============================================================================


class TestConfidence:

    def test_weighted_score(self):
        factors = ConfidenceFactors(
            historical_data_adequacy=8, financial_data_quality=6,
            industry_stability=7, normalization_impact=5,
        )
        assert overall_score(factors) == pytest.approx(6.6)

    def test_derived_factors(self):
        factors = derive_factors(5, "high", 0, 1.0, 1)

        assert factors.historical_data_adequacy == 9.0
        assert factors.financial_data_quality == 8.0
        assert factors.industry_stability == 7.5
        assert factors.normalization_impact == 7.0

        assessment = assess_confidence(factors)
        assert assessment.overall_confidence_score == pytest.approx(8.0)
        assert assessment.key_uncertainties == []
        assert assessment.reliability_statement.startswith("High reliability")

    def test_weak_inputs_list_uncertainties(self):
        assessment = assess_confidence(
            period_count=0, data_quality="medium", period_errors=2, beta=1.8, normalization_adjustments=10
        )

        assert assessment.overall_confidence_score == pytest.approx(3.2)
        assert len(assessment.key_uncertainties) == 4
        assert assessment.reliability_statement.startswith("Low reliability")

    def test_weights_must_sum_to_one(self):
        factors = derive_factors(3, "high", 0, 1.0, 0)
        bad = {
            "historical_data_adequacy": 0.5, "financial_data_quality": 0.3,
            "industry_stability": 0.2, "normalization_impact": 0.2,
        }
        with pytest.raises(DCFValidationError):
            overall_score(factors, bad)

    @pytest.mark.parametrize("count,errors,beta,adjustments", [
        (0, 5, 3.0, 50), (10, 0, 0.5, 0), (2, 1, 1.2, 3),
    ])
    def test_score_stays_in_range(self, count, errors, beta, adjustments):
        score = assess_confidence(
            period_count=count, period_errors=errors, beta=beta, normalization_adjustments=adjustments
        ).overall_confidence_score
        assert 1.0 <= score <= 10.0


# ============================================================================
# Analysis service and lifecycle
# ============================================================================


def request(**overrides):
    values = dict(valuation_id="val-1", company_id="comp-1", user_id="user-1", base_revenue=1_000_000)
    values.update(overrides)
    return DCFRequest(**values)


class TestService:

    def test_completed_analysis(self, offline_context):
        store = InMemoryAnalysisStore()
        record = run_dcf_analysis(request(), context=offline_context, store=store)

        assert record.status is DCFStatus.COMPLETED
        assert record.completed_at is not None
        assert record.market_data.wacc == pytest.approx(0.1074, abs=1e-4)
        assert record.market_data.recommended_terminal_growth == pytest.approx(0.02)

        base = record.scenario_projections[ScenarioName.BASE]
        assert base.assumptions.wacc == record.market_data.wacc
        assert base.assumptions.terminal_growth == pytest.approx(0.02)

        summary = record.valuation_summary
        rng = summary.equity_value_range
        assert rng.low <= summary.probability_weighted_valuation <= rng.high
        assert summary.sensitivity_analysis.base_equity_value == pytest.approx(rng.base)
        assert 1.0 <= record.confidence_assessment.overall_confidence_score <= 10.0
        assert store.get("val-1") == record

    def test_wacc_below_terminal_growth_fails(self, offline_context):
        scenarios = default_scenario_inputs()
        scenarios[ScenarioName.BASE] = scenarios[ScenarioName.BASE].model_copy(
            update={"wacc": 0.02, "terminal_growth": 0.03}
        )
        record = run_dcf_analysis(request(scenarios=scenarios), context=offline_context)

        assert record.status is DCFStatus.FAILED
        assert "WACC" in record.error_message
        assert record.scenario_projections is None
        assert record.valuation_summary is None
        assert record.confidence_assessment is None

    def test_invalid_weights_fail(self, offline_context):
        weights = {ScenarioName.PESSIMISTIC: 0.5, ScenarioName.BASE: 0.5, ScenarioName.OPTIMISTIC: 0.5}
        record = run_dcf_analysis(request(scenario_weights=weights), context=offline_context)

        assert record.status is DCFStatus.FAILED
        assert "sum to 1.0" in record.error_message

    def test_missing_base_revenue_fails(self, offline_context):
        record = run_dcf_analysis(request(base_revenue=None), context=offline_context)

        assert record.status is DCFStatus.FAILED
        assert "base revenue" in record.error_message

    def test_wacc_at_minus_one_fails(self, offline_context):
        store = InMemoryAnalysisStore()
        scenarios = {
            name: scenario.model_copy(update={"wacc": -1.0, "terminal_growth": -1.5})
            for name, scenario in default_scenario_inputs().items()
        }
        record = run_dcf_analysis(request(scenarios=scenarios), context=offline_context, store=store)

        assert record.status is DCFStatus.FAILED
        assert "-100%" in record.error_message
        assert store.get("val-1").status is DCFStatus.FAILED

    def test_unexpected_error_is_recorded(self, offline_context, monkeypatch):
        def crash(*args, **kwargs):
            raise RuntimeError("worker died")

        monkeypatch.setattr("arvento.dcf.service.build_scenarios", crash)
        store = InMemoryAnalysisStore()

        with pytest.raises(RuntimeError):
            run_dcf_analysis(request(), context=offline_context, store=store)

        stored = store.get("val-1")
        assert stored.status is DCFStatus.FAILED
        assert "RuntimeError: worker died" in stored.error_message

    def test_default_context_is_closed(self, monkeypatch):
        session = FakeSession(error=requests.ConnectionError("offline"))
        monkeypatch.setattr("arvento.dcf.service.ValuationContext", lambda: make_context(session))

        record = run_dcf_analysis(request())

        assert record.status is DCFStatus.COMPLETED
        assert session.closed

    def test_base_revenue_from_latest_period(self, offline_context):
        periods = [
            {"end_date": "2022-12-31", "income_statement": {"revenue": 800_000}},
            {"end_date": "2023-12-31", "income_statement": {"revenue": 900_000},
             "balance_sheet": {"equity": 300_000, "interest_bearing_debt": 150_000, "cash": 30_000}},
        ]
        record = run_dcf_analysis(request(base_revenue=None, periods=periods), context=offline_context)

        base = record.scenario_projections[ScenarioName.BASE]
        assert base.detailed_calculations.base_revenue == 900_000
        assert base.valuation_bridge.net_debt == pytest.approx(120_000)

    def test_rationale_is_carried(self, offline_context):
        scenarios = default_scenario_inputs()
        scenarios[ScenarioName.OPTIMISTIC] = scenarios[ScenarioName.OPTIMISTIC].model_copy(
            update={"rationale": "New export market"}
        )
        record = run_dcf_analysis(request(scenarios=scenarios), context=offline_context)
        assert record.scenario_projections[ScenarioName.OPTIMISTIC].rationale == "New export market"

    def test_finished_analysis_cannot_rerun(self, offline_context):
        store = InMemoryAnalysisStore()
        run_dcf_analysis(request(), context=offline_context, store=store)

        with pytest.raises(InvalidStatusTransition):
            run_dcf_analysis(request(), context=offline_context, store=store)

    def test_unknown_analysis(self):
        with pytest.raises(AnalysisNotFound):
            InMemoryAnalysisStore().get("missing")


class TestLifecycle:

    def test_single_transition(self, offline_context):
        record = DCFStructuredData.start("v", "c", "u", offline_context.now())
        assert record.status is DCFStatus.PROCESSING

        failed = record.fail("boom", offline_context.now())
        assert failed.status is DCFStatus.FAILED
        assert record.status is DCFStatus.PROCESSING

        with pytest.raises(InvalidStatusTransition):
            failed.fail("again", offline_context.now())

    def test_scenario_input_accepts_rates(self):
        scenario = ScenarioInput(
            revenue_growth=flat(0.05), ebitda_margin=flat(0.1),
            capex_percent=flat(0.03), working_capital_percent=flat(0.1),
            wacc=0.09,
        )
        assert scenario.terminal_growth is None
        assert scenario.wacc == 0.09
