"""DCF scenario engine, validation, sensitivity and confidence."""

from .models import (
    ScenarioName, DCFStatus, ScenarioInput, ScenarioAssumptions, DCFRequest, DCFScenario,
    SensitivityAnalysis, TornadoEntry, ConfidenceFactors, ConfidenceAssessment, DCFStructuredData,
)
from .logic import discount_factor, terminal_value, project_scenario, build_scenarios, probability_weighted_value
from .validation import validate_assumptions, validate_scenario, validate_weights
from .sensitivity import run_sensitivity, tornado_ranking
from .confidence import assess_confidence
from .service import InMemoryAnalysisStore, run_dcf_analysis

__all__ = [
    "ScenarioName", "DCFStatus", "ScenarioInput", "ScenarioAssumptions", "DCFRequest", "DCFScenario",
    "SensitivityAnalysis", "TornadoEntry", "ConfidenceFactors", "ConfidenceAssessment", "DCFStructuredData",
    "discount_factor", "terminal_value", "project_scenario", "build_scenarios", "probability_weighted_value",
    "validate_assumptions", "validate_scenario", "validate_weights",
    "run_sensitivity", "tornado_ranking", "assess_confidence",
    "InMemoryAnalysisStore", "run_dcf_analysis",
]
