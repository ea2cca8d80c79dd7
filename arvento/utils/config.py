#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration module: centralize all environment variables, defaults and policy tables.
Supports easy overrides without modifying code.

Policy tables (industry multiples, betas, size premium brackets, confidence
weights) live here as data so the calculation modules stay table-driven.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

# ========== DATA FILE PATHS ==========
BASE_DIR = Path(__file__).parent.parent.parent.resolve()
DATA_DIR = BASE_DIR / "Data"

DOCUMENT_PATH = os.getenv(
    "ARVENTO_DOCUMENT",
    str(DATA_DIR / "financial_document.json")
)

# ========== MARKET DATA ==========
ECB_YIELD_URL = os.getenv(
    "ECB_YIELD_URL",
    "https://data-api.ecb.europa.eu/service/data/YC/B.U2.EUR.4F.G_N_A.SV_C_YM.SR_10Y"
)
ECB_TIMEOUT_SECONDS = float(os.getenv("ECB_TIMEOUT_SECONDS", "5"))

FALLBACK_RISK_FREE_RATE = float(os.getenv("FALLBACK_RISK_FREE_RATE", "0.025"))
INFLATION_EXPECTATION = float(os.getenv("INFLATION_EXPECTATION", "0.02"))  # ECB target

MARKET_RISK_PREMIUM = float(os.getenv("MARKET_RISK_PREMIUM", "0.055"))
CREDIT_SPREAD = float(os.getenv("CREDIT_SPREAD", "0.015"))
DEFAULT_DEBT_TO_EQUITY = float(os.getenv("DEFAULT_DEBT_TO_EQUITY", "0.3"))
DEFAULT_TAX_RATE = float(os.getenv("DEFAULT_TAX_RATE", "0.20"))  # Finnish corporate tax
DEFAULT_BETA = float(os.getenv("DEFAULT_BETA", "1.0"))

# Terminal growth is capped at this share of the risk-free rate
TERMINAL_GROWTH_RF_RATIO = float(os.getenv("TERMINAL_GROWTH_RF_RATIO", "0.8"))

# (upper revenue bound, premium); first bracket whose bound exceeds revenue wins
SIZE_PREMIUM_BRACKETS = [
    (5_000_000, 0.05),
    (10_000_000, 0.04),
    (50_000_000, 0.025),
    (100_000_000, 0.01),
]

INDUSTRY_BETAS = {
    "technology": 1.3,
    "software": 1.4,
    "saas": 1.5,
    "biotech": 1.8,
    "pharma": 1.1,
    "healthcare": 0.9,
    "utilities": 0.6,
    "consumer_goods": 1.0,
    "manufacturing": 1.2,
    "real_estate": 1.3,
    "financial_services": 1.4,
    "energy": 1.5,
    "retail": 1.2,
    "telecommunications": 0.8,
}

# ========== VALUATION MULTIPLES ==========
# Checked in order, first keyword hit wins. Keywords are matched as substrings
# of the lower-cased industry name (Finnish and English).
INDUSTRY_MULTIPLE_BUCKETS = [
    {
        "bucket": "technology",
        "keywords": ["teknologia", "ohjelmisto", "it", "software", "technology"],
        "multiples": {"revenue_multiple": 1.5, "ev_ebit": 12, "ev_ebitda": 10, "p_e": 15},
    },
    {
        "bucket": "services",
        "keywords": ["palvelu", "konsultointi", "service", "consulting"],
        "multiples": {"revenue_multiple": 1.0, "ev_ebit": 7, "ev_ebitda": 5, "p_e": 9},
    },
    {
        "bucket": "manufacturing",
        "keywords": ["valmistus", "tuotanto", "manufacturing", "production"],
        "multiples": {"revenue_multiple": 0.7, "ev_ebit": 6, "ev_ebitda": 5, "p_e": 8},
    },
    {
        "bucket": "construction",
        "keywords": ["rakennus", "construction"],
        "multiples": {"revenue_multiple": 0.5, "ev_ebit": 5, "ev_ebitda": 4, "p_e": 7},
    },
]

GENERIC_MULTIPLES = {"revenue_multiple": 0.8, "ev_ebit": 8, "ev_ebitda": 6, "p_e": 10}

LARGE_COMPANY_REVENUE = 10_000_000
SMALL_COMPANY_REVENUE = 1_000_000
HIGH_MARGIN_PCT = 20.0
LOW_MARGIN_PCT = 5.0

LARGE_COMPANY_ADJUSTMENT = {"ev_ebit": 2, "ev_ebitda": 1, "p_e": 2}
SMALL_COMPANY_ADJUSTMENT = {"ev_ebit": -1, "ev_ebitda": -1, "p_e": -1}
HIGH_MARGIN_ADJUSTMENT = {"ev_ebit": 1, "ev_ebitda": 1}
LOW_MARGIN_ADJUSTMENT = {"ev_ebit": -1, "ev_ebitda": -1}

# ========== DCF DEFAULTS ==========
PROJECTION_YEARS = 5
DEFAULT_DEPRECIATION_PCT = float(os.getenv("DEFAULT_DEPRECIATION_PCT", "0.02"))  # of revenue

DEFAULT_SCENARIO_WEIGHTS = {
    "pessimistic": float(os.getenv("WEIGHT_PESSIMISTIC", "0.25")),
    "base": float(os.getenv("WEIGHT_BASE", "0.50")),
    "optimistic": float(os.getenv("WEIGHT_OPTIMISTIC", "0.25")),
}
WEIGHT_TOLERANCE = 1e-6

# Used by the CLI and as request defaults when the caller omits assumptions
DEFAULT_SCENARIO_ASSUMPTIONS = {
    "pessimistic": {"revenue_growth": 0.00, "ebitda_margin": 0.08, "capex_percent": 0.04, "working_capital_percent": 0.12},
    "base": {"revenue_growth": 0.04, "ebitda_margin": 0.12, "capex_percent": 0.03, "working_capital_percent": 0.10},
    "optimistic": {"revenue_growth": 0.08, "ebitda_margin": 0.15, "capex_percent": 0.03, "working_capital_percent": 0.08},
}

# Sensitivity steps (decimal)
SENSITIVITY_STEP = 0.01
TERMINAL_GROWTH_SENSITIVITY_STEP = 0.005
MOST_SENSITIVE_COUNT = 3

# ========== DCF VALIDATION ==========
# Hard limits; breaking one fails the run
MAX_TAX_RATE = 1.0
# Soft limits; breaking one only produces a warning
GROWTH_WARNING_RANGE = (-0.50, 2.00)
MARGIN_WARNING_RANGE = (-0.50, 0.80)
WACC_WARNING_RANGE = (0.03, 0.30)
TERMINAL_GROWTH_WARNING_RANGE = (-0.02, 0.06)

# Relative tolerances for consistency checks on complete scenarios
REVENUE_TOLERANCE = 0.05
EBITDA_TOLERANCE = 0.05
TERMINAL_VALUE_TOLERANCE = 0.05
DISCOUNT_FACTOR_TOLERANCE = 0.01
PRESENT_VALUE_TOLERANCE = 0.01
BRIDGE_TOLERANCE = 0.01

# ========== CONFIDENCE POLICY ==========
CONFIDENCE_WEIGHTS = {
    "historical_data_adequacy": float(os.getenv("CONF_WEIGHT_HISTORY", "0.30")),
    "financial_data_quality": float(os.getenv("CONF_WEIGHT_QUALITY", "0.30")),
    "industry_stability": float(os.getenv("CONF_WEIGHT_INDUSTRY", "0.20")),
    "normalization_impact": float(os.getenv("CONF_WEIGHT_NORMALIZATION", "0.20")),
}

# (minimum periods, score)
HISTORY_SCORES = [(5, 9.0), (3, 7.5), (2, 6.0), (1, 4.0), (0, 2.0)]
DATA_QUALITY_SCORES = {"high": 8.0, "medium": 6.0}
PERIOD_ERROR_PENALTY = 1.5
# (maximum beta, score)
INDUSTRY_STABILITY_SCORES = [(0.8, 8.5), (1.1, 7.5), (1.4, 6.0), (99.0, 4.5)]
# (maximum adjustment count, score)
NORMALIZATION_SCORES = [(0, 8.0), (2, 7.0), (5, 5.5), (999, 4.0)]
UNCERTAINTY_THRESHOLD = 5.0

# ========== LOGGING CONFIGURATION ==========
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "%(asctime)s [%(levelname)s] %(name)s: %(message)s")

# ========== API CONFIGURATION ==========
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))
API_RELOAD = os.getenv("API_RELOAD", "False").lower() == "true"

if __name__ == "__main__":
    print("=" * 60)
    print("Configuration Summary")
    print("=" * 60)
    print(f"ECB URL: {ECB_YIELD_URL} (timeout {ECB_TIMEOUT_SECONDS}s)")
    print(f"Fallback risk-free rate: {FALLBACK_RISK_FREE_RATE}")
    print(f"Market risk premium: {MARKET_RISK_PREMIUM}")
    print(f"Credit spread: {CREDIT_SPREAD}")
    print(f"Default D/E: {DEFAULT_DEBT_TO_EQUITY}, tax: {DEFAULT_TAX_RATE}")
    print(f"Scenario weights: {DEFAULT_SCENARIO_WEIGHTS}")
    print(f"Confidence weights: {CONFIDENCE_WEIGHTS}")
    print(f"Log Level: {LOG_LEVEL}")
    print(f"API: {API_HOST}:{API_PORT}")
    print("=" * 60)
