#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Multiplier selector: pick revenue, EV/EBIT, EV/EBITDA and P/E multiples from
industry, company size and EBITDA margin, with generated justification text.

The selection is table driven (see INDUSTRY_MULTIPLE_BUCKETS in config) and
pure: the same inputs always give the same multiples and the same text.
"""

from typing import Dict, Optional, Tuple

from ..data.models import MultipleEntry, ValuationMultiples
from ..utils import get_logger
from ..utils.config import (
    INDUSTRY_MULTIPLE_BUCKETS,
    GENERIC_MULTIPLES,
    LARGE_COMPANY_REVENUE,
    SMALL_COMPANY_REVENUE,
    HIGH_MARGIN_PCT,
    LOW_MARGIN_PCT,
    LARGE_COMPANY_ADJUSTMENT,
    SMALL_COMPANY_ADJUSTMENT,
    HIGH_MARGIN_ADJUSTMENT,
    LOW_MARGIN_ADJUSTMENT,
)

logger = get_logger(__name__)

GENERIC_BUCKET = "generic"

# ===== Justification templates =====

INDUSTRY_NOTES = {
    "technology": {
        "ev_ebit": "Technology companies carry higher multiples thanks to stronger growth expectations and scalability.",
        "ev_ebitda": "Technology EBITDA multiples are typically high (8-12x) because the business scales well.",
        "p_e": "Higher technology P/E multiples (12-20x) reflect investors' growth expectations.",
        "revenue_multiple": "Software and technology companies use higher revenue multiples (1.0-3.0x) due to high gross margins and growth potential.",
    },
    "services": {
        "ev_ebit": "For service businesses the multiple reflects a light balance sheet and moderate investment needs.",
        "ev_ebitda": "Service company EBITDA multiples (4-7x) reflect low capital requirements.",
        "p_e": "Service company P/E multiples (8-12x) rest on steady earnings and moderate growth.",
        "revenue_multiple": "Service company revenue multiples (0.8-1.5x) reflect a lighter cost structure.",
    },
    "manufacturing": {
        "ev_ebit": "Manufacturing multiples are moderate because of heavier investment needs and tighter competition.",
        "ev_ebitda": "EBITDA is a useful measure in manufacturing as it neutralizes differing depreciation policies.",
        "p_e": "Traditional production sectors trade at lower P/E multiples (6-10x) in a mature market.",
        "revenue_multiple": "Manufacturing revenue multiples (0.5-1.0x) are lower due to thinner margins and capital intensity.",
    },
    "construction": {
        "ev_ebit": "Construction uses lower multiples because the sector is cyclical and margins are thin.",
        "ev_ebitda": "Construction EBITDA multiples (3-5x) are low because of project risk.",
        "p_e": "Lower construction P/E multiples (5-8x) reflect cyclicality and lower margins.",
        "revenue_multiple": "Construction revenue multiples (0.3-0.7x) are low due to project-based, competitive markets.",
    },
    GENERIC_BUCKET: {
        "ev_ebit": "This multiple takes the company's industry and size into account.",
        "ev_ebitda": "This multiple suits companies with significant fixed-asset investments.",
        "p_e": "The P/E multiple reflects what investors are willing to pay for earnings.",
        "revenue_multiple": "A revenue multiple is especially useful for fast-growing or loss-making companies.",
    },
}

SIZE_NOTES = {
    "large": "Larger companies receive higher multiples because of their more established position.",
    "small": "The smallest companies receive more conservative multiples because of a higher risk profile.",
    "mid": "The multiple accounts for the company's size class.",
}

MARGIN_NOTES = {
    "high": "High profitability raises the multiple as investors value above-average earning power.",
    "low": "Modest profitability lowers the multiple as investors discount future earnings more cautiously.",
    "mid": "The company's profitability level is reflected in the multiple.",
}


def ebitda_margin(revenue: Optional[float], ebitda: Optional[float]) -> float:
    """EBITDA margin in percent; 0 when revenue is not positive."""
    revenue = revenue or 0.0
    if revenue <= 0:
        return 0.0
    return (ebitda or 0.0) / revenue * 100


def classify_industry(industry: Optional[str]) -> Tuple[str, Dict[str, float]]:
    """
    Match the industry against the bucket keywords, first hit wins.

    Returns:
        (bucket name, base multiples); generic bucket when nothing matches
    """
    name = (industry or "").lower()
    if name:
        for entry in INDUSTRY_MULTIPLE_BUCKETS:
            if any(kw in name for kw in entry["keywords"]):
                return entry["bucket"], dict(entry["multiples"])
    return GENERIC_BUCKET, dict(GENERIC_MULTIPLES)


def size_bracket(revenue: float) -> str:
    if revenue > LARGE_COMPANY_REVENUE:
        return "large"
    if revenue < SMALL_COMPANY_REVENUE:
        return "small"
    return "mid"


def margin_bracket(margin_pct: float) -> str:
    if margin_pct > HIGH_MARGIN_PCT:
        return "high"
    if margin_pct < LOW_MARGIN_PCT:
        return "low"
    return "mid"


def _apply(multiples: Dict[str, float], adjustment: Dict[str, float]) -> None:
    for key, delta in adjustment.items():
        multiples[key] += delta


def _fmt(value: float) -> str:
    return f"{value:g}"


def _justify(
    key: str, value: float, bucket: str, industry: str, size: str, margin: str
) -> str:
    note = INDUSTRY_NOTES[bucket][key]
    if key == "ev_ebit":
        subject = f"{industry} industry" if industry else "your industry"
        return (
            f"EV/EBIT {_fmt(value)}x is based on the general level of the {subject}. "
            f"{note} {SIZE_NOTES[size]} {MARGIN_NOTES[margin]}"
        )
    if key == "ev_ebitda":
        return (
            f"EV/EBITDA {_fmt(value)}x is a widely used method that captures operating "
            f"profitability before depreciation. {note} EBITDA shows the company's ability "
            f"to generate operating cash flow."
        )
    if key == "p_e":
        return (
            f"P/E {_fmt(value)}x relates market value to net income. {note} For SMEs the "
            f"P/E multiple must be used with care because owner salaries and discretionary "
            f"items affect the result."
        )
    prefix = f"{industry} " if industry else ""
    return (
        f"Revenue multiple {value:.1f}x is a simple way to value a {prefix}company when "
        f"earnings do not show its full potential. {note}"
    )


def select_multiples(
    industry: Optional[str], revenue: Optional[float], margin_pct: float
) -> ValuationMultiples:
    """
    Select valuation multiples for one period.

    Args:
        industry: Industry name (may be empty or unknown)
        revenue: Period revenue
        margin_pct: EBITDA margin in percent

    Returns:
        ValuationMultiples with justification text
    """
    industry_name = (industry or "").strip()
    revenue = revenue or 0.0

    bucket, multiples = classify_industry(industry_name)

    size = size_bracket(revenue)
    if size == "large":
        _apply(multiples, LARGE_COMPANY_ADJUSTMENT)
    elif size == "small":
        _apply(multiples, SMALL_COMPANY_ADJUSTMENT)

    margin = margin_bracket(margin_pct)
    if margin == "high":
        _apply(multiples, HIGH_MARGIN_ADJUSTMENT)
    elif margin == "low":
        _apply(multiples, LOW_MARGIN_ADJUSTMENT)

    logger.debug(
        f"Multiples for industry='{industry_name}' bucket={bucket} size={size} "
        f"margin={margin}: {multiples}"
    )

    return ValuationMultiples(**{
        key: MultipleEntry(
            multiple=value,
            justification=_justify(key, value, bucket, industry_name, size, margin),
        )
        for key, value in multiples.items()
    })
