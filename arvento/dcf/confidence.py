#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Confidence assessment: weighted 1-10 score from four sub-scores.
Weights and the sub-score tables live in config.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import DCFValidationError
from ..utils import get_logger
from ..utils.config import (
    CONFIDENCE_WEIGHTS,
    HISTORY_SCORES,
    DATA_QUALITY_SCORES,
    PERIOD_ERROR_PENALTY,
    INDUSTRY_STABILITY_SCORES,
    NORMALIZATION_SCORES,
    UNCERTAINTY_THRESHOLD,
    WEIGHT_TOLERANCE,
)
from .models import ConfidenceAssessment, ConfidenceFactors

logger = get_logger(__name__)

UNCERTAINTY_TEXT = {
    "historical_data_adequacy": "Limited financial history behind the projections",
    "financial_data_quality": "Market or financial data quality is reduced",
    "industry_stability": "Industry is volatile (high beta)",
    "normalization_impact": "Reported figures needed significant normalization",
}


def _clamp(score: float) -> float:
    return min(10.0, max(1.0, score))


def _at_least(value: float, table: Sequence[Tuple[float, float]]) -> float:
    """Score of the first row whose minimum is <= value (rows sorted high to low)."""
    for minimum, score in table:
        if value >= minimum:
            return score
    return table[-1][1]


def _at_most(value: float, table: Sequence[Tuple[float, float]]) -> float:
    """Score of the first row whose maximum is >= value (rows sorted low to high)."""
    for maximum, score in table:
        if value <= maximum:
            return score
    return table[-1][1]


def derive_factors(
    period_count: int,
    data_quality: str,
    period_errors: int,
    beta: float,
    normalization_adjustments: int,
) -> ConfidenceFactors:
    """Sub-scores from the policy tables."""
    quality = DATA_QUALITY_SCORES.get(data_quality, min(DATA_QUALITY_SCORES.values()))
    return ConfidenceFactors(
        historical_data_adequacy=_clamp(_at_least(period_count, HISTORY_SCORES)),
        financial_data_quality=_clamp(quality - PERIOD_ERROR_PENALTY * period_errors),
        industry_stability=_clamp(_at_most(beta, INDUSTRY_STABILITY_SCORES)),
        normalization_impact=_clamp(_at_most(normalization_adjustments, NORMALIZATION_SCORES)),
    )


def overall_score(factors: ConfidenceFactors, weights: Optional[Dict[str, float]] = None) -> float:
    """
    Weighted mean of the sub-scores, rounded to one decimal.

    Raises:
        DCFValidationError: If the weights do not sum to 1
    """
    weights = weights or CONFIDENCE_WEIGHTS
    total = sum(weights.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise DCFValidationError([f"confidence weights must sum to 1.0, got {total:.6f}"])
    values = factors.model_dump()
    score = sum(weights[name] * values[name] for name in weights)
    return round(_clamp(score), 1)


def _reliability(score: float) -> str:
    if score >= 7.5:
        return (
            f"High reliability ({score}/10): the valuation rests on adequate history "
            f"and good quality data."
        )
    if score >= 5.0:
        return (
            f"Moderate reliability ({score}/10): use the scenario range rather than "
            f"a single point estimate."
        )
    return (
        f"Low reliability ({score}/10): treat the valuation as indicative only and "
        f"verify the key assumptions."
    )


def assess_confidence(
    factors: Optional[ConfidenceFactors] = None,
    period_count: int = 0,
    data_quality: str = "medium",
    period_errors: int = 0,
    beta: float = 1.0,
    normalization_adjustments: int = 0,
    weights: Optional[Dict[str, float]] = None,
) -> ConfidenceAssessment:
    """
    Build the confidence assessment.

    Args:
        factors: Caller-supplied sub-scores; derived from the inputs below when None
        period_count: Usable historical periods
        data_quality: Market data quality ("high" or "medium")
        period_errors: Periods that failed to parse or value
        beta: Industry beta
        normalization_adjustments: Number of adjustments made to reported figures
        weights: Override for CONFIDENCE_WEIGHTS

    Returns:
        ConfidenceAssessment
    """
    if factors is None:
        factors = derive_factors(period_count, data_quality, period_errors, beta, normalization_adjustments)

    score = overall_score(factors, weights)
    uncertainties: List[str] = [
        UNCERTAINTY_TEXT[name]
        for name, value in factors.model_dump().items()
        if value < UNCERTAINTY_THRESHOLD
    ]
    logger.info(f"Confidence score {score} (factors={factors.model_dump()})")

    return ConfidenceAssessment(
        overall_confidence_score=score,
        confidence_factors=factors,
        key_uncertainties=uncertainties,
        reliability_statement=_reliability(score),
    )
