#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Document loading module: classify a parsed financial document once and
flatten it into a typed list of FinancialPeriod objects.

Supported shapes:
  MULTI_DOCUMENT  {"documents": [{"financial_periods": [...]}, ...]}
  SINGLE_DOCUMENT {"financial_periods": [...]}
  PERIOD_LIST     [{...period...}, ...]

A company block ("company" or "company_info") next to the periods is
returned as CompanyInfo.
"""

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..errors import MissingDataError
from ..utils import get_logger
from .models import CompanyInfo, FinancialPeriod

logger = get_logger(__name__)


class DocumentShape(str, Enum):
    MULTI_DOCUMENT = "multi_document"
    SINGLE_DOCUMENT = "single_document"
    PERIOD_LIST = "period_list"


@dataclass
class ResolvedDocument:
    shape: DocumentShape
    periods: List[FinancialPeriod]
    company: Optional[CompanyInfo] = None


def detect_shape(raw: Any) -> DocumentShape:
    """
    Classify the raw document.

    Raises:
        MissingDataError: If the document matches no known shape
    """
    if isinstance(raw, list):
        return DocumentShape.PERIOD_LIST
    if isinstance(raw, dict):
        if isinstance(raw.get("documents"), list):
            return DocumentShape.MULTI_DOCUMENT
        if isinstance(raw.get("financial_periods"), list):
            return DocumentShape.SINGLE_DOCUMENT
    raise MissingDataError(
        f"Unrecognized document shape ({type(raw).__name__}); expected "
        f"'documents', 'financial_periods' or a list of periods."
    )


def _flatten_period(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Lift nested period dates ({"period": {...}}) to the top level."""
    flat = dict(raw)
    nested = flat.pop("period", None)
    if isinstance(nested, dict):
        for key in ("start_date", "end_date", "description"):
            if key in nested and key not in flat:
                flat[key] = nested[key]
    # Dates arrive as "" from some extractors
    for key in ("start_date", "end_date"):
        if flat.get(key) == "":
            flat[key] = None
    return flat


def parse_period(raw: Any) -> FinancialPeriod:
    """
    Parse one raw period. Never raises: a malformed period becomes a
    placeholder with `parse_error` set so its siblings keep going.
    """
    if not isinstance(raw, dict):
        msg = f"Period must be an object, got {type(raw).__name__}"
        logger.warning(msg)
        return FinancialPeriod(parse_error=msg)
    try:
        return FinancialPeriod.model_validate(_flatten_period(raw))
    except ValidationError as e:
        msg = f"Invalid period data: {e.error_count()} field error(s): {e.errors()[0]['msg']}"
        logger.warning(msg)
        description = raw.get("description") if isinstance(raw.get("description"), str) else None
        return FinancialPeriod(description=description, parse_error=msg)


def _company_from(raw: Dict[str, Any]) -> Optional[CompanyInfo]:
    block = raw.get("company") or raw.get("company_info")
    if not isinstance(block, dict):
        return None
    try:
        return CompanyInfo.model_validate(block)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid company block: {e.errors()[0]['msg']}")
        return None


def resolve_document(raw: Any) -> ResolvedDocument:
    """
    Resolve a raw document into its shape, periods and company info.

    Args:
        raw: Parsed JSON (dict or list)

    Returns:
        ResolvedDocument with every period parsed once

    Raises:
        MissingDataError: If the shape is unknown
    """
    shape = detect_shape(raw)
    company = None

    if shape is DocumentShape.PERIOD_LIST:
        raw_periods = raw
    elif shape is DocumentShape.SINGLE_DOCUMENT:
        raw_periods = raw["financial_periods"]
        company = _company_from(raw)
    else:
        raw_periods = []
        company = _company_from(raw)
        for doc in raw["documents"]:
            if not isinstance(doc, dict):
                logger.warning(f"Skipping non-object document entry ({type(doc).__name__})")
                continue
            raw_periods.extend(doc.get("financial_periods") or [])
            if company is None:
                company = _company_from(doc)

    periods = [parse_period(p) for p in raw_periods]
    failed = sum(1 for p in periods if p.parse_error)
    logger.info(
        f"Resolved {shape.value} document: {len(periods)} period(s), {failed} unparseable"
    )
    return ResolvedDocument(shape=shape, periods=periods, company=company)


def load_document(path: Union[str, Path]) -> ResolvedDocument:
    """Read a JSON document from disk and resolve it."""
    path = Path(path)
    logger.info(f"Loading document: {path}")
    with path.open("r", encoding="utf-8") as fh:
        raw = json.load(fh)
    return resolve_document(raw)
