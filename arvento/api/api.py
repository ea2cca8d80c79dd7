#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FastAPI service for period valuation, market data and DCF analysis.

Endpoints:
  GET  /health
  POST /valuation/metrics          document -> per-period multiples and metrics
  GET  /market_data                industry/revenue/D-E -> MarketDataForDCF
  POST /dcf                        DCF request -> DCFStructuredData
  GET  /dcf/{valuation_id}         stored DCF analysis
  POST /dcf/scenario/validate      check an upstream scenario's numbers

Behavior:
  - One ValuationContext (HTTP session, request id) per request
  - Failed DCF runs are returned with status 422 and the failed record
  - Errors come back as ErrorDetail JSON

Run with:
  python -m arvento.api.api
"""

import os
from datetime import date
from typing import Any, Iterator, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field

from arvento.context import ValuationContext
from arvento.data.loader import DocumentShape, resolve_document
from arvento.data.models import CompanyInfo, FinancialPeriod
from arvento.dcf.models import DCFRequest, DCFScenario, DCFStatus, DCFStructuredData
from arvento.dcf.service import InMemoryAnalysisStore, run_dcf_analysis
from arvento.dcf.validation import validate_scenario
from arvento.errors import AnalysisNotFound, DCFValidationError, InvalidStatusTransition, MissingDataError
from arvento.market.data import MarketDataForDCF, get_market_data_for_dcf
from arvento.utils import get_logger
from arvento.valuation.pipeline import calculate_document_metrics

logger = get_logger(__name__)

SERVICE_NAME = "Arvento Valuation API"
SERVICE_VERSION = "1.0.0"

# ============================================================================
# FastAPI App Setup
# ============================================================================

app = FastAPI(
    title=SERVICE_NAME,
    description="Multi-method valuation, market-data WACC and three-scenario DCF for Finnish SMEs",
    version=SERVICE_VERSION,
)

analysis_store = InMemoryAnalysisStore()


def get_context() -> Iterator[ValuationContext]:
    """Fresh context per request; the session is closed afterwards."""
    context = ValuationContext()
    try:
        yield context
    finally:
        context.close()


def get_store() -> InMemoryAnalysisStore:
    return analysis_store


# ============================================================================
# Pydantic Models
# ============================================================================


class ValuationMetricsRequest(BaseModel):
    """Parsed financial document plus optional company facts."""

    document: Any = Field(..., description="Document with 'documents', 'financial_periods' or a period list")
    company: Optional[CompanyInfo] = None


class ValuationMetricsResponse(BaseModel):
    shape: DocumentShape
    period_count: int
    failed_periods: int
    periods: List[FinancialPeriod]


class ScenarioValidationResponse(BaseModel):
    valid: bool
    scenario: str
    warnings: List[str]


class ErrorDetail(BaseModel):
    """Error response detail."""

    error_code: str
    error_message: str
    field: Optional[str] = None
    timestamp: str = Field(default_factory=lambda: date.today().isoformat())


# ============================================================================
# API Endpoints
# ============================================================================


@app.get("/health")
def health_check():
    """Health check endpoint."""
    logger.info("Health check requested")
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
    }


@app.post(
    "/valuation/metrics",
    response_model=ValuationMetricsResponse,
    tags=["Valuation"],
    summary="Calculate per-period valuation metrics",
    responses={
        200: {"description": "Metrics calculated (failed periods carry an error)"},
        400: {"description": "No financial periods or unknown document shape"},
    },
)
def valuation_metrics(
    payload: ValuationMetricsRequest,
    context: ValuationContext = Depends(get_context),
):
    """
    Normalize every period, select multiples and calculate the valuation range.

    A period that fails is returned with `valuation_metrics = {"error": ...}`;
    the other periods are unaffected.
    """
    try:
        resolved = resolve_document(payload.document)
        periods = calculate_document_metrics(
            resolved.periods,
            company_info=payload.company,
            document_company=resolved.company,
            context=context,
        )
    except MissingDataError as e:
        logger.error(f"Missing data: {str(e)}")
        raise HTTPException(status_code=400, detail=f"Missing data: {str(e)}")

    failed = sum(1 for p in periods if getattr(p.valuation_metrics, "error", None))
    return ValuationMetricsResponse(
        shape=resolved.shape,
        period_count=len(periods),
        failed_periods=failed,
        periods=periods,
    )


@app.get(
    "/market_data",
    response_model=MarketDataForDCF,
    tags=["Market Data"],
    summary="Market inputs and WACC for a DCF",
)
def market_data(
    industry: Optional[str] = Query(None, description="Industry name, e.g. 'software'"),
    revenue: Optional[float] = Query(None, description="Annual revenue (EUR)"),
    debt_to_equity: Optional[float] = Query(None, ge=0, description="Debt-to-equity ratio"),
    tax_rate: Optional[float] = Query(None, ge=0, lt=1, description="Corporate tax rate (decimal)"),
    context: ValuationContext = Depends(get_context),
):
    """Risk-free rate (ECB or fallback), beta, size premium, WACC and terminal growth."""
    return get_market_data_for_dcf(industry, revenue, debt_to_equity, tax_rate, context)


@app.post(
    "/dcf",
    response_model=DCFStructuredData,
    tags=["DCF"],
    summary="Run a three-scenario DCF analysis",
    responses={
        200: {"description": "Analysis completed"},
        409: {"description": "Analysis id already finished"},
        422: {"description": "Analysis failed validation; body is the failed record"},
    },
)
def run_dcf(
    request: DCFRequest,
    context: ValuationContext = Depends(get_context),
    store: InMemoryAnalysisStore = Depends(get_store),
):
    """
    Run the DCF for a valuation.

    **Errors:**
    - 409: The valuation id already has a finished analysis
    - 422: Numeric validation failed (`status = failed`, `error_message` set)
    """
    try:
        record = run_dcf_analysis(request, context=context, store=store)
    except InvalidStatusTransition as e:
        logger.error(f"Status conflict: {str(e)}")
        raise HTTPException(status_code=409, detail=str(e))

    if record.status is DCFStatus.FAILED:
        return JSONResponse(status_code=422, content=record.model_dump(mode="json", by_alias=True))
    return record


@app.get(
    "/dcf/{valuation_id}",
    response_model=DCFStructuredData,
    tags=["DCF"],
    summary="Fetch a stored DCF analysis",
)
def get_dcf(valuation_id: str, store: InMemoryAnalysisStore = Depends(get_store)):
    try:
        return store.get(valuation_id)
    except AnalysisNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post(
    "/dcf/scenario/validate",
    response_model=ScenarioValidationResponse,
    tags=["DCF"],
    summary="Validate a scenario produced upstream",
)
def validate_dcf_scenario(scenario: DCFScenario):
    """Check an externally generated scenario against the DCF invariants."""
    try:
        warnings = validate_scenario(scenario)
    except DCFValidationError as e:
        logger.error(f"Scenario validation failed: {str(e)}")
        raise HTTPException(status_code=422, detail=str(e))
    return ScenarioValidationResponse(valid=True, scenario=scenario.name.value, warnings=warnings)


@app.get("/", include_in_schema=False)
def root():
    """Redirect to docs."""
    return RedirectResponse("/docs")


# ============================================================================
# Exception Handlers
# ============================================================================


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Handle HTTP exceptions with structured response."""
    logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorDetail(
            error_code=f"HTTP_{exc.status_code}",
            error_message=str(exc.detail),
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Handle unexpected exceptions with structured response."""
    logger.error(f"Unhandled exception: {type(exc).__name__}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error_code="INTERNAL_ERROR",
            error_message=f"Internal server error: {type(exc).__name__}",
        ).model_dump(),
    )


# ============================================================================
# Main
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    from arvento.utils.config import API_HOST, API_PORT, API_RELOAD

    port = int(os.getenv("PORT", str(API_PORT)))
    logger.info(f"Starting {SERVICE_NAME} on {API_HOST}:{port}...")
    uvicorn.run("arvento.api.api:app", host=API_HOST, port=port, reload=API_RELOAD)
