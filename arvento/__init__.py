"""Arvento valuation engine - modular architecture

Modules:
  - arvento.data: document models, loading and period normalization
  - arvento.valuation: multiple selection and multi-method valuation
  - arvento.market: market data and WACC
  - arvento.dcf: three-scenario DCF, validation, sensitivity, confidence
  - arvento.utils: configuration and logging
  - arvento.api: FastAPI server
"""

from . import utils, data, valuation, market, dcf

__all__ = ["utils", "data", "valuation", "market", "dcf"]
