"""Observability utilities."""

from .metrics import (
    LEDGER_MUTATION_FAILURES_COUNTER,
    OWNERSHIP_DISCREPANCY_COUNTER,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    SIDE_EFFECT_COUNTER,
    TRANSACTIONS_CONFIRMED_COUNTER,
    PrometheusMiddleware,
    metrics_router,
)
from .tracing import initialise_tracing, instrument_fastapi_app, instrument_sqlalchemy_engine, traced

__all__ = [
    "LEDGER_MUTATION_FAILURES_COUNTER",
    "OWNERSHIP_DISCREPANCY_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "SIDE_EFFECT_COUNTER",
    "TRANSACTIONS_CONFIRMED_COUNTER",
    "initialise_tracing",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "metrics_router",
    "traced",
]
