"""Prometheus metrics for the API and the cap table engine."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_latency_seconds",
    "Latency of HTTP requests in seconds.",
    labelnames=("method", "path"),
)
REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "path", "status"),
)
REQUEST_ERROR_COUNTER = Counter(
    "http_request_errors_total",
    "Total number of HTTP requests that resulted in server errors.",
    labelnames=("method", "path", "status"),
)
TRANSACTIONS_CONFIRMED_COUNTER = Counter(
    "captable_transactions_confirmed_total",
    "Count of transactions confirmed and applied to the ledger.",
    labelnames=("type",),
)
LEDGER_MUTATION_FAILURES_COUNTER = Counter(
    "captable_ledger_mutation_failures_total",
    "Count of confirmations rolled back because the ledger mutation failed.",
    labelnames=("type", "code"),
)
OWNERSHIP_DISCREPANCY_COUNTER = Counter(
    "captable_ownership_discrepancies_total",
    "Count of recalculations whose ownership sum drifted beyond tolerance.",
)
SIDE_EFFECT_COUNTER = Counter(
    "captable_side_effects_total",
    "Outcome of best-effort outbound tasks.",
    labelnames=("task", "outcome"),
)


def route_template(request: Request, default: str) -> str:
    """Full path template of the matched route, including mount prefixes."""

    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if not template:
        return default
    root_path = request.scope.get("root_path", "")
    if root_path and not template.startswith(root_path):
        return root_path.rstrip("/") + template
    return template


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records request metrics for Prometheus scraping."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        method = request.method
        path = route_template(request, request.url.path)
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            path = route_template(request, path)
            status = str(response.status_code)
            if response.status_code >= 500:
                REQUEST_ERROR_COUNTER.labels(method=method, path=path, status=status).inc()
            return response
        except Exception:
            REQUEST_ERROR_COUNTER.labels(method=method, path=path, status="500").inc()
            raise
        finally:
            latency = time.perf_counter() - start_time
            REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(latency)
            REQUEST_COUNTER.labels(method=method, path=path, status=status).inc()


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Expose Prometheus metrics for scraping."""
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "LEDGER_MUTATION_FAILURES_COUNTER",
    "OWNERSHIP_DISCREPANCY_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "SIDE_EFFECT_COUNTER",
    "TRANSACTIONS_CONFIRMED_COUNTER",
    "metrics_endpoint",
    "metrics_router",
    "route_template",
]
