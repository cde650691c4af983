from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)

_HTTP_LABELS = ("method", "path", "status_code")

HTTP_REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=_HTTP_LABELS,
)

HTTP_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    labelnames=_HTTP_LABELS,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

PROVISION_REQUESTS = Counter(
    "provision_requests_total",
    "Provisioning requests by resource type, action and outcome",
    labelnames=("resource_type", "action", "outcome"),
)


def record_provision(resource_type: str, action: str, outcome: str) -> None:
    PROVISION_REQUESTS.labels(resource_type=resource_type, action=action, outcome=outcome).inc()


def _observe_request(request: Request, status_code: str, elapsed: float) -> None:
    # label by route template, never the raw path
    route = request.scope.get("route")
    labels = {
        "method": request.method,
        "path": getattr(route, "path", "unmatched"),
        "status_code": status_code,
    }
    HTTP_REQUESTS.labels(**labels).inc()
    HTTP_LATENCY.labels(**labels).observe(elapsed)


def instrument_app(app: FastAPI) -> None:
    @app.middleware("http")
    async def _prom_mw(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start = time.perf_counter()
        status_code = "500"
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            _observe_request(request, status_code, time.perf_counter() - start)

    @app.get("/metrics", include_in_schema=False)
    def _metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
