from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from opentelemetry import trace

from infrachat.core.logging import add_context, clear_context


def install_correlation_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def _correlation_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        incoming = request.headers.get("x-correlation-id") or request.headers.get("x-request-id")
        span = trace.get_current_span()
        ctx = span.get_span_context() if span else None
        trace_id = f"{ctx.trace_id:032x}" if ctx and ctx.is_valid else None
        correlation_id = incoming or trace_id or uuid.uuid4().hex

        add_context(correlation_id=correlation_id, path=request.url.path, method=request.method)
        session_id = request.headers.get("x-session-id")
        if session_id:
            add_context(session_id=session_id)
        try:
            response = await call_next(request)
            response.headers["x-correlation-id"] = correlation_id
            return response
        finally:
            clear_context()
