from __future__ import annotations

import re
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from infrachat.core.exceptions import (
    BaseApplicationException,
    ConfigurationException,
    ExternalServiceException,
    UnsupportedOperationError,
    UpstreamModelError,
    ValidationException,
    record_error,
)
from infrachat.core.logging import get_logger

logger = get_logger(__name__)

# first match wins
_STATUS_MAP: tuple[tuple[type[BaseApplicationException], int], ...] = (
    (ValidationException, 400),
    (UnsupportedOperationError, 400),
    (UpstreamModelError, 502),
    (ExternalServiceException, 503),
    (ConfigurationException, 500),
)


def error_code_for(exc: BaseApplicationException) -> str:
    name = exc.__class__.__name__.removesuffix("Exception")
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower() or "application_error"


def status_for(exc: BaseApplicationException) -> int:
    for etype, code in _STATUS_MAP:
        if isinstance(exc, etype):
            return code
    return 500


def _error_response(
    request: Request,
    *,
    status_code: int,
    error_code: str,
    message: str,
    detail: Any = None,
) -> JSONResponse:
    payload: dict[str, Any] = {
        "error_code": error_code,
        "error_message": message,
        "detail": detail,
    }
    headers: dict[str, str] = {}
    corr = request.headers.get("x-correlation-id") or request.headers.get("x-request-id")
    if corr:
        headers["x-correlation-id"] = str(corr)
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors: list[dict[str, Any]] = [
            {
                "loc": list(e.get("loc", [])),
                "msg": e.get("msg", "Invalid value"),
                "type": e.get("type", "value_error"),
            }
            for e in exc.errors()
        ]
        logger.warning("request validation error", detail=errors)
        return _error_response(
            request,
            status_code=400,
            error_code="validation_error",
            message="Invalid request",
            detail=errors,
        )

    @app.exception_handler(BaseApplicationException)
    async def _handle_app_exceptions(
        request: Request, exc: BaseApplicationException
    ) -> JSONResponse:
        status_code = status_for(exc)
        record_error(exc)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "application error",
            error_code=exc.__class__.__name__,
            error_message=exc.message,
            error_id=exc.error_id,
            http_status=status_code,
        )
        detail = {"error_id": exc.error_id}
        if status_code < 500:
            detail.update(exc.details)
        return _error_response(
            request,
            status_code=status_code,
            error_code=error_code_for(exc),
            message=exc.user_message or exc.message,
            detail=detail,
        )

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail_obj: Any = exc.detail
        message = detail_obj if isinstance(detail_obj, str) else "HTTP error"
        log = logger.info if exc.status_code == 404 else logger.warning
        log("http exception", http_status=exc.status_code, error_message=message)
        return _error_response(
            request,
            status_code=exc.status_code,
            error_code="http_error",
            message=message,
            detail=detail_obj if isinstance(detail_obj, (dict | list)) else None,
        )
