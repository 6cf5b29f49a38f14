"""Translate engine errors into HTTP responses.

Body: ``{"error": code, "message": text, "retryable": bool}``.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from staybook.domain.errors import (
    AuthorizationError,
    BookingEngineError,
    ConflictError,
    ExternalGatewayError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from staybook.observability.correlation import get_correlation_id
from staybook.observability.logging import get_logger

logger = get_logger(__name__)

# Most specific first
STATUS_BY_CATEGORY: tuple[tuple[type[BookingEngineError], int], ...] = (
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (InsufficientFundsError, 422),
    (ExternalGatewayError, 502),
)


def status_for(exc: BookingEngineError) -> int:
    for category, status in STATUS_BY_CATEGORY:
        if isinstance(exc, category):
            return status
    return 500


def error_body(exc: BookingEngineError) -> dict:
    body = {"error": exc.code, "message": exc.message, "retryable": exc.retryable}
    reason_code = exc.details.get("reason_code")
    if reason_code:
        body["reason_code"] = reason_code
    return body


async def _handle_engine_error(request: Request, exc: BookingEngineError) -> JSONResponse:
    status = status_for(exc)
    log = logger.warning if status >= 500 else logger.info
    log(
        "request failed",
        extra={
            "extra_fields": {
                "path": request.url.path,
                "status": status,
                "error": exc.code,
                "correlation_id": get_correlation_id(),
            }
        },
    )
    return JSONResponse(status_code=status, content=error_body(exc))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingEngineError, _handle_engine_error)
