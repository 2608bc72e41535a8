"""Exception handlers.

Every failure leaves the service as ``{code, message, details, trace_id}``.
A failed call that carried an Idempotency-Key stores that body so a retry
with the same key gets the same answer.
"""

import logging
from decimal import Decimal

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.branchlink.core.error_catalog import AppError, ErrorCatalog, ErrorDefinition
from app.branchlink.core.logging import log_event
from app.branchlink.core.metrics import metrics

logger = logging.getLogger("branchlink.errors")

LOCK_MARKERS = ("lock timeout", "deadlock detected", "database is locked", "could not obtain lock")

HTTP_CODES = {400: "BAD_REQUEST", 404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED", 409: "CONFLICT"}


def error_response(code: str, message: str, details: object, trace_id: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"code": code, "message": message, "details": details, "trace_id": trace_id},
    )


def _plain(value):
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, Exception):
        return str(value)
    return value


def is_lock_contention(exc: OperationalError) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in LOCK_MARKERS)


def _fail(
    request: Request,
    exc: Exception,
    *,
    code: str,
    message: str,
    details: object,
    status_code: int,
    replayable: bool = True,
) -> JSONResponse:
    request.state.error_code = code
    request.state.error_class = exc.__class__.__name__
    trace_id = getattr(request.state, "trace_id", "")
    response = error_response(code, message, details, trace_id, status_code)
    idempotency = getattr(request.state, "idempotency", None)
    if replayable and idempotency is not None:
        idempotency.record_failure(
            status_code=status_code,
            response_body={"code": code, "message": message, "details": details, "trace_id": trace_id},
        )
    return response


def _from_catalog(request: Request, exc: Exception, error: ErrorDefinition, details: object, **kwargs) -> JSONResponse:
    return _fail(
        request,
        exc,
        code=error.code,
        message=error.message,
        details=details,
        status_code=error.status_code,
        **kwargs,
    )


def _field_errors(exc: RequestValidationError) -> dict:
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", []))
        named = [str(part) for part in loc if part not in {"body", "query", "path", "header"}]
        errors.append(
            {
                "field": ".".join(named) or None,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
                "loc": loc,
                "input": _plain(error.get("input")),
                "ctx": _plain(error.get("ctx")),
            }
        )
    return {"errors": errors}


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        return _from_catalog(request, exc, exc.error, exc.details)

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        detail = exc.detail
        if isinstance(detail, dict):
            message = str(detail.get("message", "HTTP error"))
            details = {key: value for key, value in detail.items() if key != "message"} or None
        else:
            message = str(detail) if detail is not None else "HTTP error"
            details = None
        return _fail(
            request,
            exc,
            code=HTTP_CODES.get(exc.status_code, "HTTP_ERROR"),
            message=message,
            details=details,
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        # the body never reached a handler, so there is no idempotency record to fill
        return _from_catalog(request, exc, ErrorCatalog.VALIDATION_ERROR, _field_errors(exc), replayable=False)

    @app.exception_handler(OperationalError)
    async def handle_store_error(request: Request, exc: OperationalError):
        if is_lock_contention(exc):
            error = ErrorCatalog.LOCK_TIMEOUT
            metrics.increment_lock_wait_timeout()
        else:
            error = ErrorCatalog.STORE_UNAVAILABLE
        log_event(
            logger,
            "store_failure",
            level=logging.ERROR,
            trace_id=getattr(request.state, "trace_id", ""),
            route=request.url.path,
            error_code=error.code,
            error_class=exc.__class__.__name__,
        )
        notifier = getattr(request.app.state, "notifier", None)
        if notifier is not None:
            notifier.error(f"{error.message}: the last action was not saved, please retry")
        return _from_catalog(request, exc, error, {"type": exc.__class__.__name__})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error", extra={"trace_id": getattr(request.state, "trace_id", "")})
        return _from_catalog(request, exc, ErrorCatalog.INTERNAL_ERROR, {"type": exc.__class__.__name__})
