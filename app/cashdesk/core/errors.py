from decimal import Decimal

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError

from app.cashdesk.core.error_catalog import AppError, ErrorCatalog, ErrorDefinition
from app.cashdesk.core.metrics import metrics


_LOCK_TIMEOUT_MARKERS = ("lock timeout", "deadlock detected", "database is locked", "could not obtain lock")
_REQUEST_LOCATIONS = {"body", "query", "path", "header"}


def _json_safe(value):
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, Exception):
        return str(value)
    return value


def _is_lock_timeout(exc: Exception) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in _LOCK_TIMEOUT_MARKERS)


def _envelope(code: str, message: str, details, trace_id: str) -> dict:
    return {"code": code, "message": message, "details": details, "trace_id": trace_id}


def error_response(definition: ErrorDefinition, details, trace_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=definition.status_code,
        content=_envelope(definition.code, definition.message, _json_safe(details), trace_id),
    )


def _respond(request: Request, exc: Exception, status_code: int, code: str, message: str, details) -> JSONResponse:
    """Build the error envelope and tag the request for logging and idempotency."""
    request.state.error_code = code
    request.state.error_class = exc.__class__.__name__
    payload = _envelope(code, message, _json_safe(details), getattr(request.state, "trace_id", ""))
    context = getattr(request.state, "idempotency", None)
    if context is not None:
        context.record_failure(status_code=status_code, response_body=payload)
    return JSONResponse(status_code=status_code, content=payload)


def _validation_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", []))
        errors.append(
            {
                "field": ".".join(str(item) for item in loc if item not in _REQUEST_LOCATIONS) or None,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
                "loc": loc,
                "input": error.get("input"),
            }
        )
    return errors


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        definition = exc.error
        return _respond(request, exc, definition.status_code, definition.code, definition.message, exc.details)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        # Raised by routing itself: unknown paths and wrong methods.
        if exc.status_code == ErrorCatalog.NOT_FOUND.status_code:
            code = ErrorCatalog.NOT_FOUND.code
        elif exc.status_code == 405:
            code = "METHOD_NOT_ALLOWED"
        else:
            code = "HTTP_ERROR"
        detail = exc.detail
        if isinstance(detail, dict):
            message = str(detail.get("message", code))
            details = {key: value for key, value in detail.items() if key != "message"} or None
        else:
            message = str(detail) if detail is not None else code
            details = None
        return _respond(request, exc, exc.status_code, code, message, details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        definition = ErrorCatalog.VALIDATION_ERROR
        return _respond(
            request,
            exc,
            definition.status_code,
            definition.code,
            definition.message,
            {"errors": _validation_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        if _is_lock_timeout(exc):
            metrics.increment_lock_wait_timeout()
            definition = ErrorCatalog.LOCK_TIMEOUT
        else:
            definition = ErrorCatalog.INTERNAL_ERROR
        return _respond(
            request,
            exc,
            definition.status_code,
            definition.code,
            definition.message,
            {"type": exc.__class__.__name__},
        )
