"""RFC 7807 Problem Details exception handlers.

Every error leaves the API in the same envelope so clients can branch on
``error_code`` without parsing messages. Stack traces are never returned.

See: https://tools.ietf.org/html/rfc7807
"""

from typing import TYPE_CHECKING, Any, cast

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.core.errors.exceptions import AppException


if TYPE_CHECKING:
    from starlette.types import ExceptionHandler


logger = structlog.get_logger()


class FieldError(BaseModel):
    field: str
    message: str
    type: str | None = None


class ProblemDetail(BaseModel):
    """Problem Details body.

    Attributes:
        type: URI of the error's documentation page
        title: Error code in title case
        status: HTTP status code
        detail: Human-readable explanation of this occurrence
        error_code: Machine-readable error code
        success: Always False, kept for clients that check a flag
        instance: Request path
        errors: Field-level errors for validation failures
        trace_id: Trace ID of the request, when tracing is on
    """

    type: str
    title: str
    status: int
    detail: str
    error_code: str
    success: bool = False
    instance: str | None = None
    errors: list[FieldError] | None = None
    trace_id: str | None = None

    model_config = {"extra": "allow"}


def _problem(
    request: Request,
    status_code: int,
    error_code: str,
    detail: str,
    errors: list[FieldError] | None = None,
    extra: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content = ProblemDetail(
        type=f"{settings.api_docs_base_url}/errors/{error_code}",
        title=error_code.replace("_", " ").title(),
        status=status_code,
        detail=detail,
        error_code=error_code,
        instance=request.url.path,
        errors=errors,
        trace_id=getattr(request.state, "trace_id", None),
    ).model_dump(exclude_none=True)

    # Exception details never overwrite the standard members
    for key, value in (extra or {}).items():
        content.setdefault(key, value)

    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _headers_for(exc: AppException) -> dict[str, str] | None:
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        return {"WWW-Authenticate": "Bearer"}
    retry_after = exc.details.get("retry_after")
    if exc.status_code == status.HTTP_429_TOO_MANY_REQUESTS and retry_after is not None:
        return {"Retry-After": str(retry_after)}
    return None


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    log_method = logger.error if exc.status_code >= 500 else logger.warning
    log_method(
        "app_exception",
        error_code=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        path=request.url.path,
        details=exc.details,
    )
    return _problem(
        request,
        exc.status_code,
        exc.error_code,
        exc.message,
        extra=exc.details,
        headers=_headers_for(exc),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Turn request validation errors into a 422 listing each bad field."""
    errors = [
        FieldError(
            field=".".join(str(p) for p in error.get("loc", ()) if p != "body") or "unknown",
            message=error.get("msg", "Invalid value"),
            type=error.get("type"),
        )
        for error in exc.errors()
    ]
    logger.warning("validation_error", path=request.url.path, fields=[e.field for e in errors])
    return _problem(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "validation_error",
        "Request validation failed",
        errors=errors,
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Unique constraint races that slipped past the service checks."""
    logger.warning("integrity_error", path=request.url.path, error=str(exc.orig))
    return _problem(
        request,
        status.HTTP_409_CONFLICT,
        "duplicate_value",
        "A record with these values already exists",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", path=request.url.path, error_type=type(exc).__name__)
    extra = {"debug": {"error_type": type(exc).__name__}} if settings.debug else None
    return _problem(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_error",
        "An unexpected error occurred",
        extra=extra,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, cast("ExceptionHandler", app_exception_handler))
    app.add_exception_handler(
        RequestValidationError, cast("ExceptionHandler", validation_exception_handler)
    )
    app.add_exception_handler(IntegrityError, cast("ExceptionHandler", integrity_error_handler))
    app.add_exception_handler(Exception, generic_exception_handler)
