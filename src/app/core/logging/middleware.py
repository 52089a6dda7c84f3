"""Request logging middleware."""

import time
from typing import Any

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.core.auth.middleware import get_client_ip


logger = structlog.get_logger()

DEFAULT_EXCLUDED_PATHS = ("/health", "/docs", "/redoc", "/openapi.json")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one event per request with its outcome and duration.

    Request id, tenant id and user id are already bound to the structlog
    context by the outer middlewares, so they appear on these events
    without being passed explicitly. Health and docs endpoints are
    skipped.
    """

    def __init__(self, app: Any, exclude_paths: tuple[str, ...] = DEFAULT_EXCLUDED_PATHS) -> None:
        super().__init__(app)
        self.exclude_paths = exclude_paths

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path.startswith(self.exclude_paths):
            return await call_next(request)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_failed",
                method=request.method,
                path=path,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise

        event: dict[str, Any] = {
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            "client_ip": get_client_ip(request),
        }
        if request.url.query:
            event["query"] = request.url.query

        # 401/403/404 are expected traffic; only server errors are errors
        if response.status_code >= 500:
            logger.error("request_completed", **event)
        elif response.status_code >= 400:
            logger.warning("request_completed", **event)
        else:
            logger.info("request_completed", **event)
        return response
