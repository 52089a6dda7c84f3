"""Global rate limiting middleware.

Authenticated requests are counted per user, anonymous ones per client
IP. The user id comes from ``TenantContextMiddleware``, which must run
before this middleware.
"""

from typing import ClassVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings
from app.core.auth.middleware import get_client_ip
from app.core.rate_limit.backend import rate_limiter


def request_identifier(request: Request) -> str:
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_client_ip(request) or 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    EXCLUDED_PREFIXES: ClassVar[tuple[str, ...]] = ("/health", "/docs", "/redoc", "/openapi.json")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not settings.rate_limit_enabled or request.url.path.startswith(self.EXCLUDED_PREFIXES):
            return await call_next(request)

        result = await rate_limiter.is_allowed(
            identifier=request_identifier(request),
            limit=settings.rate_limit_requests,
            window=settings.rate_limit_window,
        )
        if not result.allowed:
            # Exception handlers do not wrap middleware, so build the problem body here
            return JSONResponse(
                status_code=429,
                content={
                    "type": f"{settings.api_docs_base_url}/errors/rate_limit_exceeded",
                    "title": "Too Many Requests",
                    "status": 429,
                    "detail": "Rate limit exceeded. Please slow down.",
                    "instance": request.url.path,
                },
                media_type="application/problem+json",
                headers=result.headers,
            )

        response = await call_next(request)
        response.headers.update(result.headers)
        return response
