"""Per-route rate limits, stricter than the global middleware limit."""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from fastapi import Request

from app.config import settings
from app.core.rate_limit.backend import rate_limiter
from app.core.rate_limit.middleware import request_identifier


P = ParamSpec("P")
T = TypeVar("T")


def rate_limit(
    requests: int | None = None,
    window: int | None = None,
    key_func: Callable[[Request], str] | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Limit a route to ``requests`` calls per ``window`` seconds.

    The route must take a ``request: Request`` parameter.

    Example:
        @router.post("/login")
        @rate_limit(requests=10, window=60)
        async def login(data: LoginRequest, request: Request): ...

    Raises:
        RateLimitError: When the caller exceeded the route's limit
    """
    limit = requests or settings.rate_limit_requests
    window_seconds = window or settings.rate_limit_window

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            request = kwargs.get("request")
            if isinstance(request, Request):
                identifier = key_func(request) if key_func else request_identifier(request)
                await rate_limiter.enforce(
                    identifier, limit, window_seconds, endpoint=request.url.path
                )
            return await func(*args, **kwargs)

        return wrapper

    return decorator
