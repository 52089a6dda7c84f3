"""Authentication and tenant context middleware.

This module provides middleware for:
- Binding tenant, user and role from the bearer token to the request
- Feeding the audit log its request context
- Request tracing with unique IDs
"""

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.core.audit.middleware import clear_audit_context, set_audit_context
from app.core.auth.backend import decode_token


if TYPE_CHECKING:
    from starlette.types import ASGIApp


logger = structlog.get_logger()


def get_client_ip(request: Request) -> str | None:
    """Client IP, preferring the first ``X-Forwarded-For`` hop."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Middleware that injects tenant context into requests.

    The token is only decoded here, not trusted: authorization happens
    in ``get_current_user``. What is bound is used for logging and the
    audit trail.

    Attributes:
        exclude_paths: Paths that never carry tenant context
    """

    def __init__(
        self,
        app: "ASGIApp",
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.exclude_paths = exclude_paths or [
            "/health",
            "/docs",
            "/redoc",
            "/openapi.json",
        ]

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        tenant_id = user_id = None
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token_data = decode_token(auth_header.split(" ", 1)[1])

            if token_data:
                tenant_id = token_data.tenant_id
                user_id = token_data.user_id
                request.state.tenant_id = tenant_id
                request.state.user_id = user_id
                request.state.role = token_data.role

                structlog.contextvars.bind_contextvars(
                    tenant_id=str(tenant_id) if tenant_id else None,
                    user_id=str(user_id),
                    role=token_data.role,
                )
                if token_data.is_impersonation:
                    structlog.contextvars.bind_contextvars(
                        impersonated_by=str(token_data.super_admin_id),
                    )

        set_audit_context(
            tenant_id=tenant_id,
            user_id=user_id,
            request_id=getattr(request.state, "request_id", None),
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        try:
            return await call_next(request)
        finally:
            clear_audit_context()


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware that adds a unique request ID to each request.

    The request ID is added to:
    - request.state.request_id
    - Response header X-Request-ID
    - Structlog context
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        request.state.request_id = request_id
        request.state.trace_id = request_id  # Alias for error handler

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        structlog.contextvars.unbind_contextvars(
            "request_id", "tenant_id", "user_id", "role", "impersonated_by"
        )
        return response
