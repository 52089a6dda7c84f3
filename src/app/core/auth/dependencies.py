"""FastAPI dependencies for authentication.

This module provides FastAPI dependency injection functions for:
- Extracting and validating JWT tokens
- Getting the current authenticated user, re-checked against the database
- Building the caller's tenant scope
- Authenticating machine clients with an ``X-API-Key`` header and checking
  the key's scopes and permissions
"""

from collections.abc import Awaitable, Callable
from typing import Annotated, Any

import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from app.api.dependencies import DBSession
from app.config import settings
from app.core.auth.backend import decode_token
from app.core.auth.middleware import get_client_ip
from app.core.auth.schemas import TokenData
from app.core.database.tenant import TenantScope
from app.core.errors import AuthenticationError, ForbiddenError
from app.core.rate_limit.backend import rate_limiter


logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)
api_key_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


async def get_token_data(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> TokenData:
    """Extract and validate token data from the Authorization header.

    Args:
        credentials: Bearer token credentials from the request

    Returns:
        Decoded token data

    Raises:
        AuthenticationError: If token is missing or invalid
    """
    if not credentials:
        raise AuthenticationError(
            "Missing authentication token",
            error_code="missing_token",
        )

    token_data = decode_token(credentials.credentials)
    if not token_data:
        raise AuthenticationError(
            "Invalid or expired token",
            error_code="invalid_token",
        )

    return token_data


async def _check_impersonation(token_data: TokenData, db: DBSession, request: Request) -> None:
    """Reject ended sessions and record the request against a live one."""
    from app.modules.impersonation.services import (  # noqa: PLC0415
        ImpersonationService,
        classify_request,
    )

    service = ImpersonationService(db)
    session = None
    if token_data.impersonation_id:
        session = await service.repo.get_by_id(token_data.impersonation_id)
    if (
        session is None
        or session.session_id != token_data.session_id
        or session.is_expired(settings.impersonation_max_minutes)
    ):
        raise AuthenticationError(
            "Impersonation session has ended",
            error_code="impersonation_ended",
        )
    await service.log_action(
        session,
        classify_request(request.method, request.url.path),
        request.url.path,
        details={"method": request.method},
    )


async def get_current_user(
    token_data: Annotated[TokenData, Depends(get_token_data)],
    db: DBSession,
    request: Request,
) -> Any:  # Returns User, but use Any to avoid circular import
    """Get the currently authenticated user.

    The token is only trusted for identity. Role, tenant membership,
    tenant status and subscription state are re-read on every request so
    that demotions, suspensions and expiries take effect immediately.

    Raises:
        AuthenticationError: If the user, tenant or subscription no longer
            honours the token
    """
    from app.modules.subscriptions.repos import SubscriptionRepository  # noqa: PLC0415
    from app.modules.tenants.repos import TenantRepository  # noqa: PLC0415
    from app.modules.users.repos import UserRepository  # noqa: PLC0415

    user = await UserRepository(db).get_by_id(token_data.user_id)

    if not user or not user.is_active:
        raise AuthenticationError(
            "User not found or inactive",
            error_code="user_inactive",
        )

    if user.role != token_data.role:
        raise AuthenticationError(
            "User role has changed. Please log in again.",
            error_code="role_changed",
        )

    if not user.is_super_admin and token_data.tenant_id != user.tenant_id:
        raise AuthenticationError(
            "Token tenant does not match user tenant",
            error_code="tenant_mismatch",
        )

    tenant_id = token_data.tenant_id
    if tenant_id is not None:
        tenant = await TenantRepository(db).get_by_id(tenant_id)
        if tenant is None or not tenant.is_accessible:
            raise AuthenticationError(
                "Account access is temporarily suspended",
                error_code="tenant_inactive",
            )
        subscription = await SubscriptionRepository(db).get_for_tenant(tenant_id)
        if subscription is not None and not subscription.is_active and not user.is_super_admin:
            raise AuthenticationError(
                "Account subscription has expired. Please renew to continue.",
                error_code="subscription_expired",
            )

    if token_data.is_impersonation:
        await _check_impersonation(token_data, db, request)

    request.state.token_data = token_data
    return user


async def get_tenant_scope(
    token_data: Annotated[TokenData, Depends(get_token_data)],
    user: Annotated[Any, Depends(get_current_user)],
) -> TenantScope:
    """Build the tenant boundary for the current request.

    Super admins bypass tenant filtering; everyone else is confined to the
    tenant carried by the token (which always equals their own tenant).
    """
    if user.is_super_admin:
        return TenantScope(tenant_id=token_data.tenant_id, bypass=True)
    return TenantScope(tenant_id=user.tenant_id)


async def get_current_super_admin(
    user: Annotated[Any, Depends(get_current_user)],
) -> Any:
    """Get the current user, ensuring they are a super admin.

    Raises:
        ForbiddenError: If user is not a super admin
    """
    if not user.is_super_admin:
        raise ForbiddenError(
            "Super admin privileges required",
            error_code="not_super_admin",
        )
    return user


async def get_current_admin(
    user: Annotated[Any, Depends(get_current_user)],
) -> Any:
    """Get the current user, ensuring they administer a tenant or the platform."""
    if not user.is_admin:
        raise ForbiddenError(
            "Admin privileges required",
            error_code="not_admin",
        )
    return user


async def get_api_key(
    api_key: Annotated[str | None, Depends(api_key_scheme)],
    db: DBSession,
    request: Request,
) -> Any:  # Returns ApiKey
    """Authenticate a machine client by its ``X-API-Key`` header.

    Raises:
        AuthenticationError: If the header is missing or the key is invalid
    """
    if not api_key:
        raise AuthenticationError("Missing API key", error_code="missing_api_key")

    from app.modules.api_keys.services import ApiKeyService  # noqa: PLC0415

    key = await ApiKeyService(db).verify(
        api_key,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    await rate_limiter.enforce(f"apikey:{key.key_id}", key.rate_limit.get("per_minute", 100), 60)
    request.state.tenant_id = key.tenant_id
    structlog.contextvars.bind_contextvars(tenant_id=str(key.tenant_id), api_key_id=key.key_id)
    return key


def require_api_key(
    scope: str | None = None,
    permission: str | None = None,
) -> Callable[..., Awaitable[Any]]:
    """Build a dependency that authenticates an API key and checks its grants.

    Usage:
        @router.get("/export")
        async def export(api_key: Annotated[Any, Depends(require_api_key("profiles", "read"))]):
            ...

    Raises:
        ForbiddenError: If the key's scopes or permissions do not cover the route
    """

    async def dependency(api_key: Annotated[Any, Depends(get_api_key)]) -> Any:
        if scope is not None and not api_key.can_access_scope(scope):
            logger.warning("api_key_scope_denied", api_key_id=api_key.key_id, scope=scope)
            raise ForbiddenError(
                f"API key cannot access {scope}",
                error_code="api_key_scope_denied",
            )
        if permission is not None and not api_key.has_permission(permission):
            logger.warning(
                "api_key_permission_denied", api_key_id=api_key.key_id, permission=permission
            )
            raise ForbiddenError(
                f"API key lacks the {permission} permission",
                error_code="api_key_permission_denied",
            )
        return api_key

    return dependency


# Type aliases for cleaner dependency injection
# Use Any for model types to avoid circular imports at runtime
CurrentToken = Annotated[TokenData, Depends(get_token_data)]
CurrentUser = Annotated[Any, Depends(get_current_user)]
CurrentSuperAdmin = Annotated[Any, Depends(get_current_super_admin)]
CurrentAdmin = Annotated[Any, Depends(get_current_admin)]
Scope = Annotated[TenantScope, Depends(get_tenant_scope)]
ApiKeyAuth = Annotated[Any, Depends(get_api_key)]
