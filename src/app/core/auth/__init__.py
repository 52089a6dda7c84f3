"""Authentication: JWT tokens with tenant context, password hashing and dependencies.

Routes and the service live in ``app.core.auth.routes`` and
``app.core.auth.service``; they depend on the feature modules and are
imported directly where needed.
"""

from app.core.auth.backend import (
    create_access_token,
    create_impersonation_token,
    create_refresh_token,
    decode_token,
    hash_password,
    hash_token,
    verify_password,
)
from app.core.auth.dependencies import (
    ApiKeyAuth,
    CurrentAdmin,
    CurrentSuperAdmin,
    CurrentToken,
    CurrentUser,
    Scope,
    get_current_user,
    get_tenant_scope,
)
from app.core.auth.middleware import RequestIdMiddleware, TenantContextMiddleware
from app.core.auth.schemas import TokenData, TokenPair, TokenType


__all__ = [
    "ApiKeyAuth",
    "CurrentAdmin",
    "CurrentSuperAdmin",
    "CurrentToken",
    "CurrentUser",
    "RequestIdMiddleware",
    "Scope",
    "TenantContextMiddleware",
    "TokenData",
    "TokenPair",
    "TokenType",
    "create_access_token",
    "create_impersonation_token",
    "create_refresh_token",
    "decode_token",
    "get_current_user",
    "get_tenant_scope",
    "hash_password",
    "hash_token",
    "verify_password",
]
