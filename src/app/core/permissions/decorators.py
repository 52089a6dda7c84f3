"""Permission decorators for route protection.

This module provides decorators that can be applied to FastAPI
routes to require specific roles or permissions. The decorated route
must declare a ``current_user`` parameter.
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar, cast

import structlog

from app.core.errors import AuthenticationError, ForbiddenError
from app.core.permissions.checker import PermissionChecker


if TYPE_CHECKING:
    from fastapi import Request

    from app.modules.users.models import User


logger = structlog.get_logger()

P = ParamSpec("P")
R = TypeVar("R")


def _get_user_and_request(kwargs: dict[str, Any]) -> tuple["User", "Request | None"]:
    user = cast("User | None", kwargs.get("current_user"))
    if user is None:
        raise AuthenticationError("Authentication required", error_code="auth_required")
    return user, cast("Request | None", kwargs.get("request"))


def require_roles(*roles: str) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that restricts a route to the given roles.

    Usage:
        @router.post("/tenants")
        @require_roles(UserRole.SUPER_ADMIN)
        async def create_tenant(data: TenantCreate, current_user: CurrentUser):
            ...

    Args:
        roles: Roles allowed to call the route

    Returns:
        Decorator function

    Raises:
        ForbiddenError: If the user's role is not listed
    """
    allowed = [str(role) for role in roles]

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            user, request = _get_user_and_request(kwargs)

            if not PermissionChecker(user).has_role(*allowed):
                logger.warning(
                    "role_denied",
                    user_id=str(user.id),
                    role=user.role,
                    required_roles=allowed,
                    endpoint=request.url.path if request else None,
                )
                raise ForbiddenError(
                    "Insufficient permissions",
                    error_code="insufficient_role",
                    details={"required_roles": allowed},
                )

            return await func(*args, **kwargs)

        return wrapper

    return decorator


def require_permission(
    resource: str, action: str
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that requires a ``resource:action`` permission.

    Usage:
        @router.delete("/api-keys/{key_id}")
        @require_permission("api_keys", "delete")
        async def revoke_key(key_id: UUID, current_user: CurrentUser):
            ...
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            user, _request = _get_user_and_request(kwargs)

            if not PermissionChecker(user).has_permission(resource, action):
                raise ForbiddenError(
                    f"Missing required permission: {resource}:{action}",
                    error_code="permission_denied",
                    details={"required_permissions": [f"{resource}:{action}"]},
                )

            return await func(*args, **kwargs)

        return wrapper

    return decorator
