"""Role-based permission checks.

Roles map to ``resource:action`` permissions. Users can additionally be
granted individual permissions through ``User.permissions``. Super
admins hold every permission in every tenant.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from app.modules.users.models import UserRole


if TYPE_CHECKING:
    from app.modules.users.models import User


ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    UserRole.USER: frozenset(
        {
            "profiles:read",
            "profiles:write",
            "notifications:read",
            "mfa:write",
        }
    ),
    UserRole.ADMIN: frozenset(
        {
            "profiles:read",
            "profiles:write",
            "notifications:read",
            "mfa:write",
            "users:read",
            "users:write",
            "users:delete",
            "api_keys:read",
            "api_keys:write",
            "api_keys:delete",
            "subscriptions:read",
        }
    ),
}
ROLE_PERMISSIONS[UserRole.TENANT_ADMIN] = ROLE_PERMISSIONS[UserRole.ADMIN] | {"mfa:policy"}


class PermissionChecker:
    """Evaluate a user's roles and permissions.

    Stateless; the user row already carries everything needed.
    """

    def __init__(self, user: "User") -> None:
        self.user = user

    def has_role(self, *roles: str) -> bool:
        return self.user.role in roles

    def get_permissions(self) -> frozenset[str]:
        granted = ROLE_PERMISSIONS.get(self.user.role, frozenset())
        return granted | frozenset(self.user.permissions or [])

    def has_permission(self, resource: str, action: str) -> bool:
        if self.user.is_super_admin:
            return True
        permissions = self.get_permissions()
        return f"{resource}:{action}" in permissions or f"{resource}:*" in permissions

    def has_all_permissions(self, permissions: list[tuple[str, str]]) -> bool:
        return all(self.has_permission(resource, action) for resource, action in permissions)

    def has_any_permission(self, permissions: list[tuple[str, str]]) -> bool:
        return any(self.has_permission(resource, action) for resource, action in permissions)

    def can_access_tenant(self, tenant_id: UUID | None) -> bool:
        return self.user.belongs_to_tenant(tenant_id)

    def can_manage_user(self, target: "User") -> bool:
        """Admins manage users of their own tenant; super admins manage everyone."""
        if self.user.is_super_admin:
            return True
        if target.is_super_admin or not self.user.is_admin:
            return False
        return target.tenant_id == self.user.tenant_id
