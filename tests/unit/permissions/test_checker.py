"""Unit tests for PermissionChecker."""

from uuid import uuid4

import pytest

from app.core.permissions.checker import PermissionChecker
from app.modules.users.models import UserRole
from tests.factories import UserFactory


pytestmark = pytest.mark.unit


class TestRolePermissions:
    def test_user_can_edit_own_profile_data(self):
        checker = PermissionChecker(UserFactory.build(role=UserRole.USER.value))

        assert checker.has_permission("profiles", "write")
        assert not checker.has_permission("users", "write")

    def test_admin_manages_users_and_keys(self):
        checker = PermissionChecker(UserFactory.build(role=UserRole.ADMIN.value))

        assert checker.has_all_permissions([("users", "write"), ("api_keys", "delete")])
        assert not checker.has_permission("mfa", "policy")

    def test_tenant_admin_adds_mfa_policy(self):
        checker = PermissionChecker(UserFactory.build(role=UserRole.TENANT_ADMIN.value))

        assert checker.has_permission("mfa", "policy")
        assert checker.has_permission("users", "delete")

    def test_super_admin_has_every_permission(self):
        checker = PermissionChecker(
            UserFactory.build(role=UserRole.SUPER_ADMIN.value, tenant_id=None)
        )

        assert checker.has_permission("tenants", "delete")
        assert checker.has_permission("anything", "at_all")

    def test_individual_grants_extend_the_role(self):
        user = UserFactory.build(role=UserRole.USER.value, permissions=["users:read"])

        assert PermissionChecker(user).has_permission("users", "read")

    def test_wildcard_grant(self):
        user = UserFactory.build(role=UserRole.USER.value, permissions=["api_keys:*"])
        checker = PermissionChecker(user)

        assert checker.has_permission("api_keys", "rotate")
        assert checker.has_any_permission([("tenants", "read"), ("api_keys", "read")])

    def test_unknown_role_has_no_permissions(self):
        checker = PermissionChecker(UserFactory.build(role="applicant"))

        assert checker.get_permissions() == frozenset()


class TestTenantBoundaries:
    def test_user_only_accesses_own_tenant(self):
        user = UserFactory.build()
        checker = PermissionChecker(user)

        assert checker.can_access_tenant(user.tenant_id)
        assert not checker.can_access_tenant(uuid4())
        assert not checker.can_access_tenant(None)

    def test_super_admin_accesses_every_tenant(self):
        checker = PermissionChecker(
            UserFactory.build(role=UserRole.SUPER_ADMIN.value, tenant_id=None)
        )

        assert checker.can_access_tenant(uuid4())

    def test_admin_manages_users_of_own_tenant_only(self):
        admin = UserFactory.build(role=UserRole.ADMIN.value)
        colleague = UserFactory.build(tenant_id=admin.tenant_id)
        stranger = UserFactory.build()
        checker = PermissionChecker(admin)

        assert checker.can_manage_user(colleague)
        assert not checker.can_manage_user(stranger)

    def test_admin_cannot_manage_super_admin(self):
        admin = UserFactory.build(role=UserRole.ADMIN.value)
        root = UserFactory.build(role=UserRole.SUPER_ADMIN.value, tenant_id=admin.tenant_id)

        assert not PermissionChecker(admin).can_manage_user(root)

    def test_regular_user_manages_nobody(self):
        user = UserFactory.build()
        colleague = UserFactory.build(tenant_id=user.tenant_id)

        assert not PermissionChecker(user).can_manage_user(colleague)
