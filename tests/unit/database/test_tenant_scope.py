"""Unit tests for TenantScope filtering rules."""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.core.database import TenantContextRequired, TenantScope, TenantSession
from app.core.errors import ForbiddenError
from app.modules.profiles.models import Profile
from app.modules.users.models import UserRole
from tests.factories import UserFactory


pytestmark = pytest.mark.unit


class TestTenantScope:
    def test_for_regular_user(self):
        user = UserFactory.build()

        scope = TenantScope.for_user(user)

        assert scope.tenant_id == user.tenant_id
        assert scope.bypass is False

    def test_for_super_admin(self):
        root = UserFactory.build(role=UserRole.SUPER_ADMIN.value, tenant_id=None)

        scope = TenantScope.for_user(root)

        assert scope.bypass is True
        assert scope.can_access(uuid4())

    def test_narrow_only_applies_to_super_admins(self):
        own, other = uuid4(), uuid4()

        assert TenantScope(own).narrow(other).tenant_id == own
        narrowed = TenantScope.system().narrow(other)
        assert narrowed.tenant_id == other
        assert narrowed.bypass is False

    def test_narrow_to_nothing_keeps_bypass(self):
        assert TenantScope.system().narrow(None).bypass is True

    def test_require_tenant(self):
        with pytest.raises(TenantContextRequired) as exc_info:
            TenantScope.system().require_tenant()

        assert exc_info.value.status_code == 403

    def test_cannot_access_other_tenant_or_platform_rows(self):
        scope = TenantScope(uuid4())

        assert not scope.can_access(uuid4())
        assert not scope.can_access(None)

    def test_apply_adds_tenant_predicate(self):
        tenant_id = uuid4()

        statement = TenantScope(tenant_id).apply(select(Profile), Profile)

        assert "profiles.tenant_id" in str(statement.whereclause)

    def test_apply_with_bypass_leaves_statement(self):
        statement = select(Profile)

        assert TenantScope.system().apply(statement, Profile) is statement


class TestTenantSession:
    @pytest.fixture
    def session(self):
        session = AsyncMock()
        session.add = MagicMock()
        return session

    def test_add_stamps_tenant(self, session):
        tenant_id = uuid4()
        profile = Profile(user_id=uuid4())

        TenantSession(session, TenantScope(tenant_id)).add(profile)

        assert profile.tenant_id == tenant_id
        session.add.assert_called_once_with(profile)

    def test_add_rejects_cross_tenant_write(self, session):
        profile = Profile(user_id=uuid4(), tenant_id=uuid4())

        with pytest.raises(ForbiddenError):
            TenantSession(session, TenantScope(uuid4())).add(profile)

        session.add.assert_not_called()

    async def test_get_hides_other_tenant_rows(self, session):
        session.get = AsyncMock(return_value=Profile(user_id=uuid4(), tenant_id=uuid4()))

        assert await TenantSession(session, TenantScope(uuid4())).get(Profile, uuid4()) is None
