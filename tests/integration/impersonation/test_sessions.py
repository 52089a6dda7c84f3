"""Integration tests for impersonation sessions."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ForbiddenError, RateLimitError, ValidationError
from app.modules.impersonation.models import ImpersonationFlag
from app.modules.impersonation.services import ImpersonationService
from app.modules.users.models import User
from tests.factories import auth_headers


pytestmark = pytest.mark.integration

REASON = "Customer reported missing profile data in ticket 4411"


class TestStartAndEnd:
    async def test_start_issues_token_bound_to_target(
        self, db: AsyncSession, super_admin: User, user_a: User
    ):
        service = ImpersonationService(db)

        session, token = await service.start(super_admin, user_a.id, REASON)
        await db.commit()

        assert session.is_active
        assert session.session_id.startswith("imp_")
        assert session.target_tenant_id == user_a.tenant_id
        assert (await service.validate_token(token)).id == session.id

    async def test_admin_target_is_flagged(
        self, db: AsyncSession, super_admin: User, admin_a: User
    ):
        session, _ = await ImpersonationService(db).start(super_admin, admin_a.id, REASON)

        assert ImpersonationFlag.HIGH_PRIVILEGE_ACCESS in session.flags

    async def test_second_session_is_flagged(
        self, db: AsyncSession, super_admin: User, user_a: User, user_b: User
    ):
        service = ImpersonationService(db)
        await service.start(super_admin, user_a.id, REASON)

        second, _ = await service.start(super_admin, user_b.id, REASON)

        assert ImpersonationFlag.MULTIPLE_SESSIONS in second.flags

    async def test_ended_token_no_longer_validates(
        self, db: AsyncSession, super_admin: User, user_a: User
    ):
        service = ImpersonationService(db)
        session, token = await service.start(super_admin, user_a.id, REASON)

        await service.end(session.session_id, super_admin)

        assert await service.validate_token(token) is None

    async def test_regular_admin_cannot_impersonate(
        self, db: AsyncSession, admin_a: User, user_a: User
    ):
        with pytest.raises(ForbiddenError):
            await ImpersonationService(db).start(admin_a, user_a.id, REASON)

    async def test_super_admin_cannot_be_impersonated(self, db: AsyncSession, super_admin: User):
        with pytest.raises(ForbiddenError):
            await ImpersonationService(db).start(super_admin, super_admin.id, REASON)

    async def test_reason_is_required(self, db: AsyncSession, super_admin: User, user_a: User):
        with pytest.raises(ValidationError):
            await ImpersonationService(db).start(super_admin, user_a.id, "because")

    async def test_active_session_limit(
        self, db: AsyncSession, super_admin: User, user_a: User, monkeypatch
    ):
        monkeypatch.setattr(
            "app.modules.impersonation.services.settings.impersonation_max_active_sessions", 1
        )
        service = ImpersonationService(db)
        await service.start(super_admin, user_a.id, REASON)

        with pytest.raises(RateLimitError):
            await service.start(super_admin, user_a.id, REASON)


class TestImpersonatedRequests:
    async def test_requests_act_as_target_and_are_recorded(
        self, client: AsyncClient, db: AsyncSession, super_admin: User, user_a: User
    ):
        service = ImpersonationService(db)
        session, token = await service.start(super_admin, user_a.id, REASON)
        await db.commit()

        response = await client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["id"] == str(user_a.id)
        assert body["impersonated_by"] == str(super_admin.id)

        await db.refresh(session)
        assert session.actions[-1]["action"] == "read"

    async def test_ended_session_token_is_rejected(
        self, client: AsyncClient, db: AsyncSession, super_admin: User, user_a: User
    ):
        service = ImpersonationService(db)
        session, token = await service.start(super_admin, user_a.id, REASON)
        await service.end(session.session_id, super_admin)
        await db.commit()

        response = await client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401

    async def test_start_over_api(self, client: AsyncClient, super_admin: User, user_a: User):
        response = await client.post(
            "/api/v1/impersonation/start",
            json={"target_user_id": str(user_a.id), "reason": REASON},
            headers=auth_headers(super_admin),
        )

        assert response.status_code == 201
        assert response.json()["session"]["target_user_id"] == str(user_a.id)

    async def test_start_over_api_requires_super_admin(
        self, client: AsyncClient, admin_a: User, user_a: User
    ):
        response = await client.post(
            "/api/v1/impersonation/start",
            json={"target_user_id": str(user_a.id), "reason": REASON},
            headers=auth_headers(admin_a),
        )

        assert response.status_code == 403
