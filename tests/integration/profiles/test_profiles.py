"""Integration tests for immigration profiles."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import TenantScope
from app.core.errors import NotFoundError
from app.modules.profiles.schemas import CrsResult, ProfileSections
from app.modules.profiles.services import ProfileService
from app.modules.users.models import User
from tests.factories import auth_headers


pytestmark = pytest.mark.integration


class TestProfileService:
    async def test_partial_saves_accumulate(self, db: AsyncSession, user_a: User):
        service = ProfileService(db)
        scope = TenantScope.for_user(user_a)

        first = await service.save_own(
            user_a, scope, ProfileSections(personal_details={"first_name": "Amara"})
        )
        second = await service.save_own(
            user_a, scope, ProfileSections(language_assessment={"test": "IELTS", "band": 8})
        )

        assert first.id == second.id
        assert second.personal_details == {"first_name": "Amara"}
        assert second.tenant_id == user_a.tenant_id

    async def test_progress(self, db: AsyncSession, user_a: User):
        service = ProfileService(db)
        scope = TenantScope.for_user(user_a)
        await service.save_own(
            user_a,
            scope,
            ProfileSections(
                personal_details={"first_name": "Amara"},
                educational_details=[{"level": "masters"}],
            ),
        )

        progress = await service.progress(user_a, scope)

        assert progress.completion_percentage == 20
        assert progress.completed_sections == ["personal_details", "educational_details"]
        assert "spouse" in progress.missing_sections
        assert progress.is_complete is False

    async def test_progress_without_profile(self, db: AsyncSession, user_a: User):
        progress = await ProfileService(db).progress(user_a, TenantScope.for_user(user_a))

        assert progress.completion_percentage == 0
        assert progress.total_sections == 10

    async def test_crs_history_grows(self, db: AsyncSession, user_a: User):
        service = ProfileService(db)
        scope = TenantScope.for_user(user_a)
        await service.save_own(user_a, scope, ProfileSections(personal_details={"age": 29}))

        await service.record_crs(user_a, scope, CrsResult(score=455, breakdown={"age": 110}))
        profile = await service.record_crs(user_a, scope, CrsResult(score=471))

        assert profile.crs_current_score == 471
        assert [entry["score"] for entry in profile.crs_history] == [455, 471]

    async def test_crs_needs_a_profile(self, db: AsyncSession, user_a: User):
        with pytest.raises(NotFoundError):
            await ProfileService(db).record_crs(
                user_a, TenantScope.for_user(user_a), CrsResult(score=400)
            )

    async def test_admin_lists_tenant_profiles(
        self, db: AsyncSession, admin_a: User, user_a: User, user_b: User
    ):
        service = ProfileService(db)
        for user in (user_a, user_b):
            await service.save_own(
                user, TenantScope.for_user(user), ProfileSections(spouse={"has_spouse": False})
            )

        profiles, total = await service.list_profiles(TenantScope.for_user(admin_a))

        assert total == 1
        assert profiles[0].user_id == user_a.id


class TestProfileApi:
    async def test_save_and_read_own_profile(self, client: AsyncClient, user_a: User):
        saved = await client.put(
            "/api/v1/profiles/me",
            json={"personal_details": {"first_name": "Amara", "citizenship": "KE"}},
            headers=auth_headers(user_a),
        )
        assert saved.status_code == 200

        response = await client.get("/api/v1/profiles/me", headers=auth_headers(user_a))

        assert response.json()["personal_details"]["citizenship"] == "KE"

    async def test_profile_not_started(self, client: AsyncClient, user_a: User):
        response = await client.get("/api/v1/profiles/me", headers=auth_headers(user_a))

        assert response.status_code == 200
        assert response.json() is None

    async def test_score_out_of_range(self, client: AsyncClient, user_a: User):
        response = await client.post(
            "/api/v1/profiles/me/crs", json={"score": 1500}, headers=auth_headers(user_a)
        )

        assert response.status_code == 422

    async def test_regular_user_cannot_list_profiles(self, client: AsyncClient, user_a: User):
        response = await client.get("/api/v1/profiles", headers=auth_headers(user_a))

        assert response.status_code == 403
