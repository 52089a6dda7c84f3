"""Profile service for business logic."""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Depends

from app.api.dependencies import DBSession
from app.core.database.tenant import TenantScope
from app.core.errors import NotFoundError
from app.core.utils.time import utcnow
from app.modules.profiles.models import PROFILE_SECTIONS, Profile
from app.modules.profiles.repos import ProfileRepository
from app.modules.profiles.schemas import CrsResult, ProfileProgress, ProfileSections
from app.modules.users.models import User


log = structlog.get_logger()


class ProfileService:
    """Service for immigration profiles.

    A user owns at most one profile per tenant. Users work on their own
    profile; admins read the profiles of their tenant through the scope.
    """

    def __init__(self, db: DBSession) -> None:
        self.db = db
        self.repo = ProfileRepository(db)

    def _apply(self, profile: Profile, data: ProfileSections) -> None:
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(profile, field, value)
        profile.is_complete = profile.completion_percentage == 100
        profile.last_updated = utcnow()

    async def save_own(self, user: User, scope: TenantScope, data: ProfileSections) -> Profile:
        """Create the user's profile in the scope's tenant or update it."""
        tenant_id = scope.require_tenant()
        own_scope = TenantScope(tenant_id)
        profile = await self.repo.get_for_user(user.id, own_scope)

        if profile is None:
            profile = Profile(user_id=user.id, tenant_id=tenant_id)
            self._apply(profile, data)
            profile = await self.repo.create(profile, own_scope)
            log.info("profile_created", profile_id=str(profile.id), user_id=str(user.id))
            return profile

        self._apply(profile, data)
        log.info("profile_updated", profile_id=str(profile.id), user_id=str(user.id))
        return await self.repo.update(profile)

    async def get_own(self, user: User, scope: TenantScope) -> Profile | None:
        """The caller's profile in the scope's tenant, or None if not started."""
        return await self.repo.get_for_user(user.id, TenantScope(scope.require_tenant()))

    async def get_profile(self, profile_id: UUID, scope: TenantScope) -> Profile:
        """Get a profile visible in ``scope``.

        Raises:
            NotFoundError: If missing or owned by another tenant
        """
        profile = await self.repo.get_by_id(profile_id, scope)
        if profile is None:
            raise NotFoundError(
                "Profile not found",
                resource="profile",
                resource_id=str(profile_id),
            )
        return profile

    async def list_profiles(
        self,
        scope: TenantScope,
        page: int = 1,
        page_size: int = 20,
        is_complete: bool | None = None,
    ) -> tuple[list[Profile], int]:
        return await self.repo.list_scoped(scope, page, page_size, is_complete)

    async def update_profile(
        self, profile_id: UUID, scope: TenantScope, data: ProfileSections
    ) -> Profile:
        profile = await self.get_profile(profile_id, scope)
        self._apply(profile, data)
        return await self.repo.update(profile)

    async def record_crs(self, user: User, scope: TenantScope, result: CrsResult) -> Profile:
        """Store a CRS result on the user's profile and append it to the history.

        Raises:
            NotFoundError: If the user has no profile yet
        """
        profile = await self.get_own(user, scope)
        if profile is None:
            raise NotFoundError("Profile not found", resource="profile")

        now = utcnow()
        profile.crs_inputs = result.inputs
        profile.crs_current_score = result.score
        profile.crs_breakdown = result.breakdown
        profile.crs_history = [
            *(profile.crs_history or []),
            {
                "score": result.score,
                "breakdown": result.breakdown,
                "calculated_at": now.isoformat(),
            },
        ]
        profile.last_updated = now

        log.info("crs_recorded", profile_id=str(profile.id), score=result.score)
        return await self.repo.update(profile)

    async def progress(self, user: User, scope: TenantScope) -> ProfileProgress:
        profile = await self.get_own(user, scope)
        completed = profile.completed_sections if profile else []
        return ProfileProgress(
            completed_sections=completed,
            missing_sections=[section for section in PROFILE_SECTIONS if section not in completed],
            total_sections=len(PROFILE_SECTIONS),
            completion_percentage=profile.completion_percentage if profile else 0,
            is_complete=bool(profile and profile.is_complete),
        )


ProfileSvc = Annotated[ProfileService, Depends(ProfileService)]
