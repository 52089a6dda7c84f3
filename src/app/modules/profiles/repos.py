"""Profile repository for database operations."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select

from app.api.dependencies import DBSession
from app.core.database.tenant import TenantScope, TenantSession
from app.modules.profiles.models import Profile


class ProfileRepository:
    """Repository for Profile database operations.

    Every method takes the caller's ``TenantScope``; profiles of other
    tenants are invisible rather than forbidden.
    """

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def create(self, profile: Profile, scope: TenantScope) -> Profile:
        TenantSession(self.session, scope).add(profile)
        await self.session.flush()
        return profile

    async def get_by_id(self, profile_id: UUID, scope: TenantScope) -> Profile | None:
        return await TenantSession(self.session, scope).get(Profile, profile_id)

    async def get_for_user(self, user_id: UUID, scope: TenantScope) -> Profile | None:
        stmt = select(Profile).where(Profile.user_id == user_id)
        result = await TenantSession(self.session, scope).execute(stmt)
        return result.scalars().first()

    async def list_scoped(
        self,
        scope: TenantScope,
        page: int = 1,
        page_size: int = 20,
        is_complete: bool | None = None,
    ) -> tuple[list[Profile], int]:
        """List profiles visible in ``scope`` with pagination.

        Returns:
            Tuple of (profiles list, total count)
        """
        criteria = []
        if is_complete is not None:
            criteria.append(Profile.is_complete.is_(is_complete))

        scoped = TenantSession(self.session, scope)
        total = await scoped.count(Profile, *criteria)

        stmt = (
            select(Profile)
            .where(*criteria)
            .order_by(Profile.last_updated.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await scoped.execute(stmt)
        return list(result.scalars().all()), total

    async def update(self, profile: Profile) -> Profile:
        await self.session.flush()
        return profile


ProfileRepo = Annotated[ProfileRepository, Depends(ProfileRepository)]
