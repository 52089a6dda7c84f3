"""MFA settings repository."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select

from app.api.dependencies import DBSession
from app.modules.mfa.models import MFASettings


class MFASettingsRepository:
    """Repository for MFASettings rows, keyed by (user, tenant)."""

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def get(self, user_id: UUID, tenant_id: UUID) -> MFASettings | None:
        stmt = select(MFASettings).where(
            MFASettings.user_id == user_id,
            MFASettings.tenant_id == tenant_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, settings: MFASettings) -> MFASettings:
        self.session.add(settings)
        await self.session.flush()
        return settings

    async def update(self, settings: MFASettings) -> MFASettings:
        await self.session.flush()
        return settings


MFASettingsRepo = Annotated[MFASettingsRepository, Depends(MFASettingsRepository)]
