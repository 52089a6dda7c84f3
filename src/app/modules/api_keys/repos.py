"""API key repository."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select, update

from app.api.dependencies import DBSession
from app.core.database.tenant import TenantScope, TenantSession
from app.core.utils.time import utcnow
from app.modules.api_keys.models import ApiKey, ApiKeyStatus


class ApiKeyRepository:
    """Repository for ApiKey rows.

    Management goes through a ``TenantScope``; verification looks keys
    up by hash across all tenants, since the key itself names its tenant.
    """

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def create(self, api_key: ApiKey, scope: TenantScope) -> ApiKey:
        TenantSession(self.session, scope).add(api_key)
        await self.session.flush()
        return api_key

    async def get_by_id(self, key_id: UUID, scope: TenantScope) -> ApiKey | None:
        return await TenantSession(self.session, scope).get(ApiKey, key_id)

    async def get_by_hash(self, key_hash: str) -> ApiKey | None:
        result = await self.session.execute(select(ApiKey).where(ApiKey.key_hash == key_hash))
        return result.scalar_one_or_none()

    async def get_by_key_id(self, key_id: str) -> ApiKey | None:
        result = await self.session.execute(select(ApiKey).where(ApiKey.key_id == key_id))
        return result.scalar_one_or_none()

    async def list_scoped(self, scope: TenantScope, status: str | None = None) -> list[ApiKey]:
        stmt = select(ApiKey).order_by(ApiKey.created_at.desc())
        if status:
            stmt = stmt.where(ApiKey.status == status)
        result = await TenantSession(self.session, scope).execute(stmt)
        return list(result.scalars().all())

    async def update(self, api_key: ApiKey) -> ApiKey:
        await self.session.flush()
        return api_key

    async def expire_lapsed(self) -> int:
        """Mark active keys past ``expires_at`` as expired."""
        stmt = (
            update(ApiKey)
            .where(
                ApiKey.status == ApiKeyStatus.ACTIVE.value,
                ApiKey.expires_at.is_not(None),
                ApiKey.expires_at < utcnow(),
            )
            .values(status=ApiKeyStatus.EXPIRED.value)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0


ApiKeyRepo = Annotated[ApiKeyRepository, Depends(ApiKeyRepository)]
