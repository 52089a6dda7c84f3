"""Impersonation repository."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy import func, select

from app.api.dependencies import DBSession
from app.modules.impersonation.models import Impersonation


class ImpersonationRepository:
    """Repository for Impersonation rows. Only super admins reach it."""

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def create(self, impersonation: Impersonation) -> Impersonation:
        self.session.add(impersonation)
        await self.session.flush()
        return impersonation

    async def get_by_id(self, impersonation_id: UUID) -> Impersonation | None:
        return await self.session.get(Impersonation, impersonation_id)

    async def get_by_session_id(self, session_id: str) -> Impersonation | None:
        stmt = select(Impersonation).where(Impersonation.session_id == session_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(self, super_admin_id: UUID | None = None) -> list[Impersonation]:
        stmt = select(Impersonation).where(Impersonation.is_active.is_(True))
        if super_admin_id is not None:
            stmt = stmt.where(Impersonation.super_admin_id == super_admin_id)
        result = await self.session.execute(stmt.order_by(Impersonation.started_at.desc()))
        return list(result.scalars().all())

    async def count_active(self, super_admin_id: UUID) -> int:
        stmt = select(func.count()).where(
            Impersonation.super_admin_id == super_admin_id,
            Impersonation.is_active.is_(True),
        )
        return int((await self.session.execute(stmt)).scalar_one())

    async def list_history(
        self,
        page: int = 1,
        page_size: int = 20,
        super_admin_id: UUID | None = None,
        target_tenant_id: UUID | None = None,
        started_after: datetime | None = None,
        started_before: datetime | None = None,
    ) -> tuple[list[Impersonation], int]:
        """List sessions, newest first.

        Returns:
            Tuple of (sessions, total count)
        """
        criteria = []
        if super_admin_id is not None:
            criteria.append(Impersonation.super_admin_id == super_admin_id)
        if target_tenant_id is not None:
            criteria.append(Impersonation.target_tenant_id == target_tenant_id)
        if started_after is not None:
            criteria.append(Impersonation.started_at >= started_after)
        if started_before is not None:
            criteria.append(Impersonation.started_at <= started_before)

        count_stmt = select(func.count()).select_from(Impersonation).where(*criteria)
        total = int((await self.session.execute(count_stmt)).scalar_one())

        stmt = (
            select(Impersonation)
            .where(*criteria)
            .order_by(Impersonation.started_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def list_for_stats(self, super_admin_id: UUID | None = None) -> list[Impersonation]:
        stmt = select(Impersonation)
        if super_admin_id is not None:
            stmt = stmt.where(Impersonation.super_admin_id == super_admin_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update(self, impersonation: Impersonation) -> Impersonation:
        await self.session.flush()
        return impersonation


ImpersonationRepo = Annotated[ImpersonationRepository, Depends(ImpersonationRepository)]
