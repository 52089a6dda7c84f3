"""Tenant repository for database operations."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy import func, select

from app.api.dependencies import DBSession
from app.modules.tenants.models import Tenant


class TenantRepository:
    """Repository for Tenant database operations.

    Tenants are platform-level rows; access control happens in the
    service and route layers.
    """

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def create(self, tenant: Tenant) -> Tenant:
        self.session.add(tenant)
        await self.session.flush()
        return tenant

    async def get_by_id(self, tenant_id: UUID) -> Tenant | None:
        return await self.session.get(Tenant, tenant_id)

    async def get_by_domain(self, domain: str) -> Tenant | None:
        stmt = select(Tenant).where(Tenant.domain == domain.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_paginated(
        self,
        page: int = 1,
        page_size: int = 20,
        status: str | None = None,
        search: str | None = None,
    ) -> tuple[list[Tenant], int]:
        """List tenants with pagination.

        Args:
            page: Page number (1-indexed)
            page_size: Number of items per page
            status: Optional status filter
            search: Optional case-insensitive match on name or domain

        Returns:
            Tuple of (tenants list, total count)
        """
        criteria = []
        if status:
            criteria.append(Tenant.status == status)
        if search:
            pattern = f"%{search.lower()}%"
            criteria.append(Tenant.name.ilike(pattern) | Tenant.domain.ilike(pattern))

        count_stmt = select(func.count()).select_from(Tenant).where(*criteria)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(Tenant)
            .where(*criteria)
            .order_by(Tenant.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def list_all(self) -> list[Tenant]:
        result = await self.session.execute(select(Tenant).order_by(Tenant.name))
        return list(result.scalars().all())

    async def list_by_status(self, *statuses: str) -> list[Tenant]:
        stmt = select(Tenant).where(Tenant.status.in_(statuses))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[str, int]:
        stmt = select(Tenant.status, func.count()).group_by(Tenant.status)
        result = await self.session.execute(stmt)
        return {status: count for status, count in result.all()}

    async def update(self, tenant: Tenant) -> Tenant:
        await self.session.flush()
        return tenant


TenantRepo = Annotated[TenantRepository, Depends(TenantRepository)]
