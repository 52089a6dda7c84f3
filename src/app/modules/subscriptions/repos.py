"""Subscription and plan repositories."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy import func, select

from app.api.dependencies import DBSession
from app.modules.subscriptions.models import Subscription, SubscriptionPlan


class PlanRepository:
    """Repository for SubscriptionPlan database operations."""

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def create(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        self.session.add(plan)
        await self.session.flush()
        return plan

    async def get_by_id(self, plan_id: UUID) -> SubscriptionPlan | None:
        return await self.session.get(SubscriptionPlan, plan_id)

    async def get_by_name(self, name: str) -> SubscriptionPlan | None:
        stmt = select(SubscriptionPlan).where(SubscriptionPlan.name == name)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_by_name(self, name: str) -> SubscriptionPlan | None:
        stmt = select(SubscriptionPlan).where(
            SubscriptionPlan.name == name,
            SubscriptionPlan.is_active.is_(True),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def first_active(self) -> SubscriptionPlan | None:
        """Cheapest-ranked active plan, used when the trial plan is missing."""
        stmt = (
            select(SubscriptionPlan)
            .where(SubscriptionPlan.is_active.is_(True))
            .order_by(SubscriptionPlan.sort_order, SubscriptionPlan.price)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_plans(self, include_inactive: bool = False) -> list[SubscriptionPlan]:
        stmt = select(SubscriptionPlan).order_by(
            SubscriptionPlan.sort_order, SubscriptionPlan.price
        )
        if not include_inactive:
            stmt = stmt.where(SubscriptionPlan.is_active.is_(True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        await self.session.flush()
        return plan


class SubscriptionRepository:
    """Repository for Subscription database operations.

    A tenant has at most one subscription.
    """

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def create(self, subscription: Subscription) -> Subscription:
        self.session.add(subscription)
        await self.session.flush()
        return subscription

    async def get_by_id(self, subscription_id: UUID) -> Subscription | None:
        return await self.session.get(Subscription, subscription_id)

    async def get_for_tenant(self, tenant_id: UUID) -> Subscription | None:
        stmt = select(Subscription).where(Subscription.tenant_id == tenant_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_paginated(
        self,
        page: int = 1,
        page_size: int = 20,
        status: str | None = None,
    ) -> tuple[list[Subscription], int]:
        criteria = [Subscription.status == status] if status else []

        count_stmt = select(func.count()).select_from(Subscription).where(*criteria)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(Subscription)
            .where(*criteria)
            .order_by(Subscription.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def list_by_status(self, *statuses: str) -> list[Subscription]:
        stmt = select(Subscription).where(Subscription.status.in_(statuses))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_ending_between(
        self,
        start: datetime,
        end: datetime,
        statuses: tuple[str, ...],
    ) -> list[Subscription]:
        """Subscriptions whose trial or paid period ends inside [start, end]."""
        stmt = select(Subscription).where(
            Subscription.status.in_(statuses),
            (Subscription.trial_end.between(start, end))
            | (Subscription.current_period_end.between(start, end)),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[str, int]:
        stmt = select(Subscription.status, func.count()).group_by(Subscription.status)
        result = await self.session.execute(stmt)
        return {status: count for status, count in result.all()}

    async def update(self, subscription: Subscription) -> Subscription:
        await self.session.flush()
        return subscription


PlanRepo = Annotated[PlanRepository, Depends(PlanRepository)]
SubscriptionRepo = Annotated[SubscriptionRepository, Depends(SubscriptionRepository)]
