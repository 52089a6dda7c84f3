"""Notification repository."""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends
from sqlalchemy import ColumnElement, String, cast, func, or_, select

from app.api.dependencies import DBSession
from app.core.constants import NOTIFICATION_SCAN_LIMIT
from app.modules.notifications.models import HIDDEN_STATUSES, Notification


def _json_list_contains(column: Any, value: str) -> ColumnElement[bool]:
    return cast(column, String).contains(f'"{value}"', autoescape=True)


class NotificationRepository:
    """Repository for Notification rows.

    Targeting is stored as JSON lists. Candidate queries narrow by status,
    schedule, expiry and a textual target match; the exact recipient check
    runs on the loaded rows (``Notification.targets``).
    """

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def create(self, notification: Notification) -> Notification:
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def get_by_id(self, notification_id: UUID) -> Notification | None:
        return await self.session.get(Notification, notification_id)

    async def list_visible_candidates(
        self,
        user_id: UUID,
        role: str,
        tenant_id: UUID | None,
        now: datetime,
        category: str | None = None,
        priority: str | None = None,
        limit: int = NOTIFICATION_SCAN_LIMIT,
    ) -> list[Notification]:
        """Live notifications that may target the user, newest first.

        Target lists are matched as text against their JSON, which works
        on every backend but can over-match; callers still confirm with
        ``Notification.targets``.
        """
        target_clauses = [
            Notification.is_global.is_(True),
            _json_list_contains(Notification.target_users, str(user_id)),
            _json_list_contains(Notification.target_roles, role),
        ]
        if tenant_id is not None:
            target_clauses.append(
                _json_list_contains(Notification.target_tenants, str(tenant_id))
            )

        stmt = select(Notification).where(
            Notification.status.not_in(HIDDEN_STATUSES),
            or_(Notification.scheduled_for.is_(None), Notification.scheduled_for <= now),
            or_(Notification.expires_at.is_(None), Notification.expires_at > now),
            or_(*target_clauses),
        )
        if category:
            stmt = stmt.where(Notification.category == category)
        if priority:
            stmt = stmt.where(Notification.priority == priority)
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_paginated(
        self,
        page: int = 1,
        page_size: int = 50,
        status: str | None = None,
        category: str | None = None,
        priority: str | None = None,
        type_: str | None = None,
        created_after: datetime | None = None,
        created_before: datetime | None = None,
    ) -> tuple[list[Notification], int]:
        criteria = []
        if status:
            criteria.append(Notification.status == status)
        if category:
            criteria.append(Notification.category == category)
        if priority:
            criteria.append(Notification.priority == priority)
        if type_:
            criteria.append(Notification.type == type_)
        if created_after:
            criteria.append(Notification.created_at >= created_after)
        if created_before:
            criteria.append(Notification.created_at <= created_before)

        count_stmt = select(func.count()).select_from(Notification).where(*criteria)
        total = int((await self.session.execute(count_stmt)).scalar_one())

        stmt = (
            select(Notification)
            .where(*criteria)
            .order_by(Notification.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def exists_for_entity_since(
        self,
        category: str,
        entity_type: str,
        entity_id: str,
        since: datetime,
    ) -> bool:
        stmt = select(func.count()).where(
            Notification.category == category,
            Notification.related_entity_type == entity_type,
            Notification.related_entity_id == entity_id,
            Notification.created_at >= since,
        )
        return int((await self.session.execute(stmt)).scalar_one()) > 0

    async def update(self, notification: Notification) -> Notification:
        await self.session.flush()
        return notification


NotificationRepo = Annotated[NotificationRepository, Depends(NotificationRepository)]
