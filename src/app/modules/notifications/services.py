"""Notification service."""

import math
from datetime import datetime, time, timedelta
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import Depends

from app.api.dependencies import DBSession
from app.core.errors import ForbiddenError, NotFoundError
from app.core.utils.time import as_utc, utcnow
from app.modules.notifications.models import (
    Notification,
    NotificationCategory,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)
from app.modules.notifications.repos import NotificationRepository
from app.modules.notifications.schemas import (
    NotificationAction,
    NotificationCreate,
    PaymentCheckResult,
    TrialCheckResult,
)
from app.modules.subscriptions.models import SubscriptionStatus
from app.modules.subscriptions.repos import SubscriptionRepository
from app.modules.tenants.repos import TenantRepository
from app.modules.users.models import User, UserRole


log = structlog.get_logger()

TRIAL_WARNING_DAYS = 3
TRIAL_NOTICE_DAYS = 7
TRIAL_CHECK_SOURCE = "trial_expiration_checker"
PAYMENT_CHECK_SOURCE = "payment_failure_checker"


class NotificationService:
    """Create notifications and serve them to their recipients."""

    def __init__(self, db: DBSession) -> None:
        self.db = db
        self.repo = NotificationRepository(db)
        self.subscriptions = SubscriptionRepository(db)
        self.tenants = TenantRepository(db)

    def _ensure_super_admin(self, actor: User) -> None:
        if not actor.is_super_admin:
            raise ForbiddenError(
                "Only super admins can manage notifications",
                error_code="notification_forbidden",
            )

    async def create(self, actor: User, data: NotificationCreate) -> Notification:
        self._ensure_super_admin(actor)
        return await self._create(data, created_by=actor.id)

    async def _create(
        self, data: NotificationCreate, created_by: UUID | None = None
    ) -> Notification:
        notification = Notification(
            title=data.title,
            message=data.message,
            type=data.type.value,
            category=data.category.value,
            priority=data.priority.value,
            status=NotificationStatus.UNREAD.value,
            target_users=[str(user_id) for user_id in data.target_users],
            target_roles=list(data.target_roles),
            target_tenants=[str(tenant_id) for tenant_id in data.target_tenants],
            is_global=data.is_global,
            related_entity_type=data.related_entity_type,
            related_entity_id=data.related_entity_id,
            actions=[action.model_dump() for action in data.actions],
            scheduled_for=data.scheduled_for,
            expires_at=data.expires_at,
            metadata_=data.metadata,
            read_by=[],
            created_by=created_by,
        )
        notification = await self.repo.create(notification)
        log.info(
            "notification_created",
            notification_id=str(notification.id),
            category=notification.category,
            is_global=notification.is_global,
        )
        return notification

    async def _visible_to(
        self,
        user: User,
        category: str | None = None,
        priority: str | None = None,
    ) -> list[Notification]:
        candidates = await self.repo.list_visible_candidates(
            user.id, user.role, user.tenant_id, utcnow(), category, priority
        )
        return [
            n
            for n in candidates
            if n.is_live
            and n.targets(user.id, user.role, user.tenant_id)
            and not n.is_hidden_for(user.id)
        ]

    async def list_for_user(
        self,
        user: User,
        page: int = 1,
        page_size: int = 20,
        status: str | None = None,
        category: str | None = None,
        priority: str | None = None,
    ) -> tuple[list[Notification], int, int]:
        """Notifications addressed to ``user``.

        Returns:
            Tuple of (page of notifications, total matching, unread count)
        """
        visible = await self._visible_to(user, category, priority)
        unread = sum(1 for n in visible if not n.is_read_by(user.id))
        if status:
            visible = [n for n in visible if n.status_for(user.id) == status]
        start = (page - 1) * page_size
        return visible[start : start + page_size], len(visible), unread

    async def unread_count(self, user: User) -> int:
        return sum(1 for n in await self._visible_to(user) if not n.is_read_by(user.id))

    async def _get_for_recipient(self, notification_id: UUID, user: User) -> Notification:
        notification = await self.repo.get_by_id(notification_id)
        if notification is None or not (
            user.is_super_admin or notification.targets(user.id, user.role, user.tenant_id)
        ):
            raise NotFoundError(
                "Notification not found",
                resource="notification",
                resource_id=str(notification_id),
            )
        return notification

    async def _set_recipient_status(
        self, notification_id: UUID, user: User, status: str
    ) -> Notification:
        notification = await self._get_for_recipient(notification_id, user)
        notification.mark_read(user.id, status)
        return await self.repo.update(notification)

    async def mark_read(self, notification_id: UUID, user: User) -> Notification:
        return await self._set_recipient_status(
            notification_id, user, NotificationStatus.READ.value
        )

    async def mark_all_read(self, user: User) -> int:
        unread = [n for n in await self._visible_to(user) if not n.is_read_by(user.id)]
        for notification in unread:
            notification.mark_read(user.id)
        await self.db.flush()
        return len(unread)

    async def dismiss(self, notification_id: UUID, user: User) -> Notification:
        return await self._set_recipient_status(
            notification_id, user, NotificationStatus.DISMISSED.value
        )

    async def archive(self, notification_id: UUID, user: User) -> Notification:
        return await self._set_recipient_status(
            notification_id, user, NotificationStatus.ARCHIVED.value
        )

    async def set_status(
        self, actor: User, notification_id: UUID, status: NotificationStatus
    ) -> Notification:
        """Change the shared status, hiding or restoring it for every recipient."""
        self._ensure_super_admin(actor)
        notification = await self._get_for_recipient(notification_id, actor)
        notification.status = status.value
        log.info(
            "notification_status_changed",
            notification_id=str(notification_id),
            status=status.value,
        )
        return await self.repo.update(notification)

    async def list_all(
        self,
        actor: User,
        page: int = 1,
        page_size: int = 50,
        **filters: Any,
    ) -> tuple[list[Notification], int]:
        self._ensure_super_admin(actor)
        return await self.repo.list_paginated(page, page_size, **filters)

    async def check_trial_expirations(self, now: datetime | None = None) -> TrialCheckResult:
        """Warn super admins about trials ending within the next week.

        Trials ending within three days raise a high-priority warning and
        those within seven days an informational notice. Each tenant is
        notified at most once per day.
        """
        now = now or utcnow()
        warning_cutoff = now + timedelta(days=TRIAL_WARNING_DAYS)
        notice_cutoff = now + timedelta(days=TRIAL_NOTICE_DAYS)
        start_of_day = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)

        expiring = await self.subscriptions.list_ending_between(
            now,
            notice_cutoff,
            (SubscriptionStatus.TRIAL.value,),
        )
        result = TrialCheckResult(expiring_soon=0, expiring_later=0)
        for subscription in expiring:
            trial_end = as_utc(subscription.trial_end)
            if trial_end is None or not now <= trial_end <= notice_cutoff:
                continue
            tenant_id = str(subscription.tenant_id)
            if await self.repo.exists_for_entity_since(
                NotificationCategory.TRIAL.value, "tenant", tenant_id, start_of_day
            ):
                continue
            tenant = await self.tenants.get_by_id(subscription.tenant_id)
            if tenant is None:
                continue

            days_left = max(1, math.ceil((trial_end - now).total_seconds() / 86400))
            soon = trial_end <= warning_cutoff
            message = f"The trial period for {tenant.name} expires in {days_left} days."
            if soon:
                message += " Consider reaching out to discuss subscription options."
            await self._create(
                NotificationCreate(
                    title=f"Trial Expiring{' Soon' if soon else ''} - {tenant.name}",
                    message=message,
                    type=NotificationType.WARNING if soon else NotificationType.INFO,
                    category=NotificationCategory.TRIAL,
                    priority=NotificationPriority.HIGH if soon else NotificationPriority.MEDIUM,
                    target_roles=[UserRole.SUPER_ADMIN.value],
                    related_entity_type="tenant",
                    related_entity_id=tenant_id,
                    actions=[
                        NotificationAction(
                            label="View Tenant",
                            action="view_tenant",
                            url=f"/admin/tenants/{tenant_id}",
                        ),
                    ],
                    metadata={
                        "source": TRIAL_CHECK_SOURCE,
                        "subscription_id": str(subscription.id),
                        "trial_end": trial_end.isoformat(),
                    },
                )
            )
            if soon:
                result.expiring_soon += 1
            else:
                result.expiring_later += 1

        log.info("trial_expirations_checked", **result.model_dump())
        return result

    async def check_payment_failures(self, now: datetime | None = None) -> PaymentCheckResult:
        """Raise an urgent notice for every past due subscription.

        Each subscription is reported at most once per day.
        """
        now = now or utcnow()
        start_of_day = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
        result = PaymentCheckResult(payment_failures=0)

        for subscription in await self.subscriptions.list_by_status(
            SubscriptionStatus.PAST_DUE.value
        ):
            subscription_id = str(subscription.id)
            if await self.repo.exists_for_entity_since(
                NotificationCategory.PAYMENT.value, "subscription", subscription_id, start_of_day
            ):
                continue
            tenant = await self.tenants.get_by_id(subscription.tenant_id)
            if tenant is None:
                continue

            await self._create(
                NotificationCreate(
                    title=f"Payment Failed - {tenant.name}",
                    message=(
                        f"Payment failed for {tenant.name}. The subscription may be "
                        "suspended if payment is not resolved soon."
                    ),
                    type=NotificationType.ERROR,
                    category=NotificationCategory.PAYMENT,
                    priority=NotificationPriority.URGENT,
                    target_roles=[UserRole.SUPER_ADMIN.value],
                    related_entity_type="subscription",
                    related_entity_id=subscription_id,
                    actions=[
                        NotificationAction(
                            label="View Subscription",
                            action="view_subscription",
                            url=f"/admin/subscriptions/{subscription_id}",
                        ),
                        NotificationAction(
                            label="Suspend Subscription",
                            action="suspend_subscription",
                            url=f"/api/v1/subscriptions/{subscription_id}/suspend",
                        ),
                    ],
                    metadata={
                        "source": PAYMENT_CHECK_SOURCE,
                        "tenant_id": str(tenant.id),
                        "current_period_end": subscription.current_period_end.isoformat(),
                    },
                )
            )
            result.payment_failures += 1

        log.info("payment_failures_checked", **result.model_dump())
        return result


NotificationSvc = Annotated[NotificationService, Depends(NotificationService)]
