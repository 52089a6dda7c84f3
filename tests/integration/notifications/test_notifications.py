"""Integration tests for notification targeting and trial reminders."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ForbiddenError, NotFoundError
from app.core.utils.time import utcnow
from app.modules.notifications.models import NotificationCategory, NotificationStatus
from app.modules.notifications.repos import NotificationRepository
from app.modules.notifications.schemas import NotificationCreate
from app.modules.notifications.services import NotificationService
from app.modules.subscriptions.models import Subscription, SubscriptionStatus
from app.modules.tenants.models import Tenant
from app.modules.users.models import User
from tests.factories import auth_headers


pytestmark = pytest.mark.integration


async def notify(db: AsyncSession, author: User, **fields):
    data = NotificationCreate(title="Draw results", message="New draw published", **fields)
    return await NotificationService(db).create(author, data)


class TestTargeting:
    async def test_tenant_target_reaches_only_that_tenant(
        self, db: AsyncSession, super_admin: User, user_a: User, user_b: User, tenant_a: Tenant
    ):
        await notify(db, super_admin, target_tenants=[tenant_a.id])
        service = NotificationService(db)

        _, total_a, unread_a = await service.list_for_user(user_a)
        _, total_b, _ = await service.list_for_user(user_b)

        assert (total_a, unread_a) == (1, 1)
        assert total_b == 0

    async def test_role_and_user_targets(
        self, db: AsyncSession, super_admin: User, admin_a: User, user_a: User
    ):
        await notify(db, super_admin, target_roles=["admin"])
        await notify(db, super_admin, target_users=[user_a.id])
        service = NotificationService(db)

        assert await service.unread_count(admin_a) == 1
        assert await service.unread_count(user_a) == 1

    async def test_global_reaches_everyone(
        self, db: AsyncSession, super_admin: User, user_a: User, user_b: User
    ):
        await notify(db, super_admin, is_global=True)
        service = NotificationService(db)

        assert await service.unread_count(user_a) == 1
        assert await service.unread_count(user_b) == 1

    async def test_scheduled_and_expired_are_hidden(
        self, db: AsyncSession, super_admin: User, user_a: User
    ):
        now = utcnow()
        await notify(db, super_admin, is_global=True, scheduled_for=now + timedelta(hours=1))
        await notify(db, super_admin, is_global=True, expires_at=now - timedelta(hours=1))

        assert await NotificationService(db).unread_count(user_a) == 0

    async def test_only_super_admins_create(self, db: AsyncSession, admin_a: User):
        with pytest.raises(ForbiddenError):
            await notify(db, admin_a, is_global=True)

    async def test_candidate_query_skips_unrelated_rows(
        self,
        db: AsyncSession,
        super_admin: User,
        user_a: User,
        user_b: User,
        tenant_b: Tenant,
    ):
        await notify(db, super_admin, target_tenants=[tenant_b.id])
        await notify(db, super_admin, target_users=[user_b.id])
        await notify(db, super_admin, target_roles=["admin"])
        mine = await notify(db, super_admin, target_users=[user_a.id])

        candidates = await NotificationRepository(db).list_visible_candidates(
            user_a.id, user_a.role, user_a.tenant_id, utcnow()
        )

        assert [n.id for n in candidates] == [mine.id]

    async def test_candidate_scan_is_bounded(
        self, db: AsyncSession, super_admin: User, user_a: User
    ):
        for _ in range(3):
            await notify(db, super_admin, is_global=True)

        candidates = await NotificationRepository(db).list_visible_candidates(
            user_a.id, user_a.role, user_a.tenant_id, utcnow(), limit=2
        )

        assert len(candidates) == 2


class TestRecipientStatus:
    async def test_reading_is_per_recipient(
        self, db: AsyncSession, super_admin: User, admin_a: User, user_a: User, tenant_a: Tenant
    ):
        notification = await notify(db, super_admin, target_tenants=[tenant_a.id])
        service = NotificationService(db)

        await service.mark_read(notification.id, user_a)

        assert notification.status_for(user_a.id) == NotificationStatus.READ
        assert notification.status_for(admin_a.id) == NotificationStatus.UNREAD
        assert notification.status == NotificationStatus.UNREAD
        assert await service.unread_count(admin_a) == 1

    async def test_dismissed_notifications_leave_the_inbox(
        self, db: AsyncSession, super_admin: User, user_a: User
    ):
        notification = await notify(db, super_admin, is_global=True)
        service = NotificationService(db)

        await service.dismiss(notification.id, user_a)

        _, total, unread = await service.list_for_user(user_a)
        assert (total, unread) == (0, 0)

    async def test_mark_all_read(self, db: AsyncSession, super_admin: User, user_a: User):
        await notify(db, super_admin, is_global=True)
        await notify(db, super_admin, target_users=[user_a.id])
        service = NotificationService(db)

        assert await service.mark_all_read(user_a) == 2
        assert await service.unread_count(user_a) == 0

    async def test_untargeted_user_cannot_touch_notification(
        self, db: AsyncSession, super_admin: User, user_b: User, tenant_a: Tenant
    ):
        notification = await notify(db, super_admin, target_tenants=[tenant_a.id])

        with pytest.raises(NotFoundError):
            await NotificationService(db).mark_read(notification.id, user_b)

    async def test_archiving_globally_hides_for_all(
        self, db: AsyncSession, super_admin: User, user_a: User
    ):
        notification = await notify(db, super_admin, is_global=True)
        service = NotificationService(db)

        await service.set_status(super_admin, notification.id, NotificationStatus.ARCHIVED)

        assert await service.unread_count(user_a) == 0


class TestTrialReminders:
    async def test_trial_ending_soon_warns_super_admins(
        self, db: AsyncSession, super_admin: User, subscription_a: Subscription
    ):
        subscription_a.trial_end = utcnow() + timedelta(days=2)
        await db.flush()
        service = NotificationService(db)

        result = await service.check_trial_expirations()

        assert (result.expiring_soon, result.expiring_later) == (1, 0)
        items, total, _ = await service.list_for_user(super_admin)
        assert total == 1
        assert items[0].category == NotificationCategory.TRIAL
        assert items[0].priority == "high"
        assert items[0].related_entity_id == str(subscription_a.tenant_id)

    async def test_trial_ending_later_is_informational(
        self, db: AsyncSession, super_admin: User, subscription_a: Subscription
    ):
        subscription_a.trial_end = utcnow() + timedelta(days=5)
        await db.flush()

        result = await NotificationService(db).check_trial_expirations()

        assert (result.expiring_soon, result.expiring_later) == (0, 1)

    async def test_tenant_is_reminded_once_per_day(
        self, db: AsyncSession, super_admin: User, subscription_a: Subscription
    ):
        subscription_a.trial_end = utcnow() + timedelta(days=2)
        await db.flush()
        service = NotificationService(db)

        await service.check_trial_expirations()
        second = await service.check_trial_expirations()

        assert (second.expiring_soon, second.expiring_later) == (0, 0)

    async def test_fresh_trial_falls_in_notice_window(
        self, db: AsyncSession, super_admin: User, subscription_a: Subscription
    ):
        result = await NotificationService(db).check_trial_expirations()

        assert (result.expiring_soon, result.expiring_later) == (0, 1)


class TestPaymentAlerts:
    async def test_past_due_subscription_alerts_super_admins(
        self, db: AsyncSession, super_admin: User, subscription_a: Subscription, tenant_a: Tenant
    ):
        subscription_a.status = SubscriptionStatus.PAST_DUE.value
        await db.flush()
        service = NotificationService(db)

        result = await service.check_payment_failures()

        assert result.payment_failures == 1
        items, total, _ = await service.list_for_user(super_admin)
        assert total == 1
        assert items[0].category == NotificationCategory.PAYMENT
        assert items[0].priority == "urgent"
        assert items[0].title == f"Payment Failed - {tenant_a.name}"
        assert items[0].related_entity_id == str(subscription_a.id)
        assert [action["action"] for action in items[0].actions] == [
            "view_subscription",
            "suspend_subscription",
        ]

    async def test_subscription_is_reported_once_per_day(
        self, db: AsyncSession, super_admin: User, subscription_a: Subscription
    ):
        subscription_a.status = SubscriptionStatus.PAST_DUE.value
        await db.flush()
        service = NotificationService(db)

        await service.check_payment_failures()
        second = await service.check_payment_failures()

        assert second.payment_failures == 0

    async def test_healthy_subscriptions_are_ignored(
        self, db: AsyncSession, super_admin: User, subscription_a: Subscription
    ):
        result = await NotificationService(db).check_payment_failures()

        assert result.payment_failures == 0
        _, total, _ = await NotificationService(db).list_for_user(super_admin)
        assert total == 0


class TestNotificationApi:
    async def test_inbox(
        self, client: AsyncClient, db: AsyncSession, super_admin: User, user_a: User
    ):
        notification = await notify(db, super_admin, is_global=True)
        await db.commit()

        inbox = await client.get("/api/v1/notifications", headers=auth_headers(user_a))
        assert inbox.status_code == 200
        assert inbox.json()["unread"] == 1

        read = await client.post(
            f"/api/v1/notifications/{notification.id}/read", headers=auth_headers(user_a)
        )
        assert read.status_code == 200
        assert read.json()["status"] == "read"

        count = await client.get("/api/v1/notifications/unread-count", headers=auth_headers(user_a))
        assert count.json()["unread"] == 0

    async def test_admin_endpoints_need_super_admin(self, client: AsyncClient, admin_a: User):
        response = await client.post(
            "/api/v1/notifications/admin",
            json={"title": "Hi", "message": "Hello", "is_global": True},
            headers=auth_headers(admin_a),
        )

        assert response.status_code == 403

    async def test_super_admin_creates_notification(self, client: AsyncClient, super_admin: User):
        response = await client.post(
            "/api/v1/notifications/admin",
            json={"title": "Maintenance", "message": "Tonight 22:00 UTC", "is_global": True},
            headers=auth_headers(super_admin),
        )

        assert response.status_code == 201
        assert response.json()["is_global"] is True

    async def test_payment_check_endpoint(
        self,
        client: AsyncClient,
        db: AsyncSession,
        super_admin: User,
        admin_a: User,
        subscription_a: Subscription,
    ):
        subscription_a.status = SubscriptionStatus.PAST_DUE.value
        await db.commit()

        denied = await client.post(
            "/api/v1/notifications/admin/check-payments", headers=auth_headers(admin_a)
        )
        assert denied.status_code == 403

        response = await client.post(
            "/api/v1/notifications/admin/check-payments", headers=auth_headers(super_admin)
        )
        assert response.status_code == 200
        assert response.json() == {"payment_failures": 1}
