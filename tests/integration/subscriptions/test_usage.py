"""Integration tests for plan limits and usage counters."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import TenantScope
from app.core.errors import ValidationError
from app.core.utils.time import utcnow
from app.modules.subscriptions.models import Subscription, SubscriptionStatus
from app.modules.subscriptions.services import SubscriptionService
from app.modules.tenants.models import Tenant
from app.modules.users.models import User, UserRole
from app.modules.users.schemas import UserUpdate
from app.modules.users.services import UserService
from tests.factories import TEST_PASSWORD, auth_headers


pytestmark = pytest.mark.integration


async def add_user(db: AsyncSession, tenant: Tenant, email: str, role=UserRole.USER) -> User:
    return await UserService(db).create_user(
        tenant_id=tenant.id,
        email=email,
        password=TEST_PASSWORD,
        first_name="Test",
        last_name="User",
        role=role,
    )


class TestUsageCounters:
    async def test_user_creation_increments_usage(
        self, db: AsyncSession, tenant_a: Tenant, subscription_a: Subscription
    ):
        await add_user(db, tenant_a, "one@maple.example.com")
        await add_user(db, tenant_a, "two@maple.example.com", UserRole.ADMIN)

        assert subscription_a.current_users == 2
        assert subscription_a.current_admins == 1
        assert subscription_a.usage_updated_at is not None

    async def test_deactivation_releases_seat(
        self, db: AsyncSession, admin_a: User, user_a: User, subscription_a: Subscription
    ):
        await UserService(db).deactivate_user(user_a.id, admin_a, TenantScope.for_user(admin_a))

        assert subscription_a.current_users == 1

    async def test_reactivation_takes_seat_again(
        self, db: AsyncSession, admin_a: User, user_a: User, subscription_a: Subscription
    ):
        service = UserService(db)
        scope = TenantScope.for_user(admin_a)
        await service.deactivate_user(user_a.id, admin_a, scope)

        await service.activate_user(user_a.id, scope)

        assert subscription_a.current_users == 2

    async def test_promotion_blocked_by_admin_limit(
        self, db: AsyncSession, admin_a: User, user_a: User, subscription_a: Subscription
    ):
        with pytest.raises(ValidationError) as exc_info:
            await UserService(db).update_user(
                user_a.id, UserUpdate(role=UserRole.ADMIN), admin_a, TenantScope.for_user(admin_a)
            )

        assert exc_info.value.error_code == "admin_limit_reached"
        assert subscription_a.current_admins == 1

    async def test_promotion_counts_admin_seat(
        self, db: AsyncSession, admin_a: User, user_a: User, subscription_a: Subscription
    ):
        service = SubscriptionService(db)
        basic = next(p for p in await service.list_plans() if p.name == "basic_monthly")
        await service.change_plan(subscription_a.id, basic.id)

        await UserService(db).update_user(
            user_a.id, UserUpdate(role=UserRole.ADMIN), admin_a, TenantScope.for_user(admin_a)
        )

        assert subscription_a.current_admins == 2
        assert subscription_a.current_users == 2


class TestPlanLimits:
    async def test_user_limit(self, db: AsyncSession, tenant_a: Tenant):
        # The trial plan allows five users
        for index in range(5):
            await add_user(db, tenant_a, f"user{index}@maple.example.com")

        with pytest.raises(ValidationError) as exc_info:
            await add_user(db, tenant_a, "sixth@maple.example.com")

        assert exc_info.value.error_code == "user_limit_reached"

    async def test_admin_limit(self, db: AsyncSession, tenant_a: Tenant, admin_a: User):
        # The trial plan allows a single admin
        with pytest.raises(ValidationError) as exc_info:
            await add_user(db, tenant_a, "second-admin@maple.example.com", UserRole.ADMIN)

        assert exc_info.value.error_code == "admin_limit_reached"

    async def test_change_plan_rejects_smaller_plan(
        self, db: AsyncSession, tenant_a: Tenant, subscription_a: Subscription
    ):
        service = SubscriptionService(db)
        professional = next(
            p for p in await service.list_plans() if p.name == "professional_monthly"
        )
        await service.change_plan(subscription_a.id, professional.id)
        for index in range(6):
            await add_user(db, tenant_a, f"user{index}@maple.example.com")
        trial = await service.get_trial_plan()

        with pytest.raises(ValidationError) as exc_info:
            await service.change_plan(subscription_a.id, trial.id)

        assert exc_info.value.error_code == "plan_limit_exceeded"

    async def test_change_plan_activates_subscription(
        self, db: AsyncSession, subscription_a: Subscription
    ):
        service = SubscriptionService(db)
        basic = next(p for p in await service.list_plans() if p.name == "basic_monthly")

        updated = await service.change_plan(subscription_a.id, basic.id)

        assert updated.status == SubscriptionStatus.ACTIVE
        assert updated.trial_end is None
        assert updated.amount == basic.price


class TestUsageApi:
    async def test_creating_user_over_api_updates_usage(
        self, client: AsyncClient, admin_a: User
    ):
        response = await client.post(
            "/api/v1/users",
            json={
                "email": "new.client@maple.example.com",
                "password": TEST_PASSWORD,
                "first_name": "Nadia",
                "last_name": "Haddad",
            },
            headers=auth_headers(admin_a),
        )
        assert response.status_code == 201

        usage = await client.get("/api/v1/subscriptions/usage", headers=auth_headers(admin_a))

        assert usage.json()["current_users"] == 2
        assert usage.json()["max_users"] == 5

    async def test_regular_user_cannot_add_users(self, client: AsyncClient, user_a: User):
        response = await client.post(
            "/api/v1/users",
            json={
                "email": "sneaky@maple.example.com",
                "password": TEST_PASSWORD,
                "first_name": "S",
                "last_name": "N",
            },
            headers=auth_headers(user_a),
        )

        assert response.status_code == 403

    async def test_super_admin_needs_tenant_to_add_users(
        self, client: AsyncClient, super_admin: User
    ):
        response = await client.post(
            "/api/v1/users",
            json={
                "email": "orphan@example.com",
                "password": TEST_PASSWORD,
                "first_name": "O",
                "last_name": "P",
            },
            headers=auth_headers(super_admin),
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "tenant_context_required"


class TestExpiry:
    async def test_lapsed_trial_is_expired(
        self, db: AsyncSession, subscription_a: Subscription
    ):
        subscription_a.trial_end = utcnow() - timedelta(hours=1)

        expired = await SubscriptionService(db).expire_lapsed()

        assert expired == 1
        assert subscription_a.status == SubscriptionStatus.EXPIRED

    async def test_running_trial_is_left_alone(
        self, db: AsyncSession, subscription_a: Subscription
    ):
        assert await SubscriptionService(db).expire_lapsed() == 0
        assert subscription_a.status == SubscriptionStatus.TRIAL


class TestPlanCatalogue:
    async def test_deleted_plan_is_retired_not_removed(self, db: AsyncSession, plans):
        service = SubscriptionService(db)
        plan = (await service.list_plans())[-1]

        await service.delete_plan(plan.id)

        retired = await service.get_plan(plan.id)
        assert retired.is_active is False
        assert plan.id not in {p.id for p in await service.list_plans()}
        assert plan.id in {p.id for p in await service.list_plans(include_inactive=True)}

    async def test_subscriptions_keep_a_retired_plan(
        self, db: AsyncSession, subscription_a: Subscription
    ):
        service = SubscriptionService(db)

        await service.delete_plan(subscription_a.plan_id)

        subscription = await service.get_for_tenant(subscription_a.tenant_id)
        assert subscription.plan_id == subscription_a.plan_id
