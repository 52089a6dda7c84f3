"""Integration tests for auth endpoints."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit.models import AuditLog
from app.core.utils.time import utcnow
from app.modules.subscriptions.models import Subscription
from app.modules.subscriptions.services import SubscriptionService
from app.modules.tenants.models import Tenant, TenantStatus
from app.modules.users.models import User, UserRole
from tests.factories import TEST_PASSWORD, RegisterRequestFactory, auth_headers


pytestmark = pytest.mark.integration


async def login(client: AsyncClient, email: str, password: str = TEST_PASSWORD, **extra):
    return await client.post(
        "/api/v1/auth/login", json={"email": email, "password": password, **extra}
    )


class TestLogin:
    async def test_login_success(self, client: AsyncClient, user_a: User, tenant_a: Tenant):
        response = await login(client, user_a.email)

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == user_a.email
        assert data["tenant"]["id"] == str(tenant_a.id)
        assert data["subscription_status"] == "trial"
        assert data["access_token"]
        assert data["refresh_token"]

    async def test_wrong_password_is_rejected(self, client: AsyncClient, user_a: User):
        response = await login(client, user_a.email, "Wrong!Passw0rd")

        assert response.status_code == 401
        assert response.json()["error_code"] == "invalid_credentials"

    async def test_failed_login_is_audited(
        self, client: AsyncClient, db: AsyncSession, user_a: User
    ):
        await login(client, user_a.email, "Wrong!Passw0rd")

        result = await db.execute(select(AuditLog).where(AuditLog.action == "login_failure"))
        entry = result.scalar_one()
        assert entry.user_id == user_a.id
        assert entry.metadata_["failure_reason"] == "invalid_password"

    async def test_unknown_email_looks_like_wrong_password(self, client: AsyncClient, plans):
        response = await login(client, "nobody@example.com")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    async def test_email_is_case_insensitive(self, client: AsyncClient, user_a: User):
        response = await login(client, user_a.email.upper())

        assert response.status_code == 200

    async def test_wrong_tenant_domain_is_rejected(self, client: AsyncClient, user_a: User):
        response = await login(client, user_a.email, tenant_domain="northern.example.com")

        assert response.status_code == 401

    async def test_suspended_tenant_cannot_sign_in(
        self, client: AsyncClient, db: AsyncSession, user_a: User, tenant_a: Tenant
    ):
        tenant_a.status = TenantStatus.SUSPENDED.value
        await db.commit()

        response = await login(client, user_a.email)

        assert response.status_code == 401
        assert response.json()["error_code"] == "tenant_inactive"

    async def test_lapsed_subscription_cannot_sign_in(
        self,
        client: AsyncClient,
        db: AsyncSession,
        user_a: User,
        subscription_a: Subscription,
    ):
        subscription_a.trial_end = utcnow() - timedelta(minutes=5)
        await db.commit()

        response = await login(client, user_a.email)

        assert response.status_code == 401
        assert response.json()["error_code"] == "subscription_expired"

    async def test_super_admin_token_has_no_tenant(self, client: AsyncClient, super_admin: User):
        response = await login(client, super_admin.email)

        assert response.status_code == 200
        assert response.json()["tenant"] is None


class TestRegistration:
    async def test_personal_registration_creates_trial_tenant(self, client: AsyncClient, plans):
        payload = RegisterRequestFactory.build().model_dump(mode="json")

        response = await client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["role"] == "user"
        assert data["tenant"]["status"] == "trial"
        assert data["subscription_status"] == "trial"

    async def test_company_registration_makes_admin(self, client: AsyncClient, plans):
        payload = RegisterRequestFactory.build(
            company_name="Prairie Pathways", domain="Prairie.Example.com"
        ).model_dump(mode="json")

        response = await client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["role"] == "admin"
        assert data["tenant"]["domain"] == "prairie.example.com"

    async def test_joining_a_tenant_increments_usage(
        self, client: AsyncClient, db: AsyncSession, tenant_a: Tenant, admin_a: User
    ):
        subscriptions = SubscriptionService(db)
        before = (await subscriptions.get_for_tenant(tenant_a.id)).current_users
        payload = RegisterRequestFactory.build(tenant_id=tenant_a.id).model_dump(mode="json")

        response = await client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 201
        subscription = await subscriptions.get_for_tenant(tenant_a.id)
        await db.refresh(subscription)
        assert subscription.current_users == before + 1
        assert subscription.current_admins == 1

    async def test_duplicate_email_conflicts(self, client: AsyncClient, user_a: User):
        payload = RegisterRequestFactory.build(email=user_a.email).model_dump(mode="json")

        response = await client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 409
        assert response.json()["error_code"] == "email_exists"

    async def test_weak_password_rejected(self, client: AsyncClient, plans):
        payload = RegisterRequestFactory.build().model_dump(mode="json")
        payload["password"] = "alllowercase1"

        response = await client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 422

    async def test_cannot_self_register_as_super_admin(self, client: AsyncClient, plans):
        payload = RegisterRequestFactory.build().model_dump(mode="json")
        payload["role"] = "super_admin"

        response = await client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 422

    async def test_joining_a_tenant_ignores_requested_role(
        self, client: AsyncClient, db: AsyncSession, tenant_b: Tenant
    ):
        subscriptions = SubscriptionService(db)
        admins_before = (await subscriptions.get_for_tenant(tenant_b.id)).current_admins
        payload = RegisterRequestFactory.build(tenant_id=tenant_b.id).model_dump(mode="json")
        payload["role"] = "tenant_admin"

        response = await client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["role"] == "user"
        subscription = await subscriptions.get_for_tenant(tenant_b.id)
        await db.refresh(subscription)
        assert subscription.current_admins == admins_before

        users = await client.get(
            "/api/v1/users",
            headers={"Authorization": f"Bearer {data['access_token']}"},
        )
        assert users.status_code == 403

    async def test_company_founder_may_pick_role(self, client: AsyncClient, plans):
        payload = RegisterRequestFactory.build(
            company_name="Harbour Visas", domain="harbour.example.com"
        ).model_dump(mode="json")
        payload["role"] = "tenant_admin"

        response = await client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 201
        assert response.json()["user"]["role"] == "tenant_admin"


class TestTokens:
    async def test_refresh_rotates_token(self, client: AsyncClient, user_a: User):
        tokens = (await login(client, user_a.email)).json()

        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert response.status_code == 200

        reused = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert reused.status_code == 401

    async def test_me_requires_token(self, client: AsyncClient, plans):
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401

    async def test_token_for_foreign_tenant_is_rejected(
        self, client: AsyncClient, user_a: User, tenant_b: Tenant
    ):
        response = await client.get("/api/v1/auth/me", headers=auth_headers(user_a, tenant_b.id))

        assert response.status_code == 401
        assert response.json()["error_code"] == "tenant_mismatch"

    async def test_role_change_invalidates_token(
        self, client: AsyncClient, db: AsyncSession, user_a: User
    ):
        headers = auth_headers(user_a)
        user_a.role = UserRole.ADMIN.value
        await db.commit()

        response = await client.get("/api/v1/auth/me", headers=headers)

        assert response.status_code == 401
        assert response.json()["error_code"] == "role_changed"


class TestSwitchTenant:
    async def test_super_admin_switches_into_tenant(
        self, client: AsyncClient, super_admin: User, tenant_b: Tenant
    ):
        response = await client.post(
            "/api/v1/auth/switch-tenant",
            json={"tenant_id": str(tenant_b.id)},
            headers=auth_headers(super_admin),
        )

        assert response.status_code == 200
        assert response.json()["tenant"]["id"] == str(tenant_b.id)

    async def test_regular_user_cannot_switch(
        self, client: AsyncClient, user_a: User, tenant_b: Tenant
    ):
        response = await client.post(
            "/api/v1/auth/switch-tenant",
            json={"tenant_id": str(tenant_b.id)},
            headers=auth_headers(user_a),
        )

        assert response.status_code == 403


class TestLogout:
    async def test_logout_revokes_refresh_token(self, client: AsyncClient, user_a: User):
        tokens = (await login(client, user_a.email)).json()

        response = await client.post(
            "/api/v1/auth/logout", json={"refresh_token": tokens["refresh_token"]}
        )
        assert response.status_code == 204

        refreshed = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert refreshed.status_code == 401

    async def test_logout_all_revokes_every_session(self, client: AsyncClient, user_a: User):
        laptop = (await login(client, user_a.email)).json()
        phone = (await login(client, user_a.email)).json()

        response = await client.post(
            "/api/v1/auth/logout-all",
            headers={"Authorization": f"Bearer {laptop['access_token']}"},
        )
        assert response.status_code == 204

        for tokens in (laptop, phone):
            refreshed = await client.post(
                "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
            )
            assert refreshed.status_code == 401


class TestPasswords:
    async def test_change_password(self, client: AsyncClient, user_a: User):
        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": TEST_PASSWORD, "new_password": "Fresh!Passw0rd9"},
            headers=auth_headers(user_a),
        )

        assert response.status_code == 204
        assert (await login(client, user_a.email)).status_code == 401
        assert (await login(client, user_a.email, "Fresh!Passw0rd9")).status_code == 200

    async def test_change_password_needs_current_password(
        self, client: AsyncClient, user_a: User
    ):
        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "Wrong!Passw0rd", "new_password": "Fresh!Passw0rd9"},
            headers=auth_headers(user_a),
        )

        assert response.status_code == 401
        assert response.json()["error_code"] == "invalid_password"

    async def test_admin_forces_password_change(
        self, client: AsyncClient, admin_a: User, user_a: User
    ):
        response = await client.post(
            f"/api/v1/auth/force-password-change/{user_a.id}", headers=auth_headers(admin_a)
        )

        assert response.status_code == 200
        assert response.json()["must_change_password"] is True
        assert response.json()["requires_password_change"] is True

        await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": TEST_PASSWORD, "new_password": "Fresh!Passw0rd9"},
            headers=auth_headers(user_a),
        )
        me = await client.get("/api/v1/users/me", headers=auth_headers(user_a))
        assert me.json()["requires_password_change"] is False

    async def test_regular_user_cannot_force_password_change(
        self, client: AsyncClient, admin_a: User, user_a: User
    ):
        response = await client.post(
            f"/api/v1/auth/force-password-change/{admin_a.id}", headers=auth_headers(user_a)
        )

        assert response.status_code == 403

    async def test_admin_cannot_reach_other_tenant_users(
        self, client: AsyncClient, admin_b: User, user_a: User
    ):
        response = await client.post(
            f"/api/v1/auth/force-password-change/{user_a.id}", headers=auth_headers(admin_b)
        )

        assert response.status_code == 404


class TestUserTenants:
    async def test_user_sees_own_tenant(
        self, client: AsyncClient, user_a: User, tenant_a: Tenant, tenant_b: Tenant
    ):
        response = await client.get("/api/v1/auth/tenants", headers=auth_headers(user_a))

        assert response.status_code == 200
        assert [tenant["id"] for tenant in response.json()] == [str(tenant_a.id)]

    async def test_super_admin_sees_every_tenant(
        self, client: AsyncClient, super_admin: User, tenant_a: Tenant, tenant_b: Tenant
    ):
        response = await client.get("/api/v1/auth/tenants", headers=auth_headers(super_admin))

        assert response.status_code == 200
        assert {tenant["id"] for tenant in response.json()} >= {str(tenant_a.id), str(tenant_b.id)}
