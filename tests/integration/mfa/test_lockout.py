"""Integration tests for MFA enrolment, verification and lockout."""

from unittest.mock import AsyncMock

import pyotp
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import TenantScope
from app.core.errors import BadRequestError, LockedError
from app.modules.mfa.models import MFAMethod
from app.modules.mfa.services import MFAService
from app.modules.users.models import User
from tests.factories import auth_headers


pytestmark = pytest.mark.integration


async def enrol_totp(service: MFAService, user: User, scope: TenantScope) -> pyotp.TOTP:
    setup = await service.setup_totp(user, scope)
    totp = pyotp.TOTP(setup.secret)
    assert await service.verify_and_enable_totp(user, scope, totp.now())
    return totp


def wrong_code(totp: pyotp.TOTP) -> str:
    return str((int(totp.now()) + 500000) % 1000000).zfill(6)


class TestSettings:
    async def test_admins_must_use_mfa_immediately(self, db: AsyncSession, admin_a: User):
        mfa = await MFAService(db).get_settings(admin_a, TenantScope.for_user(admin_a))

        assert mfa.policy_required is True
        assert mfa.grace_period_days == 0

    async def test_users_get_a_grace_period(self, db: AsyncSession, user_a: User):
        mfa = await MFAService(db).get_settings(user_a, TenantScope.for_user(user_a))

        assert mfa.policy_required is False
        assert mfa.is_mfa_required() is False

    async def test_settings_are_per_tenant(self, db: AsyncSession, super_admin: User, tenant_a):
        service = MFAService(db)

        mfa = await service.get_settings(super_admin, TenantScope(tenant_a.id))

        assert mfa.tenant_id == tenant_a.id


class TestTotp:
    async def test_enrol_and_verify(self, db: AsyncSession, admin_a: User):
        service = MFAService(db)
        scope = TenantScope.for_user(admin_a)
        totp = await enrol_totp(service, admin_a, scope)

        result = await service.verify_mfa(admin_a, scope, MFAMethod.TOTP, totp.now())

        assert result.success is True
        assert result.remaining_attempts == 5

    async def test_verify_before_setup(self, db: AsyncSession, admin_a: User):
        with pytest.raises(BadRequestError):
            await MFAService(db).verify_mfa(
                admin_a, TenantScope.for_user(admin_a), MFAMethod.TOTP, "123456"
            )

    async def test_backup_code_is_single_use(self, db: AsyncSession, admin_a: User):
        service = MFAService(db)
        scope = TenantScope.for_user(admin_a)
        await enrol_totp(service, admin_a, scope)
        code = (await service.regenerate_backup_codes(admin_a, scope))[0]

        assert await service.verify_backup_code(admin_a, scope, code) is True
        assert await service.verify_backup_code(admin_a, scope, code) is False


class TestLockout:
    async def test_locks_after_max_attempts(self, db: AsyncSession, admin_a: User):
        service = MFAService(db)
        scope = TenantScope.for_user(admin_a)
        totp = await enrol_totp(service, admin_a, scope)

        for attempt in range(1, 5):
            result = await service.verify_mfa(admin_a, scope, MFAMethod.TOTP, wrong_code(totp))
            assert result.success is False
            assert result.remaining_attempts == 5 - attempt

        result = await service.verify_mfa(admin_a, scope, MFAMethod.TOTP, wrong_code(totp))
        assert result.remaining_attempts == 0
        assert result.locked_until is not None

        # Even the right code is refused while locked
        with pytest.raises(LockedError):
            await service.verify_mfa(admin_a, scope, MFAMethod.TOTP, totp.now())

    async def test_success_resets_counter(self, db: AsyncSession, admin_a: User):
        service = MFAService(db)
        scope = TenantScope.for_user(admin_a)
        totp = await enrol_totp(service, admin_a, scope)

        await service.verify_mfa(admin_a, scope, MFAMethod.TOTP, wrong_code(totp))
        await service.verify_mfa(admin_a, scope, MFAMethod.TOTP, totp.now())

        mfa = await service.get_settings(admin_a, scope)
        assert mfa.failed_attempts == 0
        assert mfa.locked_until is None

    async def test_lockout_over_api_returns_423(
        self, client: AsyncClient, db: AsyncSession, admin_a: User
    ):
        service = MFAService(db)
        scope = TenantScope.for_user(admin_a)
        totp = await enrol_totp(service, admin_a, scope)
        await db.commit()
        headers = auth_headers(admin_a)
        payload = {"method": "totp", "code": wrong_code(totp)}

        for _ in range(5):
            response = await client.post("/api/v1/mfa/verify", json=payload, headers=headers)
            assert response.status_code == 200
            assert response.json()["success"] is False

        response = await client.post(
            "/api/v1/mfa/verify", json={"method": "totp", "code": totp.now()}, headers=headers
        )

        assert response.status_code == 423
        assert response.json()["error_code"] == "mfa_locked"


class InMemoryCache:
    """Stands in for ``RedisCache`` in the one-time code store."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        self.values[key] = value
        return True

    async def delete(self, key: str) -> bool:
        return self.values.pop(key, None) is not None


class TestCodeMethods:
    async def test_email_is_unavailable_until_confirmed(self, db: AsyncSession, admin_a: User):
        service = MFAService(db)
        scope = TenantScope.for_user(admin_a)

        await service.setup_email(admin_a, scope)

        status = await service.status(admin_a, scope)
        assert status.available_methods == []
        assert await service.needs_setup(admin_a, scope) is True

        assert await service.verify_email(admin_a, scope, "123456") is True
        status = await service.status(admin_a, scope)
        assert status.available_methods == ["email"]
        assert await service.needs_setup(admin_a, scope) is False

    async def test_sms_enrolment_and_login(self, db: AsyncSession, admin_a: User):
        service = MFAService(db)
        scope = TenantScope.for_user(admin_a)
        await service.setup_sms(admin_a, scope, "+1 604 555 0199")

        assert await service.verify_sms(admin_a, scope, "482913") is True
        result = await service.verify_mfa(admin_a, scope, MFAMethod.SMS, "482913")

        assert result.success is True
        assert (await service.status(admin_a, scope)).available_methods == ["sms"]

    async def test_malformed_code_counts_as_failure(self, db: AsyncSession, admin_a: User):
        service = MFAService(db)
        scope = TenantScope.for_user(admin_a)
        await service.setup_email(admin_a, scope)

        assert await service.verify_email(admin_a, scope, "12ab56") is False

        mfa = await service.get_settings(admin_a, scope)
        assert mfa.failed_attempts == 1
        assert mfa.email_verified is False

    async def test_delivered_code_is_required(
        self, db: AsyncSession, admin_a: User, monkeypatch
    ):
        monkeypatch.setattr("app.modules.mfa.services.settings.mfa_code_delivery", True)
        deliver = AsyncMock()
        monkeypatch.setattr("app.modules.mfa.services.enqueue", deliver)
        service = MFAService(db)
        service.codes.cache = InMemoryCache()
        scope = TenantScope.for_user(admin_a)

        await service.setup_sms(admin_a, scope, "+1 604 555 0199")

        job, method, destination, code = deliver.await_args.args
        assert (job, method, destination) == ("deliver_mfa_code", "sms", "+1 604 555 0199")
        other = str((int(code) + 1) % 1000000).zfill(6)
        assert await service.verify_sms(admin_a, scope, other) is False
        assert await service.verify_sms(admin_a, scope, code) is True
        # Codes are single use
        assert await service.verify_sms(admin_a, scope, code) is False

    async def test_disabling_email_forgets_confirmation(self, db: AsyncSession, admin_a: User):
        service = MFAService(db)
        scope = TenantScope.for_user(admin_a)
        await service.setup_email(admin_a, scope)
        await service.verify_email(admin_a, scope, "123456")

        mfa = await service.disable(admin_a, scope, MFAMethod.EMAIL)

        assert mfa.email_enabled is False
        assert mfa.email_verified is False

    async def test_confirm_email_over_api(
        self, client: AsyncClient, db: AsyncSession, admin_a: User
    ):
        headers = auth_headers(admin_a)

        setup = await client.post("/api/v1/mfa/email/setup", headers=headers)
        assert setup.status_code == 202

        response = await client.post(
            "/api/v1/mfa/email/confirm", json={"code": "654321"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["success"] is True

        status = await client.get("/api/v1/mfa/status", headers=headers)
        assert status.json()["available_methods"] == ["email"]
