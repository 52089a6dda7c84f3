"""MFA service: TOTP enrolment, code verification and lockout."""

import re
from typing import Annotated

import pyotp
import structlog
from fastapi import Depends

from app.api.dependencies import DBSession
from app.config import settings
from app.core.cache.redis import OneTimeCodeStore, RedisCache
from app.core.constants import MFA_CODE_LENGTH, MFA_CODE_TTL_SECONDS, MFA_TOTP_VALID_WINDOW
from app.core.database.tenant import TenantScope
from app.core.errors import BadRequestError, LockedError
from app.core.jobs import enqueue
from app.core.utils.time import as_utc, utcnow
from app.modules.mfa.models import MFAMethod, MFASettings
from app.modules.mfa.repos import MFASettingsRepository
from app.modules.mfa.schemas import MFAStatus, PolicyUpdate, TotpSetupResponse, VerifyResponse
from app.modules.users.models import User


log = structlog.get_logger()

_CODE_FORMAT = re.compile(rf"\d{{{MFA_CODE_LENGTH}}}")


class MFAService:
    """Multi-factor authentication for one user in one tenant.

    Every failed verification counts towards ``max_attempts``; reaching
    it locks all methods for ``lockout_minutes``. With code delivery on,
    SMS and email codes are stored in Redis and sent by the
    ``deliver_mfa_code`` job.
    """

    def __init__(self, db: DBSession) -> None:
        self.db = db
        self.repo = MFASettingsRepository(db)
        self.codes = OneTimeCodeStore(
            RedisCache(prefix="mfa:code:"),
            length=MFA_CODE_LENGTH,
            ttl_seconds=MFA_CODE_TTL_SECONDS,
        )

    async def get_settings(self, user: User, scope: TenantScope) -> MFASettings:
        """Get the user's settings in the scope's tenant, creating defaults.

        Admin-like roles must use MFA immediately; everyone else gets a
        grace period.
        """
        tenant_id = scope.require_tenant()
        mfa = await self.repo.get(user.id, tenant_id)
        if mfa is not None:
            return mfa

        mfa = MFASettings(
            user_id=user.id,
            tenant_id=tenant_id,
            policy_required=user.is_admin,
        )
        if user.is_admin:
            mfa.grace_period_days = 0
        mfa = await self.repo.create(mfa)
        log.info("mfa_settings_created", user_id=str(user.id), required=mfa.policy_required)
        return mfa

    def _ensure_unlocked(self, mfa: MFASettings) -> None:
        if mfa.is_locked:
            locked_until = as_utc(mfa.locked_until)
            raise LockedError(
                "Account is temporarily locked due to too many failed attempts",
                error_code="mfa_locked",
                details={"locked_until": locked_until.isoformat() if locked_until else None},
            )

    async def _record_result(self, mfa: MFASettings, success: bool, method: MFAMethod) -> bool:
        if success:
            mfa.reset_failed_attempts()
            mfa.last_login = utcnow()
            log.info("mfa_verified", user_id=str(mfa.user_id), method=method.value)
        else:
            mfa.increment_failed_attempts()
            log.warning(
                "mfa_verification_failed",
                user_id=str(mfa.user_id),
                method=method.value,
                failed_attempts=mfa.failed_attempts,
            )
            if mfa.is_locked:
                log.warning(
                    "mfa_locked", user_id=str(mfa.user_id), locked_until=str(mfa.locked_until)
                )
        await self.repo.update(mfa)
        return success

    # ------------------------------------------------------------
    # TOTP
    # ------------------------------------------------------------

    async def setup_totp(self, user: User, scope: TenantScope) -> TotpSetupResponse:
        """Generate a TOTP secret and backup codes.

        TOTP stays disabled until ``verify_and_enable_totp`` succeeds.
        """
        mfa = await self.get_settings(user, scope)
        secret = pyotp.random_base32(length=32)
        mfa.totp_secret = secret
        mfa.totp_enabled = False
        backup_codes = mfa.generate_backup_codes()
        await self.repo.update(mfa)

        otpauth_url = pyotp.TOTP(secret).provisioning_uri(
            name=user.email, issuer_name=settings.mfa_issuer
        )
        return TotpSetupResponse(secret=secret, otpauth_url=otpauth_url, backup_codes=backup_codes)

    async def verify_and_enable_totp(self, user: User, scope: TenantScope, code: str) -> bool:
        mfa = await self.get_settings(user, scope)
        if not mfa.totp_secret:
            raise BadRequestError(
                "TOTP not setup. Please setup TOTP first.", error_code="totp_not_setup"
            )
        self._ensure_unlocked(mfa)

        valid = pyotp.TOTP(mfa.totp_secret).verify(code, valid_window=MFA_TOTP_VALID_WINDOW)
        if valid:
            now = utcnow()
            mfa.totp_enabled = True
            mfa.totp_created_at = now
            mfa.totp_last_used = now
            log.info("mfa_totp_enabled", user_id=str(user.id))
        return await self._record_result(mfa, valid, MFAMethod.TOTP)

    async def verify_totp(self, user: User, scope: TenantScope, code: str) -> bool:
        """Check a TOTP code.

        Raises:
            BadRequestError: If TOTP is not enabled
            LockedError: If verification is locked out
        """
        mfa = await self.get_settings(user, scope)
        if not mfa.totp_enabled or not mfa.totp_secret:
            raise BadRequestError("TOTP not enabled", error_code="totp_not_enabled")
        self._ensure_unlocked(mfa)

        valid = pyotp.TOTP(mfa.totp_secret).verify(code, valid_window=MFA_TOTP_VALID_WINDOW)
        if valid:
            mfa.totp_last_used = utcnow()
        return await self._record_result(mfa, valid, MFAMethod.TOTP)

    async def verify_backup_code(self, user: User, scope: TenantScope, code: str) -> bool:
        mfa = await self.get_settings(user, scope)
        self._ensure_unlocked(mfa)
        return await self._record_result(mfa, mfa.verify_backup_code(code), MFAMethod.BACKUP)

    async def regenerate_backup_codes(self, user: User, scope: TenantScope) -> list[str]:
        mfa = await self.get_settings(user, scope)
        if not mfa.totp_enabled:
            raise BadRequestError(
                "TOTP must be enabled to generate backup codes",
                error_code="totp_not_enabled",
            )
        codes = mfa.generate_backup_codes()
        await self.repo.update(mfa)
        log.info("mfa_backup_codes_regenerated", user_id=str(user.id))
        return codes

    # ------------------------------------------------------------
    # SMS and email
    # ------------------------------------------------------------

    def _code_key(self, mfa: MFASettings, method: MFAMethod) -> str:
        return f"{method.value}:{mfa.tenant_id}:{mfa.user_id}"

    async def _send_code(self, mfa: MFASettings, method: MFAMethod, destination: str) -> None:
        """Issue a code and hand it to the delivery worker.

        Without code delivery nothing is issued; ``_check_code`` then only
        checks the format.
        """
        if not settings.mfa_code_delivery:
            log.info(
                "mfa_code_delivery_disabled", user_id=str(mfa.user_id), method=method.value
            )
            return

        code = await self.codes.issue(self._code_key(mfa, method))
        await enqueue("deliver_mfa_code", method.value, destination, code)
        log.info(
            "mfa_code_issued",
            user_id=str(mfa.user_id),
            method=method.value,
            destination_hint=destination[-4:],
        )

    async def _check_code(self, mfa: MFASettings, method: MFAMethod, code: str) -> bool:
        if settings.mfa_code_delivery:
            return await self.codes.consume(self._code_key(mfa, method), code)
        return _CODE_FORMAT.fullmatch(code.strip()) is not None

    async def setup_sms(self, user: User, scope: TenantScope, phone_number: str) -> None:
        mfa = await self.get_settings(user, scope)
        mfa.sms_enabled = True
        mfa.sms_phone = phone_number
        mfa.sms_verified = False
        await self.repo.update(mfa)
        await self._send_code(mfa, MFAMethod.SMS, phone_number)

    async def verify_sms(self, user: User, scope: TenantScope, code: str) -> bool:
        mfa = await self.get_settings(user, scope)
        if not mfa.sms_enabled:
            raise BadRequestError("SMS verification not enabled", error_code="sms_not_enabled")
        self._ensure_unlocked(mfa)

        valid = await self._check_code(mfa, MFAMethod.SMS, code)
        if valid:
            mfa.sms_verified = True
            mfa.sms_last_verification = utcnow()
        return await self._record_result(mfa, valid, MFAMethod.SMS)

    async def setup_email(self, user: User, scope: TenantScope) -> None:
        """Send a first email code; email becomes a method once it is confirmed."""
        mfa = await self.get_settings(user, scope)
        mfa.email_enabled = True
        mfa.email_verified = False
        await self.repo.update(mfa)
        await self._send_code(mfa, MFAMethod.EMAIL, user.email)

    async def verify_email(self, user: User, scope: TenantScope, code: str) -> bool:
        mfa = await self.get_settings(user, scope)
        if not mfa.email_enabled:
            raise BadRequestError("Email verification not enabled", error_code="email_not_enabled")
        self._ensure_unlocked(mfa)

        valid = await self._check_code(mfa, MFAMethod.EMAIL, code)
        if valid:
            mfa.email_verified = True
            mfa.email_last_verification = utcnow()
        return await self._record_result(mfa, valid, MFAMethod.EMAIL)

    async def resend_code(self, user: User, scope: TenantScope, method: MFAMethod) -> None:
        mfa = await self.get_settings(user, scope)
        if method == MFAMethod.SMS and mfa.sms_enabled and mfa.sms_phone:
            await self._send_code(mfa, method, mfa.sms_phone)
        elif method == MFAMethod.EMAIL and mfa.email_enabled:
            await self._send_code(mfa, method, user.email)
        else:
            raise BadRequestError(
                f"{method.value} verification not enabled", error_code="method_not_enabled"
            )

    # ------------------------------------------------------------
    # Dispatch, policy and status
    # ------------------------------------------------------------

    async def verify_mfa(
        self, user: User, scope: TenantScope, method: MFAMethod, code: str
    ) -> VerifyResponse:
        """Verify ``code`` with ``method``.

        Users that are not (yet) required to use MFA pass without a code.

        Raises:
            BadRequestError: If MFA is required but no method is enabled
            LockedError: If verification is locked out
        """
        mfa = await self.get_settings(user, scope)
        if not mfa.is_mfa_required():
            return VerifyResponse(success=True, method=method, required=False)
        if not mfa.has_method_enabled():
            raise BadRequestError(
                "No MFA method enabled. Please setup MFA first.",
                error_code="mfa_not_setup",
            )

        verifiers = {
            MFAMethod.TOTP: self.verify_totp,
            MFAMethod.SMS: self.verify_sms,
            MFAMethod.EMAIL: self.verify_email,
            MFAMethod.BACKUP: self.verify_backup_code,
        }
        success = await verifiers[method](user, scope, code)
        return VerifyResponse(
            success=success,
            method=method,
            remaining_attempts=max(mfa.max_attempts - mfa.failed_attempts, 0),
            locked_until=mfa.locked_until,
        )

    async def disable(self, user: User, scope: TenantScope, method: MFAMethod) -> MFASettings:
        mfa = await self.get_settings(user, scope)
        if method == MFAMethod.TOTP:
            mfa.totp_enabled = False
            mfa.totp_secret = None
            mfa.backup_codes = []
        elif method == MFAMethod.SMS:
            mfa.sms_enabled = False
            mfa.sms_phone = None
            mfa.sms_verified = False
        elif method == MFAMethod.EMAIL:
            mfa.email_enabled = False
            mfa.email_verified = False
        else:
            raise BadRequestError(
                "Backup codes cannot be disabled on their own", error_code="invalid_method"
            )

        log.info("mfa_disabled", user_id=str(user.id), method=method.value)
        return await self.repo.update(mfa)

    async def update_policy(
        self, target: User, scope: TenantScope, policy: PolicyUpdate
    ) -> MFASettings:
        """Change the MFA policy of ``target``. Callers must be admins."""
        mfa = await self.get_settings(target, scope)
        if policy.required is not None:
            mfa.policy_required = policy.required
        if policy.methods is not None:
            mfa.policy_methods = [method.value for method in policy.methods]
        if policy.grace_period_days is not None:
            mfa.grace_period_days = policy.grace_period_days
        if policy.max_attempts is not None:
            mfa.max_attempts = policy.max_attempts
        if policy.lockout_minutes is not None:
            mfa.lockout_minutes = policy.lockout_minutes

        log.info("mfa_policy_updated", user_id=str(target.id))
        return await self.repo.update(mfa)

    async def status(self, user: User, scope: TenantScope) -> MFAStatus:
        mfa = await self.get_settings(user, scope)
        required = mfa.is_mfa_required()
        return MFAStatus(
            is_required=required,
            is_enabled=mfa.has_method_enabled(),
            available_methods=mfa.available_methods(),
            grace_period_expired=required and not mfa.policy_required,
            is_locked=mfa.is_locked,
            locked_until=mfa.locked_until,
            backup_codes_remaining=len(mfa.backup_codes or []),
        )

    async def needs_setup(self, user: User, scope: TenantScope) -> bool:
        mfa = await self.get_settings(user, scope)
        return mfa.is_mfa_required() and not mfa.has_method_enabled()


MFASvc = Annotated[MFAService, Depends(MFAService)]
