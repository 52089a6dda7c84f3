"""MFA settings database model."""

import secrets
import string
from datetime import datetime, timedelta
from enum import StrEnum
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.constants import (
    MFA_BACKUP_CODE_COUNT,
    MFA_BACKUP_CODE_LENGTH,
    MFA_DEFAULT_GRACE_PERIOD_DAYS,
    MFA_DEFAULT_LOCKOUT_MINUTES,
    MFA_DEFAULT_MAX_ATTEMPTS,
)
from app.core.database.base import Base, TenantMixin, TimestampMixin, UUIDMixin
from app.core.utils.time import as_utc, is_past, utcnow


class MFAMethod(StrEnum):
    TOTP = "totp"
    SMS = "sms"
    EMAIL = "email"
    BACKUP = "backup"


_BACKUP_CODE_ALPHABET = string.ascii_uppercase + string.digits


def _default_policy_methods() -> list[str]:
    return [MFAMethod.TOTP.value]


class MFASettings(Base, UUIDMixin, TimestampMixin, TenantMixin):
    """Per-user multi-factor authentication state and policy.

    Attributes:
        user_id: Owner of the settings
        totp_enabled: Whether an authenticator app is enrolled
        totp_secret: Base32 TOTP secret (set during setup, before enabling)
        backup_codes: Unused single-use recovery codes
        sms_enabled: Whether SMS codes are enabled
        sms_phone: Number SMS codes are sent to
        sms_verified: Whether the number was confirmed
        email_enabled: Whether email codes were requested
        email_verified: Whether an email code was confirmed
        policy_required: MFA is mandatory regardless of grace period
        policy_methods: Methods the policy allows
        grace_period_days: Days after creation before MFA becomes mandatory
        max_attempts: Failed verifications before lockout
        lockout_minutes: Lockout duration
        failed_attempts: Consecutive failed verifications
        locked_until: End of the current lockout
    """

    __tablename__ = "mfa_settings"
    __table_args__ = (UniqueConstraint("user_id", "tenant_id", name="uq_mfa_settings_user_tenant"),)

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    totp_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    totp_secret: Mapped[str | None] = mapped_column(String(64), nullable=True)
    backup_codes: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    totp_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    totp_last_used: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    sms_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sms_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sms_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sms_last_verification: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    email_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_last_verification: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    policy_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    policy_methods: Mapped[list[str]] = mapped_column(
        JSON, default=_default_policy_methods, nullable=False
    )
    grace_period_days: Mapped[int] = mapped_column(
        Integer, default=MFA_DEFAULT_GRACE_PERIOD_DAYS, nullable=False
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer, default=MFA_DEFAULT_MAX_ATTEMPTS, nullable=False
    )
    lockout_minutes: Mapped[int] = mapped_column(
        Integer, default=MFA_DEFAULT_LOCKOUT_MINUTES, nullable=False
    )

    failed_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_locked(self) -> bool:
        return self.locked_until is not None and not is_past(self.locked_until)

    def generate_backup_codes(self, count: int = MFA_BACKUP_CODE_COUNT) -> list[str]:
        """Replace the backup codes with ``count`` fresh ones and return them."""
        codes = [
            "".join(secrets.choice(_BACKUP_CODE_ALPHABET) for _ in range(MFA_BACKUP_CODE_LENGTH))
            for _ in range(count)
        ]
        self.backup_codes = codes
        return codes

    def verify_backup_code(self, code: str) -> bool:
        """Consume ``code`` if it is an unused backup code."""
        normalized = code.strip().upper()
        if normalized not in (self.backup_codes or []):
            return False
        # Reassign so the JSON column is flagged dirty
        self.backup_codes = [c for c in self.backup_codes if c != normalized]
        return True

    def reset_failed_attempts(self) -> None:
        self.failed_attempts = 0
        self.locked_until = None

    def increment_failed_attempts(self) -> None:
        """Record a failed verification, locking once the limit is reached."""
        self.failed_attempts = (self.failed_attempts or 0) + 1
        if self.failed_attempts >= self.max_attempts:
            self.locked_until = utcnow() + timedelta(minutes=self.lockout_minutes)

    def is_mfa_required(self) -> bool:
        if self.policy_required:
            return True
        if self.grace_period_days > 0 and self.created_at is not None:
            grace_end = as_utc(self.created_at) + timedelta(days=self.grace_period_days)
            return utcnow() > grace_end
        return False

    def available_methods(self) -> list[str]:
        methods: list[str] = []
        if self.totp_enabled:
            methods.append(MFAMethod.TOTP.value)
        if self.sms_enabled and self.sms_verified:
            methods.append(MFAMethod.SMS.value)
        if self.email_enabled and self.email_verified:
            methods.append(MFAMethod.EMAIL.value)
        return methods

    def has_method_enabled(self) -> bool:
        return bool(self.available_methods())

    def __repr__(self) -> str:
        return f"<MFASettings(user_id={self.user_id}, methods={self.available_methods()})>"
