"""Unit tests for MFA settings state transitions."""

from datetime import timedelta
from uuid import uuid4

import pytest

from app.core.utils.time import utcnow
from app.modules.mfa.models import MFAMethod, MFASettings


pytestmark = pytest.mark.unit


def build_settings(**overrides) -> MFASettings:
    values = {
        "user_id": uuid4(),
        "tenant_id": uuid4(),
        "failed_attempts": 0,
        "max_attempts": 3,
        "lockout_minutes": 30,
        "policy_required": False,
        "grace_period_days": 7,
        "backup_codes": [],
        "totp_enabled": False,
        "sms_enabled": False,
        "sms_verified": False,
        "email_enabled": False,
        "email_verified": False,
        "created_at": utcnow(),
    }
    values.update(overrides)
    return MFASettings(**values)


class TestLockout:
    def test_locks_when_threshold_reached(self):
        mfa = build_settings()

        mfa.increment_failed_attempts()
        mfa.increment_failed_attempts()
        assert not mfa.is_locked

        mfa.increment_failed_attempts()
        assert mfa.is_locked
        assert mfa.locked_until > utcnow() + timedelta(minutes=29)

    def test_expired_lock_is_released(self):
        mfa = build_settings(failed_attempts=3, locked_until=utcnow() - timedelta(seconds=1))

        assert not mfa.is_locked

    def test_reset(self):
        mfa = build_settings(failed_attempts=3, locked_until=utcnow() + timedelta(minutes=5))

        mfa.reset_failed_attempts()

        assert mfa.failed_attempts == 0
        assert not mfa.is_locked


class TestRequirement:
    def test_policy_forces_mfa(self):
        assert build_settings(policy_required=True).is_mfa_required()

    def test_inside_grace_period(self):
        assert not build_settings().is_mfa_required()

    def test_after_grace_period(self):
        mfa = build_settings(created_at=utcnow() - timedelta(days=8))

        assert mfa.is_mfa_required()

    def test_unverified_sms_is_not_a_method(self):
        mfa = build_settings(
            sms_enabled=True, sms_verified=False, email_enabled=True, email_verified=True
        )

        assert mfa.available_methods() == [MFAMethod.EMAIL.value]

    def test_unconfirmed_email_is_not_a_method(self):
        mfa = build_settings(email_enabled=True, email_verified=False)

        assert mfa.available_methods() == []
        assert not mfa.has_method_enabled()


class TestBackupCodes:
    def test_generated_codes_are_unique_and_replace_old_ones(self):
        mfa = build_settings(backup_codes=["OLDCODE1"])

        codes = mfa.generate_backup_codes(count=10)

        assert len(set(codes)) == 10
        assert "OLDCODE1" not in mfa.backup_codes

    def test_codes_are_case_insensitive_and_single_use(self):
        mfa = build_settings()
        code = mfa.generate_backup_codes()[0]

        assert mfa.verify_backup_code(f" {code.lower()} ")
        assert not mfa.verify_backup_code(code)
