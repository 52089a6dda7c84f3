"""Pydantic schemas for MFA."""

from datetime import datetime

from pydantic import BaseModel, Field

from app.modules.mfa.models import MFAMethod


class TotpSetupResponse(BaseModel):
    """Returned once; the secret and backup codes are not shown again."""

    secret: str
    otpauth_url: str
    backup_codes: list[str]


class CodeRequest(BaseModel):
    code: str = Field(..., min_length=4, max_length=16)


class SmsSetupRequest(BaseModel):
    phone_number: str = Field(..., min_length=6, max_length=50)


class VerifyRequest(BaseModel):
    method: MFAMethod
    code: str = Field(..., min_length=4, max_length=16)


class VerifyResponse(BaseModel):
    success: bool
    method: MFAMethod
    required: bool = True
    remaining_attempts: int | None = None
    locked_until: datetime | None = None


class DisableRequest(BaseModel):
    method: MFAMethod


class PolicyUpdate(BaseModel):
    required: bool | None = None
    methods: list[MFAMethod] | None = None
    grace_period_days: int | None = Field(None, ge=0, le=90)
    max_attempts: int | None = Field(None, ge=1, le=20)
    lockout_minutes: int | None = Field(None, ge=1, le=1440)


class MFAStatus(BaseModel):
    is_required: bool
    is_enabled: bool
    available_methods: list[str]
    grace_period_expired: bool
    is_locked: bool
    locked_until: datetime | None = None
    backup_codes_remaining: int


class BackupCodesResponse(BaseModel):
    backup_codes: list[str]


class NeedsSetupResponse(BaseModel):
    needs_setup: bool
