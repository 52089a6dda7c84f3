"""Pydantic schemas for tenant operations."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.constants import (
    MAX_DOMAIN_LENGTH,
    MAX_PASSWORD_LENGTH,
    MAX_TENANT_NAME_LENGTH,
    MIN_PASSWORD_LENGTH,
)
from app.core.utils.text import normalize_domain
from app.modules.tenants.models import TenantStatus


class TenantSettings(BaseModel):
    """Per-tenant limits and enabled features."""

    max_users: int = Field(..., ge=1)
    max_admins: int = Field(..., ge=1)
    features: list[str] = Field(default_factory=list)


class TenantBase(BaseModel):
    """Base schema for tenant data."""

    name: str = Field(..., min_length=1, max_length=MAX_TENANT_NAME_LENGTH)
    domain: str = Field(..., min_length=1, max_length=MAX_DOMAIN_LENGTH)
    contact_email: EmailStr | None = None
    contact_phone: str | None = Field(None, max_length=50)
    contact_address: str | None = Field(None, max_length=500)

    @field_validator("domain")
    @classmethod
    def lowercase_domain(cls, v: str) -> str:
        return normalize_domain(v)


class TenantCreate(TenantBase):
    """Schema for creating a tenant with its first admin.

    The admin fields are optional so a super admin can create an empty
    tenant and invite people later.
    """

    status: TenantStatus = TenantStatus.TRIAL
    settings: TenantSettings | None = None
    admin_email: EmailStr | None = None
    admin_password: str | None = Field(
        None, min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH
    )
    admin_first_name: str = Field("Tenant", min_length=1, max_length=100)
    admin_last_name: str = Field("Admin", min_length=1, max_length=100)


class TenantUpdate(BaseModel):
    """Schema for updating tenant data."""

    name: str | None = Field(None, min_length=1, max_length=MAX_TENANT_NAME_LENGTH)
    domain: str | None = Field(None, min_length=1, max_length=MAX_DOMAIN_LENGTH)
    custom_domains: list[str] | None = None
    contact_email: EmailStr | None = None
    contact_phone: str | None = Field(None, max_length=50)
    contact_address: str | None = Field(None, max_length=500)
    settings: TenantSettings | None = None

    @field_validator("domain")
    @classmethod
    def lowercase_domain(cls, v: str | None) -> str | None:
        return normalize_domain(v) if v else v

    @field_validator("custom_domains")
    @classmethod
    def lowercase_custom_domains(cls, v: list[str] | None) -> list[str] | None:
        return [normalize_domain(d) for d in v] if v is not None else v


class TenantResponse(TenantBase):
    """Schema for tenant response data."""

    id: UUID
    status: TenantStatus
    custom_domains: list[str]
    trial_end_date: datetime | None = None
    settings: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TenantSummary(BaseModel):
    """Slim tenant view returned to regular users."""

    id: UUID
    name: str
    domain: str
    status: TenantStatus

    model_config = ConfigDict(from_attributes=True)


class TenantListResponse(BaseModel):
    items: list[TenantResponse]
    total: int
    page: int
    page_size: int


class TenantStats(BaseModel):
    tenant_id: UUID
    total_users: int
    active_users: int
    active_admins: int
    subscription_status: str | None = None
    current_users: int | None = None
    current_admins: int | None = None


class PlatformTenantStats(BaseModel):
    total: int
    by_status: dict[str, int]
