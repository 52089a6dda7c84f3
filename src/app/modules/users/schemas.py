"""Pydantic schemas for user and authentication operations."""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from app.core.constants import (
    MAX_DOMAIN_LENGTH,
    MAX_PASSWORD_LENGTH,
    MAX_TENANT_NAME_LENGTH,
    MIN_PASSWORD_LENGTH,
)
from app.core.utils.text import normalize_domain
from app.modules.tenants.schemas import TenantSummary
from app.modules.users.models import UserRole


# ============================================================
# Password Validation
# ============================================================

# Password complexity rules: (regex pattern, human-readable name)
PASSWORD_COMPLEXITY_RULES: list[tuple[str, str]] = [
    (r"[A-Z]", "uppercase letter"),
    (r"[a-z]", "lowercase letter"),
    (r"\d", "digit"),
]


def validate_password_complexity(password: str) -> str:
    """Require at least one uppercase letter, one lowercase letter and one digit.

    Raises:
        ValueError: If password doesn't meet requirements
    """
    missing = [
        name for pattern, name in PASSWORD_COMPLEXITY_RULES if not re.search(pattern, password)
    ]

    if missing:
        if len(missing) == 1:
            raise ValueError(f"Password must contain at least one {missing[0]}")
        raise ValueError(f"Password must contain at least one: {', '.join(missing)}")

    return password


def _lower_email(value: str) -> str:
    return value.strip().lower()


# ============================================================
# User Schemas
# ============================================================


class UserBase(BaseModel):
    """Base schema for user data."""

    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return _lower_email(v)


class UserCreate(UserBase):
    """Schema for an admin adding a user to a tenant."""

    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)
    role: UserRole = UserRole.USER
    phone: str | None = Field(None, max_length=50)
    must_change_password: bool = False

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return validate_password_complexity(v)

    @field_validator("role")
    @classmethod
    def no_super_admin(cls, v: UserRole) -> UserRole:
        if v == UserRole.SUPER_ADMIN:
            raise ValueError("Super admins cannot be created through tenant registration")
        return v


class UserUpdate(BaseModel):
    """Schema for updating user data.

    ``role`` and ``permissions`` are only honoured for admins.
    """

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=50)
    timezone: str | None = Field(None, max_length=64)
    language: str | None = Field(None, max_length=10)
    role: UserRole | None = None
    permissions: list[str] | None = None


class UserResponse(UserBase):
    """Schema for user response data."""

    id: UUID
    tenant_id: UUID | None = None
    role: UserRole
    is_active: bool
    last_login: datetime | None = None
    phone: str | None = None
    timezone: str
    language: str
    permissions: list[str]
    must_change_password: bool
    requires_password_change: bool = False
    is_first_login: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserListResponse(BaseModel):
    """Schema for listing users."""

    items: list[UserResponse]
    total: int
    page: int
    page_size: int


class UserStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_role: dict[str, int]


# ============================================================
# Authentication Schemas
# ============================================================


class LoginRequest(BaseModel):
    """Schema for email/password login.

    ``tenant_domain`` pins the login to one tenant when users sign in
    through a tenant's own domain.
    """

    email: EmailStr
    password: str = Field(..., min_length=1)
    tenant_domain: str | None = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return _lower_email(v)


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class RegisterRequest(UserBase):
    """Schema for self registration.

    Three shapes are accepted:
    - ``tenant_id``: join an existing tenant
    - ``company_name`` and ``domain``: found a new trial tenant
    - neither: get a personal trial tenant

    ``role`` is only honoured for the founder of a new tenant.
    """

    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)
    tenant_id: UUID | None = None
    company_name: str | None = Field(None, min_length=1, max_length=MAX_TENANT_NAME_LENGTH)
    domain: str | None = Field(None, min_length=1, max_length=MAX_DOMAIN_LENGTH)
    role: UserRole | None = None
    phone: str | None = Field(None, max_length=50)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return validate_password_complexity(v)

    @field_validator("domain")
    @classmethod
    def lowercase_domain(cls, v: str | None) -> str | None:
        return normalize_domain(v) if v else v

    @field_validator("role")
    @classmethod
    def no_super_admin(cls, v: UserRole | None) -> UserRole | None:
        if v == UserRole.SUPER_ADMIN:
            raise ValueError("Cannot self-register as super admin")
        return v

    @model_validator(mode="after")
    def company_needs_domain(self) -> "RegisterRequest":
        if bool(self.company_name) != bool(self.domain):
            raise ValueError("company_name and domain must be provided together")
        return self


class AuthResponse(BaseModel):
    """Login and registration response."""

    user: UserResponse
    tenant: TenantSummary | None = None
    subscription_status: str | None = None
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token expiration in seconds")


class SwitchTenantRequest(BaseModel):
    tenant_id: UUID


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)

    @field_validator("new_password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return validate_password_complexity(v)


class MeResponse(BaseModel):
    user: UserResponse
    tenant: TenantSummary | None = None
    impersonated_by: UUID | None = None
