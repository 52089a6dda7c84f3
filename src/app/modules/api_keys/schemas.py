"""Pydantic schemas for API keys."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.constants import MAX_DESCRIPTION_LENGTH
from app.modules.api_keys.models import ApiKeyStatus


class ApiKeyPermissions(BaseModel):
    read: bool = True
    write: bool = False
    delete: bool = False
    admin: bool = False


class ApiKeyRateLimit(BaseModel):
    """Limits are validated in the service so the error names the field."""

    per_minute: int = 100
    per_hour: int = 1000
    per_day: int = 10000
    burst: int = 10


class ApiKeyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    permissions: ApiKeyPermissions = Field(default_factory=ApiKeyPermissions)
    scopes: list[str] = Field(default_factory=lambda: ["*"])
    rate_limit: ApiKeyRateLimit = Field(default_factory=ApiKeyRateLimit)
    expires_at: datetime | None = None
    ip_whitelist: list[str] = Field(default_factory=list)
    user_agent_whitelist: list[str] = Field(default_factory=list)
    notes: str | None = None
    tenant_id: UUID | None = Field(
        None, description="Super admins only: tenant to create the key in"
    )


class ApiKeyUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    permissions: ApiKeyPermissions | None = None
    scopes: list[str] | None = None
    rate_limit: ApiKeyRateLimit | None = None
    status: ApiKeyStatus | None = None
    expires_at: datetime | None = None
    ip_whitelist: list[str] | None = None
    user_agent_whitelist: list[str] | None = None
    notes: str | None = None

    @field_validator("status")
    @classmethod
    def no_revocation(cls, v: ApiKeyStatus | None) -> ApiKeyStatus | None:
        if v in (ApiKeyStatus.REVOKED, ApiKeyStatus.EXPIRED):
            raise ValueError("Use the revoke endpoint; expiry is set by expires_at")
        return v


class ApiKeyResponse(BaseModel):
    """An API key without its secret."""

    id: UUID
    tenant_id: UUID
    name: str
    description: str | None = None
    key_id: str
    key_prefix: str
    permissions: dict[str, bool]
    scopes: list[str]
    rate_limit: dict[str, int]
    status: ApiKeyStatus
    expires_at: datetime | None = None
    last_used: datetime | None = None
    usage_count: int
    ip_whitelist: list[str]
    user_agent_whitelist: list[str]
    created_by: UUID | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApiKeyWithSecret(BaseModel):
    """Returned on create and rotate; ``key`` is never shown again."""

    api_key: ApiKeyResponse
    key: str


class ApiKeyStats(BaseModel):
    total: int
    by_status: dict[str, int]
    total_usage: int
    last_used: datetime | None = None


class ApiKeyIdentity(BaseModel):
    """What a caller authenticated with an API key can see about itself."""

    key_id: str
    tenant_id: UUID
    permissions: dict[str, bool]
    scopes: list[str]
