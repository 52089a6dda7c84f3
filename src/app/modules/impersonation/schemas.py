"""Pydantic schemas for impersonation."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ImpersonationStart(BaseModel):
    target_user_id: UUID
    reason: str = Field(..., max_length=1000)


class ImpersonationResponse(BaseModel):
    id: UUID
    session_id: str
    super_admin_id: UUID
    super_admin_email: str
    target_user_id: UUID
    target_user_email: str
    target_tenant_id: UUID
    target_tenant_name: str
    reason: str
    started_at: datetime
    ended_at: datetime | None = None
    is_active: bool
    ip_address: str | None = None
    user_agent: str | None = None
    risk_score: int
    flags: list[str]
    actions: list[dict[str, Any]]

    model_config = ConfigDict(from_attributes=True)


class ImpersonationStarted(BaseModel):
    """The impersonation token is returned once and expires with the session."""

    session: ImpersonationResponse
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class ImpersonationListResponse(BaseModel):
    items: list[ImpersonationResponse]
    total: int
    page: int
    page_size: int


class ImpersonationStats(BaseModel):
    total_sessions: int
    active_sessions: int
    average_duration_seconds: int
    average_risk_score: float
    high_risk_sessions: int
    by_tenant: dict[str, int]


class TokenValidation(BaseModel):
    valid: bool
    session: ImpersonationResponse | None = None


class ValidateTokenRequest(BaseModel):
    token: str


class EndedCount(BaseModel):
    ended: int
