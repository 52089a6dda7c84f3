"""Pydantic schemas for plans and subscriptions."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import TRIAL_PERIOD_DAYS
from app.modules.subscriptions.models import PlanType, SubscriptionStatus


# ============================================================
# Plan Schemas
# ============================================================


class PlanBase(BaseModel):
    """Fields shared by plan create and response schemas."""

    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9_]+$")
    display_name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    type: PlanType = PlanType.MONTHLY
    price: Decimal = Field(Decimal("0"), ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    billing_cycle: str = "monthly"
    max_users: int = Field(..., ge=1)
    max_admins: int = Field(..., ge=1)
    storage_gb: int = Field(1, ge=0)
    api_calls: int = Field(1000, ge=0)
    features: list[str] = Field(default_factory=list)
    trial_days: int = Field(TRIAL_PERIOD_DAYS, ge=0)
    sort_order: int = 0


class PlanCreate(PlanBase):
    """Schema for creating a plan."""


class PlanUpdate(BaseModel):
    """Schema for updating a plan. The plan name is immutable."""

    display_name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    price: Decimal | None = Field(None, ge=0)
    max_users: int | None = Field(None, ge=1)
    max_admins: int | None = Field(None, ge=1)
    storage_gb: int | None = Field(None, ge=0)
    api_calls: int | None = Field(None, ge=0)
    features: list[str] | None = None
    trial_days: int | None = Field(None, ge=0)
    is_active: bool | None = None
    sort_order: int | None = None


class PlanResponse(PlanBase):
    id: UUID
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================
# Subscription Schemas
# ============================================================


class SubscriptionResponse(BaseModel):
    """Schema for subscription response data."""

    id: UUID
    tenant_id: UUID
    plan_id: UUID
    status: SubscriptionStatus
    amount: Decimal
    currency: str
    billing_cycle: str
    current_period_start: datetime
    current_period_end: datetime
    trial_end: datetime | None = None
    cancelled_at: datetime | None = None
    current_users: int
    current_admins: int
    storage_used_mb: int
    api_calls_used: int
    usage_updated_at: datetime | None = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubscriptionDetail(BaseModel):
    subscription: SubscriptionResponse
    plan: PlanResponse


class SubscriptionListResponse(BaseModel):
    items: list[SubscriptionResponse]
    total: int
    page: int
    page_size: int


class SubscriptionUpdate(BaseModel):
    """Fields a super admin may change directly."""

    status: SubscriptionStatus | None = None
    amount: Decimal | None = Field(None, ge=0)
    current_period_end: datetime | None = None
    trial_end: datetime | None = None


class ChangePlanRequest(BaseModel):
    plan_id: UUID


class UsageResponse(BaseModel):
    current_users: int
    max_users: int
    current_admins: int
    max_admins: int
    storage_used_mb: int
    api_calls_used: int


class SubscriptionStats(BaseModel):
    total: int
    by_status: dict[str, int]
    active_trials: int
    expiring_within_7_days: int
