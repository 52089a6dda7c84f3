"""Subscription and plan database models."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.constants import MAX_STATUS_LENGTH, TRIAL_PERIOD_DAYS
from app.core.database.base import AuditMixin, Base, TenantMixin, TimestampMixin, UUIDMixin
from app.core.utils.time import is_past, utcnow


class PlanType(StrEnum):
    TRIAL = "trial"
    MONTHLY = "monthly"
    ANNUAL = "annual"
    PACKAGE = "package"


class SubscriptionStatus(StrEnum):
    TRIAL = "trial"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PAST_DUE = "past_due"


TERMINATED_STATUSES = frozenset(
    {
        SubscriptionStatus.CANCELLED,
        SubscriptionStatus.EXPIRED,
        SubscriptionStatus.SUSPENDED,
    }
)


class SubscriptionPlan(Base, UUIDMixin, TimestampMixin):
    """A purchasable plan and the limits it grants.

    Plans are platform-wide and never hard-deleted; ``is_active=False``
    hides them from new subscriptions.
    """

    __tablename__ = "subscription_plans"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), default=PlanType.MONTHLY.value, nullable=False)

    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    billing_cycle: Mapped[str] = mapped_column(String(20), default="monthly", nullable=False)

    max_users: Mapped[int] = mapped_column(Integer, nullable=False)
    max_admins: Mapped[int] = mapped_column(Integer, nullable=False)
    storage_gb: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    api_calls: Mapped[int] = mapped_column(Integer, default=1000, nullable=False)

    features: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    trial_days: Mapped[int] = mapped_column(Integer, default=TRIAL_PERIOD_DAYS, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<SubscriptionPlan(name={self.name}, price={self.price})>"


class Subscription(Base, UUIDMixin, TimestampMixin, TenantMixin, AuditMixin):
    """A tenant's subscription to a plan, with live usage counters.

    Attributes:
        plan_id: The subscribed plan
        status: One of ``SubscriptionStatus``
        amount: Price charged per billing cycle
        currency: ISO currency code
        billing_cycle: ``monthly``, ``annual`` or ``one_time``
        current_period_start: Start of the paid period
        current_period_end: End of the paid period
        trial_end: End of the trial for trial subscriptions
        current_users: Active users counted against the plan
        current_admins: Active admins counted against the plan
        storage_used_mb: Storage consumed
        api_calls_used: API calls in the current period
        usage_updated_at: Last time a counter changed
    """

    __tablename__ = "subscriptions"
    __table_args__ = (UniqueConstraint("tenant_id", name="uq_subscriptions_tenant"),)

    plan_id: Mapped[UUID] = mapped_column(
        ForeignKey("subscription_plans.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(MAX_STATUS_LENGTH),
        default=SubscriptionStatus.TRIAL.value,
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    billing_cycle: Mapped[str] = mapped_column(String(20), default="monthly", nullable=False)

    current_period_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    current_period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    trial_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    current_users: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_admins: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    storage_used_mb: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    api_calls_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    usage_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    @property
    def is_trial_expired(self) -> bool:
        return self.status == SubscriptionStatus.TRIAL and is_past(self.trial_end)

    @property
    def is_expired(self) -> bool:
        return is_past(self.current_period_end)

    @property
    def is_active(self) -> bool:
        """Whether the tenant may currently use the product."""
        if self.status in TERMINATED_STATUSES:
            return False
        if self.status == SubscriptionStatus.TRIAL:
            return not self.is_trial_expired
        return not self.is_expired

    def can_add_users(self, plan: SubscriptionPlan, count: int = 1) -> bool:
        return self.current_users + count <= plan.max_users

    def can_add_admins(self, plan: SubscriptionPlan, count: int = 1) -> bool:
        return self.current_admins + count <= plan.max_admins

    def adjust_usage(self, users: int = 0, admins: int = 0) -> None:
        """Shift the usage counters, never below zero."""
        self.current_users = max(0, (self.current_users or 0) + users)
        self.current_admins = max(0, (self.current_admins or 0) + admins)
        self.usage_updated_at = utcnow()

    def __repr__(self) -> str:
        return (
            f"<Subscription(tenant_id={self.tenant_id}, status={self.status}, "
            f"users={self.current_users}, admins={self.current_admins})>"
        )
