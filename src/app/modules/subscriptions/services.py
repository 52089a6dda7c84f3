"""Subscription service: plans, tenant subscriptions and usage limits."""

from datetime import timedelta
from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import Depends

from app.api.dependencies import DBSession
from app.core.errors import BadRequestError, ConflictError, NotFoundError, ValidationError
from app.core.utils.time import utcnow
from app.modules.subscriptions.models import (
    PlanType,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)
from app.modules.subscriptions.repos import PlanRepository, SubscriptionRepository
from app.modules.subscriptions.schemas import (
    PlanCreate,
    PlanUpdate,
    SubscriptionStats,
    SubscriptionUpdate,
    UsageResponse,
)


log = structlog.get_logger()


TRIAL_PLAN_NAME = "trial"

DEFAULT_PLANS: list[dict[str, Any]] = [
    {
        "name": TRIAL_PLAN_NAME,
        "display_name": "Free Trial",
        "description": "Try the portal with a small team",
        "type": PlanType.TRIAL,
        "price": Decimal("0"),
        "billing_cycle": "monthly",
        "max_users": 5,
        "max_admins": 1,
        "storage_gb": 1,
        "api_calls": 1000,
        "features": ["basic_profiles", "crs_calculator"],
        "sort_order": 0,
    },
    {
        "name": "basic_monthly",
        "display_name": "Basic",
        "description": "For small practices",
        "type": PlanType.MONTHLY,
        "price": Decimal("99"),
        "billing_cycle": "monthly",
        "max_users": 25,
        "max_admins": 2,
        "storage_gb": 10,
        "api_calls": 10000,
        "features": ["basic_profiles", "crs_calculator", "document_checklist"],
        "sort_order": 1,
    },
    {
        "name": "professional_monthly",
        "display_name": "Professional",
        "description": "For growing firms",
        "type": PlanType.MONTHLY,
        "price": Decimal("199"),
        "billing_cycle": "monthly",
        "max_users": 100,
        "max_admins": 5,
        "storage_gb": 50,
        "api_calls": 50000,
        "features": [
            "basic_profiles",
            "crs_calculator",
            "document_checklist",
            "api_access",
            "mfa",
        ],
        "sort_order": 2,
    },
    {
        "name": "enterprise_monthly",
        "display_name": "Enterprise",
        "description": "For large organizations",
        "type": PlanType.MONTHLY,
        "price": Decimal("399"),
        "billing_cycle": "monthly",
        "max_users": 1000,
        "max_admins": 20,
        "storage_gb": 500,
        "api_calls": 500000,
        "features": [
            "basic_profiles",
            "crs_calculator",
            "document_checklist",
            "api_access",
            "mfa",
            "custom_domains",
            "priority_support",
        ],
        "sort_order": 3,
    },
    {
        "name": "starter_package",
        "display_name": "Starter Package",
        "description": "One-time package for a single intake season",
        "type": PlanType.PACKAGE,
        "price": Decimal("500"),
        "billing_cycle": "one_time",
        "max_users": 50,
        "max_admins": 3,
        "storage_gb": 25,
        "api_calls": 25000,
        "features": ["basic_profiles", "crs_calculator", "document_checklist"],
        "sort_order": 4,
    },
]

# Statuses still counted as a live subscription
OPEN_STATUSES = (
    SubscriptionStatus.TRIAL.value,
    SubscriptionStatus.ACTIVE.value,
    SubscriptionStatus.PAST_DUE.value,
)

_PERIOD_LENGTH = {
    "monthly": timedelta(days=30),
    "annual": timedelta(days=365),
    "one_time": timedelta(days=365),
}


def _period_length(billing_cycle: str) -> timedelta:
    return _PERIOD_LENGTH.get(billing_cycle, _PERIOD_LENGTH["monthly"])


class SubscriptionService:
    """Service for plans, subscriptions and usage accounting.

    Usage counters mirror the tenant's active users and admins; every
    user creation, activation and deactivation goes through
    ``ensure_capacity`` and ``record_user_added``/``record_user_removed``.
    """

    def __init__(self, db: DBSession) -> None:
        self.db = db
        self.plans = PlanRepository(db)
        self.subscriptions = SubscriptionRepository(db)

    # ------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------

    async def seed_default_plans(self) -> list[SubscriptionPlan]:
        """Create any missing default plan. Existing plans are left alone."""
        created = []
        for plan_data in DEFAULT_PLANS:
            if await self.plans.get_by_name(plan_data["name"]):
                continue
            plan = SubscriptionPlan(**{**plan_data, "type": plan_data["type"].value})
            created.append(await self.plans.create(plan))

        if created:
            log.info("default_plans_seeded", plans=[plan.name for plan in created])
        return created

    async def list_plans(self, include_inactive: bool = False) -> list[SubscriptionPlan]:
        return await self.plans.list_plans(include_inactive)

    async def get_plan(self, plan_id: UUID) -> SubscriptionPlan:
        plan = await self.plans.get_by_id(plan_id)
        if not plan:
            raise NotFoundError(
                "Subscription plan not found",
                resource="subscription_plan",
                resource_id=str(plan_id),
            )
        return plan

    async def get_trial_plan(self) -> SubscriptionPlan | None:
        """The trial plan, falling back to the first active plan."""
        plan = await self.plans.get_active_by_name(TRIAL_PLAN_NAME)
        if plan is None:
            plan = await self.plans.first_active()
        return plan

    async def create_plan(self, data: PlanCreate) -> SubscriptionPlan:
        if await self.plans.get_by_name(data.name):
            raise ConflictError(
                "A plan with this name already exists",
                error_code="plan_exists",
                details={"name": data.name},
            )
        plan = await self.plans.create(SubscriptionPlan(**data.model_dump()))
        log.info("plan_created", plan=plan.name)
        return plan

    async def update_plan(self, plan_id: UUID, data: PlanUpdate) -> SubscriptionPlan:
        plan = await self.get_plan(plan_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(plan, field, value)
        return await self.plans.update(plan)

    async def delete_plan(self, plan_id: UUID) -> SubscriptionPlan:
        """Retire a plan. Existing subscriptions keep it."""
        plan = await self.get_plan(plan_id)
        plan.is_active = False
        log.info("plan_deactivated", plan=plan.name)
        return await self.plans.update(plan)

    # ------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------

    async def start_trial(
        self,
        tenant_id: UUID,
        trial_days: int,
        plan: SubscriptionPlan | None = None,
    ) -> Subscription | None:
        """Open a trial subscription for a new tenant.

        Returns None when no active plan exists at all.
        """
        plan = plan or await self.get_trial_plan()
        if plan is None:
            log.warning("trial_subscription_skipped_no_plan", tenant_id=str(tenant_id))
            return None

        now = utcnow()
        trial_end = now + timedelta(days=trial_days)
        subscription = Subscription(
            tenant_id=tenant_id,
            plan_id=plan.id,
            status=SubscriptionStatus.TRIAL.value,
            amount=Decimal("0"),
            currency=plan.currency,
            billing_cycle=plan.billing_cycle,
            current_period_start=now,
            current_period_end=trial_end,
            trial_end=trial_end,
            current_users=0,
            current_admins=0,
        )
        subscription = await self.subscriptions.create(subscription)
        log.info("trial_subscription_started", tenant_id=str(tenant_id), plan=plan.name)
        return subscription

    async def get_for_tenant(self, tenant_id: UUID) -> Subscription | None:
        return await self.subscriptions.get_for_tenant(tenant_id)

    async def require_for_tenant(self, tenant_id: UUID) -> Subscription:
        subscription = await self.subscriptions.get_for_tenant(tenant_id)
        if not subscription:
            raise NotFoundError(
                "Subscription not found",
                resource="subscription",
                resource_id=str(tenant_id),
            )
        return subscription

    async def get(self, subscription_id: UUID) -> Subscription:
        subscription = await self.subscriptions.get_by_id(subscription_id)
        if not subscription:
            raise NotFoundError(
                "Subscription not found",
                resource="subscription",
                resource_id=str(subscription_id),
            )
        return subscription

    async def list_subscriptions(
        self,
        page: int = 1,
        page_size: int = 20,
        status: str | None = None,
    ) -> tuple[list[Subscription], int]:
        return await self.subscriptions.list_paginated(page, page_size, status)

    async def update(self, subscription_id: UUID, data: SubscriptionUpdate) -> Subscription:
        subscription = await self.get(subscription_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(subscription, field, value)
        return await self.subscriptions.update(subscription)

    async def _set_status(self, subscription_id: UUID, status: SubscriptionStatus) -> Subscription:
        subscription = await self.get(subscription_id)
        subscription.status = status.value
        if status == SubscriptionStatus.CANCELLED:
            subscription.cancelled_at = utcnow()
        log.info(
            "subscription_status_changed",
            subscription_id=str(subscription_id),
            tenant_id=str(subscription.tenant_id),
            status=status.value,
        )
        return await self.subscriptions.update(subscription)

    async def suspend(self, subscription_id: UUID) -> Subscription:
        return await self._set_status(subscription_id, SubscriptionStatus.SUSPENDED)

    async def activate(self, subscription_id: UUID) -> Subscription:
        """Reactivate a subscription, opening a new period if the old one ended."""
        subscription = await self.get(subscription_id)
        plan = await self.get_plan(subscription.plan_id)
        if subscription.is_expired:
            now = utcnow()
            subscription.current_period_start = now
            subscription.current_period_end = now + _period_length(plan.billing_cycle)
        subscription.cancelled_at = None
        subscription.amount = plan.price
        return await self._set_status(subscription_id, SubscriptionStatus.ACTIVE)

    async def cancel(self, subscription_id: UUID) -> Subscription:
        return await self._set_status(subscription_id, SubscriptionStatus.CANCELLED)

    async def change_plan(self, subscription_id: UUID, plan_id: UUID) -> Subscription:
        """Move a subscription to another plan, starting a paid period.

        Raises:
            BadRequestError: If the plan is inactive
            ValidationError: If current usage exceeds the new plan's limits
        """
        subscription = await self.get(subscription_id)
        plan = await self.get_plan(plan_id)
        if not plan.is_active:
            raise BadRequestError("Plan is not available", error_code="plan_inactive")

        over_limit = []
        if subscription.current_users > plan.max_users:
            over_limit.append({"field": "max_users", "message": "Too many users for this plan"})
        if subscription.current_admins > plan.max_admins:
            over_limit.append({"field": "max_admins", "message": "Too many admins for this plan"})
        if over_limit:
            raise ValidationError(
                "Current usage exceeds the new plan's limits",
                errors=over_limit,
                error_code="plan_limit_exceeded",
            )

        now = utcnow()
        subscription.plan_id = plan.id
        subscription.amount = plan.price
        subscription.currency = plan.currency
        subscription.billing_cycle = plan.billing_cycle
        subscription.current_period_start = now
        subscription.current_period_end = now + _period_length(plan.billing_cycle)
        subscription.trial_end = None
        subscription.status = SubscriptionStatus.ACTIVE.value
        log.info(
            "subscription_plan_changed",
            tenant_id=str(subscription.tenant_id),
            plan=plan.name,
        )
        return await self.subscriptions.update(subscription)

    async def expiring_within(self, days: int) -> list[Subscription]:
        now = utcnow()
        return await self.subscriptions.list_ending_between(
            now, now + timedelta(days=days), OPEN_STATUSES
        )

    async def expire_lapsed(self) -> int:
        """Mark open subscriptions whose trial or period ended as expired."""
        expired = 0
        for subscription in await self.subscriptions.list_by_status(*OPEN_STATUSES):
            lapsed = (
                subscription.is_trial_expired
                if subscription.status == SubscriptionStatus.TRIAL
                else subscription.is_expired
            )
            if lapsed:
                subscription.status = SubscriptionStatus.EXPIRED.value
                expired += 1
        if expired:
            await self.db.flush()
            log.info("subscriptions_expired", count=expired)
        return expired

    async def stats(self) -> SubscriptionStats:
        by_status = await self.subscriptions.count_by_status()
        return SubscriptionStats(
            total=sum(by_status.values()),
            by_status=by_status,
            active_trials=by_status.get(SubscriptionStatus.TRIAL.value, 0),
            expiring_within_7_days=len(await self.expiring_within(7)),
        )

    async def usage(self, tenant_id: UUID) -> UsageResponse:
        subscription = await self.require_for_tenant(tenant_id)
        plan = await self.get_plan(subscription.plan_id)
        return UsageResponse(
            current_users=subscription.current_users,
            max_users=plan.max_users,
            current_admins=subscription.current_admins,
            max_admins=plan.max_admins,
            storage_used_mb=subscription.storage_used_mb,
            api_calls_used=subscription.api_calls_used,
        )

    # ------------------------------------------------------------
    # Usage accounting
    # ------------------------------------------------------------

    async def ensure_capacity(self, tenant_id: UUID, is_admin: bool) -> None:
        """Check that one more user (and admin) fits the tenant's plan.

        Tenants without a subscription are not limited here.

        Raises:
            ValidationError: If the plan's user or admin limit is reached
        """
        subscription = await self.subscriptions.get_for_tenant(tenant_id)
        if subscription is None:
            return
        plan = await self.get_plan(subscription.plan_id)

        if not subscription.can_add_users(plan):
            raise ValidationError(
                f"User limit reached. Your plan allows {plan.max_users} users.",
                errors=[{"field": "max_users", "message": "User limit reached"}],
                error_code="user_limit_reached",
            )
        if is_admin and not subscription.can_add_admins(plan):
            raise ValidationError(
                f"Admin limit reached. Your plan allows {plan.max_admins} admins.",
                errors=[{"field": "max_admins", "message": "Admin limit reached"}],
                error_code="admin_limit_reached",
            )

    async def record_user_added(self, tenant_id: UUID, is_admin: bool) -> Subscription | None:
        subscription = await self.subscriptions.get_for_tenant(tenant_id)
        if subscription is None:
            return None
        subscription.adjust_usage(users=1, admins=1 if is_admin else 0)
        return await self.subscriptions.update(subscription)

    async def record_user_removed(self, tenant_id: UUID, is_admin: bool) -> Subscription | None:
        subscription = await self.subscriptions.get_for_tenant(tenant_id)
        if subscription is None:
            return None
        subscription.adjust_usage(users=-1, admins=-1 if is_admin else 0)
        return await self.subscriptions.update(subscription)


SubscriptionSvc = Annotated[SubscriptionService, Depends(SubscriptionService)]
