"""Subscription API routes.

Plans are readable by any signed-in user. A tenant's admins can read its
subscription and usage; everything else is for super admins.
"""

from uuid import UUID

from fastapi import Query, Request, status

from app.api.dependencies import Pagination
from app.core.auth.dependencies import CurrentSuperAdmin, CurrentUser, Scope
from app.core.permissions.decorators import require_permission
from app.modules.subscriptions import router
from app.modules.subscriptions.models import Subscription, SubscriptionStatus
from app.modules.subscriptions.schemas import (
    ChangePlanRequest,
    PlanCreate,
    PlanResponse,
    PlanUpdate,
    SubscriptionDetail,
    SubscriptionListResponse,
    SubscriptionResponse,
    SubscriptionStats,
    SubscriptionUpdate,
    UsageResponse,
)
from app.modules.subscriptions.services import SubscriptionSvc


async def _detail(service: SubscriptionSvc, subscription: Subscription) -> SubscriptionDetail:
    plan = await service.get_plan(subscription.plan_id)
    return SubscriptionDetail(
        subscription=SubscriptionResponse.model_validate(subscription),
        plan=PlanResponse.model_validate(plan),
    )


# ============================================================
# Plans
# ============================================================


@router.get("/plans", response_model=list[PlanResponse], summary="List subscription plans")
async def list_plans(
    current_user: CurrentUser,
    service: SubscriptionSvc,
    include_inactive: bool = False,
) -> list[PlanResponse]:
    plans = await service.list_plans(include_inactive and current_user.is_super_admin)
    return [PlanResponse.model_validate(plan) for plan in plans]


@router.post("/plans", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    data: PlanCreate,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: SubscriptionSvc,
) -> PlanResponse:
    return PlanResponse.model_validate(await service.create_plan(data))


@router.patch("/plans/{plan_id}", response_model=PlanResponse)
async def update_plan(
    plan_id: UUID,
    data: PlanUpdate,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: SubscriptionSvc,
) -> PlanResponse:
    return PlanResponse.model_validate(await service.update_plan(plan_id, data))


@router.delete("/plans/{plan_id}", response_model=PlanResponse, summary="Retire a plan")
async def delete_plan(
    plan_id: UUID,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: SubscriptionSvc,
) -> PlanResponse:
    return PlanResponse.model_validate(await service.delete_plan(plan_id))


# ============================================================
# Current tenant
# ============================================================


@router.get(
    "/current",
    response_model=SubscriptionDetail,
    summary="Subscription of the current tenant",
)
@require_permission("subscriptions", "read")
async def current_subscription(
    request: Request,  # noqa: ARG001 - read by require_permission
    current_user: CurrentUser,  # noqa: ARG001 - read by require_permission
    scope: Scope,
    service: SubscriptionSvc,
    tenant_id: UUID | None = None,
) -> SubscriptionDetail:
    subscription = await service.require_for_tenant(scope.narrow(tenant_id).require_tenant())
    return await _detail(service, subscription)


@router.get("/usage", response_model=UsageResponse, summary="Seat usage against plan limits")
@require_permission("subscriptions", "read")
async def usage(
    request: Request,  # noqa: ARG001 - read by require_permission
    current_user: CurrentUser,  # noqa: ARG001 - read by require_permission
    scope: Scope,
    service: SubscriptionSvc,
    tenant_id: UUID | None = None,
) -> UsageResponse:
    return await service.usage(scope.narrow(tenant_id).require_tenant())


# ============================================================
# Platform management
# ============================================================


@router.get("", response_model=SubscriptionListResponse, summary="List all subscriptions")
async def list_subscriptions(
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: SubscriptionSvc,
    pagination: Pagination,
    subscription_status: SubscriptionStatus | None = Query(None, alias="status"),
) -> SubscriptionListResponse:
    items, total = await service.list_subscriptions(
        pagination.page, pagination.page_size, subscription_status
    )
    return SubscriptionListResponse(
        items=[SubscriptionResponse.model_validate(s) for s in items],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/stats", response_model=SubscriptionStats)
async def subscription_stats(
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: SubscriptionSvc,
) -> SubscriptionStats:
    return await service.stats()


@router.get("/{subscription_id}", response_model=SubscriptionDetail)
async def get_subscription(
    subscription_id: UUID,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: SubscriptionSvc,
) -> SubscriptionDetail:
    return await _detail(service, await service.get(subscription_id))


@router.patch("/{subscription_id}", response_model=SubscriptionResponse)
async def update_subscription(
    subscription_id: UUID,
    data: SubscriptionUpdate,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: SubscriptionSvc,
) -> SubscriptionResponse:
    return SubscriptionResponse.model_validate(await service.update(subscription_id, data))


@router.post("/{subscription_id}/suspend", response_model=SubscriptionResponse)
async def suspend_subscription(
    subscription_id: UUID,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: SubscriptionSvc,
) -> SubscriptionResponse:
    return SubscriptionResponse.model_validate(await service.suspend(subscription_id))


@router.post("/{subscription_id}/activate", response_model=SubscriptionResponse)
async def activate_subscription(
    subscription_id: UUID,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: SubscriptionSvc,
) -> SubscriptionResponse:
    return SubscriptionResponse.model_validate(await service.activate(subscription_id))


@router.post("/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: UUID,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: SubscriptionSvc,
) -> SubscriptionResponse:
    return SubscriptionResponse.model_validate(await service.cancel(subscription_id))


@router.post("/{subscription_id}/change-plan", response_model=SubscriptionDetail)
async def change_plan(
    subscription_id: UUID,
    data: ChangePlanRequest,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: SubscriptionSvc,
) -> SubscriptionDetail:
    return await _detail(service, await service.change_plan(subscription_id, data.plan_id))
