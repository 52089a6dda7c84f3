"""Tenant API routes.

Tenant members can read their own tenant; creating, changing and
suspending tenants is reserved to super admins.
"""

from uuid import UUID

from fastapi import Query, status

from app.api.dependencies import Pagination
from app.core.auth.dependencies import CurrentSuperAdmin, CurrentUser, Scope
from app.modules.tenants import router
from app.modules.tenants.models import TenantStatus
from app.modules.tenants.schemas import (
    PlatformTenantStats,
    TenantCreate,
    TenantListResponse,
    TenantResponse,
    TenantStats,
    TenantSummary,
    TenantUpdate,
)
from app.modules.tenants.services import TenantSvc
from app.modules.users.schemas import UserListResponse, UserResponse


@router.get("/current", response_model=TenantSummary, summary="Tenant of the current user")
async def current_tenant(
    current_user: CurrentUser,  # noqa: ARG001 - required for auth
    scope: Scope,
    service: TenantSvc,
) -> TenantSummary:
    return TenantSummary.model_validate(await service.get_tenant(scope.require_tenant()))


@router.post(
    "",
    response_model=TenantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a tenant",
    description="Creates the tenant, its trial subscription and optionally its first admin.",
)
async def create_tenant(
    data: TenantCreate,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: TenantSvc,
) -> TenantResponse:
    tenant, _admin = await service.create_tenant(data)
    return TenantResponse.model_validate(tenant)


@router.get("", response_model=TenantListResponse, summary="List tenants")
async def list_tenants(
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: TenantSvc,
    pagination: Pagination,
    tenant_status: TenantStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=100),
) -> TenantListResponse:
    tenants, total = await service.list_tenants(
        pagination.page, pagination.page_size, tenant_status, search
    )
    return TenantListResponse(
        items=[TenantResponse.model_validate(t) for t in tenants],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/stats", response_model=PlatformTenantStats, summary="Tenant counts by status")
async def platform_stats(
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: TenantSvc,
) -> PlatformTenantStats:
    return await service.platform_stats()


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: UUID,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: TenantSvc,
) -> TenantResponse:
    return TenantResponse.model_validate(await service.get_tenant(tenant_id))


@router.patch("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: UUID,
    data: TenantUpdate,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: TenantSvc,
) -> TenantResponse:
    return TenantResponse.model_validate(await service.update_tenant(tenant_id, data))


@router.post("/{tenant_id}/suspend", response_model=TenantResponse)
async def suspend_tenant(
    tenant_id: UUID,
    current_user: CurrentSuperAdmin,
    service: TenantSvc,
) -> TenantResponse:
    return TenantResponse.model_validate(await service.suspend_tenant(tenant_id, current_user))


@router.post("/{tenant_id}/activate", response_model=TenantResponse)
async def activate_tenant(
    tenant_id: UUID,
    current_user: CurrentSuperAdmin,
    service: TenantSvc,
) -> TenantResponse:
    return TenantResponse.model_validate(await service.activate_tenant(tenant_id, current_user))


@router.delete("/{tenant_id}", response_model=TenantResponse, summary="Cancel a tenant")
async def delete_tenant(
    tenant_id: UUID,
    current_user: CurrentSuperAdmin,
    service: TenantSvc,
) -> TenantResponse:
    return TenantResponse.model_validate(await service.delete_tenant(tenant_id, current_user))


@router.get("/{tenant_id}/stats", response_model=TenantStats)
async def tenant_stats(
    tenant_id: UUID,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: TenantSvc,
) -> TenantStats:
    return await service.tenant_stats(tenant_id)


@router.get("/{tenant_id}/users", response_model=UserListResponse)
async def list_tenant_users(
    tenant_id: UUID,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: TenantSvc,
    pagination: Pagination,
) -> UserListResponse:
    users, total = await service.list_tenant_users(tenant_id, pagination.page, pagination.page_size)
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )
