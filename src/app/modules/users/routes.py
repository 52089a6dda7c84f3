"""User API routes.

Authentication (login, register, refresh) lives in ``app.core.auth``;
this module handles user management inside a tenant.
"""

from uuid import UUID

from fastapi import Query, Request, status

from app.api.dependencies import Pagination
from app.core.auth.dependencies import CurrentUser, Scope
from app.core.permissions.decorators import require_permission
from app.modules.users import router
from app.modules.users.schemas import (
    UserCreate,
    UserListResponse,
    UserResponse,
    UserStats,
    UserUpdate,
)
from app.modules.users.services import UserSvc


@router.get("/me", response_model=UserResponse, summary="Get current user")
async def get_me(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch("/me", response_model=UserResponse, summary="Update current user")
async def update_me(
    data: UserUpdate,
    current_user: CurrentUser,
    scope: Scope,
    service: UserSvc,
) -> UserResponse:
    user = await service.update_user(current_user.id, data, current_user, scope)
    return UserResponse.model_validate(user)


@router.get(
    "",
    response_model=UserListResponse,
    summary="List users",
    description="List users of the current tenant. Super admins may pass tenant_id.",
)
@require_permission("users", "read")
async def list_users(
    request: Request,  # noqa: ARG001 - read by require_permission
    current_user: CurrentUser,  # noqa: ARG001 - read by require_permission
    scope: Scope,
    service: UserSvc,
    pagination: Pagination,
    tenant_id: UUID | None = None,
    role: str | None = None,
    is_active: bool | None = None,
    search: str | None = Query(None, max_length=100),
) -> UserListResponse:
    users, total = await service.list_users(
        scope.narrow(tenant_id),
        pagination.page,
        pagination.page_size,
        role=role,
        is_active=is_active,
        search=search,
    )
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a user to the tenant",
    description="Counts against the plan's user and admin limits.",
)
@require_permission("users", "write")
async def create_user(
    data: UserCreate,
    request: Request,  # noqa: ARG001 - read by require_permission
    current_user: CurrentUser,  # noqa: ARG001 - read by require_permission
    scope: Scope,
    service: UserSvc,
    tenant_id: UUID | None = None,
) -> UserResponse:
    user = await service.create_user(
        tenant_id=scope.narrow(tenant_id).require_tenant(),
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role,
        phone=data.phone,
        must_change_password=data.must_change_password,
    )
    return UserResponse.model_validate(user)


@router.get("/stats", response_model=UserStats, summary="User counts for the tenant")
@require_permission("users", "read")
async def user_stats(
    request: Request,  # noqa: ARG001 - read by require_permission
    current_user: CurrentUser,  # noqa: ARG001 - read by require_permission
    scope: Scope,
    service: UserSvc,
    tenant_id: UUID | None = None,
) -> UserStats:
    return await service.stats(scope.narrow(tenant_id))


@router.get("/{user_id}", response_model=UserResponse, summary="Get user by ID")
@require_permission("users", "read")
async def get_user(
    user_id: UUID,
    request: Request,  # noqa: ARG001 - read by require_permission
    current_user: CurrentUser,  # noqa: ARG001 - read by require_permission
    scope: Scope,
    service: UserSvc,
) -> UserResponse:
    return UserResponse.model_validate(await service.get_user(user_id, scope))


@router.patch("/{user_id}", response_model=UserResponse, summary="Update user")
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    current_user: CurrentUser,
    scope: Scope,
    service: UserSvc,
) -> UserResponse:
    user = await service.update_user(user_id, data, current_user, scope)
    return UserResponse.model_validate(user)


@router.post("/{user_id}/deactivate", response_model=UserResponse, summary="Deactivate user")
@require_permission("users", "delete")
async def deactivate_user(
    user_id: UUID,
    request: Request,  # noqa: ARG001 - read by require_permission
    current_user: CurrentUser,
    scope: Scope,
    service: UserSvc,
) -> UserResponse:
    return UserResponse.model_validate(await service.deactivate_user(user_id, current_user, scope))


@router.post("/{user_id}/activate", response_model=UserResponse, summary="Reactivate user")
@require_permission("users", "write")
async def activate_user(
    user_id: UUID,
    request: Request,  # noqa: ARG001 - read by require_permission
    current_user: CurrentUser,  # noqa: ARG001 - read by require_permission
    scope: Scope,
    service: UserSvc,
) -> UserResponse:
    return UserResponse.model_validate(await service.activate_user(user_id, scope))
