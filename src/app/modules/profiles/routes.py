"""Profile API routes."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, Query, Request

from app.api.dependencies import Pagination
from app.core.auth.dependencies import CurrentUser, Scope, require_api_key
from app.core.database.tenant import TenantScope
from app.core.errors import NotFoundError
from app.core.permissions.decorators import require_roles
from app.modules.profiles import router
from app.modules.profiles.schemas import (
    CrsResult,
    ProfileListResponse,
    ProfileProgress,
    ProfileResponse,
    ProfileSave,
    ProfileUpdate,
)
from app.modules.profiles.services import ProfileSvc
from app.modules.users.models import ADMIN_ROLES


@router.get("/me", response_model=ProfileResponse | None, summary="Get own profile")
async def get_my_profile(
    current_user: CurrentUser,
    scope: Scope,
    service: ProfileSvc,
) -> ProfileResponse | None:
    """Returns null when the profile has not been started."""
    profile = await service.get_own(current_user, scope)
    return ProfileResponse.model_validate(profile) if profile else None


@router.put("/me", response_model=ProfileResponse, summary="Save own profile")
async def save_my_profile(
    data: ProfileSave,
    current_user: CurrentUser,
    scope: Scope,
    service: ProfileSvc,
) -> ProfileResponse:
    profile = await service.save_own(current_user, scope, data)
    return ProfileResponse.model_validate(profile)


@router.get("/me/progress", response_model=ProfileProgress, summary="Profile completion")
async def get_my_progress(
    current_user: CurrentUser,
    scope: Scope,
    service: ProfileSvc,
) -> ProfileProgress:
    return await service.progress(current_user, scope)


@router.post("/me/crs", response_model=ProfileResponse, summary="Record a CRS result")
async def record_crs(
    data: CrsResult,
    current_user: CurrentUser,
    scope: Scope,
    service: ProfileSvc,
) -> ProfileResponse:
    profile = await service.record_crs(current_user, scope, data)
    return ProfileResponse.model_validate(profile)


@router.get("", response_model=ProfileListResponse, summary="List profiles of the tenant")
@require_roles(*ADMIN_ROLES)
async def list_profiles(
    request: Request,  # noqa: ARG001 - read by require_roles
    current_user: CurrentUser,  # noqa: ARG001 - read by require_roles
    scope: Scope,
    service: ProfileSvc,
    pagination: Pagination,
    tenant_id: UUID | None = Query(None, description="Super admins: restrict to one tenant"),
    is_complete: bool | None = Query(None),
) -> ProfileListResponse:
    profiles, total = await service.list_profiles(
        scope.narrow(tenant_id), pagination.page, pagination.page_size, is_complete
    )
    return ProfileListResponse(
        items=[ProfileResponse.model_validate(p) for p in profiles],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get(
    "/export",
    response_model=ProfileListResponse,
    summary="Export the tenant's profiles",
    description="Authenticated by an X-API-Key with the profiles scope and read permission.",
)
async def export_profiles(
    api_key: Annotated[Any, Depends(require_api_key("profiles", "read"))],
    service: ProfileSvc,
    pagination: Pagination,
) -> ProfileListResponse:
    profiles, total = await service.list_profiles(
        TenantScope(api_key.tenant_id), pagination.page, pagination.page_size
    )
    return ProfileListResponse(
        items=[ProfileResponse.model_validate(p) for p in profiles],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/{profile_id}", response_model=ProfileResponse, summary="Get profile by ID")
async def get_profile(
    profile_id: UUID,
    current_user: CurrentUser,
    scope: Scope,
    service: ProfileSvc,
) -> ProfileResponse:
    """Owners and admins of the profile's tenant only."""
    profile = await service.get_profile(profile_id, scope)
    if profile.user_id != current_user.id and not current_user.is_admin:
        raise NotFoundError("Profile not found", resource="profile", resource_id=str(profile_id))
    return ProfileResponse.model_validate(profile)


@router.patch("/{profile_id}", response_model=ProfileResponse, summary="Update profile")
async def update_profile(
    profile_id: UUID,
    data: ProfileUpdate,
    current_user: CurrentUser,
    scope: Scope,
    service: ProfileSvc,
) -> ProfileResponse:
    existing = await service.get_profile(profile_id, scope)
    if existing.user_id != current_user.id and not current_user.is_admin:
        raise NotFoundError("Profile not found", resource="profile", resource_id=str(profile_id))
    profile = await service.update_profile(profile_id, scope, data)
    return ProfileResponse.model_validate(profile)
