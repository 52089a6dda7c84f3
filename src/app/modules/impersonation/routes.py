"""Impersonation API routes (super admins only)."""

from datetime import datetime
from uuid import UUID

from fastapi import Query, Request, status

from app.api.dependencies import Pagination
from app.config import settings
from app.core.auth.dependencies import CurrentSuperAdmin
from app.core.auth.middleware import get_client_ip
from app.modules.impersonation import router
from app.modules.impersonation.schemas import (
    EndedCount,
    ImpersonationListResponse,
    ImpersonationResponse,
    ImpersonationStart,
    ImpersonationStarted,
    ImpersonationStats,
    TokenValidation,
    ValidateTokenRequest,
)
from app.modules.impersonation.services import ImpersonationSvc


@router.post(
    "/start",
    response_model=ImpersonationStarted,
    status_code=status.HTTP_201_CREATED,
    summary="Start impersonating a user",
)
async def start_impersonation(
    data: ImpersonationStart,
    request: Request,
    current_user: CurrentSuperAdmin,
    service: ImpersonationSvc,
) -> ImpersonationStarted:
    session, token = await service.start(
        current_user,
        data.target_user_id,
        data.reason,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return ImpersonationStarted(
        session=ImpersonationResponse.model_validate(session),
        access_token=token,
        expires_in=settings.impersonation_max_minutes * 60,
    )


@router.post("/{session_id}/end", response_model=ImpersonationResponse, summary="End a session")
async def end_impersonation(
    session_id: str,
    current_user: CurrentSuperAdmin,
    service: ImpersonationSvc,
) -> ImpersonationResponse:
    return ImpersonationResponse.model_validate(await service.end(session_id, current_user))


@router.post("/end-all", response_model=EndedCount, summary="End all of my active sessions")
async def end_all(current_user: CurrentSuperAdmin, service: ImpersonationSvc) -> EndedCount:
    return EndedCount(ended=await service.end_all_for(current_user))


@router.post("/validate", response_model=TokenValidation, summary="Check an impersonation token")
async def validate_token(
    data: ValidateTokenRequest,
    current_user: CurrentSuperAdmin,  # noqa: ARG001 - restricts access
    service: ImpersonationSvc,
) -> TokenValidation:
    session = await service.validate_token(data.token)
    if session is None:
        return TokenValidation(valid=False)
    return TokenValidation(valid=True, session=ImpersonationResponse.model_validate(session))


@router.get("/active", response_model=list[ImpersonationResponse], summary="Active sessions")
async def active_sessions(
    current_user: CurrentSuperAdmin,
    service: ImpersonationSvc,
    mine: bool = Query(False, description="Only sessions started by the caller"),
) -> list[ImpersonationResponse]:
    sessions = await service.active_sessions(current_user, mine_only=mine)
    return [ImpersonationResponse.model_validate(s) for s in sessions]


@router.get("/history", response_model=ImpersonationListResponse, summary="Session history")
async def history(
    current_user: CurrentSuperAdmin,
    service: ImpersonationSvc,
    pagination: Pagination,
    super_admin_id: UUID | None = None,
    tenant_id: UUID | None = None,
    started_after: datetime | None = None,
    started_before: datetime | None = None,
) -> ImpersonationListResponse:
    sessions, total = await service.history(
        current_user,
        pagination.page,
        pagination.page_size,
        super_admin_id=super_admin_id,
        target_tenant_id=tenant_id,
        started_after=started_after,
        started_before=started_before,
    )
    return ImpersonationListResponse(
        items=[ImpersonationResponse.model_validate(s) for s in sessions],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/recent", response_model=list[ImpersonationResponse], summary="Latest sessions")
async def recent_sessions(
    current_user: CurrentSuperAdmin,
    service: ImpersonationSvc,
) -> list[ImpersonationResponse]:
    return [ImpersonationResponse.model_validate(s) for s in await service.recent(current_user)]


@router.get("/stats", response_model=ImpersonationStats, summary="Impersonation statistics")
async def impersonation_stats(
    current_user: CurrentSuperAdmin,
    service: ImpersonationSvc,
    super_admin_id: UUID | None = None,
) -> ImpersonationStats:
    return await service.stats(current_user, super_admin_id)
