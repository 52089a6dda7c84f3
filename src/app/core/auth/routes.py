"""Authentication API routes.

Provides endpoints for:
- Registration, login and logout
- Token refresh
- Tenant listing and switching
- Password changes
"""

from uuid import UUID

from fastapi import APIRouter, Request, status

from app.config import settings
from app.core.auth.dependencies import CurrentToken, CurrentUser
from app.core.auth.middleware import get_client_ip
from app.core.auth.service import AuthResult, AuthSvc
from app.core.rate_limit import rate_limit
from app.modules.tenants.schemas import TenantSummary
from app.modules.users.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MeResponse,
    RefreshTokenRequest,
    RegisterRequest,
    SwitchTenantRequest,
    TokenResponse,
    UserResponse,
)


router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(result.user),
        tenant=TenantSummary.model_validate(result.tenant) if result.tenant else None,
        subscription_status=result.subscription.status if result.subscription else None,
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        expires_in=result.tokens.expires_in,
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a user",
    description=(
        "Join an existing tenant (tenant_id), found a new trial tenant "
        "(company_name and domain) or get a personal trial tenant."
    ),
)
@rate_limit(settings.auth_rate_limit_requests, settings.auth_rate_limit_window)
async def register(
    data: RegisterRequest,
    service: AuthSvc,
    request: Request,  # noqa: ARG001 - read by rate_limit
) -> AuthResponse:
    return _auth_response(await service.register(data))


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login with email and password",
)
@rate_limit(settings.auth_rate_limit_requests, settings.auth_rate_limit_window)
async def login(data: LoginRequest, service: AuthSvc, request: Request) -> AuthResponse:
    """Login with email and password, optionally pinned to a tenant domain."""
    result = await service.login(
        email=data.email,
        password=data.password,
        tenant_domain=data.tenant_domain,
        user_agent=request.headers.get("User-Agent"),
        ip_address=get_client_ip(request),
    )
    return _auth_response(result)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh access token",
    description=(
        "Use a refresh token to obtain a new access token. "
        "The old refresh token is revoked."
    ),
)
async def refresh_token(
    data: RefreshTokenRequest,
    service: AuthSvc,
    request: Request,
) -> TokenResponse:
    tokens = await service.refresh_tokens(
        refresh_token=data.refresh_token,
        user_agent=request.headers.get("User-Agent"),
        ip_address=get_client_ip(request),
    )
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout",
)
async def logout(data: RefreshTokenRequest, service: AuthSvc) -> None:
    await service.logout(data.refresh_token)


@router.post(
    "/logout-all",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout from all devices",
)
async def logout_all(current_user: CurrentUser, service: AuthSvc) -> None:
    await service.logout_all(current_user.id)


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Get current user",
)
async def get_me(current_user: CurrentUser, token: CurrentToken, service: AuthSvc) -> MeResponse:
    """Current user, the tenant the token is bound to and the impersonator if any."""
    tenant = await service.tenant_repo.get_by_id(token.tenant_id) if token.tenant_id else None
    return MeResponse(
        user=UserResponse.model_validate(current_user),
        tenant=TenantSummary.model_validate(tenant) if tenant else None,
        impersonated_by=token.super_admin_id if token.is_impersonation else None,
    )


@router.get(
    "/tenants",
    response_model=list[TenantSummary],
    summary="List tenants available to the current user",
)
async def list_my_tenants(current_user: CurrentUser, service: AuthSvc) -> list[TenantSummary]:
    tenants = await service.get_user_tenants(current_user)
    return [TenantSummary.model_validate(tenant) for tenant in tenants]


@router.post(
    "/switch-tenant",
    response_model=AuthResponse,
    summary="Switch tenant context",
    description=(
        "Issue tokens bound to another tenant. "
        "Only super admins may leave their own tenant."
    ),
)
async def switch_tenant(
    data: SwitchTenantRequest,
    current_user: CurrentUser,
    service: AuthSvc,
    request: Request,
) -> AuthResponse:
    result = await service.switch_tenant(
        current_user,
        data.tenant_id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=get_client_ip(request),
    )
    return _auth_response(result)


@router.post(
    "/change-password",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Change own password",
)
async def change_password(
    data: ChangePasswordRequest,
    current_user: CurrentUser,
    service: AuthSvc,
) -> None:
    await service.change_password(current_user, data.current_password, data.new_password)


@router.post(
    "/force-password-change/{user_id}",
    response_model=UserResponse,
    summary="Force a user to change password",
    description="Admins of the user's tenant and super admins only.",
)
async def force_password_change(
    user_id: UUID,
    current_user: CurrentUser,
    service: AuthSvc,
) -> UserResponse:
    user = await service.force_password_change(current_user, user_id)
    return UserResponse.model_validate(user)
