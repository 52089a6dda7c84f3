"""MFA API routes."""

from uuid import UUID

from fastapi import Request, status

from app.core.auth.dependencies import CurrentUser, Scope
from app.core.permissions.decorators import require_roles
from app.modules.mfa import router
from app.modules.mfa.models import MFAMethod
from app.modules.mfa.schemas import (
    BackupCodesResponse,
    CodeRequest,
    DisableRequest,
    MFAStatus,
    NeedsSetupResponse,
    PolicyUpdate,
    SmsSetupRequest,
    TotpSetupResponse,
    VerifyRequest,
    VerifyResponse,
)
from app.modules.mfa.services import MFASvc
from app.modules.users.models import ADMIN_ROLES
from app.modules.users.services import UserSvc


@router.get("/status", response_model=MFAStatus, summary="MFA status of the current user")
async def get_status(current_user: CurrentUser, scope: Scope, service: MFASvc) -> MFAStatus:
    return await service.status(current_user, scope)


@router.get("/needs-setup", response_model=NeedsSetupResponse)
async def needs_setup(
    current_user: CurrentUser, scope: Scope, service: MFASvc
) -> NeedsSetupResponse:
    return NeedsSetupResponse(needs_setup=await service.needs_setup(current_user, scope))


@router.post("/totp/setup", response_model=TotpSetupResponse, summary="Start TOTP enrolment")
async def setup_totp(current_user: CurrentUser, scope: Scope, service: MFASvc) -> TotpSetupResponse:
    return await service.setup_totp(current_user, scope)


@router.post("/totp/enable", response_model=VerifyResponse, summary="Confirm TOTP enrolment")
async def enable_totp(
    data: CodeRequest,
    current_user: CurrentUser,
    scope: Scope,
    service: MFASvc,
) -> VerifyResponse:
    success = await service.verify_and_enable_totp(current_user, scope, data.code)
    return VerifyResponse(success=success, method=MFAMethod.TOTP)


@router.post(
    "/sms/setup",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Register a phone for SMS codes",
)
async def setup_sms(
    data: SmsSetupRequest,
    current_user: CurrentUser,
    scope: Scope,
    service: MFASvc,
) -> dict[str, str]:
    await service.setup_sms(current_user, scope, data.phone_number)
    return {"status": "code_sent"}


@router.post("/email/setup", status_code=status.HTTP_202_ACCEPTED, summary="Enable email codes")
async def setup_email(current_user: CurrentUser, scope: Scope, service: MFASvc) -> dict[str, str]:
    await service.setup_email(current_user, scope)
    return {"status": "code_sent"}


@router.post("/sms/confirm", response_model=VerifyResponse, summary="Confirm the phone number")
async def confirm_sms(
    data: CodeRequest,
    current_user: CurrentUser,
    scope: Scope,
    service: MFASvc,
) -> VerifyResponse:
    success = await service.verify_sms(current_user, scope, data.code)
    return VerifyResponse(success=success, method=MFAMethod.SMS)


@router.post("/email/confirm", response_model=VerifyResponse, summary="Confirm email codes")
async def confirm_email(
    data: CodeRequest,
    current_user: CurrentUser,
    scope: Scope,
    service: MFASvc,
) -> VerifyResponse:
    success = await service.verify_email(current_user, scope, data.code)
    return VerifyResponse(success=success, method=MFAMethod.EMAIL)


@router.post("/{method}/resend", status_code=status.HTTP_202_ACCEPTED, summary="Send a new code")
async def resend_code(
    method: MFAMethod,
    current_user: CurrentUser,
    scope: Scope,
    service: MFASvc,
) -> dict[str, str]:
    await service.resend_code(current_user, scope, method)
    return {"status": "code_sent"}


@router.post("/verify", response_model=VerifyResponse, summary="Verify an MFA code")
async def verify(
    data: VerifyRequest,
    current_user: CurrentUser,
    scope: Scope,
    service: MFASvc,
) -> VerifyResponse:
    """Failed attempts are counted; too many lock verification (423)."""
    return await service.verify_mfa(current_user, scope, data.method, data.code)


@router.post("/disable", response_model=MFAStatus, summary="Disable an MFA method")
async def disable(
    data: DisableRequest,
    current_user: CurrentUser,
    scope: Scope,
    service: MFASvc,
) -> MFAStatus:
    await service.disable(current_user, scope, data.method)
    return await service.status(current_user, scope)


@router.post("/backup-codes", response_model=BackupCodesResponse, summary="Regenerate backup codes")
async def regenerate_backup_codes(
    current_user: CurrentUser,
    scope: Scope,
    service: MFASvc,
) -> BackupCodesResponse:
    codes = await service.regenerate_backup_codes(current_user, scope)
    return BackupCodesResponse(backup_codes=codes)


@router.put("/policy/{user_id}", response_model=MFAStatus, summary="Set a user's MFA policy")
@require_roles(*ADMIN_ROLES)
async def update_policy(
    user_id: UUID,
    data: PolicyUpdate,
    request: Request,  # noqa: ARG001 - read by require_roles
    current_user: CurrentUser,  # noqa: ARG001 - read by require_roles
    scope: Scope,
    service: MFASvc,
    users: UserSvc,
) -> MFAStatus:
    target = await users.get_user(user_id, scope)
    target_scope = scope.narrow(target.tenant_id)
    await service.update_policy(target, target_scope, data)
    return await service.status(target, target_scope)
