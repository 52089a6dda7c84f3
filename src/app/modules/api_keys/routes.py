"""API key routes.

Management endpoints use bearer tokens. ``/api-keys/whoami`` is authenticated
by the ``X-API-Key`` header itself; other machine endpoints use
``require_api_key`` to also check scopes and permissions.
"""

from uuid import UUID

from fastapi import Query, Request, status

from app.core.auth.dependencies import ApiKeyAuth, CurrentUser, Scope
from app.core.permissions.decorators import require_permission
from app.modules.api_keys import router
from app.modules.api_keys.schemas import (
    ApiKeyCreate,
    ApiKeyIdentity,
    ApiKeyResponse,
    ApiKeyStats,
    ApiKeyUpdate,
    ApiKeyWithSecret,
)
from app.modules.api_keys.services import ApiKeySvc


@router.get("/whoami", response_model=ApiKeyIdentity, summary="Describe the calling API key")
async def whoami(api_key: ApiKeyAuth) -> ApiKeyIdentity:
    return ApiKeyIdentity(
        key_id=api_key.key_id,
        tenant_id=api_key.tenant_id,
        permissions=api_key.permissions,
        scopes=api_key.scopes,
    )


@router.post(
    "",
    response_model=ApiKeyWithSecret,
    status_code=status.HTTP_201_CREATED,
    summary="Create an API key",
    description="The full key is only returned here and by rotate.",
)
@require_permission("api_keys", "write")
async def create_api_key(
    data: ApiKeyCreate,
    request: Request,  # noqa: ARG001 - read by require_permission
    current_user: CurrentUser,
    scope: Scope,
    service: ApiKeySvc,
) -> ApiKeyWithSecret:
    api_key, secret = await service.create(current_user, scope, data)
    return ApiKeyWithSecret(api_key=ApiKeyResponse.model_validate(api_key), key=secret)


@router.get("", response_model=list[ApiKeyResponse], summary="List API keys")
async def list_api_keys(
    current_user: CurrentUser,
    scope: Scope,
    service: ApiKeySvc,
    tenant_id: UUID | None = Query(None, description="Super admins: restrict to one tenant"),
    key_status: str | None = Query(None, alias="status"),
) -> list[ApiKeyResponse]:
    keys = await service.list_keys(current_user, scope.narrow(tenant_id), key_status)
    return [ApiKeyResponse.model_validate(api_key) for api_key in keys]


@router.get("/stats", response_model=ApiKeyStats, summary="API key statistics")
async def api_key_stats(current_user: CurrentUser, scope: Scope, service: ApiKeySvc) -> ApiKeyStats:
    return await service.stats(current_user, scope)


@router.get("/{key_id}", response_model=ApiKeyResponse, summary="Get an API key")
async def get_api_key(
    key_id: UUID,
    current_user: CurrentUser,
    scope: Scope,
    service: ApiKeySvc,
) -> ApiKeyResponse:
    return ApiKeyResponse.model_validate(await service.get(current_user, scope, key_id))


@router.patch("/{key_id}", response_model=ApiKeyResponse, summary="Update an API key")
async def update_api_key(
    key_id: UUID,
    data: ApiKeyUpdate,
    current_user: CurrentUser,
    scope: Scope,
    service: ApiKeySvc,
) -> ApiKeyResponse:
    return ApiKeyResponse.model_validate(await service.update(current_user, scope, key_id, data))


@router.post("/{key_id}/rotate", response_model=ApiKeyWithSecret, summary="Rotate the secret")
@require_permission("api_keys", "write")
async def rotate_api_key(
    key_id: UUID,
    request: Request,  # noqa: ARG001 - read by require_permission
    current_user: CurrentUser,
    scope: Scope,
    service: ApiKeySvc,
) -> ApiKeyWithSecret:
    api_key, secret = await service.rotate(current_user, scope, key_id)
    return ApiKeyWithSecret(api_key=ApiKeyResponse.model_validate(api_key), key=secret)


@router.delete("/{key_id}", response_model=ApiKeyResponse, summary="Revoke an API key")
@require_permission("api_keys", "delete")
async def revoke_api_key(
    key_id: UUID,
    request: Request,  # noqa: ARG001 - read by require_permission
    current_user: CurrentUser,
    scope: Scope,
    service: ApiKeySvc,
) -> ApiKeyResponse:
    return ApiKeyResponse.model_validate(await service.revoke(current_user, scope, key_id))
