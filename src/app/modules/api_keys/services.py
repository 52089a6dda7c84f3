"""API key service."""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Depends

from app.api.dependencies import DBSession
from app.core.database.tenant import TenantScope
from app.core.errors import AuthenticationError, ForbiddenError, NotFoundError, ValidationError
from app.modules.api_keys.models import ApiKey, ApiKeyStatus, hash_api_key
from app.modules.api_keys.repos import ApiKeyRepository
from app.modules.api_keys.schemas import ApiKeyCreate, ApiKeyStats, ApiKeyUpdate
from app.modules.subscriptions.repos import SubscriptionRepository
from app.modules.tenants.repos import TenantRepository
from app.modules.users.models import User
from app.modules.users.services import UserService


log = structlog.get_logger()


class ApiKeyService:
    """Create, manage and verify tenant API keys.

    Only admins manage keys, and only in their own tenant; super admins
    may manage keys of any tenant.
    """

    def __init__(self, db: DBSession) -> None:
        self.db = db
        self.repo = ApiKeyRepository(db)
        self.users = UserService(db)
        self.tenants = TenantRepository(db)
        self.subscriptions = SubscriptionRepository(db)

    def _ensure_manager(self, actor: User) -> None:
        if not actor.is_admin:
            raise ForbiddenError(
                "Insufficient permissions to manage API keys",
                error_code="api_key_forbidden",
            )

    def _validate(
        self,
        permissions: dict[str, bool],
        scopes: list[str],
        rate_limit: dict[str, int],
    ) -> None:
        errors = []
        if not any(permissions.values()):
            errors.append(
                {"field": "permissions", "message": "At least one permission must be granted"}
            )
        if not scopes:
            errors.append({"field": "scopes", "message": "At least one scope must be specified"})
        if any(value <= 0 for value in rate_limit.values()):
            errors.append(
                {"field": "rate_limit", "message": "Rate limits must be positive numbers"}
            )
        if errors:
            raise ValidationError(errors[0]["message"], errors=errors, error_code="invalid_api_key")

    async def create(
        self, actor: User, scope: TenantScope, data: ApiKeyCreate
    ) -> tuple[ApiKey, str]:
        """Create a key and return it with the plaintext secret.

        Raises:
            ForbiddenError: If the actor is not an admin
            ValidationError: If permissions, scopes or rate limits are invalid
        """
        self._ensure_manager(actor)
        target_scope = scope.narrow(data.tenant_id)
        tenant_id = target_scope.require_tenant()
        await self.users.get_accessible_tenant(tenant_id)

        permissions = data.permissions.model_dump()
        rate_limit = data.rate_limit.model_dump()
        self._validate(permissions, data.scopes, rate_limit)

        api_key, secret = ApiKey.issue(
            tenant_id=tenant_id,
            name=data.name,
            description=data.description,
            permissions=permissions,
            scopes=data.scopes,
            rate_limit=rate_limit,
            expires_at=data.expires_at,
            ip_whitelist=data.ip_whitelist,
            user_agent_whitelist=data.user_agent_whitelist,
            notes=data.notes,
            created_by=actor.id,
        )
        api_key = await self.repo.create(api_key, target_scope)

        log.info("api_key_created", key_id=api_key.key_id, tenant_id=str(tenant_id))
        return api_key, secret

    async def list_keys(
        self, actor: User, scope: TenantScope, status: str | None = None
    ) -> list[ApiKey]:
        self._ensure_manager(actor)
        return await self.repo.list_scoped(scope, status)

    async def get(self, actor: User, scope: TenantScope, key_id: UUID) -> ApiKey:
        self._ensure_manager(actor)
        api_key = await self.repo.get_by_id(key_id, scope)
        if api_key is None:
            raise NotFoundError("API key not found", resource="api_key", resource_id=str(key_id))
        return api_key

    async def update(
        self, actor: User, scope: TenantScope, key_id: UUID, data: ApiKeyUpdate
    ) -> ApiKey:
        api_key = await self.get(actor, scope, key_id)
        if api_key.status == ApiKeyStatus.REVOKED:
            raise ValidationError("Revoked keys cannot be changed", error_code="api_key_revoked")

        changes = data.model_dump(exclude_unset=True)
        self._validate(
            changes.get("permissions", api_key.permissions),
            changes.get("scopes", api_key.scopes),
            changes.get("rate_limit", api_key.rate_limit),
        )
        for field, value in changes.items():
            setattr(api_key, field, value)

        log.info("api_key_updated", key_id=api_key.key_id, fields=sorted(changes))
        return await self.repo.update(api_key)

    async def revoke(self, actor: User, scope: TenantScope, key_id: UUID) -> ApiKey:
        api_key = await self.get(actor, scope, key_id)
        api_key.revoke()
        log.info("api_key_revoked", key_id=api_key.key_id, actor_id=str(actor.id))
        return await self.repo.update(api_key)

    async def rotate(self, actor: User, scope: TenantScope, key_id: UUID) -> tuple[ApiKey, str]:
        """Issue a new secret for an existing key; the old secret stops working."""
        api_key = await self.get(actor, scope, key_id)
        if api_key.status == ApiKeyStatus.REVOKED:
            raise ValidationError("Revoked keys cannot be rotated", error_code="api_key_revoked")
        secret = api_key.rotate()
        await self.repo.update(api_key)
        log.info("api_key_rotated", key_id=api_key.key_id)
        return api_key, secret

    async def stats(self, actor: User, scope: TenantScope) -> ApiKeyStats:
        keys = await self.list_keys(actor, scope)
        by_status: dict[str, int] = {}
        for api_key in keys:
            by_status[api_key.status] = by_status.get(api_key.status, 0) + 1
        used = [api_key.last_used for api_key in keys if api_key.last_used]
        return ApiKeyStats(
            total=len(keys),
            by_status=by_status,
            total_usage=sum(api_key.usage_count for api_key in keys),
            last_used=max(used) if used else None,
        )

    async def verify(
        self,
        key: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> ApiKey:
        """Authenticate a plaintext key and count the use.

        The owning tenant must still be accessible and its subscription
        active, as for bearer tokens.

        Raises:
            AuthenticationError: If the key is unknown, inactive, expired,
                used from a client outside its whitelists, or owned by a
                suspended or lapsed tenant
        """
        api_key = await self.repo.get_by_hash(hash_api_key(key))
        if api_key is None or not api_key.matches(key):
            raise AuthenticationError("Invalid API key", error_code="invalid_api_key")
        if not api_key.is_active:
            raise AuthenticationError("API key is not active", error_code="api_key_inactive")
        if not api_key.is_ip_allowed(ip_address) or not api_key.is_user_agent_allowed(user_agent):
            log.warning("api_key_client_rejected", key_id=api_key.key_id, ip_address=ip_address)
            raise AuthenticationError(
                "API key not allowed from this client", error_code="api_key_client_denied"
            )

        tenant = await self.tenants.get_by_id(api_key.tenant_id)
        if tenant is None or not tenant.is_accessible:
            raise AuthenticationError(
                "Account access is temporarily suspended", error_code="tenant_inactive"
            )
        subscription = await self.subscriptions.get_for_tenant(api_key.tenant_id)
        if subscription is not None and not subscription.is_active:
            raise AuthenticationError(
                "Account subscription has expired. Please renew to continue.",
                error_code="subscription_expired",
            )

        api_key.record_usage()
        await self.repo.update(api_key)
        return api_key

    async def expire_lapsed(self) -> int:
        count = await self.repo.expire_lapsed()
        if count:
            log.info("api_keys_expired", count=count)
        return count


ApiKeySvc = Annotated[ApiKeyService, Depends(ApiKeyService)]
