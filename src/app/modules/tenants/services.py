"""Tenant service for platform-level tenant management."""

from datetime import timedelta
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Depends

from app.api.dependencies import DBSession
from app.config import settings
from app.core.audit.service import AuditService
from app.core.database.tenant import TenantScope
from app.core.errors import BadRequestError, ConflictError, NotFoundError
from app.core.utils.time import utcnow
from app.modules.subscriptions.models import SubscriptionStatus
from app.modules.subscriptions.services import SubscriptionService
from app.modules.tenants.models import Tenant, TenantStatus, default_tenant_settings
from app.modules.tenants.repos import TenantRepository
from app.modules.tenants.schemas import (
    PlatformTenantStats,
    TenantCreate,
    TenantStats,
    TenantUpdate,
)
from app.modules.users.models import User, UserRole
from app.modules.users.services import UserService


log = structlog.get_logger()


class TenantService:
    """Service for tenant lifecycle operations.

    Only super admins reach these operations through the API.
    """

    def __init__(self, db: DBSession) -> None:
        self.db = db
        self.repo = TenantRepository(db)
        self.users = UserService(db)
        self.subscriptions = SubscriptionService(db)
        self.audit = AuditService(db)

    async def ensure_domain_available(self, domain: str, exclude_id: UUID | None = None) -> None:
        existing = await self.repo.get_by_domain(domain)
        if existing and existing.id != exclude_id:
            raise ConflictError(
                "Domain is already registered",
                error_code="domain_exists",
                details={"domain": domain},
            )

    async def create_trial_tenant(
        self,
        name: str,
        domain: str,
        tenant_settings: dict | None = None,
        contact_email: str | None = None,
        status: TenantStatus = TenantStatus.TRIAL,
    ) -> Tenant:
        """Create a tenant and open its trial subscription.

        Raises:
            ConflictError: If the domain is taken
        """
        await self.ensure_domain_available(domain)

        tenant = Tenant(
            name=name,
            domain=domain,
            status=status.value,
            trial_end_date=utcnow() + timedelta(days=settings.trial_days),
            settings=tenant_settings or default_tenant_settings(),
            contact_email=contact_email,
        )
        tenant = await self.repo.create(tenant)
        await self.subscriptions.start_trial(tenant.id, settings.trial_days)

        log.info("tenant_created", tenant_id=str(tenant.id), domain=domain)
        return tenant

    async def create_tenant(self, data: TenantCreate) -> tuple[Tenant, User | None]:
        """Create a tenant, its trial subscription and optionally its first admin."""
        tenant = await self.create_trial_tenant(
            name=data.name,
            domain=data.domain,
            tenant_settings=data.settings.model_dump() if data.settings else None,
            contact_email=data.contact_email or data.admin_email,
            status=data.status,
        )
        tenant.contact_phone = data.contact_phone
        tenant.contact_address = data.contact_address

        admin = None
        if data.admin_email and data.admin_password:
            admin = await self.users.create_user(
                tenant_id=tenant.id,
                email=data.admin_email,
                password=data.admin_password,
                first_name=data.admin_first_name,
                last_name=data.admin_last_name,
                role=UserRole.ADMIN,
                must_change_password=True,
            )
        return tenant, admin

    async def get_tenant(self, tenant_id: UUID) -> Tenant:
        tenant = await self.repo.get_by_id(tenant_id)
        if not tenant:
            raise NotFoundError(
                "Tenant not found",
                resource="tenant",
                resource_id=str(tenant_id),
            )
        return tenant

    async def get_by_domain(self, domain: str) -> Tenant:
        tenant = await self.repo.get_by_domain(domain)
        if not tenant:
            raise NotFoundError("Tenant not found", resource="tenant", resource_id=domain)
        return tenant

    async def list_tenants(
        self,
        page: int = 1,
        page_size: int = 20,
        status: str | None = None,
        search: str | None = None,
    ) -> tuple[list[Tenant], int]:
        return await self.repo.list_paginated(page, page_size, status, search)

    async def update_tenant(self, tenant_id: UUID, data: TenantUpdate) -> Tenant:
        tenant = await self.get_tenant(tenant_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("domain") and changes["domain"] != tenant.domain:
            await self.ensure_domain_available(changes["domain"], exclude_id=tenant.id)

        if "settings" in changes and changes["settings"] is not None:
            changes["settings"] = {**(tenant.settings or {}), **changes["settings"]}

        for field, value in changes.items():
            if value is not None:
                setattr(tenant, field, value)

        return await self.repo.update(tenant)

    async def _transition(
        self, tenant_id: UUID, status: TenantStatus, actor: User | None
    ) -> Tenant:
        tenant = await self.get_tenant(tenant_id)
        old_status = tenant.status
        if old_status == status:
            return tenant

        tenant.status = status.value
        await self.repo.update(tenant)
        await self.audit.log_tenant_status(
            tenant.id, old_status, status.value, actor.id if actor else None
        )
        log.info(f"tenant_{status.value}", tenant_id=str(tenant.id), old_status=old_status)
        return tenant

    async def suspend_tenant(self, tenant_id: UUID, actor: User | None = None) -> Tenant:
        return await self._transition(tenant_id, TenantStatus.SUSPENDED, actor)

    async def activate_tenant(self, tenant_id: UUID, actor: User | None = None) -> Tenant:
        """Reactivate a tenant. Cancelled tenants stay cancelled."""
        tenant = await self.get_tenant(tenant_id)
        if tenant.status == TenantStatus.CANCELLED:
            raise BadRequestError(
                "Cancelled tenants cannot be reactivated", error_code="tenant_cancelled"
            )
        return await self._transition(tenant_id, TenantStatus.ACTIVE, actor)

    async def delete_tenant(self, tenant_id: UUID, actor: User | None = None) -> Tenant:
        """Soft delete: the tenant is cancelled and its subscription with it."""
        tenant = await self._transition(tenant_id, TenantStatus.CANCELLED, actor)
        subscription = await self.subscriptions.get_for_tenant(tenant.id)
        if subscription and subscription.status != SubscriptionStatus.CANCELLED:
            await self.subscriptions.cancel(subscription.id)
        return tenant

    async def expire_trials(self) -> int:
        """Move trial tenants past their trial end to ``expired``."""
        expired = 0
        for tenant in await self.repo.list_by_status(TenantStatus.TRIAL.value):
            if tenant.is_trial_expired:
                tenant.status = TenantStatus.EXPIRED.value
                await self.audit.log_tenant_status(
                    tenant.id, TenantStatus.TRIAL.value, TenantStatus.EXPIRED.value
                )
                expired += 1
        if expired:
            await self.db.flush()
            log.info("tenant_trials_expired", count=expired)
        return expired

    async def tenant_stats(self, tenant_id: UUID) -> TenantStats:
        tenant = await self.get_tenant(tenant_id)
        scope = TenantScope(tenant.id)
        subscription = await self.subscriptions.get_for_tenant(tenant.id)
        return TenantStats(
            tenant_id=tenant.id,
            total_users=await self.users.repo.count(scope),
            active_users=await self.users.repo.count(scope, User.is_active.is_(True)),
            active_admins=await self.users.repo.count_active_admins(tenant.id),
            subscription_status=subscription.status if subscription else None,
            current_users=subscription.current_users if subscription else None,
            current_admins=subscription.current_admins if subscription else None,
        )

    async def platform_stats(self) -> PlatformTenantStats:
        by_status = await self.repo.count_by_status()
        return PlatformTenantStats(total=sum(by_status.values()), by_status=by_status)

    async def list_tenant_users(
        self,
        tenant_id: UUID,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[User], int]:
        await self.get_tenant(tenant_id)
        return await self.users.list_users(TenantScope(tenant_id), page, page_size)


TenantSvc = Annotated[TenantService, Depends(TenantService)]
