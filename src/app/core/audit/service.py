"""Audit service for logging security-relevant actions.

Automatic change capture lives in ``app.core.audit.middleware``; this
service records the events no row change expresses (logins,
impersonation, tenant status transitions).
"""

from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import Depends

from app.api.dependencies import DBSession
from app.core.audit.middleware import get_audit_context
from app.core.audit.models import AuditLog


log = structlog.get_logger()


class AuditService:
    """Service for creating explicit audit log entries.

    Request details (request id, client IP, user agent) come from the
    audit context bound by ``TenantContextMiddleware``.
    """

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def log(
        self,
        action: str,
        resource_type: str,
        resource_id: str | None = None,
        tenant_id: UUID | None = None,
        user_id: UUID | None = None,
        changes: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Create an audit log entry.

        Args:
            action: Type of action (e.g. "login_success", "tenant_suspended")
            resource_type: Type of resource (e.g. "auth", "tenants")
            resource_id: ID of the affected resource
            tenant_id: Owning tenant, defaults to the request's tenant
            user_id: Acting user, defaults to the request's user
            changes: Dictionary of field changes
            metadata: Additional context data

        Returns:
            Created audit log entry
        """
        context = get_audit_context()
        entry = AuditLog(
            tenant_id=tenant_id if tenant_id is not None else context.get("tenant_id"),
            user_id=user_id if user_id is not None else context.get("user_id"),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=context.get("ip_address"),
            user_agent=context.get("user_agent"),
            request_id=context.get("request_id"),
            changes=changes,
            metadata_=metadata,
        )

        self.session.add(entry)
        await self.session.flush()

        log.info(
            "audit_log_created",
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
        )

        return entry

    async def log_login(
        self,
        user_id: UUID | None,
        tenant_id: UUID | None,
        success: bool,
        failure_reason: str | None = None,
    ) -> AuditLog:
        return await self.log(
            action="login_success" if success else "login_failure",
            resource_type="auth",
            resource_id=str(user_id) if user_id else None,
            tenant_id=tenant_id,
            user_id=user_id,
            metadata={"method": "password", "failure_reason": failure_reason},
        )

    async def log_impersonation(
        self,
        action: str,
        super_admin_id: UUID,
        session_id: str,
        target_tenant_id: UUID,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLog:
        return await self.log(
            action=action,
            resource_type="impersonation",
            resource_id=session_id,
            tenant_id=target_tenant_id,
            user_id=super_admin_id,
            metadata=metadata,
        )

    async def log_tenant_status(
        self,
        tenant_id: UUID,
        old_status: str,
        new_status: str,
        actor_id: UUID | None = None,
    ) -> AuditLog:
        return await self.log(
            action="tenant_status_changed",
            resource_type="tenants",
            resource_id=str(tenant_id),
            tenant_id=tenant_id,
            user_id=actor_id,
            changes={"status": {"old": old_status, "new": new_status}},
        )


AuditSvc = Annotated[AuditService, Depends(AuditService)]
