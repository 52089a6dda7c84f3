"""Impersonation service.

Super admins can act as a tenant user for a bounded time. Every session
carries a written reason, is audited at start and end, and accumulates a
risk score from the actions performed under it.
"""

import secrets
from datetime import datetime, timedelta
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import Depends

from app.api.dependencies import DBSession
from app.config import settings
from app.core.audit.service import AuditService
from app.core.auth.backend import create_impersonation_token, decode_token, hash_token
from app.core.errors import (
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from app.core.utils.time import utcnow
from app.modules.impersonation.models import Impersonation, ImpersonationFlag
from app.modules.impersonation.repos import ImpersonationRepository
from app.modules.impersonation.schemas import ImpersonationStats
from app.modules.tenants.repos import TenantRepository
from app.modules.users.models import ADMIN_ROLES, User
from app.modules.users.repos import UserRepository


log = structlog.get_logger()

SESSION_ID_PREFIX = "imp_"
HIGH_RISK_THRESHOLD = 50
RECENT_SESSIONS = 10

# Business hours in UTC; sessions started outside are flagged
BUSINESS_HOURS = range(6, 22)


def classify_request(method: str, path: str) -> str:
    """Map an HTTP request made under impersonation to an action category."""
    if method == "GET":
        return "read"
    if method == "DELETE":
        return "delete"
    if "/suspend" in path:
        return "suspension"
    if "/export" in path:
        return "data_export"
    if "/bulk" in path:
        return "bulk_operations"
    if "/users" in path:
        return "user_management"
    if "/tenants" in path:
        return "tenant_management"
    if "/settings" in path or "/policy" in path:
        return "system_configuration"
    return "write"


class ImpersonationService:
    def __init__(self, db: DBSession) -> None:
        self.db = db
        self.repo = ImpersonationRepository(db)
        self.user_repo = UserRepository(db)
        self.tenant_repo = TenantRepository(db)
        self.audit = AuditService(db)

    def _ensure_super_admin(self, actor: User) -> None:
        if not actor.is_super_admin:
            raise ForbiddenError(
                "Only super admins can impersonate users",
                error_code="impersonation_forbidden",
            )

    async def start(
        self,
        super_admin: User,
        target_user_id: UUID,
        reason: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> tuple[Impersonation, str]:
        """Start a session and return it with its access token.

        Raises:
            ForbiddenError: If the actor is not a super admin or the
                target is one
            ValidationError: If the reason is too short
            NotFoundError: If the target user or tenant does not exist
            RateLimitError: If the super admin already has too many
                active sessions
        """
        self._ensure_super_admin(super_admin)

        reason = reason.strip()
        if len(reason) < settings.impersonation_min_reason_length:
            raise ValidationError(
                f"Reason must be at least {settings.impersonation_min_reason_length} characters",
                errors=[{"field": "reason", "message": "Reason is too short"}],
            )

        target = await self.user_repo.get_by_id(target_user_id)
        if target is None or not target.is_active:
            raise NotFoundError(
                "Target user not found", resource="user", resource_id=str(target_user_id)
            )
        if target.is_super_admin or target.tenant_id is None:
            raise ForbiddenError(
                "Super admins cannot be impersonated",
                error_code="impersonation_forbidden",
            )

        tenant = await self.tenant_repo.get_by_id(target.tenant_id)
        if tenant is None:
            raise NotFoundError(
                "Target tenant not found", resource="tenant", resource_id=str(target.tenant_id)
            )

        active = await self.repo.count_active(super_admin.id)
        if active >= settings.impersonation_max_active_sessions:
            raise RateLimitError(
                "Too many active impersonation sessions",
                error_code="impersonation_limit",
            )

        session = Impersonation(
            super_admin_id=super_admin.id,
            super_admin_email=super_admin.email,
            target_user_id=target.id,
            target_user_email=target.email,
            target_tenant_id=tenant.id,
            target_tenant_name=tenant.name,
            session_id=SESSION_ID_PREFIX + secrets.token_urlsafe(24),
            reason=reason,
            started_at=utcnow(),
            is_active=True,
            actions=[],
            flags=[],
            risk_score=0,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._apply_start_flags(session, target, active)
        session = await self.repo.create(session)

        token = create_impersonation_token(
            target_user_id=target.id,
            target_tenant_id=tenant.id,
            target_role=target.role,
            impersonation_id=session.id,
            session_id=session.session_id,
            super_admin_id=super_admin.id,
            expires_delta=timedelta(minutes=settings.impersonation_max_minutes),
        )
        session.token_hash = hash_token(token)
        await self.repo.update(session)

        await self.audit.log_impersonation(
            "impersonation_started",
            super_admin.id,
            session.session_id,
            tenant.id,
            metadata={"target_user_id": str(target.id), "reason": reason},
        )
        log.warning(
            "impersonation_started",
            session_id=session.session_id,
            super_admin_id=str(super_admin.id),
            target_user_id=str(target.id),
            tenant_id=str(tenant.id),
        )
        return session, token

    def _apply_start_flags(self, session: Impersonation, target: User, active: int) -> None:
        if target.role in ADMIN_ROLES:
            session.add_flag(ImpersonationFlag.HIGH_PRIVILEGE_ACCESS)
        if active > 0:
            session.add_flag(ImpersonationFlag.MULTIPLE_SESSIONS)
        if utcnow().hour not in BUSINESS_HOURS:
            session.add_flag(ImpersonationFlag.UNUSUAL_HOURS)

    async def _get_session(self, session_id: str) -> Impersonation:
        session = await self.repo.get_by_session_id(session_id)
        if session is None:
            raise NotFoundError(
                "Impersonation session not found", resource="impersonation", resource_id=session_id
            )
        return session

    async def end(self, session_id: str, actor: User) -> Impersonation:
        """End a session. Only the super admin who started it may end it."""
        self._ensure_super_admin(actor)
        session = await self._get_session(session_id)
        if session.super_admin_id != actor.id:
            raise ForbiddenError(
                "Only the initiating super admin can end this session",
                error_code="impersonation_forbidden",
            )
        if not session.is_active:
            return session
        return await self._close(session, "impersonation_ended")

    async def _close(self, session: Impersonation, action: str) -> Impersonation:
        session.end()
        await self.repo.update(session)
        await self.audit.log_impersonation(
            action,
            session.super_admin_id,
            session.session_id,
            session.target_tenant_id,
            metadata={
                "duration_seconds": session.duration_seconds,
                "actions": len(session.actions or []),
                "risk_score": session.risk_score,
            },
        )
        log.info(action, session_id=session.session_id, risk_score=session.risk_score)
        return session

    async def validate_token(self, token: str) -> Impersonation | None:
        """Return the active session a token belongs to, or None."""
        token_data = decode_token(token)
        if token_data is None or not token_data.is_impersonation:
            return None
        session = await self.repo.get_by_session_id(token_data.session_id or "")
        if session is None or session.token_hash != hash_token(token):
            return None
        if session.is_expired(settings.impersonation_max_minutes):
            if session.is_active:
                await self._close(session, "impersonation_expired")
            return None
        return session

    async def log_action(
        self,
        session: Impersonation,
        action: str,
        endpoint: str,
        details: dict[str, Any] | None = None,
    ) -> Impersonation:
        """Record an action performed under a session and rescore it."""
        session.add_action(action, endpoint, details)
        if session.risk_score >= HIGH_RISK_THRESHOLD:
            session.add_flag(ImpersonationFlag.SUSPICIOUS_ACTIVITY)
        return await self.repo.update(session)

    async def active_sessions(self, actor: User, mine_only: bool = False) -> list[Impersonation]:
        self._ensure_super_admin(actor)
        return await self.repo.list_active(actor.id if mine_only else None)

    async def history(
        self,
        actor: User,
        page: int,
        page_size: int,
        super_admin_id: UUID | None = None,
        target_tenant_id: UUID | None = None,
        started_after: datetime | None = None,
        started_before: datetime | None = None,
    ) -> tuple[list[Impersonation], int]:
        self._ensure_super_admin(actor)
        return await self.repo.list_history(
            page,
            page_size,
            super_admin_id=super_admin_id,
            target_tenant_id=target_tenant_id,
            started_after=started_after,
            started_before=started_before,
        )

    async def stats(self, actor: User, super_admin_id: UUID | None = None) -> ImpersonationStats:
        self._ensure_super_admin(actor)
        sessions = await self.repo.list_for_stats(super_admin_id)
        finished = [s for s in sessions if s.ended_at is not None]
        by_tenant: dict[str, int] = {}
        for session in sessions:
            by_tenant[session.target_tenant_name] = by_tenant.get(session.target_tenant_name, 0) + 1
        return ImpersonationStats(
            total_sessions=len(sessions),
            active_sessions=sum(1 for s in sessions if s.is_active),
            average_duration_seconds=(
                sum(s.duration_seconds for s in finished) // len(finished) if finished else 0
            ),
            average_risk_score=(
                round(sum(s.risk_score for s in sessions) / len(sessions), 2) if sessions else 0.0
            ),
            high_risk_sessions=sum(1 for s in sessions if s.risk_score >= HIGH_RISK_THRESHOLD),
            by_tenant=by_tenant,
        )

    async def recent(self, actor: User) -> list[Impersonation]:
        sessions, _ = await self.history(actor, 1, RECENT_SESSIONS)
        return sessions

    async def cleanup_expired(self) -> int:
        """End active sessions that outlived the maximum duration."""
        count = 0
        for session in await self.repo.list_active():
            if session.is_expired(settings.impersonation_max_minutes):
                await self._close(session, "impersonation_expired")
                count += 1
        return count

    async def end_all_for(self, actor: User) -> int:
        """End every active session started by ``actor``."""
        self._ensure_super_admin(actor)
        sessions = await self.repo.list_active(actor.id)
        for session in sessions:
            await self._close(session, "impersonation_ended")
        return len(sessions)


ImpersonationSvc = Annotated[ImpersonationService, Depends(ImpersonationService)]
