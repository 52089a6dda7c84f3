"""Impersonation session database model."""

from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.constants import (
    IMPERSONATION_MAX_ACTIONS,
    IMPERSONATION_MAX_MINUTES,
    IMPERSONATION_MAX_RISK_SCORE,
    MAX_EMAIL_LENGTH,
    MAX_IPV6_LENGTH,
    MAX_TENANT_NAME_LENGTH,
    MAX_USER_AGENT_LENGTH,
    SHA256_HEX_LENGTH,
)
from app.core.database.base import Base, TimestampMixin, UUIDMixin
from app.core.utils.time import as_utc, utcnow


class ImpersonationFlag(StrEnum):
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    HIGH_PRIVILEGE_ACCESS = "high_privilege_access"
    CROSS_TENANT_ACCESS = "cross_tenant_access"
    UNUSUAL_HOURS = "unusual_hours"
    MULTIPLE_SESSIONS = "multiple_sessions"


# Risk added per recorded action category
ACTION_RISK_WEIGHTS: dict[str, int] = {
    "user_management": 10,
    "tenant_management": 10,
    "system_configuration": 10,
    "data_export": 15,
    "bulk_operations": 15,
    "delete": 20,
    "suspension": 20,
}
DEFAULT_ACTION_RISK = 1

FLAG_RISK_WEIGHTS: dict[str, int] = {
    ImpersonationFlag.UNUSUAL_HOURS: 15,
    ImpersonationFlag.SUSPICIOUS_ACTIVITY: 25,
    ImpersonationFlag.HIGH_PRIVILEGE_ACCESS: 20,
    ImpersonationFlag.CROSS_TENANT_ACCESS: 30,
}

HIGH_ACTIVITY_THRESHOLD = 50
HIGH_ACTIVITY_RISK = 10


def calculate_risk_score(actions: list[dict[str, Any]], flags: list[str]) -> int:
    """Score a session from its recorded actions and flags, capped at 100."""
    score = sum(ACTION_RISK_WEIGHTS.get(a.get("action", ""), DEFAULT_ACTION_RISK) for a in actions)
    if len(actions) > HIGH_ACTIVITY_THRESHOLD:
        score += HIGH_ACTIVITY_RISK
    score += sum(FLAG_RISK_WEIGHTS.get(flag, 0) for flag in set(flags))
    return min(score, IMPERSONATION_MAX_RISK_SCORE)


class Impersonation(Base, UUIDMixin, TimestampMixin):
    """A super admin acting as another user.

    Platform-level record: it is not scoped to a tenant because it is
    only ever read by super admins.

    Attributes:
        super_admin_id: The acting super admin
        target_user_id: The impersonated user
        target_tenant_id: Tenant of the impersonated user
        session_id: Public identifier embedded in the impersonation token
        token_hash: SHA-256 of the issued impersonation token
        reason: Justification recorded at start
        started_at: Session start
        ended_at: Session end (set when ended or expired)
        is_active: Whether the session can still be used
        actions: Most recent recorded actions
        risk_score: 0-100 score derived from actions and flags
        flags: ``ImpersonationFlag`` values raised for the session
    """

    __tablename__ = "impersonations"

    super_admin_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    super_admin_email: Mapped[str] = mapped_column(String(MAX_EMAIL_LENGTH), nullable=False)
    target_user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_user_email: Mapped[str] = mapped_column(String(MAX_EMAIL_LENGTH), nullable=False)
    target_tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_tenant_name: Mapped[str] = mapped_column(String(MAX_TENANT_NAME_LENGTH), nullable=False)

    session_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    token_hash: Mapped[str | None] = mapped_column(
        String(SHA256_HEX_LENGTH), nullable=True, unique=True
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    actions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(MAX_IPV6_LENGTH), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(MAX_USER_AGENT_LENGTH), nullable=True)
    risk_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    flags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    @property
    def expires_at(self) -> datetime:
        started = as_utc(self.started_at)
        return started + timedelta(minutes=IMPERSONATION_MAX_MINUTES)  # type: ignore[operator]

    def is_expired(self, max_minutes: int = IMPERSONATION_MAX_MINUTES) -> bool:
        if not self.is_active:
            return True
        started = as_utc(self.started_at)
        return utcnow() - started > timedelta(minutes=max_minutes)  # type: ignore[operator]

    @property
    def duration_seconds(self) -> int:
        end = as_utc(self.ended_at) or utcnow()
        return int((end - as_utc(self.started_at)).total_seconds())  # type: ignore[operator]

    def add_action(self, action: str, endpoint: str, details: dict[str, Any] | None = None) -> None:
        """Record an action, keep only the latest ones and rescore."""
        entry = {
            "action": action,
            "endpoint": endpoint,
            "timestamp": utcnow().isoformat(),
            "details": details,
        }
        self.actions = [*(self.actions or []), entry][-IMPERSONATION_MAX_ACTIONS:]
        self.risk_score = calculate_risk_score(self.actions, self.flags or [])

    def add_flag(self, flag: str) -> None:
        if flag in (self.flags or []):
            return
        self.flags = [*(self.flags or []), flag]
        self.risk_score = calculate_risk_score(self.actions or [], self.flags)

    def end(self) -> None:
        self.is_active = False
        self.ended_at = utcnow()

    def __repr__(self) -> str:
        return (
            f"<Impersonation(session_id={self.session_id}, super_admin_id={self.super_admin_id}, "
            f"target_user_id={self.target_user_id}, is_active={self.is_active})>"
        )
