"""Notification database model."""

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.constants import (
    MAX_NOTIFICATION_MESSAGE_LENGTH,
    MAX_NOTIFICATION_TITLE_LENGTH,
    MAX_STATUS_LENGTH,
)
from app.core.database.base import Base, TimestampMixin, UUIDMixin
from app.core.utils.time import as_utc, is_past, utcnow


class NotificationType(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"
    CRITICAL = "critical"


class NotificationCategory(StrEnum):
    TRIAL = "trial"
    PAYMENT = "payment"
    SUBSCRIPTION = "subscription"
    USER = "user"
    SYSTEM = "system"
    SECURITY = "security"
    BILLING = "billing"


class NotificationPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(StrEnum):
    UNREAD = "unread"
    READ = "read"
    DISMISSED = "dismissed"
    ARCHIVED = "archived"


PRIORITY_RANK: dict[str, int] = {
    NotificationPriority.LOW: 0,
    NotificationPriority.MEDIUM: 1,
    NotificationPriority.HIGH: 2,
    NotificationPriority.URGENT: 3,
}

HIDDEN_STATUSES = frozenset({NotificationStatus.DISMISSED, NotificationStatus.ARCHIVED})


class Notification(Base, UUIDMixin, TimestampMixin):
    """A message addressed to users, roles, tenants or everyone.

    Targets are stored as id/role lists. A user sees a notification when
    it is global, or when their id, role or tenant is listed. Each
    recipient's read, dismissed or archived state is kept in ``read_by``;
    ``status`` itself only changes for platform-wide moderation.
    """

    __tablename__ = "notifications"

    title: Mapped[str] = mapped_column(String(MAX_NOTIFICATION_TITLE_LENGTH), nullable=False)
    message: Mapped[str] = mapped_column(String(MAX_NOTIFICATION_MESSAGE_LENGTH), nullable=False)
    type: Mapped[str] = mapped_column(
        String(20), default=NotificationType.INFO.value, nullable=False
    )
    category: Mapped[str] = mapped_column(
        String(20), default=NotificationCategory.SYSTEM.value, nullable=False, index=True
    )
    priority: Mapped[str] = mapped_column(
        String(20), default=NotificationPriority.MEDIUM.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(MAX_STATUS_LENGTH),
        default=NotificationStatus.UNREAD.value,
        nullable=False,
        index=True,
    )

    target_users: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    target_roles: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    target_tenants: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_global: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    related_entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    related_entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    actions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    read_by: Mapped[list[dict[str, str]]] = mapped_column(JSON, default=list, nullable=False)

    created_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    def targets(self, user_id: UUID, role: str, tenant_id: UUID | None) -> bool:
        if self.is_global:
            return True
        if str(user_id) in (self.target_users or []):
            return True
        if role in (self.target_roles or []):
            return True
        return tenant_id is not None and str(tenant_id) in (self.target_tenants or [])

    @property
    def is_live(self) -> bool:
        """Due (not scheduled for later) and not expired."""
        scheduled_for = as_utc(self.scheduled_for)
        if scheduled_for is not None and scheduled_for > utcnow():
            return False
        return not is_past(self.expires_at)

    def _entry_for(self, user_id: UUID) -> dict[str, str] | None:
        return next((e for e in self.read_by or [] if e.get("user_id") == str(user_id)), None)

    def is_read_by(self, user_id: UUID) -> bool:
        return self._entry_for(user_id) is not None

    def mark_read(self, user_id: UUID, status: str = NotificationStatus.READ.value) -> None:
        """Record that one recipient read, dismissed or archived the notification."""
        entry = self._entry_for(user_id)
        if entry is not None and entry.get("status", NotificationStatus.READ.value) == status:
            return
        others = [e for e in self.read_by or [] if e.get("user_id") != str(user_id)]
        read_at = entry["read_at"] if entry else utcnow().isoformat()
        self.read_by = [*others, {"user_id": str(user_id), "read_at": read_at, "status": status}]

    def status_for(self, user_id: UUID) -> str:
        """Status as seen by one recipient."""
        if self.status in HIDDEN_STATUSES:
            return self.status
        entry = self._entry_for(user_id)
        if entry is None:
            return NotificationStatus.UNREAD.value
        return entry.get("status", NotificationStatus.READ.value)

    def is_hidden_for(self, user_id: UUID) -> bool:
        return self.status_for(user_id) in HIDDEN_STATUSES

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, title={self.title}, category={self.category})>"
