"""Audit log database model.

Stores audit entries for tracking who did what, when. Platform-level
actions (super admin work, failed logins for unknown accounts) have no
tenant.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.constants import MAX_IPV6_LENGTH
from app.core.database.base import Base, UUIDMixin
from app.core.utils.time import utcnow


class AuditLog(Base, UUIDMixin):
    """Audit log entry for tracking changes and actions.

    Attributes:
        tenant_id: The tenant this action belongs to (None for platform actions)
        user_id: The user who performed the action (None for system actions)
        action: Type of action (create, update, delete, login_success, ...)
        resource_type: Type of resource affected (tenants, auth, impersonation, ...)
        resource_id: ID of the affected resource
        ip_address: Client IP address
        user_agent: Client user agent string
        request_id: Correlation ID for request tracing
        changes: Field changes as {field: {old: x, new: y}}
        metadata_: Additional context about the action
        created_at: When the action occurred
    """

    __tablename__ = "audit_logs"

    tenant_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    ip_address: Mapped[str | None] = mapped_column(String(MAX_IPV6_LENGTH), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action={self.action}, "
            f"resource_type={self.resource_type}, resource_id={self.resource_id})>"
        )
