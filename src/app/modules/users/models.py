"""User database models."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.constants import (
    MAX_EMAIL_LENGTH,
    MAX_IPV6_LENGTH,
    MAX_NAME_LENGTH,
    MAX_ROLE_LENGTH,
    MAX_USER_AGENT_LENGTH,
    SHA256_HEX_LENGTH,
)
from app.core.database.base import Base, TimestampMixin, UUIDMixin


class UserRole(StrEnum):
    """Roles, from least to most privileged."""

    USER = "user"
    ADMIN = "admin"
    TENANT_ADMIN = "tenant_admin"
    SUPER_ADMIN = "super_admin"


# Roles counted against a plan's admin limit
TENANT_ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.TENANT_ADMIN})
ADMIN_ROLES = TENANT_ADMIN_ROLES | {UserRole.SUPER_ADMIN}


class User(Base, UUIDMixin, TimestampMixin):
    """An authenticated account.

    Every user except a super admin belongs to exactly one tenant.
    Users are never hard-deleted; ``is_active=False`` is the delete.

    Attributes:
        email: Globally unique, lowercase email address
        password_hash: Bcrypt hash of the password
        first_name: Given name
        last_name: Family name
        role: One of ``UserRole``
        tenant_id: Owning tenant (None only for super admins)
        is_active: Whether the user can log in
        last_login: Time of the last successful login
        phone: Contact phone
        timezone: IANA time zone name
        language: Preferred UI language
        permissions: Extra fine-grained permission names
        must_change_password: Set by an admin to force a change at next login
        password_change_required: Set when the password policy demands rotation
        is_first_login: True until the user changes the initial password
        password_changed_at: Last password change
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(MAX_EMAIL_LENGTH),
        nullable=False,
        unique=True,
        index=True,
    )
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    first_name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    last_name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    role: Mapped[str] = mapped_column(
        String(MAX_ROLE_LENGTH),
        default=UserRole.USER.value,
        nullable=False,
        index=True,
    )
    tenant_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Profile basics
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    language: Mapped[str] = mapped_column(String(10), default="en", nullable=False)
    permissions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # Password lifecycle
    must_change_password: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    password_change_required: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    is_first_login: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    password_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    @property
    def is_admin(self) -> bool:
        """Admin of a tenant or of the platform."""
        return self.role in ADMIN_ROLES

    @property
    def counts_as_admin(self) -> bool:
        """Whether this user uses an admin seat of the tenant's plan."""
        return self.role in TENANT_ADMIN_ROLES

    @property
    def requires_password_change(self) -> bool:
        return self.must_change_password or self.password_change_required

    def belongs_to_tenant(self, tenant_id: UUID | None) -> bool:
        """Check tenant membership; super admins belong to every tenant."""
        if self.is_super_admin:
            return True
        return tenant_id is not None and self.tenant_id == tenant_id

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class RefreshToken(Base, UUIDMixin, TimestampMixin):
    """Refresh token for JWT authentication.

    Only the SHA-256 hash of the token is stored. The tenant the session
    was issued for is kept so a super admin who switched tenant keeps that
    context across refreshes.

    Attributes:
        user_id: The user this token belongs to
        tenant_id: Tenant context of the session
        token_hash: SHA-256 hash of the refresh token
        expires_at: When the token expires
        revoked: Whether the token has been revoked
        user_agent: The client user agent that created the token
        ip_address: The IP address that created the token
    """

    __tablename__ = "refresh_tokens"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tenant_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
    )
    token_hash: Mapped[str] = mapped_column(
        String(SHA256_HEX_LENGTH),
        nullable=False,
        unique=True,
        index=True,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    user_agent: Mapped[str | None] = mapped_column(
        String(MAX_USER_AGENT_LENGTH),
        nullable=True,
    )
    ip_address: Mapped[str | None] = mapped_column(
        String(MAX_IPV6_LENGTH),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<RefreshToken(id={self.id}, user_id={self.user_id}, revoked={self.revoked})>"
