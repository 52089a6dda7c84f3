"""Tenant database models."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.constants import (
    DEFAULT_TENANT_MAX_ADMINS,
    DEFAULT_TENANT_MAX_USERS,
    MAX_DOMAIN_LENGTH,
    MAX_EMAIL_LENGTH,
    MAX_STATUS_LENGTH,
    MAX_TENANT_NAME_LENGTH,
)
from app.core.database.base import AuditMixin, Base, TimestampMixin, UUIDMixin
from app.core.utils.time import is_past


class TenantStatus(StrEnum):
    """Lifecycle states of a tenant."""

    TRIAL = "trial"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Statuses under which a tenant's users may sign in
ACCESSIBLE_TENANT_STATUSES = frozenset({TenantStatus.TRIAL, TenantStatus.ACTIVE})


def default_tenant_settings() -> dict[str, Any]:
    return {
        "max_users": DEFAULT_TENANT_MAX_USERS,
        "max_admins": DEFAULT_TENANT_MAX_ADMINS,
        "features": [],
    }


class Tenant(Base, UUIDMixin, TimestampMixin, AuditMixin):
    """A customer organization.

    Every tenant-scoped row references this table via ``tenant_id``.

    Attributes:
        name: Display name
        domain: Unique lowercase domain used to pick the tenant at login
        custom_domains: Extra domains mapped to the tenant
        status: One of ``TenantStatus``
        trial_end_date: End of the free trial for trial tenants
        settings: ``max_users``, ``max_admins`` and enabled ``features``
        contact_email: Primary contact address
        contact_phone: Primary contact phone
        contact_address: Postal address
    """

    __tablename__ = "tenants"
    # Status changes are written by TenantService with the acting user
    __audit_exclude__ = frozenset({"status"})

    name: Mapped[str] = mapped_column(
        String(MAX_TENANT_NAME_LENGTH),
        nullable=False,
        index=True,
    )
    domain: Mapped[str] = mapped_column(
        String(MAX_DOMAIN_LENGTH),
        nullable=False,
        unique=True,
        index=True,
    )
    custom_domains: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    status: Mapped[str] = mapped_column(
        String(MAX_STATUS_LENGTH),
        default=TenantStatus.TRIAL.value,
        nullable=False,
        index=True,
    )
    trial_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    settings: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=default_tenant_settings,
        nullable=False,
    )
    contact_email: Mapped[str | None] = mapped_column(String(MAX_EMAIL_LENGTH), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    contact_address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def is_accessible(self) -> bool:
        """Whether users of this tenant may sign in."""
        return self.status in ACCESSIBLE_TENANT_STATUSES

    @property
    def is_trial_expired(self) -> bool:
        return self.status == TenantStatus.TRIAL and is_past(self.trial_end_date)

    @property
    def max_users(self) -> int:
        return int((self.settings or {}).get("max_users", DEFAULT_TENANT_MAX_USERS))

    @property
    def max_admins(self) -> int:
        return int((self.settings or {}).get("max_admins", DEFAULT_TENANT_MAX_ADMINS))

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name={self.name}, domain={self.domain})>"
