"""API key database model."""

import hashlib
import secrets
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.constants import (
    API_KEY_DISPLAY_PREFIX_LENGTH,
    API_KEY_ID_BYTES,
    API_KEY_PREFIX,
    API_KEY_SECRET_BYTES,
    MAX_DESCRIPTION_LENGTH,
    MAX_STATUS_LENGTH,
    SHA256_HEX_LENGTH,
)
from app.core.database.base import AuditMixin, Base, TenantMixin, TimestampMixin, UUIDMixin
from app.core.utils.time import is_past, utcnow


class ApiKeyStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    REVOKED = "revoked"
    EXPIRED = "expired"


API_KEY_PERMISSIONS = ("read", "write", "delete", "admin")


def default_permissions() -> dict[str, bool]:
    return {"read": True, "write": False, "delete": False, "admin": False}


def default_rate_limit() -> dict[str, int]:
    return {"per_minute": 100, "per_hour": 1000, "per_day": 10000, "burst": 10}


def generate_key_id() -> str:
    return f"{API_KEY_PREFIX}{secrets.token_hex(API_KEY_ID_BYTES)}"


def generate_secret_key() -> str:
    """Generate the full key handed to the client. It is never stored."""
    return f"{API_KEY_PREFIX}{secrets.token_hex(API_KEY_SECRET_BYTES)}"


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()


class ApiKey(Base, UUIDMixin, TimestampMixin, TenantMixin, AuditMixin):
    """Credential for machine access to a tenant's data.

    Attributes:
        name: Human label
        description: Optional longer description
        key_id: Public identifier (``ak_`` + 32 hex)
        key_hash: SHA-256 of the full secret key
        key_prefix: First characters of the secret, for display
        permissions: ``read``/``write``/``delete``/``admin`` flags
        scopes: Resource scopes the key may touch (empty or ``*`` means all)
        rate_limit: ``per_minute``, ``per_hour``, ``per_day`` and ``burst``
        status: One of ``ApiKeyStatus``
        expires_at: Optional expiry
        last_used: Last successful verification
        usage_count: Successful verifications
        ip_whitelist: Exact client IPs allowed (empty means all)
        user_agent_whitelist: Case-insensitive user agent fragments (empty means all)
        created_by: User that created the key
    """

    __tablename__ = "api_keys"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(MAX_DESCRIPTION_LENGTH), nullable=True)
    key_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    key_hash: Mapped[str] = mapped_column(
        String(SHA256_HEX_LENGTH), nullable=False, unique=True, index=True
    )
    key_prefix: Mapped[str] = mapped_column(String(16), nullable=False)

    permissions: Mapped[dict[str, bool]] = mapped_column(
        JSON, default=default_permissions, nullable=False
    )
    scopes: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    rate_limit: Mapped[dict[str, int]] = mapped_column(
        JSON, default=default_rate_limit, nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(MAX_STATUS_LENGTH),
        default=ApiKeyStatus.ACTIVE.value,
        nullable=False,
        index=True,
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_used: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    ip_whitelist: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    user_agent_whitelist: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    @classmethod
    def issue(cls, **fields: Any) -> tuple["ApiKey", str]:
        """Build a new key and return it with the plaintext secret."""
        secret = generate_secret_key()
        api_key = cls(
            key_id=generate_key_id(),
            key_hash=hash_api_key(secret),
            key_prefix=secret[:API_KEY_DISPLAY_PREFIX_LENGTH],
            **fields,
        )
        return api_key, secret

    def rotate(self) -> str:
        """Replace the secret while keeping ``key_id``; return the new secret."""
        secret = generate_secret_key()
        self.key_hash = hash_api_key(secret)
        self.key_prefix = secret[:API_KEY_DISPLAY_PREFIX_LENGTH]
        return secret

    @property
    def is_expired(self) -> bool:
        return is_past(self.expires_at)

    @property
    def is_active(self) -> bool:
        return self.status == ApiKeyStatus.ACTIVE and not self.is_expired

    def matches(self, key: str) -> bool:
        if not key or not key.startswith(API_KEY_PREFIX):
            return False
        return secrets.compare_digest(hash_api_key(key), self.key_hash)

    def can_access_scope(self, scope: str) -> bool:
        if not self.scopes:
            return True
        return scope in self.scopes or "*" in self.scopes

    def has_permission(self, permission: str) -> bool:
        return bool((self.permissions or {}).get(permission))

    def is_ip_allowed(self, ip_address: str | None) -> bool:
        if not self.ip_whitelist:
            return True
        return ip_address is not None and ip_address in self.ip_whitelist

    def is_user_agent_allowed(self, user_agent: str | None) -> bool:
        if not self.user_agent_whitelist:
            return True
        agent = (user_agent or "").lower()
        return any(allowed.lower() in agent for allowed in self.user_agent_whitelist)

    def record_usage(self) -> None:
        self.usage_count = (self.usage_count or 0) + 1
        self.last_used = utcnow()

    def revoke(self) -> None:
        self.status = ApiKeyStatus.REVOKED.value

    def __repr__(self) -> str:
        return f"<ApiKey(key_id={self.key_id}, tenant_id={self.tenant_id}, status={self.status})>"
