"""Database layer - session management, base models, mixins and tenant scoping."""

from app.core.database.base import AuditMixin, Base, TenantMixin, TimestampMixin, UUIDMixin
from app.core.database.session import (
    async_engine,
    async_session_factory,
    create_tables,
    get_db,
    load_models,
)
from app.core.database.tenant import TenantContextRequired, TenantScope, TenantSession


__all__ = [
    "AuditMixin",
    "Base",
    "TenantContextRequired",
    "TenantMixin",
    "TenantScope",
    "TenantSession",
    "TimestampMixin",
    "UUIDMixin",
    "async_engine",
    "async_session_factory",
    "create_tables",
    "get_db",
    "load_models",
]
