"""SQLAlchemy declarative base and common mixins."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.core.utils.time import utcnow


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UUIDMixin:
    """Mixin that adds a UUID primary key."""

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
        index=True,
    )


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps.

    Values are generated client-side as well so they are readable right
    after a flush without another round trip.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


class TenantMixin:
    """Mixin that adds a required tenant_id for tenant-scoped models.

    Rows carrying this mixin are only ever read through a ``TenantScope``
    so one tenant can never see another tenant's rows.
    """

    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )


class AuditMixin:
    """Marker mixin to enable automatic audit logging.

    The ``before_flush`` listener in ``app.core.audit.middleware`` records
    create, update and delete events for models carrying ``__audit__``.
    """

    __audit__: bool = True
