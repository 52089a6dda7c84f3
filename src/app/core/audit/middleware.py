"""Automatic audit capture via SQLAlchemy event listeners.

Provides automatic tracking of model changes for models that
inherit from AuditMixin.
"""

from contextvars import ContextVar
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from app.core.audit.models import AuditLog


log = structlog.get_logger()


# Request-scoped context read by the flush listener
_audit_context: ContextVar[dict[str, Any] | None] = ContextVar("audit_context", default=None)

# Columns that change on every write and carry no audit value
_IGNORED_FIELDS = frozenset({"updated_at", "created_at"})


def set_audit_context(
    tenant_id: UUID | None = None,
    user_id: UUID | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """Set the audit context for the current request.

    Args:
        tenant_id: Current tenant ID
        user_id: Current user ID
        request_id: Request correlation ID
        ip_address: Client IP address
        user_agent: Client user agent
    """
    _audit_context.set(
        {
            "tenant_id": tenant_id,
            "user_id": user_id,
            "request_id": request_id,
            "ip_address": ip_address,
            "user_agent": user_agent,
        }
    )


def clear_audit_context() -> None:
    """Clear the audit context after request completes."""
    _audit_context.set(None)


def get_audit_context() -> dict[str, Any]:
    return dict(_audit_context.get() or {})


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID | Decimal):
        return str(value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    return value


def _get_changes(obj: Any) -> dict[str, dict[str, Any]]:
    """Extract {field: {old, new}} for the modified columns of ``obj``.

    Columns named in the model's ``__audit_exclude__`` are skipped; their
    changes are audited explicitly by the owning service.
    """
    changes = {}
    state = inspect(obj)
    ignored = _IGNORED_FIELDS | getattr(obj, "__audit_exclude__", frozenset())

    for attr in state.mapper.column_attrs:
        if attr.key.startswith("_") or attr.key in ignored:
            continue

        history = state.attrs[attr.key].history
        if history.has_changes():
            old_value = history.deleted[0] if history.deleted else None
            new_value = history.added[0] if history.added else None
            changes[attr.key] = {"old": _jsonable(old_value), "new": _jsonable(new_value)}

    return changes


def _should_audit(obj: Any) -> bool:
    return getattr(obj, "__audit__", False)


def _resolve_tenant_id(obj: Any, context: dict[str, Any]) -> UUID | None:
    """Prefer the row's own tenant; tenants are their own tenant."""
    tenant_id = getattr(obj, "tenant_id", None)
    if tenant_id is not None:
        return tenant_id
    if obj.__tablename__ == "tenants":
        return obj.id
    return context.get("tenant_id")


def _create_audit_entry(
    session: Session,
    action: str,
    obj: Any,
    changes: dict[str, Any] | None = None,
) -> None:
    context = get_audit_context()

    # Primary keys are normally assigned at flush; the entry needs it now
    if getattr(obj, "id", None) is None:
        obj.id = uuid4()

    entry = AuditLog(
        tenant_id=_resolve_tenant_id(obj, context),
        user_id=context.get("user_id"),
        action=action,
        resource_type=obj.__tablename__,
        resource_id=str(obj.id),
        request_id=context.get("request_id"),
        ip_address=context.get("ip_address"),
        user_agent=context.get("user_agent"),
        changes=changes,
    )

    session.add(entry)


def _before_flush(session: Session, _flush_context: Any, _instances: Any) -> None:
    """Capture changes before they're flushed to the database."""
    for obj in list(session.new):
        if _should_audit(obj):
            _create_audit_entry(session, "create", obj)

    for obj in list(session.dirty):
        if _should_audit(obj) and session.is_modified(obj):
            changes = _get_changes(obj)
            if changes:
                _create_audit_entry(session, "update", obj, changes)

    for obj in list(session.deleted):
        if _should_audit(obj):
            _create_audit_entry(session, "delete", obj)


def setup_audit_listeners() -> None:
    """Enable automatic auditing for models with ``__audit__ = True``.

    Safe to call more than once.
    """
    if event.contains(Session, "before_flush", _before_flush):
        return
    event.listen(Session, "before_flush", _before_flush)
    log.debug("audit_listeners_registered")
