"""Tenant-scoped data access.

``TenantScope`` describes who is asking (a tenant, or a super admin who
may cross tenants). ``TenantSession`` wraps an ``AsyncSession`` and applies
that scope to every read and write so repositories cannot forget the
tenant filter.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ForbiddenError


if TYPE_CHECKING:
    from sqlalchemy.sql import ColumnElement


class TenantContextRequired(ForbiddenError):
    """Raised when tenant context is required but not provided."""

    message = "Tenant context is required for this operation"
    error_code = "tenant_context_required"


@dataclass(frozen=True)
class TenantScope:
    """The tenant boundary for one caller.

    Attributes:
        tenant_id: Tenant the caller acts in (may be None for super admins)
        bypass: True for super admins, who see every tenant
    """

    tenant_id: UUID | None
    bypass: bool = False

    @classmethod
    def for_user(cls, user: Any) -> "TenantScope":
        """Build the scope for an authenticated user."""
        return cls(tenant_id=user.tenant_id, bypass=bool(user.is_super_admin))

    @classmethod
    def system(cls) -> "TenantScope":
        """Scope used by background jobs and platform-level lookups."""
        return cls(tenant_id=None, bypass=True)

    def narrow(self, tenant_id: UUID | None) -> "TenantScope":
        """Restrict a super admin scope to one tenant.

        Non super admins keep their own tenant whatever is requested.
        """
        if not self.bypass or tenant_id is None:
            return self
        return TenantScope(tenant_id=tenant_id, bypass=False)

    def require_tenant(self) -> UUID:
        """Return the tenant id or raise when the scope has none."""
        if self.tenant_id is None:
            raise TenantContextRequired()
        return self.tenant_id

    def can_access(self, tenant_id: UUID | None) -> bool:
        """Check whether a row owned by ``tenant_id`` is visible."""
        if self.bypass:
            return True
        return tenant_id is not None and tenant_id == self.tenant_id

    def apply(self, statement: Select[Any], model: Any) -> Select[Any]:
        """Add the tenant predicate for ``model`` to a select."""
        if self.bypass or not hasattr(model, "tenant_id"):
            return statement
        tenant_column: ColumnElement[UUID] = model.tenant_id
        return statement.where(tenant_column == self.require_tenant())


class TenantSession:
    """Wraps AsyncSession with automatic tenant filtering.

    Usage:
        scoped = TenantSession(session, TenantScope.for_user(user))
        result = await scoped.execute(select(Profile))
    """

    def __init__(self, session: AsyncSession, scope: TenantScope) -> None:
        self.session = session
        self.scope = scope

    @property
    def tenant_id(self) -> UUID | None:
        return self.scope.tenant_id

    async def execute(self, statement: Select[Any]) -> Any:
        """Execute a select with the tenant filter applied to its primary entity."""
        if statement.column_descriptions:
            for desc in statement.column_descriptions:
                entity = desc.get("entity")
                if entity is not None:
                    statement = self.scope.apply(statement, entity)
                    break

        return await self.session.execute(statement)

    async def count(self, model: type[Any], *criteria: Any) -> int:
        """Count rows of ``model`` visible in this scope."""
        stmt = select(func.count()).select_from(model).where(*criteria)
        stmt = self.scope.apply(stmt, model)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def get(self, entity: type[Any], ident: Any) -> Any | None:
        """Get an entity by ID, hiding rows owned by other tenants."""
        obj = await self.session.get(entity, ident)
        if obj is not None and hasattr(obj, "tenant_id") and not self.scope.can_access(
            obj.tenant_id
        ):
            return None
        return obj

    def add(self, instance: Any) -> None:
        """Add an instance, stamping or checking its tenant_id."""
        if hasattr(instance, "tenant_id"):
            if instance.tenant_id is None:
                instance.tenant_id = self.scope.require_tenant()
            elif not self.scope.can_access(instance.tenant_id):
                raise ForbiddenError(
                    "Cannot write data for another tenant",
                    error_code="cross_tenant_write",
                )
        self.session.add(instance)

    async def delete(self, instance: Any) -> None:
        """Delete an instance that belongs to this scope."""
        if hasattr(instance, "tenant_id") and not self.scope.can_access(instance.tenant_id):
            raise ForbiddenError(
                "Cannot delete data of another tenant",
                error_code="cross_tenant_write",
            )
        await self.session.delete(instance)

    async def flush(self) -> None:
        await self.session.flush()

    async def refresh(self, instance: Any) -> None:
        await self.session.refresh(instance)
