"""Tenant factories and builders for tests."""

from datetime import timedelta
from uuid import uuid4

from polyfactory.factories.sqlalchemy_factory import SQLAlchemyFactory
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.utils.time import utcnow
from app.modules.tenants.models import Tenant, TenantStatus, default_tenant_settings
from app.modules.tenants.services import TenantService


class TenantFactory(SQLAlchemyFactory[Tenant]):
    """Unsaved Tenant instances for unit tests."""

    __model__ = Tenant
    __set_relationships__ = False

    @classmethod
    def domain(cls) -> str:
        return f"firm-{uuid4().hex[:8]}.example.com"

    @classmethod
    def status(cls) -> str:
        return TenantStatus.TRIAL.value

    @classmethod
    def trial_end_date(cls):
        return utcnow() + timedelta(days=14)

    @classmethod
    def settings(cls) -> dict:
        return default_tenant_settings()

    @classmethod
    def custom_domains(cls) -> list[str]:
        return []


async def make_tenant(db: AsyncSession, name: str, domain: str) -> Tenant:
    """Create and commit a trial tenant with its trial subscription."""
    tenant = await TenantService(db).create_trial_tenant(name=name, domain=domain)
    await db.commit()
    return tenant
