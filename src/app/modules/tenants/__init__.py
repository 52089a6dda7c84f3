"""Tenants module - organisations that own users, profiles and subscriptions."""

from fastapi import APIRouter


router = APIRouter(prefix="/tenants", tags=["tenants"])


# Module metadata
__module_info__ = {
    "name": "tenants",
    "version": "1.0.0",
    "description": "Tenant lifecycle and platform administration",
    "dependencies": [],
}


def register_routes() -> None:
    """Register routes - called after all imports are complete."""
    from app.modules.tenants import routes  # noqa: F401
