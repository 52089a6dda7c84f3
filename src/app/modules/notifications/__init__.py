"""Notifications module - in-app messages targeted at users, roles and tenants."""

from fastapi import APIRouter


router = APIRouter(prefix="/notifications", tags=["notifications"])


# Module metadata
__module_info__ = {
    "name": "notifications",
    "version": "1.0.0",
    "description": "Targeted in-app notifications with per-user read state",
    "dependencies": ["tenants", "subscriptions"],
}


def register_routes() -> None:
    """Register routes - called after all imports are complete."""
    from app.modules.notifications import routes  # noqa: F401
