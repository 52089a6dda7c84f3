"""Subscriptions module - plans, subscriptions and usage limits."""

from fastapi import APIRouter


router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


# Module metadata
__module_info__ = {
    "name": "subscriptions",
    "version": "1.0.0",
    "description": "Subscription plans and per-tenant usage accounting",
    "dependencies": ["tenants"],
}


def register_routes() -> None:
    """Register routes - called after all imports are complete."""
    from app.modules.subscriptions import routes  # noqa: F401
