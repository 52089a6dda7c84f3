"""API keys module - machine credentials scoped to a tenant."""

from fastapi import APIRouter


router = APIRouter(prefix="/api-keys", tags=["api-keys"])


# Module metadata
__module_info__ = {
    "name": "api_keys",
    "version": "1.0.0",
    "description": "Tenant API keys with scopes, whitelists and rotation",
    "dependencies": ["tenants", "users"],
}


def register_routes() -> None:
    """Register routes - called after all imports are complete."""
    from app.modules.api_keys import routes  # noqa: F401
