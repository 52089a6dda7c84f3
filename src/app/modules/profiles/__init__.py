"""Profiles module - immigration assessment profiles."""

from fastapi import APIRouter


router = APIRouter(prefix="/profiles", tags=["profiles"])


# Module metadata
__module_info__ = {
    "name": "profiles",
    "version": "1.0.0",
    "description": "Per-user immigration profiles and CRS results",
    "dependencies": ["tenants", "users"],
}


def register_routes() -> None:
    """Register routes - called after all imports are complete."""
    from app.modules.profiles import routes  # noqa: F401
