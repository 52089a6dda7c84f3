"""Impersonation module - super admins acting as tenant users."""

from fastapi import APIRouter


router = APIRouter(prefix="/impersonation", tags=["impersonation"])


# Module metadata
__module_info__ = {
    "name": "impersonation",
    "version": "1.0.0",
    "description": "Audited, time-boxed impersonation sessions",
    "dependencies": ["tenants", "users"],
}


def register_routes() -> None:
    """Register routes - called after all imports are complete."""
    from app.modules.impersonation import routes  # noqa: F401
