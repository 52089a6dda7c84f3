"""Users module - tenant members and their seats."""

from fastapi import APIRouter


router = APIRouter(prefix="/users", tags=["users"])


# Module metadata
__module_info__ = {
    "name": "users",
    "version": "1.0.0",
    "description": "User management inside tenants",
    "dependencies": ["tenants", "subscriptions"],
}


def register_routes() -> None:
    """Register routes - called after all imports are complete."""
    from app.modules.users import routes  # noqa: F401
