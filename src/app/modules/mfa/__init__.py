"""MFA module - TOTP, SMS/email codes, backup codes and lockout."""

from fastapi import APIRouter


router = APIRouter(prefix="/mfa", tags=["mfa"])


# Module metadata
__module_info__ = {
    "name": "mfa",
    "version": "1.0.0",
    "description": "Multi-factor authentication",
    "dependencies": ["users"],
}


def register_routes() -> None:
    """Register routes - called after all imports are complete."""
    from app.modules.mfa import routes  # noqa: F401
