"""Authentication backend for JWT and password handling.

This module provides core authentication utilities including:
- Password hashing with bcrypt
- JWT access and impersonation tokens carrying tenant context
- Token hashing for storage
"""

import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings
from app.core.auth.schemas import TokenData, TokenType
from app.core.constants import ACCESS_TOKEN_JTI_LENGTH, BCRYPT_ROUNDS, REFRESH_TOKEN_BYTES
from app.core.utils.time import utcnow


pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=BCRYPT_ROUNDS,
)


# ============================================================
# Password Utilities
# ============================================================


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash of the password
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash.

    Malformed hashes count as a mismatch.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


# ============================================================
# JWT Token Utilities
# ============================================================


def _optional_uuid(value: Any) -> UUID | None:
    return UUID(value) if value else None


def create_access_token(
    user_id: UUID,
    tenant_id: UUID | None,
    role: str,
    expires_delta: timedelta | None = None,
    additional_claims: dict[str, Any] | None = None,
) -> str:
    """Create a short-lived JWT access token.

    Args:
        user_id: The user's UUID
        tenant_id: The tenant the token is bound to (None for platform-wide
            super admin tokens)
        role: The user's role at issue time
        expires_delta: Optional custom expiration time
        additional_claims: Optional extra claims to include

    Returns:
        Encoded JWT access token
    """
    now = utcnow()
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode: dict[str, Any] = {
        "sub": str(user_id),
        "tenant_id": str(tenant_id) if tenant_id else None,
        "role": role,
        "exp": expire,
        "type": TokenType.ACCESS.value,
        "iat": now,
        "jti": secrets.token_urlsafe(ACCESS_TOKEN_JTI_LENGTH),
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


def create_impersonation_token(
    target_user_id: UUID,
    target_tenant_id: UUID,
    target_role: str,
    impersonation_id: UUID,
    session_id: str,
    super_admin_id: UUID,
    expires_delta: timedelta,
) -> str:
    """Create a token that lets a super admin act as another user."""
    return create_access_token(
        target_user_id,
        target_tenant_id,
        target_role,
        expires_delta=expires_delta,
        additional_claims={
            "type": TokenType.IMPERSONATION.value,
            "impersonation_id": str(impersonation_id),
            "session_id": session_id,
            "super_admin_id": str(super_admin_id),
        },
    )


def create_refresh_token() -> str:
    """Create an opaque refresh token.

    The refresh token is a random string (not a JWT); only its hash is
    stored.
    """
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Hash a token with SHA-256 for storage."""
    return hashlib.sha256(token.encode()).hexdigest()


def decode_token(token: str) -> TokenData | None:
    """Decode and validate a JWT token.

    Args:
        token: The JWT token to decode

    Returns:
        TokenData if valid, None if invalid, expired or malformed
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        user_id = payload.get("sub")
        role = payload.get("role")
        exp = payload.get("exp")

        if not user_id or not role or exp is None:
            return None

        return TokenData(
            user_id=UUID(user_id),
            tenant_id=_optional_uuid(payload.get("tenant_id")),
            role=role,
            exp=datetime.fromtimestamp(exp, tz=utcnow().tzinfo),
            type=TokenType(payload.get("type", TokenType.ACCESS.value)),
            jti=payload.get("jti"),
            impersonation_id=_optional_uuid(payload.get("impersonation_id")),
            session_id=payload.get("session_id"),
            super_admin_id=_optional_uuid(payload.get("super_admin_id")),
        )

    except (JWTError, ValueError, TypeError):
        return None


def get_token_expiration(days: int | None = None) -> datetime:
    """Get the expiration datetime for a refresh token."""
    if days is None:
        days = settings.refresh_token_expire_days
    return utcnow() + timedelta(days=days)
