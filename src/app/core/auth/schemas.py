"""Authentication schemas for token handling."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel


class TokenType(StrEnum):
    ACCESS = "access"
    IMPERSONATION = "impersonation"


class TokenData(BaseModel):
    """Data extracted from a JWT token.

    Attributes:
        user_id: The user's UUID
        tenant_id: Tenant the token is bound to (None for a super admin
            that has not switched into a tenant)
        role: Role of the user when the token was issued
        exp: Token expiration time
        type: ``access`` or ``impersonation``
        jti: Unique token ID
        impersonation_id: Impersonation record backing the token
        session_id: Public impersonation session ID
        super_admin_id: The super admin acting through an impersonation token
    """

    user_id: UUID
    tenant_id: UUID | None = None
    role: str
    exp: datetime
    type: TokenType = TokenType.ACCESS
    jti: str | None = None
    impersonation_id: UUID | None = None
    session_id: str | None = None
    super_admin_id: UUID | None = None

    @property
    def is_impersonation(self) -> bool:
        return self.type == TokenType.IMPERSONATION


class TokenPair(BaseModel):
    """A pair of access and refresh tokens.

    Attributes:
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived token for getting new access tokens
        token_type: Always "bearer"
        expires_in: Access token expiration in seconds
    """

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
