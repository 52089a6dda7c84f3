"""User repository for database operations."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy import delete, select, update

from app.api.dependencies import DBSession
from app.core.database.tenant import TenantScope, TenantSession
from app.modules.users.models import TENANT_ADMIN_ROLES, RefreshToken, User


class UserRepository:
    """Repository for User database operations.

    Lookups used during authentication (by email, by id from a token) are
    platform-wide. Every listing or lookup made on behalf of a caller
    goes through a ``TenantScope``.
    """

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def create(self, user: User) -> User:
        """Create a new user.

        Args:
            user: User instance to create

        Returns:
            The created user with ID populated
        """
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: UUID, scope: TenantScope | None = None) -> User | None:
        """Get a user by ID.

        Args:
            user_id: The user's UUID
            scope: Caller scope; users of other tenants are hidden

        Returns:
            User if found and visible, None otherwise
        """
        if scope is None:
            return await self.session.get(User, user_id)
        return await TenantSession(self.session, scope).get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        """Get a user by email address (emails are globally unique)."""
        stmt = select(User).where(User.email == email.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email.lower(), User.is_active.is_(True))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_scoped(
        self,
        scope: TenantScope,
        page: int = 1,
        page_size: int = 20,
        role: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> tuple[list[User], int]:
        """List users visible in ``scope`` with pagination.

        Args:
            scope: Caller scope
            page: Page number (1-indexed)
            page_size: Number of items per page
            role: Optional role filter
            is_active: Optional active flag filter
            search: Optional case-insensitive match on email or name

        Returns:
            Tuple of (users list, total count)
        """
        criteria = []
        if role is not None:
            criteria.append(User.role == role)
        if is_active is not None:
            criteria.append(User.is_active.is_(is_active))
        if search:
            pattern = f"%{search.lower()}%"
            criteria.append(
                User.email.ilike(pattern)
                | User.first_name.ilike(pattern)
                | User.last_name.ilike(pattern)
            )

        scoped = TenantSession(self.session, scope)
        total = await scoped.count(User, *criteria)

        stmt = (
            select(User)
            .where(*criteria)
            .order_by(User.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await scoped.execute(stmt)
        return list(result.scalars().all()), total

    async def count(self, scope: TenantScope, *criteria: object) -> int:
        return await TenantSession(self.session, scope).count(User, *criteria)

    async def count_active_admins(self, tenant_id: UUID) -> int:
        return await self.count(
            TenantScope(tenant_id),
            User.is_active.is_(True),
            User.role.in_([role.value for role in TENANT_ADMIN_ROLES]),
        )

    async def update(self, user: User) -> User:
        await self.session.flush()
        return user


class RefreshTokenRepository:
    """Repository for RefreshToken database operations."""

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def create(self, token: RefreshToken) -> RefreshToken:
        self.session.add(token)
        await self.session.flush()
        return token

    async def get_by_hash(self, token_hash: str) -> RefreshToken | None:
        """Get a non-revoked refresh token by its hash."""
        stmt = select(RefreshToken).where(
            RefreshToken.token_hash == token_hash,
            RefreshToken.revoked.is_(False),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def revoke(self, token: RefreshToken) -> None:
        token.revoked = True
        await self.session.flush()

    async def revoke_all_for_user(self, user_id: UUID) -> int:
        """Revoke all refresh tokens for a user.

        Args:
            user_id: The user's UUID

        Returns:
            Number of tokens revoked
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def cleanup_expired(self, before: datetime) -> int:
        """Delete tokens that expired before ``before``.

        Returns:
            Number of tokens deleted
        """
        stmt = delete(RefreshToken).where(RefreshToken.expires_at < before)
        result = await self.session.execute(stmt)
        return result.rowcount or 0


# Type aliases for dependency injection
UserRepo = Annotated[UserRepository, Depends(UserRepository)]
RefreshTokenRepo = Annotated[RefreshTokenRepository, Depends(RefreshTokenRepository)]
