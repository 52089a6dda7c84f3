"""User factories and builders for tests."""

from uuid import UUID, uuid4

from polyfactory.factories.pydantic_factory import ModelFactory
from polyfactory.factories.sqlalchemy_factory import SQLAlchemyFactory
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth.backend import create_access_token, hash_password
from app.modules.tenants.models import Tenant
from app.modules.users.models import User, UserRole
from app.modules.users.schemas import RegisterRequest
from app.modules.users.services import UserService


TEST_PASSWORD = "Portal!Passw0rd"

# Hashing is slow, so unit-test users share one hash of TEST_PASSWORD
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


class UserFactory(SQLAlchemyFactory[User]):
    """Unsaved User instances for unit tests."""

    __model__ = User
    __set_relationships__ = False

    @classmethod
    def email(cls) -> str:
        return f"user-{uuid4().hex[:8]}@example.com"

    @classmethod
    def password_hash(cls) -> str:
        return _TEST_PASSWORD_HASH

    @classmethod
    def role(cls) -> str:
        return UserRole.USER.value

    @classmethod
    def tenant_id(cls) -> UUID:
        return uuid4()

    @classmethod
    def is_active(cls) -> bool:
        return True

    @classmethod
    def permissions(cls) -> list[str]:
        return []


class RegisterRequestFactory(ModelFactory[RegisterRequest]):
    """Self-registration payloads for a personal trial tenant."""

    __model__ = RegisterRequest

    @classmethod
    def email(cls) -> str:
        return f"applicant-{uuid4().hex[:8]}@example.com"

    @classmethod
    def password(cls) -> str:
        return TEST_PASSWORD

    @classmethod
    def first_name(cls) -> str:
        return "Amara"

    @classmethod
    def last_name(cls) -> str:
        return "Singh"

    tenant_id = None
    company_name = None
    domain = None
    role = None
    phone = None


async def make_user(
    db: AsyncSession,
    tenant: Tenant | None,
    email: str,
    role: UserRole = UserRole.USER,
) -> User:
    """Create and commit a user; ``tenant=None`` makes a super admin."""
    service = UserService(db)
    if tenant is None:
        user = await service.create_super_admin(email=email, password=TEST_PASSWORD)
    else:
        user = await service.create_user(
            tenant_id=tenant.id,
            email=email,
            password=TEST_PASSWORD,
            first_name="Test",
            last_name=role.value.title(),
            role=role,
        )
    await db.commit()
    return user


def auth_headers(user: User, tenant_id: UUID | None = None) -> dict[str, str]:
    """Bearer header for ``user``, bound to its own tenant unless overridden."""
    token = create_access_token(user.id, tenant_id or user.tenant_id, user.role)
    return {"Authorization": f"Bearer {token}"}
