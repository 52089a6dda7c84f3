"""User service for business logic."""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Depends

from app.api.dependencies import DBSession
from app.core.auth.backend import hash_password
from app.core.database.tenant import TenantScope
from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.modules.subscriptions.services import SubscriptionService
from app.modules.tenants.models import Tenant
from app.modules.tenants.repos import TenantRepository
from app.modules.users.models import TENANT_ADMIN_ROLES, User, UserRole
from app.modules.users.repos import UserRepository
from app.modules.users.schemas import UserStats, UserUpdate


log = structlog.get_logger()


class UserService:
    """Service for user management operations.

    Every read goes through the caller's ``TenantScope``, so a tenant
    admin can never reach another tenant's users. Seat accounting is
    delegated to ``SubscriptionService``.
    """

    def __init__(self, db: DBSession) -> None:
        self.db = db
        self.repo = UserRepository(db)
        self.tenants = TenantRepository(db)
        self.subscriptions = SubscriptionService(db)

    async def ensure_email_available(self, email: str) -> None:
        if await self.repo.get_by_email(email):
            raise ConflictError(
                "User with this email already exists",
                error_code="email_exists",
                details={"email": email.lower()},
            )

    async def get_accessible_tenant(self, tenant_id: UUID) -> Tenant:
        """Load a tenant users may be added to.

        Raises:
            ValidationError: If the tenant does not exist or is not active/trial
        """
        tenant = await self.tenants.get_by_id(tenant_id)
        if tenant is None or not tenant.is_accessible:
            raise ValidationError(
                "Invalid or inactive tenant",
                errors=[{"field": "tenant_id", "message": "Invalid or inactive tenant"}],
                error_code="invalid_tenant",
            )
        return tenant

    async def create_user(
        self,
        tenant_id: UUID,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: UserRole = UserRole.USER,
        phone: str | None = None,
        must_change_password: bool = False,
    ) -> User:
        """Create a user inside a tenant and count it against the plan.

        Args:
            tenant_id: Tenant the user joins
            email: Email address (stored lowercase)
            password: Plain text password
            first_name: Given name
            last_name: Family name
            role: Role inside the tenant
            phone: Optional phone number
            must_change_password: Force a password change at first login

        Returns:
            The created user

        Raises:
            ConflictError: If the email is taken
            ValidationError: If the tenant is invalid or the plan is full
        """
        await self.ensure_email_available(email)
        await self.get_accessible_tenant(tenant_id)

        is_admin = role in TENANT_ADMIN_ROLES
        await self.subscriptions.ensure_capacity(tenant_id, is_admin)

        user = User(
            email=email.lower(),
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role.value,
            tenant_id=tenant_id,
            phone=phone,
            must_change_password=must_change_password,
        )
        user = await self.repo.create(user)
        await self.subscriptions.record_user_added(tenant_id, is_admin)

        log.info("user_created", user_id=str(user.id), tenant_id=str(tenant_id), role=role.value)
        return user

    async def create_super_admin(
        self,
        email: str,
        password: str,
        first_name: str = "Super",
        last_name: str = "Admin",
    ) -> User:
        """Create a platform operator. Super admins belong to no tenant."""
        await self.ensure_email_available(email)
        user = User(
            email=email.lower(),
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=UserRole.SUPER_ADMIN.value,
            tenant_id=None,
        )
        user = await self.repo.create(user)
        log.info("super_admin_created", user_id=str(user.id))
        return user

    async def get_user(self, user_id: UUID, scope: TenantScope) -> User:
        """Get a user visible in ``scope``.

        Raises:
            NotFoundError: If the user does not exist or belongs to another tenant
        """
        user = await self.repo.get_by_id(user_id, scope)
        if not user:
            raise NotFoundError(
                "User not found",
                resource="user",
                resource_id=str(user_id),
            )
        return user

    async def list_users(
        self,
        scope: TenantScope,
        page: int = 1,
        page_size: int = 20,
        role: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> tuple[list[User], int]:
        return await self.repo.list_scoped(scope, page, page_size, role, is_active, search)

    async def update_user(
        self,
        user_id: UUID,
        data: UserUpdate,
        actor: User,
        scope: TenantScope,
    ) -> User:
        """Update a user.

        Users may edit their own profile fields; role and permission changes
        need an admin.

        Raises:
            NotFoundError: If user not found in scope
            ForbiddenError: If the actor may not make the change
            ValidationError: If a promotion exceeds the plan's admin limit
        """
        user = await self.get_user(user_id, scope)
        changes = data.model_dump(exclude_unset=True)

        if user.id != actor.id and not actor.is_admin:
            raise ForbiddenError("You can only update your own profile", error_code="not_owner")

        if ("role" in changes or "permissions" in changes) and not actor.is_admin:
            raise ForbiddenError(
                "Only admins can change roles or permissions",
                error_code="role_change_forbidden",
            )

        new_role = changes.pop("role", None)
        if new_role is not None and new_role != user.role:
            await self._change_role(user, UserRole(new_role), actor)

        for field, value in changes.items():
            setattr(user, field, value)

        return await self.repo.update(user)

    async def _change_role(self, user: User, new_role: UserRole, actor: User) -> None:
        if new_role == UserRole.SUPER_ADMIN and not actor.is_super_admin:
            raise ForbiddenError(
                "Only super admins can grant super admin", error_code="role_change_forbidden"
            )

        was_admin = user.counts_as_admin
        becomes_admin = new_role in TENANT_ADMIN_ROLES
        if user.tenant_id is not None and user.is_active and was_admin != becomes_admin:
            subscription = await self.subscriptions.get_for_tenant(user.tenant_id)
            if subscription is not None:
                if becomes_admin:
                    plan = await self.subscriptions.get_plan(subscription.plan_id)
                    if not subscription.can_add_admins(plan):
                        raise ValidationError(
                            f"Admin limit reached. Your plan allows {plan.max_admins} admins.",
                            errors=[{"field": "role", "message": "Admin limit reached"}],
                            error_code="admin_limit_reached",
                        )
                subscription.adjust_usage(admins=1 if becomes_admin else -1)

        log.info(
            "user_role_changed",
            user_id=str(user.id),
            old_role=user.role,
            new_role=new_role.value,
        )
        user.role = new_role.value

    async def deactivate_user(self, user_id: UUID, actor: User, scope: TenantScope) -> User:
        """Soft delete a user and release its seat."""
        user = await self.get_user(user_id, scope)
        if user.id == actor.id:
            raise ValidationError("You cannot deactivate yourself", error_code="self_deactivation")
        if not user.is_active:
            return user

        user.is_active = False
        if user.tenant_id is not None:
            await self.subscriptions.record_user_removed(user.tenant_id, user.counts_as_admin)
        log.info("user_deactivated", user_id=str(user.id), tenant_id=str(user.tenant_id))
        return await self.repo.update(user)

    async def activate_user(self, user_id: UUID, scope: TenantScope) -> User:
        """Reactivate a user if the plan still has room."""
        user = await self.get_user(user_id, scope)
        if user.is_active:
            return user

        if user.tenant_id is not None:
            await self.subscriptions.ensure_capacity(user.tenant_id, user.counts_as_admin)
            await self.subscriptions.record_user_added(user.tenant_id, user.counts_as_admin)
        user.is_active = True
        log.info("user_activated", user_id=str(user.id), tenant_id=str(user.tenant_id))
        return await self.repo.update(user)

    async def stats(self, scope: TenantScope) -> UserStats:
        total = await self.repo.count(scope)
        active = await self.repo.count(scope, User.is_active.is_(True))
        by_role = {
            role.value: await self.repo.count(scope, User.role == role.value) for role in UserRole
        }
        return UserStats(
            total=total,
            active=active,
            inactive=total - active,
            by_role={role: count for role, count in by_role.items() if count},
        )


UserSvc = Annotated[UserService, Depends(UserService)]
