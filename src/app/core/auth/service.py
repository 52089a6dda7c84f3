"""Authentication service for login, registration, and token management."""

from dataclasses import dataclass
from typing import Annotated, NoReturn
from uuid import UUID

import structlog
from fastapi import Depends

from app.api.dependencies import DBSession
from app.config import settings
from app.core.audit.service import AuditService
from app.core.auth.backend import (
    create_access_token,
    create_refresh_token,
    get_token_expiration,
    hash_password,
    hash_token,
    verify_password,
)
from app.core.auth.schemas import TokenPair
from app.core.constants import PERSONAL_TENANT_MAX_ADMINS, PERSONAL_TENANT_MAX_USERS
from app.core.errors import AuthenticationError, ForbiddenError, NotFoundError
from app.core.utils.text import email_local_part
from app.core.utils.time import is_past, utcnow
from app.modules.subscriptions.models import Subscription
from app.modules.subscriptions.repos import SubscriptionRepository
from app.modules.tenants.models import Tenant, default_tenant_settings
from app.modules.tenants.repos import TenantRepository
from app.modules.tenants.services import TenantService
from app.modules.users.models import RefreshToken, User, UserRole
from app.modules.users.repos import RefreshTokenRepository, UserRepository
from app.modules.users.schemas import RegisterRequest
from app.modules.users.services import UserService


log = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid credentials"
TENANT_SUSPENDED = "Account access is temporarily suspended"
SUBSCRIPTION_EXPIRED = "Account subscription has expired. Please renew to continue."


@dataclass
class AuthResult:
    """Outcome of a login, registration or tenant switch."""

    user: User
    tokens: TokenPair
    tenant: Tenant | None = None
    subscription: Subscription | None = None


class AuthService:
    """Service for authentication operations.

    Handles login, registration, tenant switching, token refresh, logout
    and password changes. Every token it issues is bound to a tenant,
    except the platform-wide tokens of super admins.
    """

    def __init__(self, db: DBSession) -> None:
        self.db = db
        self.user_repo = UserRepository(db)
        self.token_repo = RefreshTokenRepository(db)
        self.tenant_repo = TenantRepository(db)
        self.subscription_repo = SubscriptionRepository(db)
        self.users = UserService(db)
        self.tenants = TenantService(db)
        self.audit = AuditService(db)

    async def _reject_login(
        self,
        reason: str,
        message: str,
        user: User | None = None,
        error_code: str = "invalid_credentials",
    ) -> NoReturn:
        """Record a failed login and raise.

        The audit entry is committed before raising so it survives the
        request's rollback.
        """
        await self.audit.log_login(
            user.id if user else None,
            user.tenant_id if user else None,
            success=False,
            failure_reason=reason,
        )
        await self.db.commit()
        log.warning("login_failure", reason=reason, user_id=str(user.id) if user else None)
        raise AuthenticationError(message, error_code=error_code)

    async def _check_tenant_access(
        self, tenant_id: UUID
    ) -> tuple[Tenant | None, Subscription | None, str | None]:
        """Return (tenant, subscription, failure reason) for a tenant sign in."""
        tenant = await self.tenant_repo.get_by_id(tenant_id)
        if tenant is None:
            return None, None, "tenant_not_found"
        if not tenant.is_accessible:
            return tenant, None, "tenant_inactive"
        subscription = await self.subscription_repo.get_for_tenant(tenant_id)
        if subscription is not None and not subscription.is_active:
            return tenant, subscription, "subscription_expired"
        return tenant, subscription, None

    async def login(
        self,
        email: str,
        password: str,
        tenant_domain: str | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AuthResult:
        """Authenticate a user with email and password.

        Args:
            email: User's email address
            password: Plain text password
            tenant_domain: Optional domain the login must belong to
            user_agent: Client user agent
            ip_address: Client IP address

        Returns:
            The user, a token pair, and the tenant and subscription the
            token is bound to (None for super admins)

        Raises:
            AuthenticationError: If credentials are invalid or the tenant may
                not sign in
        """
        user = await self.user_repo.get_active_by_email(email)
        if user is None:
            await self._reject_login("unknown_email", INVALID_CREDENTIALS)
        if not verify_password(password, user.password_hash):
            await self._reject_login("invalid_password", INVALID_CREDENTIALS, user)

        tenant = subscription = None
        if not user.is_super_admin:
            if user.tenant_id is None:
                await self._reject_login("tenant_not_found", INVALID_CREDENTIALS, user)
            tenant, subscription, reason = await self._check_tenant_access(user.tenant_id)
            if reason == "tenant_not_found":
                await self._reject_login(reason, INVALID_CREDENTIALS, user)
            if tenant_domain and tenant is not None and tenant.domain != tenant_domain.lower():
                await self._reject_login("tenant_mismatch", INVALID_CREDENTIALS, user)
            if reason == "tenant_inactive":
                await self._reject_login(reason, TENANT_SUSPENDED, user, "tenant_inactive")
            if reason == "subscription_expired":
                await self._reject_login(
                    reason, SUBSCRIPTION_EXPIRED, user, "subscription_expired"
                )

        user.last_login = utcnow()
        tokens = await self._create_tokens(user, user.tenant_id, user_agent, ip_address)
        await self.audit.log_login(user.id, user.tenant_id, success=True)

        log.info("login_success", user_id=str(user.id), tenant_id=str(user.tenant_id))
        return AuthResult(user=user, tokens=tokens, tenant=tenant, subscription=subscription)

    async def register(self, data: RegisterRequest) -> AuthResult:
        """Register a new user.

        - ``tenant_id`` given: join that tenant as a regular user
        - ``company_name`` and ``domain``: found a trial tenant as its admin
        - neither: get a personal trial tenant

        Raises:
            ConflictError: If the email or domain is already registered
            ValidationError: If the tenant is invalid or its plan is full
        """
        await self.users.ensure_email_available(data.email)

        if data.tenant_id is not None:
            return await self.register_tenant_user(data, data.tenant_id)

        if data.company_name and data.domain:
            tenant = await self.tenants.create_trial_tenant(
                name=data.company_name,
                domain=data.domain,
                tenant_settings=default_tenant_settings(),
                contact_email=data.email,
            )
            role = data.role or UserRole.ADMIN
        else:
            tenant = await self.tenants.create_trial_tenant(
                name=f"{data.first_name} {data.last_name} - Personal Account",
                domain=f"{email_local_part(data.email)}-{int(utcnow().timestamp())}",
                tenant_settings={
                    "max_users": PERSONAL_TENANT_MAX_USERS,
                    "max_admins": PERSONAL_TENANT_MAX_ADMINS,
                    "features": [],
                },
                contact_email=data.email,
            )
            role = data.role or UserRole.USER

        return await self._register_in_tenant(data, tenant, role)

    async def register_tenant_user(self, data: RegisterRequest, tenant_id: UUID) -> AuthResult:
        """Register a user into an existing tenant, counting it against the plan.

        Joining is open to anyone who knows the tenant id, so the new user
        is always a regular user; admins are promoted by existing admins.

        Raises:
            ValidationError: If the tenant is not active/trial or the plan is full
        """
        tenant = await self.users.get_accessible_tenant(tenant_id)
        if data.role not in (None, UserRole.USER):
            log.warning(
                "register_role_ignored", tenant_id=str(tenant_id), requested_role=data.role.value
            )
        return await self._register_in_tenant(data, tenant, UserRole.USER)

    async def _register_in_tenant(
        self,
        data: RegisterRequest,
        tenant: Tenant,
        role: UserRole,
    ) -> AuthResult:
        user = await self.users.create_user(
            tenant_id=tenant.id,
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            role=role,
            phone=data.phone,
        )
        user.last_login = utcnow()
        tokens = await self._create_tokens(user, tenant.id)
        subscription = await self.subscription_repo.get_for_tenant(tenant.id)

        log.info("user_registered", user_id=str(user.id), tenant_id=str(tenant.id), role=role.value)
        return AuthResult(user=user, tokens=tokens, tenant=tenant, subscription=subscription)

    async def switch_tenant(
        self,
        user: User,
        tenant_id: UUID,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AuthResult:
        """Issue a token pair bound to ``tenant_id``.

        Only super admins may enter a tenant other than their own.

        Raises:
            ForbiddenError: If a regular user asks for another tenant
            NotFoundError: If the tenant does not exist
            AuthenticationError: If the tenant or its subscription is inactive
        """
        if not user.is_super_admin and user.tenant_id != tenant_id:
            raise ForbiddenError("Access denied to this tenant", error_code="tenant_access_denied")

        tenant, subscription, reason = await self._check_tenant_access(tenant_id)
        if reason == "tenant_not_found":
            raise NotFoundError("Tenant not found", resource="tenant", resource_id=str(tenant_id))
        if reason == "tenant_inactive":
            raise AuthenticationError(TENANT_SUSPENDED, error_code="tenant_inactive")
        if reason == "subscription_expired":
            raise AuthenticationError(SUBSCRIPTION_EXPIRED, error_code="subscription_expired")

        tokens = await self._create_tokens(user, tenant_id, user_agent, ip_address)
        log.info("tenant_switched", user_id=str(user.id), tenant_id=str(tenant_id))
        return AuthResult(user=user, tokens=tokens, tenant=tenant, subscription=subscription)

    async def get_user_tenants(self, user: User) -> list[Tenant]:
        """Tenants the user may work in."""
        if user.is_super_admin:
            return await self.tenant_repo.list_all()
        if user.tenant_id is None:
            return []
        tenant = await self.tenant_repo.get_by_id(user.tenant_id)
        return [tenant] if tenant else []

    async def refresh_tokens(
        self,
        refresh_token: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> TokenPair:
        """Refresh the access token using a refresh token.

        The old refresh token is revoked and a new one is issued for the
        same tenant context.

        Raises:
            AuthenticationError: If refresh token is invalid, expired or revoked
        """
        stored_token = await self.token_repo.get_by_hash(hash_token(refresh_token))

        if not stored_token:
            raise AuthenticationError(
                "Invalid refresh token",
                error_code="invalid_refresh_token",
            )

        if is_past(stored_token.expires_at):
            await self.token_repo.revoke(stored_token)
            raise AuthenticationError(
                "Refresh token expired",
                error_code="token_expired",
            )

        user = await self.user_repo.get_by_id(stored_token.user_id)
        if not user or not user.is_active:
            await self.token_repo.revoke(stored_token)
            raise AuthenticationError(
                "User not found or inactive",
                error_code="user_inactive",
            )

        await self.token_repo.revoke(stored_token)

        tenant_id = stored_token.tenant_id if user.is_super_admin else user.tenant_id
        if tenant_id is not None:
            _tenant, _subscription, reason = await self._check_tenant_access(tenant_id)
            if reason == "subscription_expired":
                raise AuthenticationError(SUBSCRIPTION_EXPIRED, error_code="subscription_expired")
            if reason is not None:
                raise AuthenticationError(TENANT_SUSPENDED, error_code="tenant_inactive")

        return await self._create_tokens(user, tenant_id, user_agent, ip_address)

    async def logout(self, refresh_token: str) -> None:
        stored_token = await self.token_repo.get_by_hash(hash_token(refresh_token))
        if stored_token:
            await self.token_repo.revoke(stored_token)

    async def logout_all(self, user_id: UUID) -> int:
        """Logout from all devices by revoking all refresh tokens.

        Returns:
            Number of tokens revoked
        """
        count = await self.token_repo.revoke_all_for_user(user_id)
        log.info("logout_all", user_id=str(user_id), revoked=count)
        return count

    async def change_password(self, user: User, current_password: str, new_password: str) -> User:
        """Change a user's own password.

        Raises:
            AuthenticationError: If the current password is wrong
        """
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError(
                "Current password is incorrect",
                error_code="invalid_password",
            )

        user.password_hash = hash_password(new_password)
        user.must_change_password = False
        user.password_change_required = False
        user.is_first_login = False
        user.password_changed_at = utcnow()
        await self.user_repo.update(user)

        log.info("password_changed", user_id=str(user.id))
        return user

    async def force_password_change(self, actor: User, user_id: UUID) -> User:
        """Require ``user_id`` to pick a new password at next login.

        Raises:
            NotFoundError: If the user is not visible to the actor
            ForbiddenError: If the actor is not an admin of the user's tenant
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None or not actor.belongs_to_tenant(user.tenant_id):
            raise NotFoundError("User not found", resource="user", resource_id=str(user_id))
        if not actor.is_admin:
            raise ForbiddenError("Admin privileges required", error_code="not_admin")

        user.must_change_password = True
        await self.user_repo.update(user)
        log.info("password_change_forced", user_id=str(user.id), actor_id=str(actor.id))
        return user

    async def _create_tokens(
        self,
        user: User,
        tenant_id: UUID | None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> TokenPair:
        """Create and store a token pair bound to ``tenant_id``."""
        access_token = create_access_token(user.id, tenant_id, user.role)
        refresh_token = create_refresh_token()

        await self.token_repo.create(
            RefreshToken(
                user_id=user.id,
                tenant_id=tenant_id,
                token_hash=hash_token(refresh_token),
                expires_at=get_token_expiration(),
                user_agent=user_agent,
                ip_address=ip_address,
            )
        )

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.access_token_expire_minutes * 60,
        )


# Type alias for dependency injection
AuthSvc = Annotated[AuthService, Depends(AuthService)]
