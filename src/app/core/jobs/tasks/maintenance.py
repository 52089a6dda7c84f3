"""Scheduled maintenance jobs.

Each job opens its own session from the worker context, delegates to the
owning service and commits. A failing job rolls back and is retried by
ARQ.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.utils.time import utcnow
from app.modules.api_keys.services import ApiKeyService
from app.modules.impersonation.services import ImpersonationService
from app.modules.notifications.services import NotificationService
from app.modules.subscriptions.services import SubscriptionService
from app.modules.tenants.services import TenantService
from app.modules.users.repos import RefreshTokenRepository


log = structlog.get_logger()


async def _in_session(ctx: dict[str, Any], work: Callable[[AsyncSession], Awaitable[Any]]) -> Any:
    async with ctx["db_session_factory"]() as session:
        try:
            result = await work(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return result


async def expire_trials(ctx: dict[str, Any]) -> dict[str, int]:
    """Expire tenants and subscriptions whose trial or billing period ended."""

    async def work(session: AsyncSession) -> dict[str, int]:
        return {
            "tenants_expired": await TenantService(session).expire_trials(),
            "subscriptions_expired": await SubscriptionService(session).expire_lapsed(),
        }

    result = await _in_session(ctx, work)
    log.info("expire_trials_complete", **result)
    return result


async def notify_trial_expirations(ctx: dict[str, Any]) -> dict[str, int]:
    async def work(session: AsyncSession) -> dict[str, int]:
        checked = await NotificationService(session).check_trial_expirations()
        return checked.model_dump()

    return await _in_session(ctx, work)


async def notify_payment_failures(ctx: dict[str, Any]) -> dict[str, int]:
    """Alert super admins about past due subscriptions."""

    async def work(session: AsyncSession) -> dict[str, int]:
        checked = await NotificationService(session).check_payment_failures()
        return checked.model_dump()

    return await _in_session(ctx, work)


async def end_expired_impersonations(ctx: dict[str, Any]) -> dict[str, int]:
    async def work(session: AsyncSession) -> dict[str, int]:
        return {"sessions_ended": await ImpersonationService(session).cleanup_expired()}

    result = await _in_session(ctx, work)
    if result["sessions_ended"]:
        log.info("expired_impersonations_ended", **result)
    return result


async def cleanup_expired_tokens(ctx: dict[str, Any]) -> dict[str, int]:
    """Delete refresh tokens past their expiry."""

    async def work(session: AsyncSession) -> dict[str, int]:
        deleted = await RefreshTokenRepository(session).cleanup_expired(utcnow())
        return {"refresh_tokens_deleted": deleted}

    result = await _in_session(ctx, work)
    log.info("cleanup_expired_tokens_complete", **result)
    return result


async def expire_api_keys(ctx: dict[str, Any]) -> dict[str, int]:
    async def work(session: AsyncSession) -> dict[str, int]:
        return {"api_keys_expired": await ApiKeyService(session).expire_lapsed()}

    return await _in_session(ctx, work)
