"""Background job implementations registered with the ARQ worker."""

from app.core.jobs.tasks.delivery import deliver_mfa_code
from app.core.jobs.tasks.maintenance import (
    cleanup_expired_tokens,
    end_expired_impersonations,
    expire_api_keys,
    expire_trials,
    notify_payment_failures,
    notify_trial_expirations,
)


__all__ = [
    "cleanup_expired_tokens",
    "deliver_mfa_code",
    "end_expired_impersonations",
    "expire_api_keys",
    "expire_trials",
    "notify_payment_failures",
    "notify_trial_expirations",
]
