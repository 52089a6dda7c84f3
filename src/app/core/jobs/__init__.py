"""Background jobs with ARQ.

Scheduled maintenance (trial expiry, billing alerts, impersonation timeouts,
token and API key cleanup) runs in a separate worker process.
"""

from app.core.jobs.registry import close_arq_pool, enqueue, get_arq_pool, init_arq_pool


__all__ = [
    "close_arq_pool",
    "enqueue",
    "get_arq_pool",
    "init_arq_pool",
]
