"""Outbound delivery jobs.

Codes reach the worker through Redis only and are never logged.
"""

from typing import Any

import structlog


log = structlog.get_logger()


async def deliver_mfa_code(
    ctx: dict[str, Any], method: str, destination: str, code: str
) -> dict[str, str]:
    """Send an MFA code by SMS or email.

    No SMS gateway or mail server is configured, so the job records the
    hand-off. Providers plug in here.
    """
    log.info(
        "mfa_code_dispatched",
        method=method,
        destination_hint=destination[-4:],
        code_length=len(code),
        job_try=ctx.get("job_try"),
    )
    return {"method": method, "status": "dispatched"}
