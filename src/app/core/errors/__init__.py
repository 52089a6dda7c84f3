"""Error handling module with RFC 7807 Problem Details."""

from app.core.errors.exceptions import (
    AppError,
    AppException,
    AuthenticationError,
    BadRequestError,
    ConflictError,
    ForbiddenError,
    LockedError,
    NotFoundError,
    PaymentRequiredError,
    RateLimitError,
    ServiceUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from app.core.errors.handlers import (
    FieldError,
    ProblemDetail,
    register_exception_handlers,
)


__all__ = [
    "AppError",
    "AppException",
    "AuthenticationError",
    "BadRequestError",
    "ConflictError",
    "FieldError",
    "ForbiddenError",
    "LockedError",
    "NotFoundError",
    "PaymentRequiredError",
    "ProblemDetail",
    "RateLimitError",
    "ServiceUnavailableError",
    "UnauthorizedError",
    "ValidationError",
    "register_exception_handlers",
]
