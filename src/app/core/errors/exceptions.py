"""Domain exceptions for the application.

These exceptions represent business-logic errors and are automatically
converted to RFC 7807 Problem Details responses by the exception handlers.
"""

from typing import Any


class AppException(Exception):
    """Base exception for all application errors.

    All domain exceptions should inherit from this class.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for clients
        status_code: HTTP status code for the response
        details: Additional error details
    """

    message: str = "An unexpected error occurred"
    error_code: str = "internal_error"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


# Shorter name used across the service layer
AppError = AppException


class NotFoundError(AppException):
    """Raised when a requested resource is not found.

    Resources owned by another tenant are reported as not found so that
    their existence is not disclosed.

    Example:
        raise NotFoundError("Profile not found", resource="profile", resource_id=str(pid))
    """

    message = "Resource not found"
    error_code = "not_found"
    status_code = 404

    def __init__(
        self,
        message: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if resource:
            details["resource"] = resource
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message=message, details=details, **kwargs)


class ConflictError(AppException):
    """Raised when there's a conflict with existing data.

    Example:
        raise ConflictError("Domain already registered", details={"domain": domain})
    """

    message = "Resource conflict"
    error_code = "conflict"
    status_code = 409


class ValidationError(AppException):
    """Raised when data breaks a business rule.

    Example:
        raise ValidationError(
            "User limit reached for current plan",
            errors=[{"field": "role", "message": "Plan allows 2 admins"}]
        )
    """

    message = "Validation error"
    error_code = "validation_error"
    status_code = 422

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if errors:
            details["errors"] = errors
        super().__init__(message=message, details=details, **kwargs)


class AuthenticationError(AppException):
    """Raised when authentication is missing, invalid, or no longer honoured.

    Example:
        raise AuthenticationError("Invalid credentials")
    """

    message = "Authentication required"
    error_code = "unauthorized"
    status_code = 401


UnauthorizedError = AuthenticationError


class ForbiddenError(AppException):
    """Raised when user lacks permission to access a resource.

    Example:
        raise ForbiddenError(
            "Insufficient permissions",
            details={"required_roles": ["super_admin"]}
        )
    """

    message = "Access forbidden"
    error_code = "forbidden"
    status_code = 403


class BadRequestError(AppException):
    """Raised for general client errors."""

    message = "Bad request"
    error_code = "bad_request"
    status_code = 400


class PaymentRequiredError(AppException):
    """Raised when a tenant's subscription does not allow the operation."""

    message = "Subscription required"
    error_code = "subscription_required"
    status_code = 402


class LockedError(AppException):
    """Raised when a resource is temporarily locked (e.g. MFA lockout).

    Example:
        raise LockedError(
            "MFA is locked due to too many failed attempts",
            details={"locked_until": locked_until.isoformat()}
        )
    """

    message = "Resource is locked"
    error_code = "locked"
    status_code = 423


class RateLimitError(AppException):
    """Raised when rate limit is exceeded."""

    message = "Rate limit exceeded"
    error_code = "rate_limit_exceeded"
    status_code = 429


class ServiceUnavailableError(AppException):
    """Raised when a required service is unavailable.

    Example:
        raise ServiceUnavailableError("Database connection failed")
    """

    message = "Service temporarily unavailable"
    error_code = "service_unavailable"
    status_code = 503
