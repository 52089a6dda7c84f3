"""Test factories for generating test data."""

from tests.factories.tenant import TenantFactory, make_tenant
from tests.factories.user import (
    TEST_PASSWORD,
    RegisterRequestFactory,
    UserFactory,
    auth_headers,
    make_user,
)


__all__ = [
    "TEST_PASSWORD",
    "RegisterRequestFactory",
    "TenantFactory",
    "UserFactory",
    "auth_headers",
    "make_tenant",
    "make_user",
]
