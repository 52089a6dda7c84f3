"""Unit tests for API key grants and client checks."""

from uuid import uuid4

import pytest

from app.modules.api_keys.models import ApiKey


pytestmark = pytest.mark.unit


def build_key(**fields) -> ApiKey:
    api_key, _ = ApiKey.issue(tenant_id=uuid4(), name="Case intake sync", **fields)
    return api_key


class TestScopes:
    def test_wildcard_covers_everything(self):
        assert build_key(scopes=["*"]).can_access_scope("profiles")

    def test_named_scopes(self):
        api_key = build_key(scopes=["documents", "profiles"])

        assert api_key.can_access_scope("profiles")
        assert not api_key.can_access_scope("users")

    def test_permissions(self):
        api_key = build_key(permissions={"read": True, "write": False})

        assert api_key.has_permission("read")
        assert not api_key.has_permission("write")
        assert not api_key.has_permission("admin")


class TestClients:
    def test_user_agent_match_is_case_insensitive_substring(self):
        api_key = build_key(user_agent_whitelist=["CaseSync"])

        assert api_key.is_user_agent_allowed("Mozilla/5.0 casesync/2.1")
        assert not api_key.is_user_agent_allowed("curl/8.4")
        assert not api_key.is_user_agent_allowed(None)

    def test_empty_whitelists_allow_any_client(self):
        api_key = build_key()

        assert api_key.is_ip_allowed(None)
        assert api_key.is_user_agent_allowed(None)
