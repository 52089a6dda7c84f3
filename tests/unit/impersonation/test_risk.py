"""Unit tests for impersonation risk scoring and request classification."""

from datetime import timedelta
from uuid import uuid4

import pytest

from app.core.utils.time import utcnow
from app.modules.impersonation.models import (
    Impersonation,
    ImpersonationFlag,
    calculate_risk_score,
)
from app.modules.impersonation.services import classify_request


pytestmark = pytest.mark.unit


def build_session(**overrides) -> Impersonation:
    values = {
        "super_admin_id": uuid4(),
        "super_admin_email": "root@portal.example.com",
        "target_user_id": uuid4(),
        "target_user_email": "client@maple.example.com",
        "target_tenant_id": uuid4(),
        "target_tenant_name": "Maple Leaf Immigration",
        "session_id": "imp_test",
        "reason": "Investigating support ticket 4411",
        "started_at": utcnow(),
        "is_active": True,
        "actions": [],
        "flags": [],
        "risk_score": 0,
    }
    values.update(overrides)
    return Impersonation(**values)


class TestClassifyRequest:
    @pytest.mark.parametrize(
        ("method", "path", "expected"),
        [
            ("GET", "/api/v1/users", "read"),
            ("DELETE", "/api/v1/api-keys/123", "delete"),
            ("POST", "/api/v1/tenants/123/suspend", "suspension"),
            ("POST", "/api/v1/profiles/export", "data_export"),
            ("POST", "/api/v1/users/bulk", "bulk_operations"),
            ("PATCH", "/api/v1/users/123", "user_management"),
            ("PATCH", "/api/v1/tenants/123", "tenant_management"),
            ("PUT", "/api/v1/mfa/policy/123", "system_configuration"),
            ("PUT", "/api/v1/profiles/me", "write"),
        ],
    )
    def test_categories(self, method, path, expected):
        assert classify_request(method, path) == expected


class TestRiskScore:
    def test_reads_are_low_risk(self):
        actions = [{"action": "read"}] * 5

        assert calculate_risk_score(actions, []) == 5

    def test_destructive_actions_weigh_more(self):
        actions = [{"action": "delete"}, {"action": "suspension"}, {"action": "data_export"}]

        assert calculate_risk_score(actions, []) == 55

    def test_flags_count_once(self):
        flags = [ImpersonationFlag.UNUSUAL_HOURS, ImpersonationFlag.UNUSUAL_HOURS]

        assert calculate_risk_score([], flags) == 15

    def test_heavy_activity_bonus(self):
        actions = [{"action": "read"}] * 51

        assert calculate_risk_score(actions, []) == 61

    def test_score_is_capped(self):
        actions = [{"action": "delete"}] * 10

        assert calculate_risk_score(actions, [ImpersonationFlag.CROSS_TENANT_ACCESS]) == 100


class TestImpersonationSession:
    def test_add_action_rescored(self):
        session = build_session()

        session.add_action("delete", "/api/v1/api-keys/1")

        assert session.risk_score == 20
        assert session.actions[0]["endpoint"] == "/api/v1/api-keys/1"

    def test_add_flag_is_idempotent(self):
        session = build_session()

        session.add_flag(ImpersonationFlag.HIGH_PRIVILEGE_ACCESS)
        session.add_flag(ImpersonationFlag.HIGH_PRIVILEGE_ACCESS)

        assert session.flags == [ImpersonationFlag.HIGH_PRIVILEGE_ACCESS]
        assert session.risk_score == 20

    def test_expiry(self):
        fresh = build_session()
        stale = build_session(started_at=utcnow() - timedelta(minutes=61))

        assert not fresh.is_expired(60)
        assert stale.is_expired(60)

    def test_ended_session_counts_as_expired(self):
        session = build_session()

        session.end()

        assert session.is_active is False
        assert session.ended_at is not None
        assert session.is_expired(60)
