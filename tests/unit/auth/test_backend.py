"""Unit tests for auth backend (JWT and password handling)."""

from datetime import timedelta
from uuid import uuid4

from jose import jwt

from app.config import settings
from app.core.auth.backend import (
    create_access_token,
    create_impersonation_token,
    create_refresh_token,
    decode_token,
    hash_password,
    hash_token,
    verify_password,
)
from app.core.auth.schemas import TokenType


class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_hash_password_returns_bcrypt_hash(self):
        hashed = hash_password("Visa!2024secret")

        assert hashed != "Visa!2024secret"
        assert hashed.startswith("$2b$")

    def test_hash_password_is_salted(self):
        assert hash_password("Visa!2024secret") != hash_password("Visa!2024secret")

    def test_verify_password_correct(self):
        hashed = hash_password("Visa!2024secret")

        assert verify_password("Visa!2024secret", hashed) is True

    def test_verify_password_incorrect(self):
        """A wrong password must never verify."""
        hashed = hash_password("Visa!2024secret")

        assert verify_password("Visa!2024Secret", hashed) is False

    def test_verify_password_malformed_hash(self):
        """Corrupt stored hashes count as a mismatch instead of raising."""
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestAccessTokens:
    """Tests for access tokens carrying tenant context."""

    def test_round_trip_keeps_tenant_and_role(self):
        user_id, tenant_id = uuid4(), uuid4()

        data = decode_token(create_access_token(user_id, tenant_id, "admin"))

        assert data is not None
        assert data.user_id == user_id
        assert data.tenant_id == tenant_id
        assert data.role == "admin"
        assert data.type == TokenType.ACCESS
        assert data.jti
        assert data.is_impersonation is False

    def test_super_admin_token_without_tenant(self):
        data = decode_token(create_access_token(uuid4(), None, "super_admin"))

        assert data is not None
        assert data.tenant_id is None

    def test_each_token_has_unique_jti(self):
        user_id = uuid4()
        first = decode_token(create_access_token(user_id, None, "user"))
        second = decode_token(create_access_token(user_id, None, "user"))

        assert first.jti != second.jti

    def test_expired_token_is_rejected(self):
        token = create_access_token(uuid4(), uuid4(), "user", expires_delta=timedelta(seconds=-1))

        assert decode_token(token) is None

    def test_token_signed_with_other_key_is_rejected(self):
        token = jwt.encode(
            {"sub": str(uuid4()), "role": "admin", "exp": 9999999999},
            "some-other-secret-key-that-is-long-enough",
            algorithm=settings.jwt_algorithm,
        )

        assert decode_token(token) is None

    def test_token_without_role_is_rejected(self):
        token = jwt.encode(
            {"sub": str(uuid4()), "exp": 9999999999},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        assert decode_token(token) is None

    def test_garbage_is_rejected(self):
        assert decode_token("not.a.jwt") is None


class TestImpersonationTokens:
    def test_claims_identify_the_super_admin(self):
        target_id, tenant_id, admin_id, record_id = uuid4(), uuid4(), uuid4(), uuid4()

        token = create_impersonation_token(
            target_user_id=target_id,
            target_tenant_id=tenant_id,
            target_role="user",
            impersonation_id=record_id,
            session_id="imp_abc123",
            super_admin_id=admin_id,
            expires_delta=timedelta(minutes=30),
        )
        data = decode_token(token)

        assert data is not None
        assert data.is_impersonation is True
        assert data.user_id == target_id
        assert data.tenant_id == tenant_id
        assert data.super_admin_id == admin_id
        assert data.impersonation_id == record_id
        assert data.session_id == "imp_abc123"


class TestOpaqueTokens:
    def test_refresh_tokens_are_random(self):
        assert create_refresh_token() != create_refresh_token()

    def test_hash_token_is_sha256_hex(self):
        hashed = hash_token("refresh-token")

        assert len(hashed) == 64
        assert hashed == hash_token("refresh-token")
        assert hashed != hash_token("refresh-token-2")
