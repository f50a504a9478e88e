"""Unit tests for auth backend (JWT and password handling)."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from tenantguard.core.auth.backend import (
    create_access_token,
    create_impersonation_token,
    create_service_token,
    create_session_token,
    decode_impersonation_token,
    decode_service_token,
    decode_session_token,
    decode_token,
    hash_password,
    verify_password,
)


class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_hash_and_verify(self):
        """A bcrypt hash verifies only the original password."""
        hashed = hash_password("correct horse battery")

        assert hashed.startswith("$2b$")
        assert verify_password("correct horse battery", hashed) is True
        assert verify_password("wrong", hashed) is False


class TestAccessTokens:
    """Tests for access tokens."""

    def test_round_trip(self):
        """An access token carries the user and their tenant."""
        user_id = uuid4()

        data = decode_token(create_access_token(user_id, 4))

        assert data is not None
        assert data.user_id == user_id
        assert data.tenant_id == 4
        assert data.type == "access"

    def test_expired(self):
        """An expired token decodes to None."""
        token = create_access_token(uuid4(), 4, expires_delta=timedelta(seconds=-10))

        assert decode_token(token) is None

    def test_invalid(self):
        """Garbage decodes to None."""
        assert decode_token("invalid.token.here") is None


class TestSessionTokens:
    """Tests for the session tenant binding."""

    def test_round_trip(self):
        """The binding carries tenant, session version and impersonator."""
        binding = decode_session_token(create_session_token(3, 2, impersonator_id=9))

        assert binding is not None
        assert binding.tenant_id == 3
        assert binding.session_version == 2
        assert binding.impersonator_id == 9

    def test_type_mismatch(self):
        """An access token is not accepted as a session binding."""
        assert decode_session_token(create_access_token(uuid4(), 3)) is None

    def test_expired(self):
        """An expired binding decodes to None."""
        token = create_session_token(3, 1, expires_delta=timedelta(seconds=-1))

        assert decode_session_token(token) is None


class TestImpersonationTokens:
    """Tests for impersonation grant tokens."""

    def test_round_trip(self):
        """The grant token names its grant, admin and tenant."""
        expires_at = datetime.now(UTC) + timedelta(minutes=5)

        claims = decode_impersonation_token(
            create_impersonation_token("grant-1", 5, 2, expires_at)
        )

        assert claims is not None
        assert claims.jti == "grant-1"
        assert claims.admin_id == 5
        assert claims.tenant_id == 2

    def test_session_token_is_not_a_grant(self):
        """Token types are not interchangeable."""
        assert decode_impersonation_token(create_session_token(2, 1)) is None


class TestServiceTokens:
    """Tests for service-to-service tokens."""

    def test_round_trip(self):
        """A service token names its service."""
        assert decode_service_token(create_service_token("billing")) == "billing"

    def test_access_token_is_not_a_service_token(self):
        """A user's access token does not authenticate a service."""
        token = create_access_token(uuid4(), 1)

        assert decode_service_token(token) is None
        assert decode_token(create_service_token("billing")) is None

    def test_expired(self):
        """An expired service token is rejected."""
        token = create_service_token("billing", expires_delta=timedelta(seconds=-1))

        assert decode_service_token(token) is None
