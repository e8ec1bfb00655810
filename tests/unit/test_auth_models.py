"""Unit tests for account and social authentication models"""

import time
from datetime import datetime, timezone

import pytest

from social_auth_service.domain.models import (
    Authentication,
    AuthRequest,
    Connection,
    ConnectionData,
    ConnectionKey,
    LocalUser,
    SecurityContext,
    SocialAuthenticationToken,
)

pytestmark = pytest.mark.unit


def make_local_user(**overrides) -> LocalUser:
    values = {
        "user_id": "test-123",
        "username": "testuser",
        "email": "test@example.com",
        "display_name": "Test User",
        "created_at": datetime.now(timezone.utc),
    }
    values.update(overrides)
    return LocalUser(**values)


class TestLocalUser:
    """Test LocalUser model"""

    def test_create_user(self):
        """Test creating a user"""
        user = make_local_user()

        assert user.user_id == "test-123"
        assert user.is_active is True
        assert user.roles == ["user"]  # Default

    def test_user_to_dict(self):
        """Test user serialization to dict"""
        user_dict = make_local_user().to_dict()

        assert user_dict["user_id"] == "test-123"
        assert user_dict["roles"] == ["user"]
        assert isinstance(user_dict["created_at"], str)

    def test_user_from_dict(self):
        """Test user deserialization from dict"""
        user = LocalUser.from_dict({
            "user_id": "test-123",
            "username": "testuser",
            "display_name": "Test User",
            "created_at": "2025-01-15T10:00:00Z",
            "roles": ["user", "admin"],
        })

        assert user.email == ""
        assert user.roles == ["user", "admin"]
        assert user.created_at == datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


class TestConnection:
    """Test Connection and ConnectionData"""

    def test_key(self):
        data = ConnectionData(provider_id="github", provider_user_id="42")
        assert data.key == ConnectionKey("github", "42")
        assert Connection(data).key == ConnectionKey("github", "42")

    def test_snapshot_is_a_copy(self):
        connection = Connection(ConnectionData(provider_id="github", provider_user_id="42"))

        snapshot = connection.create_data()
        snapshot.display_name = "changed"

        assert connection.display_name is None

    def test_has_expired(self):
        expired = ConnectionData(provider_id="github", provider_user_id="42", expire_time=int(time.time()) - 1)
        fresh = ConnectionData(provider_id="github", provider_user_id="42", expire_time=int(time.time()) + 60)
        unknown = ConnectionData(provider_id="github", provider_user_id="42")

        assert Connection(expired).has_expired() is True
        assert Connection(fresh).has_expired() is False
        assert Connection(unknown).has_expired() is False

    @pytest.mark.asyncio
    async def test_sync_without_fetcher(self):
        connection = Connection(ConnectionData(provider_id="github", provider_user_id="42", display_name="x"))
        await connection.sync()
        assert connection.display_name == "x"

    def test_repr(self):
        connection = Connection(ConnectionData(provider_id="github", provider_user_id="42"))
        assert repr(connection) == "Connection(github:42)"


class TestSocialAuthenticationToken:
    """Test the single-use token"""

    def test_token(self):
        token = SocialAuthenticationToken(
            Connection(ConnectionData(provider_id="github", provider_user_id="42"))
        )

        assert token.provider_id == "github"
        assert token.principal.provider_user_id == "42"
        assert token.consumed is False

        token.consume()
        assert token.consumed is True


class TestAuthentication:
    """Test Authentication and SecurityContext"""

    def test_round_trip_through_dict(self):
        authentication = Authentication(
            principal=make_local_user(),
            provider_id="github",
            authorities=["ROLE_USER"],
            provider_account_data=ConnectionData(provider_id="github", provider_user_id="42"),
        )

        restored = Authentication.from_dict(authentication.to_dict())

        assert restored.name == "test-123"
        assert restored.provider_id == "github"
        assert restored.provider_account_data.key == ConnectionKey("github", "42")
        assert restored.authenticated is True

    def test_security_context(self):
        context = SecurityContext()
        assert context.is_authenticated is False

        context.authentication = Authentication(principal=make_local_user())
        assert context.is_authenticated is True

        context.clear()
        assert context.authentication is None

    def test_placeholder_not_authenticated(self):
        context = SecurityContext(Authentication(principal=make_local_user(), authenticated=False))
        assert context.is_authenticated is False


class TestAuthRequest:
    """Test the framework-neutral request"""

    def test_param(self):
        request = AuthRequest(path="/", query_params={"code": "abc", "state": ""})

        assert request.param("code") == "abc"
        assert request.param("state") is None
        assert request.param("missing") is None

    def test_header_case_insensitive(self):
        request = AuthRequest(path="/", headers={"authorization": "Bearer x"})
        assert request.header("Authorization") == "Bearer x"

    def test_url(self):
        request = AuthRequest(
            path="/app/check/github;jsessionid=1", base_url="https://app.example.com/"
        )
        assert request.url == "https://app.example.com/app/check/github"
