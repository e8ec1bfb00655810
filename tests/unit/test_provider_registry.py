"""Unit tests for the provider registry and building providers from settings"""

import pytest

from social_auth_service.config.settings import Settings, SocialProviderConfig
from social_auth_service.core.social import (
    ConfigurationError,
    ProviderNotFoundError,
    ProviderRegistry,
    build_registry,
)
from social_auth_service.core.social.bearer import BearerTokenAuthProvider
from social_auth_service.core.social.oauth2 import OAuth2AuthProvider
from social_auth_service.domain.models import AuthenticationMode, ConnectionCardinality
from tests.conftest import FakeProvider

pytestmark = pytest.mark.unit


def github_config(**overrides) -> SocialProviderConfig:
    values = {
        "kind": "oauth2",
        "client_id": "client-123",
        "client_secret": "secret-456",
        "authorize_url": "https://github.com/login/oauth/authorize",
        "token_url": "https://github.com/login/oauth/access_token",
        "userinfo_url": "https://api.github.com/user",
        "user_id_field": "id",
    }
    values.update(overrides)
    return SocialProviderConfig(**values)


def google_config(**overrides) -> SocialProviderConfig:
    values = {
        "kind": "bearer",
        "issuer": "https://accounts.google.com",
        "audience": "client-123.apps.googleusercontent.com",
    }
    values.update(overrides)
    return SocialProviderConfig(**values)


class TestProviderRegistry:
    """Test registry lookups"""

    def test_registration_order_kept(self):
        registry = ProviderRegistry([FakeProvider("google"), FakeProvider("apple"), FakeProvider("github")])
        assert registry.ids() == ["google", "apple", "github"]

    def test_get(self):
        google = FakeProvider("google")
        registry = ProviderRegistry([google])

        assert registry.get("google") is google
        assert "google" in registry
        assert len(registry) == 1

    def test_unknown_provider(self):
        with pytest.raises(ProviderNotFoundError) as exc_info:
            ProviderRegistry().get("myspace")
        assert exc_info.value.provider_id == "myspace"

    def test_duplicate_id_rejected(self):
        registry = ProviderRegistry([FakeProvider("google")])
        with pytest.raises(ConfigurationError):
            registry.register(FakeProvider("google"))


class TestBuildRegistry:
    """Test constructing providers from settings"""

    def test_oauth2_and_bearer(self):
        settings = Settings(
            storage_backend="memory",
            social_providers={"GitHub": github_config(), "google": google_config()},
        )

        registry = build_registry(settings)

        assert registry.ids() == ["github", "google"]
        github = registry.get("github")
        assert isinstance(github, OAuth2AuthProvider)
        assert github.mode == AuthenticationMode.EXPLICIT
        assert github.cardinality == ConnectionCardinality.ONE_TO_ONE
        assert github.user_id_field == "id"
        google = registry.get("google")
        assert isinstance(google, BearerTokenAuthProvider)
        assert google.mode == AuthenticationMode.IMPLICIT

    def test_mode_and_cardinality_overrides(self):
        settings = Settings(
            storage_backend="memory",
            social_providers={"github": github_config(mode="both", cardinality="one_to_many")},
        )

        github = build_registry(settings).get("github")

        assert github.mode == AuthenticationMode.BOTH
        assert github.cardinality == ConnectionCardinality.ONE_TO_MANY

    def test_connection_added_url_defaults_to_settings(self):
        settings = Settings(
            storage_backend="memory",
            connection_added_redirect_url="/account/connections",
            social_providers={
                "github": github_config(),
                "google": google_config(connection_added_redirect_url="/welcome"),
            },
        )

        registry = build_registry(settings)

        assert registry.get("github").connection_added_redirect_url == "/account/connections"
        assert registry.get("google").connection_added_redirect_url == "/welcome"

    def test_missing_oauth2_fields(self):
        settings = Settings(
            storage_backend="memory",
            social_providers={"github": github_config(client_secret=None, token_url=None)},
        )

        with pytest.raises(ConfigurationError, match="client_secret, token_url"):
            build_registry(settings)

    def test_missing_bearer_fields(self):
        settings = Settings(
            storage_backend="memory",
            social_providers={"google": google_config(audience=None)},
        )

        with pytest.raises(ConfigurationError, match="audience"):
            build_registry(settings)

    def test_no_providers(self):
        registry = build_registry(Settings(storage_backend="memory"))
        assert registry.ids() == []

    def test_nested_environment_variables(self, monkeypatch):
        monkeypatch.setenv("SOCIAL_PROVIDERS__GOOGLE__KIND", "bearer")
        monkeypatch.setenv("SOCIAL_PROVIDERS__GOOGLE__ISSUER", "https://accounts.google.com")
        monkeypatch.setenv("SOCIAL_PROVIDERS__GOOGLE__AUDIENCE", "client-123")

        registry = build_registry(Settings(storage_backend="memory"))

        assert registry.ids() == ["google"]
        assert registry.get("google").audience == "client-123"


class TestConnectionCardinality:
    """Test cardinality presets"""

    def test_presets(self):
        assert ConnectionCardinality.from_name("one_to_one").authenticate_possible is True
        assert ConnectionCardinality.from_name("ONE_TO_MANY").multi_provider_user_id is True
        assert ConnectionCardinality.from_name("many_to_one").authenticate_possible is False
        assert ConnectionCardinality.from_name("many_to_many").multi_user_id is True

    def test_explicit_authenticate_possible(self):
        cardinality = ConnectionCardinality(multi_user_id=True, authenticate_possible=True)
        assert cardinality.authenticate_possible is True

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            ConnectionCardinality.from_name("some_to_some")
