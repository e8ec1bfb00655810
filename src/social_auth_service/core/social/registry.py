"""Social provider registry.

Holds the configured provider adapters keyed by provider id and builds
them from application settings.
"""

import logging
from typing import Iterable

from .errors import ConfigurationError, ProviderNotFoundError
from .provider import SocialAuthProvider
from social_auth_service.config.settings import Settings, SocialProviderConfig
from social_auth_service.domain.models import AuthenticationMode, ConnectionCardinality

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Provider adapters keyed by provider id, in registration order."""

    def __init__(self, providers: Iterable[SocialAuthProvider] = ()):
        self._providers: dict[str, SocialAuthProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: SocialAuthProvider) -> None:
        if provider.provider_id in self._providers:
            raise ConfigurationError(f"Duplicate social provider id: {provider.provider_id}")
        self._providers[provider.provider_id] = provider

    def ids(self) -> list[str]:
        """Registered provider ids, in registration order."""
        return list(self._providers)

    def get(self, provider_id: str) -> SocialAuthProvider:
        """Look up a provider adapter.

        Raises:
            ProviderNotFoundError: If no provider is registered under the id
        """
        try:
            return self._providers[provider_id]
        except KeyError:
            raise ProviderNotFoundError(provider_id) from None

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._providers

    def __len__(self) -> int:
        return len(self._providers)


def _require(provider_id: str, config: SocialProviderConfig, *fields: str) -> None:
    missing = [name for name in fields if not getattr(config, name)]
    if missing:
        raise ConfigurationError(
            f"Social provider '{provider_id}' ({config.kind}) requires: {', '.join(missing)}"
        )


def build_provider(
    provider_id: str, config: SocialProviderConfig, settings: Settings
) -> SocialAuthProvider:
    """Instantiate one provider adapter from its configuration.

    Raises:
        ConfigurationError: If the kind is unknown or required values are missing
    """
    try:
        cardinality = ConnectionCardinality.from_name(config.cardinality)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    added_url = config.connection_added_redirect_url or settings.connection_added_redirect_url

    if config.kind == "oauth2":
        from .oauth2 import OAuth2AuthProvider

        _require(provider_id, config, "client_id", "client_secret",
                 "authorize_url", "token_url", "userinfo_url")
        return OAuth2AuthProvider(
            provider_id=provider_id,
            client_id=config.client_id,
            client_secret=config.client_secret,
            authorize_url=config.authorize_url,
            token_url=config.token_url,
            userinfo_url=config.userinfo_url,
            state_secret_key=settings.state_secret_key,
            scopes=config.scopes,
            user_id_field=config.user_id_field,
            mode=AuthenticationMode(config.mode or "explicit"),
            cardinality=cardinality,
            connection_added_redirect_url=added_url,
            state_algorithm=settings.state_algorithm,
            state_ttl_seconds=settings.state_ttl_seconds,
            target_url_parameter=settings.target_url_parameter or None,
        )

    elif config.kind == "bearer":
        from .bearer import BearerTokenAuthProvider

        _require(provider_id, config, "issuer", "audience")
        return BearerTokenAuthProvider(
            provider_id=provider_id,
            issuer=config.issuer,
            audience=config.audience,
            jwks_uri=config.jwks_uri,
            mode=AuthenticationMode(config.mode or "implicit"),
            cardinality=cardinality,
            connection_added_redirect_url=added_url,
        )

    raise ConfigurationError(
        f"Unknown social provider kind for '{provider_id}': {config.kind}. "
        f"Valid options: oauth2, bearer"
    )


def build_registry(settings: Settings) -> ProviderRegistry:
    """Construct the provider registry from application settings."""
    registry = ProviderRegistry()
    for provider_id, config in settings.social_providers.items():
        provider_id = provider_id.strip().lower()
        registry.register(build_provider(provider_id, config, settings))
        logger.info(f"Social provider registered: {provider_id} ({config.kind})")

    if not len(registry):
        logger.warning("No social providers configured - social authentication is disabled")
    return registry
