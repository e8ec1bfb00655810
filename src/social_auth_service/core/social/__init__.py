"""Social authentication core.

Pluggable identity provider adapters behind a single gateway:
- oauth2: OAuth 2.0 authorization code flow (explicit login)
- bearer: OpenID Connect id_token bearer credentials (implicit login)
"""

from .errors import (
    AuthenticationError,
    BadCredentialsError,
    ConfigurationError,
    ConnectionConflictError,
    DisabledAccountError,
    DuplicateConnectionError,
    ProviderConnectionLimitError,
    ProviderError,
    ProviderNotFoundError,
    RedirectRequired,
    TokenAlreadyConsumedError,
    UserNotFoundError,
)
from .gateway import DEFAULT_PROCESSES_URL, SocialAuthenticationGateway
from .manager import DefaultUserIdExtractor, SocialAuthenticationManager
from .provider import ConnectionFactory, SocialAuthProvider
from .registry import ProviderRegistry, build_registry

__all__ = [
    "AuthenticationError",
    "BadCredentialsError",
    "ConfigurationError",
    "ConnectionConflictError",
    "DisabledAccountError",
    "DuplicateConnectionError",
    "ProviderConnectionLimitError",
    "ProviderError",
    "ProviderNotFoundError",
    "RedirectRequired",
    "TokenAlreadyConsumedError",
    "UserNotFoundError",
    "DEFAULT_PROCESSES_URL",
    "SocialAuthenticationGateway",
    "DefaultUserIdExtractor",
    "SocialAuthenticationManager",
    "ConnectionFactory",
    "SocialAuthProvider",
    "ProviderRegistry",
    "build_registry",
]
