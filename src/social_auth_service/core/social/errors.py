"""Errors raised by the social authentication core."""

from typing import Optional


class AuthenticationError(Exception):
    """Authentication failed."""
    pass


class BadCredentialsError(AuthenticationError):
    """The provider identity could not be resolved to a single local user."""
    pass


class UserNotFoundError(AuthenticationError):
    """The resolved local user does not exist."""
    pass


class DisabledAccountError(AuthenticationError):
    """The resolved local user is inactive."""
    pass


class TokenAlreadyConsumedError(AuthenticationError):
    """A social authentication token was submitted more than once."""
    pass


class ProviderError(AuthenticationError):
    """The identity provider rejected the handshake or could not be reached."""

    def __init__(self, provider_id: str, message: str):
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id


class RedirectRequired(Exception):
    """Raised by a provider adapter that needs the client sent elsewhere.

    Not a failure: the gateway turns it into a ``Redirect`` outcome.
    """

    def __init__(self, url: str):
        super().__init__(url)
        self.url = url


class ProviderNotFoundError(LookupError):
    """No provider is registered under the requested id."""

    def __init__(self, provider_id: str):
        super().__init__(f"No social provider registered for id '{provider_id}'")
        self.provider_id = provider_id


class ConfigurationError(Exception):
    """A required collaborator or setting is missing or invalid."""
    pass


class DuplicateConnectionError(Exception):
    """The connection is already linked to the user."""

    def __init__(self, user_id: str, provider_id: str, provider_user_id: str):
        super().__init__(
            f"User {user_id} is already connected to {provider_id}:{provider_user_id}"
        )
        self.user_id = user_id
        self.provider_id = provider_id
        self.provider_user_id = provider_user_id


class ConnectionConflictError(Exception):
    """The provider identity is already linked to another user and may not be shared."""

    def __init__(self, provider_id: str, provider_user_id: str, message: Optional[str] = None):
        super().__init__(message or f"{provider_id}:{provider_user_id} is already linked to another user")
        self.provider_id = provider_id
        self.provider_user_id = provider_user_id


class ProviderConnectionLimitError(ConnectionConflictError):
    """The user already holds an account of a provider that allows only one per user."""

    def __init__(self, user_id: str, provider_id: str, provider_user_id: str):
        super().__init__(
            provider_id,
            provider_user_id,
            f"User {user_id} already has a {provider_id} connection other than {provider_user_id}",
        )
        self.user_id = user_id
