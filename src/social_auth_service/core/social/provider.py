"""Abstract social provider interface.

This module defines the contract that every identity provider adapter
implements. The gateway only ever talks to adapters through this
interface, looked up by provider id in the registry.
"""

from abc import ABC, abstractmethod
from typing import Optional

from social_auth_service.domain.models import (
    AuthenticationMode,
    AuthRequest,
    Connection,
    ConnectionCardinality,
    ConnectionData,
    ProfileFetcher,
    SocialAuthenticationToken,
)


class ConnectionFactory:
    """Creates connections for one provider.

    Connections created here refresh their profile through the
    provider's profile fetcher when synced.
    """

    def __init__(self, provider_id: str, profile_fetcher: Optional[ProfileFetcher] = None):
        self.provider_id = provider_id
        self.profile_fetcher = profile_fetcher

    def create_connection(self, data: ConnectionData) -> Connection:
        """Create a connection from extracted connection data.

        Args:
            data: Connection data extracted from a provider response

        Returns:
            Connection bound to this provider's profile fetcher

        Raises:
            ValueError: If the data belongs to another provider
        """
        if data.provider_id != self.provider_id:
            raise ValueError(
                f"Connection data for '{data.provider_id}' passed to '{self.provider_id}' factory"
            )
        return Connection(data, self.profile_fetcher)


class SocialAuthProvider(ABC):
    """Abstract interface for identity provider adapters.

    An adapter knows how to pull a credential out of a request for its
    provider, in which modes it participates, and how many local users
    and provider identities may be linked to each other.

    Example:
        # Explicit login via GET /j_spring_social_security_check/github
        SOCIAL_PROVIDERS__GITHUB__KIND=oauth2

        # Implicit login on any request carrying an OpenID id_token
        SOCIAL_PROVIDERS__GOOGLE__KIND=bearer
    """

    provider_id: str

    @property
    @abstractmethod
    def mode(self) -> AuthenticationMode:
        """Modes in which this provider takes part in authentication."""
        pass

    @property
    @abstractmethod
    def cardinality(self) -> ConnectionCardinality:
        """Linking policy between local users and this provider's identities."""
        pass

    @property
    @abstractmethod
    def connection_factory(self) -> ConnectionFactory:
        """Factory for this provider's connections."""
        pass

    @abstractmethod
    async def get_auth_token(
        self,
        request: AuthRequest,
        mode: AuthenticationMode,
    ) -> Optional[SocialAuthenticationToken]:
        """Extract an authentication token from the request.

        Called with IMPLICIT while probing every provider, or EXPLICIT when
        the request path named this provider.

        Args:
            request: Inbound request
            mode: Mode of the current attempt

        Returns:
            Token wrapping the provider connection, or None if the request
            carries nothing for this provider

        Raises:
            RedirectRequired: If the client must be sent to the provider
            AuthenticationError: If the provider rejected the credential
        """
        pass

    @abstractmethod
    def get_connection_added_redirect_url(
        self, request: AuthRequest, connection: Connection
    ) -> str:
        """URL to send the client to after a connection was linked."""
        pass

    def supports(self, mode: AuthenticationMode) -> bool:
        """Whether this provider may be attempted in the given mode."""
        return self.mode == AuthenticationMode.BOTH or self.mode == mode
