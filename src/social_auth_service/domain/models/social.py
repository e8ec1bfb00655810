"""Social Authentication Data Models

Purpose: Define the values exchanged between provider adapters, the
authentication gateway and the connection repository

Key Components:
- AuthenticationMode / ConnectionCardinality: per-provider policy
- ConnectionKey / ConnectionData / Connection: links to external identities
- SocialAuthenticationToken: single-use carrier produced by an adapter
- Authentication / SecurityContext: the authenticated state of a request
- AuthRequest / WebAuthenticationDetails: framework-neutral request view
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel

from social_auth_service.domain.models.auth import LocalUser


class AuthenticationMode(Enum):
    """When a provider takes part in authentication

    IMPLICIT providers are probed on every unauthenticated request,
    EXPLICIT providers only act when named in the request path, BOTH
    providers do either.
    """
    IMPLICIT = "implicit"
    EXPLICIT = "explicit"
    BOTH = "both"


@dataclass(frozen=True)
class ConnectionCardinality:
    """How local users and provider identities may be linked

    Attributes:
        multi_user_id: Several local users may share one provider identity
        multi_provider_user_id: One local user may hold several identities
            from the same provider
        authenticate_possible: Whether the provider can log a user in. Defaults
            to ``not multi_user_id`` since a shared identity cannot pick a user.
    """
    multi_user_id: bool = False
    multi_provider_user_id: bool = False
    authenticate_possible: Optional[bool] = None

    def __post_init__(self):
        if self.authenticate_possible is None:
            object.__setattr__(self, "authenticate_possible", not self.multi_user_id)

    @classmethod
    def from_name(cls, name: str) -> 'ConnectionCardinality':
        """Resolve a preset by its configuration name (e.g. 'one_to_many')"""
        presets = {
            "one_to_one": cls.ONE_TO_ONE,
            "one_to_many": cls.ONE_TO_MANY,
            "many_to_one": cls.MANY_TO_ONE,
            "many_to_many": cls.MANY_TO_MANY,
        }
        try:
            return presets[name.lower()]
        except KeyError:
            raise ValueError(f"Unknown connection cardinality: {name}") from None


ConnectionCardinality.ONE_TO_ONE = ConnectionCardinality(False, False)
ConnectionCardinality.ONE_TO_MANY = ConnectionCardinality(False, True)
ConnectionCardinality.MANY_TO_ONE = ConnectionCardinality(True, False)
ConnectionCardinality.MANY_TO_MANY = ConnectionCardinality(True, True)


@dataclass(frozen=True)
class ConnectionKey:
    """Identity of a connection: (provider id, provider user id)"""
    provider_id: str
    provider_user_id: str


class ConnectionData(BaseModel):
    """Snapshot of a connection, not yet persisted

    Attributes:
        provider_id: Provider the identity belongs to (e.g. 'github')
        provider_user_id: Stable user id at the provider
        display_name: Name shown for the external account
        profile_url: Public profile page at the provider
        image_url: Avatar URL
        access_token: OAuth access token (or the id_token for bearer providers)
        secret: OAuth 1 token secret, unused by OAuth 2 providers
        refresh_token: OAuth refresh token
        expire_time: Access token expiry (epoch seconds)
    """
    provider_id: str
    provider_user_id: str
    display_name: Optional[str] = None
    profile_url: Optional[str] = None
    image_url: Optional[str] = None
    access_token: Optional[str] = None
    secret: Optional[str] = None
    refresh_token: Optional[str] = None
    expire_time: Optional[int] = None

    @property
    def key(self) -> ConnectionKey:
        return ConnectionKey(self.provider_id, self.provider_user_id)


# Fetches provider profile values (display_name, profile_url, image_url)
ProfileFetcher = Callable[[ConnectionData], Awaitable[dict[str, Any]]]


class Connection:
    """Durable link between a local user and one provider identity"""

    def __init__(self, data: ConnectionData, profile_fetcher: Optional[ProfileFetcher] = None):
        self._data = data.model_copy()
        self._profile_fetcher = profile_fetcher

    @property
    def key(self) -> ConnectionKey:
        return self._data.key

    @property
    def display_name(self) -> Optional[str]:
        return self._data.display_name

    @property
    def profile_url(self) -> Optional[str]:
        return self._data.profile_url

    @property
    def image_url(self) -> Optional[str]:
        return self._data.image_url

    def has_expired(self) -> bool:
        expire_time = self._data.expire_time
        return expire_time is not None and time.time() >= expire_time

    async def sync(self) -> None:
        """Refresh the profile values from the provider"""
        if self._profile_fetcher is None:
            return
        profile = await self._profile_fetcher(self._data)
        self._data = self._data.model_copy(update={
            "display_name": profile.get("display_name", self._data.display_name),
            "profile_url": profile.get("profile_url", self._data.profile_url),
            "image_url": profile.get("image_url", self._data.image_url),
        })

    def create_data(self) -> ConnectionData:
        return self._data.model_copy()

    def __repr__(self) -> str:
        return f"Connection({self.key.provider_id}:{self.key.provider_user_id})"


@dataclass
class WebAuthenticationDetails:
    """Request facts recorded alongside an authentication attempt"""
    remote_address: Optional[str] = None
    session_id: Optional[str] = None


class SocialAuthenticationToken:
    """Unauthenticated carrier for a provider connection

    Produced by a provider adapter for one request and handed to the
    authentication manager at most once.
    """

    def __init__(self, connection: Connection, details: Optional[WebAuthenticationDetails] = None):
        self.connection = connection
        self.details = details
        self._consumed = False

    @property
    def provider_id(self) -> str:
        return self.connection.key.provider_id

    @property
    def principal(self) -> ConnectionData:
        return self.connection.create_data()

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self) -> None:
        self._consumed = True


@dataclass
class Authentication:
    """Authenticated principal of a request

    Attributes:
        principal: Local user the provider identity resolved to
        provider_id: Provider the user logged in with
        authorities: Granted authorities (e.g. ['ROLE_USER'])
        provider_account_data: Connection snapshot used for the login
        details: Request details captured at login
        authenticated: False only for placeholder authentications
    """
    principal: LocalUser
    provider_id: Optional[str] = None
    authorities: list[str] = field(default_factory=list)
    provider_account_data: Optional[ConnectionData] = None
    details: Optional[WebAuthenticationDetails] = None
    authenticated: bool = True

    @property
    def name(self) -> str:
        return self.principal.user_id

    def to_dict(self) -> dict:
        """Convert to dictionary for session storage"""
        return {
            "principal": self.principal.to_dict(),
            "provider_id": self.provider_id,
            "authorities": list(self.authorities),
            "provider_account_data": (
                self.provider_account_data.model_dump() if self.provider_account_data else None
            ),
            "authenticated": self.authenticated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Authentication':
        account_data = data.get("provider_account_data")
        return cls(
            principal=LocalUser.from_dict(data["principal"]),
            provider_id=data.get("provider_id"),
            authorities=data.get("authorities", []),
            provider_account_data=ConnectionData.model_validate(account_data) if account_data else None,
            authenticated=data.get("authenticated", True),
        )


@dataclass
class SecurityContext:
    """Authentication state threaded through the handling of one request"""
    authentication: Optional[Authentication] = None

    @property
    def is_authenticated(self) -> bool:
        return self.authentication is not None and self.authentication.authenticated

    def clear(self) -> None:
        self.authentication = None


@dataclass
class AuthRequest:
    """Framework-neutral view of an inbound HTTP request

    Attributes:
        path: Full request path as received (may carry ';' path parameters)
        context_path: Prefix the application is mounted under
        query_params: Query string parameters
        headers: Request headers, keys lower-cased
        remote_address: Client address
        session_id: Session identifier from the session cookie
        base_url: Scheme and authority, e.g. 'https://app.example.com'
    """
    path: str
    context_path: str = ""
    query_params: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    remote_address: Optional[str] = None
    session_id: Optional[str] = None
    base_url: str = "http://localhost"

    def param(self, name: str) -> Optional[str]:
        value = self.query_params.get(name)
        return value if value else None

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @property
    def url(self) -> str:
        """Absolute request URL without query string or path parameters"""
        return f"{self.base_url.rstrip('/')}{self.path.split(';', 1)[0]}"
