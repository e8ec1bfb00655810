"""
Pytest configuration and fixtures for social authentication tests.

Provides fixtures for:
- Scriptable provider adapters
- In-memory connection and user storage
- Gateway factory
- ASGI test client
"""

from datetime import datetime, timezone
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from social_auth_service.api.dependencies import build_components
from social_auth_service.config.settings import Settings
from social_auth_service.core.social import (
    DefaultUserIdExtractor,
    ProviderRegistry,
    RedirectRequired,
    SocialAuthenticationGateway,
    SocialAuthenticationManager,
    SocialAuthProvider,
)
from social_auth_service.core.social.provider import ConnectionFactory
from social_auth_service.domain.models import (
    AuthenticationMode,
    AuthRequest,
    Connection,
    ConnectionCardinality,
    ConnectionData,
    LocalUser,
    ProfileFetcher,
    SocialAuthenticationToken,
)
from social_auth_service.infrastructure.auth.user_store import InMemoryUserStore
from social_auth_service.infrastructure.social.connection_repository import (
    InMemoryUsersConnectionRepository,
)
from social_auth_service.main import create_app

PROCESSES_URL = "/j_spring_social_security_check"


class FakeProvider(SocialAuthProvider):
    """Provider whose credential is the ``X-<provider_id>-User`` header.

    Can be told to raise an error or demand a redirect instead.
    """

    def __init__(
        self,
        provider_id: str,
        mode: AuthenticationMode = AuthenticationMode.IMPLICIT,
        cardinality: ConnectionCardinality = ConnectionCardinality.ONE_TO_ONE,
        error: Optional[Exception] = None,
        redirect_url: Optional[str] = None,
        added_url: str = "/connected",
        profile_fetcher: Optional[ProfileFetcher] = None,
    ):
        self.provider_id = provider_id
        self.error = error
        self.redirect_url = redirect_url
        self.added_url = added_url
        self.calls: list[AuthenticationMode] = []
        self._mode = mode
        self._cardinality = cardinality
        self._connection_factory = ConnectionFactory(provider_id, profile_fetcher)

    @property
    def mode(self) -> AuthenticationMode:
        return self._mode

    @property
    def cardinality(self) -> ConnectionCardinality:
        return self._cardinality

    @property
    def connection_factory(self) -> ConnectionFactory:
        return self._connection_factory

    async def get_auth_token(self, request: AuthRequest, mode: AuthenticationMode):
        self.calls.append(mode)
        if self.error is not None:
            raise self.error
        if self.redirect_url is not None:
            raise RedirectRequired(self.redirect_url)

        provider_user_id = request.header(f"x-{self.provider_id}-user")
        if not provider_user_id:
            return None
        data = ConnectionData(
            provider_id=self.provider_id,
            provider_user_id=provider_user_id,
            display_name=f"{self.provider_id} user {provider_user_id}",
        )
        return SocialAuthenticationToken(self.connection_factory.create_connection(data))

    def get_connection_added_redirect_url(self, request: AuthRequest, connection: Connection) -> str:
        return self.added_url


class RecordingEventPublisher:
    """Collects published events"""

    def __init__(self):
        self.events = []

    async def publish(self, event) -> None:
        self.events.append(event)


def make_user(user_id: str, username: str = None, is_active: bool = True, roles=None) -> LocalUser:
    return LocalUser(
        user_id=user_id,
        username=username or user_id,
        email=f"{username or user_id}@example.com",
        display_name=(username or user_id).title(),
        created_at=datetime.now(timezone.utc),
        is_active=is_active,
        roles=roles,
    )


async def link(users_repo, user_id: str, provider_id: str, provider_user_id: str) -> None:
    """Store a connection for a user directly in the repository"""
    connection = Connection(ConnectionData(provider_id=provider_id, provider_user_id=provider_user_id))
    await users_repo.create_connection_repository(user_id).add_connection(connection)


def auth_request(path: str = "/", headers: dict = None, **kwargs) -> AuthRequest:
    return AuthRequest(
        path=path,
        headers={key.lower(): value for key, value in (headers or {}).items()},
        **kwargs,
    )


@pytest.fixture
def user_store() -> InMemoryUserStore:
    """In-memory user store"""
    return InMemoryUserStore()


@pytest_asyncio.fixture
async def alice(user_store: InMemoryUserStore) -> LocalUser:
    """Active local user 'alice'"""
    return await user_store.add_user(make_user("alice", roles=["user", "admin"]))


@pytest_asyncio.fixture
async def bob(user_store: InMemoryUserStore) -> LocalUser:
    """Active local user 'bob'"""
    return await user_store.add_user(make_user("bob"))


@pytest.fixture
def registry() -> ProviderRegistry:
    """Empty provider registry"""
    return ProviderRegistry()


@pytest.fixture
def users_repo(registry: ProviderRegistry) -> InMemoryUsersConnectionRepository:
    """In-memory users connection repository"""
    return InMemoryUsersConnectionRepository(registry)


@pytest.fixture
def event_publisher() -> RecordingEventPublisher:
    return RecordingEventPublisher()


@pytest.fixture
def make_gateway(registry, users_repo, user_store, event_publisher):
    """Factory registering providers and building a gateway over them"""

    def _make(*providers: SocialAuthProvider, **kwargs) -> SocialAuthenticationGateway:
        for provider in providers:
            registry.register(provider)
        options = {
            "processes_url": PROCESSES_URL,
            "event_publisher": event_publisher,
        }
        options.update(kwargs)
        return SocialAuthenticationGateway(
            registry=registry,
            auth_manager=SocialAuthenticationManager(users_repo, user_store),
            user_id_extractor=DefaultUserIdExtractor(),
            users_connection_repository=users_repo,
            **options,
        )

    return _make


@pytest.fixture
def memory_settings() -> Settings:
    """Settings for the in-memory backend"""
    return Settings(storage_backend="memory", processes_url=PROCESSES_URL)


@pytest.fixture
def app_registry() -> ProviderRegistry:
    """Providers served by the test application"""
    return ProviderRegistry([
        FakeProvider("google", mode=AuthenticationMode.IMPLICIT),
        FakeProvider("github", mode=AuthenticationMode.EXPLICIT),
        FakeProvider(
            "facebook",
            mode=AuthenticationMode.EXPLICIT,
            redirect_url="https://facebook.example/dialog/oauth",
        ),
    ])


@pytest.fixture
def components(memory_settings, app_registry):
    """Social components wired to the in-memory backend"""
    return build_components(memory_settings, registry=app_registry)


@pytest_asyncio.fixture
async def client(components):
    """HTTP client for the application (redirects are not followed)"""
    app = create_app(components=components)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
