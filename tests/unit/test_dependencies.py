"""Unit tests for component wiring and the request adapter"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from social_auth_service.api.dependencies import (
    build_components,
    get_components,
    require_authentication,
)
from social_auth_service.api.middleware import to_auth_request
from social_auth_service.config.settings import Settings
from social_auth_service.core.social import ConfigurationError, ProviderRegistry
from social_auth_service.domain.models import Authentication, SecurityContext
from social_auth_service.infrastructure.auth.context_repository import RedisSecurityContextRepository
from social_auth_service.infrastructure.auth.user_store import InMemoryUserStore, UserStore
from social_auth_service.infrastructure.social.connection_repository import (
    InMemoryUsersConnectionRepository,
    RedisUsersConnectionRepository,
)
from tests.conftest import make_user

pytestmark = pytest.mark.unit


def starlette_request(path: str, query: str = "", headers: list = None, root_path: str = "") -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "scheme": "https",
        "server": ("app.example.com", 443),
        "client": ("10.0.0.7", 51000),
        "root_path": root_path,
        "path": path,
        "query_string": query.encode(),
        "headers": headers or [],
    })


class TestBuildComponents:
    """Test assembling the gateway from settings"""

    def test_memory_backend(self):
        components = build_components(Settings(storage_backend="memory"), registry=ProviderRegistry())

        assert isinstance(components.user_store, InMemoryUserStore)
        assert isinstance(components.users_connection_repository, InMemoryUsersConnectionRepository)
        assert components.users_connection_repository.connection_signup is None
        assert components.gateway.processes_url == "/j_spring_social_security_check"

    def test_redis_backend(self):
        components = build_components(
            Settings(storage_backend="redis", session_ttl_seconds=60),
            redis_client=AsyncMock(),
            registry=ProviderRegistry(),
        )

        assert isinstance(components.user_store, UserStore)
        assert isinstance(components.users_connection_repository, RedisUsersConnectionRepository)
        assert isinstance(components.context_repository, RedisSecurityContextRepository)
        assert components.context_repository.ttl_seconds == 60

    def test_redis_backend_requires_client(self):
        with pytest.raises(ConfigurationError):
            build_components(Settings(storage_backend="redis"), registry=ProviderRegistry())

    def test_implicit_signup_wired(self):
        components = build_components(
            Settings(storage_backend="memory", implicit_signup=True), registry=ProviderRegistry()
        )

        signup = components.users_connection_repository.connection_signup
        assert signup == components.user_store.sign_up

    def test_custom_processes_url(self):
        components = build_components(
            Settings(storage_backend="memory", processes_url="/auth/social/"),
            registry=ProviderRegistry(),
        )
        assert components.gateway.processes_url == "/auth/social"


class TestDependencies:

    def test_components_not_initialized(self):
        request = MagicMock()
        request.app.state = MagicMock(spec=[])

        with pytest.raises(HTTPException) as exc_info:
            get_components(request)

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_require_authentication(self):
        authentication = Authentication(principal=make_user("alice"))

        assert await require_authentication(SecurityContext(authentication)) is authentication

    @pytest.mark.asyncio
    async def test_require_authentication_anonymous(self):
        with pytest.raises(HTTPException) as exc_info:
            await require_authentication(SecurityContext())

        assert exc_info.value.status_code == 401


class TestToAuthRequest:
    """Test translating Starlette requests"""

    def test_fields(self):
        request = starlette_request(
            "/j_spring_social_security_check/github",
            query="code=abc&state=xyz",
            headers=[(b"authorization", b"Bearer t"), (b"x-custom", b"1")],
        )

        auth_request = to_auth_request(request, session_id="sess-1")

        assert auth_request.path == "/j_spring_social_security_check/github"
        assert auth_request.context_path == ""
        assert auth_request.param("code") == "abc"
        assert auth_request.header("Authorization") == "Bearer t"
        assert auth_request.remote_address == "10.0.0.7"
        assert auth_request.session_id == "sess-1"
        assert auth_request.url == "https://app.example.com/j_spring_social_security_check/github"

    def test_root_path_becomes_context_path(self):
        request = starlette_request("/j_spring_social_security_check/github", root_path="/app")

        auth_request = to_auth_request(request)

        assert auth_request.context_path == "/app"
        assert auth_request.path == "/app/j_spring_social_security_check/github"
