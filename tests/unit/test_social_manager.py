"""Unit tests for SocialAuthenticationManager and DefaultUserIdExtractor"""

import pytest

from social_auth_service.core.social import (
    BadCredentialsError,
    DefaultUserIdExtractor,
    DisabledAccountError,
    SocialAuthenticationManager,
    TokenAlreadyConsumedError,
    UserNotFoundError,
)
from social_auth_service.domain.models import (
    Authentication,
    Connection,
    ConnectionData,
    SocialAuthenticationToken,
)
from social_auth_service.infrastructure.auth.user_store import InMemoryUserStore
from social_auth_service.infrastructure.social.connection_repository import (
    InMemoryUsersConnectionRepository,
)
from tests.conftest import link, make_user

pytestmark = pytest.mark.unit


def github_token(provider_user_id: str = "42") -> SocialAuthenticationToken:
    data = ConnectionData(
        provider_id="github",
        provider_user_id=provider_user_id,
        display_name="Octo Cat",
        access_token="gho_abc",
    )
    return SocialAuthenticationToken(Connection(data))


@pytest.fixture
def manager(users_repo, user_store) -> SocialAuthenticationManager:
    return SocialAuthenticationManager(users_repo, user_store)


class TestAuthenticate:
    """Test resolving provider identities to local users"""

    @pytest.mark.asyncio
    async def test_linked_user_authenticated(self, manager, users_repo, alice):
        await link(users_repo, "alice", "github", "42")

        authentication = await manager.authenticate(github_token())

        assert authentication.authenticated is True
        assert authentication.principal == alice
        assert authentication.provider_id == "github"
        assert authentication.provider_account_data.access_token == "gho_abc"

    @pytest.mark.asyncio
    async def test_authorities_from_roles(self, manager, users_repo, alice):
        await link(users_repo, "alice", "github", "42")

        authentication = await manager.authenticate(github_token())

        assert authentication.authorities == ["ROLE_USER", "ROLE_ADMIN"]

    @pytest.mark.asyncio
    async def test_role_user_always_granted(self, manager, users_repo, user_store):
        await user_store.add_user(make_user("carol", roles=["auditor"]))
        await link(users_repo, "carol", "github", "42")

        authentication = await manager.authenticate(github_token())

        assert authentication.authorities == ["ROLE_AUDITOR", "ROLE_USER"]

    @pytest.mark.asyncio
    async def test_token_single_use(self, manager, users_repo, alice):
        await link(users_repo, "alice", "github", "42")
        token = github_token()

        await manager.authenticate(token)

        assert token.consumed
        with pytest.raises(TokenAlreadyConsumedError):
            await manager.authenticate(token)

    @pytest.mark.asyncio
    async def test_unknown_identity(self, manager):
        with pytest.raises(BadCredentialsError, match="Unknown access token"):
            await manager.authenticate(github_token())

    @pytest.mark.asyncio
    async def test_identity_shared_by_several_users(self, manager, users_repo, alice, bob):
        await link(users_repo, "alice", "github", "42")
        await link(users_repo, "bob", "github", "42")

        with pytest.raises(BadCredentialsError):
            await manager.authenticate(github_token())

    @pytest.mark.asyncio
    async def test_linked_user_missing(self, manager, users_repo):
        await link(users_repo, "ghost", "github", "42")

        with pytest.raises(UserNotFoundError):
            await manager.authenticate(github_token())

    @pytest.mark.asyncio
    async def test_inactive_user(self, manager, users_repo, user_store):
        await user_store.add_user(make_user("dave", is_active=False))
        await link(users_repo, "dave", "github", "42")

        with pytest.raises(DisabledAccountError):
            await manager.authenticate(github_token())


class TestImplicitSignUp:
    """Test sign-up of unknown identities"""

    @pytest.mark.asyncio
    async def test_unknown_identity_signed_up(self, registry):
        user_store = InMemoryUserStore()
        users_repo = InMemoryUsersConnectionRepository(registry, user_store.sign_up)
        manager = SocialAuthenticationManager(users_repo, user_store)

        authentication = await manager.authenticate(github_token("583231"))

        user = authentication.principal
        assert user.username == "github-583231"
        assert user.display_name == "Octo Cat"
        assert await users_repo.find_user_ids_connected_to("github", ["583231"]) == {user.user_id}

    @pytest.mark.asyncio
    async def test_second_login_reuses_user(self, registry):
        user_store = InMemoryUserStore()
        users_repo = InMemoryUsersConnectionRepository(registry, user_store.sign_up)
        manager = SocialAuthenticationManager(users_repo, user_store)

        first = await manager.authenticate(github_token())
        second = await manager.authenticate(github_token())

        assert first.name == second.name
        assert len(user_store.users) == 1


class TestDefaultUserIdExtractor:
    """Test mapping principals to user ids"""

    def test_authenticated_principal(self):
        authentication = Authentication(principal=make_user("alice"))
        assert DefaultUserIdExtractor().extract_user_id(authentication) == "alice"

    def test_no_authentication(self):
        assert DefaultUserIdExtractor().extract_user_id(None) is None

    def test_unauthenticated_placeholder(self):
        authentication = Authentication(principal=make_user("alice"), authenticated=False)
        assert DefaultUserIdExtractor().extract_user_id(authentication) is None
