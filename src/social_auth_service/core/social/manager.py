"""Authentication manager for social tokens.

Resolves the provider identity carried by a SocialAuthenticationToken to
exactly one local user and produces the authenticated principal.
"""

import logging
from typing import Optional, Protocol

from .errors import (
    BadCredentialsError,
    DisabledAccountError,
    TokenAlreadyConsumedError,
    UserNotFoundError,
)
from social_auth_service.domain.models import (
    Authentication,
    LocalUser,
    SocialAuthenticationToken,
)

logger = logging.getLogger(__name__)


class SocialUserDetailsService(Protocol):
    """Loads local users by account id rather than username."""

    async def load_user_by_account_id(self, account_id: str) -> Optional[LocalUser]:
        ...


class SocialAuthenticationManager:
    """Authenticates social tokens against the users connection repository.

    Args:
        users_connection_repository: Repository mapping provider identities
            to local user ids (may sign unknown identities up)
        user_details_service: Loads the resolved local user
    """

    def __init__(self, users_connection_repository, user_details_service: SocialUserDetailsService):
        self.users_connection_repository = users_connection_repository
        self.user_details_service = user_details_service

    async def authenticate(self, token: SocialAuthenticationToken) -> Authentication:
        """Authenticate a social token.

        Args:
            token: Token produced by a provider adapter for this request

        Returns:
            Authenticated Authentication for the local user

        Raises:
            TokenAlreadyConsumedError: If the token was authenticated before
            BadCredentialsError: If the identity maps to no or several users
            UserNotFoundError: If the linked user no longer exists
            DisabledAccountError: If the linked user is inactive
        """
        if token.consumed:
            raise TokenAlreadyConsumedError("Social authentication token already used")
        token.consume()

        connection = token.connection
        user_ids = await self.users_connection_repository.find_user_ids_with_connection(connection)
        if len(user_ids) != 1:
            if user_ids:
                logger.warning(f"{connection} is linked to {len(user_ids)} users, refusing login")
            raise BadCredentialsError("Unknown access token")

        user = await self.user_details_service.load_user_by_account_id(user_ids[0])
        if user is None:
            raise UserNotFoundError("Unknown connected account id")
        if not user.is_active:
            raise DisabledAccountError("User account is inactive")

        authorities = [f"ROLE_{role.upper()}" for role in user.roles]
        if "ROLE_USER" not in authorities:
            authorities.append("ROLE_USER")

        logger.info(f"User authenticated via {token.provider_id}: {user.user_id}")
        return Authentication(
            principal=user,
            provider_id=token.provider_id,
            authorities=authorities,
            provider_account_data=connection.create_data(),
            details=token.details,
        )


class DefaultUserIdExtractor:
    """Maps an authenticated principal to its local user id."""

    def extract_user_id(self, authentication: Optional[Authentication]) -> Optional[str]:
        if authentication is None or not authentication.authenticated:
            return None
        return authentication.name or None
