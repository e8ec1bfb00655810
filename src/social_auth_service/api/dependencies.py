"""Component wiring and FastAPI dependencies.

The social authentication components are built once at startup and kept
on ``app.state.social``; the middleware and the routes read them from
there.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from redis.asyncio import Redis

from social_auth_service.config.settings import Settings
from social_auth_service.core.social import (
    ConfigurationError,
    DefaultUserIdExtractor,
    ProviderRegistry,
    SocialAuthenticationGateway,
    SocialAuthenticationManager,
    build_registry,
)
from social_auth_service.core.social.handlers import (
    LoggingEventPublisher,
    RedirectFailureHandler,
    RedirectSuccessHandler,
)
from social_auth_service.domain.models import Authentication, SecurityContext
from social_auth_service.infrastructure.auth.context_repository import (
    InMemorySecurityContextRepository,
    RedisSecurityContextRepository,
)
from social_auth_service.infrastructure.auth.user_store import InMemoryUserStore, UserStore
from social_auth_service.infrastructure.social.connection_repository import (
    InMemoryUsersConnectionRepository,
    RedisUsersConnectionRepository,
    UsersConnectionRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class SocialAuthComponents:
    """Everything the HTTP layer needs to run social authentication"""
    settings: Settings
    registry: ProviderRegistry
    gateway: SocialAuthenticationGateway
    users_connection_repository: UsersConnectionRepository
    user_store: object
    context_repository: object


def build_components(
    settings: Settings,
    redis_client: Optional[Redis] = None,
    registry: Optional[ProviderRegistry] = None,
) -> SocialAuthComponents:
    """Assemble the gateway and its collaborators from settings.

    Args:
        settings: Application settings
        redis_client: Connected Redis client (required for the redis backend)
        registry: Provider registry; built from settings when omitted

    Raises:
        ConfigurationError: If the redis backend is selected without a client
    """
    registry = registry if registry is not None else build_registry(settings)

    if settings.storage_backend == "redis":
        if redis_client is None:
            raise ConfigurationError("storage_backend=redis requires a Redis client")
        user_store = UserStore(redis_client)
        context_repository = RedisSecurityContextRepository(redis_client, settings.session_ttl_seconds)
    else:
        logger.warning("Using in-memory storage - only suitable for single-instance deployments")
        user_store = InMemoryUserStore()
        context_repository = InMemorySecurityContextRepository(settings.session_ttl_seconds)

    connection_signup = user_store.sign_up if settings.implicit_signup else None
    if settings.storage_backend == "redis":
        users_connection_repository = RedisUsersConnectionRepository(
            redis_client, registry, connection_signup
        )
    else:
        users_connection_repository = InMemoryUsersConnectionRepository(registry, connection_signup)

    gateway = SocialAuthenticationGateway(
        registry=registry,
        auth_manager=SocialAuthenticationManager(users_connection_repository, user_store),
        user_id_extractor=DefaultUserIdExtractor(),
        users_connection_repository=users_connection_repository,
        processes_url=settings.processes_url,
        success_handler=RedirectSuccessHandler(
            settings.default_target_url, settings.target_url_parameter
        ),
        failure_handler=RedirectFailureHandler(settings.failure_url),
        event_publisher=LoggingEventPublisher(),
    )

    return SocialAuthComponents(
        settings=settings,
        registry=registry,
        gateway=gateway,
        users_connection_repository=users_connection_repository,
        user_store=user_store,
        context_repository=context_repository,
    )


def get_components(request: Request) -> SocialAuthComponents:
    """Get the social authentication components of the running app"""
    components = getattr(request.app.state, "social", None)
    if components is None:
        raise HTTPException(status_code=503, detail="Social authentication not initialized")
    return components


def get_security_context(request: Request) -> SecurityContext:
    """Security context populated by the social authentication middleware"""
    context = getattr(request.state, "security_context", None)
    return context if context is not None else SecurityContext()


async def require_authentication(
    context: SecurityContext = Depends(get_security_context),
) -> Authentication:
    """Require authenticated user (raises 401 if not authenticated)"""
    if not context.is_authenticated:
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Please log in to access this resource.",
        )
    return context.authentication
