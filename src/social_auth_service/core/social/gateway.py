"""Social authentication gateway.

Decides, for each inbound request, whether it carries credentials for a
provider named in the path (explicit) or must be probed against every
implicit provider, and whether a provider token means a new login or a
new connection for the user who is already logged in.

    START -> NO_PROVIDERS | EXPLICIT_ATTEMPT | IMPLICIT_SCAN | PASSTHROUGH
          -> Authenticated | Redirect | Failed | Refused | Continue
"""

import logging
from typing import Optional

from .errors import (
    AuthenticationError,
    ConfigurationError,
    ConnectionConflictError,
    DuplicateConnectionError,
    ProviderConnectionLimitError,
    ProviderError,
    ProviderNotFoundError,
    RedirectRequired,
)
from .handlers import (
    InteractiveAuthenticationSuccessEvent,
    NullRememberMeServices,
    RedirectFailureHandler,
    RedirectSuccessHandler,
    WebAuthenticationDetailsSource,
)
from .provider import SocialAuthProvider
from .registry import ProviderRegistry
from social_auth_service.domain.models import (
    CONTINUE,
    Authenticated,
    Authentication,
    AuthenticationMode,
    AuthRequest,
    ConnectionData,
    Failed,
    GatewayOutcome,
    Redirect,
    Refused,
    SecurityContext,
)

logger = logging.getLogger(__name__)

DEFAULT_PROCESSES_URL = "/j_spring_social_security_check"


class SocialAuthenticationGateway:
    """Authentication orchestrator for social providers.

    Args:
        registry: Registered provider adapters
        auth_manager: Authenticates provider tokens into local principals
        user_id_extractor: Maps the current principal to a local user id
        users_connection_repository: Connection lookup and storage
        processes_url: Base path under which the remainder names a provider
        details_source: Builds request details attached to tokens
        success_handler: Computes the redirect target after a login
        failure_handler: Computes the redirect target after a failure
        remember_me_services: Notified of login success and failure
        event_publisher: Receives interactive authentication events (optional)

    Raises:
        ConfigurationError: If a required collaborator is missing
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        auth_manager,
        user_id_extractor,
        users_connection_repository,
        processes_url: str = DEFAULT_PROCESSES_URL,
        details_source: Optional[WebAuthenticationDetailsSource] = None,
        success_handler=None,
        failure_handler=None,
        remember_me_services=None,
        event_publisher=None,
    ):
        for name, value in (
            ("registry", registry),
            ("auth_manager", auth_manager),
            ("user_id_extractor", user_id_extractor),
            ("users_connection_repository", users_connection_repository),
        ):
            if value is None:
                raise ConfigurationError(f"{name} must be set")
        if not processes_url or not processes_url.startswith("/"):
            raise ConfigurationError(f"processes_url must be an absolute path: {processes_url!r}")

        self.registry = registry
        self.auth_manager = auth_manager
        self.user_id_extractor = user_id_extractor
        self.users_connection_repository = users_connection_repository
        self.processes_url = processes_url.rstrip("/") or "/"
        self.details_source = details_source or WebAuthenticationDetailsSource()
        self.success_handler = success_handler or RedirectSuccessHandler()
        self.failure_handler = failure_handler or RedirectFailureHandler()
        self.remember_me_services = remember_me_services or NullRememberMeServices()
        self.event_publisher = event_publisher

    async def process(self, request: AuthRequest, context: SecurityContext) -> GatewayOutcome:
        """Handle one request and run the terminal success/failure steps.

        Args:
            request: Inbound request
            context: Security context of the request; updated in place

        Returns:
            Outcome telling the HTTP layer what to do next
        """
        try:
            outcome = await self.attempt_authentication(request, context)
        except AuthenticationError as e:
            logger.debug(f"Security context not populated with social token: {e}")
            redirect_url = await self.unsuccessful_authentication(request, context, e)
            return Failed(error=e, redirect_url=redirect_url)

        if isinstance(outcome, Authenticated):
            redirect_url = await self.successful_authentication(
                request, context, outcome.authentication
            )
            return Authenticated(authentication=outcome.authentication, redirect_url=redirect_url)
        return outcome

    async def attempt_authentication(
        self, request: AuthRequest, context: SecurityContext
    ) -> GatewayOutcome:
        """Decide between explicit, implicit and no authentication.

        Raises:
            AuthenticationError: If the attempted provider(s) rejected the request
        """
        provider_ids = self.registry.ids()
        if not provider_ids:
            return CONTINUE

        explicit_provider_id = self.get_requested_provider_id(request)

        if explicit_provider_id is not None:
            try:
                provider = self.registry.get(explicit_provider_id)
            except ProviderNotFoundError:
                logger.warning(f"Request for unknown social provider: {explicit_provider_id}")
                return CONTINUE

            if provider.mode == AuthenticationMode.IMPLICIT:
                logger.debug(f"Provider {explicit_provider_id} cannot be invoked explicitly")
                return CONTINUE
            return await self.attempt_auth_service(
                provider, AuthenticationMode.EXPLICIT, request, context
            )

        if context.is_authenticated:
            return CONTINUE

        result = None
        auth_error: Optional[AuthenticationError] = None
        for provider_id in provider_ids:
            provider = self.registry.get(provider_id)
            if provider.mode == AuthenticationMode.EXPLICIT:
                continue

            try:
                outcome = await self.attempt_auth_service(
                    provider, AuthenticationMode.IMPLICIT, request, context
                )
            except AuthenticationError as e:
                auth_error = self.to_auth_exception(auth_error, e, provider)
                continue

            if isinstance(outcome, Redirect):
                return outcome
            if isinstance(outcome, Authenticated) and outcome.authentication.authenticated:
                result = outcome
                break

        if result is not None:
            return result
        if auth_error is not None:
            raise auth_error
        return CONTINUE

    async def attempt_auth_service(
        self,
        provider: SocialAuthProvider,
        mode: AuthenticationMode,
        request: AuthRequest,
        context: SecurityContext,
    ) -> GatewayOutcome:
        """Attempt authentication (or linking) with a single provider."""
        try:
            token = await provider.get_auth_token(request, mode)
        except RedirectRequired as e:
            logger.debug(f"Provider {provider.provider_id} requested redirect")
            return Redirect(url=e.url)

        if token is None:
            return CONTINUE

        if not context.is_authenticated:
            if not provider.cardinality.authenticate_possible:
                return CONTINUE
            token.details = self.details_source.build_details(request)
            authentication = await self.auth_manager.authenticate(token)
            return Authenticated(authentication=authentication)

        # Already authenticated: link the connection instead of logging in
        user_id = self.user_id_extractor.extract_user_id(context.authentication)
        principal = token.principal
        if user_id and isinstance(principal, ConnectionData):
            return await self.add_connection(provider, request, user_id, principal)
        return CONTINUE

    async def add_connection(
        self,
        provider: SocialAuthProvider,
        request: AuthRequest,
        user_id: str,
        data: ConnectionData,
    ) -> GatewayOutcome:
        """Link a provider identity to the logged-in user.

        Returns:
            Continue if already connected, Refused on a cardinality
            violation, otherwise Redirect to the provider's added URL
        """
        cardinality = provider.cardinality
        connected_user_ids = await self.users_connection_repository.find_user_ids_connected_to(
            data.provider_id, [data.provider_user_id]
        )
        if user_id in connected_user_ids:
            logger.debug(f"User {user_id} already connected to {data.provider_id}")
            return CONTINUE

        if not cardinality.multi_user_id and connected_user_ids:
            return self._refuse(
                user_id, data, "This account is already connected to another user"
            )

        repository = self.users_connection_repository.create_connection_repository(user_id)

        if not cardinality.multi_provider_user_id:
            if await repository.find_connections(data.provider_id):
                return self._refuse(
                    user_id, data, f"Only one {data.provider_id} account may be connected"
                )

        connection = provider.connection_factory.create_connection(data)
        try:
            await connection.sync()
        except ProviderError as e:
            logger.warning(f"Could not refresh profile for {connection}: {e}")

        try:
            await repository.add_connection(
                connection,
                exclusive=not cardinality.multi_user_id,
                single_per_provider=not cardinality.multi_provider_user_id,
            )
        except DuplicateConnectionError:
            logger.debug(f"User {user_id} connected to {data.provider_id} concurrently")
            return CONTINUE
        except ProviderConnectionLimitError:
            return self._refuse(
                user_id, data, f"Only one {data.provider_id} account may be connected"
            )
        except ConnectionConflictError:
            return self._refuse(
                user_id, data, "This account is already connected to another user"
            )

        logger.info(f"Connection {data.provider_id}:{data.provider_user_id} added for user {user_id}")
        return Redirect(url=provider.get_connection_added_redirect_url(request, connection))

    def get_requested_provider_id(self, request: AuthRequest) -> Optional[str]:
        """Provider id named in the request path, or None.

        ``{context}{processes_url}/{provider_id};jsessionid=...`` yields
        ``provider_id``.
        """
        uri = request.path
        path_param_index = uri.find(";")
        if path_param_index > 0:
            uri = uri[:path_param_index]

        context_path = request.context_path or ""
        if not uri.startswith(context_path):
            return None
        uri = uri[len(context_path):]

        if not uri.startswith(self.processes_url):
            return None
        remainder = uri[len(self.processes_url):]

        if not remainder.startswith("/"):
            return None
        return remainder[1:] or None

    def to_auth_exception(
        self,
        previous: Optional[AuthenticationError],
        current: AuthenticationError,
        provider: SocialAuthProvider,
    ) -> Optional[AuthenticationError]:
        """Decide what an implicit-mode failure leaves behind.

        Override to change the policy: raise ``current`` to fail fast, return
        an error to raise once every provider was tried, or return None to
        ignore it. The default ignores implicit failures.
        """
        logger.info(f"Implicit authentication with {provider.provider_id} failed: {current}")
        return None

    async def successful_authentication(
        self, request: AuthRequest, context: SecurityContext, authentication: Authentication
    ) -> Optional[str]:
        """Install the principal, notify collaborators and pick the redirect target."""
        logger.debug(f"Authentication success, updating security context: {authentication.name}")
        context.authentication = authentication

        await self.remember_me_services.login_success(request, authentication)

        if self.event_publisher is not None:
            await self.event_publisher.publish(
                InteractiveAuthenticationSuccessEvent(
                    authentication=authentication, source=type(self).__name__
                )
            )

        return await self.success_handler.on_authentication_success(request, authentication)

    async def unsuccessful_authentication(
        self, request: AuthRequest, context: SecurityContext, error: AuthenticationError
    ) -> Optional[str]:
        """Clear the context, notify collaborators and pick the failure target."""
        context.clear()
        logger.debug(f"Authentication request failed: {error}")

        await self.remember_me_services.login_fail(request)
        return await self.failure_handler.on_authentication_failure(request, error)

    def _refuse(self, user_id: str, data: ConnectionData, reason: str) -> Refused:
        logger.warning(
            f"Refused to connect {data.provider_id}:{data.provider_user_id} "
            f"to user {user_id}: {reason}"
        )
        return Refused(reason=reason, provider_id=data.provider_id)
