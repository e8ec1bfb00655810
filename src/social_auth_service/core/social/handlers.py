"""Collaborators invoked when a social login succeeds or fails.

Defaults:
- WebAuthenticationDetailsSource: records client address and session id
- NullRememberMeServices: no persistent login
- LoggingEventPublisher: logs interactive authentication events
- RedirectSuccessHandler / RedirectFailureHandler: compute redirect targets
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol
from urllib.parse import urlencode, urlparse

from .errors import AuthenticationError
from social_auth_service.domain.models import Authentication, AuthRequest, WebAuthenticationDetails

logger = logging.getLogger(__name__)


class WebAuthenticationDetailsSource:
    """Builds the details attached to a token before authentication."""

    def build_details(self, request: AuthRequest) -> WebAuthenticationDetails:
        return WebAuthenticationDetails(
            remote_address=request.remote_address,
            session_id=request.session_id,
        )


class RememberMeServices(Protocol):
    async def login_success(self, request: AuthRequest, authentication: Authentication) -> None:
        ...

    async def login_fail(self, request: AuthRequest) -> None:
        ...


class NullRememberMeServices:
    """Remember-me disabled."""

    async def login_success(self, request: AuthRequest, authentication: Authentication) -> None:
        pass

    async def login_fail(self, request: AuthRequest) -> None:
        pass


@dataclass(frozen=True)
class InteractiveAuthenticationSuccessEvent:
    """A user logged in through an interactive provider flow."""
    authentication: Authentication
    source: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AuthenticationEventPublisher(Protocol):
    async def publish(self, event: InteractiveAuthenticationSuccessEvent) -> None:
        ...


class LoggingEventPublisher:
    """Publishes authentication events to the log."""

    async def publish(self, event: InteractiveAuthenticationSuccessEvent) -> None:
        logger.info(
            f"Interactive authentication success: user={event.authentication.name} "
            f"provider={event.authentication.provider_id} source={event.source}"
        )


def is_local_path(url: Optional[str]) -> bool:
    """True for same-origin paths like '/dashboard' (not '//evil.example')"""
    if not url or not url.startswith("/") or url.startswith("//"):
        return False
    parsed = urlparse(url)
    return not parsed.scheme and not parsed.netloc


class RedirectSuccessHandler:
    """Chooses where to send the client after a successful login.

    A local path in the ``target_url_parameter`` query parameter wins over
    the default target.
    """

    def __init__(self, default_target_url: str = "/", target_url_parameter: Optional[str] = "next"):
        self.default_target_url = default_target_url
        self.target_url_parameter = target_url_parameter

    async def on_authentication_success(
        self, request: AuthRequest, authentication: Authentication
    ) -> Optional[str]:
        if self.target_url_parameter:
            target = request.param(self.target_url_parameter)
            if is_local_path(target):
                return target
            if target:
                logger.warning(f"Ignoring non-local redirect target: {target}")
        return self.default_target_url


class RedirectFailureHandler:
    """Redirects failed logins to ``failure_url``, or answers 401 when unset."""

    def __init__(self, failure_url: Optional[str] = None):
        self.failure_url = failure_url

    async def on_authentication_failure(
        self, request: AuthRequest, error: AuthenticationError
    ) -> Optional[str]:
        if not self.failure_url:
            return None
        separator = "&" if "?" in self.failure_url else "?"
        return f"{self.failure_url}{separator}{urlencode({'error': str(error)})}"
