"""OAuth 2.0 social provider (authorization code flow).

Works with any provider exposing authorize, token and userinfo endpoints:
- GitHub
- Google
- Facebook
- Any standard OAuth 2.0 / OIDC provider

The ``state`` parameter is a short-lived JWT signed with the service's
state secret, so no server-side storage is needed between the redirect
and the callback. It also carries the local return target (``next``)
from the login request to the callback.
"""

import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from jose import jwt, JWTError

from .errors import ProviderError, RedirectRequired
from .handlers import is_local_path
from .provider import ConnectionFactory, SocialAuthProvider
from social_auth_service.domain.models import (
    AuthenticationMode,
    AuthRequest,
    Connection,
    ConnectionCardinality,
    ConnectionData,
    SocialAuthenticationToken,
)

logger = logging.getLogger(__name__)


class OAuth2AuthProvider(SocialAuthProvider):
    """OAuth 2.0 authorization code flow provider.

    Explicit requests without a ``code`` are redirected to the provider's
    authorize URL; the provider sends the browser back to the same path
    with ``code`` and ``state``, which are exchanged for an access token
    and the user's profile.

    Example Configuration:
        # GitHub
        SOCIAL_PROVIDERS__GITHUB__KIND=oauth2
        SOCIAL_PROVIDERS__GITHUB__CLIENT_ID=xxx
        SOCIAL_PROVIDERS__GITHUB__CLIENT_SECRET=xxx
        SOCIAL_PROVIDERS__GITHUB__AUTHORIZE_URL=https://github.com/login/oauth/authorize
        SOCIAL_PROVIDERS__GITHUB__TOKEN_URL=https://github.com/login/oauth/access_token
        SOCIAL_PROVIDERS__GITHUB__USERINFO_URL=https://api.github.com/user
        SOCIAL_PROVIDERS__GITHUB__USER_ID_FIELD=id
    """

    def __init__(
        self,
        provider_id: str,
        client_id: str,
        client_secret: str,
        authorize_url: str,
        token_url: str,
        userinfo_url: str,
        state_secret_key: str,
        scopes: list[str] = None,
        user_id_field: str = "sub",
        mode: AuthenticationMode = AuthenticationMode.EXPLICIT,
        cardinality: ConnectionCardinality = ConnectionCardinality.ONE_TO_ONE,
        connection_added_redirect_url: str = "/",
        state_algorithm: str = "HS256",
        state_ttl_seconds: int = 600,
        target_url_parameter: Optional[str] = "next",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize OAuth 2.0 provider.

        Args:
            provider_id: Registry id of the provider (e.g. 'github')
            client_id: OAuth 2.0 client ID
            client_secret: OAuth 2.0 client secret
            authorize_url: Provider authorization endpoint
            token_url: Provider token endpoint
            userinfo_url: Provider user profile endpoint
            state_secret_key: Key used to sign the state parameter
            scopes: Scopes to request
            user_id_field: Profile field holding the stable provider user id
            mode: Authentication mode (EXPLICIT by default)
            cardinality: Connection cardinality policy
            connection_added_redirect_url: Target after linking a connection
            state_algorithm: JWT algorithm for the state parameter
            state_ttl_seconds: Lifetime of a state value
            target_url_parameter: Query parameter holding the return target
                that is kept in the state across the round trip
            transport: Optional httpx transport (tests, proxies)
        """
        self.provider_id = provider_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.userinfo_url = userinfo_url
        self.scopes = scopes or []
        self.user_id_field = user_id_field
        self.connection_added_redirect_url = connection_added_redirect_url
        self.target_url_parameter = target_url_parameter

        self._mode = mode
        self._cardinality = cardinality
        self._state_secret_key = state_secret_key
        self._state_algorithm = state_algorithm
        self._state_ttl = timedelta(seconds=state_ttl_seconds)
        self._transport = transport
        self._connection_factory = ConnectionFactory(provider_id, self._fetch_profile)

    @property
    def mode(self) -> AuthenticationMode:
        return self._mode

    @property
    def cardinality(self) -> ConnectionCardinality:
        return self._cardinality

    @property
    def connection_factory(self) -> ConnectionFactory:
        return self._connection_factory

    async def get_auth_token(
        self,
        request: AuthRequest,
        mode: AuthenticationMode,
    ) -> Optional[SocialAuthenticationToken]:
        """Run the step of the authorization code flow the request is at."""
        if not self.supports(mode):
            return None

        error = request.param("error")
        if error:
            description = request.param("error_description") or error
            logger.warning(f"OAuth2 provider {self.provider_id} returned an error: {description}")
            raise ProviderError(self.provider_id, description)

        code = request.param("code")
        if not code:
            if mode == AuthenticationMode.EXPLICIT:
                raise RedirectRequired(self.get_authorize_url(request))
            return None

        claims = self._verify_state(request.param("state"))
        self._restore_target(request, claims)

        tokens = await self._exchange_code(code, request.url)
        data = await self._build_connection_data(tokens)
        connection = self.connection_factory.create_connection(data)
        logger.debug(f"OAuth2 code exchanged for {connection}")
        return SocialAuthenticationToken(connection)

    def get_connection_added_redirect_url(
        self, request: AuthRequest, connection: Connection
    ) -> str:
        return self.connection_added_redirect_url

    def get_authorize_url(self, request: AuthRequest) -> str:
        """Build the provider authorization URL for this request.

        The callback is the request URL itself, so the provider returns the
        browser to the same gateway path.
        """
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": request.url,
            "state": self._create_state(request),
        }
        if self.scopes:
            params["scope"] = " ".join(self.scopes)

        separator = "&" if "?" in self.authorize_url else "?"
        return f"{self.authorize_url}{separator}{urlencode(params)}"

    def _create_state(self, request: AuthRequest) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "aud": self.provider_id,
            "iat": now,
            "exp": now + self._state_ttl,
            "jti": str(uuid.uuid4()),
        }
        if self.target_url_parameter:
            target = request.param(self.target_url_parameter)
            if is_local_path(target):
                payload["next"] = target
        return jwt.encode(payload, self._state_secret_key, algorithm=self._state_algorithm)

    def _verify_state(self, state: Optional[str]) -> dict:
        if not state:
            raise ProviderError(self.provider_id, "Missing state parameter")
        try:
            return jwt.decode(
                state,
                self._state_secret_key,
                algorithms=[self._state_algorithm],
                audience=self.provider_id,
            )
        except JWTError as e:
            logger.warning(f"OAuth2 state validation failed for {self.provider_id}: {e}")
            raise ProviderError(self.provider_id, "Invalid state parameter")

    def _restore_target(self, request: AuthRequest, claims: dict) -> None:
        """Put the return target saved in the state back on the callback request"""
        target = claims.get("next")
        if not self.target_url_parameter or not target:
            return
        if request.param(self.target_url_parameter) is None:
            request.query_params[self.target_url_parameter] = target

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=10.0)

    async def _exchange_code(self, code: str, redirect_uri: str) -> dict:
        """Exchange authorization code for an access token response."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    self.token_url,
                    data=data,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error(f"OAuth2 token exchange with {self.provider_id} failed: {e}")
            raise ProviderError(self.provider_id, "Token endpoint unreachable")

        if response.status_code != 200:
            logger.error(f"OAuth2 token exchange failed: {response.text}")
            raise ProviderError(self.provider_id, f"Token exchange failed: {response.status_code}")

        tokens = self._json_body(response, "Token endpoint")
        if "access_token" not in tokens:
            raise ProviderError(self.provider_id, tokens.get("error", "No access token returned"))
        return tokens

    async def _get_userinfo(self, access_token: str) -> dict:
        try:
            async with self._client() as client:
                response = await client.get(
                    self.userinfo_url,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Accept": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"Userinfo request to {self.provider_id} failed: {e}")
            raise ProviderError(self.provider_id, "Userinfo endpoint unreachable")

        if response.status_code != 200:
            raise ProviderError(self.provider_id, f"Userinfo request failed: {response.status_code}")
        return self._json_body(response, "Userinfo endpoint")

    def _json_body(self, response: httpx.Response, endpoint: str) -> dict:
        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"{endpoint} of {self.provider_id} returned invalid JSON: {e}")
            raise ProviderError(self.provider_id, f"{endpoint} returned an invalid response")
        if not isinstance(body, dict):
            raise ProviderError(self.provider_id, f"{endpoint} returned an invalid response")
        return body

    async def _build_connection_data(self, tokens: dict) -> ConnectionData:
        access_token = tokens["access_token"]
        userinfo = await self._get_userinfo(access_token)

        provider_user_id = userinfo.get(self.user_id_field)
        if provider_user_id is None:
            raise ProviderError(
                self.provider_id, f"Profile has no '{self.user_id_field}' field"
            )

        expires_in = tokens.get("expires_in")
        return ConnectionData(
            provider_id=self.provider_id,
            provider_user_id=str(provider_user_id),
            access_token=access_token,
            refresh_token=tokens.get("refresh_token"),
            expire_time=int(time.time()) + int(expires_in) if expires_in else None,
            **_profile_values(userinfo),
        )

    async def _fetch_profile(self, data: ConnectionData) -> dict[str, Any]:
        userinfo = await self._get_userinfo(data.access_token)
        return _profile_values(userinfo)


def _profile_values(userinfo: dict) -> dict[str, Any]:
    """Map common userinfo fields (OIDC, GitHub, Facebook) to connection values."""
    return {
        "display_name": (
            userinfo.get("name")
            or userinfo.get("login")
            or userinfo.get("preferred_username")
            or userinfo.get("email")
        ),
        "profile_url": userinfo.get("profile") or userinfo.get("html_url") or userinfo.get("link"),
        "image_url": userinfo.get("picture") or userinfo.get("avatar_url"),
    }
