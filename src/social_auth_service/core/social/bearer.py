"""OpenID Connect bearer token provider.

Authenticates requests that already carry a provider-issued id_token in
the ``Authorization: Bearer`` header (SPAs, mobile clients). Probed
implicitly on every unauthenticated request.
"""

import logging
from typing import Optional

import httpx
from jose import jwt, JWTError

from .errors import BadCredentialsError, ProviderError
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


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract Bearer token from an Authorization header value"""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


class BearerTokenAuthProvider(SocialAuthProvider):
    """Validates OpenID id_tokens presented as bearer credentials.

    Tokens whose unverified ``iss`` claim does not match this provider's
    issuer are ignored, so several bearer providers can be registered side
    by side.

    Example Configuration:
        SOCIAL_PROVIDERS__GOOGLE__KIND=bearer
        SOCIAL_PROVIDERS__GOOGLE__ISSUER=https://accounts.google.com
        SOCIAL_PROVIDERS__GOOGLE__AUDIENCE=xxx.apps.googleusercontent.com
    """

    def __init__(
        self,
        provider_id: str,
        issuer: str,
        audience: str,
        jwks_uri: Optional[str] = None,
        mode: AuthenticationMode = AuthenticationMode.IMPLICIT,
        cardinality: ConnectionCardinality = ConnectionCardinality.ONE_TO_ONE,
        connection_added_redirect_url: str = "/",
        algorithms: list[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider_id = provider_id
        self.issuer = issuer.rstrip("/")
        self.audience = audience
        self.jwks_uri = jwks_uri
        self.algorithms = algorithms or ["RS256"]  # Most OIDC providers use RS256
        self.connection_added_redirect_url = connection_added_redirect_url

        self._mode = mode
        self._cardinality = cardinality
        self._transport = transport
        self._connection_factory = ConnectionFactory(provider_id)

        # JWKS (lazy-loaded)
        self._jwks: Optional[dict] = None

    @property
    def mode(self) -> AuthenticationMode:
        return self._mode

    @property
    def cardinality(self) -> ConnectionCardinality:
        return self._cardinality

    @property
    def connection_factory(self) -> ConnectionFactory:
        return self._connection_factory

    def can_handle(self, token: str) -> bool:
        """Cheap pre-check on the unverified issuer. Never raises."""
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            return False
        return str(claims.get("iss", "")).rstrip("/") == self.issuer

    async def get_auth_token(
        self,
        request: AuthRequest,
        mode: AuthenticationMode,
    ) -> Optional[SocialAuthenticationToken]:
        if not self.supports(mode):
            return None

        token = extract_bearer_token(request.header("authorization"))
        if not token or not self.can_handle(token):
            return None

        try:
            claims = await self._decode_id_token(token)
        except JWTError as e:
            logger.warning(f"Bearer token validation failed for {self.provider_id}: {e}")
            raise BadCredentialsError(f"Invalid token: {e}")

        data = ConnectionData(
            provider_id=self.provider_id,
            provider_user_id=str(claims["sub"]),
            display_name=claims.get("name") or claims.get("preferred_username") or claims.get("email"),
            profile_url=claims.get("profile"),
            image_url=claims.get("picture"),
            access_token=token,
            expire_time=claims.get("exp"),
        )
        return SocialAuthenticationToken(self.connection_factory.create_connection(data))

    def get_connection_added_redirect_url(
        self, request: AuthRequest, connection: Connection
    ) -> str:
        return self.connection_added_redirect_url

    async def _get_jwks(self) -> dict:
        """Fetch JSON Web Key Set, discovering its location if not configured."""
        if self._jwks is None:
            try:
                async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                    jwks_uri = self.jwks_uri
                    if not jwks_uri:
                        discovery_url = f"{self.issuer}/.well-known/openid-configuration"
                        response = await client.get(discovery_url)
                        response.raise_for_status()
                        jwks_uri = response.json()["jwks_uri"]
                    response = await client.get(jwks_uri)
                    response.raise_for_status()
                    self._jwks = response.json()
                    logger.info(f"JWKS for {self.provider_id} loaded from {jwks_uri}")
            except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
                logger.error(f"Failed to load JWKS for {self.provider_id}: {e}")
                raise ProviderError(self.provider_id, "Signing keys unavailable")
        return self._jwks

    async def _decode_id_token(self, id_token: str) -> dict:
        """Decode and validate the id_token (signature, expiry, issuer, audience)."""
        jwks = await self._get_jwks()
        claims = jwt.decode(
            id_token,
            jwks,
            algorithms=self.algorithms,
            issuer=self.issuer,
            audience=self.audience,
            options={"verify_at_hash": False},
        )
        if "sub" not in claims:
            raise JWTError("Token has no subject")
        return claims
