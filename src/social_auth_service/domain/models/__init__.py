"""Domain models for Social Auth Service"""

from social_auth_service.domain.models.api_social import (
    ConnectionListResponse,
    ConnectionResponse,
    LogoutResponse,
    PrincipalResponse,
    ProviderInfo,
    ProviderListResponse,
)
from social_auth_service.domain.models.auth import (
    LocalUser,
    parse_utc_timestamp,
    to_json_compatible,
)
from social_auth_service.domain.models.outcome import (
    CONTINUE,
    Authenticated,
    Continue,
    Failed,
    GatewayOutcome,
    Redirect,
    Refused,
)
from social_auth_service.domain.models.social import (
    Authentication,
    AuthenticationMode,
    AuthRequest,
    Connection,
    ConnectionCardinality,
    ConnectionData,
    ConnectionKey,
    ProfileFetcher,
    SecurityContext,
    SocialAuthenticationToken,
    WebAuthenticationDetails,
)

__all__ = [
    # Account models
    "LocalUser",
    "parse_utc_timestamp",
    "to_json_compatible",
    # Social models
    "Authentication",
    "AuthenticationMode",
    "AuthRequest",
    "Connection",
    "ConnectionCardinality",
    "ConnectionData",
    "ConnectionKey",
    "ProfileFetcher",
    "SecurityContext",
    "SocialAuthenticationToken",
    "WebAuthenticationDetails",
    # Gateway outcomes
    "CONTINUE",
    "Authenticated",
    "Continue",
    "Failed",
    "GatewayOutcome",
    "Redirect",
    "Refused",
    # API models
    "ConnectionListResponse",
    "ConnectionResponse",
    "LogoutResponse",
    "PrincipalResponse",
    "ProviderInfo",
    "ProviderListResponse",
]
