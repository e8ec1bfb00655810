"""Outcomes of the social authentication gateway

The gateway reports what the HTTP layer must do next as one of these
values instead of signalling redirects through exceptions.
"""

from dataclasses import dataclass
from typing import Optional, Union

from social_auth_service.domain.models.social import Authentication


@dataclass(frozen=True)
class Continue:
    """Nothing to do; the request proceeds with its current authentication"""


@dataclass(frozen=True)
class Authenticated:
    """A new login succeeded and the security context was updated"""
    authentication: Authentication
    redirect_url: Optional[str] = None


@dataclass(frozen=True)
class Redirect:
    """Stop processing and redirect the client"""
    url: str


@dataclass(frozen=True)
class Failed:
    """Authentication was attempted and rejected; the context was cleared"""
    error: Exception
    redirect_url: Optional[str] = None


@dataclass(frozen=True)
class Refused:
    """A connection could not be linked to the current user"""
    reason: str
    provider_id: str


GatewayOutcome = Union[Continue, Authenticated, Redirect, Failed, Refused]

CONTINUE = Continue()
