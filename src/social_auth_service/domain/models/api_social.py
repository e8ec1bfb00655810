"""Social API Models

Purpose: Response models for the connection management endpoints
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from social_auth_service.domain.models.social import Authentication, Connection


class ConnectionResponse(BaseModel):
    """Public view of a linked provider account"""

    provider_id: str = Field(..., examples=["github"])
    provider_user_id: str = Field(..., examples=["583231"])
    display_name: Optional[str] = None
    profile_url: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_connection(cls, connection: Connection) -> "ConnectionResponse":
        return cls(
            provider_id=connection.key.provider_id,
            provider_user_id=connection.key.provider_user_id,
            display_name=connection.display_name,
            profile_url=connection.profile_url,
            image_url=connection.image_url,
        )


class ConnectionListResponse(BaseModel):
    """Connections of the current user"""

    connections: List[ConnectionResponse]


class PrincipalResponse(BaseModel):
    """Current authenticated principal"""

    user_id: str
    username: str
    email: str
    display_name: str
    roles: List[str]
    authorities: List[str]
    provider_id: Optional[str] = None

    @classmethod
    def from_authentication(cls, authentication: Authentication) -> "PrincipalResponse":
        user = authentication.principal
        return cls(
            user_id=user.user_id,
            username=user.username,
            email=user.email,
            display_name=user.display_name,
            roles=user.roles,
            authorities=authentication.authorities,
            provider_id=authentication.provider_id,
        )


class ProviderInfo(BaseModel):
    """Registered identity provider"""

    provider_id: str
    mode: str
    login_url: Optional[str] = Field(
        None, description="Path that starts an explicit login, if the provider supports one"
    )


class ProviderListResponse(BaseModel):
    providers: List[ProviderInfo]


class LogoutResponse(BaseModel):
    """Logout confirmation"""

    message: str = "Logged out successfully"
