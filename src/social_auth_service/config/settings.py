"""Configuration Settings for Social Auth Service

Manages environment variables and application configuration.

Social providers are configured as a mapping keyed by provider id, either
as a JSON document or through nested variables, e.g.:

    SOCIAL_PROVIDERS__GITHUB__KIND=oauth2
    SOCIAL_PROVIDERS__GITHUB__CLIENT_ID=xxx
    SOCIAL_PROVIDERS__GITHUB__AUTHORIZE_URL=https://github.com/login/oauth/authorize
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class SocialProviderConfig(BaseModel):
    """Configuration of a single identity provider adapter"""

    kind: Literal["oauth2", "bearer"] = "oauth2"
    mode: Optional[Literal["implicit", "explicit", "both"]] = None  # None: adapter default
    cardinality: Literal["one_to_one", "one_to_many", "many_to_one", "many_to_many"] = "one_to_one"

    # OAuth 2.0 authorization code flow
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    authorize_url: Optional[str] = None
    token_url: Optional[str] = None
    userinfo_url: Optional[str] = None
    scopes: list[str] = Field(default_factory=list)
    user_id_field: str = "sub"

    # OpenID Connect bearer id_token validation
    issuer: Optional[str] = None
    jwks_uri: Optional[str] = None
    audience: Optional[str] = None

    connection_added_redirect_url: Optional[str] = None


class Settings(BaseSettings):
    """Application settings"""

    # Service info
    service_name: str = "social-auth-service"
    service_version: str = "1.0.0"
    environment: str = "development"

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Storage: "redis" for deployments, "memory" for single-process development
    storage_backend: Literal["redis", "memory"] = "redis"

    # Redis configuration
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None

    @property
    def redis_url(self) -> str:
        """Construct Redis URL from components"""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Social authentication
    processes_url: str = "/j_spring_social_security_check"
    default_target_url: str = "/"
    target_url_parameter: str = "next"
    failure_url: Optional[str] = None  # None: respond 401 instead of redirecting
    connection_added_redirect_url: str = "/"
    implicit_signup: bool = False
    social_providers: dict[str, SocialProviderConfig] = Field(default_factory=dict)

    # Signed OAuth state
    state_secret_key: str = "dev-state-secret-change-in-production"
    state_algorithm: str = "HS256"
    state_ttl_seconds: int = 600

    # Session
    session_cookie_name: str = "SOCIAL_SESSION"
    session_ttl_seconds: int = 86400  # 24 hours
    session_cookie_secure: bool = False

    # CORS configuration
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_nested_delimiter = "__"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance

    Returns:
        Settings instance
    """
    return Settings()
