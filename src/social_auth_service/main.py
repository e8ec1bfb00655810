"""Social Auth Service

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from social_auth_service.api.dependencies import SocialAuthComponents, build_components
from social_auth_service.api.middleware import SocialAuthenticationMiddleware
from social_auth_service.api.routes import social
from social_auth_service.config.settings import Settings, get_settings
from social_auth_service.infrastructure.redis.client import close_redis_client, get_redis_client

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    components: Optional[SocialAuthComponents] = None,
) -> FastAPI:
    """Create the FastAPI application

    Args:
        app_settings: Settings to use; defaults to the environment
        components: Pre-built social components; when given, startup
            does not connect to Redis

    Returns:
        Configured FastAPI application
    """
    app_settings = app_settings or (components.settings if components else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events"""
        logger.info(f"Starting {app_settings.service_name} v{app_settings.service_version}")
        logger.info(f"Environment: {app_settings.environment}")

        use_redis = components is None and app_settings.storage_backend == "redis"
        if components is None:
            redis_client = None
            if use_redis:
                try:
                    redis_client = (await get_redis_client()).get_client()
                    logger.info("Redis connection established")
                except Exception as e:
                    logger.error(f"Failed to connect to Redis: {e}")
                    raise
            app.state.social = build_components(app_settings, redis_client)
            logger.info(f"Social providers registered: {app.state.social.registry.ids()}")

        yield

        logger.info("Shutting down Social Auth Service")
        if use_redis:
            await close_redis_client()
            logger.info("Redis connection closed")

    app = FastAPI(
        title="Social Auth Service",
        version=app_settings.service_version,
        description="Social sign-in and account linking gateway",
        lifespan=lifespan,
    )
    if components is not None:
        app.state.social = components

    app.add_middleware(SocialAuthenticationMiddleware)

    # CORS configuration (outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=app_settings.cors_allow_credentials,
        allow_methods=app_settings.cors_allow_methods,
        allow_headers=app_settings.cors_allow_headers,
    )

    # Health check endpoint
    @app.get("/health")
    async def root_health_check():
        """Root health check endpoint"""
        return {
            "status": "healthy",
            "service": app_settings.service_name,
            "version": app_settings.service_version,
            "environment": app_settings.environment,
            "storage_backend": app_settings.storage_backend,
        }

    @app.get("/")
    async def root():
        """Root endpoint with service information"""
        return {
            "service": app_settings.service_name,
            "version": app_settings.service_version,
            "description": "Social Authentication Service",
            "docs": "/docs",
            "health": "/health",
            "providers": "/api/v1/social/providers",
        }

    app.include_router(social.router)
    app.add_api_route(
        f"{app_settings.processes_url.rstrip('/')}/{{provider_id}}",
        social.social_callback_fallback,
        methods=["GET"],
        tags=["social"],
    )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler for unhandled errors"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later."
            }
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "social_auth_service.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
