"""Social Connection Routes

Purpose: FastAPI routes for inspecting the session and managing linked
provider accounts

Key Endpoints:
- GET /api/v1/social/me: Current principal
- GET /api/v1/social/providers: Registered providers
- GET /api/v1/social/connections: Current user's connections
- DELETE /api/v1/social/connections/{provider_id}: Unlink a provider
- DELETE /api/v1/social/connections/{provider_id}/{provider_user_id}: Unlink one account
- POST /api/v1/social/logout: End the session
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse

from social_auth_service.api.dependencies import (
    SocialAuthComponents,
    get_components,
    get_security_context,
    require_authentication,
)
from social_auth_service.domain.models import (
    Authentication,
    AuthenticationMode,
    ConnectionKey,
    ConnectionListResponse,
    ConnectionResponse,
    LogoutResponse,
    PrincipalResponse,
    ProviderInfo,
    ProviderListResponse,
)

# Initialize router and logger
router = APIRouter(prefix="/api/v1/social", tags=["social"])
logger = logging.getLogger(__name__)


@router.get("/me", response_model=PrincipalResponse)
async def get_current_principal(
    authentication: Authentication = Depends(require_authentication),
) -> PrincipalResponse:
    """Current authenticated principal"""
    return PrincipalResponse.from_authentication(authentication)


@router.get("/providers", response_model=ProviderListResponse)
async def list_providers(
    components: SocialAuthComponents = Depends(get_components),
) -> ProviderListResponse:
    """Registered identity providers and how to start a login with them"""
    processes_url = components.gateway.processes_url
    providers = []
    for provider_id in components.registry.ids():
        provider = components.registry.get(provider_id)
        providers.append(
            ProviderInfo(
                provider_id=provider_id,
                mode=provider.mode.value,
                login_url=(
                    None if provider.mode == AuthenticationMode.IMPLICIT
                    else f"{processes_url}/{provider_id}"
                ),
            )
        )
    return ProviderListResponse(providers=providers)


@router.get("/connections", response_model=ConnectionListResponse)
async def list_connections(
    authentication: Authentication = Depends(require_authentication),
    components: SocialAuthComponents = Depends(get_components),
) -> ConnectionListResponse:
    """Provider accounts linked to the current user"""
    repository = components.users_connection_repository.create_connection_repository(
        authentication.name
    )
    connections = await repository.find_all_connections()
    return ConnectionListResponse(
        connections=[ConnectionResponse.from_connection(c) for c in connections]
    )


@router.delete("/connections/{provider_id}", status_code=204)
async def remove_provider_connections(
    provider_id: str,
    authentication: Authentication = Depends(require_authentication),
    components: SocialAuthComponents = Depends(get_components),
) -> Response:
    """Unlink every account of one provider from the current user"""
    repository = components.users_connection_repository.create_connection_repository(
        authentication.name
    )
    removed = await repository.remove_connections(provider_id)
    logger.info(f"User {authentication.name} removed {removed} {provider_id} connection(s)")
    return Response(status_code=204)


@router.delete("/connections/{provider_id}/{provider_user_id}", status_code=204)
async def remove_connection(
    provider_id: str,
    provider_user_id: str,
    authentication: Authentication = Depends(require_authentication),
    components: SocialAuthComponents = Depends(get_components),
) -> Response:
    """Unlink one provider account from the current user"""
    repository = components.users_connection_repository.create_connection_repository(
        authentication.name
    )
    if not await repository.remove_connection(ConnectionKey(provider_id, provider_user_id)):
        raise HTTPException(status_code=404, detail="Connection not found")
    return Response(status_code=204)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    response: Response,
    components: SocialAuthComponents = Depends(get_components),
) -> LogoutResponse:
    """End the current session"""
    cookie_name = components.settings.session_cookie_name
    await components.context_repository.clear(request.cookies.get(cookie_name))
    response.delete_cookie(cookie_name)
    return LogoutResponse()


async def social_callback_fallback(
    request: Request,
    provider_id: str,
    components: SocialAuthComponents = Depends(get_components),
):
    """Reached only when the gateway let a provider path through

    The gateway answers every successful provider round trip itself; a
    request ending up here was refused a connection, linked an account
    that was already connected, or named a provider that cannot be
    invoked explicitly.
    """
    reason = getattr(request.state, "link_refused", None)
    if reason:
        raise HTTPException(status_code=409, detail=reason)
    if get_security_context(request).is_authenticated:
        return RedirectResponse(components.settings.default_target_url, status_code=302)
    raise HTTPException(status_code=404, detail=f"No explicit login for provider '{provider_id}'")
