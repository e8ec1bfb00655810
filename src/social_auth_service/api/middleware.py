"""Social authentication middleware.

Runs the social authentication gateway in front of every request and
turns its outcome into an HTTP response:
- Redirect: 302 to the provider or the connection-added page
- Authenticated: new session, then 302 to the success target for
  explicit logins, or the downstream app for implicit ones
- Failed: session cleared, 302 to the failure URL or 401
- Continue / Refused: downstream app with ``request.state.security_context``
"""

import logging
import secrets

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from social_auth_service.domain.models import (
    Authenticated,
    AuthRequest,
    Failed,
    Redirect,
    Refused,
)

logger = logging.getLogger(__name__)


def to_auth_request(request: Request, session_id: str = None) -> AuthRequest:
    """Build the framework-neutral request view from a Starlette request"""
    context_path = request.scope.get("root_path", "") or ""
    path = request.url.path
    if context_path and not path.startswith(context_path):
        path = f"{context_path}{path}"

    return AuthRequest(
        path=path,
        context_path=context_path,
        query_params=dict(request.query_params),
        headers={key.lower(): value for key, value in request.headers.items()},
        remote_address=request.client.host if request.client else None,
        session_id=session_id,
        base_url=f"{request.url.scheme}://{request.url.netloc}",
    )


class SocialAuthenticationMiddleware(BaseHTTPMiddleware):
    """Applies social authentication to every request"""

    async def dispatch(self, request: Request, call_next):
        components = getattr(request.app.state, "social", None)
        if components is None:
            return await call_next(request)

        settings = components.settings
        session_id = request.cookies.get(settings.session_cookie_name)
        context = await components.context_repository.load(session_id)
        auth_request = to_auth_request(request, session_id)

        outcome = await components.gateway.process(auth_request, context)

        if isinstance(outcome, Redirect):
            return RedirectResponse(outcome.url, status_code=302)

        if isinstance(outcome, Failed):
            await components.context_repository.clear(session_id)
            if outcome.redirect_url:
                response = RedirectResponse(outcome.redirect_url, status_code=302)
            else:
                response = JSONResponse(status_code=401, content={"detail": str(outcome.error)})
            response.delete_cookie(settings.session_cookie_name)
            return response

        if isinstance(outcome, Authenticated):
            # New session id on login
            await components.context_repository.clear(session_id)
            session_id = secrets.token_urlsafe(32)
            await components.context_repository.save(session_id, context)

            explicit = components.gateway.get_requested_provider_id(auth_request) is not None
            if explicit and outcome.redirect_url:
                response = RedirectResponse(outcome.redirect_url, status_code=302)
            else:
                request.state.security_context = context
                response = await call_next(request)

            response.set_cookie(
                settings.session_cookie_name,
                session_id,
                max_age=settings.session_ttl_seconds,
                httponly=True,
                secure=settings.session_cookie_secure,
                samesite="lax",
            )
            return response

        if isinstance(outcome, Refused):
            request.state.link_refused = outcome.reason

        request.state.security_context = context
        return await call_next(request)
