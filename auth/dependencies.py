"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. Session cookie ("token") -- set by sign-up / sign-in.
  2. Authorization: Bearer <token> header -- API clients.

try_get_claims() is the soft variant used by the admission middleware to
derive a role; it returns None instead of raising. get_current_user() raises
TokenInvalidError, which api/main.py turns into a 401.

Both read the services from request.app.state (wired in the lifespan), so
the auth package never reaches for module-level configuration.

Layer rule: no imports from api/ or admission/. fastapi/starlette imports are
allowed because this module is part of the dependency injection layer.
"""

from __future__ import annotations

from starlette.requests import Request

from auth.errors import TokenInvalidError
from auth.models import Claims, User


def extract_token(request: Request) -> str | None:
    """Return the raw session token from the cookie or Bearer header, if any."""
    token = request.app.state.session_cookie.read(request)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip() or None
    return token


def try_get_claims(request: Request) -> Claims | None:
    """Verify the request's session token. None when absent or invalid."""
    token = extract_token(request)
    if not token:
        return None
    try:
        return request.app.state.tokens.verify(token)
    except TokenInvalidError:
        return None


def get_current_user(request: Request) -> User:
    """Require a valid session and an existing account.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = extract_token(request)
    if not token:
        raise TokenInvalidError("No session token")
    claims = request.app.state.tokens.verify(token)
    user = request.app.state.user_store.get_by_id(claims.id)
    if user is None:
        raise TokenInvalidError("Session refers to a deleted account")
    return user
