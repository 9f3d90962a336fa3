"""
api/routes/v1/auth.py -- Sign-up, sign-in, sign-out and session lookup.

Routes:
  POST /api/v1/auth/sign-up   -- create account; sets session cookie; 201
  POST /api/v1/auth/sign-in   -- password login; sets session cookie; 200
  POST /api/v1/auth/sign-out  -- clears the cookie if present; always 200
  GET  /api/v1/auth/me        -- current user (requires a session)

Handlers are plain `def`: bcrypt and SQL block, so FastAPI runs them in its
worker thread pool and the event loop stays free for other requests.

Errors are not handled here. CredentialService raises the auth/errors.py
taxonomy and api/main.py maps it to status codes, including the single
"Invalid credentials" 401 for both unknown email and wrong password.

Security:
  POST /sign-in is throttled per IP by slowapi (SIGNIN_RATE_LIMIT).
  Cache-Control: no-store on responses that carry a fresh session.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, signin_limit
from api.models import AuthResponse, MessageResponse, SignInRequest, SignUpRequest, UserPayload
from auth.credentials import CredentialService
from auth.dependencies import get_current_user
from auth.models import Claims, User

logger = logging.getLogger("authgate.api")

# Auth policy:
# - POST /api/v1/auth/sign-up:   public
# - POST /api/v1/auth/sign-in:   public, throttled per IP
# - POST /api/v1/auth/sign-out:  public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:        requires a valid session (get_current_user)
router = APIRouter()


@router.post("/auth/sign-up", response_model=AuthResponse, status_code=201)
def sign_up(request: Request, body: SignUpRequest) -> JSONResponse:
    """Register an account and start a session for it."""
    credentials: CredentialService = request.app.state.credentials
    user = credentials.create_user(
        name=body.name or "",
        email=body.email,
        password=body.password,
        role=body.role.value,
    )
    return _session_response(request, user, status_code=201, message="User registered.")


@router.post("/auth/sign-in", response_model=AuthResponse)
@limiter.limit(signin_limit)
def sign_in(request: Request, body: SignInRequest) -> JSONResponse:
    """Authenticate with email and password; start a session."""
    credentials: CredentialService = request.app.state.credentials
    user = credentials.authenticate_user(email=body.email, password=body.password)
    return _session_response(request, user, status_code=200, message="Signed in.")


@router.post("/auth/sign-out", response_model=MessageResponse)
def sign_out(request: Request) -> JSONResponse:
    """End the session. Same 200 whether or not a cookie was sent."""
    session_cookie = request.app.state.session_cookie
    resp = JSONResponse(status_code=200, content=MessageResponse(message="Signed out.").model_dump())
    if session_cookie.read(request):
        session_cookie.clear(resp)
        logger.info("Session cookie cleared")
    else:
        logger.info("Sign-out without a session cookie")
    return resp


@router.get("/auth/me", response_model=UserPayload)
def me(current_user: User = Depends(get_current_user)) -> UserPayload:
    """Return the identity behind the current session."""
    return UserPayload.from_user(current_user)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _session_response(request: Request, user: User, status_code: int, message: str) -> JSONResponse:
    token = request.app.state.tokens.issue(Claims(id=user.id, email=user.email, role=user.role))
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(message=message, user=UserPayload.from_user(user)).model_dump(),
    )
    request.app.state.session_cookie.attach(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp
