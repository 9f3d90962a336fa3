"""
api/main.py -- FastAPI application entry point for AuthGate.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one access-log line per request
  4. security_headers      -- helmet-style response headers
  5. admission_gate        -- bot / shield / role rate-limit decision

Lifespan builds the services once from Settings and hangs them on app.state;
route handlers and dependencies read them from there. The signing secret is
handed to TokenService at that point and read from nowhere else.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from admission.controller import AdmissionController, admission_gate
from admission.engine import LocalDecisionEngine
from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse, MessageResponse
from api.routes.v1.auth import router as auth_router
from auth.cookies import SessionCookie
from auth.credentials import CredentialService
from auth.errors import (
    AuthError,
    DuplicateUserError,
    HashingError,
    InvalidCredentialsError,
    SigningError,
    TokenInvalidError,
    UserNotFoundError,
    ValidationError,
)
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")

# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def wire_services(app: FastAPI, settings: Settings, user_store: UserStore) -> None:
    """Build every service from settings and attach it to app.state.

    Shared by the real lifespan and the test fixtures so both run the same
    wiring; only the store differs.
    """
    app.state.settings = settings
    app.state.user_store = user_store
    app.state.credentials = CredentialService(user_store, rounds=settings.bcrypt_rounds)
    app.state.tokens = TokenService(settings.jwt_secret)
    app.state.session_cookie = SessionCookie(secure=settings.cookie_secure, max_age=app.state.tokens.max_age)
    if settings.admission_enabled:
        engine = LocalDecisionEngine(settings.admission_storage_uri)
        app.state.admission = AdmissionController(engine, mode=settings.admission_mode)
    else:
        app.state.admission = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the user store and wire services on startup; dispose on shutdown."""
    settings = get_settings()
    logger.info("AuthGate API starting up (environment=%s)", settings.environment)
    wire_services(app, settings, UserStore(settings.database_url))
    logger.info(
        "Services initialized (secure_cookies=%s, admission=%s)",
        settings.cookie_secure,
        settings.admission_mode if settings.admission_enabled else "disabled",
    )

    yield

    app.state.user_store.close()
    logger.info("AuthGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

_settings = get_settings()

app = FastAPI(
    title="AuthGate API",
    description="Credential authentication, stateless sessions, and role-aware admission control.",
    version=VERSION,
    lifespan=lifespan,
)

app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps middleware so the LAST one registered is the outermost.
# Register innermost first: admission -> headers -> logging -> CORS -> host.
# ---------------------------------------------------------------------------

app.middleware("http")(admission_gate)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    """Add conservative security headers to every response (helmet defaults)."""
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same {error, message?, details?} envelope.
# Internal causes go to the log, never to the response body.
# ---------------------------------------------------------------------------

_INVALID_CREDENTIALS = (401, "Invalid credentials", "Invalid email or password.")
_INTERNAL = (500, "Internal Server Error", "An unexpected error occurred.")

# Both enumeration-sensitive errors deliberately share one entry.
_AUTH_ERROR_MAP: dict[type[AuthError], tuple[int, str, str | None]] = {
    ValidationError: (400, "Validation failed", None),
    DuplicateUserError: (409, "User already exists", "An account with this email already exists."),
    UserNotFoundError: _INVALID_CREDENTIALS,
    InvalidCredentialsError: _INVALID_CREDENTIALS,
    TokenInvalidError: (401, "Unauthorized", "Authentication required."),
    HashingError: _INTERNAL,
    SigningError: _INTERNAL,
}


def _error_response(status_code: int, error: str, message: str | None = None, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message, details=details).model_dump(exclude_none=True),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map the auth/errors.py taxonomy onto HTTP status codes."""
    status_code, error, message = _AUTH_ERROR_MAP.get(type(exc), _INTERNAL)
    if status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    if isinstance(exc, ValidationError):
        message = str(exc)
    return _error_response(status_code, error, message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 for the per-IP sign-in throttle, with Retry-After."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "Too Many Requests", "Too many sign-in attempts. Please try again later.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one readable message per failing field."""
    details = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        details.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _error_response(400, "Validation failed", "; ".join(details), details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The traceback is logged only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(*_INTERNAL)


# ---------------------------------------------------------------------------
# Root and health endpoints
# ---------------------------------------------------------------------------


@app.get("/", response_model=MessageResponse, tags=["Health"])
async def root() -> MessageResponse:
    return MessageResponse(message="AuthGate API")


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and per-component status. Never admission-gated."""
    db_ok = request.app.state.user_store.ping()
    return HealthResponse(version=VERSION, components={"app": "ok", "database": "ok" if db_ok else "error"})
