"""
auth/tokens.py -- Signed session tokens (JWT, HS256).

Security design decisions:
  JWT: python-jose with HS256. Tokens carry id, email, role, iat and exp.
       The lifetime is fixed at one day; there is no refresh. A session that
       expires means signing in again.

  Secret: injected into TokenService at construction. api/main.py builds the
       service once at startup from Settings.jwt_secret; nothing in this module
       reads configuration on its own.

  Revocation: none. Verification is a pure function of the token and the
       secret, so a token stays valid until exp even after sign-out. The short
       lifetime bounds that window.

Layer rule: no imports from api/ or admission/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import SigningError, TokenInvalidError
from auth.models import Claims

logger = logging.getLogger("authgate.auth")

ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(days=1)

_REQUIRED_CLAIMS = ("id", "email", "role", "iat", "exp")


class TokenService:
    """Issue and verify session tokens with a server-held secret.

    Usage:
        tokens = TokenService(settings.jwt_secret)
        token = tokens.issue(Claims(id=1, email="ada@example.com", role="user"))
        claims = tokens.verify(token)
    """

    def __init__(self, secret: str, lifetime: timedelta = TOKEN_LIFETIME) -> None:
        self._secret = secret
        self.lifetime = lifetime

    @property
    def max_age(self) -> int:
        """Token lifetime in whole seconds, for cookie Max-Age."""
        return int(self.lifetime.total_seconds())

    def issue(self, claims: Claims, now: datetime | None = None) -> str:
        """Encode a signed JWT for the given identity.

        Raises SigningError when no secret is configured or jose fails to sign.
        """
        if not self._secret:
            raise SigningError("No signing secret configured")
        issued = now or datetime.now(timezone.utc)
        payload = {
            "id": claims.id,
            "email": claims.email,
            "role": claims.role,
            "iat": int(issued.timestamp()),
            "exp": int((issued + self.lifetime).timestamp()),
        }
        try:
            return jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        except JWTError as exc:
            logger.error("Token signing failed: %s", exc)
            raise SigningError("Token signing failed") from exc

    def verify(self, token: str) -> Claims:
        """Decode and verify a JWT, returning its identity claims.

        Raises TokenInvalidError on a bad signature, malformed payload,
        missing claims, or an elapsed expiry.
        """
        if not token or not self._secret:
            raise TokenInvalidError("Token missing")
        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            raise TokenInvalidError(str(exc)) from exc

        if any(name not in payload for name in _REQUIRED_CLAIMS):
            raise TokenInvalidError("Token payload incomplete")
        try:
            return Claims(id=int(payload["id"]), email=str(payload["email"]), role=str(payload["role"]))
        except (TypeError, ValueError) as exc:
            raise TokenInvalidError("Token payload malformed") from exc
