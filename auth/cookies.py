"""
auth/cookies.py -- Session cookie transport.

One cookie, named "token", carries the JWT. Attributes:
  httponly=True:     JS cannot read the cookie (XSS mitigation).
  samesite="strict": never sent on cross-site requests (CSRF mitigation).
  secure:            HTTPS-only in production or when SECURE_COOKIES=true.
  path="/":          sent for the whole API.
  max_age:           matches the token lifetime so both expire together.

The cookie value is opaque here. Decoding belongs to TokenService.
"""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import Response

from auth.tokens import TOKEN_LIFETIME

COOKIE_NAME = "token"


class SessionCookie:
    """Attach, read, and clear the session cookie on Starlette objects."""

    def __init__(self, secure: bool = False, max_age: int = int(TOKEN_LIFETIME.total_seconds())) -> None:
        self.secure = secure
        self.max_age = max_age

    def attach(self, response: Response, token: str) -> None:
        response.set_cookie(
            COOKIE_NAME,
            value=token,
            max_age=self.max_age,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="strict",
        )

    def read(self, request: Request) -> str | None:
        return request.cookies.get(COOKIE_NAME) or None

    def clear(self, response: Response) -> None:
        """Expire the cookie immediately. Safe to call when none was set.

        Attributes must match attach() or browsers keep the original cookie.
        """
        response.delete_cookie(
            COOKIE_NAME,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="strict",
        )
