"""
auth/errors.py -- Domain error taxonomy for the credential and token services.

Services raise these; api/main.py maps each one to an HTTP status and a client
message exactly once. UserNotFoundError and InvalidCredentialsError stay
distinct here so logs can tell them apart, but both reach the client as the
same 401 body.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error the auth package raises on purpose."""


class ValidationError(AuthError):
    """Malformed input (bad email format, unknown role)."""


class DuplicateUserError(AuthError):
    """An account with this email already exists."""


class UserNotFoundError(AuthError):
    """No account with this email."""


class InvalidCredentialsError(AuthError):
    """The password does not match the stored hash."""


class TokenInvalidError(AuthError):
    """Session token failed signature, format, or expiry checks."""


class HashingError(AuthError):
    """bcrypt failed on input it should have accepted."""


class SigningError(AuthError):
    """The token could not be signed (missing secret, backend failure)."""
