"""
auth/credentials.py -- Password hashing and the sign-up / sign-in rules.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). The cost factor
       (default 10 rounds, BCRYPT_ROUNDS) keeps one verification in the tens
       of milliseconds, which is what makes offline brute force expensive.
       bcrypt only looks at the first 72 bytes; the HTTP layer rejects longer
       passwords so hash_password() never sees one on valid input.

  Enumeration: authenticate_user() runs bcrypt against a dummy hash when the
       email is unknown, so "no such account" and "wrong password" take the
       same time. The two cases raise different errors for logging; the route
       layer answers both with the same 401 body.

  Uniqueness: create_user() checks for an existing email, then inserts. The
       UNIQUE constraint in auth/store.py closes the race between the two
       steps; IntegrityError is re-mapped to DuplicateUserError.

Layer rule: no imports from api/ or admission/.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace

import bcrypt
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateUserError, HashingError, InvalidCredentialsError, UserNotFoundError, ValidationError
from auth.models import DEFAULT_ROLE, ROLES, User
from auth.store import UserStore

logger = logging.getLogger("authgate.auth")

DEFAULT_ROUNDS = 10

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises HashingError if bcrypt itself fails. The cause is logged, never
    the password.
    """
    try:
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")
    except (ValueError, TypeError) as exc:
        logger.error("Password hashing failed: %s", exc)
        raise HashingError("Password hashing failed") from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext matches the bcrypt hash.

    A mismatch is False, not an error. Raises HashingError only when the
    stored hash is malformed.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError) as exc:
        logger.error("Password verification failed: %s", exc)
        raise HashingError("Password verification failed") from exc


def normalize_email(email: str) -> str:
    """Strip and lower-case an email address, rejecting malformed ones."""
    normalized = (email or "").strip().lower()
    if not _EMAIL_RE.match(normalized):
        raise ValidationError("A valid email address is required.")
    return normalized


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class CredentialService:
    """Sign-up and sign-in business rules on top of a UserStore.

    Usage:
        service = CredentialService(store, rounds=settings.bcrypt_rounds)
        user = service.create_user(name="Ada", email="ada@example.com", password="s3cret!")
        same = service.authenticate_user(email="ADA@example.com", password="s3cret!")
    """

    def __init__(self, store: UserStore, rounds: int = DEFAULT_ROUNDS) -> None:
        self.store = store
        self.rounds = rounds
        # Same cost factor as real hashes so both failure paths take equal time.
        self._dummy_hash = hash_password("authgate_timing_dummy", rounds)

    def create_user(self, name: str, email: str, password: str, role: str = DEFAULT_ROLE) -> User:
        """Register a new account and return it without the password hash.

        Raises ValidationError for a malformed email or unknown role and
        DuplicateUserError when the email is taken, including when a
        concurrent sign-up wins the insert.
        """
        email = normalize_email(email)
        role = role or DEFAULT_ROLE
        if role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}.")

        if self.store.find_user_by_email(email) is not None:
            logger.info("Sign-up rejected, email already registered: %s", email)
            raise DuplicateUserError(email)

        hashed = hash_password(password, self.rounds)
        try:
            created = self.store.insert_user(User(name=name or "", email=email, role=role, password_hash=hashed))
        except IntegrityError as exc:
            logger.info("Sign-up lost insert race for %s", email)
            raise DuplicateUserError(email) from exc

        logger.info("User registered: %s (role=%s)", email, role)
        return replace(created, password_hash=None)

    def authenticate_user(self, email: str, password: str) -> User:
        """Return the full user record when email and password match.

        Raises UserNotFoundError or InvalidCredentialsError. bcrypt runs in
        both failure paths so timing does not reveal which one occurred.
        """
        try:
            email = normalize_email(email)
        except ValidationError:
            # An address that could never be registered is just an unknown user.
            verify_password(password, self._dummy_hash)
            raise UserNotFoundError(email) from None

        user = self.store.find_user_by_email(email)
        if user is None or user.password_hash is None:
            verify_password(password, self._dummy_hash)
            logger.info("Sign-in failed, unknown email: %s", email)
            raise UserNotFoundError(email)

        if not verify_password(password, user.password_hash):
            logger.info("Sign-in failed, wrong password: %s", email)
            raise InvalidCredentialsError(email)

        logger.info("Sign-in succeeded: %s", email)
        return user
