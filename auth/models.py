"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services
do the work; these only own the shape.

Layer rule: no imports from api/ or admission/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLES = ("admin", "user")
DEFAULT_ROLE = "user"


@dataclass
class User:
    """A registered identity.

    email is stored normalized (stripped, lower-cased) and is the unique
    lookup key. password_hash is None on records handed back to callers that
    must not see it (e.g. the result of CredentialService.create_user()).
    """

    name: str
    email: str
    role: str = DEFAULT_ROLE
    id: int | None = None
    password_hash: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Claims:
    """Identity assertions carried inside a session token."""

    id: int
    email: str
    role: str
