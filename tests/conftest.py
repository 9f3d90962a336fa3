"""
tests/conftest.py -- Shared test fixtures for AuthGate tests.

This module provides:
  - make_store(): isolated named in-memory SQLite UserStore
  - credentials: CredentialService over a fresh store (4 bcrypt rounds for speed)
  - tokens: TokenService with a fixed test secret
  - api_client: TestClient over the real app with a patched lifespan
  - configured_client: same, after overriding Settings fields for one test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each fixture gets a unique name so no state leaks between tests.

api_client is function-scoped: each test gets a new store, a new admission
counter and a reset sign-in throttle, so request counts never carry over.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator, Iterator
from contextlib import ExitStack, asynccontextmanager, contextmanager

# Set before any core/api import so get_settings() sees test values.
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-0123456789")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, wire_services
from auth.credentials import CredentialService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"


def make_store() -> UserStore:
    return UserStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Runs the production wiring against the test store, so the admission
    controller and its counter storage are created inside the client's
    event loop.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_services(app, get_settings(), user_store)
        yield

    return test_lifespan


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = make_store()
    yield s
    s.close()


@pytest.fixture
def credentials(store: UserStore) -> CredentialService:
    return CredentialService(store, rounds=4)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET)


@contextmanager
def _open_client() -> Iterator[TestClient]:
    user_store = make_store()
    limiter.reset()
    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client

    user_store.close()


@pytest.fixture
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with an isolated store.

    The client keeps the default "testclient" User-Agent, which the bot
    classifier treats as a regular browser.
    """
    with _open_client() as client:
        yield client


@pytest.fixture
def configured_client(monkeypatch) -> Generator[Callable[..., TestClient], None, None]:
    """Factory: override Settings fields, then open a client wired from them.

    Usage: client = configured_client(admission_mode="DRY_RUN")
    """
    stack = ExitStack()

    def open_client(**overrides) -> TestClient:
        settings = get_settings()
        for field, value in overrides.items():
            monkeypatch.setattr(settings, field, value)
        return stack.enter_context(_open_client())

    yield open_client
    stack.close()
