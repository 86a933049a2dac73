"""
tests/conftest.py -- Shared test fixtures for the RBAC API.

This module provides:
  - store:        fresh in-memory UserStore per test (unit tests)
  - api_client:   (client, store, admin_token) -- TestClient over the real app
                  with a patched lifespan and an isolated directory
  - make_account: factory that inserts a user straight into the api_client's
                  store and returns a bearer token for it

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API fixtures because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

Environment must be set before any auth/core import: DEBUG lets
get_settings() auto-generate SECRET_KEY, a low bcrypt cost keeps the suite
fast, and a small login limit lets the 429 path be reached in a test.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "50/minute")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.directory import add_role, register_user, update_user_status
from auth.models import STATUS_ACTIVE, User, canonical_role
from auth.store import UserStore
from auth.tokens import hash_password, issue_token

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass-123"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules don't
                   share state.
    """
    url = f"sqlite:///file:test_rbac_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url)


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-created test store into app.state so requests see the
    isolated test DB rather than the configured DATABASE_URL.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        yield

    return test_lifespan


def seed_admin(store: UserStore) -> User:
    """Create ROLE_ADMIN / ROLE_MODERATOR and an active admin account."""
    for role in ("admin", "moderator"):
        if store.get_role(canonical_role(role)) is None:
            add_role(store, role)
    user, _ = register_user(
        store,
        full_name="Test Admin",
        email=ADMIN_EMAIL,
        password=ADMIN_PASSWORD,
        hash_password=hash_password,
        roles=["admin"],
    )
    update_user_status(store, ADMIN_EMAIL, STATUS_ACTIVE)
    return store.get_by_email(user.email)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    """Fresh in-memory directory with only the default role seeded."""
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, UserStore, str], None, None]:
    """Yield (client, store, admin_token) for API integration tests.

    The TestClient uses the real FastAPI app, middleware included, with a
    patched lifespan so requests hit an isolated in-memory directory. The
    admin account exists and is active before the client starts.
    """
    user_store = _make_test_store(request.module.__name__.rsplit(".", 1)[-1])
    admin = seed_admin(user_store)
    token = issue_token(admin.email, admin.roles)

    # Login counters are per client address; start each module from zero.
    limiter.reset()
    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store, token

    user_store.close()


@pytest.fixture
def make_account(api_client) -> Callable[..., str]:
    """Return a factory: make_account(email, roles=("user",), status="active") -> bearer token.

    Inserts directly through the store so tests can set up pending or
    privileged accounts without going through the HTTP flow.
    """
    _client, user_store, _token = api_client

    def factory(email: str, roles: tuple[str, ...] = ("user",), status: str = STATUS_ACTIVE) -> str:
        role_names = [canonical_role(r) for r in roles]
        user_store.create_user(
            User(
                full_name=email.split("@")[0],
                email=email,
                hashed_password=hash_password("account-pass-123"),
                status=status,
            ),
            role_names,
        )
        return issue_token(email, role_names)

    return factory
