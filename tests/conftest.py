"""
tests/conftest.py -- Shared test fixtures for Shopgate.

This module provides:
  - unit fixtures: identity_store, credentials, token_config, issuer,
    verifier, auth_service -- fresh in-memory objects per test
  - _make_test_stores(): isolated named shared-memory DBs for the API app
  - _patch_lifespan(): wires test stores and services into app.state,
    bypassing the real startup
  - api_client: module-scoped TestClient plus an owner and a guest with tokens
  - session: per-test view of api_client with an empty cookie jar

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API fixtures because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

Environment must be set before any core/auth/api import:
  DEBUG=true               -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4          -- minimum work factor keeps the suite fast
  RATE_LIMIT_ENABLED=false -- many logins from one test client address
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import NamedTuple

# CRITICAL: set before any core/auth/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.credentials import CredentialStore
from auth.models import Role
from auth.policy import PasswordPolicy
from auth.service import AuthService
from auth.store import IdentityStore
from auth.tokens import TokenIssuer, TokenVerifier
from catalog.store import ProductStore
from core.config import TokenConfig, get_settings

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"

OWNER_EMAIL = "owner@store.com"
OWNER_PASSWORD = "OwnerSecurePass123!"
GUEST_EMAIL = "guest@store.com"
GUEST_PASSWORD = "GuestPass123!"


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def identity_store() -> Generator[IdentityStore, None, None]:
    store = IdentityStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def credentials() -> CredentialStore:
    return CredentialStore(rounds=4)


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(secret=TEST_SECRET, ttl_seconds=3600)


@pytest.fixture
def issuer(token_config: TokenConfig) -> TokenIssuer:
    return TokenIssuer(token_config)


@pytest.fixture
def verifier(token_config: TokenConfig) -> TokenVerifier:
    return TokenVerifier(token_config)


@pytest.fixture
def auth_service(identity_store: IdentityStore, credentials: CredentialStore, issuer: TokenIssuer) -> AuthService:
    return AuthService(store=identity_store, credentials=credentials, issuer=issuer, policy=PasswordPolicy())


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


class ApiSession(NamedTuple):
    client: TestClient
    owner_token: str
    guest_token: str
    owner_id: str
    guest_id: str


def _make_test_stores(db_suffix: str) -> tuple[IdentityStore, ProductStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    catalog_url = f"sqlite:///file:test_catalog_{db_suffix}?mode=memory&cache=shared&uri=true"
    return IdentityStore(db_url=auth_url), ProductStore(db_url=catalog_url)


def _patch_lifespan(user_store: IdentityStore, catalog: ProductStore, service: AuthService):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.settings = settings
        app.state.user_store = user_store
        app.state.catalog = catalog
        app.state.token_verifier = TokenVerifier(settings.token_config())
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiSession, None, None]:
    """Yield an ApiSession for API integration tests.

    One owner (provisioned out-of-band, as main.py create-owner does) and one
    self-registered guest exist before the client starts. Their tokens are
    minted with the same TokenConfig the app verifies against.
    """
    settings = get_settings()
    user_store, catalog = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    issuer = TokenIssuer(settings.token_config())
    service = AuthService(
        store=user_store,
        credentials=CredentialStore(rounds=settings.bcrypt_rounds),
        issuer=issuer,
    )

    owner = service.provision(OWNER_EMAIL, "Store Owner", OWNER_PASSWORD, Role.OWNER)
    guest = service.register(GUEST_EMAIL, "Guest", GUEST_PASSWORD)
    owner_token = issuer.issue(owner.id, owner.email, owner.display_name, owner.role).access_token
    guest_token = issuer.issue(guest.id, guest.email, guest.display_name, guest.role).access_token

    app.router.lifespan_context = _patch_lifespan(user_store, catalog, service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiSession(client, owner_token, guest_token, owner.id, guest.id)

    user_store.close()
    catalog.close()


@pytest.fixture
def session(api_client: ApiSession) -> Generator[ApiSession, None, None]:
    """api_client with the cookie jar emptied around each test.

    POST /auth/login stores a jwt cookie on the client, and the cookie wins
    over any Authorization header -- leftovers would leak between tests.
    """
    api_client.client.cookies.clear()
    yield api_client
    api_client.client.cookies.clear()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
