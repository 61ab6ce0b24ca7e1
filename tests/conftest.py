"""
tests/conftest.py -- Shared test fixtures for AccountKit integration tests.

This module provides:
  - _make_test_store(): creates an isolated in-memory account DB
  - _patch_lifespan(): wires the test store into app.state, bypassing real startup
  - store: a fresh in-memory AccountStore for unit tests
  - api_client: TestClient with an admin account and its bearer token
  - png_bytes: a tiny valid PNG for upload tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.

The environment must be set before any auth/api import so get_settings()
auto-generates SECRET_KEY in dev mode, accepts the TestClient host, and does
not rate-limit the many logins a test module performs.
"""

from __future__ import annotations

import asyncio
import io
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set these before any auth/api/core import -- Settings is cached.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from api.main import app
from auth.models import Account
from auth.store import AccountStore
from auth.tokens import create_access_token, hash_password
from core.config import get_settings

ADMIN_PASSWORD = "adminpass123"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> AccountStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return AccountStore(db_url=f"sqlite:///file:test_accounts_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(store: AccountStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown can cancel a real
    asyncio.Task, just like the production lifespan does.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = store
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def make_account(store: AccountStore, username: str, password: str = "secret123", **fields) -> Account:
    """Insert an account directly through the store and return it."""
    account = Account(
        username=username,
        full_name=fields.pop("full_name", username.title()),
        email=fields.pop("email", f"{username}@example.com"),
        hashed_password=hash_password(password),
        **fields,
    )
    account_id = store.create_account(account)
    return store.get_by_id(account_id)


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    """Fresh in-memory AccountStore (single-threaded unit tests)."""
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture(scope="module")
def api_client(request, tmp_path_factory) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    Each test module gets its own database (named after the module) and its
    own media directory. Settings are overridden through FastAPI's dependency
    overrides so uploaded pictures land in a temp dir.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    store = _make_test_store(suffix)
    media_root = tmp_path_factory.mktemp(f"media_{suffix}")
    test_settings = get_settings().model_copy(update={"media_root": media_root})

    admin = make_account(store, "rootadmin", password=ADMIN_PASSWORD, role="admin")
    token = create_access_token(store, admin).token

    app.router.lifespan_context = _patch_lifespan(store)
    app.dependency_overrides[get_settings] = lambda: test_settings

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    app.dependency_overrides.pop(get_settings, None)
    store.close()


@pytest.fixture
def png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()
