"""
tests/conftest.py -- Shared test fixtures for the admin account service.

This module provides:
  - make_test_store(): an isolated in-memory account DB
  - RecordingNotifier: a Notifier that records messages instead of sending
  - FakeClock: a steppable clock for expiry tests
  - store / notifier / clock / service: function-scoped unit fixtures
  - api_client: TestClient with a super_admin JWT, one per test module
  - make_account: helper fixture that seeds an account and returns its token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Environment must be set before any auth/core import: DEBUG so get_settings()
auto-generates SECRET_KEY, BCRYPT_ROUNDS=4 so hashing is fast, and
RATE_LIMIT_ENABLED=false so the many logins in one module never hit 429.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

# CRITICAL: Set before any auth/core import -- Settings is cached on first use.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ADMIN_EMAIL", "owner@example.com")
os.environ.setdefault("RESEND_API_KEY", "")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.lifecycle import AccountService
from auth.models import ROLE_ADMIN, ROLE_SUPER_ADMIN, STATUS_ACTIVE, Account, Permissions
from auth.notifications import Notifier
from auth.passwords import hash_password
from auth.store import AccountStore
from auth.tokens import issue_token

STRONG_PASSWORD = "Str0ng!Pass"
ADMIN_EMAIL = "root@example.com"


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class RecordingNotifier(Notifier):
    """Notifier that keeps every message in memory instead of calling Resend.

    The real templates still render, so tests can assert on subject and body.
    """

    def __init__(self) -> None:
        super().__init__()
        self.sent: list[dict] = []

    def _send(self, to: str, subject: str, html_body: str, *, kind: str) -> bool:
        self.sent.append({"to": to, "subject": subject, "html": html_body, "kind": kind})
        return True

    def kinds(self, to: Optional[str] = None) -> list[str]:
        return [m["kind"] for m in self.sent if to is None or m["to"] == to]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_store(db_suffix: str) -> AccountStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules and
                   individual tests don't share state.
    """
    return AccountStore(db_url=f"sqlite:///file:test_accounts_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(store: AccountStore, notifier: Notifier):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store and notifier into app.state so routes never touch
    the production database or the network.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = store
        app.state.notifier = notifier
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Unit fixtures -- one fresh DB per test
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = make_test_store(uuid.uuid4().hex)
    yield s
    s.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store: AccountStore, notifier: RecordingNotifier, clock: FakeClock) -> AccountService:
    return AccountService(store, notifier, clock=clock)


# ---------------------------------------------------------------------------
# Integration fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, token, account_id) for a seeded super_admin.

    The TestClient uses the real FastAPI app with a patched lifespan, so tests
    hit real route handlers against an isolated in-memory store. The store and
    notifier are reachable as client.app.state.account_store / .notifier.
    """
    store = make_test_store(request.module.__name__.replace(".", "_"))
    notifier = RecordingNotifier()

    admin = Account(
        email=ADMIN_EMAIL,
        password_hash=hash_password(STRONG_PASSWORD),
        name="Root",
        role=ROLE_SUPER_ADMIN,
        status=STATUS_ACTIVE,
        email_verified=True,
    )
    uid = store.create_account(admin)
    token = issue_token(uid, ADMIN_EMAIL, ROLE_SUPER_ADMIN)

    app.router.lifespan_context = _patch_lifespan(store, notifier)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, uid

    store.close()


@pytest.fixture
def make_account(api_client) -> Callable[..., tuple[str, str]]:
    """Seed an account in the api_client store; return (account_id, token).

    Defaults to an active, verified admin with the default permission set.
    Pass email/role/status/permissions/verified to override.
    """
    client, _, _ = api_client
    store: AccountStore = client.app.state.account_store

    def _make(
        email: Optional[str] = None,
        *,
        role: str = ROLE_ADMIN,
        status: str = STATUS_ACTIVE,
        permissions: Optional[Permissions] = None,
        verified: bool = True,
        password: str = STRONG_PASSWORD,
    ) -> tuple[str, str]:
        email = email or f"user-{uuid.uuid4().hex[:10]}@example.com"
        account = Account(
            email=email,
            password_hash=hash_password(password),
            name="Test User",
            role=role,
            status=status,
            permissions=permissions or Permissions.default(),
            email_verified=verified,
        )
        account_id = store.create_account(account)
        return account_id, issue_token(account_id, email, role)

    return _make


