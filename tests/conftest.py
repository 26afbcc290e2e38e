"""Shared test fixtures for WalletPilot."""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from walletpilot.auth.api_keys import hash_api_key, key_prefix
from walletpilot.auth.identity import Account, AuthSession
from walletpilot.errors import IdentityError


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

_migrations_dir = Path(__file__).resolve().parent.parent / "walletpilot" / "db" / "migrations"
MIGRATION_SQL = "\n".join(
    f.read_text() for f in sorted(_migrations_dir.glob("*.sql"))
)

# Stable IDs for seed data
USER_ID = "user-test-001"
USER_EMAIL = "alice@walletpilot.xyz"
USER_TOKEN = "session-token-alice"
OTHER_USER_ID = "user-test-002"
OTHER_USER_EMAIL = "bob@walletpilot.xyz"
OTHER_USER_TOKEN = "session-token-bob"
API_KEY_RAW = "wp_dGVzdGtleXZhbHVlMTIzNDU2Nzg5MGFi"
API_KEY_ID = "key-test-001"


@pytest_asyncio.fixture
async def db():
    """In-memory SQLite database with schema + seed data.

    Alice starts with one active key (``API_KEY_RAW``); Bob has none.
    """
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.executescript(MIGRATION_SQL)
    await conn.commit()

    await conn.execute(
        "INSERT INTO profiles (id, email, name, plan) VALUES (?, ?, ?, ?)",
        (USER_ID, USER_EMAIL, "Alice", "free"),
    )
    await conn.execute(
        "INSERT INTO profiles (id, email, name, plan) VALUES (?, ?, ?, ?)",
        (OTHER_USER_ID, OTHER_USER_EMAIL, "Bob", "free"),
    )
    await conn.execute(
        "INSERT INTO api_keys (id, user_id, name, key_hash, key_prefix) VALUES (?, ?, ?, ?, ?)",
        (API_KEY_ID, USER_ID, "test-key", hash_api_key(API_KEY_RAW), key_prefix(API_KEY_RAW)),
    )
    await conn.commit()
    yield conn
    await conn.close()


# ---------------------------------------------------------------------------
# Identity provider double
# ---------------------------------------------------------------------------

class FakeIdentityProvider:
    """In-memory stand-in for the hosted identity provider."""

    def __init__(self) -> None:
        self.users: dict[str, tuple[str, Account]] = {}
        self.tokens: dict[str, Account] = {}
        self.refresh_tokens: dict[str, Account] = {}
        self._seq = 0

    def add_user(self, user_id: str, email: str, password: str, token: str | None = None) -> Account:
        account = Account(id=user_id, email=email)
        self.users[email] = (password, account)
        if token:
            self.tokens[token] = account
        return account

    def _issue(self, account: Account) -> AuthSession:
        self._seq += 1
        access, refresh = f"access-{self._seq}", f"refresh-{self._seq}"
        self.tokens[access] = account
        self.refresh_tokens[refresh] = account
        return AuthSession(access_token=access, refresh_token=refresh, expires_at=1_900_000_000, account=account)

    async def create_user(self, email: str, password: str) -> Account:
        if email in self.users:
            raise IdentityError("A user with this email address has already been registered", status_code=422)
        self._seq += 1
        return self.add_user(f"user-new-{self._seq:03d}", email, password)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        stored = self.users.get(email)
        if not stored or stored[0] != password:
            raise IdentityError("Invalid login credentials")
        return self._issue(stored[1])

    async def refresh(self, refresh_token: str) -> AuthSession:
        account = self.refresh_tokens.pop(refresh_token, None)
        if account is None:
            raise IdentityError("Invalid Refresh Token")
        return self._issue(account)

    async def get_user_from_token(self, token: str) -> Account:
        account = self.tokens.get(token)
        if account is None:
            raise IdentityError("invalid JWT", status_code=401)
        return account


@pytest.fixture
def identity():
    provider = FakeIdentityProvider()
    provider.add_user(USER_ID, USER_EMAIL, "alice-password", token=USER_TOKEN)
    provider.add_user(OTHER_USER_ID, OTHER_USER_EMAIL, "bob-password", token=OTHER_USER_TOKEN)
    return provider


# ---------------------------------------------------------------------------
# App / client fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def app(db, identity):
    """FastAPI app with test DB and fake identity provider injected."""
    from walletpilot.db import database as db_module
    from walletpilot.auth import identity as identity_module
    from walletpilot.services import waitlist_store

    original_db = db_module._db
    db_module._db = db
    identity_module.set_identity_provider(identity)
    waitlist_store.reset_waitlist_store()

    from walletpilot.main import app as fastapi_app

    _clear_rate_limiter(fastapi_app)

    yield fastapi_app

    db_module._db = original_db
    identity_module.set_identity_provider(None)
    waitlist_store.reset_waitlist_store()


def _clear_rate_limiter(app):
    """Walk the middleware stack and clear any RateLimitMiddleware windows."""
    from walletpilot.auth.rate_limiter import RateLimitMiddleware
    obj = app.middleware_stack
    while obj is not None:
        if isinstance(obj, RateLimitMiddleware):
            obj._windows.clear()
            return
        obj = getattr(obj, "app", None)


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def session_headers() -> dict[str, str]:
    """Session bearer for Alice."""
    return {"Authorization": f"Bearer {USER_TOKEN}"}


@pytest.fixture
def other_session_headers() -> dict[str, str]:
    """Session bearer for Bob."""
    return {"Authorization": f"Bearer {OTHER_USER_TOKEN}"}


@pytest.fixture
def api_key_headers() -> dict[str, str]:
    """API key bearer for Alice's seeded key."""
    return {"Authorization": f"Bearer {API_KEY_RAW}"}
