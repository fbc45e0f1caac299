"""
Shared pytest fixtures.

Provides:
- An in-memory fake asyncpg connection patched into every module
- An async HTTP client bound to the FastAPI app
- Signed JWTs for a regular user and an admin
"""
import re
import sys
import uuid
from typing import Any, Dict, List, Optional, Tuple

import jwt
import pytest
from faker import Faker
from httpx import ASGITransport, AsyncClient

from app.libs.config import get_settings
from app.main import app

fake = Faker()


# ═══════════════════════════════════════════════════════
# FAKE DATABASE
# ═══════════════════════════════════════════════════════

def _normalize(query: str) -> str:
    return re.sub(r"\s+", " ", query).strip()


class _FakeTransaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeConnection:
    """
    Stands in for asyncpg.Connection.

    Register canned results with `on(method, fragment, result)`. A query gets
    the result of the most recently registered rule whose fragment it
    contains. A callable result is called with the query args. Every call is
    recorded in `calls` as (method, normalized query, args).
    """

    DEFAULTS = {"fetch": [], "fetchrow": None, "fetchval": None, "execute": "OK"}

    def __init__(self):
        self.rules: List[Tuple[str, str, Any]] = []
        self.calls: List[Tuple[str, str, tuple]] = []
        self.closed = 0

    def on(self, method: str, fragment: str, result: Any) -> "FakeConnection":
        self.rules.append((method, _normalize(fragment), result))
        return self

    def queries(self, method: Optional[str] = None) -> List[str]:
        return [q for m, q, _ in self.calls if method is None or m == method]

    def args_for(self, fragment: str) -> tuple:
        fragment = _normalize(fragment)
        for _, query, args in reversed(self.calls):
            if fragment in query:
                return args
        raise AssertionError(f"No query containing {fragment!r}")

    def _answer(self, method: str, query: str, args: tuple) -> Any:
        query = _normalize(query)
        self.calls.append((method, query, args))
        for rule_method, fragment, result in reversed(self.rules):
            if rule_method == method and fragment in query:
                return result(*args) if callable(result) else result
        return self.DEFAULTS[method]

    async def fetch(self, query: str, *args):
        return self._answer("fetch", query, args)

    async def fetchrow(self, query: str, *args):
        return self._answer("fetchrow", query, args)

    async def fetchval(self, query: str, *args):
        return self._answer("fetchval", query, args)

    async def execute(self, query: str, *args):
        return self._answer("execute", query, args)

    def transaction(self):
        return _FakeTransaction()

    async def close(self):
        self.closed += 1


@pytest.fixture
def db(monkeypatch) -> FakeConnection:
    """Patch get_db_connection everywhere it was imported."""
    conn = FakeConnection()

    async def _get_db_connection(*args, **kwargs):
        return conn

    for name, module in list(sys.modules.items()):
        if name.startswith("app.") and hasattr(module, "get_db_connection"):
            monkeypatch.setattr(module, "get_db_connection", _get_db_connection)
    return conn


# ═══════════════════════════════════════════════════════
# HTTP CLIENT & AUTH
# ═══════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client():
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def make_token(sub: str, email: Optional[str] = None, **overrides) -> str:
    settings = get_settings()
    payload = {"sub": sub, "email": email, "aud": settings.JWT_AUDIENCE, **overrides}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def user_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def auth_headers(user_id) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, fake.email())}"}


@pytest.fixture
def admin_headers(db, user_id) -> Dict[str, str]:
    """Headers for a user whose profile has the admin role."""
    db.on("fetchval", "SELECT role FROM profiles", "admin")
    return {"Authorization": f"Bearer {make_token(user_id, fake.email())}"}
