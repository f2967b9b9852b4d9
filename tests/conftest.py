"""
Pytest configuration and shared fixtures for MailToSocial tests.

This module provides common fixtures used across all test files:
- Test client setup
- An in-memory stand-in for the Supabase query builder
- Relay token and sample row helpers
"""

import os
import sys
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

# Environment setup before any imports
os.environ["DEV_MODE"] = "true"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SCHEDULED_POSTS_API_SECRET"] = "test-relay-secret"
os.environ["TWITTER_CLIENT_ID"] = "test-consumer-key"
os.environ["TWITTER_CLIENT_SECRET"] = "test-consumer-secret"
os.environ["NEXTAUTH_URL"] = "http://relay.test"
os.environ["API_KEY_STORAGE_PATH"] = os.path.join(tempfile.mkdtemp(), "api_keys.json")
for _name in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "SENTRY_DSN", "APP_URL"):
    os.environ.pop(_name, None)

# Ensure project root is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from postgrest.exceptions import APIError

RELAY_SECRET = "test-relay-secret"


# =============================================================================
# Fake Supabase
# =============================================================================


def _coerce(value: Any) -> Any:
    """Compare ISO timestamps as instants, everything else as-is."""
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return value


@dataclass
class FakeResponse:
    data: List[Dict[str, Any]] = field(default_factory=list)


class FakeQuery:
    """Chainable query builder covering the calls the service makes."""

    def __init__(self, client: "FakeSupabaseClient", table: str) -> None:
        self._client = client
        self._table = table
        self._op = "select"
        self._values: Optional[Dict[str, Any]] = None
        self._filters: List[Callable[[Dict[str, Any]], bool]] = []
        self._order: Optional[str] = None
        self._limit: Optional[int] = None

    def select(self, *columns: str) -> "FakeQuery":
        self._op = "select"
        return self

    def insert(self, values: Dict[str, Any]) -> "FakeQuery":
        self._op = "insert"
        self._values = values
        return self

    def update(self, values: Dict[str, Any]) -> "FakeQuery":
        self._op = "update"
        self._values = values
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def lte(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(
            lambda row: row.get(column) is not None and _coerce(row[column]) <= _coerce(value)
        )
        return self

    def gte(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(
            lambda row: row.get(column) is not None and _coerce(row[column]) >= _coerce(value)
        )
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = column
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    def execute(self) -> FakeResponse:
        return self._client.run(self._table, self)

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(check(row) for check in self._filters)


class FakeSupabaseClient:
    """
    In-memory Supabase client.

    Only tables present in ``tables`` exist; any other name fails like a
    missing relation does in PostgREST. ``fail_ops`` makes every query of
    the listed kinds fail.
    """

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = tables if tables is not None else {}
        self.fail_ops: set = set()
        self.calls: List[tuple] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def run(self, name: str, query: FakeQuery) -> FakeResponse:
        self.calls.append((name, query._op))

        if query._op in self.fail_ops:
            raise APIError({"message": f"{query._op} failed", "code": "XX000"})
        if name not in self.tables:
            raise APIError({"message": f'relation "public.{name}" does not exist', "code": "42P01"})

        rows = self.tables[name]

        if query._op == "insert":
            row = dict(query._values)
            rows.append(row)
            return FakeResponse(data=[dict(row)])

        matched = [row for row in rows if query._matches(row)]

        if query._op == "update":
            for row in matched:
                row.update(query._values)
            return FakeResponse(data=[dict(row) for row in matched])

        if query._op == "delete":
            self.tables[name] = [row for row in rows if not query._matches(row)]
            return FakeResponse(data=[dict(row) for row in matched])

        if query._order:
            matched.sort(key=lambda row: _coerce(row.get(query._order)))
        if query._limit is not None:
            matched = matched[: query._limit]
        return FakeResponse(data=[dict(row) for row in matched])

    def ops(self, op: str) -> List[str]:
        """Table names queried with ``op``, in call order."""
        return [name for name, kind in self.calls if kind == op]


def make_post_row(
    post_id: str = "post-1",
    user_id: str = "user-1",
    platform: str = "twitter",
    scheduled_for: Optional[datetime] = None,
    status: str = "pending",
    media_url: Optional[str] = None,
    content: str = "Hello from MailToSocial",
) -> Dict[str, Any]:
    """A scheduled post row in the store's camelCase column layout."""
    scheduled_for = scheduled_for or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    return {
        "id": post_id,
        "userId": user_id,
        "content": content,
        "platform": platform,
        "scheduledFor": scheduled_for.isoformat(),
        "mediaUrl": media_url,
        "status": status,
        "postId": None,
        "error": None,
        "createdAt": "2023-12-31T09:00:00+00:00",
        "updatedAt": "2023-12-31T09:00:00+00:00",
    }


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_supabase():
    """Empty fake Supabase with the default first alias of each table."""
    return FakeSupabaseClient(
        tables={
            "scheduled_post": [],
            "Account": [],
            "User": [],
        }
    )


@pytest.fixture
def relay_token():
    """Bearer token valid for the current hour."""
    from src.social.relay_auth import derive_relay_token

    return derive_relay_token(RELAY_SECRET)


@pytest.fixture
def relay_headers(relay_token):
    return {"Authorization": f"Bearer {relay_token}"}


@pytest.fixture
def app():
    """The FastAPI app with dependency overrides cleared after each test."""
    from server import app as fastapi_app

    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """FastAPI test client fixture."""
    from fastapi.testclient import TestClient

    return TestClient(app)


@pytest.fixture
def async_client(app):
    """Async FastAPI test client fixture."""
    from httpx import ASGITransport, AsyncClient

    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
