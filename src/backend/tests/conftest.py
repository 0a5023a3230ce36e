"""
Pytest fixtures for DJ Vote backend tests.
"""

import os
from collections import defaultdict
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("SUPABASE_URL", "")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("REALTIME_ENABLED", "false")
os.environ.setdefault("ADMIN_EMAILS", "admin@djvote.test")
os.environ.setdefault("SESSION_RETRY_BACKOFF_SECONDS", "0")
os.environ.setdefault("PROFILE_SYNC_BACKOFF_SECONDS", "0")

from core.config import RuntimeConfig, Settings  # noqa: E402
from core.container import AppServices, build_services  # noqa: E402
from db.platform import PlatformError  # noqa: E402
from db.realtime import ChangeEvent, ChangeHandler  # noqa: E402
from schemas.auth import AuthUser  # noqa: E402
from services.local_store import LocalStore  # noqa: E402

VOTER_TOKEN = "voter-token"
OTHER_VOTER_TOKEN = "other-voter-token"
ADMIN_TOKEN = "admin-token"
TEST_IP = "203.0.113.7"


def _matches(row: dict[str, Any], filters: dict[str, str] | None) -> bool:
    for column, expression in (filters or {}).items():
        op, _, operand = expression.partition(".")
        value = str(row.get(column))
        if op == "eq" and value != operand:
            return False
        if op == "in" and value not in operand.strip("()").split(","):
            return False
    return True


class FakePlatform:
    """In-memory ``PlatformClient`` with PostgREST-style filters and error injection."""

    UPSERT_KEYS = {"site_settings": "key", "profiles_ip": "user_id"}
    SERIAL_TABLES = {"candidates", "votes"}

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.sessions: dict[str, dict[str, Any]] = {}
        self.credentials: dict[str, tuple[str, str]] = {}
        self.calls: list[tuple[str, str]] = []
        self.recovered: list[str] = []
        self.signed_out: list[str] = []
        self._failures: dict[tuple[str, str], list[PlatformError]] = defaultdict(list)
        self._next_id: dict[str, int] = defaultdict(int)

    # Test helpers

    def fail(self, method: str, table: str, error: PlatformError | None = None, times: int = 1) -> None:
        """Make the next ``times`` calls of ``method`` on ``table`` raise."""
        error = error or PlatformError("Service unavailable", status_code=503)
        self._failures[(method, table)].extend([error] * times)

    def seed(self, table: str, *rows: dict[str, Any]) -> None:
        for row in rows:
            stored = dict(row)
            if table in self.SERIAL_TABLES:
                if "id" not in stored:
                    self._next_id[table] += 1
                    stored["id"] = self._next_id[table]
                self._next_id[table] = max(self._next_id[table], stored["id"])
            self.tables[table].append(stored)

    def add_user(self, token: str, user_id: str, email: str, password: str = "secret123", is_admin: bool = False) -> None:
        self.sessions[token] = {"id": user_id, "email": email}
        self.credentials[email] = (password, token)
        self.seed("profiles", {"id": user_id, "email": email, "is_admin": is_admin, "has_voted": False})

    def rows(self, table: str) -> list[dict[str, Any]]:
        return [dict(row) for row in self.tables[table]]

    def _record(self, method: str, table: str) -> None:
        self.calls.append((method, table))
        pending = self._failures.get((method, table))
        if pending:
            raise pending.pop(0)

    # PlatformClient

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
        token: str | None = None,
    ) -> list[dict[str, Any]]:
        self._record("select", table)
        rows = [dict(row) for row in self.tables[table] if _matches(row, filters)]
        if order:
            column, _, direction = order.partition(".")
            rows.sort(key=lambda r: r.get(column), reverse=direction == "desc")
        start = offset or 0
        end = start + limit if limit is not None else None
        rows = rows[start:end]
        if columns != "*":
            wanted = columns.split(",")
            rows = [{k: v for k, v in row.items() if k in wanted} for row in rows]
        return rows

    async def insert(self, table: str, row: dict[str, Any], *, token: str | None = None) -> dict[str, Any]:
        self._record("insert", table)
        stored = {"created_at": datetime.now(timezone.utc).isoformat(), **row}
        self.seed(table, stored)
        return dict(self.tables[table][-1])

    async def update(
        self, table: str, values: dict[str, Any], *, filters: dict[str, str], token: str | None = None
    ) -> list[dict[str, Any]]:
        self._record("update", table)
        updated = []
        for row in self.tables[table]:
            if _matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    async def delete(self, table: str, *, filters: dict[str, str], token: str | None = None) -> list[dict[str, Any]]:
        self._record("delete", table)
        removed = [row for row in self.tables[table] if _matches(row, filters)]
        self.tables[table] = [row for row in self.tables[table] if not _matches(row, filters)]
        return removed

    async def upsert(self, table: str, row: dict[str, Any], *, token: str | None = None) -> dict[str, Any]:
        self._record("upsert", table)
        key = self.UPSERT_KEYS.get(table, "id")
        for existing in self.tables[table]:
            if existing.get(key) == row.get(key):
                existing.update(row)
                return dict(existing)
        self.tables[table].append(dict(row))
        return dict(row)

    async def password_grant(self, email: str, password: str) -> httpx.Response:
        self._record("password_grant", "auth")
        expected = self.credentials.get(email)
        if expected is None or expected[0] != password:
            return httpx.Response(
                400,
                json={"error": "invalid_grant", "error_description": "Invalid login credentials"},
            )
        token = expected[1]
        return httpx.Response(
            200,
            json={"access_token": token, "token_type": "bearer", "user": self.sessions[token]},
        )

    async def sign_up(self, email: str, password: str, redirect_to: str | None = None) -> dict[str, Any]:
        self._record("sign_up", "auth")
        if email in self.credentials:
            raise PlatformError("User already registered", status_code=422)
        user_id = f"user-{len(self.credentials) + 1}"
        self.credentials[email] = (password, f"token-{user_id}")
        return {"id": user_id, "email": email}

    async def sign_out(self, token: str) -> None:
        self._record("sign_out", "auth")
        self.signed_out.append(token)

    async def recover(self, email: str, redirect_to: str | None = None) -> None:
        self._record("recover", "auth")
        self.recovered.append(email)

    async def get_user(self, token: str) -> dict[str, Any]:
        self._record("get_user", "auth")
        if token not in self.sessions:
            raise PlatformError("Invalid JWT", status_code=401)
        return dict(self.sessions[token])


class FakeChangeFeed:
    """In-memory ``ChangeFeed`` that lets tests emit change events."""

    def __init__(self) -> None:
        self.handlers: dict[str, ChangeHandler] = {}

    async def subscribe(self, table: str, handler: ChangeHandler) -> str:
        topic = f"realtime:public:{table}"
        self.handlers[topic] = handler
        return topic

    async def unsubscribe(self, topic: str) -> None:
        self.handlers.pop(topic, None)

    async def emit(self, table: str, change: str = "INSERT", record: dict[str, Any] | None = None) -> None:
        handler = self.handlers[f"realtime:public:{table}"]
        await handler(ChangeEvent(table=table, type=change, record=record or {}))


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings isolated from the developer's environment."""
    return Settings(
        SUPABASE_URL="",
        SUPABASE_ANON_KEY="test-anon-key",
        LOCAL_STORE_PATH=str(tmp_path / "store.json"),
        ADMIN_EMAILS="admin@djvote.test",
        REALTIME_ENABLED=False,
        SESSION_RETRY_BACKOFF_SECONDS=0,
        PROFILE_SYNC_BACKOFF_SECONDS=0,
    )


@pytest.fixture
def runtime_config() -> RuntimeConfig:
    """Runtime configuration with small pages and no retry delay."""
    return RuntimeConfig(page_size=2, profile_sync_attempts=3, profile_sync_backoff_seconds=0)


@pytest.fixture
def store(tmp_path: Path) -> LocalStore:
    """Empty local store in a temporary directory."""
    return LocalStore(tmp_path / "store.json")


@pytest.fixture
def fake_platform() -> FakePlatform:
    """Platform seeded with three candidates, two voters and an admin."""
    platform = FakePlatform()
    platform.seed(
        "candidates",
        {"id": 1, "name": "DJ Alpha", "genre": "House"},
        {"id": 2, "name": "DJ Beta", "genre": "Techno"},
        {"id": 3, "name": "DJ Gamma", "genre": "Drum & Bass"},
    )
    platform.add_user(VOTER_TOKEN, "user-1", "voter@gmail.com")
    platform.add_user(OTHER_VOTER_TOKEN, "user-2", "fan@example.com")
    platform.add_user(ADMIN_TOKEN, "admin-1", "admin@djvote.test")
    return platform


@pytest.fixture
def feed() -> FakeChangeFeed:
    return FakeChangeFeed()


@pytest.fixture
async def services(test_settings: Settings, fake_platform: FakePlatform, store: LocalStore) -> AppServices:
    """Service container around the fake platform, with data loaded."""
    store.set("last_known_ip", TEST_IP)
    container = build_services(test_settings, platform=fake_platform, store=store)
    await container.voting.refresh()
    return container


@pytest.fixture
async def app(services: AppServices) -> AsyncGenerator[Any, None]:
    """FastAPI application wired to the test services."""
    from main import app as fastapi_app

    fastapi_app.state.services = services
    yield fastapi_app
    del fastapi_app.state.services


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def voter_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {VOTER_TOKEN}"}


@pytest.fixture
def other_voter_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {OTHER_VOTER_TOKEN}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def voter() -> AuthUser:
    return AuthUser(id="user-1", email="voter@gmail.com", access_token=VOTER_TOKEN)


@pytest.fixture
def other_voter() -> AuthUser:
    return AuthUser(id="user-2", email="fan@example.com", access_token=OTHER_VOTER_TOKEN)
