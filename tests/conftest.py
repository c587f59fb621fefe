"""
Shared pytest fixtures for dotareg tests.

Sets required environment variables BEFORE any dotareg module is imported so
that pydantic-settings and SQLAlchemy engine initialisation use safe test
values.
"""
from __future__ import annotations

import os
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncGenerator, AsyncIterator, Dict, List, Optional

# ── Set env vars before any dotareg import ────────────────────────────────────
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# ── Third-party ───────────────────────────────────────────────────────────────
import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# ── dotareg imports (safe after env vars are set) ─────────────────────────────
from dotareg.config import Settings
from dotareg.models.base import Base
from dotareg.models.models import AdminRole, AdminUser
from dotareg.services import auth_service
from dotareg.services.notification_service import DeliveryResult
from dotareg.services.session_store import SessionStore
from dotareg.validators import PlayerData
from dotareg.web.app import create_app, prepare_database

SUPERADMIN_PASSWORD = "Sup3rSecret"
ADMIN_PASSWORD = "Adm1nSecret"


# ── DB fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
async def engine():
    """Isolated in-memory SQLite engine; schema created fresh per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Yield a fresh AsyncSession backed by the per-test in-memory database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def session_store(async_session) -> SessionStore:
    return SessionStore(async_session, timedelta(hours=24))


async def make_admin(
    session: AsyncSession,
    username: str = "organiser",
    password: str = ADMIN_PASSWORD,
    role: str = AdminRole.ADMIN,
) -> AdminUser:
    user = await auth_service.create_user(session, username, password, role=role)
    await session.commit()
    return user


# ── In-memory player store ────────────────────────────────────────────────────

class _StoredPlayer:
    def __init__(self, entry_id: int, player: PlayerData) -> None:
        self.id      = entry_id
        self.name    = player.name
        self.dota2id = player.dota2id
        self.mmr     = player.mmr
        self.notes   = player.notes


class InMemoryPlayerStore:
    """
    PlayerStore fake. `atomic()` snapshots the records and restores them if
    the block raises, mirroring a database rollback.
    """

    def __init__(self) -> None:
        self.records: Dict[int, _StoredPlayer] = {}
        self._next_id = 1
        self.commits = 0

    async def find_duplicates(self, name: str, dota2id: str) -> List[_StoredPlayer]:
        return [
            r for r in self.records.values()
            if r.dota2id == dota2id or r.name.lower() == name.lower()
        ]

    async def add(self, player: PlayerData) -> _StoredPlayer:
        record = _StoredPlayer(self._next_id, player)
        self.records[record.id] = record
        self._next_id += 1
        return record

    async def update(self, existing: _StoredPlayer, player: PlayerData) -> _StoredPlayer:
        existing.name    = player.name
        existing.dota2id = player.dota2id
        existing.mmr     = player.mmr
        existing.notes   = player.notes
        return existing

    async def get(self, entry_id: int) -> Optional[_StoredPlayer]:
        return self.records.get(entry_id)

    async def list_all(self) -> List[_StoredPlayer]:
        return sorted(self.records.values(), key=lambda r: r.name.lower())

    async def delete(self, entry_id: int) -> bool:
        return self.records.pop(entry_id, None) is not None

    async def delete_all(self) -> int:
        removed = len(self.records)
        self.records.clear()
        return removed

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        snapshot = {k: vars(v).copy() for k, v in self.records.items()}
        try:
            yield
        except Exception:
            self.records = {}
            for k, fields in snapshot.items():
                record = _StoredPlayer.__new__(_StoredPlayer)
                record.__dict__.update(fields)
                self.records[k] = record
            raise
        else:
            self.commits += 1


@pytest.fixture
def memory_store() -> InMemoryPlayerStore:
    return InMemoryPlayerStore()


# ── HTTP fixtures ─────────────────────────────────────────────────────────────

class RecordingDispatcher:
    """Dispatcher stand-in that records every message instead of posting it."""

    def __init__(self, ok: bool = True, error: str = "HTTP 500") -> None:
        self.ok = ok
        self.error = error
        self.sent: List[tuple] = []

    async def send(self, url: str, content: str) -> DeliveryResult:
        self.sent.append((url, content))
        if self.ok:
            return DeliveryResult(ok=True, status_code=204)
        return DeliveryResult(ok=False, status_code=500, error=self.error)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        BOOTSTRAP_ADMIN_USERNAME="root",
        BOOTSTRAP_ADMIN_PASSWORD=SUPERADMIN_PASSWORD,
        PUBLIC_RATE_LIMIT=1000,
        _env_file=None,
    )


@pytest.fixture
def app(engine, session_factory, dispatcher, test_settings):
    app = create_app(
        settings=test_settings,
        engine=engine,
        session_factory=session_factory,
        dispatcher=dispatcher,
    )
    return app


@pytest.fixture
async def client(app, engine, session_factory, test_settings) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    HTTP client over ASGITransport. ASGITransport does not run the lifespan,
    so the startup work (tables, bootstrap superadmin) is done here.
    """
    await prepare_database(engine, session_factory, test_settings)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def login(client: httpx.AsyncClient, username: str, password: str) -> Dict[str, str]:
    resp = await client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return {"x-session-id": resp.json()["sessionId"]}


@pytest.fixture
async def root_headers(client) -> Dict[str, str]:
    return await login(client, "root", SUPERADMIN_PASSWORD)
