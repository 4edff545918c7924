"""Service test fixtures — async DB, factories and FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use the test DB
    - app.state.notifier replaced by a RecordingNotifier for route tests

Design Decisions:
    - SQLite in-memory: fast, no external dependency; the partial unique indexes
      are created on SQLite too, so exclusivity is exercised for real
    - Factories insert rows directly, bypassing services, so each test sets up
      exactly the state it needs
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

import confidant.infrastructure.database as db_module
from confidant.db.base import Base
from confidant.infrastructure.database import DatabaseSessionManager, get_db
from confidant.main import app
from confidant.models.counselor import Counselor
from confidant.models.user import User


class RecordingNotifier:
    """Collects (chat_id, text) instead of sending."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def send(self, chat_id: str, text: str) -> None:
        self.sent.append((chat_id, text))

    async def aclose(self) -> None:
        return None

    def to(self, chat_id: str) -> list[str]:
        return [text for cid, text in self.sent if cid == chat_id]


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def client(test_engine, test_session_factory, notifier):
    """FastAPI test client with DB dependency and notifier overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.notifier = notifier

    original_manager = db_module.db_manager
    db_module.db_manager = DatabaseSessionManager(test_engine)

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    del app.state.notifier
    db_module.db_manager = original_manager


@pytest.fixture
def make_user(test_db):
    async def _make(handle: str | None = None, **fields) -> User:
        user = User(external_chat_handle=handle or f"u-{uuid4().hex[:10]}", **fields)
        test_db.add(user)
        await test_db.commit()
        return user
    return _make


@pytest.fixture
def make_counselor(test_db):
    async def _make(
        handle: str | None = None,
        availability: str = "available",
        is_approved: bool = True,
        is_suspended: bool = False,
        **fields,
    ) -> Counselor:
        fields.setdefault("last_active_at", datetime.now(timezone.utc))
        counselor = Counselor(
            external_chat_handle=handle or f"c-{uuid4().hex[:10]}",
            availability=availability,
            is_approved=is_approved,
            is_suspended=is_suspended,
            **fields,
        )
        test_db.add(counselor)
        await test_db.commit()
        return counselor
    return _make
