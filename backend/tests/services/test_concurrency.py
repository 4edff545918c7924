"""Concurrent booking — two requests for the same counselor, one wins.

Design Decisions:
    - File-backed SQLite with separate connections (NullPool) so the two
      sessions really run side by side; BEGIN IMMEDIATE serializes writers
      the way row locks would on PostgreSQL
"""

import asyncio

import pytest
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from confidant.core.errors import ConflictError, ConflictReason
from confidant.db.base import Base
from confidant.models.counselor import Counselor
from confidant.models.session import CounselingSession
from confidant.models.user import User
from confidant.services.session_broker import SessionBroker


@pytest.fixture
async def file_factory(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'race.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


async def test_double_booking_one_succeeds(file_factory):
    async with file_factory() as db:
        u1 = User(external_chat_handle="u1")
        u2 = User(external_chat_handle="u2")
        counselor = Counselor(
            external_chat_handle="c1", availability="available", is_approved=True,
        )
        db.add_all([u1, u2, counselor])
        await db.commit()
        user_ids, counselor_id = (u1.id, u2.id), counselor.id

    async def book(user_id):
        async with file_factory() as db:
            return await SessionBroker(db).create_session(user_id, counselor_id, True)

    results = await asyncio.gather(
        *(book(user_id) for user_id in user_ids), return_exceptions=True,
    )

    booked = [r for r in results if isinstance(r, CounselingSession)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(booked) == 1
    assert len(conflicts) == 1
    assert conflicts[0].reason is ConflictReason.COUNSELOR_HAS_ACTIVE_SESSION

    async with file_factory() as db:
        active = await db.execute(
            select(CounselingSession).where(CounselingSession.is_active.is_(True)),
        )
        assert len(active.scalars().all()) == 1
