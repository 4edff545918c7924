"""Database Session Manager — one engine per process, request-scoped AsyncSessions.

Invariants:
    - A session that sees an exception is rolled back before the exception leaves
    - Driver-level SQLAlchemy errors that escape a service surface as DatabaseError
    - ConfidantErrors raised inside the session pass through unchanged
    - Pool sizing only applies to server databases; SQLite URLs get driver defaults

Design Decisions:
    - Module-level db_manager set by the FastAPI lifespan, never at import time
    - expire_on_commit=False: services return ORM rows after committing them
    - IntegrityError from the exclusivity indexes is translated by the services
      (they know which pairing failed); one reaching here is unexpected
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)

from confidant.core.errors import DatabaseError

logger = logging.getLogger(__name__)

# Most specific first: OperationalError and IntegrityError subclass DBAPIError.
_ERROR_MAP: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "Integrity constraint violated", "commit"),
    (OperationalError, "Connection or operational error", "execute"),
    (DBAPIError, "Database driver error", "query"),
    (SQLAlchemyError, "Database operation failed", "unknown"),
)


def build_engine(
    database_url: str, pool_size: int = 20, max_overflow: int = 10,
) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url)
    return create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def _as_database_error(exc: SQLAlchemyError) -> DatabaseError:
    for exc_type, message, operation in _ERROR_MAP:
        if isinstance(exc, exc_type):
            return DatabaseError(message, operation)
    return DatabaseError("Database operation failed", "unknown")


class DatabaseSessionManager:
    """Owns the engine and hands out sessions that clean up after themselves."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False,
        )

    @classmethod
    def from_url(cls, database_url: str, **pool_options) -> "DatabaseSessionManager":
        return cls(build_engine(database_url, **pool_options))

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(
                "Database error escaped a request",
                extra={"error_type": type(e).__name__},
                exc_info=True,
            )
            raise _as_database_error(e) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """SELECT 1 through a fresh session; False on any failure."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("DB health check failed", extra={"error": str(e)})
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **pool_options) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager.from_url(database_url, **pool_options)
    return db_manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
