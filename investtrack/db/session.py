"""
Database session management.

The engine and session factory are built by the application lifespan (see
``investtrack.main``) and kept on ``app.state``; nothing here holds a
module-level connection.  ``get_db`` hands each request its own
``AsyncSession`` and :func:`atomic` wraps multi-statement writes.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from starlette.requests import Request

from investtrack.core.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for PostgreSQL or in-memory SQLite."""
    if settings.USE_SQLITE:
        # StaticPool makes every connection share the same in-memory database;
        # without it each connection would see its own empty database.
        from sqlalchemy.pool import StaticPool

        engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        # SQLite does not enforce FK constraints by default.  aiosqlite wraps
        # a sync connection, so the listener goes on the sync engine.
        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to ``engine``.

    ``expire_on_commit=False`` keeps attributes readable after commit; a lazy
    refresh would need sync I/O, which async sessions cannot do.
    """
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a per-request session from ``app.state``."""
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        yield session


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    All-or-nothing unit of work.

    Commits when the block exits normally and rolls back every statement
    issued on ``session`` since the last commit when it raises.  Reads done
    before entering the block belong to the same database transaction, so
    precondition checks and writes see one consistent snapshot.
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
