"""Async engine and session factory for the local store."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shelfcheck.config import DatabaseSettings
from shelfcheck.infrastructure.persistence.models import Base

logger = logging.getLogger(__name__)

# Seconds a writer waits on a locked SQLite file before "database is locked"
SQLITE_BUSY_TIMEOUT = 30


class Database:
    """Owns the engine; hands out sessions to SqlAlchemyLocalStore."""

    def __init__(self, settings: DatabaseSettings) -> None:
        self.settings = settings

        engine_kwargs: dict[str, Any] = {"echo": settings.echo}
        is_sqlite = settings.url.startswith("sqlite")
        if is_sqlite:
            engine_kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": SQLITE_BUSY_TIMEOUT,
            }
            path = settings.sqlite_path()
            if path is not None:
                path.parent.mkdir(parents=True, exist_ok=True)

        self._engine = create_async_engine(settings.url, **engine_kwargs)
        if is_sqlite:
            self._configure_sqlite()

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def _configure_sqlite(self) -> None:
        """Per-connection pragmas.

        WAL lets the UI read records while a long analysis batch holds the write
        transaction open between checkpoints.
        """

        @event.listens_for(self._engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, _connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    def new_session(self) -> AsyncSession:
        """Create a session the caller owns (commit/close are the caller's job)."""
        return self._session_factory()

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """One unit of work: commit on success, roll back on any error."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug(f"Local store schema ready ({self._engine.url.render_as_string()})")

    async def close(self) -> None:
        await self._engine.dispose()


__all__ = ["SQLITE_BUSY_TIMEOUT", "Database"]
