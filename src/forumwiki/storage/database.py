"""Async engine and session factory construction."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from forumwiki.storage.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from forumwiki.config.schema import DatabaseConfig

logger = logging.getLogger(__name__)


def _expand_url(url: str) -> str:
    """Expand ``~`` in a file URL to the user's home directory."""
    if "~" in url:
        url = url.replace("~", str(Path.home()))
    return url


def is_sqlite_memory(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (
        None,
        "",
        ":memory:",
    )


def create_engine_from_config(config: DatabaseConfig) -> AsyncEngine:
    """Build an async engine with per-backend pool and pragma settings."""
    url = _expand_url(config.url)
    backend = make_url(url).get_backend_name()

    engine_kwargs: dict[str, object] = {}
    if backend == "sqlite":
        if is_sqlite_memory(url):
            # All sessions must share the one connection that holds the data.
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            db_path = make_url(url).database or ""
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            # An operation holds its session connection while the identifier
            # generator opens another, so the pool must not cap connections.
            engine_kwargs["poolclass"] = NullPool
            engine_kwargs["connect_args"] = {"timeout": config.busy_timeout}
    else:
        engine_kwargs["pool_size"] = config.pool_size
        engine_kwargs["max_overflow"] = config.max_overflow
        engine_kwargs["pool_timeout"] = config.pool_timeout
        engine_kwargs["pool_recycle"] = config.pool_recycle
        engine_kwargs["pool_pre_ping"] = True

    engine = create_async_engine(url, **engine_kwargs)

    if backend == "sqlite":
        use_wal = config.sqlite_wal and not is_sqlite_memory(url)

        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if use_wal:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def create_db(
    config: DatabaseConfig,
    *,
    create_tables: bool | None = None,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create engine and session factory from config.

    In-memory SQLite always gets its tables created (nothing else could
    have created them). File databases and servers are expected to be
    prepared by ``forumwiki init-db`` or alembic unless *create_tables*
    is set.
    """
    engine = create_engine_from_config(config)
    if create_tables is None:
        create_tables = is_sqlite_memory(_expand_url(config.url))
    if create_tables:
        await create_schema(engine)
        logger.info("Database schema ensured at %s", engine.url)
    return create_session_factory(engine), engine
