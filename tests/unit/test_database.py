"""Tests for engine and session factory construction."""

from __future__ import annotations

from sqlalchemy import inspect, text
from sqlalchemy.pool import NullPool, StaticPool

from forumwiki.config.schema import DatabaseConfig
from forumwiki.storage.database import (
    create_db,
    create_engine_from_config,
    is_sqlite_memory,
)


class TestIsSqliteMemory:
    def test_memory_urls(self):
        assert is_sqlite_memory("sqlite+aiosqlite://")
        assert is_sqlite_memory("sqlite+aiosqlite:///:memory:")

    def test_file_and_server_urls(self):
        assert not is_sqlite_memory("sqlite+aiosqlite:///forum.db")
        assert not is_sqlite_memory("postgresql+asyncpg://u:p@db/forum")


class TestCreateDb:
    async def test_memory_db_gets_schema(self):
        factory, engine = await create_db(DatabaseConfig(url="sqlite+aiosqlite://"))
        try:
            assert isinstance(engine.pool, StaticPool)
            async with engine.connect() as conn:
                tables = await conn.run_sync(
                    lambda sync_conn: inspect(sync_conn).get_table_names()
                )
            assert {"uniqid", "boards", "topics", "posts", "topic_votes"} <= set(tables)
        finally:
            await engine.dispose()

    async def test_file_db_pragmas(self, tmp_path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'nested' / 'forum.db'}"
        factory, engine = await create_db(DatabaseConfig(url=url), create_tables=True)
        try:
            assert isinstance(engine.pool, NullPool)
            assert (tmp_path / "nested" / "forum.db").exists()
            async with factory() as session:
                fk = await session.scalar(text("PRAGMA foreign_keys"))
                mode = await session.scalar(text("PRAGMA journal_mode"))
            assert fk == 1
            assert mode == "wal"
        finally:
            await engine.dispose()

    async def test_file_db_without_schema(self, tmp_path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}"
        _, engine = await create_db(DatabaseConfig(url=url))
        try:
            async with engine.connect() as conn:
                tables = await conn.run_sync(
                    lambda sync_conn: inspect(sync_conn).get_table_names()
                )
            assert tables == []
        finally:
            await engine.dispose()

    def test_wal_can_be_disabled(self, tmp_path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'forum.db'}"
        engine = create_engine_from_config(DatabaseConfig(url=url, sqlite_wal=False))
        assert isinstance(engine.pool, NullPool)
