"""Shared test fixtures for forumwiki."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from forumwiki.config.schema import DatabaseConfig
from forumwiki.core.retry import RetryConfig
from forumwiki.service.forum import Actor, ForumService
from forumwiki.storage.database import create_db
from forumwiki.storage.models import TopicKind
from forumwiki.storage.uniqid import IdentifierGenerator

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from forumwiki.storage.models import Board, Topic


@pytest.fixture
async def db_factory() -> async_sessionmaker[AsyncSession]:  # type: ignore[misc]
    """In-memory SQLite session factory with FK enforcement and schema."""
    factory, engine = await create_db(DatabaseConfig(url="sqlite+aiosqlite://"))
    yield factory
    await engine.dispose()


@pytest.fixture
async def db_session(db_factory: async_sessionmaker[AsyncSession]) -> AsyncSession:  # type: ignore[misc]
    async with db_factory() as session:
        yield session


@pytest.fixture
async def file_db_factory(tmp_path: Path) -> async_sessionmaker[AsyncSession]:  # type: ignore[misc]
    """File-backed SQLite (WAL, busy timeout) for tests needing real contention."""
    config = DatabaseConfig(
        url=f"sqlite+aiosqlite:///{tmp_path / 'forum.db'}",
        busy_timeout=15.0,
    )
    factory, engine = await create_db(config, create_tables=True)
    yield factory
    await engine.dispose()


@pytest.fixture
def id_generator(db_factory: async_sessionmaker[AsyncSession]) -> IdentifierGenerator:
    return IdentifierGenerator(db_factory, retry=RetryConfig(base_delay=0.0))


@pytest.fixture
def service(
    db_factory: async_sessionmaker[AsyncSession], id_generator: IdentifierGenerator
) -> ForumService:
    return ForumService(db_factory, id_generator)


@pytest.fixture
def moderator() -> Actor:
    return Actor(user_id="mod-1", role="moderator")


@pytest.fixture
async def board(service: ForumService, moderator: Actor) -> Board:
    return await service.create_board(moderator, "databases", "Databases")


@pytest.fixture
async def wiki_topic(service: ForumService, board: Board) -> Topic:
    """A knowledge topic with its wiki enabled."""
    return await service.create_topic(
        board.id,
        "author-1",
        "Choosing an index",
        TopicKind.KNOWLEDGE,
        wiki_enabled=True,
    )
