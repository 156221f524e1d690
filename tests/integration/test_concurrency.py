"""Concurrency tests against a file-backed SQLite database.

Concurrent operations each open their own connection, so the sequence
store and the counter updates see real write-lock contention.
"""

from __future__ import annotations

import asyncio
import logging

import pytest
from sqlalchemy import func, select

from forumwiki.config.schema import DatabaseConfig
from forumwiki.core.retry import RetryConfig
from forumwiki.service.forum import Actor, ForumService
from forumwiki.storage.database import create_db
from forumwiki.storage.models import UniqueID, WikiRevision
from forumwiki.storage.repository import TOPIC_VOTES, ForumRepository
from forumwiki.storage.uniqid import IdentifierGenerator

CONCURRENCY = 12


def _service(factory) -> ForumService:
    ids = IdentifierGenerator(factory, retry=RetryConfig(max_attempts=5))
    return ForumService(factory, ids)


async def _topic(service: ForumService, *, wiki_enabled: bool = False):
    board = await service.create_board(Actor("mod-1", "admin"), "busy", "Busy")
    return await service.create_topic(
        board.id, "author-1", "Hot thread", wiki_enabled=wiki_enabled
    )


@pytest.fixture
async def impatient_factory(tmp_path):
    """File-backed SQLite that fails at once on a held write lock."""
    config = DatabaseConfig(
        url=f"sqlite+aiosqlite:///{tmp_path / 'impatient.db'}",
        busy_timeout=0.0,
    )
    factory, engine = await create_db(config, create_tables=True)
    yield factory
    await engine.dispose()


class TestConcurrentWrites:
    async def test_identifiers_unique_under_contention(self, file_db_factory):
        ids = IdentifierGenerator(file_db_factory)
        results = await asyncio.gather(
            *(ids.generate("posts") for _ in range(CONCURRENCY * 2))
        )
        assert len(set(results)) == len(results)
        assert all(r.startswith("1013") for r in results)

    async def test_concurrent_posts_keep_count(self, file_db_factory):
        service = _service(file_db_factory)
        topic = await _topic(service)

        posts = await asyncio.gather(
            *(
                service.create_post(topic.id, f"user-{i}", f"reply number {i}")
                for i in range(CONCURRENCY)
            )
        )

        assert len({p.id for p in posts}) == CONCURRENCY
        refreshed = await service.get_topic(topic.id)
        assert refreshed.post_count == CONCURRENCY
        assert refreshed.last_post_id in {p.id for p in posts}

    async def test_concurrent_votes_by_distinct_users(self, file_db_factory):
        service = _service(file_db_factory)
        topic = await _topic(service)

        await asyncio.gather(
            *(
                service.vote_topic(topic.id, f"user-{i}", 1 if i % 3 else -1)
                for i in range(CONCURRENCY)
            )
        )

        expected = sum(1 if i % 3 else -1 for i in range(CONCURRENCY))
        async with file_db_factory() as session:
            repo = ForumRepository(session)
            assert await repo.get_vote_count(TOPIC_VOTES, topic.id) == expected
            assert await repo.sum_votes(TOPIC_VOTES, topic.id) == expected

    async def test_concurrent_revotes_by_same_user(self, file_db_factory):
        service = _service(file_db_factory)
        topic = await _topic(service)
        await service.vote_topic(topic.id, "user-1", 1)

        await asyncio.gather(
            *(
                service.vote_topic(topic.id, "user-1", -1 if i % 2 else 1)
                for i in range(8)
            )
        )

        async with file_db_factory() as session:
            repo = ForumRepository(session)
            count = await repo.get_vote_count(TOPIC_VOTES, topic.id)
            assert count == await repo.sum_votes(TOPIC_VOTES, topic.id)
            assert count in (-1, 1)

    async def test_concurrent_applies_record_one_revision(self, file_db_factory):
        service = _service(file_db_factory)
        topic = await _topic(service, wiki_enabled=True)
        p1 = await service.create_post(topic.id, "user-1", "first answer")
        p2 = await service.create_post(topic.id, "user-2", "second answer")
        job = await service.create_merge_job(topic.id, "user-1", [p1.id, p2.id])
        mod = Actor("mod-1", "moderator")

        revisions = await asyncio.gather(
            *(
                service.apply_merge_job(
                    topic.id,
                    job.id,
                    mod,
                    title="Hot thread wiki",
                    document="both answers",
                    contribution_weight=2,
                )
                for _ in range(2)
            )
        )

        assert revisions[0].id == revisions[1].id
        async with file_db_factory() as session:
            stored = await session.scalar(
                select(func.count()).select_from(WikiRevision)
            )
            assert stored == 1
        contributors = await service.list_contributors(topic.id)
        assert {c.user_id: c.total_weight for c in contributors} == {
            "user-1": 2,
            "user-2": 2,
        }
        refreshed = await service.get_topic(topic.id)
        assert refreshed.current_wiki_revision_id == revisions[0].id


class TestBusySequenceStore:
    async def test_generate_retries_while_lock_is_held(self, impatient_factory, caplog):
        ids = IdentifierGenerator(
            impatient_factory, retry=RetryConfig(max_attempts=30, base_delay=0.02)
        )
        held = asyncio.Event()
        release = asyncio.Event()

        async def hold_write_lock() -> None:
            async with impatient_factory() as session:
                session.add(UniqueID(uniqid_type=9999))
                await session.flush()
                held.set()
                await release.wait()
                await session.rollback()

        holder = asyncio.create_task(hold_write_lock())
        await held.wait()

        async def release_later() -> None:
            await asyncio.sleep(0.2)
            release.set()

        with caplog.at_level(logging.WARNING, logger="forumwiki.storage.uniqid"):
            results, _ = await asyncio.gather(
                asyncio.gather(*(ids.generate("posts") for _ in range(CONCURRENCY * 2))),
                release_later(),
            )
        await holder

        assert len(set(results)) == len(results)
        assert any("Sequence store busy" in r.getMessage() for r in caplog.records)
        assert not any(r.levelno >= logging.ERROR for r in caplog.records)
