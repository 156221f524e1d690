"""Tests for ForumRepository against in-memory SQLite."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from forumwiki.storage.models import PostMergeState, PostVote, Topic, TopicVote
from forumwiki.storage.repository import (
    POST_VOTES,
    TOPIC_VOTES,
    CreditSpec,
    ForumRepository,
)

# ── Helpers ──────────────────────────────────────────────────────


async def _seed(session, *, topic_id: str = "t-1") -> ForumRepository:
    """Board b-1 with topic *topic_id*."""
    repo = ForumRepository(session)
    if await repo.get_board("b-1") is None:
        await repo.add_board("b-1", "mod-1", "general", "General")
    await repo.add_topic(topic_id, "b-1", "author-1", "A topic", "discussion")
    await session.commit()
    return repo


# ── Posts ────────────────────────────────────────────────────────


class TestPosts:
    async def test_add_post_updates_topic_counters(self, db_session):
        repo = await _seed(db_session)
        await repo.add_post("p-1", "t-1", "u1", "first")
        await repo.add_post("p-2", "t-1", "u2", "second")
        await db_session.commit()

        topic = await repo.get_topic("t-1")
        await db_session.refresh(topic)
        assert topic.post_count == 2
        assert topic.last_post_id == "p-2"

    async def test_rendered_text_equals_original(self, db_session):
        repo = await _seed(db_session)
        post = await repo.add_post("p-1", "t-1", "u1", "**bold** text")
        assert post.parsed_text == post.original_text == "**bold** text"
        assert post.merge_state == PostMergeState.ACTIVE

    async def test_get_posts_by_ids_scoped_to_topic(self, db_session):
        repo = await _seed(db_session)
        await _seed(db_session, topic_id="t-2")
        await repo.add_post("p-1", "t-1", "u1", "mine")
        await repo.add_post("p-2", "t-2", "u1", "elsewhere")
        posts = await repo.get_posts_by_ids("t-1", ["p-2", "p-1", "p-missing"])
        assert [p.id for p in posts] == ["p-1"]

    async def test_archive_posts(self, db_session):
        repo = await _seed(db_session)
        await repo.add_post("p-1", "t-1", "u1", "a")
        await repo.add_post("p-2", "t-1", "u1", "b")
        assert await repo.archive_posts(["p-1"]) == 1
        p1, p2 = await repo.get_posts_by_ids("t-1", ["p-1", "p-2"])
        assert p1.merge_state == PostMergeState.ARCHIVED
        assert p1.archived_at is not None
        assert p2.merge_state == PostMergeState.ACTIVE


# ── Topics ───────────────────────────────────────────────────────


class TestTopics:
    async def test_list_topics_paginates_with_total(self, db_session):
        repo = await _seed(db_session)
        for i in range(2, 6):
            await repo.add_topic(f"t-{i}", "b-1", "author-1", f"Topic {i}", "discussion")
        await db_session.commit()

        page, total = await repo.list_topics_by_board("b-1", limit=2, offset=0)
        assert total == 5
        assert len(page) == 2

    async def test_duplicate_board_slug_violates_constraint(self, db_session):
        repo = await _seed(db_session)
        with pytest.raises(IntegrityError):
            await repo.add_board("b-2", "mod-1", "general", "Again")


# ── Votes ────────────────────────────────────────────────────────


class TestVotes:
    async def test_first_vote_inserts_and_bumps_counter(self, db_session):
        repo = await _seed(db_session)
        new_id = AsyncMock(return_value="v-1")
        delta = await repo.upsert_vote(TOPIC_VOTES, "t-1", "u1", 1, new_id=new_id)
        assert delta == 1
        new_id.assert_awaited_once()
        assert await repo.get_vote_count(TOPIC_VOTES, "t-1") == 1

    async def test_same_value_is_noop(self, db_session):
        repo = await _seed(db_session)
        new_id = AsyncMock(return_value="v-1")
        await repo.upsert_vote(TOPIC_VOTES, "t-1", "u1", 1, new_id=new_id)
        delta = await repo.upsert_vote(TOPIC_VOTES, "t-1", "u1", 1, new_id=new_id)
        assert delta == 0
        assert new_id.await_count == 1
        assert await repo.get_vote_count(TOPIC_VOTES, "t-1") == 1

    async def test_flip_applies_difference(self, db_session):
        repo = await _seed(db_session)
        await repo.upsert_vote(
            TOPIC_VOTES, "t-1", "u1", 1, new_id=AsyncMock(return_value="v-1")
        )
        await repo.upsert_vote(
            TOPIC_VOTES, "t-1", "u2", 1, new_id=AsyncMock(return_value="v-2")
        )
        delta = await repo.upsert_vote(
            TOPIC_VOTES, "t-1", "u1", -1, new_id=AsyncMock()
        )
        assert delta == -2
        assert await repo.get_vote_count(TOPIC_VOTES, "t-1") == 0
        assert await repo.sum_votes(TOPIC_VOTES, "t-1") == 0
        vote = await repo.get_vote(TOPIC_VOTES, "t-1", "u1")
        assert isinstance(vote, TopicVote)
        assert vote.value == -1

    async def test_post_votes_use_post_counter(self, db_session):
        repo = await _seed(db_session)
        await repo.add_post("p-1", "t-1", "u1", "text")
        await repo.upsert_vote(
            POST_VOTES, "p-1", "u2", -1, new_id=AsyncMock(return_value="pv-1")
        )
        assert await repo.get_vote_count(POST_VOTES, "p-1") == -1
        assert await repo.get_vote_count(TOPIC_VOTES, "t-1") == 0
        assert isinstance(await repo.get_vote(POST_VOTES, "p-1", "u2"), PostVote)

    async def test_duplicate_vote_row_violates_constraint(self, db_session):
        repo = await _seed(db_session)
        db_session.add(TopicVote(id="v-1", topic_id="t-1", user_id="u1", value=1))
        db_session.add(TopicVote(id="v-2", topic_id="t-1", user_id="u1", value=-1))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_delta_uses_row_as_stored(self, db_session):
        repo = await _seed(db_session)
        await repo.upsert_vote(
            TOPIC_VOTES, "t-1", "u1", 1, new_id=AsyncMock(return_value="v-1")
        )
        # Another writer flips the vote behind this session's back.
        await db_session.execute(
            update(TopicVote)
            .where(TopicVote.id == "v-1")
            .values(value=-1)
            .execution_options(synchronize_session=False)
        )
        await db_session.execute(
            update(Topic)
            .where(Topic.id == "t-1")
            .values(vote_count=-1)
            .execution_options(synchronize_session=False)
        )

        delta = await repo.upsert_vote(TOPIC_VOTES, "t-1", "u1", -1, new_id=AsyncMock())
        assert delta == 0
        assert await repo.get_vote_count(TOPIC_VOTES, "t-1") == -1
        assert await repo.sum_votes(TOPIC_VOTES, "t-1") == -1


# ── Credits, links, solutions ────────────────────────────────────


class TestCredits:
    async def test_contributors_summed_and_ordered(self, db_session):
        repo = await _seed(db_session)
        await repo.add_wiki_revision("r-1", "t-1", "mod-1", "Wiki", "doc")
        await repo.add_contribution_credits(
            "t-1",
            "r-1",
            [
                CreditSpec("c-1", "zed", 1),
                CreditSpec("c-2", "amy", 2),
                CreditSpec("c-3", "zed", 2),
                CreditSpec("c-4", "bob", 3),
            ],
        )
        stats = await repo.list_contributors("t-1")
        assert [(s.user_id, s.total_weight) for s in stats] == [
            ("bob", 3),
            ("zed", 3),
            ("amy", 2),
        ]
        assert await repo.count_credits_for_revision("r-1") == 4

    async def test_no_credits(self, db_session):
        repo = await _seed(db_session)
        assert await repo.list_contributors("t-1") == []


class TestDocLinks:
    async def test_links_by_sources_in_insertion_order(self, db_session):
        repo = await _seed(db_session, topic_id="t-a")
        for tid in ("t-b", "t-c"):
            await _seed(db_session, topic_id=tid)
        await repo.add_doc_link("l-2", "t-a", "t-c", "related")
        await repo.add_doc_link("l-1", "t-a", "t-b", "related")
        await repo.add_doc_link("l-3", "t-b", "t-c", "related")

        links = await repo.list_doc_links_by_sources(["t-a"])
        assert [link.id for link in links] == ["l-1", "l-2"]
        assert await repo.list_doc_links_by_sources([]) == []


class TestSolutions:
    async def test_upsert_overwrites_and_sets_solved_post(self, db_session):
        repo = await _seed(db_session)
        await repo.add_post("p-1", "t-1", "u1", "a")
        await repo.add_post("p-2", "t-1", "u2", "b")
        new_id = AsyncMock(return_value="s-1")

        first = await repo.upsert_topic_solution("t-1", "p-1", "author-1", new_id=new_id)
        second = await repo.upsert_topic_solution("t-1", "p-2", "mod-1", new_id=new_id)
        await db_session.commit()

        assert first.id == second.id == "s-1"
        assert new_id.await_count == 1
        solution = await repo.get_topic_solution("t-1")
        assert solution.post_id == "p-2"
        assert solution.set_by_user_id == "mod-1"
        topic = await repo.get_topic("t-1")
        await db_session.refresh(topic)
        assert topic.solved_post_id == "p-2"


class TestMergeJobs:
    async def test_job_round_trip_with_refs(self, db_session):
        repo = await _seed(db_session)
        await repo.add_post("p-1", "t-1", "u1", "a")
        await repo.add_post("p-2", "t-1", "u2", "b")
        await repo.add_merge_job(
            "j-1", "t-1", "u1", [("ref-1", "p-2"), ("ref-2", "p-1")], summary="tidy"
        )
        await db_session.commit()
        db_session.expunge_all()

        job = await repo.get_merge_job("j-1")
        assert job.status == "pending"
        assert [r.post_id for r in job.post_refs] == ["p-2", "p-1"]

        await repo.update_merge_job(job, status="reviewed", reviewer_id="mod-1")
        assert job.reviewer_id == "mod-1"
        assert job.applied_revision_id is None

    async def test_missing_job(self, db_session):
        repo = await _seed(db_session)
        assert await repo.get_merge_job("nope", fresh=True) is None

    async def test_claim_is_conditional(self, db_session):
        repo = await _seed(db_session)
        await repo.add_post("p-1", "t-1", "u1", "a")
        await repo.add_merge_job("j-1", "t-1", "u1", [("ref-1", "p-1")])

        first = await repo.claim_merge_job(
            "j-1", from_states=["pending"], status="reviewed", reviewer_id="mod-1"
        )
        second = await repo.claim_merge_job(
            "j-1", from_states=["pending"], status="reviewed", reviewer_id="mod-2"
        )
        assert first is True
        assert second is False

        job = await repo.get_merge_job("j-1", fresh=True)
        assert job.status == "reviewed"
        assert job.reviewer_id == "mod-1"
