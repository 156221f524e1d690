"""Forum repository: row inserts, relative counter updates, upserts.

All mutating methods add objects to the session and flush, but do NOT
commit. The caller controls transaction boundaries via
``session.commit()``; see :meth:`ForumService._unit_of_work`.

Identifiers are passed in already minted, or requested through a
``new_id`` callable that is invoked before the method's first write.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import selectinload

from forumwiki.storage.models import (
    Board,
    ContributionCredit,
    DocLink,
    MergeJob,
    MergeJobPostRef,
    Post,
    PostMergeState,
    PostVote,
    Topic,
    TopicSolution,
    TopicVote,
    WikiRevision,
    _utcnow,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True, slots=True)
class VotableTarget:
    """One kind of vote target: its vote table and its cached counter."""

    kind: str
    vote_model: type[TopicVote] | type[PostVote]
    target_model: type[Topic] | type[Post]
    target_column: str


TOPIC_VOTES = VotableTarget(
    kind="topic_votes",
    vote_model=TopicVote,
    target_model=Topic,
    target_column="topic_id",
)
POST_VOTES = VotableTarget(
    kind="post_votes",
    vote_model=PostVote,
    target_model=Post,
    target_column="post_id",
)


@dataclass(frozen=True, slots=True)
class ContributorStat:
    """Summed contribution weight of one user within a topic."""

    user_id: str
    total_weight: int


@dataclass(frozen=True, slots=True)
class CreditSpec:
    """A contribution credit to append."""

    credit_id: str
    user_id: str
    weight: int


class ForumRepository:
    """Async repository for forum rows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ── Board ────────────────────────────────────────────────────

    async def add_board(
        self,
        board_id: str,
        creator_id: str,
        slug: str,
        name: str,
        description: str = "",
    ) -> Board:
        board = Board(
            id=board_id,
            creator_id=creator_id,
            slug=slug,
            name=name,
            description=description,
        )
        self._session.add(board)
        await self._session.flush()
        return board

    async def get_board(self, board_id: str) -> Board | None:
        return await self._session.get(Board, board_id)

    async def get_board_by_slug(self, slug: str) -> Board | None:
        result = await self._session.execute(select(Board).where(Board.slug == slug))
        return result.scalar_one_or_none()

    # ── Topic ────────────────────────────────────────────────────

    async def add_topic(
        self,
        topic_id: str,
        board_id: str,
        user_id: str,
        title: str,
        topic_kind: str,
        *,
        is_wiki_enabled: bool = False,
    ) -> Topic:
        topic = Topic(
            id=topic_id,
            board_id=board_id,
            user_id=user_id,
            title=title,
            topic_kind=topic_kind,
            is_wiki_enabled=is_wiki_enabled,
        )
        self._session.add(topic)
        await self._session.flush()
        return topic

    async def get_topic(self, topic_id: str, *, fresh: bool = False) -> Topic | None:
        """Load a topic; *fresh* re-reads columns already in the session."""
        return await self._session.get(Topic, topic_id, populate_existing=fresh)

    async def list_topics_by_board(
        self,
        board_id: str,
        *,
        limit: int,
        offset: int = 0,
    ) -> tuple[list[Topic], int]:
        """Topics of a board, newest first, plus the unpaginated total."""
        total = await self._session.scalar(
            select(func.count()).select_from(Topic).where(Topic.board_id == board_id)
        )
        stmt = (
            select(Topic)
            .where(Topic.board_id == board_id)
            .order_by(Topic.created_at.desc(), Topic.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all()), int(total or 0)

    async def set_current_revision(self, topic: Topic, revision_id: str) -> Topic:
        """Persist the topic's current-revision pointer."""
        topic.current_wiki_revision_id = revision_id
        await self._session.flush()
        return topic

    # ── Post ─────────────────────────────────────────────────────

    async def add_post(
        self, post_id: str, topic_id: str, user_id: str, text: str
    ) -> Post:
        """Insert a post and bump the topic's post count and last post."""
        post = Post(
            id=post_id,
            topic_id=topic_id,
            user_id=user_id,
            original_text=text,
            parsed_text=text,
        )
        self._session.add(post)
        await self._session.flush()
        await self._session.execute(
            update(Topic)
            .where(Topic.id == topic_id)
            .values(post_count=Topic.post_count + 1, last_post_id=post_id)
            .execution_options(synchronize_session=False)
        )
        return post

    async def get_post(self, post_id: str) -> Post | None:
        return await self._session.get(Post, post_id)

    async def get_posts_by_ids(
        self, topic_id: str, post_ids: Sequence[str]
    ) -> list[Post]:
        """Posts of *topic_id* among *post_ids*; missing ids are skipped."""
        if not post_ids:
            return []
        stmt = (
            select(Post)
            .where(Post.topic_id == topic_id, Post.id.in_(list(post_ids)))
            .order_by(Post.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_posts(
        self, topic_id: str, *, limit: int = 100, offset: int = 0
    ) -> list[Post]:
        """Posts of a topic in creation order."""
        stmt = (
            select(Post)
            .where(Post.topic_id == topic_id)
            .order_by(Post.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def archive_posts(self, post_ids: Sequence[str]) -> int:
        """Mark posts archived. Already-archived posts are rewritten as-is."""
        if not post_ids:
            return 0
        result = await self._session.execute(
            update(Post)
            .where(Post.id.in_(list(post_ids)))
            .values(merge_state=PostMergeState.ARCHIVED, archived_at=_utcnow())
        )
        return int(result.rowcount or 0)  # type: ignore[attr-defined]

    # ── Wiki revisions ───────────────────────────────────────────

    async def add_wiki_revision(
        self,
        revision_id: str,
        topic_id: str,
        editor_id: str,
        title: str,
        document: str,
        *,
        summary: str = "",
        parent_revision_id: str | None = None,
    ) -> WikiRevision:
        revision = WikiRevision(
            id=revision_id,
            topic_id=topic_id,
            editor_id=editor_id,
            title=title,
            document=document,
            summary=summary,
            parent_revision_id=parent_revision_id,
        )
        self._session.add(revision)
        await self._session.flush()
        return revision

    async def get_wiki_revision(self, revision_id: str) -> WikiRevision | None:
        return await self._session.get(WikiRevision, revision_id)

    async def list_wiki_revisions(self, topic_id: str) -> list[WikiRevision]:
        """All revisions of a topic, newest first."""
        stmt = (
            select(WikiRevision)
            .where(WikiRevision.topic_id == topic_id)
            .order_by(WikiRevision.created_at.desc(), WikiRevision.id.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ── Merge jobs ───────────────────────────────────────────────

    async def add_merge_job(
        self,
        job_id: str,
        topic_id: str,
        creator_id: str,
        refs: Sequence[tuple[str, str]],
        *,
        summary: str = "",
    ) -> MergeJob:
        """Insert a pending job with its ``(ref_id, post_id)`` rows."""
        job = MergeJob(
            id=job_id,
            topic_id=topic_id,
            creator_id=creator_id,
            summary=summary,
            status="pending",
            post_refs=[
                MergeJobPostRef(id=ref_id, post_id=post_id) for ref_id, post_id in refs
            ],
        )
        self._session.add(job)
        await self._session.flush()
        return job

    async def get_merge_job(
        self, job_id: str, *, fresh: bool = False
    ) -> MergeJob | None:
        """Load a job with its post refs; *fresh* re-reads a loaded job."""
        stmt = (
            select(MergeJob)
            .where(MergeJob.id == job_id)
            .options(selectinload(MergeJob.post_refs))
            .execution_options(populate_existing=fresh)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def claim_merge_job(
        self,
        job_id: str,
        *,
        from_states: Sequence[str],
        status: str,
        reviewer_id: str | None = None,
    ) -> bool:
        """Move a job to *status* only if it is still in one of *from_states*.

        This is a single conditional UPDATE, so of two concurrent claims
        exactly one matches the row. Returns False when another writer
        moved the job first.
        """
        values: dict[str, Any] = {"status": status}
        if reviewer_id is not None:
            values["reviewer_id"] = reviewer_id
        result = await self._session.execute(
            update(MergeJob)
            .where(MergeJob.id == job_id, MergeJob.status.in_(list(from_states)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0) == 1  # type: ignore[attr-defined]

    async def update_merge_job(
        self,
        job: MergeJob,
        *,
        status: str,
        reviewer_id: str | None = None,
        applied_revision_id: str | None = None,
        applied_at: datetime | None = None,
    ) -> MergeJob:
        """Write the job's workflow columns."""
        job.status = status
        if reviewer_id is not None:
            job.reviewer_id = reviewer_id
        if applied_revision_id is not None:
            job.applied_revision_id = applied_revision_id
        if applied_at is not None:
            job.applied_at = applied_at
        await self._session.flush()
        return job

    # ── Contribution credits ─────────────────────────────────────

    async def add_contribution_credits(
        self, topic_id: str, revision_id: str, credits: Sequence[CreditSpec]
    ) -> list[ContributionCredit]:
        rows = [
            ContributionCredit(
                id=c.credit_id,
                topic_id=topic_id,
                revision_id=revision_id,
                user_id=c.user_id,
                weight=c.weight,
            )
            for c in credits
        ]
        if rows:
            self._session.add_all(rows)
            await self._session.flush()
        return rows

    async def list_contributors(self, topic_id: str) -> list[ContributorStat]:
        """Credit weight summed per user, heaviest first."""
        total = func.sum(ContributionCredit.weight).label("total_weight")
        stmt = (
            select(ContributionCredit.user_id, total)
            .where(ContributionCredit.topic_id == topic_id)
            .group_by(ContributionCredit.user_id)
            .order_by(total.desc(), ContributionCredit.user_id)
        )
        result = await self._session.execute(stmt)
        return [
            ContributorStat(user_id=row.user_id, total_weight=int(row.total_weight))
            for row in result
        ]

    async def count_credits_for_revision(self, revision_id: str) -> int:
        return int(
            await self._session.scalar(
                select(func.count())
                .select_from(ContributionCredit)
                .where(ContributionCredit.revision_id == revision_id)
            )
            or 0
        )

    # ── Doc links ────────────────────────────────────────────────

    async def add_doc_link(
        self,
        link_id: str,
        source_topic_id: str,
        target_topic_id: str,
        link_type: str,
    ) -> DocLink:
        link = DocLink(
            id=link_id,
            source_topic_id=source_topic_id,
            target_topic_id=target_topic_id,
            link_type=link_type,
        )
        self._session.add(link)
        await self._session.flush()
        return link

    async def list_doc_links_by_sources(
        self, source_topic_ids: Sequence[str]
    ) -> list[DocLink]:
        """Outgoing links of the given topics, in insertion order."""
        if not source_topic_ids:
            return []
        stmt = (
            select(DocLink)
            .where(DocLink.source_topic_id.in_(list(source_topic_ids)))
            .order_by(DocLink.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ── Solutions ────────────────────────────────────────────────

    async def get_topic_solution(
        self, topic_id: str, *, fresh: bool = False
    ) -> TopicSolution | None:
        result = await self._session.execute(
            select(TopicSolution)
            .where(TopicSolution.topic_id == topic_id)
            .execution_options(populate_existing=fresh)
        )
        return result.scalar_one_or_none()

    async def upsert_topic_solution(
        self,
        topic_id: str,
        post_id: str,
        user_id: str,
        *,
        new_id: Callable[[], Awaitable[str]],
    ) -> TopicSolution:
        """Create or overwrite the topic's solution and its ``solved_post_id``.

        The topic row is written first, which serializes concurrent
        setters; the solution row is then re-read under that lock.
        """
        seen = await self.get_topic_solution(topic_id)
        solution_id = None if seen is not None else await new_id()

        await self._session.execute(
            update(Topic)
            .where(Topic.id == topic_id)
            .values(solved_post_id=post_id)
            .execution_options(synchronize_session=False)
        )

        solution = await self.get_topic_solution(topic_id, fresh=True)
        if solution is None:
            solution = TopicSolution(
                id=solution_id,
                topic_id=topic_id,
                post_id=post_id,
                set_by_user_id=user_id,
            )
            self._session.add(solution)
        else:
            solution.post_id = post_id
            solution.set_by_user_id = user_id
        await self._session.flush()
        return solution

    # ── Votes ────────────────────────────────────────────────────

    async def get_vote(
        self,
        target: VotableTarget,
        target_id: str,
        user_id: str,
        *,
        fresh: bool = False,
    ) -> TopicVote | PostVote | None:
        model: Any = target.vote_model
        stmt = (
            select(model)
            .where(
                getattr(model, target.target_column) == target_id,
                model.user_id == user_id,
            )
            .execution_options(populate_existing=fresh)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_vote_target(self, target: VotableTarget, target_id: str) -> None:
        """Take the write lock on the target's counter row.

        A self-assignment of ``vote_count``: a row lock on servers, the
        database write lock on SQLite. Held until the transaction ends.
        """
        counter: Any = target.target_model
        await self._session.execute(
            update(counter)
            .where(counter.id == target_id)
            .values(vote_count=counter.vote_count)
            .execution_options(synchronize_session=False)
        )

    async def upsert_vote(
        self,
        target: VotableTarget,
        target_id: str,
        user_id: str,
        value: int,
        *,
        new_id: Callable[[], Awaitable[str]],
    ) -> int:
        """Record *user_id*'s vote on *target_id* and adjust its counter.

        Returns the delta applied to the target's ``vote_count``. A
        repeated vote with the same value yields 0 and leaves the counter
        untouched. The delta is computed from the vote row as re-read
        under the target's lock, so concurrent votes by one user never
        apply a stale difference.
        """
        seen = await self.get_vote(target, target_id, user_id)
        vote_id = None if seen is not None else await new_id()

        await self.lock_vote_target(target, target_id)

        # Vote rows are never deleted, so a row seen above is still there.
        existing = await self.get_vote(target, target_id, user_id, fresh=True)
        if existing is None:
            model: Any = target.vote_model
            vote = model(id=vote_id, user_id=user_id, value=value)
            setattr(vote, target.target_column, target_id)
            self._session.add(vote)
            delta = value
        else:
            delta = value - existing.value
            existing.value = value
        await self._session.flush()

        if delta != 0:
            counter: Any = target.target_model
            await self._session.execute(
                update(counter)
                .where(counter.id == target_id)
                .values(vote_count=counter.vote_count + delta)
                .execution_options(synchronize_session=False)
            )
        return delta

    async def get_vote_count(self, target: VotableTarget, target_id: str) -> int:
        """The target's cached counter as stored, bypassing the identity map."""
        counter: Any = target.target_model
        count = await self._session.scalar(
            select(counter.vote_count).where(counter.id == target_id)
        )
        return int(count or 0)

    async def sum_votes(self, target: VotableTarget, target_id: str) -> int:
        """Sum of current vote values, the ledger's view of the counter."""
        model: Any = target.vote_model
        total = await self._session.scalar(
            select(func.coalesce(func.sum(model.value), 0)).where(
                getattr(model, target.target_column) == target_id
            )
        )
        return int(total or 0)
