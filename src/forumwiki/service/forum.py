"""Forum orchestration: request-level use cases over the repository.

Each public method resolves existence and authorization preconditions
with read-only lookups, draws any identifiers it needs, and then runs
its writes inside a single unit of work: either every row change of the
operation commits, or none does.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from forumwiki.config.schema import ForumSettings
from forumwiki.core.errors import (
    AlreadyAppliedError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationFailedError,
)
from forumwiki.domain.graph import DocGraph, clamp_depth, traverse
from forumwiki.domain.merge_job import MergeJobState, MergeJobStateMachine
from forumwiki.domain.topic import TopicWiki
from forumwiki.storage.models import (
    BoardStatus,
    LinkType,
    TopicKind,
    TopicStatus,
    _utcnow,
)
from forumwiki.storage.repository import (
    POST_VOTES,
    TOPIC_VOTES,
    CreditSpec,
    ForumRepository,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from forumwiki.storage.models import (
        Board,
        DocLink,
        MergeJob,
        Post,
        Topic,
        TopicSolution,
        WikiRevision,
    )
    from forumwiki.storage.repository import ContributorStat, VotableTarget
    from forumwiki.storage.uniqid import IdentifierGenerator

logger = logging.getLogger(__name__)

_VOTE_VALUES = frozenset({-1, 1})


@dataclass(frozen=True, slots=True)
class Actor:
    """Caller identity supplied by the authentication layer."""

    user_id: str
    role: str = "user"


@dataclass(frozen=True, slots=True)
class TopicPage:
    """One page of a board's topics."""

    items: list[Topic]
    total: int
    page: int
    page_size: int


@dataclass(frozen=True, slots=True)
class VoteResult:
    """Outcome of a vote: the delta applied and the counter afterwards."""

    target_id: str
    value: int
    delta: int
    vote_count: int


class ForumService:
    """Boards, topics, posts, wiki revisions, merges, links, and votes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        id_generator: IdentifierGenerator,
        settings: ForumSettings | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._ids = id_generator
        self._settings = settings or ForumSettings()

    # ── Plumbing ─────────────────────────────────────────────────

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[ForumRepository]:
        """One session, committed on success and rolled back otherwise."""
        async with self._session_factory() as session:
            try:
                yield ForumRepository(session)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Storage failure, transaction rolled back: %s", e)
                msg = f"Storage failure: {e}"
                raise StorageError(msg) from e

    def is_elevated(self, actor: Actor) -> bool:
        return actor.role in self._settings.elevated_roles

    def _require_elevated(self, actor: Actor, action: str) -> None:
        if not self.is_elevated(actor):
            roles = ", ".join(self._settings.elevated_roles)
            msg = f"{action} requires one of: {roles}"
            raise ForbiddenError(msg)

    def _page_bounds(self, page: int, page_size: int | None) -> tuple[int, int]:
        if page < 1:
            page = 1
        if page_size is None or page_size < 1:
            page_size = self._settings.default_page_size
        page_size = min(page_size, self._settings.max_page_size)
        return page, page_size

    @staticmethod
    async def _load_topic(repo: ForumRepository, topic_id: str) -> Topic:
        topic = await repo.get_topic(topic_id)
        if topic is None:
            raise NotFoundError("topic", topic_id)
        return topic

    @staticmethod
    async def _load_board(repo: ForumRepository, board_id: str) -> Board:
        board = await repo.get_board(board_id)
        if board is None:
            raise NotFoundError("board", board_id)
        return board

    @staticmethod
    async def _load_post(repo: ForumRepository, post_id: str) -> Post:
        post = await repo.get_post(post_id)
        if post is None:
            raise NotFoundError("post", post_id)
        return post

    @staticmethod
    async def _reload_job(repo: ForumRepository, job_id: str) -> MergeJob:
        job = await repo.get_merge_job(job_id, fresh=True)
        if job is None:
            raise NotFoundError("merge job", job_id)
        return job

    @staticmethod
    async def _applied_revision(
        repo: ForumRepository, job: MergeJob
    ) -> WikiRevision | None:
        """The revision an applied job recorded, if it is still there."""
        if job.status != MergeJobState.APPLIED.value or not job.applied_revision_id:
            return None
        return await repo.get_wiki_revision(job.applied_revision_id)

    # ── Boards ───────────────────────────────────────────────────

    async def create_board(
        self, actor: Actor, slug: str, name: str, description: str = ""
    ) -> Board:
        self._require_elevated(actor, "Creating a board")
        if not slug.strip() or not name.strip():
            msg = "Board slug and name are required"
            raise ValidationFailedError(msg)

        async with self._unit_of_work() as repo:
            if await repo.get_board_by_slug(slug) is not None:
                msg = f"Board slug already in use: {slug}"
                raise ValidationFailedError(msg)
            board_id = await self._ids.generate("boards")
            board = await repo.add_board(
                board_id, actor.user_id, slug, name, description
            )
        logger.info("Board %s created by %s", board.id, actor.user_id)
        return board

    async def get_board(self, board_id: str) -> Board:
        async with self._unit_of_work() as repo:
            return await self._load_board(repo, board_id)

    # ── Topics ───────────────────────────────────────────────────

    async def create_topic(
        self,
        board_id: str,
        user_id: str,
        title: str,
        kind: str = TopicKind.DISCUSSION,
        *,
        wiki_enabled: bool = False,
    ) -> Topic:
        if kind not in set(TopicKind):
            msg = f"Unknown topic kind: {kind}"
            raise ValidationFailedError(msg)
        if not title.strip():
            msg = "Topic title is required"
            raise ValidationFailedError(msg)

        async with self._unit_of_work() as repo:
            board = await self._load_board(repo, board_id)
            if board.status != BoardStatus.ACTIVE:
                msg = f"Board {board_id} is {board.status}"
                raise ForbiddenError(msg)
            topic_id = await self._ids.generate("topics")
            return await repo.add_topic(
                topic_id,
                board.id,
                user_id,
                title,
                kind,
                is_wiki_enabled=wiki_enabled,
            )

    async def get_topic(self, topic_id: str) -> Topic:
        async with self._unit_of_work() as repo:
            return await self._load_topic(repo, topic_id)

    async def list_topics(
        self, board_id: str, page: int = 1, page_size: int | None = None
    ) -> TopicPage:
        page, page_size = self._page_bounds(page, page_size)
        async with self._unit_of_work() as repo:
            await self._load_board(repo, board_id)
            items, total = await repo.list_topics_by_board(
                board_id, limit=page_size, offset=(page - 1) * page_size
            )
        return TopicPage(items=items, total=total, page=page, page_size=page_size)

    # ── Posts ────────────────────────────────────────────────────

    async def create_post(self, topic_id: str, user_id: str, text: str) -> Post:
        if not text.strip():
            msg = "Post text is required"
            raise ValidationFailedError(msg)

        async with self._unit_of_work() as repo:
            topic = await self._load_topic(repo, topic_id)
            if topic.status != TopicStatus.AVAILABLE:
                msg = f"Topic {topic_id} is {topic.status}"
                raise ForbiddenError(msg)
            post_id = await self._ids.generate("posts")
            return await repo.add_post(post_id, topic.id, user_id, text)

    async def list_posts(
        self, topic_id: str, page: int = 1, page_size: int | None = None
    ) -> list[Post]:
        page, page_size = self._page_bounds(page, page_size)
        async with self._unit_of_work() as repo:
            await self._load_topic(repo, topic_id)
            return await repo.list_posts(
                topic_id, limit=page_size, offset=(page - 1) * page_size
            )

    # ── Wiki ─────────────────────────────────────────────────────

    async def get_current_wiki(self, topic_id: str) -> WikiRevision | None:
        """The topic's current revision, or None if it has none yet."""
        async with self._unit_of_work() as repo:
            topic = await self._load_topic(repo, topic_id)
            if not topic.current_wiki_revision_id:
                return None
            return await repo.get_wiki_revision(topic.current_wiki_revision_id)

    async def create_wiki_revision(
        self,
        topic_id: str,
        editor_id: str,
        title: str,
        document: str,
        summary: str = "",
    ) -> WikiRevision:
        """Append a revision and make it current.

        The pointer is overwritten without comparing against the parent
        the revision was based on; the last writer wins.
        """
        async with self._unit_of_work() as repo:
            topic = await self._load_topic(repo, topic_id)
            if not topic.is_wiki_enabled:
                msg = f"Wiki is not enabled for topic {topic_id}"
                raise ForbiddenError(msg)
            revision_id = await self._ids.generate("wiki_revisions")

            revision = await repo.add_wiki_revision(
                revision_id,
                topic.id,
                editor_id,
                title,
                document,
                summary=summary,
                parent_revision_id=topic.current_wiki_revision_id,
            )
            wiki = TopicWiki(topic.id, topic.current_wiki_revision_id)
            wiki.apply_revision(revision.id)
            await repo.set_current_revision(topic, wiki.current_revision_id or "")
            return revision

    async def list_wiki_revisions(self, topic_id: str) -> list[WikiRevision]:
        async with self._unit_of_work() as repo:
            await self._load_topic(repo, topic_id)
            return await repo.list_wiki_revisions(topic_id)

    # ── Merge jobs ───────────────────────────────────────────────

    async def create_merge_job(
        self,
        topic_id: str,
        creator_id: str,
        post_ids: Sequence[str],
        summary: str = "",
    ) -> MergeJob:
        """Propose merging *post_ids* (all posts of the topic) into the wiki."""
        post_ids = list(post_ids)
        if not post_ids:
            msg = "A merge job needs at least one post"
            raise ValidationFailedError(msg)
        if len(set(post_ids)) != len(post_ids):
            msg = "Merge job post ids must be unique"
            raise ValidationFailedError(msg)

        async with self._unit_of_work() as repo:
            topic = await self._load_topic(repo, topic_id)
            posts = await repo.get_posts_by_ids(topic.id, post_ids)
            if len(posts) != len(post_ids):
                found = {p.id for p in posts}
                missing = [pid for pid in post_ids if pid not in found]
                raise NotFoundError("post", ", ".join(missing))

            job_id = await self._ids.generate("merge_jobs")
            ref_ids = await self._ids.generate_many("merge_job_post_refs", len(post_ids))
            return await repo.add_merge_job(
                job_id,
                topic.id,
                creator_id,
                list(zip(ref_ids, post_ids, strict=True)),
                summary=summary,
            )

    async def get_merge_job(self, topic_id: str, job_id: str) -> MergeJob:
        async with self._unit_of_work() as repo:
            job = await repo.get_merge_job(job_id)
            if job is None or job.topic_id != topic_id:
                raise NotFoundError("merge job", job_id)
            return job

    async def review_merge_job(
        self, topic_id: str, job_id: str, actor: Actor
    ) -> MergeJob:
        """Explicit pending -> reviewed step, ahead of a later apply."""
        self._require_elevated(actor, "Reviewing a merge job")
        async with self._unit_of_work() as repo:
            job = await repo.get_merge_job(job_id)
            if job is None or job.topic_id != topic_id:
                raise NotFoundError("merge job", job_id)
            machine = MergeJobStateMachine.from_row(
                job.id, job.status, reviewer_id=job.reviewer_id
            )
            machine.mark_reviewed(actor.user_id)
            claimed = await repo.claim_merge_job(
                job.id,
                from_states=[MergeJobState.PENDING.value],
                status=machine.state.value,
                reviewer_id=actor.user_id,
            )
            job = await self._reload_job(repo, job.id)
            if not claimed:
                raise InvalidTransitionError(job.status, machine.state.value)
            return job

    async def apply_merge_job(
        self,
        topic_id: str,
        job_id: str,
        actor: Actor,
        *,
        title: str,
        document: str,
        summary: str = "",
        contribution_weight: int = 1,
        reviewer_id: str | None = None,
    ) -> WikiRevision:
        """Fold the job's posts into a new current wiki revision.

        A retried call on an already-applied job returns the recorded
        revision without writing anything. Otherwise the job is claimed
        with a conditional status update before anything else is
        written; a caller that loses the claim to a concurrent apply
        gets the winner's revision. The review mark, the revision, the
        topic pointer, the archived posts, the credits, and the final
        job state all commit together or not at all.
        """
        self._require_elevated(actor, "Applying a merge job")
        reviewer = reviewer_id or actor.user_id

        async with self._unit_of_work() as repo:
            topic = await self._load_topic(repo, topic_id)
            job = await repo.get_merge_job(job_id)
            if job is None or job.topic_id != topic.id:
                raise NotFoundError("merge job", job_id)

            applied = await self._applied_revision(repo, job)
            if applied is not None:
                logger.info("Merge job %s already applied as %s", job.id, applied.id)
                return applied

            machine = MergeJobStateMachine.from_row(
                job.id,
                job.status,
                reviewer_id=job.reviewer_id,
                applied_revision_id=job.applied_revision_id,
            )
            if machine.state == MergeJobState.PENDING:
                machine.mark_reviewed(reviewer)

            post_ids = [ref.post_id for ref in job.post_refs]
            source_posts = await repo.get_posts_by_ids(topic.id, post_ids)
            revision_id = await self._ids.generate("wiki_revisions")
            credit_ids = await self._ids.generate_many(
                "contribution_credits", len(source_posts)
            )
            machine.apply(revision_id)

            claimed = await repo.claim_merge_job(
                job.id,
                from_states=[
                    MergeJobState.PENDING.value,
                    MergeJobState.REVIEWED.value,
                ],
                status=machine.state.value,
                reviewer_id=reviewer,
            )
            if not claimed:
                job = await self._reload_job(repo, job.id)
                applied = await self._applied_revision(repo, job)
                if applied is None:
                    raise AlreadyAppliedError(
                        job.applied_revision_id or "", revision_id
                    )
                logger.info(
                    "Merge job %s was applied concurrently as %s", job.id, applied.id
                )
                return applied

            # The claim holds the write lock, so these reads are current.
            topic = await repo.get_topic(topic.id, fresh=True) or topic
            job = await self._reload_job(repo, job.id)

            revision = await repo.add_wiki_revision(
                revision_id,
                topic.id,
                actor.user_id,
                title,
                document,
                summary=summary,
                parent_revision_id=topic.current_wiki_revision_id,
            )

            wiki = TopicWiki(topic.id, topic.current_wiki_revision_id)
            wiki.apply_revision(revision.id)
            await repo.set_current_revision(topic, wiki.current_revision_id or "")

            await repo.archive_posts(post_ids)
            archived = await repo.get_posts_by_ids(topic.id, post_ids)

            weight = contribution_weight if contribution_weight > 0 else 1
            await repo.add_contribution_credits(
                topic.id,
                revision.id,
                [
                    CreditSpec(credit_id=cid, user_id=post.user_id, weight=weight)
                    for cid, post in zip(credit_ids, archived, strict=True)
                ],
            )

            await repo.update_merge_job(
                job,
                status=machine.state.value,
                reviewer_id=reviewer,
                applied_revision_id=machine.snapshot.applied_revision_id,
                applied_at=_utcnow(),
            )
        logger.info(
            "Merge job %s applied as revision %s (%d posts archived)",
            job_id,
            revision.id,
            len(archived),
        )
        return revision

    async def list_contributors(self, topic_id: str) -> list[ContributorStat]:
        async with self._unit_of_work() as repo:
            await self._load_topic(repo, topic_id)
            return await repo.list_contributors(topic_id)

    # ── Doc graph ────────────────────────────────────────────────

    async def add_doc_link(
        self,
        source_topic_id: str,
        target_topic_id: str,
        link_type: str | None = None,
    ) -> DocLink:
        link_type = link_type or LinkType.RELATED
        if link_type not in set(LinkType):
            msg = f"Unknown link type: {link_type}"
            raise ValidationFailedError(msg)

        async with self._unit_of_work() as repo:
            await self._load_topic(repo, source_topic_id)
            await self._load_topic(repo, target_topic_id)
            link_id = await self._ids.generate("doc_links")
            return await repo.add_doc_link(
                link_id, source_topic_id, target_topic_id, link_type
            )

    async def get_doc_graph(
        self, root_topic_id: str, depth: int | None = None
    ) -> DocGraph[DocLink]:
        """Topics reachable from the root within *depth* link hops."""
        async with self._unit_of_work() as repo:
            await self._load_topic(repo, root_topic_id)
            return await traverse(
                root_topic_id,
                self.graph_depth(depth),
                repo.list_doc_links_by_sources,
            )

    def graph_depth(self, depth: int | None) -> int:
        """The traversal depth actually used for a requested *depth*."""
        return clamp_depth(
            depth,
            default=self._settings.default_graph_depth,
            maximum=self._settings.max_graph_depth,
        )

    # ── Solutions and votes ──────────────────────────────────────

    async def set_topic_solution(
        self, topic_id: str, user_id: str, post_id: str
    ) -> TopicSolution:
        async with self._unit_of_work() as repo:
            topic = await self._load_topic(repo, topic_id)
            post = await self._load_post(repo, post_id)
            if post.topic_id != topic.id:
                msg = f"Post {post_id} does not belong to topic {topic_id}"
                raise ValidationFailedError(msg)
            return await repo.upsert_topic_solution(
                topic.id,
                post.id,
                user_id,
                new_id=lambda: self._ids.generate("topic_solutions"),
            )

    async def vote_topic(self, topic_id: str, user_id: str, value: int) -> VoteResult:
        async with self._unit_of_work() as repo:
            await self._load_topic(repo, topic_id)
            return await self._vote(repo, TOPIC_VOTES, topic_id, user_id, value)

    async def vote_post(self, post_id: str, user_id: str, value: int) -> VoteResult:
        async with self._unit_of_work() as repo:
            await self._load_post(repo, post_id)
            return await self._vote(repo, POST_VOTES, post_id, user_id, value)

    async def _vote(
        self,
        repo: ForumRepository,
        target: VotableTarget,
        target_id: str,
        user_id: str,
        value: int,
    ) -> VoteResult:
        if value not in _VOTE_VALUES:
            msg = f"Vote value must be -1 or 1, got {value}"
            raise ValidationFailedError(msg)
        delta = await repo.upsert_vote(
            target,
            target_id,
            user_id,
            value,
            new_id=lambda: self._ids.generate(target.kind),
        )
        count = await repo.get_vote_count(target, target_id)
        return VoteResult(
            target_id=target_id, value=value, delta=delta, vote_count=count
        )
