"""SQLAlchemy models for boards, topics, posts, wiki revisions, and merges.

Primary keys are opaque strings minted by
:class:`~forumwiki.storage.uniqid.IdentifierGenerator`
(``1`` + 3-digit type tag + 13-digit sequence). User references are
plain strings supplied by the caller's identity provider.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

ID_LENGTH = 20


def _utcnow() -> datetime:
    """Current UTC time for timestamps."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base for all forumwiki models."""


class BoardStatus(enum.StrEnum):
    ACTIVE = "active"
    DISABLED = "disabled"


class TopicKind(enum.StrEnum):
    DISCUSSION = "discussion"
    KNOWLEDGE = "knowledge"


class TopicStatus(enum.StrEnum):
    AVAILABLE = "available"
    CLOSED = "closed"


class PostMergeState(enum.StrEnum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class LinkType(enum.StrEnum):
    RELATED = "related"


# ── Identifier sequence ──────────────────────────────────────────


class UniqueID(Base):
    """Placeholder row whose autoincrement id feeds the identifier format."""

    __tablename__ = "uniqid"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uniqid_type: Mapped[int] = mapped_column(Integer, index=True)


# ── Boards and topics ────────────────────────────────────────────


class Board(Base):
    """A forum board that owns topics."""

    __tablename__ = "boards"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    creator_id: Mapped[str] = mapped_column(String(64))
    slug: Mapped[str] = mapped_column(String(100), unique=True)
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str] = mapped_column(String(500), default="")
    status: Mapped[str] = mapped_column(String(20), default=BoardStatus.ACTIVE)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )

    topics: Mapped[list[Topic]] = relationship(back_populates="board")


class Topic(Base):
    """A discussion thread, optionally backed by a wiki document.

    ``post_count`` and ``vote_count`` are caches maintained only by the
    repository's transactional methods.
    """

    __tablename__ = "topics"
    __table_args__ = (Index("ix_topics_board_created", "board_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    board_id: Mapped[str] = mapped_column(ForeignKey("boards.id"), index=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[str] = mapped_column(String(180))
    topic_kind: Mapped[str] = mapped_column(String(30), default=TopicKind.DISCUSSION)
    is_wiki_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    current_wiki_revision_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH), nullable=True, default=None
    )
    solved_post_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH), nullable=True, default=None
    )
    status: Mapped[str] = mapped_column(String(30), default=TopicStatus.AVAILABLE)
    post_count: Mapped[int] = mapped_column(Integer, default=0)
    vote_count: Mapped[int] = mapped_column(Integer, default=0)
    last_post_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH), nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )

    board: Mapped[Board] = relationship(back_populates="topics")


class Post(Base):
    """A reply in a topic. Archived exactly once, when merged."""

    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    topic_id: Mapped[str] = mapped_column(ForeignKey("topics.id"), index=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    original_text: Mapped[str] = mapped_column(Text)
    parsed_text: Mapped[str] = mapped_column(Text)
    merge_state: Mapped[str] = mapped_column(String(20), default=PostMergeState.ACTIVE)
    archived_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    vote_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default="available")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )


# ── Wiki ─────────────────────────────────────────────────────────


class WikiRevision(Base):
    """Immutable wiki snapshot; ``parent_revision_id`` chains history."""

    __tablename__ = "wiki_revisions"
    __table_args__ = (
        Index("ix_wiki_revisions_topic_created", "topic_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    topic_id: Mapped[str] = mapped_column(ForeignKey("topics.id"))
    editor_id: Mapped[str] = mapped_column(String(64))
    title: Mapped[str] = mapped_column(String(180))
    document: Mapped[str] = mapped_column(Text)
    summary: Mapped[str] = mapped_column(String(500), default="")
    parent_revision_id: Mapped[str | None] = mapped_column(
        ForeignKey("wiki_revisions.id"), nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


# ── Merge workflow ───────────────────────────────────────────────


class MergeJob(Base):
    """A proposal to fold a fixed set of posts into one wiki revision."""

    __tablename__ = "merge_jobs"
    __table_args__ = (Index("ix_merge_jobs_topic_status", "topic_id", "status"),)

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    topic_id: Mapped[str] = mapped_column(ForeignKey("topics.id"))
    creator_id: Mapped[str] = mapped_column(String(64))
    reviewer_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, default=None
    )
    status: Mapped[str] = mapped_column(String(20), default="pending")
    summary: Mapped[str] = mapped_column(String(500), default="")
    applied_revision_id: Mapped[str | None] = mapped_column(
        ForeignKey("wiki_revisions.id"), nullable=True, default=None
    )
    applied_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )

    post_refs: Mapped[list[MergeJobPostRef]] = relationship(
        back_populates="merge_job",
        order_by="MergeJobPostRef.id",
    )


class MergeJobPostRef(Base):
    """One source post of a merge job. Written with the job, never mutated."""

    __tablename__ = "merge_job_post_refs"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    merge_job_id: Mapped[str] = mapped_column(ForeignKey("merge_jobs.id"), index=True)
    post_id: Mapped[str] = mapped_column(ForeignKey("posts.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    merge_job: Mapped[MergeJob] = relationship(back_populates="post_refs")


class ContributionCredit(Base):
    """Append-only authorship credit; summed per user when read."""

    __tablename__ = "contribution_credits"
    __table_args__ = (Index("ix_contribution_credits_topic_user", "topic_id", "user_id"),)

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    topic_id: Mapped[str] = mapped_column(ForeignKey("topics.id"))
    revision_id: Mapped[str] = mapped_column(ForeignKey("wiki_revisions.id"), index=True)
    user_id: Mapped[str] = mapped_column(String(64))
    weight: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


# ── Votes and solutions ──────────────────────────────────────────


class TopicVote(Base):
    """A user's current vote on a topic."""

    __tablename__ = "topic_votes"
    __table_args__ = (
        UniqueConstraint("topic_id", "user_id", name="uq_topic_votes_topic_user"),
    )

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    topic_id: Mapped[str] = mapped_column(ForeignKey("topics.id"))
    user_id: Mapped[str] = mapped_column(String(64))
    value: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )


class PostVote(Base):
    """A user's current vote on a post."""

    __tablename__ = "post_votes"
    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_votes_post_user"),
    )

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    post_id: Mapped[str] = mapped_column(ForeignKey("posts.id"))
    user_id: Mapped[str] = mapped_column(String(64))
    value: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )


class TopicSolution(Base):
    """The accepted answer of a topic. One row per topic, upserted."""

    __tablename__ = "topic_solutions"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    topic_id: Mapped[str] = mapped_column(ForeignKey("topics.id"), unique=True)
    post_id: Mapped[str] = mapped_column(ForeignKey("posts.id"))
    set_by_user_id: Mapped[str] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )


class DocLink(Base):
    """Directed edge between topics. Duplicates are allowed."""

    __tablename__ = "doc_links"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    source_topic_id: Mapped[str] = mapped_column(ForeignKey("topics.id"), index=True)
    target_topic_id: Mapped[str] = mapped_column(ForeignKey("topics.id"))
    link_type: Mapped[str] = mapped_column(String(30), default=LinkType.RELATED)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
