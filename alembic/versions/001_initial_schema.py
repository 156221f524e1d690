"""Initial schema -- boards, topics, posts, wiki, merges, links, votes.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: str | None = None

_ID = 20


def _id_column() -> sa.Column:  # type: ignore[type-arg]
    return sa.Column("id", sa.String(_ID), primary_key=True)


def upgrade() -> None:
    op.create_table(
        "uniqid",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("uniqid_type", sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_uniqid_uniqid_type", "uniqid", ["uniqid_type"])

    op.create_table(
        "boards",
        _id_column(),
        sa.Column("creator_id", sa.String(64), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "topics",
        _id_column(),
        sa.Column(
            "board_id", sa.String(_ID), sa.ForeignKey("boards.id"), nullable=False
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(180), nullable=False),
        sa.Column("topic_kind", sa.String(30), nullable=False),
        sa.Column("is_wiki_enabled", sa.Boolean(), nullable=False),
        sa.Column("current_wiki_revision_id", sa.String(_ID), nullable=True),
        sa.Column("solved_post_id", sa.String(_ID), nullable=True),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("post_count", sa.Integer(), nullable=False),
        sa.Column("vote_count", sa.Integer(), nullable=False),
        sa.Column("last_post_id", sa.String(_ID), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_topics_board_id", "topics", ["board_id"])
    op.create_index("ix_topics_user_id", "topics", ["user_id"])
    op.create_index("ix_topics_board_created", "topics", ["board_id", "created_at"])

    op.create_table(
        "posts",
        _id_column(),
        sa.Column(
            "topic_id", sa.String(_ID), sa.ForeignKey("topics.id"), nullable=False
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("original_text", sa.Text(), nullable=False),
        sa.Column("parsed_text", sa.Text(), nullable=False),
        sa.Column("merge_state", sa.String(20), nullable=False),
        sa.Column("archived_at", sa.DateTime(), nullable=True),
        sa.Column("vote_count", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_posts_topic_id", "posts", ["topic_id"])
    op.create_index("ix_posts_user_id", "posts", ["user_id"])

    op.create_table(
        "wiki_revisions",
        _id_column(),
        sa.Column(
            "topic_id", sa.String(_ID), sa.ForeignKey("topics.id"), nullable=False
        ),
        sa.Column("editor_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(180), nullable=False),
        sa.Column("document", sa.Text(), nullable=False),
        sa.Column("summary", sa.String(500), nullable=False),
        sa.Column(
            "parent_revision_id",
            sa.String(_ID),
            sa.ForeignKey("wiki_revisions.id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_wiki_revisions_topic_created", "wiki_revisions", ["topic_id", "created_at"]
    )

    op.create_table(
        "merge_jobs",
        _id_column(),
        sa.Column(
            "topic_id", sa.String(_ID), sa.ForeignKey("topics.id"), nullable=False
        ),
        sa.Column("creator_id", sa.String(64), nullable=False),
        sa.Column("reviewer_id", sa.String(64), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("summary", sa.String(500), nullable=False),
        sa.Column(
            "applied_revision_id",
            sa.String(_ID),
            sa.ForeignKey("wiki_revisions.id"),
            nullable=True,
        ),
        sa.Column("applied_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_merge_jobs_topic_status", "merge_jobs", ["topic_id", "status"]
    )

    op.create_table(
        "merge_job_post_refs",
        _id_column(),
        sa.Column(
            "merge_job_id",
            sa.String(_ID),
            sa.ForeignKey("merge_jobs.id"),
            nullable=False,
        ),
        sa.Column(
            "post_id", sa.String(_ID), sa.ForeignKey("posts.id"), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_merge_job_post_refs_merge_job_id", "merge_job_post_refs", ["merge_job_id"]
    )

    op.create_table(
        "contribution_credits",
        _id_column(),
        sa.Column(
            "topic_id", sa.String(_ID), sa.ForeignKey("topics.id"), nullable=False
        ),
        sa.Column(
            "revision_id",
            sa.String(_ID),
            sa.ForeignKey("wiki_revisions.id"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("weight", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_contribution_credits_topic_user",
        "contribution_credits",
        ["topic_id", "user_id"],
    )
    op.create_index(
        "ix_contribution_credits_revision_id", "contribution_credits", ["revision_id"]
    )

    op.create_table(
        "topic_votes",
        _id_column(),
        sa.Column(
            "topic_id", sa.String(_ID), sa.ForeignKey("topics.id"), nullable=False
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("topic_id", "user_id", name="uq_topic_votes_topic_user"),
    )

    op.create_table(
        "post_votes",
        _id_column(),
        sa.Column(
            "post_id", sa.String(_ID), sa.ForeignKey("posts.id"), nullable=False
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_votes_post_user"),
    )

    op.create_table(
        "topic_solutions",
        _id_column(),
        sa.Column(
            "topic_id",
            sa.String(_ID),
            sa.ForeignKey("topics.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "post_id", sa.String(_ID), sa.ForeignKey("posts.id"), nullable=False
        ),
        sa.Column("set_by_user_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "doc_links",
        _id_column(),
        sa.Column(
            "source_topic_id",
            sa.String(_ID),
            sa.ForeignKey("topics.id"),
            nullable=False,
        ),
        sa.Column(
            "target_topic_id",
            sa.String(_ID),
            sa.ForeignKey("topics.id"),
            nullable=False,
        ),
        sa.Column("link_type", sa.String(30), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_doc_links_source_topic_id", "doc_links", ["source_topic_id"])


def downgrade() -> None:
    op.drop_table("doc_links")
    op.drop_table("topic_solutions")
    op.drop_table("post_votes")
    op.drop_table("topic_votes")
    op.drop_table("contribution_credits")
    op.drop_table("merge_job_post_refs")
    op.drop_table("merge_jobs")
    op.drop_table("wiki_revisions")
    op.drop_table("posts")
    op.drop_table("topics")
    op.drop_table("boards")
    op.drop_table("uniqid")
