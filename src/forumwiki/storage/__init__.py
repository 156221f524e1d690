"""Persistence: models, repository, identifier generation, engine setup."""

from forumwiki.storage.database import create_db, create_schema
from forumwiki.storage.models import (
    Base,
    Board,
    ContributionCredit,
    DocLink,
    MergeJob,
    MergeJobPostRef,
    Post,
    PostVote,
    Topic,
    TopicSolution,
    TopicVote,
    UniqueID,
    WikiRevision,
)
from forumwiki.storage.repository import (
    POST_VOTES,
    TOPIC_VOTES,
    ContributorStat,
    ForumRepository,
    VotableTarget,
)
from forumwiki.storage.uniqid import OBJECT_TYPE_TAGS, IdentifierGenerator

__all__ = [
    "OBJECT_TYPE_TAGS",
    "POST_VOTES",
    "TOPIC_VOTES",
    "Base",
    "Board",
    "ContributionCredit",
    "ContributorStat",
    "DocLink",
    "ForumRepository",
    "IdentifierGenerator",
    "MergeJob",
    "MergeJobPostRef",
    "Post",
    "PostVote",
    "Topic",
    "TopicSolution",
    "TopicVote",
    "UniqueID",
    "VotableTarget",
    "WikiRevision",
    "create_db",
    "create_schema",
]
