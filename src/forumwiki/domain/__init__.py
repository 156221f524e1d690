"""Pure domain rules: merge-job lifecycle, wiki pointer, link graph."""

from forumwiki.domain.graph import DocGraph, clamp_depth, traverse
from forumwiki.domain.merge_job import (
    MergeJobSnapshot,
    MergeJobState,
    MergeJobStateMachine,
)
from forumwiki.domain.topic import TopicWiki

__all__ = [
    "DocGraph",
    "MergeJobSnapshot",
    "MergeJobState",
    "MergeJobStateMachine",
    "TopicWiki",
    "clamp_depth",
    "traverse",
]
