"""Request-level use cases composed over the storage layer."""

from forumwiki.service.forum import Actor, ForumService, TopicPage, VoteResult

__all__ = ["Actor", "ForumService", "TopicPage", "VoteResult"]
