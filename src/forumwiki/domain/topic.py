"""Topic wiki pointer: at most one current revision, never empty."""

from __future__ import annotations

from dataclasses import dataclass

from forumwiki.core.errors import RevisionRequiredError


@dataclass
class TopicWiki:
    """Transient view of a topic's current-revision pointer.

    The pointer is overwritten unconditionally; history order lives in
    each revision's parent link, not here.
    """

    topic_id: str
    current_revision_id: str | None = None

    def apply_revision(self, revision_id: str | None) -> None:
        if not revision_id:
            raise RevisionRequiredError()
        self.current_revision_id = revision_id
