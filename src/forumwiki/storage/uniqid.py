"""Type-tagged unique identifiers backed by a sequence table.

Format: ``1`` + 3-digit type tag + 13-digit sequence, e.g.
``1013000000000042`` for the 42nd identifier (tag 13, posts). Ids of
one kind therefore sort lexicographically in insertion order.

Each identifier is drawn in its own short transaction. Callers must
draw identifiers before their unit of work issues its first write, so
that the sequence insert never waits on a lock held by the caller.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from forumwiki.core.errors import ConfigError, StorageError
from forumwiki.core.retry import RetryConfig, retry_with_backoff
from forumwiki.storage.models import UniqueID

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

OBJECT_TYPE_TAGS: Mapping[str, int] = MappingProxyType(
    {
        "boards": 11,
        "topics": 12,
        "posts": 13,
        "wiki_revisions": 14,
        "merge_jobs": 15,
        "merge_job_post_refs": 16,
        "contribution_credits": 17,
        "doc_links": 18,
        "topic_votes": 19,
        "post_votes": 20,
        "topic_solutions": 21,
    }
)


def format_id(tag: int, sequence: int) -> str:
    """Render ``1`` + tag (3 digits) + sequence (13 digits)."""
    return f"1{tag:03d}{sequence:013d}"


class IdentifierGenerator:
    """Mint identifiers from the ``uniqid`` table, retrying lock contention."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        tags: Mapping[str, int] = OBJECT_TYPE_TAGS,
        retry: RetryConfig | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._tags = tags
        self._retry = retry or RetryConfig()

    def tag_for(self, kind: str) -> int:
        """Numeric tag registered for *kind*."""
        try:
            return self._tags[kind]
        except KeyError:
            msg = f"Unknown object kind: {kind}"
            raise ConfigError(msg) from None

    async def generate(self, kind: str) -> str:
        """Return a fresh identifier for *kind*.

        Raises:
            StorageError: On a non-transient failure or once retries are
                exhausted.
        """
        tag = self.tag_for(kind)

        def _log_retry(attempt: int, delay: float, error: Exception) -> None:
            logger.warning(
                "Sequence store busy for %s (attempt %d/%d), retrying in %.2fs: %s",
                kind,
                attempt,
                self._retry.max_attempts,
                delay,
                error,
            )

        try:
            sequence = await retry_with_backoff(
                lambda: self._insert_placeholder(tag),
                self._retry,
                on_retry=_log_retry,
            )
        except SQLAlchemyError as e:
            logger.error("Identifier generation failed for %s: %s", kind, e)
            msg = f"Cannot generate identifier for {kind}: {e}"
            raise StorageError(msg) from e
        return format_id(tag, sequence)

    async def generate_many(self, kind: str, count: int) -> list[str]:
        """Return *count* fresh identifiers for *kind*, in sequence order."""
        return [await self.generate(kind) for _ in range(count)]

    async def _insert_placeholder(self, tag: int) -> int:
        async with self._session_factory() as session:
            row = UniqueID(uniqid_type=tag)
            session.add(row)
            await session.flush()
            sequence = row.id
            await session.commit()
            return sequence
