"""Merge-job state machine: states, transitions, guards.

Pure logic module. No IO (no DB reads or writes). The forum service
loads a job row, wraps it in a :class:`MergeJobStateMachine`, drives
the transition, and persists the resulting fields.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from forumwiki.core.errors import (
    AlreadyAppliedError,
    InvalidTransitionError,
    RevisionRequiredError,
)


class MergeJobState(enum.Enum):
    """States of a merge proposal."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    APPLIED = "applied"


_VALID_TRANSITIONS: dict[MergeJobState, frozenset[MergeJobState]] = {
    MergeJobState.PENDING: frozenset({MergeJobState.REVIEWED}),
    MergeJobState.REVIEWED: frozenset({MergeJobState.APPLIED}),
    MergeJobState.APPLIED: frozenset(),
}

_TERMINAL_STATES: frozenset[MergeJobState] = frozenset({MergeJobState.APPLIED})


@dataclass
class MergeJobSnapshot:
    """Transient view of one merge job for the duration of an operation."""

    job_id: str
    state: MergeJobState = MergeJobState.PENDING
    reviewer_id: str | None = None
    applied_revision_id: str | None = None


class MergeJobStateMachine:
    """Enforces pending -> reviewed -> applied with idempotent replay.

    Raises:
        InvalidTransitionError: On any transition outside the table.
        AlreadyAppliedError: On re-application with a different revision.
        RevisionRequiredError: When ``apply`` receives an empty revision.
    """

    def __init__(self, snapshot: MergeJobSnapshot) -> None:
        self._snap = snapshot

    @classmethod
    def from_row(
        cls,
        job_id: str,
        status: str,
        *,
        reviewer_id: str | None = None,
        applied_revision_id: str | None = None,
    ) -> MergeJobStateMachine:
        """Build a machine from persisted column values."""
        return cls(
            MergeJobSnapshot(
                job_id=job_id,
                state=MergeJobState(status),
                reviewer_id=reviewer_id,
                applied_revision_id=applied_revision_id or None,
            )
        )

    @property
    def snapshot(self) -> MergeJobSnapshot:
        """The job snapshot managed by this machine."""
        return self._snap

    @property
    def state(self) -> MergeJobState:
        """Current state."""
        return self._snap.state

    @property
    def is_terminal(self) -> bool:
        """Whether the job has been applied."""
        return self._snap.state in _TERMINAL_STATES

    def can_transition(self, to: MergeJobState) -> bool:
        """Check if a transition is valid without raising."""
        return to in _VALID_TRANSITIONS[self._snap.state]

    def mark_reviewed(self, reviewer_id: str | None = None) -> None:
        """Move a pending job to reviewed, recording the reviewer."""
        self._require(MergeJobState.REVIEWED)
        self._snap.state = MergeJobState.REVIEWED
        self._snap.reviewer_id = reviewer_id

    def apply(self, revision_id: str | None) -> bool:
        """Move a reviewed job to applied with *revision_id*.

        Returns True if the state changed, False for an idempotent replay
        of an already-applied job with the same revision.
        """
        if not revision_id:
            raise RevisionRequiredError(self._snap.state.value)

        if self._snap.state == MergeJobState.APPLIED:
            if self._snap.applied_revision_id == revision_id:
                return False
            raise AlreadyAppliedError(
                self._snap.applied_revision_id or "", revision_id
            )

        self._require(MergeJobState.APPLIED)
        self._snap.state = MergeJobState.APPLIED
        self._snap.applied_revision_id = revision_id
        return True

    # ── Internals ─────────────────────────────────────────────

    def _require(self, to: MergeJobState) -> None:
        """Raise InvalidTransitionError if the transition is not allowed."""
        if not self.can_transition(to):
            raise InvalidTransitionError(self._snap.state.value, to.value)
