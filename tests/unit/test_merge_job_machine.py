"""Tests for MergeJobStateMachine: transitions, guards, idempotent replay."""

from __future__ import annotations

import pytest

from forumwiki.core.errors import (
    AlreadyAppliedError,
    InvalidTransitionError,
    RevisionRequiredError,
)
from forumwiki.domain.merge_job import (
    MergeJobSnapshot,
    MergeJobState,
    MergeJobStateMachine,
)

# ── Helpers ──────────────────────────────────────────────────────


def _machine(state: MergeJobState = MergeJobState.PENDING, **kwargs: object):
    return MergeJobStateMachine(MergeJobSnapshot(job_id="j-1", state=state, **kwargs))  # type: ignore[arg-type]


def _applied(revision_id: str = "r-1") -> MergeJobStateMachine:
    sm = _machine()
    sm.mark_reviewed("mod-1")
    sm.apply(revision_id)
    return sm


# ── Construction ─────────────────────────────────────────────────


class TestFromRow:
    def test_parses_status(self):
        sm = MergeJobStateMachine.from_row("j-1", "reviewed", reviewer_id="mod-1")
        assert sm.state == MergeJobState.REVIEWED
        assert sm.snapshot.reviewer_id == "mod-1"

    def test_empty_applied_revision_normalized(self):
        sm = MergeJobStateMachine.from_row("j-1", "pending", applied_revision_id="")
        assert sm.snapshot.applied_revision_id is None

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            MergeJobStateMachine.from_row("j-1", "archived")


# ── Transitions ──────────────────────────────────────────────────


class TestTransitions:
    def test_happy_path(self):
        sm = _machine()
        sm.mark_reviewed("mod-1")
        assert sm.state == MergeJobState.REVIEWED
        assert sm.apply("r-1") is True
        assert sm.state == MergeJobState.APPLIED
        assert sm.snapshot.applied_revision_id == "r-1"
        assert sm.snapshot.reviewer_id == "mod-1"
        assert sm.is_terminal

    def test_can_transition_table(self):
        sm = _machine()
        assert sm.can_transition(MergeJobState.REVIEWED)
        assert not sm.can_transition(MergeJobState.APPLIED)
        assert not _applied().can_transition(MergeJobState.REVIEWED)

    def test_pending_cannot_apply_directly(self):
        sm = _machine()
        with pytest.raises(InvalidTransitionError) as exc_info:
            sm.apply("r-1")
        assert exc_info.value.current_state == "pending"
        assert exc_info.value.target == "applied"
        assert sm.state == MergeJobState.PENDING

    def test_review_twice_rejected(self):
        sm = _machine(MergeJobState.REVIEWED)
        with pytest.raises(InvalidTransitionError):
            sm.mark_reviewed("mod-2")

    def test_review_after_apply_rejected(self):
        sm = _applied()
        with pytest.raises(InvalidTransitionError) as exc_info:
            sm.mark_reviewed("mod-2")
        assert exc_info.value.current_state == "applied"


# ── Apply guards ─────────────────────────────────────────────────


class TestApplyGuards:
    def test_replay_with_same_revision_is_noop(self):
        sm = _applied("r-1")
        assert sm.apply("r-1") is False
        assert sm.state == MergeJobState.APPLIED
        assert sm.snapshot.applied_revision_id == "r-1"

    def test_different_revision_rejected(self):
        sm = _applied("r-1")
        with pytest.raises(AlreadyAppliedError) as exc_info:
            sm.apply("r-2")
        assert exc_info.value.applied_revision_id == "r-1"
        assert exc_info.value.attempted_revision_id == "r-2"
        assert sm.snapshot.applied_revision_id == "r-1"

    @pytest.mark.parametrize("revision_id", ["", None])
    def test_empty_revision_rejected(self, revision_id):
        sm = _machine(MergeJobState.REVIEWED)
        with pytest.raises(RevisionRequiredError) as exc_info:
            sm.apply(revision_id)
        assert exc_info.value.current_state == "reviewed"
        assert sm.state == MergeJobState.REVIEWED

    def test_empty_revision_checked_before_replay(self):
        with pytest.raises(RevisionRequiredError):
            _applied().apply("")
