"""Exception hierarchy for forumwiki.

Every module imports from here. The hierarchy is:

    ForumError
    ├── NotFoundError(kind, object_id)
    ├── ForbiddenError
    ├── ValidationFailedError
    ├── WorkflowError(current_state)
    │   ├── InvalidTransitionError(current, target)
    │   ├── AlreadyAppliedError(applied_revision_id, attempted_revision_id)
    │   └── RevisionRequiredError
    ├── ConfigError
    └── StorageError
"""

from __future__ import annotations


class ForumError(Exception):
    """Base exception for all forumwiki errors."""


# ─── Client-correctable errors ────────────────────────────────


class NotFoundError(ForumError):
    """A referenced board, topic, post, job, or revision does not exist."""

    def __init__(self, kind: str, object_id: str) -> None:
        self.kind = kind
        self.object_id = object_id
        super().__init__(f"{kind} not found: {object_id}")


class ForbiddenError(ForumError):
    """The caller's role or the target's status does not permit the action."""


class ValidationFailedError(ForumError):
    """Malformed or out-of-range input."""


# ─── Workflow errors ──────────────────────────────────────────


class WorkflowError(ForumError):
    """Base for workflow-order mistakes. Carries the state seen at failure."""

    def __init__(self, message: str, current_state: str | None = None) -> None:
        self.current_state = current_state
        super().__init__(message)


class InvalidTransitionError(WorkflowError):
    """Merge-job transition not allowed from the current state."""

    def __init__(self, current: str, target: str) -> None:
        self.target = target
        super().__init__(f"Invalid transition: {current} -> {target}", current)


class AlreadyAppliedError(WorkflowError):
    """Merge job was already applied with a different revision."""

    def __init__(self, applied_revision_id: str, attempted_revision_id: str) -> None:
        self.applied_revision_id = applied_revision_id
        self.attempted_revision_id = attempted_revision_id
        super().__init__(
            f"Merge job already applied with revision {applied_revision_id} "
            f"(attempted {attempted_revision_id})",
            "applied",
        )


class RevisionRequiredError(WorkflowError):
    """An empty revision id was supplied to an apply or pointer update."""

    def __init__(self, current_state: str | None = None) -> None:
        super().__init__("Revision id is required", current_state)


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(ForumError):
    """Invalid configuration."""


# ─── Storage Errors ───────────────────────────────────────────


class StorageError(ForumError):
    """Database failure, including exhausted identifier-generation retries."""
