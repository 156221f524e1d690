"""Core types, errors, and shared utilities."""

from forumwiki.core.errors import (
    AlreadyAppliedError,
    ConfigError,
    ForbiddenError,
    ForumError,
    InvalidTransitionError,
    NotFoundError,
    RevisionRequiredError,
    StorageError,
    ValidationFailedError,
    WorkflowError,
)
from forumwiki.core.retry import RetryConfig, is_transient, retry_with_backoff

__all__ = [
    "AlreadyAppliedError",
    "ConfigError",
    "ForbiddenError",
    "ForumError",
    "InvalidTransitionError",
    "NotFoundError",
    "RetryConfig",
    "RevisionRequiredError",
    "StorageError",
    "ValidationFailedError",
    "WorkflowError",
    "is_transient",
    "retry_with_backoff",
]
