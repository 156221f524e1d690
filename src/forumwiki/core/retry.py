"""Retry with bounded linear backoff for contended storage writes."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy.exc import OperationalError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

# Driver messages that indicate lock contention rather than a real failure.
_TRANSIENT_MARKERS: tuple[str, ...] = (
    "database is locked",
    "database table is locked",
    "sqlite_busy",
    "could not obtain lock",
    "deadlock detected",
)


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Configuration for retry with linear backoff."""

    max_attempts: int = 5
    base_delay: float = 0.05


def is_transient(error: Exception) -> bool:
    """Check if a storage error is a lock/busy condition worth retrying."""
    if not isinstance(error, OperationalError):
        return False
    message = str(error.orig if error.orig is not None else error).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


def compute_delay(attempt: int, config: RetryConfig) -> float:
    """Backoff before the next attempt: ``(attempt + 1) * base_delay``."""
    return (attempt + 1) * config.base_delay


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    retryable: Callable[[Exception], bool] = is_transient,
    on_retry: Callable[[int, float, Exception], None] | None = None,
) -> T:
    """Execute fn, retrying classified-transient errors with linear backoff.

    Args:
        fn: Zero-arg callable returning an awaitable.
        config: Retry configuration. Uses defaults if None.
        retryable: Classifier deciding which errors are transient.
        on_retry: Optional callback(attempt, delay, error) before each retry.

    Returns:
        The result of fn().

    Raises:
        The original error once attempts are exhausted, or immediately
        for non-transient errors.
    """
    cfg = config or RetryConfig()
    if cfg.max_attempts < 1:
        msg = f"max_attempts must be positive, got {cfg.max_attempts}"
        raise ValueError(msg)

    for attempt in range(cfg.max_attempts):
        try:
            return await fn()
        except Exception as e:
            if not retryable(e):
                raise
            if attempt >= cfg.max_attempts - 1:
                raise
            delay = compute_delay(attempt, cfg)
            if on_retry is not None:
                on_retry(attempt + 1, delay, e)
            await asyncio.sleep(delay)

    # Unreachable, but satisfies mypy
    msg = f"Retry loop exited unexpectedly (max_attempts={cfg.max_attempts})"
    raise RuntimeError(msg)
