"""Tests for retry with linear backoff."""

from __future__ import annotations

import asyncio
import sqlite3
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from forumwiki.core.retry import (
    RetryConfig,
    compute_delay,
    is_transient,
    retry_with_backoff,
)


def _operational(message: str) -> OperationalError:
    return OperationalError("INSERT INTO uniqid", {}, sqlite3.OperationalError(message))


# ─── RetryConfig ──────────────────────────────────────────────


class TestRetryConfig:
    def test_defaults(self):
        cfg = RetryConfig()
        assert cfg.max_attempts == 5
        assert cfg.base_delay == 0.05

    def test_frozen(self):
        cfg = RetryConfig()
        with pytest.raises(AttributeError):
            cfg.max_attempts = 2  # type: ignore[misc]


# ─── is_transient ─────────────────────────────────────────────


class TestIsTransient:
    @pytest.mark.parametrize(
        "message",
        [
            "database is locked",
            "database table is locked",
            "SQLITE_BUSY: cannot commit",
            "could not obtain lock on row",
            "deadlock detected",
        ],
    )
    def test_lock_messages_are_transient(self, message):
        assert is_transient(_operational(message)) is True

    def test_other_operational_error_is_not_transient(self):
        assert is_transient(_operational("no such table: uniqid")) is False

    def test_integrity_error_is_not_transient(self):
        err = IntegrityError("INSERT", {}, sqlite3.IntegrityError("UNIQUE failed"))
        assert is_transient(err) is False

    def test_generic_exception_is_not_transient(self):
        assert is_transient(ValueError("database is locked")) is False


# ─── compute_delay ────────────────────────────────────────────


class TestComputeDelay:
    def test_linear_backoff(self):
        cfg = RetryConfig(base_delay=0.05)
        assert compute_delay(0, cfg) == pytest.approx(0.05)
        assert compute_delay(1, cfg) == pytest.approx(0.10)
        assert compute_delay(3, cfg) == pytest.approx(0.20)


# ─── retry_with_backoff ───────────────────────────────────────


class TestRetryWithBackoff:
    async def test_succeeds_on_first_try(self):
        fn = AsyncMock(return_value=7)
        assert await retry_with_backoff(fn) == 7
        assert fn.call_count == 1

    async def test_retries_on_lock_then_succeeds(self):
        fn = AsyncMock(side_effect=[_operational("database is locked"), 42])
        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as sleep:
            result = await retry_with_backoff(fn)
        assert result == 42
        assert fn.call_count == 2
        sleep.assert_awaited_once_with(0.05)

    async def test_fails_fast_on_non_transient(self):
        fn = AsyncMock(side_effect=_operational("disk I/O error"))
        with pytest.raises(OperationalError):
            await retry_with_backoff(fn)
        assert fn.call_count == 1

    async def test_exhausts_attempts_then_raises(self):
        cfg = RetryConfig(max_attempts=5, base_delay=0.05)
        fn = AsyncMock(side_effect=_operational("database is locked"))
        with (
            patch.object(asyncio, "sleep", new_callable=AsyncMock) as sleep,
            pytest.raises(OperationalError),
        ):
            await retry_with_backoff(fn, config=cfg)
        # 5 total attempts, sleeping between them only
        assert fn.call_count == 5
        delays = [c.args[0] for c in sleep.await_args_list]
        assert delays == pytest.approx([0.05, 0.10, 0.15, 0.20])

    async def test_on_retry_callback_called(self):
        fn = AsyncMock(
            side_effect=[
                _operational("database is locked"),
                _operational("database is locked"),
                "ok",
            ],
        )
        callback = MagicMock()
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            result = await retry_with_backoff(fn, on_retry=callback)
        assert result == "ok"
        assert callback.call_count == 2
        attempt, delay, _err = callback.call_args_list[1].args
        assert attempt == 2
        assert delay == pytest.approx(0.10)

    async def test_custom_classifier(self):
        fn = AsyncMock(side_effect=[ValueError("flaky"), "ok"])
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            result = await retry_with_backoff(
                fn, retryable=lambda e: isinstance(e, ValueError)
            )
        assert result == "ok"

    async def test_rejects_non_positive_attempts(self):
        fn = AsyncMock(return_value=1)
        with pytest.raises(ValueError, match="max_attempts"):
            await retry_with_backoff(fn, config=RetryConfig(max_attempts=0))
        fn.assert_not_called()
