"""Tests for RetryPolicy."""

from __future__ import annotations

from unittest.mock import AsyncMock, call

import pytest

from pandirect.domain.exceptions import (
    PasswordRequired,
    SignatureExtractionFailed,
    TransientNetworkError,
    UpstreamUnavailable,
)
from pandirect.infrastructure.common.retry import RetryPolicy


class TestDelaySchedule:
    def test_linear(self) -> None:
        policy = RetryPolicy(base_delay_ms=1000)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]

    def test_custom_base(self) -> None:
        assert RetryPolicy(base_delay_ms=250).delay_for(2) == 0.5

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestExecute:
    @pytest.mark.asyncio()
    async def test_success_first_try(self, retry: RetryPolicy, no_sleep: AsyncMock) -> None:
        op = AsyncMock(return_value="ok")
        assert await retry.execute(op) == "ok"
        assert op.await_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_recovers_after_transient(
        self, retry: RetryPolicy, no_sleep: AsyncMock
    ) -> None:
        op = AsyncMock(side_effect=[TransientNetworkError("reset"), "ok"])
        assert await retry.execute(op, label="lz_share") == "ok"
        assert op.await_count == 2
        no_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio()
    async def test_exhaustion_three_calls_then_single_raise(
        self, retry: RetryPolicy, no_sleep: AsyncMock
    ) -> None:
        last = TransientNetworkError("timeout", provider="lz")
        op = AsyncMock(
            side_effect=[TransientNetworkError("a"), TransientNetworkError("b"), last]
        )

        with pytest.raises(UpstreamUnavailable) as exc_info:
            await retry.execute(op)

        assert op.await_count == 3
        assert exc_info.value.__cause__ is last
        assert exc_info.value.provider == "lz"
        # Sleeps only between attempts.
        assert no_sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        "error",
        [PasswordRequired("pw"), SignatureExtractionFailed("sig"), KeyError("x")],
    )
    async def test_terminal_errors_not_retried(
        self, retry: RetryPolicy, no_sleep: AsyncMock, error: Exception
    ) -> None:
        op = AsyncMock(side_effect=error)
        with pytest.raises(type(error)):
            await retry.execute(op)
        assert op.await_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_single_attempt_budget(self, no_sleep: AsyncMock) -> None:
        policy = RetryPolicy(max_attempts=1, sleep=no_sleep)
        down = TransientNetworkError("down", provider="cow")
        op = AsyncMock(side_effect=down)
        with pytest.raises(UpstreamUnavailable) as exc_info:
            await policy.execute(op)
        assert op.await_count == 1
        assert exc_info.value.__cause__ is down
        assert exc_info.value.provider == "cow"
        no_sleep.assert_not_awaited()
