"""Bounded retry with linear backoff for upstream share requests."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from pandirect.domain.exceptions import TransientNetworkError, UpstreamUnavailable

log = structlog.get_logger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """Runs an async operation with bounded attempts and linear backoff.

    Only ``TransientNetworkError`` is retried. Every other exception
    (password, signature, rejection ...) propagates on the first attempt.
    After *max_attempts* transient failures an ``UpstreamUnavailable`` is
    raised, chained from the last error.

    The sleep function is injectable so tests can run without delays.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        base_delay_ms: int = 1000,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the *attempt*-th failure (1-based)."""
        return self._base_delay_ms * attempt / 1000.0

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        label: str = "",
    ) -> T:
        """Invoke *operation* until it succeeds or attempts are exhausted."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except TransientNetworkError as exc:
                if attempt >= self._max_attempts:
                    log.warning(
                        "share_request_exhausted",
                        label=label,
                        attempts=self._max_attempts,
                        error=str(exc),
                    )
                    raise UpstreamUnavailable(
                        f"upstream unavailable after {self._max_attempts} attempts: {exc}",
                        provider=exc.provider,
                    ) from exc
                delay = self.delay_for(attempt)
                log.info(
                    "share_request_retry",
                    label=label,
                    attempt=attempt,
                    delay=delay,
                    error=str(exc),
                )
            await self._sleep(delay)
