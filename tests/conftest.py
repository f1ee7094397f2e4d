"""Shared test fixtures for the pandirect test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest

from pandirect.domain.entities.share import ResolutionResult, ShareReference
from pandirect.infrastructure.common.retry import RetryPolicy
from pandirect.infrastructure.http.fetch_client import FetchClient

# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def share_ref() -> ShareReference:
    """Plain lanzou share without password."""
    return ShareReference(provider="lz", share_id="iAbC123xyz")


@pytest.fixture()
def resolution_result() -> ResolutionResult:
    """Minimal valid ResolutionResult."""
    return ResolutionResult(
        provider="lz",
        share_id="iAbC123xyz",
        download_url="https://cdn.example.com/file/w.zip?fn=w.zip",
        file_name="w.zip",
        file_size="920.1 KB",
        file_type="压缩文件",
    )


# ---------------------------------------------------------------------------
# Infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fetch_client() -> FetchClient:
    """FetchClient over a real httpx.AsyncClient (intercepted by respx)."""
    return FetchClient(httpx.AsyncClient())


@pytest.fixture()
def no_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def retry(no_sleep: AsyncMock) -> RetryPolicy:
    """Default attempt budget, zero wall-clock delay."""
    return RetryPolicy(max_attempts=3, base_delay_ms=1000, sleep=no_sleep)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
