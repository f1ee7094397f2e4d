"""Shared fixtures for integration tests.

These tests wire real infrastructure components (FetchClient, RetryPolicy,
resolvers, ResultCache) the way the lifespan does, with upstream HTTP
mocked via respx.
"""

from __future__ import annotations

import pytest
import respx

from pandirect.infrastructure.config import AppConfig
from pandirect.infrastructure.http.fetch_client import FetchClient
from pandirect.interfaces.app_state import AppState
from pandirect.interfaces.composition import wire_services


@pytest.fixture()
def respx_mock() -> respx.MockRouter:
    """Explicit respx mock router for request interception."""
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture()
def config() -> AppConfig:
    """Defaults with a near-zero backoff step."""
    return AppConfig(retry_base_delay_ms=1)


@pytest.fixture()
async def wired_state(config: AppConfig, fetch_client: FetchClient) -> AppState:
    """AppState populated by ``wire_services`` over a real FetchClient."""
    state = AppState()
    state.config = config
    state.fetch_client = fetch_client
    wire_services(state, config, fetch_client)
    yield state
    await fetch_client.aclose()
