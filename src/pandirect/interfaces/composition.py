"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import structlog
from fastapi import FastAPI

from pandirect.application.use_cases.resolve_share import ResolveShareUseCase
from pandirect.domain.exceptions import SigningUnavailable
from pandirect.infrastructure.cache.result_cache import ResultCache
from pandirect.infrastructure.common.retry import RetryPolicy
from pandirect.infrastructure.config.schema import AppConfig
from pandirect.infrastructure.http.fetch_client import FetchClient
from pandirect.infrastructure.share_resolvers import ProviderRegistry, create_all_resolvers
from pandirect.infrastructure.signing.signature_codec import SignatureCodec
from pandirect.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def _init_signing() -> SignatureCodec | None:
    """Derive signing keys; ``None`` disables the signed-API providers."""
    try:
        return SignatureCodec.initialize()
    except SigningUnavailable as exc:
        log.error("signing_unavailable", error=exc.message)
        return None


def wire_services(state: AppState, config: AppConfig, fetch: FetchClient) -> None:
    """Build everything above the HTTP client and attach it to *state*."""
    retry = RetryPolicy(
        max_attempts=config.retry_max_attempts,
        base_delay_ms=config.retry_base_delay_ms,
    )
    state.signature_codec = _init_signing()

    state.provider_registry = ProviderRegistry(
        create_all_resolvers(fetch, retry, state.signature_codec)
    )
    log.info(
        "provider_registry_initialized",
        providers=[p.key for p in state.provider_registry.supported_providers],
    )

    state.result_cache = ResultCache(max_entries=config.cache_max_entries)
    state.resolve_share_uc = ResolveShareUseCase(
        registry=state.provider_registry,
        cache=state.result_cache,
        provider_ttls=config.cache_provider_ttls,
        default_ttl=config.cache_default_ttl_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. Fetch client (owns the httpx.AsyncClient)
        2. Retry policy + signing keys
        3. Resolvers + provider registry
        4. Result cache + resolve use case
    """
    state = cast(AppState, app.state)
    config = state.config

    state.fetch_client = FetchClient.create(
        timeout_seconds=config.http_timeout_seconds,
        verify_tls=config.http_verify_tls,
    )
    log.info(
        "http_client_initialized",
        timeout=config.http_timeout_seconds,
        verify_tls=config.http_verify_tls,
    )

    wire_services(state, config, state.fetch_client)

    log.info("app_startup_complete")

    try:
        yield
    finally:
        await state.fetch_client.aclose()
        log.info("http_client_closed")

        removed = state.result_cache.flush()
        log.info("result_cache_closed", removed=removed)

        log.info("app_shutdown_complete")
