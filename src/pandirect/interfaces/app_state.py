"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.datastructures import State

from pandirect.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from pandirect.application.use_cases.resolve_share import ResolveShareUseCase
    from pandirect.infrastructure.cache.result_cache import ResultCache
    from pandirect.infrastructure.http.fetch_client import FetchClient
    from pandirect.infrastructure.share_resolvers.registry import ProviderRegistry
    from pandirect.infrastructure.signing.signature_codec import SignatureCodec


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    fetch_client: FetchClient
    result_cache: ResultCache

    # Signing keys (None when bootstrap failed; signed-API providers are then absent)
    signature_codec: SignatureCodec | None

    # Provider dispatch
    provider_registry: ProviderRegistry

    # Application services
    resolve_share_uc: ResolveShareUseCase
