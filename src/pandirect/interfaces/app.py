"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any, cast

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from pandirect.domain.exceptions import ShareResolveError
from pandirect.infrastructure.config import AppConfig
from pandirect.interfaces.api.presenter import error_envelope
from pandirect.interfaces.app_state import AppState
from pandirect.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create the FastAPI app: configuration only, no resource initialization.

    Resources (HTTP client, signing keys, resolvers, cache) are created in lifespan().
    """
    app = FastAPI(
        title="pandirect",
        description="Direct download links for cloud-drive share URLs",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    from pandirect.interfaces.api.cache.router import router as cache_router
    from pandirect.interfaces.api.parser.router import router as parser_router

    app.include_router(parser_router)
    app.include_router(cache_router)

    @app.exception_handler(ShareResolveError)
    async def share_error_handler(request: Request, exc: ShareResolveError) -> JSONResponse:
        log.info(
            "share_request_failed",
            path=request.url.path,
            provider=exc.provider,
            error_type=type(exc).__name__,
            status_code=exc.http_status,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=error_envelope(exc.http_status, exc.message or type(exc).__name__),
        )

    @app.exception_handler(TimeoutError)
    async def timeout_handler(request: Request, exc: TimeoutError) -> JSONResponse:
        log.warning(
            "share_request_timeout",
            path=request.url.path,
            timeout=config.resolve_timeout_seconds,
        )
        return JSONResponse(
            status_code=504,
            content=error_envelope(504, "resolution timed out"),
        )

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Liveness probe with the registered providers."""
        state = cast(AppState, app.state)
        registry = getattr(state, "provider_registry", None)
        return {
            "status": "ok",
            "providers": [p.key for p in registry.supported_providers] if registry else [],
            "signing": getattr(state, "signature_codec", None) is not None,
        }

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
