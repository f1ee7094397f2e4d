"""Result cache inspection and maintenance."""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from pandirect.interfaces.api.presenter import envelope
from pandirect.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/stats")
async def cache_stats(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    return JSONResponse(content=envelope(state.result_cache.stats()))


@router.post("/flush")
async def cache_flush(request: Request) -> JSONResponse:
    """Drop every cached resolution."""
    state = cast(AppState, request.app.state)
    removed = state.result_cache.flush()
    log.info("cache_flush_requested", removed=removed)
    return JSONResponse(content=envelope({"removed": removed}, msg="cache flushed"))
