"""Share parsing endpoints: redirect and JSON variants."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any, TypeVar, cast

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field

from pandirect.application.use_cases.resolve_share import ResolveResponse
from pandirect.domain.entities.share import ShareReference
from pandirect.domain.exceptions import InvalidShareReference
from pandirect.infrastructure.logging.setup import url_for_log
from pandirect.interfaces.api.presenter import (
    envelope,
    render_batch_item,
    render_profile,
    render_resolution,
)
from pandirect.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["parser"])

_T = TypeVar("_T")


class BatchRequestItem(BaseModel):
    provider: str
    share_id: str = Field(min_length=1)
    password: str | None = None


class BatchRequest(BaseModel):
    items: list[BatchRequestItem] = Field(min_length=1, max_length=50)


def split_share(share: str) -> tuple[str, str | None]:
    """Split ``id@pwd`` into ``(id, pwd)``; a missing or empty pwd is ``None``."""
    share_id, _, password = share.partition("@")
    return share_id, (password or None)


async def _with_deadline(state: AppState, awaitable: Awaitable[_T]) -> _T:
    # TimeoutError is rendered as 504 by the app-level handler.
    async with asyncio.timeout(state.config.resolve_timeout_seconds):
        return await awaitable


async def _resolve_url(request: Request, url: str | None, pwd: str | None) -> ResolveResponse:
    if not url:
        raise InvalidShareReference("请提供分享链接")
    state = cast(AppState, request.app.state)
    log.info("parse_url_request", url=url_for_log(url), has_password=bool(pwd))
    return await _with_deadline(state, state.resolve_share_uc.resolve_url(url, pwd or None))


async def _resolve_direct(request: Request, provider: str, share: str) -> ResolveResponse:
    share_id, password = split_share(share)
    if not share_id:
        raise InvalidShareReference("empty share id", provider=provider)
    state = cast(AppState, request.app.state)
    log.info(
        "parse_direct_request",
        provider=provider,
        share_id=share_id,
        has_password=password is not None,
    )
    ref = ShareReference(provider=provider.lower(), share_id=share_id, password=password)
    return await _with_deadline(state, state.resolve_share_uc.resolve_cached(ref))


@router.get("/parser")
async def parse_redirect(
    request: Request,
    url: str | None = Query(default=None, description="Share link."),
    pwd: str | None = Query(default=None, description="Share password."),
) -> RedirectResponse:
    """Resolve *url* and redirect (302) to the direct link."""
    response = await _resolve_url(request, url, pwd)
    return RedirectResponse(response.result.download_url, status_code=302)


@router.get("/d/{provider}/{share}")
async def direct_redirect(request: Request, provider: str, share: str) -> RedirectResponse:
    """Resolve ``provider``/``share`` (``id`` or ``id@pwd``) and redirect."""
    response = await _resolve_direct(request, provider, share)
    return RedirectResponse(response.result.download_url, status_code=302)


@router.get("/json/parser")
async def parse_json(
    request: Request,
    url: str | None = Query(default=None, description="Share link."),
    pwd: str | None = Query(default=None, description="Share password."),
) -> JSONResponse:
    response = await _resolve_url(request, url, pwd)
    return JSONResponse(content=envelope(render_resolution(response)))


@router.post("/json/batch")
async def parse_batch(request: Request, body: BatchRequest) -> JSONResponse:
    """Resolve several shares in order; each item reports its own outcome."""
    state = cast(AppState, request.app.state)
    refs = [
        ShareReference(
            provider=item.provider.lower(),
            share_id=item.share_id,
            password=item.password or None,
        )
        for item in body.items
    ]
    items = await _with_deadline(state, state.resolve_share_uc.resolve_batch(refs))
    data = [render_batch_item(i) for i in items]
    return JSONResponse(content=envelope(data, count=len(data)))


@router.get("/json/{provider}/{share}")
async def direct_json(request: Request, provider: str, share: str) -> JSONResponse:
    response = await _resolve_direct(request, provider, share)
    return JSONResponse(content=envelope(render_resolution(response)))


@router.get("/supported")
async def supported(request: Request) -> JSONResponse:
    """List registered providers in URL-sniffing order."""
    state = cast(AppState, request.app.state)
    profiles: list[dict[str, Any]] = [
        render_profile(p) for p in state.provider_registry.supported_providers
    ]
    return JSONResponse(content=envelope({"supportedPans": profiles}, count=len(profiles)))
