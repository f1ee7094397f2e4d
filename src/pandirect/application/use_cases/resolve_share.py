"""Share resolution use case.

URL -> ShareReference -> cache lookup -> provider pipeline -> cache store.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Protocol

import structlog

from pandirect.domain.entities.share import ResolutionResult, ShareReference
from pandirect.domain.exceptions import InvalidShareReference, ShareResolveError
from pandirect.domain.ports.result_cache import ResultCachePort
from pandirect.infrastructure.cache.result_cache import fingerprint

log = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 3600


# ---------------------------------------------------------------------------
# Protocols / result types
# ---------------------------------------------------------------------------


class _Registry(Protocol):
    def canonical(self, alias: str) -> str | None: ...

    def identify(self, url: str, password: str | None = None) -> ShareReference | None: ...

    async def resolve(self, ref: ShareReference) -> ResolutionResult: ...


@dataclass(frozen=True)
class ResolveResponse:
    """A result plus how it was obtained."""

    result: ResolutionResult
    cache_hit: bool
    expires_in: float | None = None


@dataclass(frozen=True)
class BatchItem:
    """Outcome for one reference of a batch: a response or an error."""

    ref: ShareReference
    response: ResolveResponse | None = None
    error: ShareResolveError | None = None

    @property
    def ok(self) -> bool:
        return self.response is not None


# ---------------------------------------------------------------------------
# Use case
# ---------------------------------------------------------------------------


class ResolveShareUseCase:
    """Resolve share references, consulting the result cache first.

    Concurrent misses for the same fingerprint are not deduplicated;
    each resolves upstream and the last write wins.
    """

    def __init__(
        self,
        registry: _Registry,
        cache: ResultCachePort,
        *,
        provider_ttls: Mapping[str, int] | None = None,
        default_ttl: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._provider_ttls = {k.lower(): v for k, v in (provider_ttls or {}).items()}
        self._default_ttl = default_ttl

    def ttl_for(self, provider: str) -> int:
        return self._provider_ttls.get(provider.lower(), self._default_ttl)

    def identify(self, url: str, password: str | None = None) -> ShareReference | None:
        return self._registry.identify(url, password)

    def _canonical(self, ref: ShareReference) -> ShareReference:
        # Unknown aliases pass through; the registry rejects them.
        key = self._registry.canonical(ref.provider)
        if key is None or key == ref.provider:
            return ref
        return replace(ref, provider=key)

    async def resolve_cached(self, ref: ShareReference) -> ResolveResponse:
        """Return the cached result for *ref*, resolving upstream on a miss.

        The cache slot and TTL follow the provider's canonical key, so
        every alias of a provider shares them.

        Raises:
            ShareResolveError: any pipeline failure; nothing is cached.
        """
        ref = self._canonical(ref)
        fp = fingerprint(ref.provider, ref.share_id, ref.password)
        cached = self._cache.get(fp)
        if cached is not None:
            log.debug(
                "share_cache_hit",
                provider=ref.provider,
                share_id=ref.share_id,
                has_password=ref.has_password,
            )
            return ResolveResponse(
                result=cached, cache_hit=True, expires_in=self._cache.expires_in(fp)
            )

        log.info("share_resolve_started", provider=ref.provider, share_id=ref.share_id)
        t0 = time.perf_counter()
        try:
            result = await self._registry.resolve(ref)
        except ShareResolveError as exc:
            log.warning(
                "share_resolve_failed",
                provider=ref.provider,
                share_id=ref.share_id,
                error_type=type(exc).__name__,
                error=exc.message,
            )
            raise

        ttl = self.ttl_for(ref.provider)
        stored = self._cache.put(fp, result, ttl)
        log.info(
            "share_resolved",
            provider=ref.provider,
            share_id=ref.share_id,
            file_name=result.file_name,
            duration_ms=round((time.perf_counter() - t0) * 1000),
            cached=stored,
        )
        return ResolveResponse(
            result=result, cache_hit=False, expires_in=float(ttl) if stored else None
        )

    async def resolve_url(self, url: str, password: str | None = None) -> ResolveResponse:
        """Identify *url* and resolve it.

        Raises:
            InvalidShareReference: no provider recognises *url*.
        """
        ref = self.identify(url, password)
        if ref is None:
            raise InvalidShareReference(f"unrecognised share url: {url}")
        return await self.resolve_cached(ref)

    async def resolve_batch(self, refs: list[ShareReference]) -> list[BatchItem]:
        """Resolve *refs* one after another; failures are reported per item."""
        items: list[BatchItem] = []
        for ref in refs:
            try:
                response = await self.resolve_cached(ref)
            except ShareResolveError as exc:
                items.append(BatchItem(ref=ref, error=exc))
                continue
            items.append(BatchItem(ref=ref, response=response))
        log.info(
            "share_batch_resolved",
            total=len(items),
            failed=sum(1 for i in items if not i.ok),
        )
        return items
