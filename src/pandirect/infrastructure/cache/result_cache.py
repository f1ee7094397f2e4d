"""In-memory TTL cache for resolution results.

Single event-loop use only: ``get``/``put`` are synchronous and never
await, so they cannot interleave.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import structlog

from pandirect.domain.entities.share import CacheEntry, ResolutionResult

log = structlog.get_logger(__name__)

# Sweep expired entries every N writes
_EVICT_INTERVAL = 100

_DEFAULT_MAX_ENTRIES = 10_000


def fingerprint(provider: str, share_id: str, password: str | None = None) -> str:
    """Cache key for a share reference.

    ``None`` and ``""`` passwords share a slot.
    """
    return f"{provider.lower()}:{share_id}:{password or ''}"


class ResultCache:
    """Fingerprint-keyed TTL cache with a size cap.

    Expired entries are dropped lazily on read and by a periodic sweep.
    When full, the oldest entries (by insertion order) are evicted.
    """

    def __init__(
        self,
        *,
        max_entries: int = _DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._max_entries = max_entries
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._sets = 0

    def get(self, fingerprint: str) -> ResolutionResult | None:
        entry = self._entries.get(fingerprint)
        if entry is None:
            self._misses += 1
            return None
        if entry.is_expired(self._clock()):
            del self._entries[fingerprint]
            self._misses += 1
            return None
        self._hits += 1
        log.debug("result_cache_hit", hits=self._hits)
        return entry.result

    def put(self, fingerprint: str, result: ResolutionResult, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            return False
        # Re-insert so a refreshed key counts as newest.
        self._entries.pop(fingerprint, None)
        self._entries[fingerprint] = CacheEntry(
            result=result, expires_at=self._clock() + ttl_seconds
        )
        self._sets += 1
        if self._sets % _EVICT_INTERVAL == 0:
            self._evict_expired()
        self._enforce_max_size()
        return True

    def expires_in(self, fingerprint: str) -> float | None:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        remaining = entry.expires_at - self._clock()
        return remaining if remaining > 0 else None

    def has(self, fingerprint: str) -> bool:
        entry = self._entries.get(fingerprint)
        return entry is not None and not entry.is_expired(self._clock())

    def keys(self) -> list[str]:
        now = self._clock()
        return [k for k, v in self._entries.items() if not v.is_expired(now)]

    def flush(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        log.info("result_cache_flushed", removed=count)
        return count

    def stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "sets": self._sets,
            "keys": len(self.keys()),
            "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
        }

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [k for k, v in self._entries.items() if v.is_expired(now)]
        for k in expired:
            del self._entries[k]
        if expired:
            log.debug("result_cache_evict", evicted=len(expired), size=len(self._entries))

    def _enforce_max_size(self) -> None:
        excess = len(self._entries) - self._max_entries
        if excess <= 0:
            return
        for k in list(self._entries)[:excess]:
            del self._entries[k]
        log.debug("result_cache_trimmed", evicted=excess, size=len(self._entries))
