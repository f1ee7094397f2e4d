"""Result cache port - fingerprint-keyed storage for resolved shares."""

from __future__ import annotations

from typing import Any, Protocol

from pandirect.domain.entities.share import ResolutionResult


class ResultCachePort(Protocol):
    """Port for an in-process TTL cache of resolution results.

    get/put are synchronous and must be atomic with respect to each other.
    """

    def get(self, fingerprint: str) -> ResolutionResult | None:
        """Return the cached result, or None if absent or expired."""
        ...

    def put(self, fingerprint: str, result: ResolutionResult, ttl_seconds: int) -> bool:
        """Store with expiry now + ttl. ttl 0 = do not store. True = stored."""
        ...

    def expires_in(self, fingerprint: str) -> float | None:
        """Seconds until the entry expires, None if absent."""
        ...

    def has(self, fingerprint: str) -> bool: ...

    def keys(self) -> list[str]: ...

    def flush(self) -> int:
        """Drop all entries; return how many were removed."""
        ...

    def stats(self) -> dict[str, Any]: ...
