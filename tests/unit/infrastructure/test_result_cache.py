"""Tests for the in-memory ResultCache."""

from __future__ import annotations

import pytest

from pandirect.domain.entities.share import ResolutionResult
from pandirect.infrastructure.cache import ResultCache, fingerprint


class TestFingerprint:
    def test_provider_lowercased(self) -> None:
        assert fingerprint("LZ", "iAbC") == "lz:iAbC:"

    def test_password_separates_entries(self) -> None:
        assert fingerprint("lz", "iAbC", "1") != fingerprint("lz", "iAbC", "2")
        assert fingerprint("lz", "iAbC", "1") != fingerprint("lz", "iAbC")

    def test_none_and_empty_password_share_a_slot(self) -> None:
        assert fingerprint("lz", "iAbC", None) == fingerprint("lz", "iAbC", "")

    def test_share_id_case_preserved(self) -> None:
        assert fingerprint("lz", "iAbC") != fingerprint("lz", "iabc")


class TestResultCache:
    @pytest.fixture()
    def cache(self, clock) -> ResultCache:
        return ResultCache(max_entries=3, clock=clock)

    def test_miss_then_hit(self, cache: ResultCache, resolution_result: ResolutionResult) -> None:
        assert cache.get("lz:a:") is None
        assert cache.put("lz:a:", resolution_result, 60)
        assert cache.get("lz:a:") is resolution_result

    @pytest.mark.parametrize("ttl", [0, -5])
    def test_non_positive_ttl_not_stored(
        self, cache: ResultCache, resolution_result: ResolutionResult, ttl: int
    ) -> None:
        assert not cache.put("lz:a:", resolution_result, ttl)
        assert not cache.has("lz:a:")
        assert cache.stats()["sets"] == 0

    def test_expiry(self, cache: ResultCache, clock, resolution_result: ResolutionResult) -> None:
        cache.put("lz:a:", resolution_result, 60)
        clock.advance(59)
        assert cache.expires_in("lz:a:") == pytest.approx(1.0)
        assert cache.has("lz:a:")

        clock.advance(1)

        assert not cache.has("lz:a:")
        assert cache.expires_in("lz:a:") is None
        assert cache.get("lz:a:") is None
        assert cache.keys() == []

    def test_refresh_extends_lifetime(
        self, cache: ResultCache, clock, resolution_result: ResolutionResult
    ) -> None:
        cache.put("lz:a:", resolution_result, 10)
        clock.advance(8)
        cache.put("lz:a:", resolution_result, 10)
        clock.advance(8)
        assert cache.get("lz:a:") is resolution_result

    def test_oldest_evicted_when_full(
        self, cache: ResultCache, resolution_result: ResolutionResult
    ) -> None:
        for key in ("a", "b", "c"):
            cache.put(key, resolution_result, 60)
        cache.put("a", resolution_result, 60)
        cache.put("d", resolution_result, 60)

        assert sorted(cache.keys()) == ["a", "c", "d"]

    def test_stats(self, cache: ResultCache, resolution_result: ResolutionResult) -> None:
        cache.put("a", resolution_result, 60)
        cache.get("a")
        cache.get("a")
        cache.get("missing")

        assert cache.stats() == {
            "hits": 2,
            "misses": 1,
            "sets": 1,
            "keys": 1,
            "hit_rate": 0.6667,
        }

    def test_stats_empty(self, cache: ResultCache) -> None:
        assert cache.stats()["hit_rate"] == 0.0

    def test_flush(self, cache: ResultCache, resolution_result: ResolutionResult) -> None:
        cache.put("a", resolution_result, 60)
        cache.put("b", resolution_result, 60)

        assert cache.flush() == 2
        assert cache.keys() == []
        assert cache.flush() == 0

    def test_periodic_sweep_drops_expired(self, clock, resolution_result: ResolutionResult) -> None:
        cache = ResultCache(max_entries=1000, clock=clock)
        cache.put("stale", resolution_result, 1)
        clock.advance(5)
        for i in range(99):
            cache.put(f"k{i}", resolution_result, 60)

        assert "stale" not in cache._entries
