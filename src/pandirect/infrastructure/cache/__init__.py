"""Result caching."""

from __future__ import annotations

from .result_cache import ResultCache, fingerprint

__all__ = ["ResultCache", "fingerprint"]
