"""Application use cases."""

from __future__ import annotations

from .resolve_share import BatchItem, ResolveResponse, ResolveShareUseCase

__all__ = ["BatchItem", "ResolveResponse", "ResolveShareUseCase"]
