"""Outbound HTTP with browser-like header profiles."""

from __future__ import annotations

from .fetch_client import FetchClient, HeaderProfile, decode_json
from .header_profiles import build_headers

__all__ = ["FetchClient", "HeaderProfile", "build_headers", "decode_json"]
