"""Domain entities for share resolution.

Pure value objects, no framework dependencies, no I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping
from urllib.parse import urlsplit


@dataclass(frozen=True)
class ShareReference:
    """A share on one provider, optionally protected by a password."""

    provider: str
    share_id: str
    password: str | None = None

    @property
    def has_password(self) -> bool:
        return bool(self.password)


@dataclass(frozen=True)
class ProviderProfile:
    """Static per-provider data, built once at import time."""

    key: str  # canonical short key, e.g. "lz"
    display_name: str
    url_pattern: re.Pattern[str]  # must define a named group "key"
    base_urls: tuple[str, ...]
    aliases: frozenset[str] = frozenset()
    header_profiles: tuple[str, ...] = ("share", "api")
    default_ttl_seconds: int = 3600
    description: str = ""

    def match(self, url: str) -> str | None:
        """Return the share id if *url* matches this provider's pattern."""
        m = self.url_pattern.search(url)
        if not m:
            return None
        share_id = m.group("key")
        return share_id or None

    @property
    def domains(self) -> list[str]:
        return [urlsplit(u).hostname or u for u in self.base_urls]


@dataclass(frozen=True)
class SigningContext:
    """Ephemeral values for one signed-API resolution call."""

    device_id: str
    timestamp_ms: int
    time_token: str
    page_tokens: Mapping[str, str] = field(default_factory=dict)


def _is_absolute(url: str) -> bool:
    parts = urlsplit(url)
    return bool(parts.scheme in ("http", "https") and parts.netloc)


@dataclass(frozen=True)
class ResolutionResult:
    """A resolved share: direct link plus normalized file metadata."""

    provider: str
    share_id: str
    download_url: str
    file_name: str = ""
    file_size: str = ""
    file_type: str = ""
    upload_time: str = ""
    uploader: str = ""
    description: str = ""
    resolved_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        if not _is_absolute(self.download_url):
            raise ValueError(f"download_url must be absolute: {self.download_url!r}")


@dataclass(frozen=True)
class CacheEntry:
    """A cached result with its monotonic expiry time."""

    result: ResolutionResult
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at
