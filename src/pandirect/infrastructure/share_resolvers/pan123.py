"""123pan share resolver.

The share page carries the file id and a share token as form inputs or
data attributes; both are exchanged at ``/api/share/shareinfo`` for a
download URL.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import structlog

from pandirect.domain.entities.share import ProviderProfile, ResolutionResult, ShareReference
from pandirect.domain.exceptions import (
    InvalidShareReference,
    PasswordRequired,
    ScrapeFailed,
    UpstreamRejected,
)
from pandirect.infrastructure.common.file_meta import infer_file_type, normalize_file_size, strip_tags
from pandirect.infrastructure.common.retry import RetryPolicy
from pandirect.infrastructure.http.fetch_client import FetchClient, HeaderProfile
from pandirect.infrastructure.share_resolvers._extract import cascade, first_match
from pandirect.infrastructure.share_resolvers._redirect import follow_indirection

log = structlog.get_logger(__name__)

BASE_URL = "https://www.123pan.com"
SHARE_INFO_PATH = "/api/share/shareinfo"

PROFILE = ProviderProfile(
    key="pan123",
    display_name="123云盘",
    url_pattern=re.compile(
        r"https?://(?:www\.)?123pan\.com/(?:s|share)/(?P<key>[a-zA-Z0-9]+)",
        re.IGNORECASE,
    ),
    base_urls=(BASE_URL,),
    aliases=frozenset({"123pan", "pan123"}),
    header_profiles=("share", "api"),
    default_ttl_seconds=7200,
    description="Single-file shares, optional password",
)

_SHARE = HeaderProfile("pan123", "share")
_API = HeaderProfile("pan123", "api")

_SITE_NAME = "123云盘"


def _class_text(name: str) -> str:
    return rf'class="[^"]*\b{name}\b[^"]*"[^>]*>(.*?)</'


_NAME = cascade(
    re.compile(_class_text("file-name"), re.S),
    re.compile(_class_text("filename"), re.S),
)
_TITLE_RE = re.compile(r"<title>(.*?)</title>", re.S | re.I)
_SIZE = cascade(
    re.compile(_class_text("file-size"), re.S),
    re.compile(_class_text("size"), re.S),
)
_FILE_ID = cascade(
    r'<input[^>]*name="file_id"[^>]*value="([^"]*)"',
    r'<input[^>]*value="([^"]*)"[^>]*name="file_id"',
    r'data-file-id="([^"]*)"',
)
_SHARE_TOKEN = cascade(
    r'<input[^>]*name="share_token"[^>]*value="([^"]*)"',
    r'<input[^>]*value="([^"]*)"[^>]*name="share_token"',
    r'data-share-token="([^"]*)"',
)
_PASSWORD_MARKER_RE = re.compile(r'class="[^"]*\bpassword-input\b|\bdata-password\b')


@dataclass(frozen=True)
class Pan123PageInfo:
    file_name: str
    file_size: str
    file_id: str | None
    share_token: str | None
    need_password: bool


def _title_name(html: str) -> str:
    m = _TITLE_RE.search(html)
    if not m:
        return ""
    return strip_tags(m.group(1)).replace(_SITE_NAME, "").strip()


def extract_page_info(html: str) -> Pan123PageInfo:
    """Pull file metadata and exchange tokens out of the share page."""
    return Pan123PageInfo(
        file_name=first_match(html, _NAME) or _title_name(html),
        file_size=normalize_file_size(first_match(html, _SIZE)),
        file_id=first_match(html, _FILE_ID),
        share_token=first_match(html, _SHARE_TOKEN),
        need_password=bool(_PASSWORD_MARKER_RE.search(html)),
    )


def extract_download_url(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise UpstreamRejected("malformed shareinfo response", provider="pan123")
    data = payload.get("data")
    url = data.get("download_url") if isinstance(data, dict) else None
    if payload.get("code") != 0 or not url:
        raise UpstreamRejected(
            str(payload.get("message") or "failed to obtain download url"),
            provider="pan123",
        )
    return str(url)


class Pan123Resolver:
    """Satisfies ``ShareResolverPort`` for ``123pan.com``."""

    def __init__(self, fetch: FetchClient, retry: RetryPolicy, *, base_url: str = BASE_URL) -> None:
        self._fetch = fetch
        self._retry = retry
        self._base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return PROFILE.key

    @property
    def profile(self) -> ProviderProfile:
        return PROFILE

    def validate(self, url: str) -> str | None:
        return PROFILE.match(url)

    async def resolve(self, ref: ShareReference) -> ResolutionResult:
        share_url = f"{self._base_url}/s/{ref.share_id}"
        resp = await self._retry.execute(
            lambda: self._fetch.get(share_url, _SHARE, referer=share_url),
            label="pan123_share_page",
        )
        if resp.status_code == 404:
            raise InvalidShareReference("share not found", provider="pan123")
        if resp.status_code >= 400 or not resp.text.strip():
            raise ScrapeFailed(f"share page unavailable (HTTP {resp.status_code})", provider="pan123")

        page = extract_page_info(resp.text)
        if page.need_password and not ref.has_password:
            raise PasswordRequired("share is password protected", provider="pan123")

        body: dict[str, Any] = {
            "share_id": ref.share_id,
            "file_id": page.file_id,
            "share_token": page.share_token,
        }
        if ref.password:
            body["password"] = ref.password

        payload = await self._retry.execute(
            lambda: self._fetch.post_json(
                self._base_url + SHARE_INFO_PATH, _API, json=body, referer=share_url
            ),
            label="pan123_shareinfo",
        )
        final_url = await follow_indirection(
            self._fetch, self._retry, extract_download_url(payload), _API, referer=share_url
        )

        log.debug("pan123_resolved", share_id=ref.share_id)
        return ResolutionResult(
            provider=PROFILE.key,
            share_id=ref.share_id,
            download_url=final_url,
            file_name=page.file_name,
            file_size=page.file_size,
            file_type=infer_file_type(page.file_name) if page.file_name else "",
        )
