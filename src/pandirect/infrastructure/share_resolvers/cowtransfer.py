"""CowTransfer share resolver."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import structlog

from pandirect.domain.entities.share import ProviderProfile, ResolutionResult, ShareReference
from pandirect.domain.exceptions import PasswordRequired, UpstreamRejected
from pandirect.infrastructure.common.file_meta import format_byte_count, infer_file_type
from pandirect.infrastructure.common.retry import RetryPolicy
from pandirect.infrastructure.http.fetch_client import FetchClient, HeaderProfile
from pandirect.infrastructure.share_resolvers._redirect import follow_indirection

log = structlog.get_logger(__name__)

API_URL = "https://cowtransfer.com/api/transfer/share"

PROFILE = ProviderProfile(
    key="cow",
    display_name="奶牛快传",
    url_pattern=re.compile(
        r"https?://(?:www\.)?cowtransfer\.com/(?:s|share)/(?P<key>[a-zA-Z0-9]+)",
        re.IGNORECASE,
    ),
    base_urls=("https://cowtransfer.com",),
    aliases=frozenset({"cowtransfer", "cow"}),
    header_profiles=("share", "api"),
    default_ttl_seconds=3600,
    description="Transfer links, optional password",
)

_API = HeaderProfile("cow", "api")


@dataclass(frozen=True)
class CowShareInfo:
    file_name: str
    file_size: str
    need_password: bool
    file_id: Any
    guid: Any


def parse_share_info(payload: Any) -> CowShareInfo:
    """Read the share metadata, tolerating both field spellings."""
    if not isinstance(payload, dict) or not payload:
        raise UpstreamRejected("malformed share info", provider="cow")
    size = payload.get("fileSize") or payload.get("size")
    return CowShareInfo(
        file_name=str(payload.get("fileName") or payload.get("name") or ""),
        file_size=format_byte_count(int(size)) if str(size or "").isdigit() else "",
        need_password=bool(payload.get("needPassword")),
        file_id=payload.get("fileId") or payload.get("id"),
        guid=payload.get("guid"),
    )


class CowTransferResolver:
    """Satisfies ``ShareResolverPort`` for ``cowtransfer.com``."""

    def __init__(self, fetch: FetchClient, retry: RetryPolicy, *, api_url: str = API_URL) -> None:
        self._fetch = fetch
        self._retry = retry
        self._api_url = api_url

    @property
    def name(self) -> str:
        return PROFILE.key

    @property
    def profile(self) -> ProviderProfile:
        return PROFILE

    def validate(self, url: str) -> str | None:
        return PROFILE.match(url)

    async def resolve(self, ref: ShareReference) -> ResolutionResult:
        payload = await self._retry.execute(
            lambda: self._fetch.get_json(f"{self._api_url}/{ref.share_id}", _API),
            label="cow_share_info",
        )
        info = parse_share_info(payload)
        if info.need_password and not ref.has_password:
            raise PasswordRequired("share is password protected", provider="cow")

        body: dict[str, Any] = {"guid": info.guid, "fileId": info.file_id}
        if ref.password:
            body["password"] = ref.password

        download = await self._retry.execute(
            lambda: self._fetch.post_json(f"{self._api_url}/download", _API, json=body),
            label="cow_download",
        )
        download_url = download.get("downloadUrl") if isinstance(download, dict) else None
        if not download_url:
            raise UpstreamRejected("failed to obtain download url", provider="cow")

        final_url = await follow_indirection(self._fetch, self._retry, str(download_url), _API)

        log.debug("cowtransfer_resolved", share_id=ref.share_id)
        return ResolutionResult(
            provider=PROFILE.key,
            share_id=ref.share_id,
            download_url=final_url,
            file_name=info.file_name,
            file_size=info.file_size,
            file_type=infer_file_type(info.file_name) if info.file_name else "",
        )
