"""Lenovo lecloud share resolver.

Public share API, JSON over POST:

    1. shareInfo {shareId, password, directoryId: -1}
         -> data.passwordVerified, data.files[]
    2. packageDownloadWithFileIds {fileIds: [id], shareId, browserId}
         -> data.downloadUrl
    3. downloadUrl may wrap further API hops (see ``follow_indirection``)
    4. GET without redirects; a 302 ``Location`` is the CDN link
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable
from typing import Any

import structlog

from pandirect.domain.entities.share import ProviderProfile, ResolutionResult, ShareReference
from pandirect.domain.exceptions import (
    InvalidShareReference,
    PasswordIncorrect,
    PasswordRequired,
    UpstreamRejected,
)
from pandirect.infrastructure.common.file_meta import format_byte_count, infer_file_type
from pandirect.infrastructure.common.retry import RetryPolicy
from pandirect.infrastructure.http.fetch_client import FetchClient, HeaderProfile
from pandirect.infrastructure.share_resolvers._redirect import (
    follow_indirection,
    probe_location,
)

log = structlog.get_logger(__name__)

API_URL_PREFIX = "https://lecloud.lenovo.com/share/api/clouddiskapi/share/public/v1/"

PROFILE = ProviderProfile(
    key="le",
    display_name="联想乐云",
    url_pattern=re.compile(r"https://lecloud\.lenovo\.com/share/(?P<key>[a-zA-Z0-9]+)"),
    base_urls=("https://lecloud.lenovo.com",),
    aliases=frozenset({"lecloud", "lenovo", "le"}),
    header_profiles=("api",),
    description="Single-file shares, optional password",
)

_API = HeaderProfile("le", "api")

_FOLDER_TYPES = frozenset({"folder", "dir", "directory"})


def check_result(payload: Any) -> dict[str, Any]:
    """Return ``payload["data"]`` or raise on a failed API envelope."""
    if not isinstance(payload, dict) or not payload.get("result"):
        errcode = payload.get("errcode", "") if isinstance(payload, dict) else ""
        errmsg = payload.get("errmsg") if isinstance(payload, dict) else None
        raise UpstreamRejected(f"{errcode}: {errmsg or '未知错误'}", provider="le")
    data = payload.get("data")
    return data if isinstance(data, dict) else {}


def is_folder(entry: dict[str, Any]) -> bool:
    if entry.get("isFolder") or entry.get("folder"):
        return True
    return str(entry.get("fileType") or "").lower() in _FOLDER_TYPES


def pick_file(files: list[dict[str, Any]] | None) -> dict[str, Any]:
    """First non-folder entry of a ``shareInfo`` file list."""
    if not files:
        raise InvalidShareReference("share contains no files", provider="le")
    for entry in files:
        if isinstance(entry, dict) and not is_folder(entry):
            return entry
    raise InvalidShareReference("folder shares are not supported", provider="le")


class LecloudResolver:
    """Satisfies ``ShareResolverPort`` for ``lecloud.lenovo.com``."""

    def __init__(
        self,
        fetch: FetchClient,
        retry: RetryPolicy,
        *,
        api_prefix: str = API_URL_PREFIX,
        browser_id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._fetch = fetch
        self._retry = retry
        self._api_prefix = api_prefix
        self._browser_id_factory = browser_id_factory

    @property
    def name(self) -> str:
        return PROFILE.key

    @property
    def profile(self) -> ProviderProfile:
        return PROFILE

    def validate(self, url: str) -> str | None:
        return PROFILE.match(url)

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        payload = await self._retry.execute(
            lambda: self._fetch.post_json(self._api_prefix + path, _API, json=body),
            label=f"le_{path}",
        )
        return check_result(payload)

    async def resolve(self, ref: ShareReference) -> ResolutionResult:
        info = await self._post(
            "shareInfo",
            {"shareId": ref.share_id, "password": ref.password or "", "directoryId": -1},
        )
        if not info.get("passwordVerified"):
            if ref.has_password:
                raise PasswordIncorrect("share password rejected", provider="le")
            raise PasswordRequired("share is password protected", provider="le")

        entry = pick_file(info.get("files"))
        file_id = entry.get("fileId")
        if file_id in (None, ""):
            raise UpstreamRejected("file entry without fileId", provider="le")

        download = await self._post(
            "packageDownloadWithFileIds",
            {
                "fileIds": [file_id],
                "shareId": ref.share_id,
                "browserId": self._browser_id_factory(),
            },
        )
        download_url = download.get("downloadUrl")
        if not download_url:
            raise UpstreamRejected("response without downloadUrl", provider="le")

        unwrapped = await follow_indirection(self._fetch, self._retry, str(download_url), _API)
        final_url = await probe_location(
            self._fetch, self._retry, unwrapped, _API, required=False
        )

        file_name = str(entry.get("fileName") or "")
        size = entry.get("fileSize")
        log.debug("lecloud_resolved", share_id=ref.share_id, file_id=file_id)
        return ResolutionResult(
            provider=PROFILE.key,
            share_id=ref.share_id,
            download_url=final_url,
            file_name=file_name,
            file_size=format_byte_count(int(size)) if str(size or "").isdigit() else str(size or ""),
            file_type=infer_file_type(file_name) if file_name else "",
        )
