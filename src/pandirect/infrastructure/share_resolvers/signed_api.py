"""Signed-API share resolver for the feijipan / ilanzou family.

Both providers run the same backend and differ only in API host, share
domain and signing key, so each is described by a ``SignedApiConfig``
while the protocol lives once in ``SignedApiResolver``.

Every call carries ``timestamp=HEX(AES(now_ms))`` signed with the
provider's key (see ``SignatureCodec``). Flow:

    1. GET {api}buy/vip/list?...&timestamp=T        warm-up, result unused
    2. GET {api}recommend/list?...&shareId=KEY      -> list[0]: fileIds, userId,
                                                       fileList[0]: name/size/date
    3. GET {api}file/redirect?downloadId=HEX(AES("fid|uid"))
           &auth=HEX(AES("fid|now_ms"))&...        302 -> Location = direct link

The warm-up call is mandatory: without it step 3 fails upstream validation.

Adding a provider = adding a ``SignedApiConfig`` + appending it to
``ALL_SIGNED_API_CONFIGS``.
"""

from __future__ import annotations

import re
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import structlog

from pandirect.domain.entities.share import (
    ProviderProfile,
    ResolutionResult,
    ShareReference,
    SigningContext,
)
from pandirect.domain.exceptions import InvalidShareReference, UpstreamRejected
from pandirect.infrastructure.common.file_meta import (
    filename_from_url,
    format_byte_count,
    infer_file_type,
)
from pandirect.infrastructure.common.retry import RetryPolicy
from pandirect.infrastructure.http.fetch_client import FetchClient, HeaderProfile
from pandirect.infrastructure.share_resolvers._redirect import probe_location
from pandirect.infrastructure.signing.signature_codec import SignatureCodec, SigningKey

log = structlog.get_logger(__name__)

_DEV_TYPE = "6"
_DEV_MODEL = "Chrome"

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SignedApiConfig:
    """Immutable configuration for one signed-API provider."""

    profile: ProviderProfile
    api_prefix: str  # must end with "/"
    signing_key: SigningKey
    name_param: str = "download_name"  # query param of the final URL


FEIJIPAN = SignedApiConfig(
    profile=ProviderProfile(
        key="fj",
        display_name="小飞机网盘",
        url_pattern=re.compile(
            r"https://(?:share\.feijipan\.com|www\.feijix\.com)/s/(?P<key>[^/?#]+)"
        ),
        base_urls=("https://share.feijipan.com", "https://www.feijix.com"),
        aliases=frozenset({"feijipan", "feiji", "fj"}),
        header_profiles=("api",),
        description="Public shares, signed API",
    ),
    api_prefix="https://api.feijipan.com/ws/",
    signing_key=SigningKey.PRIMARY,
)

ILANZOU = SignedApiConfig(
    profile=ProviderProfile(
        key="iz",
        display_name="蓝奏云优享",
        url_pattern=re.compile(r"https://(?:www\.)?ilanzou\.com/s/(?P<key>[^/?#]+)"),
        base_urls=("https://www.ilanzou.com",),
        aliases=frozenset({"ilanzou", "lanzouyx", "iz"}),
        header_profiles=("api",),
        description="Public shares, signed API",
    ),
    api_prefix="https://api.ilanzou.com/unproved/",
    signing_key=SigningKey.IZ,
)

ALL_SIGNED_API_CONFIGS: tuple[SignedApiConfig, ...] = (FEIJIPAN, ILANZOU)


# ---------------------------------------------------------------------------
# Listing parsing (stateless, testable)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ListedFile:
    """First entry of a ``recommend/list`` response."""

    file_id: str
    user_id: str
    file_name: str = ""
    file_size: str = ""
    upload_time: str = ""
    uploader: str = ""


def parse_listing(payload: Any, provider: str) -> ListedFile:
    """Validate a ``recommend/list`` payload and pick the first entry.

    Raises:
        UpstreamRejected: non-200 ``code`` or missing identifiers.
        InvalidShareReference: the share lists no files.
    """
    if not isinstance(payload, dict) or payload.get("code") != 200:
        code = payload.get("code") if isinstance(payload, dict) else None
        msg = payload.get("msg") if isinstance(payload, dict) else None
        raise UpstreamRejected(
            f"listing failed (code={code}): {msg or 'unknown error'}",
            provider=provider,
        )

    entries = payload.get("list") or []
    if not entries:
        raise InvalidShareReference("share lists no files", provider=provider)

    entry = entries[0]
    file_id = entry.get("fileIds")
    user_id = entry.get("userId")
    if file_id in (None, "") or user_id in (None, ""):
        raise UpstreamRejected("listing entry without fileIds/userId", provider=provider)

    files = entry.get("fileList") or [{}]
    first = files[0] or {}
    owner = entry.get("map") or {}

    size = first.get("fileSize")
    return ListedFile(
        file_id=str(file_id),
        user_id=str(user_id),
        file_name=str(first.get("fileName") or ""),
        file_size=format_byte_count(int(size)) if str(size or "").isdigit() else "",
        upload_time=str(first.get("updTime") or ""),
        uploader=str(owner.get("userName") or ""),
    )


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


def _new_device_id() -> str:
    return uuid.uuid4().hex[:20]


class SignedApiResolver:
    """Generic resolver for signed-API providers.

    Satisfies ``ShareResolverPort``. Needs a ``SignatureCodec`` that holds
    the config's signing key.
    """

    def __init__(
        self,
        config: SignedApiConfig,
        fetch: FetchClient,
        retry: RetryPolicy,
        codec: SignatureCodec,
        *,
        clock: Callable[[], float] = time.time,
        device_id_factory: Callable[[], str] = _new_device_id,
    ) -> None:
        self._config = config
        self._fetch = fetch
        self._retry = retry
        self._codec = codec
        self._clock = clock
        self._device_id_factory = device_id_factory
        self._api = HeaderProfile(config.profile.key, "api")

    @property
    def name(self) -> str:
        return self._config.profile.key

    @property
    def profile(self) -> ProviderProfile:
        return self._config.profile

    def validate(self, url: str) -> str | None:
        return self._config.profile.match(url)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _sign(self, text: str) -> str:
        return self._codec.sign(text, self._config.signing_key)

    def _new_context(self, device_id: str) -> SigningContext:
        ts = self._now_ms()
        return SigningContext(device_id=device_id, timestamp_ms=ts, time_token=self._sign(str(ts)))

    def _url(self, path: str, params: dict[str, str]) -> str:
        return f"{self._config.api_prefix}{path}?{urlencode(params)}"

    async def _get_json(self, url: str, label: str) -> Any:
        return await self._retry.execute(
            lambda: self._fetch.get_json(url, self._api),
            label=f"{self.name}_{label}",
        )

    async def resolve(self, ref: ShareReference) -> ResolutionResult:
        ctx = self._new_context(self._device_id_factory())
        common = {
            "devType": _DEV_TYPE,
            "devModel": _DEV_MODEL,
            "uuid": ctx.device_id,
            "extra": "2",
            "timestamp": ctx.time_token,
        }

        await self._get_json(self._url("buy/vip/list", common), "warmup")

        listing = await self._get_json(
            self._url(
                "recommend/list",
                {**common, "shareId": ref.share_id, "type": "0", "offset": "1", "limit": "60"},
            ),
            "listing",
        )
        listed = parse_listing(listing, self.name)

        redirect_ctx = self._new_context(ctx.device_id)
        redirect_url = self._url(
            "file/redirect",
            {
                "downloadId": self._sign(f"{listed.file_id}|{listed.user_id}"),
                "enable": "1",
                "devType": _DEV_TYPE,
                "uuid": redirect_ctx.device_id,
                "timestamp": redirect_ctx.time_token,
                "auth": self._sign(f"{listed.file_id}|{redirect_ctx.timestamp_ms}"),
                "shareId": ref.share_id,
            },
        )
        final_url = await probe_location(self._fetch, self._retry, redirect_url, self._api)

        file_name = listed.file_name or filename_from_url(final_url, self._config.name_param) or ""

        log.debug("signed_api_resolved", provider=self.name, share_id=ref.share_id)
        return ResolutionResult(
            provider=self.name,
            share_id=ref.share_id,
            download_url=final_url,
            file_name=file_name,
            file_size=listed.file_size,
            file_type=infer_file_type(file_name) if file_name else "",
            upload_time=listed.upload_time,
            uploader=listed.uploader,
        )


def create_all_signed_api_resolvers(
    fetch: FetchClient,
    retry: RetryPolicy,
    codec: SignatureCodec,
) -> list[SignedApiResolver]:
    """Create resolvers for every config whose signing key the codec holds."""
    return [
        SignedApiResolver(config=cfg, fetch=fetch, retry=retry, codec=codec)
        for cfg in ALL_SIGNED_API_CONFIGS
        if cfg.signing_key in codec.available_keys
    ]
