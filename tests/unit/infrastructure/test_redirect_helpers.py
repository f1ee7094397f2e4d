"""Tests for Location probing and base64 indirection."""

from __future__ import annotations

import base64

import pytest
import respx

from pandirect.domain.exceptions import DownloadUnavailable
from pandirect.infrastructure.common.retry import RetryPolicy
from pandirect.infrastructure.http.fetch_client import FetchClient, HeaderProfile
from pandirect.infrastructure.share_resolvers._redirect import (
    decode_indirection,
    follow_indirection,
    probe_location,
)

_API = HeaderProfile("le", "api")


def _wrap(url: str, *, urlsafe: bool = False, strip_padding: bool = False) -> str:
    encode = base64.urlsafe_b64encode if urlsafe else base64.b64encode
    token = encode(url.encode()).decode()
    if strip_padding:
        token = token.rstrip("=")
    return token


class TestDecodeIndirection:
    def test_absent_param(self) -> None:
        assert decode_indirection("https://cdn.example.com/f.zip") is None

    @pytest.mark.parametrize("urlsafe", [False, True])
    @pytest.mark.parametrize("strip_padding", [False, True])
    def test_variants(self, urlsafe: bool, strip_padding: bool) -> None:
        target = "https://api.example.com/next?id=1"
        token = _wrap(target, urlsafe=urlsafe, strip_padding=strip_padding)
        assert decode_indirection(f"https://dl.example.com/go?params={token}") == target

    def test_plus_survives_query_parsing(self) -> None:
        # "?>>" encodes to a token containing "+" in the standard alphabet.
        target = "https://api.example.com/a?>>"
        token = _wrap(target)
        assert "+" in token
        assert decode_indirection(f"https://dl.example.com/go?params={token}") == target

    def test_garbage_ignored(self) -> None:
        assert decode_indirection("https://dl.example.com/go?params=%%%") is None

    def test_non_url_payload_ignored(self) -> None:
        token = _wrap("just text")
        assert decode_indirection(f"https://dl.example.com/go?params={token}") is None


class TestProbeLocation:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_relative_location_resolved(
        self, fetch_client: FetchClient, retry: RetryPolicy
    ) -> None:
        respx.get("https://dl.example.com/file/abc").respond(302, headers={"Location": "/real/w.zip"})
        url = await probe_location(fetch_client, retry, "https://dl.example.com/file/abc", _API)
        assert url == "https://dl.example.com/real/w.zip"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_missing_location(self, fetch_client: FetchClient, retry: RetryPolicy) -> None:
        respx.get("https://dl.example.com/file/abc").respond(200, text="ok")
        with pytest.raises(DownloadUnavailable):
            await probe_location(fetch_client, retry, "https://dl.example.com/file/abc", _API)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_optional_redirect_keeps_final_url(
        self, fetch_client: FetchClient, retry: RetryPolicy
    ) -> None:
        respx.get("https://dl.example.com/file/abc").respond(200, text="ok")
        url = await probe_location(
            fetch_client, retry, "https://dl.example.com/file/abc", _API, required=False
        )
        assert url == "https://dl.example.com/file/abc"


class TestFollowIndirection:
    @pytest.mark.asyncio()
    async def test_plain_url_is_final(self, fetch_client: FetchClient, retry: RetryPolicy) -> None:
        url = "https://cdn.example.com/f.zip"
        assert await follow_indirection(fetch_client, retry, url, _API) == url

    @respx.mock
    @pytest.mark.asyncio()
    async def test_two_stages(self, fetch_client: FetchClient, retry: RetryPolicy) -> None:
        stage2_api = "https://api.example.com/stage2"
        stage1_api = "https://api.example.com/stage1"
        stage2_url = f"https://dl.example.com/go?params={_wrap(stage2_api)}"
        respx.get(stage1_api).respond(200, json={"data": {"redirect_url": stage2_url}})
        respx.get(stage2_api).respond(200, json={"redirect_url": "https://cdn.example.com/f.zip"})

        start = f"https://dl.example.com/go?params={_wrap(stage1_api)}"
        assert (
            await follow_indirection(fetch_client, retry, start, _API)
            == "https://cdn.example.com/f.zip"
        )

    @respx.mock
    @pytest.mark.asyncio()
    async def test_missing_redirect_field(
        self, fetch_client: FetchClient, retry: RetryPolicy
    ) -> None:
        api = "https://api.example.com/stage1"
        respx.get(api).respond(200, json={"data": {}})
        with pytest.raises(DownloadUnavailable):
            await follow_indirection(
                fetch_client, retry, f"https://dl.example.com/go?params={_wrap(api)}", _API
            )
