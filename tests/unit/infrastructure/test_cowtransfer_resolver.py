"""Tests for CowTransferResolver."""

from __future__ import annotations

import json

import pytest
import respx

from pandirect.domain.entities.share import ShareReference
from pandirect.domain.exceptions import PasswordRequired, UpstreamRejected
from pandirect.infrastructure.common.retry import RetryPolicy
from pandirect.infrastructure.http.fetch_client import FetchClient
from pandirect.infrastructure.share_resolvers.cowtransfer import (
    API_URL,
    CowTransferResolver,
    parse_share_info,
)


@pytest.fixture()
def resolver(fetch_client: FetchClient, retry: RetryPolicy) -> CowTransferResolver:
    return CowTransferResolver(fetch_client, retry)


class TestParseShareInfo:
    def test_primary_fields(self) -> None:
        info = parse_share_info(
            {"fileName": "a.mp4", "fileSize": 1048576, "needPassword": True, "fileId": 7, "guid": "g"}
        )
        assert info.file_name == "a.mp4"
        assert info.file_size == "1 MB"
        assert info.need_password
        assert info.file_id == 7
        assert info.guid == "g"

    def test_alternate_spellings(self) -> None:
        info = parse_share_info({"name": "b.zip", "size": "2048", "id": 9})
        assert info.file_name == "b.zip"
        assert info.file_size == "2 KB"
        assert info.file_id == 9
        assert not info.need_password

    @pytest.mark.parametrize("payload", [{}, None, [1, 2]])
    def test_malformed(self, payload: object) -> None:
        with pytest.raises(UpstreamRejected):
            parse_share_info(payload)


class TestCowTransferResolver:
    @pytest.mark.parametrize(
        ("url", "key"),
        [
            ("https://cowtransfer.com/s/a1b2c3d4e5f6", "a1b2c3d4e5f6"),
            ("http://www.cowtransfer.com/share/XYZ123", "XYZ123"),
            ("https://CowTransfer.com/s/abc", "abc"),
        ],
    )
    def test_validate(self, resolver: CowTransferResolver, url: str, key: str) -> None:
        assert resolver.validate(url) == key

    @respx.mock
    @pytest.mark.asyncio()
    async def test_resolve_with_password(self, resolver: CowTransferResolver) -> None:
        respx.get(f"{API_URL}/a1b2c3").respond(
            200,
            json={"fileName": "clip.mp4", "fileSize": 3072, "needPassword": True, "fileId": 11, "guid": "g-1"},
        )
        download = respx.post(f"{API_URL}/download").respond(
            200, json={"downloadUrl": "https://cdn.cowtransfer.com/clip.mp4"}
        )

        result = await resolver.resolve(ShareReference("cow", "a1b2c3", "pw"))

        assert result.download_url == "https://cdn.cowtransfer.com/clip.mp4"
        assert result.file_name == "clip.mp4"
        assert result.file_size == "3 KB"
        assert result.file_type == "视频文件"
        assert json.loads(download.calls.last.request.content) == {
            "guid": "g-1",
            "fileId": 11,
            "password": "pw",
        }

    @respx.mock
    @pytest.mark.asyncio()
    async def test_public_share_omits_password(self, resolver: CowTransferResolver) -> None:
        respx.get(f"{API_URL}/a1b2c3").respond(200, json={"fileName": "x.txt", "fileId": 1, "guid": "g"})
        download = respx.post(f"{API_URL}/download").respond(
            200, json={"downloadUrl": "https://cdn.cowtransfer.com/x.txt"}
        )

        await resolver.resolve(ShareReference("cow", "a1b2c3"))

        assert "password" not in json.loads(download.calls.last.request.content)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_password_required(self, resolver: CowTransferResolver) -> None:
        respx.get(f"{API_URL}/a1b2c3").respond(200, json={"needPassword": True, "fileId": 1})
        download = respx.post(f"{API_URL}/download")

        with pytest.raises(PasswordRequired):
            await resolver.resolve(ShareReference("cow", "a1b2c3"))
        assert not download.called

    @respx.mock
    @pytest.mark.asyncio()
    async def test_missing_download_url(self, resolver: CowTransferResolver) -> None:
        respx.get(f"{API_URL}/a1b2c3").respond(200, json={"fileId": 1, "guid": "g"})
        respx.post(f"{API_URL}/download").respond(200, json={"error": "expired"})

        with pytest.raises(UpstreamRejected, match="failed to obtain download url"):
            await resolver.resolve(ShareReference("cow", "a1b2c3"))
