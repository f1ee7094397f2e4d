"""Tests for the parser endpoints, error mapping and /health."""

from __future__ import annotations

import asyncio
import re
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

from pandirect.application.use_cases.resolve_share import ResolveShareUseCase
from pandirect.domain.entities.share import ProviderProfile, ResolutionResult, ShareReference
from pandirect.domain.exceptions import PasswordRequired, UpstreamRejected
from pandirect.infrastructure.cache import ResultCache
from pandirect.infrastructure.config import AppConfig
from pandirect.infrastructure.share_resolvers import ProviderRegistry
from pandirect.interfaces.api.parser.router import split_share
from pandirect.interfaces.app import create_app

_LZ_URL = "https://wwsd.lanzouw.com/iAbC123xyz"


def _fake_resolver(result: ResolutionResult) -> MagicMock:
    profile = ProviderProfile(
        key="lz",
        display_name="蓝奏云",
        url_pattern=re.compile(r"https://wwsd\.lanzouw\.com/(?P<key>\w+)"),
        base_urls=("https://wwsd.lanzouw.com",),
        aliases=frozenset({"lanzou", "lz"}),
        description="test provider",
    )
    resolver = MagicMock()
    resolver.name = "lz"
    resolver.profile = profile
    resolver.validate = profile.match
    resolver.resolve = AsyncMock(return_value=result)
    return resolver


def _make_app(resolver: MagicMock, config: AppConfig | None = None) -> FastAPI:
    """App with state wired by hand (lifespan does not run without ``with``)."""
    config = config or AppConfig()
    app = create_app(config)
    registry = ProviderRegistry([resolver])
    cache = ResultCache()
    app.state.provider_registry = registry
    app.state.result_cache = cache
    app.state.signature_codec = None
    app.state.resolve_share_uc = ResolveShareUseCase(
        registry, cache, provider_ttls={"lz": 1800}
    )
    return app


@pytest.fixture()
def resolver(resolution_result: ResolutionResult) -> MagicMock:
    return _fake_resolver(resolution_result)


@pytest.fixture()
def client(resolver: MagicMock) -> TestClient:
    return TestClient(_make_app(resolver))


class TestSplitShare:
    def test_plain(self) -> None:
        assert split_share("iAbC") == ("iAbC", None)

    def test_with_password(self) -> None:
        assert split_share("iAbC@6666") == ("iAbC", "6666")

    def test_trailing_at(self) -> None:
        assert split_share("iAbC@") == ("iAbC", None)


class TestRedirectEndpoints:
    def test_parser_redirects(self, client: TestClient, resolver: MagicMock) -> None:
        resp = client.get("/parser", params={"url": _LZ_URL, "pwd": "6666"}, follow_redirects=False)

        assert resp.status_code == 302
        assert resp.headers["location"] == "https://cdn.example.com/file/w.zip?fn=w.zip"
        resolver.resolve.assert_awaited_once_with(ShareReference("lz", "iAbC123xyz", "6666"))

    def test_direct_redirect_with_password(self, client: TestClient, resolver: MagicMock) -> None:
        resp = client.get("/d/LANZOU/iAbC123xyz@6666", follow_redirects=False)

        assert resp.status_code == 302
        resolver.resolve.assert_awaited_once_with(ShareReference("lz", "iAbC123xyz", "6666"))

    def test_missing_url(self, client: TestClient) -> None:
        resp = client.get("/parser", follow_redirects=False)

        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == 400
        assert body["success"] is False
        assert body["msg"] == "请提供分享链接"

    def test_unknown_url(self, client: TestClient) -> None:
        resp = client.get("/parser", params={"url": "https://example.com/x"}, follow_redirects=False)
        assert resp.status_code == 400


class TestJsonEndpoints:
    def test_envelope_shape(self, client: TestClient) -> None:
        resp = client.get("/json/parser", params={"url": _LZ_URL})

        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 200
        assert body["msg"] == "success"
        assert body["success"] is True
        assert isinstance(body["timestamp"], int)
        data = body["data"]
        assert data["shareKey"] == "lz:iAbC123xyz"
        assert data["directLink"] == "https://cdn.example.com/file/w.zip?fn=w.zip"
        assert data["cacheHit"] is False
        assert data["expires"] - body["timestamp"] == pytest.approx(1_800_000, abs=5_000)
        assert data["expiration"].endswith("Z")
        assert data["fileInfo"]["fileName"] == "w.zip"
        assert data["fileInfo"]["fileSize"] == "920.1 KB"

    def test_second_request_is_cache_hit(self, client: TestClient, resolver: MagicMock) -> None:
        client.get("/json/lz/iAbC123xyz")
        resp = client.get("/json/lz/iAbC123xyz")

        assert resp.json()["data"]["cacheHit"] is True
        assert resolver.resolve.await_count == 1

    def test_aliases_share_cache_entry(self, client: TestClient, resolver: MagicMock) -> None:
        client.get("/json/lanzou/iAbC123xyz")
        resp = client.get("/json/lz/iAbC123xyz")

        assert resp.json()["data"]["cacheHit"] is True
        assert resolver.resolve.await_count == 1

    def test_url_password_not_logged(self, client: TestClient) -> None:
        with capture_logs() as logs:
            client.get("/json/parser", params={"url": f"{_LZ_URL}?pwd=s3cr3t"})

        request_events = [e for e in logs if e["event"] == "parse_url_request"]
        assert request_events[0]["url"] == f"{_LZ_URL}?pwd=***"
        assert "s3cr3t" not in repr(logs)

    def test_unknown_metadata_placeholders(self, resolver: MagicMock) -> None:
        resolver.resolve.return_value = ResolutionResult(
            provider="lz", share_id="iBare", download_url="https://cdn.example.com/x"
        )
        client = TestClient(_make_app(resolver))

        info = client.get("/json/lz/iBare").json()["data"]["fileInfo"]

        assert info["fileName"] == "未知文件"
        assert info["fileSize"] == "未知"
        assert info["fileType"] == "未知"

    def test_unsupported_provider(self, client: TestClient) -> None:
        resp = client.get("/json/baidu/abc")

        assert resp.status_code == 400
        assert resp.json()["msg"] == "unsupported provider: baidu"

    @pytest.mark.parametrize(
        ("exc", "status"),
        [
            (PasswordRequired("share is password protected", provider="lz"), 401),
            (UpstreamRejected("sign有误", provider="lz"), 502),
        ],
    )
    def test_error_status_mapping(self, resolver: MagicMock, exc: Exception, status: int) -> None:
        resolver.resolve.side_effect = exc
        client = TestClient(_make_app(resolver))

        resp = client.get("/json/lz/iAbC123xyz")

        assert resp.status_code == status
        body = resp.json()
        assert body["code"] == status
        assert body["data"] is None
        assert body["msg"] == str(exc)

    def test_timeout_maps_to_504(self, resolver: MagicMock, resolution_result: ResolutionResult) -> None:
        async def _slow(ref: ShareReference) -> ResolutionResult:
            await asyncio.sleep(1)
            return resolution_result

        resolver.resolve.side_effect = _slow
        client = TestClient(_make_app(resolver, AppConfig(resolve_timeout_seconds=0.01)))

        resp = client.get("/json/lz/iAbC123xyz")

        assert resp.status_code == 504
        assert resp.json()["msg"] == "resolution timed out"


class TestBatch:
    def test_mixed_outcomes(self, client: TestClient, resolver: MagicMock) -> None:
        resp = client.post(
            "/json/batch",
            json={
                "items": [
                    {"provider": "LZ", "share_id": "iAbC123xyz", "password": ""},
                    {"provider": "baidu", "share_id": "x"},
                ]
            },
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 2
        ok, failed = body["data"]
        assert ok["success"] is True
        assert ok["provider"] == "lz"
        assert ok["data"]["directLink"].startswith("https://cdn.example.com/")
        assert failed["success"] is False
        assert failed["error"]["code"] == 400
        resolver.resolve.assert_awaited_once_with(ShareReference("lz", "iAbC123xyz", None))

    @pytest.mark.parametrize(
        "payload",
        [
            {"items": []},
            {"items": [{"provider": "lz", "share_id": ""}]},
            {"items": [{"provider": "lz", "share_id": "x"}] * 51},
        ],
    )
    def test_invalid_body(self, client: TestClient, payload: dict) -> None:
        assert client.post("/json/batch", json=payload).status_code == 422


class TestDiscovery:
    def test_supported(self, client: TestClient) -> None:
        body = client.get("/supported").json()

        assert body["count"] == 1
        (profile,) = body["data"]["supportedPans"]
        assert profile == {
            "key": "lz",
            "name": "蓝奏云",
            "aliases": ["lanzou", "lz"],
            "domains": ["wwsd.lanzouw.com"],
            "description": "test provider",
        }

    def test_health(self, client: TestClient) -> None:
        assert client.get("/health").json() == {
            "status": "ok",
            "providers": ["lz"],
            "signing": False,
        }

    def test_health_before_wiring(self) -> None:
        client = TestClient(create_app(AppConfig()))
        assert client.get("/health").json()["providers"] == []
