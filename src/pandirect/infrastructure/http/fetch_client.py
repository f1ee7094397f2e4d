"""Outbound HTTP for share resolvers.

Thin wrapper over ``httpx.AsyncClient`` that:

- applies a named header profile per request (see ``header_profiles``),
- lets callers disable redirect-following to observe ``Location``,
- maps network failures and upstream 5xx to ``TransientNetworkError``
  so ``RetryPolicy`` can tell them apart from terminal errors.

TLS verification is off by default: several upstream hosts serve
incomplete or self-signed chains.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import httpx
import structlog

from pandirect.domain.exceptions import TransientNetworkError, UpstreamRejected
from pandirect.infrastructure.http.header_profiles import build_headers

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HeaderProfile:
    """Address of a header bundle: provider key plus pipeline step."""

    provider: str
    step: str


class FetchClient:
    """Profile-aware HTTP client used by every resolver."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client

    @classmethod
    def create(
        cls,
        *,
        timeout_seconds: float = 30.0,
        verify_tls: bool = False,
    ) -> FetchClient:
        """Build a client with its own ``httpx.AsyncClient``."""
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            verify=verify_tls,
            follow_redirects=True,
        )
        return cls(client)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _send(
        self,
        method: str,
        url: str,
        profile: HeaderProfile,
        *,
        referer: str | None,
        follow_redirects: bool,
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        headers = build_headers(profile.provider, profile.step, referer=referer)
        try:
            resp = await self._http.request(
                method,
                url,
                headers=headers,
                params=params,
                data=data,
                json=json,
                follow_redirects=follow_redirects,
            )
        except httpx.TimeoutException as exc:
            log.warning(
                "fetch_timeout", provider=profile.provider, step=profile.step, url=url
            )
            raise TransientNetworkError(
                f"timeout requesting {url}", provider=profile.provider
            ) from exc
        except httpx.TransportError as exc:
            log.warning(
                "fetch_transport_error",
                provider=profile.provider,
                step=profile.step,
                url=url,
                error=str(exc),
            )
            raise TransientNetworkError(
                f"network error requesting {url}: {exc}", provider=profile.provider
            ) from exc

        log.debug(
            "fetch_response",
            method=method,
            provider=profile.provider,
            step=profile.step,
            url=url,
            status=resp.status_code,
        )

        if resp.status_code >= 500:
            raise TransientNetworkError(
                f"HTTP {resp.status_code} from {url}", provider=profile.provider
            )
        return resp

    async def get(
        self,
        url: str,
        profile: HeaderProfile,
        *,
        referer: str | None = None,
        follow_redirects: bool = True,
        params: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        """GET *url*. Pass ``follow_redirects=False`` to read ``Location``."""
        return await self._send(
            "GET",
            url,
            profile,
            referer=referer,
            follow_redirects=follow_redirects,
            params=params,
        )

    async def post(
        self,
        url: str,
        profile: HeaderProfile,
        *,
        data: Mapping[str, Any] | None = None,
        json: Any = None,
        referer: str | None = None,
    ) -> httpx.Response:
        """POST a form (*data*) or JSON (*json*) body."""
        return await self._send(
            "POST",
            url,
            profile,
            referer=referer,
            follow_redirects=True,
            data=data,
            json=json,
        )

    async def get_json(
        self,
        url: str,
        profile: HeaderProfile,
        *,
        referer: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        resp = await self.get(url, profile, referer=referer, params=params)
        return decode_json(resp, profile.provider)

    async def post_json(
        self,
        url: str,
        profile: HeaderProfile,
        *,
        data: Mapping[str, Any] | None = None,
        json: Any = None,
        referer: str | None = None,
    ) -> Any:
        resp = await self.post(url, profile, data=data, json=json, referer=referer)
        return decode_json(resp, profile.provider)


def decode_json(resp: httpx.Response, provider: str) -> Any:
    """Parse a response body as JSON regardless of its content-type."""
    try:
        return resp.json()
    except ValueError as exc:
        raise UpstreamRejected(
            f"non-JSON response from {resp.request.url} (HTTP {resp.status_code})",
            provider=provider,
        ) from exc
