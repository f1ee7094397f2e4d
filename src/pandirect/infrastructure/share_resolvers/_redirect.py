"""Final-URL discovery shared by all resolver families.

Two shapes exist upstream:

- a plain 302 whose ``Location`` header is the CDN URL (``probe_location``),
- double indirection, where the download URL carries a base64-encoded
  secondary API URL in its ``params`` query parameter; that API answers
  with JSON holding the next URL in ``redirect_url`` (``follow_indirection``).
"""

from __future__ import annotations

import base64
import binascii
from typing import Any
from urllib.parse import parse_qs, urljoin, urlsplit

import structlog

from pandirect.domain.exceptions import DownloadUnavailable
from pandirect.infrastructure.common.retry import RetryPolicy
from pandirect.infrastructure.http.fetch_client import FetchClient, HeaderProfile

log = structlog.get_logger(__name__)

INDIRECTION_PARAM = "params"
_MAX_STAGES = 2


async def probe_location(
    fetch: FetchClient,
    retry: RetryPolicy,
    url: str,
    profile: HeaderProfile,
    *,
    referer: str | None = None,
    required: bool = True,
) -> str:
    """GET *url* without following redirects and return the absolute ``Location``.

    When *required* is false, a response without ``Location`` means *url*
    is already final and it is returned unchanged.
    """
    resp = await retry.execute(
        lambda: fetch.get(url, profile, referer=referer, follow_redirects=False),
        label=f"{profile.provider}_redirect",
    )
    location = resp.headers.get("location")
    if not location:
        if not required:
            return url
        log.warning(
            "redirect_location_missing",
            provider=profile.provider,
            status=resp.status_code,
        )
        raise DownloadUnavailable(
            f"no redirect target (HTTP {resp.status_code})",
            provider=profile.provider,
        )
    return urljoin(url, location)


def decode_indirection(url: str) -> str | None:
    """Return the secondary URL encoded in *url*'s ``params``, if any.

    Accepts standard and urlsafe base64, with or without padding.
    """
    values = parse_qs(urlsplit(url).query).get(INDIRECTION_PARAM)
    if not values or not values[0]:
        return None
    # parse_qs turns "+" into a space.
    encoded = values[0].replace(" ", "+")
    encoded += "=" * (-len(encoded) % 4)
    try:
        decoded = base64.urlsafe_b64decode(encoded).decode("utf-8").strip()
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None
    parts = urlsplit(decoded)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return decoded


def _redirect_field(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if isinstance(data, dict) and data.get("redirect_url"):
        return str(data["redirect_url"])
    if payload.get("redirect_url"):
        return str(payload["redirect_url"])
    return None


async def follow_indirection(
    fetch: FetchClient,
    retry: RetryPolicy,
    url: str,
    profile: HeaderProfile,
    *,
    referer: str | None = None,
) -> str:
    """Unwrap up to two levels of base64 indirection.

    A URL without the ``params`` query parameter is already final.
    """
    current = url
    for stage in range(1, _MAX_STAGES + 1):
        secondary = decode_indirection(current)
        if secondary is None:
            return current
        log.debug("indirection_stage", provider=profile.provider, stage=stage)
        payload = await retry.execute(
            lambda: fetch.get_json(secondary, profile, referer=referer),
            label=f"{profile.provider}_indirection",
        )
        target = _redirect_field(payload)
        if not target:
            raise DownloadUnavailable(
                f"indirection stage {stage} returned no redirect_url",
                provider=profile.provider,
            )
        current = urljoin(secondary, target)
    return current
