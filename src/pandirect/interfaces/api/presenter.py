"""JSON envelope rendering for the parser API.

Every JSON response has the shape::

    {"code": 200, "msg": "success", "success": true, "count": 0,
     "data": {...}, "timestamp": 1718000000000}
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any

from pandirect.application.use_cases.resolve_share import BatchItem, ResolveResponse
from pandirect.domain.entities.share import ProviderProfile, ResolutionResult
from pandirect.domain.exceptions import ShareResolveError

_UNKNOWN_NAME = "未知文件"
_UNKNOWN = "未知"


def _now_ms() -> int:
    return int(time.time() * 1000)


def envelope(
    data: Any = None,
    *,
    code: int = 200,
    msg: str = "success",
    count: int = 0,
) -> dict[str, Any]:
    return {
        "code": code,
        "msg": msg,
        "success": code < 400,
        "count": count,
        "data": data,
        "timestamp": _now_ms(),
    }


def error_envelope(code: int, msg: str) -> dict[str, Any]:
    return envelope(None, code=code, msg=msg)


def render_file_info(result: ResolutionResult) -> dict[str, str]:
    return {
        "fileName": result.file_name or _UNKNOWN_NAME,
        "fileSize": result.file_size or _UNKNOWN,
        "fileType": result.file_type or _UNKNOWN,
        "uploadTime": result.upload_time,
        "uploader": result.uploader,
        "description": result.description,
    }


def render_resolution(response: ResolveResponse) -> dict[str, Any]:
    """Render one resolution as the ``data`` block of the envelope.

    ``expires`` is epoch milliseconds, ``expiration`` the same instant in
    ISO-8601 UTC; both are ``None`` for uncached results.
    """
    result = response.result
    expires: int | None = None
    expiration: str | None = None
    if response.expires_in is not None:
        expires = _now_ms() + int(response.expires_in * 1000)
        expiration = (
            datetime.fromtimestamp(expires / 1000, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z")
        )
    return {
        "shareKey": f"{result.provider}:{result.share_id}",
        "directLink": result.download_url,
        "cacheHit": response.cache_hit,
        "expires": expires,
        "expiration": expiration,
        "fileInfo": render_file_info(result),
    }


def render_batch_item(item: BatchItem) -> dict[str, Any]:
    out: dict[str, Any] = {
        "provider": item.ref.provider,
        "shareId": item.ref.share_id,
        "success": item.ok,
    }
    if item.response is not None:
        out["data"] = render_resolution(item.response)
    else:
        error = item.error or ShareResolveError("unknown error")
        out["error"] = {"code": error.http_status, "msg": error.message}
    return out


def render_profile(profile: ProviderProfile) -> dict[str, Any]:
    return {
        "key": profile.key,
        "name": profile.display_name,
        "aliases": sorted(profile.aliases),
        "domains": profile.domains,
        "description": profile.description,
    }
