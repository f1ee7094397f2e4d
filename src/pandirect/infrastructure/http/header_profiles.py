"""Named outbound header bundles per provider and pipeline step.

The same site expects a different header shape for its document fetch
than for its XHR/API calls, so a profile is addressed by
``(provider, step)``. Steps used here:

    share   top-level document navigation
    iframe  nested document inside the share page
    api     XHR / fetch call from page scripts

Unknown combinations fall back to the base browser headers.
"""

from __future__ import annotations

from typing import Mapping

_EDGE_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/137.0.0.0 Safari/537.36 Edg/137.0.0.0"
)
_EDGE_SEC_CH_UA = '"Microsoft Edge";v="137", "Chromium";v="137", "Not/A)Brand";v="24"'

_CHROME_WIN_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
_CHROME_SEC_CH_UA = '"Google Chrome";v="131", "Chromium";v="131", "Not_A Brand";v="24"'

_ACCEPT_LANGUAGE = "zh-CN,zh;q=0.9,en;q=0.8,en-GB;q=0.7,en-US;q=0.6"

# httpx decodes gzip/deflate natively; br/zstd need optional extras.
_ACCEPT_ENCODING = "gzip, deflate"

BASE_HEADERS: dict[str, str] = {
    "accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
        "image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
    ),
    "accept-language": _ACCEPT_LANGUAGE,
    "accept-encoding": _ACCEPT_ENCODING,
    "cache-control": "no-cache",
    "dnt": "1",
    "pragma": "no-cache",
    "sec-ch-ua": _EDGE_SEC_CH_UA,
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"macOS"',
    "sec-fetch-dest": "document",
    "sec-fetch-mode": "navigate",
    "sec-fetch-site": "none",
    "sec-fetch-user": "?1",
    "upgrade-insecure-requests": "1",
    "user-agent": _EDGE_UA,
}

BASE_COOKIES: dict[str, str] = {
    "codelen": "1",
    "pc_ad1": "1",
}

# Steps that navigate a document carry the base cookies.
_COOKIE_STEPS = frozenset({"share", "iframe"})

_XHR_HEADERS: dict[str, str] = {
    "accept": "application/json, text/javascript, */*",
    "accept-language": _ACCEPT_LANGUAGE,
    "accept-encoding": _ACCEPT_ENCODING,
    "sec-ch-ua": _EDGE_SEC_CH_UA,
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"macOS"',
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-origin",
    "user-agent": _EDGE_UA,
    "x-requested-with": "XMLHttpRequest",
}

_SIGNED_API_HEADERS: dict[str, str] = {
    "accept": "application/json, text/plain, */*",
    "accept-encoding": _ACCEPT_ENCODING,
    "accept-language": "zh-CN,zh;q=0.9,en;q=0.8",
    "cache-control": "no-cache",
    "dnt": "1",
    "pragma": "no-cache",
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "cross-site",
    "user-agent": _CHROME_WIN_UA,
    "sec-ch-ua": _CHROME_SEC_CH_UA,
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
}

_SHARE_DOCUMENT: dict[str, str] = {
    **BASE_HEADERS,
    "sec-fetch-dest": "document",
    "sec-fetch-mode": "navigate",
    "sec-fetch-site": "none",
}

PROFILES: dict[tuple[str, str], dict[str, str]] = {
    ("lz", "share"): {**_SHARE_DOCUMENT, "sec-fetch-user": "?1"},
    ("lz", "iframe"): {
        **BASE_HEADERS,
        "sec-fetch-dest": "iframe",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "same-origin",
    },
    ("lz", "api"): {
        **_XHR_HEADERS,
        "content-type": "application/x-www-form-urlencoded",
        "referrer-policy": "strict-origin-when-cross-origin",
    },
    ("cow", "share"): _SHARE_DOCUMENT,
    ("cow", "api"): {**_XHR_HEADERS, "content-type": "application/json"},
    ("pan123", "share"): _SHARE_DOCUMENT,
    ("pan123", "api"): {**_XHR_HEADERS, "content-type": "application/json"},
    ("fj", "api"): {**_SIGNED_API_HEADERS, "referer": "https://www.feijix.com/"},
    ("iz", "api"): {**_SIGNED_API_HEADERS, "referer": "https://www.ilanzou.com/"},
    ("le", "api"): {
        **_XHR_HEADERS,
        "content-type": "application/json",
        "origin": "https://lecloud.lenovo.com",
        "referer": "https://lecloud.lenovo.com/",
    },
}


def _cookie_header(cookies: Mapping[str, str]) -> str:
    return "; ".join(f"{k}={v}" for k, v in cookies.items())


def build_headers(
    provider: str,
    step: str,
    *,
    referer: str | None = None,
    extra: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Return the header bundle for *provider*/*step* with overrides applied.

    Layering (later wins): profile, base cookies for document steps,
    *extra*, *referer*.
    """
    headers = dict(PROFILES.get((provider, step), BASE_HEADERS))
    if step in _COOKIE_STEPS:
        headers["cookie"] = _cookie_header(BASE_COOKIES)
    if extra:
        headers.update({k.lower(): v for k, v in extra.items()})
    if referer:
        headers["referer"] = referer
    return headers
