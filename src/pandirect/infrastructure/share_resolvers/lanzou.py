"""Lanzou (蓝奏云) share resolver - page scrape plus script-derived signature.

Share URLs come on many mirror domains:
    https://{sub}.lanzou{x}.com/{key}
    https://{sub}.lanzn.com/{key}
All mirrors are fetched through one canonical host (``SHARE_URL_PREFIX``).

Flow:
    1. GET {prefix}/{key}              share page, metadata + ``var fid``
    2a. plain share:     page embeds <iframe src="/fn?...">
        GET {prefix}/fn?...            page whose script holds the sign
    2b. encrypted share: no iframe, script on the share page itself;
        a password is required
    3. POST {prefix}/ajaxm.php?file={fid}
        action=downprocess&sign=...    -> {"zt":1,"dom":...,"url":...}
    4. GET {dom}/file/{url} (no redirects) -> Location = direct link
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from pandirect.domain.entities.share import (
    ProviderProfile,
    ResolutionResult,
    ShareReference,
)
from pandirect.domain.exceptions import (
    DownloadUnavailable,
    InvalidShareReference,
    PasswordIncorrect,
    PasswordRequired,
    ScrapeFailed,
    SignatureExtractionFailed,
    UpstreamRejected,
)
from pandirect.infrastructure.common.file_meta import (
    filename_from_url,
    infer_file_type,
    normalize_file_size,
)
from pandirect.infrastructure.common.retry import RetryPolicy
from pandirect.infrastructure.http.fetch_client import FetchClient, HeaderProfile
from pandirect.infrastructure.share_resolvers._extract import cascade, first_match
from pandirect.infrastructure.share_resolvers._redirect import probe_location

log = structlog.get_logger(__name__)

SHARE_URL_PREFIX = "https://wwsd.lanzouw.com"

_URL_RE = re.compile(
    r"https://(?:[a-zA-Z\d-]+\.)?(?:lanzou[a-z]|lanzn)\.com/(?:.+/)?(?P<key>[^/?#]+)",
    re.IGNORECASE,
)

PROFILE = ProviderProfile(
    key="lz",
    display_name="蓝奏云",
    url_pattern=_URL_RE,
    base_urls=(SHARE_URL_PREFIX,),
    aliases=frozenset({"lanzou", "lz"}),
    header_profiles=("share", "iframe", "api"),
    default_ttl_seconds=1800,
    description="Plain and password-protected shares, single files up to 100 MB",
)

_SHARE = HeaderProfile("lz", "share")
_IFRAME = HeaderProfile("lz", "iframe")
_API = HeaderProfile("lz", "api")

# Body fragments served instead of a share page.
_FAILURE_MARKERS = (
    "文件取消分享了",
    "来晚啦",
    "acw_sc__v2",
)

_FID_RE = re.compile(r"var\s+fid\s*=\s*(\d+)")
_IFRAME_RE = re.compile(r'src="(/fn\?[a-zA-Z\d_+/=]{16,})"')

# ---------------------------------------------------------------------------
# Metadata cascades (first non-empty match wins)
# ---------------------------------------------------------------------------

_NAME = cascade(
    r"<title>([^<]+?)\s*-\s*蓝奏云</title>",
    r'<div[^>]*style="[^"]*font-size:\s*30px[^"]*"[^>]*>([^<]+)</div>',
)
_SIZE = cascade(
    r'<meta[^>]*name="description"[^>]*content="[^"]*文件大小：([^"|]+)[^"]*"[^>]*>',
    r'<div[^>]*class="n_filesize"[^>]*>大小：([^<]+)</div>',
    r"<span[^>]*>文件大小：</span>([^<>\s]+(?:\s*[A-Za-z]+)?)",
)
_UPLOAD_TIME = cascade(
    r'<span[^>]*class="n_file_infos"[^>]*>(\d{4}-\d{2}-\d{2})</span>',
    r"<span[^>]*>上传时间：</span>([^<>\n\r]+)",
)
_UPLOADER = cascade(
    r"<span[^>]*>分享用户：</span><font>([^<]+)</font>",
)
_FILE_TYPE = cascade(
    r'<span[^>]*class="n_file_infos"[^>]*>([^<]+(?:文件|系统|软件|应用))</span>',
    r"<span[^>]*>运行系统：</span>([^<>\n\r]+)",
)
_DESCRIPTION = cascade(
    r"<span[^>]*>文件描述：</span><br>\s*([^<]+)",
)

# ---------------------------------------------------------------------------
# Script cascades
# ---------------------------------------------------------------------------

_SCRIPT_RES = (
    re.compile(r'<script type="text/javascript">([\s\S]*?)</script>'),
    re.compile(r"<script>([\s\S]*?)</script>"),
    re.compile(r'<script type="text/javascript"[\s\S]*?>([\s\S]*?)</script>'),
)
_SCRIPT_KEYWORD_RE = re.compile(
    r"<script[^>]*>([\s\S]*?(?:sign|url|down_p|wp_sign)[\s\S]*?)</script>",
    re.IGNORECASE,
)
_HTML_COMMENT_RE = re.compile(r"<!--.*?-->")
_MIN_SCRIPT_LEN = 50

SIGN_SUFFIX = "_c_c"

_SIGN = cascade(
    r"""sign\s*:\s*['"]([a-zA-Z0-9_+/=]+_c_c)['"]""",
    r"""data\s*:\s*\{[^}]*'sign'\s*:\s*['"]([a-zA-Z0-9_+/=]+_c_c)['"]""",
    r"""data\s*:\s*\{[^}]*"sign"\s*:\s*['"]([a-zA-Z0-9_+/=]+_c_c)['"]""",
    r"""sign\s*:\s*['"]([^'"]+)['"]""",
    r"""data\s*:\s*\{[^}]*'sign'\s*:\s*['"]([^'"]+)['"]""",
    r"""data\s*:\s*\{[^}]*"sign"\s*:\s*['"]([^'"]+)['"]""",
    r"""wp_sign\s*=\s*['"]([^'"]+)['"]""",
    r"""sign['"]?\s*:\s*['"]([^'"]+)['"]""",
)
_SIGN_KEY = cascade(
    r"""ajaxdata\s*=\s*['"]([^'"]+)['"]""",
    r"""websignkey\s*=\s*['"]([^'"]+)['"]""",
)
_AJAX_URL = cascade(
    r"""url\s*:\s*['"]([^'"]+)['"]""",
    r"""url\s*=\s*['"]([^'"]+)['"]""",
)
_SCRIPT_FILE_ID = cascade(
    r"ajaxm\.php\?file=(\d+)",
    r"file=(\d+)",
)
_KD = cascade(
    r"kdns\s*=\s*(\d+)",
    r"kd\s*:\s*(\d+)",
)

_QUOTED_TOKEN_RE = re.compile(r"""['"]([a-zA-Z0-9_+/=]{20,})['"]""")
_TOKEN_MIN, _TOKEN_MAX = 20, 200
_TOKEN_EXCLUDES = ("http", ".com", ".php")


@dataclass(frozen=True)
class LanzouFileInfo:
    """Metadata scraped from a share page."""

    file_name: str = ""
    file_size: str = ""
    file_type: str = ""
    upload_time: str = ""
    uploader: str = ""
    description: str = ""


@dataclass(frozen=True)
class ScriptParams:
    """Values the download endpoint expects, lifted from the page script."""

    sign: str
    url: str = "/ajaxm.php"
    file_id: str | None = None
    websignkey: str = ""
    kd: int = 1


def extract_share_id(url: str) -> str | None:
    """Extract the share key from any Lanzou mirror URL."""
    return PROFILE.match(url)


def check_share_page(html: str) -> None:
    """Raise ``ScrapeFailed`` for empty bodies and known failure pages."""
    if not html or not html.strip():
        raise ScrapeFailed("empty share page", provider=PROFILE.key)
    for marker in _FAILURE_MARKERS:
        if marker in html:
            raise ScrapeFailed(f"share page unavailable ({marker})", provider=PROFILE.key)


def extract_file_info(html: str) -> LanzouFileInfo:
    """Run every metadata cascade against a share page."""
    raw_size = first_match(html, _SIZE)
    return LanzouFileInfo(
        file_name=first_match(html, _NAME) or "",
        file_size=normalize_file_size(raw_size) if raw_size else "",
        file_type=first_match(html, _FILE_TYPE) or "",
        upload_time=first_match(html, _UPLOAD_TIME) or "",
        uploader=first_match(html, _UPLOADER) or "",
        description=first_match(html, _DESCRIPTION) or "",
    )


def extract_page_fid(html: str) -> str | None:
    m = _FID_RE.search(html)
    return m.group(1) if m else None


def extract_iframe_path(html: str) -> str | None:
    m = _IFRAME_RE.search(html)
    return m.group(1) if m else None


def extract_script(html: str) -> str | None:
    """Return the first inline script long enough to carry the sign."""
    for pattern in _SCRIPT_RES:
        for m in pattern.finditer(html):
            text = _HTML_COMMENT_RE.sub("", m.group(1)).strip()
            if len(text) > _MIN_SCRIPT_LEN:
                return text
    m = _SCRIPT_KEYWORD_RE.search(html)
    if m:
        text = _HTML_COMMENT_RE.sub("", m.group(1)).strip()
        return text or None
    return None


def _fallback_sign(script: str) -> str | None:
    """Pick the most plausible bare token when no named sign field matched."""
    candidates = [
        token
        for token in _QUOTED_TOKEN_RE.findall(script)
        if _TOKEN_MIN <= len(token) <= _TOKEN_MAX
        and not any(bad in token for bad in _TOKEN_EXCLUDES)
    ]
    if not candidates:
        return None
    suffixed = [c for c in candidates if c.endswith(SIGN_SUFFIX)]
    return max(suffixed or candidates, key=len)


def parse_script(script: str) -> ScriptParams:
    """Extract sign, sign key, kd flag and file id from a page script.

    Raises:
        SignatureExtractionFailed: if neither a named sign field nor any
            plausible quoted token is present.
    """
    sign = first_match(script, _SIGN)
    if not sign:
        sign = _fallback_sign(script)
        if sign:
            log.debug("lanzou_sign_fallback_used", length=len(sign))
    if not sign:
        raise SignatureExtractionFailed("no sign found in page script", provider=PROFILE.key)

    kd = first_match(script, _KD)
    return ScriptParams(
        sign=sign,
        url=first_match(script, _AJAX_URL) or "/ajaxm.php",
        file_id=first_match(script, _SCRIPT_FILE_ID),
        websignkey=first_match(script, _SIGN_KEY) or "",
        kd=int(kd) if kd else 1,
    )


def build_download_form(params: ScriptParams, password: str | None) -> dict[str, str]:
    """Form body for ``ajaxm.php``; ``ves`` only without a password."""
    form = {"action": "downprocess", "sign": params.sign}
    if not password:
        form["ves"] = "1"
    if params.websignkey:
        form["websignkey"] = params.websignkey
        form["signs"] = params.websignkey
    if params.kd:
        form["kd"] = str(params.kd)
    if password:
        form["p"] = password
    return form


class LanzouResolver:
    """Resolves Lanzou shares (plain and password-protected)."""

    def __init__(
        self,
        fetch: FetchClient,
        retry: RetryPolicy,
        *,
        share_url_prefix: str = SHARE_URL_PREFIX,
    ) -> None:
        self._fetch = fetch
        self._retry = retry
        self._prefix = share_url_prefix.rstrip("/")

    @property
    def name(self) -> str:
        return PROFILE.key

    @property
    def profile(self) -> ProviderProfile:
        return PROFILE

    def validate(self, url: str) -> str | None:
        return extract_share_id(url)

    async def _get_page(self, url: str, profile: HeaderProfile, referer: str) -> str:
        resp = await self._retry.execute(
            lambda: self._fetch.get(url, profile, referer=referer),
            label=f"lz_{profile.step}",
        )
        if resp.status_code == 404:
            raise InvalidShareReference(f"share not found: {url}", provider=PROFILE.key)
        if resp.status_code >= 400:
            raise ScrapeFailed(f"HTTP {resp.status_code} for {url}", provider=PROFILE.key)
        return resp.text

    def _api_url(self, params: ScriptParams, file_id: str | None) -> str:
        if file_id:
            return f"{self._prefix}/ajaxm.php?file={file_id}"
        if params.url.startswith("/ajaxm.php"):
            return self._prefix + params.url
        return f"{self._prefix}/ajaxm.php"

    async def _request_download(
        self,
        share_url: str,
        params: ScriptParams,
        file_id: str | None,
        password: str | None,
    ) -> str:
        api_url = self._api_url(params, file_id)
        form = build_download_form(params, password)
        payload = await self._retry.execute(
            lambda: self._fetch.post_json(api_url, _API, data=form, referer=share_url),
            label="lz_ajaxm",
        )
        if not isinstance(payload, dict):
            raise UpstreamRejected("unexpected ajaxm response", provider=PROFILE.key)

        if payload.get("zt") not in (1, "1"):
            message = str(payload.get("inf") or "download request rejected")
            log.info("lanzou_download_rejected", message=message)
            if password and "密码" in message:
                raise PasswordIncorrect(message, provider=PROFILE.key)
            raise UpstreamRejected(message, provider=PROFILE.key)

        dom, path = payload.get("dom"), payload.get("url")
        if not dom or not path:
            raise DownloadUnavailable("ajaxm response without dom/url", provider=PROFILE.key)
        return f"{str(dom).rstrip('/')}/file/{path}"

    async def resolve(self, ref: ShareReference) -> ResolutionResult:
        share_url = f"{self._prefix}/{ref.share_id}"
        html = await self._get_page(share_url, _SHARE, share_url)
        check_share_page(html)

        info = extract_file_info(html)
        page_fid = extract_page_fid(html)
        iframe_path = extract_iframe_path(html)

        if iframe_path is None:
            # No iframe: encrypted share, sign lives on the share page.
            if not ref.password:
                raise PasswordRequired("this share requires a password", provider=PROFILE.key)
            script = extract_script(html)
            if not script:
                raise ScrapeFailed("no script on encrypted share page", provider=PROFILE.key)
            params = parse_script(script)
            file_id = params.file_id or page_fid
            password: str | None = ref.password
        else:
            iframe_url = self._prefix + iframe_path
            frame_html = await self._get_page(iframe_url, _IFRAME, share_url)
            script = extract_script(frame_html)
            if not script:
                raise ScrapeFailed("no script in download frame", provider=PROFILE.key)
            params = parse_script(script)
            file_id = page_fid or params.file_id or extract_page_fid(frame_html)
            password = None

        log.debug(
            "lanzou_script_parsed",
            share_id=ref.share_id,
            encrypted=iframe_path is None,
            file_id=file_id,
        )

        intermediate = await self._request_download(share_url, params, file_id, password)
        final_url = await probe_location(
            self._fetch, self._retry, intermediate, _SHARE, referer=share_url
        )

        file_name = info.file_name or filename_from_url(final_url, "fn") or ""
        file_type = info.file_type or (infer_file_type(file_name) if file_name else "")

        return ResolutionResult(
            provider=PROFILE.key,
            share_id=ref.share_id,
            download_url=final_url,
            file_name=file_name,
            file_size=info.file_size,
            file_type=file_type,
            upload_time=info.upload_time,
            uploader=info.uploader,
            description=info.description,
        )
