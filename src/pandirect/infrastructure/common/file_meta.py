"""File metadata helpers shared by all share resolvers."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from urllib.parse import parse_qs, urlsplit

_TAG_RE = re.compile(r"<[^>]*>")
_SIZE_RE = re.compile(r"^([\d.]+)\s*([A-Za-z]+)?$")

_UNIT_ALIASES: dict[str, str] = {
    "B": "B",
    "BYTE": "B",
    "BYTES": "B",
    "K": "KB",
    "KB": "KB",
    "KIB": "KB",
    "M": "MB",
    "MB": "MB",
    "MIB": "MB",
    "G": "GB",
    "GB": "GB",
    "GIB": "GB",
    "T": "TB",
    "TB": "TB",
    "TIB": "TB",
}

# Largest first; first threshold <= value wins.
_MAGNITUDES: tuple[tuple[int, str], ...] = (
    (1024**3, "GB"),
    (1024**2, "MB"),
    (1024, "KB"),
    (1, "B"),
)

_FILE_TYPES: dict[str, str] = {
    "jpg": "图片文件",
    "jpeg": "图片文件",
    "png": "图片文件",
    "gif": "图片文件",
    "bmp": "图片文件",
    "webp": "图片文件",
    "svg": "图片文件",
    "mp4": "视频文件",
    "avi": "视频文件",
    "mkv": "视频文件",
    "mov": "视频文件",
    "wmv": "视频文件",
    "flv": "视频文件",
    "webm": "视频文件",
    "mp3": "音频文件",
    "wav": "音频文件",
    "flac": "音频文件",
    "aac": "音频文件",
    "ogg": "音频文件",
    "pdf": "PDF文档",
    "doc": "Word文档",
    "docx": "Word文档",
    "xls": "Excel表格",
    "xlsx": "Excel表格",
    "ppt": "PowerPoint演示",
    "pptx": "PowerPoint演示",
    "txt": "文本文件",
    "zip": "压缩文件",
    "rar": "压缩文件",
    "7z": "压缩文件",
    "tar": "压缩文件",
    "gz": "压缩文件",
    "exe": "可执行文件",
    "msi": "安装程序",
    "apk": "Android应用",
    "ipa": "iOS应用",
    "iso": "镜像文件",
    "dmg": "磁盘镜像",
    "deb": "Debian包",
    "rpm": "RPM包",
}

UNKNOWN_FILE_TYPE = "未知文件"


def strip_tags(text: str) -> str:
    """Remove HTML tags and surrounding whitespace."""
    return _TAG_RE.sub("", text).strip()


def _round_display(value: Decimal) -> str:
    """Round for display: >=1000 integer, >=100 one decimal, else two.

    Rounds half up and drops trailing zeros ("1.50" -> "1.5").
    """
    if value >= 1000:
        step = Decimal("1")
    elif value >= 100:
        step = Decimal("0.1")
    else:
        step = Decimal("0.01")
    rounded = value.quantize(step, rounding=ROUND_HALF_UP).normalize()
    return format(rounded, "f")


def _infer_unit(value: Decimal) -> tuple[Decimal, str]:
    for factor, unit in _MAGNITUDES:
        if value >= factor:
            return value / factor, unit
    return value, "B"


def normalize_file_size(raw: str | int | float | None) -> str:
    """Normalize a size string to the canonical ``"<number> <UNIT>"`` form.

    Units are alias-folded case-insensitively ("K", "kb", "KiB" -> "KB").
    Without a unit the value is taken as bytes and scaled to the largest
    fitting unit, so ``"1536"`` becomes ``"1.5 KB"``.

    Args:
        raw: Size as scraped from a page, or a byte count from an API.

    Returns:
        Canonical size string; the trimmed input if it cannot be parsed;
        an empty string for empty input.
    """
    if raw is None:
        return ""
    text = strip_tags(str(raw))
    if not text:
        return ""

    m = _SIZE_RE.match(text)
    if not m:
        return text

    try:
        value = Decimal(m.group(1))
    except InvalidOperation:
        return text

    unit_raw = m.group(2)
    if unit_raw:
        unit = _UNIT_ALIASES.get(unit_raw.upper(), unit_raw.upper())
    else:
        value, unit = _infer_unit(value)

    return f"{_round_display(value)} {unit}"


def format_byte_count(size: int | None) -> str:
    """Render a raw byte count (as returned by JSON APIs)."""
    if not size or size < 0:
        return ""
    return normalize_file_size(str(size))


def infer_file_type(file_name: str | None) -> str:
    """Map a file name's extension to a category label."""
    if not file_name or "." not in file_name:
        return UNKNOWN_FILE_TYPE
    ext = file_name.rsplit(".", 1)[1].lower()
    return _FILE_TYPES.get(ext, UNKNOWN_FILE_TYPE)


def filename_from_url(url: str, param: str) -> str | None:
    """Read one query parameter of *url*, percent-decoded once."""
    values = parse_qs(urlsplit(url).query).get(param)
    if not values or not values[0]:
        return None
    return values[0]
