"""Tests for file metadata helpers."""

from __future__ import annotations

import pytest

from pandirect.infrastructure.common.file_meta import (
    UNKNOWN_FILE_TYPE,
    filename_from_url,
    format_byte_count,
    infer_file_type,
    normalize_file_size,
    strip_tags,
)


class TestNormalizeFileSize:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("920.1 K", "920.1 KB"),
            ("1536", "1.5 KB"),
            ("2.5m", "2.5 MB"),
            ("1 GiB", "1 GB"),
            ("512 bytes", "512 B"),
            ("12.345 MB", "12.35 MB"),
            ("123.45 KB", "123.5 KB"),
            ("1234.5 KB", "1235 KB"),
            ("1.50 MB", "1.5 MB"),
            ("3221225472", "3 GB"),
            ("100", "100 B"),
        ],
    )
    def test_canonical_forms(self, raw: str, expected: str) -> None:
        assert normalize_file_size(raw) == expected

    def test_tags_stripped(self) -> None:
        assert normalize_file_size("<b>920.1 K</b>") == "920.1 KB"

    def test_empty_input(self) -> None:
        assert normalize_file_size("") == ""
        assert normalize_file_size("   ") == ""
        assert normalize_file_size(None) == ""

    def test_unparseable_returned_trimmed(self) -> None:
        assert normalize_file_size("  about 3 MB  ") == "about 3 MB"

    def test_unknown_unit_uppercased(self) -> None:
        assert normalize_file_size("5 pb") == "5 PB"


class TestFormatByteCount:
    def test_scales(self) -> None:
        assert format_byte_count(1536) == "1.5 KB"
        assert format_byte_count(1048576) == "1 MB"

    @pytest.mark.parametrize("size", [None, 0, -1])
    def test_empty_for_missing(self, size: int | None) -> None:
        assert format_byte_count(size) == ""


class TestInferFileType:
    @pytest.mark.parametrize(
        ("name", "label"),
        [
            ("w.zip", "压缩文件"),
            ("movie.MKV", "视频文件"),
            ("app.apk", "Android应用"),
            ("report.pdf", "PDF文档"),
        ],
    )
    def test_known_extensions(self, name: str, label: str) -> None:
        assert infer_file_type(name) == label

    @pytest.mark.parametrize("name", ["README", "data.xyz", "", None])
    def test_unknown(self, name: str | None) -> None:
        assert infer_file_type(name) == UNKNOWN_FILE_TYPE


class TestFilenameFromUrl:
    def test_percent_decoded(self) -> None:
        url = "https://cdn.example.com/f?fn=%E6%B5%8B%E8%AF%95.zip&x=1"
        assert filename_from_url(url, "fn") == "测试.zip"

    def test_decoded_only_once(self) -> None:
        url = "https://cdn.example.com/f?fn=100%2525.zip"
        assert filename_from_url(url, "fn") == "100%25.zip"

    def test_missing_param(self) -> None:
        assert filename_from_url("https://cdn.example.com/f?x=1", "fn") is None

    def test_empty_param(self) -> None:
        assert filename_from_url("https://cdn.example.com/f?fn=", "fn") is None


def test_strip_tags() -> None:
    assert strip_tags("  <span>a<b>b</b></span> ") == "ab"
