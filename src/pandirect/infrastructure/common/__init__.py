"""Common infrastructure utilities."""

from __future__ import annotations

from .file_meta import (
    filename_from_url,
    format_byte_count,
    infer_file_type,
    normalize_file_size,
    strip_tags,
)
from .retry import RetryPolicy

__all__ = [
    "RetryPolicy",
    "filename_from_url",
    "format_byte_count",
    "infer_file_type",
    "normalize_file_size",
    "strip_tags",
]
