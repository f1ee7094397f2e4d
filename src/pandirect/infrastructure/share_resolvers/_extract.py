"""Ordered extractor cascades for scraped pages.

A cascade is a tuple of pure ``text -> str | None`` functions evaluated
in order; the first non-empty result wins.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from pandirect.infrastructure.common.file_meta import strip_tags

Extractor = Callable[[str], "str | None"]


def regex_extractor(pattern: str | re.Pattern[str], group: int | str = 1) -> Extractor:
    """Build an extractor returning *group* of the first match, tag-stripped."""
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern

    def _extract(text: str) -> str | None:
        m = compiled.search(text)
        if not m:
            return None
        value = strip_tags(m.group(group) or "")
        return value or None

    return _extract


def first_match(text: str, cascade: Sequence[Extractor]) -> str | None:
    """Run *cascade* against *text* and return the first non-empty value."""
    for extractor in cascade:
        value = extractor(text)
        if value:
            return value
    return None


def cascade(*patterns: str | re.Pattern[str]) -> tuple[Extractor, ...]:
    """Shorthand for a cascade of group-1 regex extractors."""
    return tuple(regex_extractor(p) for p in patterns)
