"""Glob-like filter compilation.

Filters use two wildcard tokens over relative, `/`-separated paths:

- `*` matches a run of letters, digits, whitespace, dots, underscores and hyphens
  (never a path separator).
- `**` matches the same characters plus path separators.

Everything else matches literally. Matching is case-insensitive and anchored.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from buildkit.errors import InvalidFilterError

SEGMENT_CLASS = r"[a-z_\-\s0-9.]*"
DEEP_CLASS = r"[a-z_\-\s0-9./\\]*"


def _translate(text: str) -> str:
    parts: list[str] = []
    # `**` must be split out first so its halves are never read as two `*`.
    for deep_idx, deep_chunk in enumerate(text.split("**")):
        if deep_idx:
            parts.append(DEEP_CLASS)
        for star_idx, literal in enumerate(deep_chunk.split("*")):
            if star_idx:
                parts.append(SEGMENT_CLASS)
            parts.append(re.escape(literal))
    return "".join(parts)


def compile_filter(filter_string: str) -> re.Pattern[str]:
    """Compile a filter string into an anchored, case-insensitive matcher."""

    if not isinstance(filter_string, str):
        raise InvalidFilterError(
            f"Filter must be a string (type={type(filter_string).__name__})"
        )
    text = filter_string.strip()
    if not text:
        raise InvalidFilterError("Filter cannot be empty")
    if text.endswith("/"):
        text = text + "**"
    return re.compile("^" + _translate(text) + "$", re.IGNORECASE)


def compile_filters(filter_strings: Iterable[str]) -> tuple[re.Pattern[str], ...]:
    return tuple(compile_filter(item) for item in filter_strings)


def matches_any(path: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    for pattern in patterns:
        if pattern.match(path):
            return True
    return False
