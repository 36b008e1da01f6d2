from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from buildkit.errors import InvalidFilterError
from buildkit.patterns import compile_filter, matches_any

FilterMode = Literal["exclude", "include_only"]

# Hidden files at the package root and at any depth below it.
HIDDEN_FILE_FILTERS: tuple[str, ...] = (".**", "**/.**")


def _clean(raw: Iterable[str] | str | None, *, label: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        raise InvalidFilterError(
            f"{label} must be a string or a list of strings (type={type(raw).__name__})"
        )
    cleaned: list[str] = []
    for idx, item in enumerate(raw):
        if not item:
            continue
        if not isinstance(item, str):
            raise InvalidFilterError(
                f"{label}[{idx}] must be a string (type={type(item).__name__})"
            )
        if item.strip():
            cleaned.append(item.strip())
    return tuple(cleaned)


@dataclass(frozen=True)
class FilterSet:
    """Compiled inclusion policy for relative package paths.

    In `include_only` mode only the include patterns are consulted, and an empty
    include list admits nothing. In `exclude` mode a path is admitted unless it
    matches an exclude pattern or the implicit hidden-file patterns.
    """

    mode: FilterMode
    sources: tuple[str, ...]
    patterns: tuple[re.Pattern[str], ...]

    @classmethod
    def build(
        cls,
        exclude: Iterable[str] | str | None = None,
        include_only: Iterable[str] | str | None = None,
    ) -> "FilterSet":
        if include_only is not None:
            sources = _clean(include_only, label="include_only")
            return cls(
                mode="include_only",
                sources=sources,
                patterns=tuple(compile_filter(item) for item in sources),
            )

        sources = _clean(exclude, label="ignore") + HIDDEN_FILE_FILTERS
        return cls(
            mode="exclude",
            sources=sources,
            patterns=tuple(compile_filter(item) for item in sources),
        )

    def should_include(self, relative_path: str) -> bool:
        if self.mode == "include_only":
            return matches_any(relative_path, self.patterns)
        return not matches_any(relative_path, self.patterns)
