"""Strict option parsing with consumed-keys enforcement."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable

from buildkit.errors import ValidationError

_MISSING = object()


def _join_path(parent: str, key: str) -> str:
    if not parent:
        return key
    return f"{parent}.{key}"


@dataclass
class ConfigNamespace:
    """Typed accessors over a mapping; unknown keys fail once parsing is done."""

    data: Mapping[str, Any]
    path: str
    _consumed: set[str] = field(default_factory=set, init=False, repr=False)
    _effective: dict[str, Any] = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def empty(cls, *, path: str) -> "ConfigNamespace":
        return cls({}, path=path)

    def consumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(self._consumed))

    def unconsumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(str(k) for k in self.data.keys() if k not in self._consumed))

    def assert_consumed(self) -> None:
        unknown = list(self.unconsumed_keys())
        if unknown:
            path = self.path or "<root>"
            consumed = ", ".join(self.consumed_keys()) or "<none>"
            raise ValidationError(
                f"Unknown option keys under {path}: {', '.join(unknown)} (consumed: {consumed})"
            )

    def effective_values(self) -> dict[str, Any]:
        return dict(self._effective)

    def _label(self, key: str) -> str:
        return _join_path(self.path, key.strip())

    def _get_raw(self, key: str, *, default: Any) -> Any:
        if not isinstance(key, str) or not key.strip():
            raise TypeError("ConfigNamespace key must be a non-empty string")
        normalized = key.strip()
        self._consumed.add(normalized)
        if normalized not in self.data:
            if default is _MISSING:
                raise ValidationError(f"Missing required option: {self._label(normalized)}")
            return default
        return self.data.get(normalized)

    def get_raw(self, key: str, *, default: Any = None) -> Any:
        """Return the untyped value; callers validate its shape themselves."""

        value = self._get_raw(key, default=default)
        self._effective[key.strip()] = value
        return value

    def get_bool(self, key: str, *, default: bool | object = _MISSING) -> bool:
        if default is not _MISSING and not isinstance(default, bool):
            raise TypeError(f"{self._label(key)} default must be a boolean")

        value = self._get_raw(key, default=default)
        if not isinstance(value, bool):
            raise ValidationError(
                f"{self._label(key)} must be a boolean (type={type(value).__name__})"
            )
        self._effective[key.strip()] = value
        return value

    def get_str(
        self,
        key: str,
        *,
        default: str | None | object = _MISSING,
        allow_empty: bool = False,
        choices: Iterable[str] | None = None,
    ) -> str | None:
        if default is not _MISSING and default is not None and not isinstance(default, str):
            raise TypeError(f"{self._label(key)} default must be a string or None")

        raw = self._get_raw(key, default=default)
        if raw is None:
            self._effective[key.strip()] = None
            return None
        if not isinstance(raw, str):
            raise ValidationError(
                f"{self._label(key)} must be a string (type={type(raw).__name__})"
            )
        value = raw.strip()
        if not value and not allow_empty:
            raise ValidationError(f"{self._label(key)} cannot be empty")
        if choices is not None:
            choice_set = {str(item).strip() for item in choices if str(item).strip()}
            if value not in choice_set:
                allowed = ", ".join(sorted(choice_set)) or "<none>"
                raise ValidationError(
                    f"{self._label(key)} must be one of: {allowed} (got {value!r})"
                )
        self._effective[key.strip()] = value
        return value

    def get_optional_int(
        self,
        key: str,
        *,
        default: int | None = None,
        min_value: int | None = None,
    ) -> int | None:
        raw = self._get_raw(key, default=default)
        if raw is None:
            self._effective[key.strip()] = None
            return None
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValidationError(
                f"{self._label(key)} must be an int or null (type={type(raw).__name__})"
            )
        if min_value is not None and raw < min_value:
            raise ValidationError(f"{self._label(key)} must be >= {min_value} (got {raw})")
        self._effective[key.strip()] = raw
        return raw

    def get_optional_float(
        self,
        key: str,
        *,
        default: float | None = None,
        min_value: float | None = None,
    ) -> float | None:
        raw = self._get_raw(key, default=default)
        if raw is None:
            self._effective[key.strip()] = None
            return None
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ValidationError(
                f"{self._label(key)} must be a float or null (type={type(raw).__name__})"
            )
        value = float(raw)
        if min_value is not None and value <= min_value:
            raise ValidationError(f"{self._label(key)} must be > {min_value} (got {value})")
        self._effective[key.strip()] = value
        return value

    def get_str_list(
        self,
        key: str,
        *,
        default: list[str] | None = None,
        split_commas: bool = False,
    ) -> list[str] | None:
        """Parse a string or list of strings; falsy entries are dropped.

        Returns None when the key is absent and no default is given, so callers can
        tell "not declared" apart from "declared empty".
        """

        raw = self._get_raw(key, default=default)
        if raw is None or raw is False:
            self._effective[key.strip()] = None
            return None
        if isinstance(raw, str):
            raw = raw.split(",") if split_commas else [raw]
        if not isinstance(raw, (list, tuple)):
            raise ValidationError(
                f"{self._label(key)} must be a string or a list of strings "
                f"(type={type(raw).__name__})"
            )
        items: list[str] = []
        for idx, item in enumerate(raw):
            if not item:
                continue
            if not isinstance(item, str):
                raise ValidationError(
                    f"{self._label(key)}[{idx}] must be a string (type={type(item).__name__})"
                )
            if item.strip():
                items.append(item.strip())
        self._effective[key.strip()] = list(items)
        return items
