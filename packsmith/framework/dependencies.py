from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from buildkit.errors import ValidationError

DEPENDENCY_RULE = re.compile(
    r"^(required|optional|(environment-(required|optional)-.+))$", re.IGNORECASE
)
LATEST = "latest"


def is_dependency_rule(key: Any) -> bool:
    return isinstance(key, str) and DEPENDENCY_RULE.match(key) is not None


def looks_rule_keyed(raw: Mapping[Any, Any]) -> bool:
    """True when any key is a dependency rule; the whole mapping is then rule-keyed."""

    return any(is_dependency_rule(key) for key in raw.keys())


def _validate_entries(rule: str, entries: Any) -> dict[str, str]:
    if entries is None:
        return {}
    if not isinstance(entries, Mapping):
        raise ValidationError(
            f"dependencies.{rule} must be a mapping of name -> version (type={type(entries).__name__})"
        )
    out: dict[str, str] = {}
    for name, version in entries.items():
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"dependency under {rule} should be a string (got {name!r})")
        if not isinstance(version, str) or not version.strip():
            raise ValidationError(
                f"dependencies.{rule}.{name} version should be a non-empty string (got {version!r})"
            )
        out[name] = version.strip()
    return out


@dataclass
class DependencyGraph:
    """Dependency rule -> dependency name -> version constraint."""

    rules_map: dict[str, dict[str, str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.rules_map.setdefault("required", {})
        self.rules_map.setdefault("optional", {})

    @classmethod
    def normalize(cls, raw: Any) -> "DependencyGraph":
        """Accept a rule-keyed mapping, a flat name -> version mapping, or a list of names."""

        if raw is None or raw is False:
            return cls()

        if isinstance(raw, (list, tuple)):
            required: dict[str, str] = {}
            for idx, name in enumerate(raw):
                if not isinstance(name, str) or not name.strip():
                    raise ValidationError(
                        f"dependencies[{idx}] should be a string (type={type(name).__name__})"
                    )
                required[name.strip()] = LATEST
            return cls({"required": required})

        if not isinstance(raw, Mapping):
            raise ValidationError(
                f"dependencies must be a mapping or a list of names (type={type(raw).__name__})"
            )

        for key in raw.keys():
            if not isinstance(key, str):
                raise ValidationError(f"dependency should be a string (got {key!r})")

        if not looks_rule_keyed(raw):
            return cls({"required": _validate_entries("required", raw)})

        rules: dict[str, dict[str, str]] = {}
        for rule, entries in raw.items():
            if not is_dependency_rule(rule):
                raise ValidationError(f"invalid dependency rule: {rule}")
            # Rules are case-insensitive; "Required" and "required" are one rule.
            rules.setdefault(rule.lower(), {}).update(_validate_entries(rule, entries))
        return cls(rules)

    @property
    def required(self) -> dict[str, str]:
        return self.rules_map["required"]

    @property
    def optional(self) -> dict[str, str]:
        return self.rules_map["optional"]

    def rules(self) -> tuple[str, ...]:
        return tuple(self.rules_map.keys())

    def add_dependency(self, name: str, version: str, optional: bool = False) -> None:
        self.rules_map["optional" if optional else "required"][name] = version

    def remove_dependency(self, name: str, optional: bool = False) -> None:
        self.rules_map["optional" if optional else "required"].pop(name, None)

    def for_environment(self, environment: str) -> dict[str, dict[str, str]]:
        """Required/optional maps with the matching environment-scoped rules merged in."""

        env = (environment or "").strip().lower()
        merged = {"required": dict(self.required), "optional": dict(self.optional)}
        for rule, entries in self.rules_map.items():
            lowered = rule.lower()
            for scope in ("required", "optional"):
                if lowered == f"environment-{scope}-{env}":
                    merged[scope].update(entries)
        return merged

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {rule: dict(entries) for rule, entries in self.rules_map.items()}
