from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from buildkit.adapters import AdapterRegistry
from buildkit.errors import ValidationError
from buildkit.patterns import compile_filter


def _split_identifiers(raw: Any, *, filter_string: str) -> list[Any]:
    if isinstance(raw, str):
        items: list[Any] = [part.strip() for part in raw.split(",") if part.strip()]
    elif isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        items = [raw]
    if not items:
        raise ValidationError(f"pipelining[{filter_string!r}] must name at least one adapter")
    return items


@dataclass(frozen=True)
class PipelineRule:
    filter: str
    pattern: re.Pattern[str]
    adapters: tuple[Any, ...]

    def matches(self, relative_path: str) -> bool:
        return self.pattern.match(relative_path) is not None

    def adapter_names(self) -> tuple[str, ...]:
        return tuple(adapter.name for adapter in self.adapters)


class PipelineTable:
    """Ordered (pattern, adapter chain) rules; the first matching rule wins."""

    def __init__(self, registry: AdapterRegistry) -> None:
        self._registry = registry
        self._rules: list[PipelineRule] = []

    @classmethod
    def from_mapping(
        cls, pipelining: Mapping[str, Any] | None, registry: AdapterRegistry
    ) -> "PipelineTable":
        table = cls(registry)
        if pipelining is None:
            return table
        if not isinstance(pipelining, Mapping):
            raise ValidationError(
                f"pipelining must be a mapping of filter -> adapters (type={type(pipelining).__name__})"
            )
        for filter_string, identifiers in pipelining.items():
            table.add_rule(filter_string, identifiers)
        return table

    @property
    def rules(self) -> tuple[PipelineRule, ...]:
        return tuple(self._rules)

    def add_rule(self, filter_string: str, identifiers: Sequence[Any] | str) -> PipelineRule:
        pattern = compile_filter(filter_string)
        adapters: list[Any] = []
        for identifier in _split_identifiers(identifiers, filter_string=filter_string):
            # Names refer to the adapter bound under that name; objects are used as given.
            if isinstance(identifier, str) and identifier.strip() in self._registry.names():
                adapters.append(self._registry.get(identifier))
                continue
            adapter = self._registry.resolve(identifier)
            if adapter.name.strip() not in self._registry.names():
                self._registry.bind(adapter)
            adapters.append(adapter)
        rule = PipelineRule(filter=filter_string.strip(), pattern=pattern, adapters=tuple(adapters))
        self._rules.append(rule)
        return rule

    def resolve_chain(self, relative_path: str) -> tuple[Any, ...]:
        for rule in self._rules:
            if rule.matches(relative_path):
                return rule.adapters
        return self._registry.default_chain(relative_path)

    def __len__(self) -> int:
        return len(self._rules)
