from __future__ import annotations

import importlib
import logging
import os
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from buildkit.errors import InvalidAdapterError, ResolutionError

ContentStream = AsyncIterator[bytes]

logger = logging.getLogger(__name__)


@runtime_checkable
class Adapter(Protocol):
    """A named content transform.

    `build_stream` runs at build time; `load_stream` is its inverse and runs on the
    consumption side. Both take and return async byte streams.
    """

    name: str

    def build_stream(self, stream: ContentStream) -> ContentStream: ...

    def load_stream(self, stream: ContentStream) -> ContentStream: ...


class PassthroughAdapter:
    """Adapter base whose transforms forward content unchanged."""

    name: str = "passthrough"
    extensions: tuple[str, ...] = ()

    async def build_stream(self, stream: ContentStream) -> ContentStream:
        async for chunk in stream:
            yield chunk

    async def load_stream(self, stream: ContentStream) -> ContentStream:
        async for chunk in stream:
            yield chunk

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


AdapterFactory = Callable[[], Any]


def _adapter_name(candidate: Any) -> str | None:
    name = getattr(candidate, "name", None)
    if isinstance(name, str) and name.strip():
        return name.strip()
    return None


def _import_target(target: str) -> Any:
    module_name, _, attribute = target.partition(":")
    module = importlib.import_module(module_name)
    if attribute:
        try:
            return getattr(module, attribute)
        except AttributeError as exc:
            raise InvalidAdapterError(
                f"Module {module_name} has no attribute {attribute}"
            ) from exc
    # Adapter modules export their instance as `ADAPTER`.
    return getattr(module, "ADAPTER", module)


@dataclass(frozen=True)
class AdapterKindRegistry:
    """Well-known adapter names mapped to a module path or a zero-arg factory."""

    _kinds: Mapping[str, str | AdapterFactory]

    @classmethod
    def from_mapping(cls, kinds: Mapping[str, str | AdapterFactory]) -> "AdapterKindRegistry":
        entries: dict[str, str | AdapterFactory] = {}
        for raw_name, target in kinds.items():
            if not isinstance(raw_name, str) or not raw_name.strip():
                raise TypeError("Adapter kind name must be a non-empty string")
            key = raw_name.strip().lower()
            if key in entries:
                raise ValueError(f"Duplicate adapter kind: {key}")
            if not isinstance(target, str) and not callable(target):
                raise TypeError(
                    f"Adapter kind {key} must map to a module path or a factory "
                    f"(type={type(target).__name__})"
                )
            entries[key] = target
        return cls(_kinds=entries)

    def available(self) -> tuple[str, ...]:
        return tuple(sorted(self._kinds.keys()))

    def has(self, name: str) -> bool:
        return (name or "").strip().lower() in self._kinds

    def load(self, name: str) -> Any:
        target = self._kinds.get((name or "").strip().lower())
        if target is None:
            available = ", ".join(self.available()) or "<none>"
            raise ResolutionError(f"Unknown adapter kind: {name} (available: {available})")
        if isinstance(target, str):
            return _import_target(target)
        return target()


class AdapterRegistry:
    """Resolves adapter identifiers and tracks the adapters bound to one package."""

    def __init__(self, kinds: AdapterKindRegistry) -> None:
        if not isinstance(kinds, AdapterKindRegistry):
            raise TypeError(
                f"kinds must be an AdapterKindRegistry (type={type(kinds).__name__})"
            )
        self._kinds = kinds
        self._bound: dict[str, Any] = {}

    @property
    def kinds(self) -> AdapterKindRegistry:
        return self._kinds

    def resolve(self, identifier: Any) -> Any:
        candidate: Any
        if isinstance(identifier, str):
            key = identifier.strip()
            if not key:
                raise InvalidAdapterError("invalid adapter provided: empty identifier")
            try:
                if self._kinds.has(key):
                    candidate = self._kinds.load(key)
                else:
                    candidate = _import_target(key)
            except ImportError as exc:
                raise InvalidAdapterError(
                    f"invalid adapter provided: {key} (not a known kind or importable module)"
                ) from exc
        else:
            candidate = identifier

        if isinstance(candidate, type):
            candidate = candidate()

        if _adapter_name(candidate) is None:
            raise InvalidAdapterError(f"invalid adapter provided: {identifier!r}")
        for method in ("build_stream", "load_stream"):
            if not callable(getattr(candidate, method, None)):
                raise InvalidAdapterError(
                    f"invalid adapter provided: {_adapter_name(candidate)} lacks {method}()"
                )
        return candidate

    def bind(self, identifier: Any) -> Any:
        adapter = self.resolve(identifier)
        name = adapter.name.strip()
        if name in self._bound and self._bound[name] is not adapter:
            logger.debug("Rebinding adapter %s", name)
        self._bound[name] = adapter
        return adapter

    def unbind(self, identifier: Any) -> None:
        name = identifier.strip() if isinstance(identifier, str) else None
        if name is None or name not in self._bound:
            name = _adapter_name(self.resolve(identifier))
        self._bound.pop(name, None)

    def has(self, identifier: Any) -> bool:
        if isinstance(identifier, str) and identifier.strip() in self._bound:
            return True
        return _adapter_name(self.resolve(identifier)) in self._bound

    def get(self, name: str) -> Any:
        adapter = self._bound.get((name or "").strip())
        if adapter is None:
            bound = ", ".join(self._bound.keys()) or "<none>"
            raise ResolutionError(f"Adapter not bound: {name} (bound: {bound})")
        return adapter

    def bound(self) -> tuple[Any, ...]:
        return tuple(self._bound.values())

    def names(self) -> tuple[str, ...]:
        return tuple(self._bound.keys())

    def __len__(self) -> int:
        return len(self._bound)

    def default_chain(self, relative_path: str) -> tuple[Any, ...]:
        """Single-adapter chain for a file that matched no pipelining rule."""

        if not self._bound:
            return ()
        ext = os.path.splitext(relative_path)[1].lower()
        if ext:
            for adapter in self._bound.values():
                claimed: Iterable[str] = getattr(adapter, "extensions", ()) or ()
                if ext in {str(item).lower() for item in claimed}:
                    return (adapter,)
        return (next(iter(self._bound.values())),)
