"""Well-known adapters shipped with packsmith."""

from __future__ import annotations

from functools import lru_cache

from buildkit.adapters import AdapterKindRegistry

WELL_KNOWN_ADAPTERS: dict[str, str] = {
    "blob": "packsmith.adapters.blob",
    "css": "packsmith.adapters.css",
    "dummy": "packsmith.adapters.dummy",
    "gzip": "packsmith.adapters.gzip",
    "js": "packsmith.adapters.js",
}


@lru_cache(maxsize=1)
def get_adapter_kinds() -> AdapterKindRegistry:
    return AdapterKindRegistry.from_mapping(WELL_KNOWN_ADAPTERS)
