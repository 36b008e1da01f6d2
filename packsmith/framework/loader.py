from __future__ import annotations

import logging
from typing import Any

from buildkit.adapters import AdapterRegistry
from buildkit.engine import ChainRecorder, NullChainRecorder, iter_bytes, run_chain
from packsmith.framework.build import ArtifactEntry, BuildArtifact

logger = logging.getLogger(__name__)


class PackageLoader:
    """Consumption-side mirror of the build: inverse transforms in reverse order.

    An artifact built through `[less, css, gzip]` loads through
    `gzip.load_stream -> css.load_stream -> less.load_stream`.
    """

    def __init__(self, registry: AdapterRegistry, *, recorder: ChainRecorder | None = None) -> None:
        self._registry = registry
        self._recorder = recorder or NullChainRecorder()

    def _adapter(self, name: str) -> Any:
        if name in self._registry.names():
            return self._registry.get(name)
        # Loading never changes which adapters the package has bound.
        return self._registry.resolve(name)

    def chain_for(self, entry: ArtifactEntry) -> tuple[Any, ...]:
        return tuple(self._adapter(name) for name in reversed(entry.adapters))

    async def load_entry(self, entry: ArtifactEntry) -> bytes:
        content, _run = await run_chain(
            iter_bytes(entry.content),
            self.chain_for(entry),
            record_path=entry.path,
            direction="load",
            recorder=self._recorder,
        )
        return content

    async def load(self, artifact: BuildArtifact) -> dict[str, bytes]:
        loaded: dict[str, bytes] = {}
        for entry in artifact.entries:
            loaded[entry.path] = await self.load_entry(entry)
        logger.debug("Loaded %s@%s (%d files)", artifact.name, artifact.version, len(loaded))
        return loaded
