from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from buildkit.adapters import AdapterKindRegistry, AdapterRegistry
from buildkit.engine import ChainRecorder
from buildkit.errors import BuildPreconditionError
from buildkit.filters import FilterSet
from buildkit.memo import OnceTask
from buildkit.pipelining import PipelineRule, PipelineTable
from packsmith.adapters import get_adapter_kinds
from packsmith.framework.build import BuildArtifact, BuildOrchestrator
from packsmith.framework.config import PackageConfig, PackageDescriptor, resolve_package_config
from packsmith.framework.dependencies import DependencyGraph
from packsmith.framework.discovery import ContentRecord, TreeWalker, discover as discover_contents
from packsmith.framework.store import LocalDirectoryStorage, Storage, StoreGate

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIR = ".packsmith"


class Package:
    """One package: its rules, filters and adapters, plus cached discovery and build.

    Everything derived from options and manifests is computed once here; the
    package owns its state exclusively.
    """

    def __init__(
        self,
        options: Any,
        *,
        kinds: AdapterKindRegistry | None = None,
        walker: TreeWalker | None = None,
        storage: Storage | None = None,
        recorder: ChainRecorder | None = None,
    ) -> None:
        self.config: PackageConfig = resolve_package_config(options)
        self.descriptor: PackageDescriptor = self.config.descriptor
        opts = self.config.options

        self.dependencies = DependencyGraph.normalize(self.config.dependencies)
        self.filters = FilterSet.build(
            exclude=self.config.ignore, include_only=self.config.include_only
        )

        self.adapters = AdapterRegistry(kinds or get_adapter_kinds())
        for identifier in self.config.adapters:
            self.adapters.bind(identifier)
        self.pipelining = PipelineTable.from_mapping(self.config.pipelining, self.adapters)

        self._walker = walker
        self._discovery: OnceTask[tuple[ContentRecord, ...]] = OnceTask(
            f"discover:{self.descriptor.name}"
        )
        self._builder = BuildOrchestrator(
            self.descriptor,
            self.adapters,
            recorder=recorder,
            adapter_timeout=opts.adapter_timeout,
            max_concurrency=opts.max_concurrency,
        )
        self._store_gate = StoreGate(
            storage or LocalDirectoryStorage(self.path / DEFAULT_STORAGE_DIR)
        )

        logger.debug(
            "%s: package initialized (root=%s, adapters=%s, rules=%d, filter=%s)",
            self.name,
            self.path,
            ", ".join(self.adapters.names()),
            len(self.pipelining),
            self.filters.mode,
        )

    def __repr__(self) -> str:
        return f"<Package {self.name}@{self.version} root={str(self.path)!r}>"

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def version(self) -> str:
        return self.descriptor.version

    @property
    def description(self) -> str | None:
        return self.descriptor.description

    @property
    def environment(self) -> str:
        return self.descriptor.environment

    @property
    def main(self) -> str | None:
        return self.descriptor.main

    @property
    def path(self) -> Path:
        return self.descriptor.root

    @property
    def contents(self) -> tuple[ContentRecord, ...]:
        return self._discovery.result() or ()

    @property
    def artifact(self) -> BuildArtifact | None:
        return self._builder.artifact

    # Dependencies

    def set_dependencies(self, raw: Any) -> DependencyGraph:
        self.dependencies = DependencyGraph.normalize(raw)
        logger.debug("%s: saving dependencies (%s)", self.name, ", ".join(self.dependencies.rules()))
        return self.dependencies

    def add_dependency(self, name: str, version: str, optional: bool = False) -> None:
        self.dependencies.add_dependency(name, version, optional=optional)

    def remove_dependency(self, name: str, optional: bool = False) -> None:
        self.dependencies.remove_dependency(name, optional=optional)

    # Adapters and pipelining

    def resolve_adapter(self, identifier: Any) -> Any:
        return self.adapters.resolve(identifier)

    def bind_adapter(self, identifier: Any) -> Any:
        return self.adapters.bind(identifier)

    def unbind_adapter(self, identifier: Any) -> None:
        self.adapters.unbind(identifier)

    def has_adapter(self, identifier: Any) -> bool:
        return self.adapters.has(identifier)

    def add_pipelining(self, filter_string: str, adapters: Sequence[Any] | str) -> PipelineRule:
        return self.pipelining.add_rule(filter_string, adapters)

    def resolve_chain(self, relative_path: str) -> tuple[Any, ...]:
        return self.pipelining.resolve_chain(relative_path)

    # Discovery, build, store

    async def discover(self, force: bool = False) -> tuple[ContentRecord, ...]:
        async def _run() -> tuple[ContentRecord, ...]:
            logger.debug("%s: loading package", self.name)
            records = await discover_contents(
                self.path,
                self.filters,
                self.pipelining,
                walker=self._walker,
                timeout=self.config.options.walk_timeout,
            )
            logger.info("%s: discovered %d files", self.name, len(records))
            return records

        return await self._discovery.run(_run, force=force)

    load = discover

    async def build(self, rebuild: bool = False) -> BuildArtifact:
        self._builder.check_adapters()
        records = await self.discover()
        return await self._builder.build(records, rebuild=rebuild)

    async def store(self) -> Any:
        return await self._store_gate.store(self._builder.artifact)

    async def initialize(self) -> BuildArtifact | None:
        """Run discovery, build and store as enabled by the `*_on_initialize` options."""

        opts = self.config.options
        if not opts.load_on_initialize:
            return None
        await self.discover()
        if not opts.build_on_initialize:
            return None
        artifact = await self.build()
        if opts.store_on_initialize:
            await self.store()
        return artifact

    def to_files(self) -> dict[str, bytes]:
        artifact = self._builder.artifact
        if artifact is None:
            raise BuildPreconditionError(f"{self.name}: package has not been built")
        return artifact.to_files()
