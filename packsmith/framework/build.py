from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from buildkit.adapters import AdapterRegistry
from buildkit.engine import (
    ChainRecorder,
    DefaultChainRecorder,
    iter_file,
    run_chain,
    utc_now_iso8601,
    validate_recorder,
)
from buildkit.errors import BuildPreconditionError
from buildkit.memo import OnceTask
from packsmith.framework.config import PackageDescriptor
from packsmith.framework.discovery import ContentRecord

logger = logging.getLogger(__name__)

ARTIFACT_FORMAT = "packsmith.artifact/v1"


@dataclass(frozen=True)
class ArtifactEntry:
    path: str
    adapters: tuple[str, ...]
    content: bytes
    sha256: str
    stages: tuple[dict[str, Any], ...] = ()

    @classmethod
    def create(
        cls,
        path: str,
        adapters: Sequence[str],
        content: bytes,
        stages: Sequence[dict[str, Any]] = (),
    ) -> "ArtifactEntry":
        return cls(
            path=path,
            adapters=tuple(adapters),
            content=content,
            sha256=hashlib.sha256(content).hexdigest(),
            stages=tuple(stages),
        )

    def index(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "adapters": list(self.adapters),
            "size": len(self.content),
            "sha256": self.sha256,
        }


@dataclass(frozen=True)
class BuildArtifact:
    """Ordered output of every content record run through its adapter chain."""

    name: str
    version: str
    environment: str
    entries: tuple[ArtifactEntry, ...]
    created_at: str = field(default_factory=utc_now_iso8601)
    format: str = ARTIFACT_FORMAT

    def paths(self) -> tuple[str, ...]:
        return tuple(entry.path for entry in self.entries)

    def get(self, path: str) -> ArtifactEntry:
        for entry in self.entries:
            if entry.path == path:
                return entry
        raise KeyError(path)

    def to_files(self) -> dict[str, bytes]:
        return {entry.path: entry.content for entry in self.entries}

    def manifest(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "name": self.name,
            "version": self.version,
            "environment": self.environment,
            "created_at": self.created_at,
            "files": [entry.index() for entry in self.entries],
        }


class BuildOrchestrator:
    """Drives discovered records through their chains and caches the artifact."""

    def __init__(
        self,
        descriptor: PackageDescriptor,
        registry: AdapterRegistry,
        *,
        recorder: ChainRecorder | None = None,
        adapter_timeout: float | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self._descriptor = descriptor
        self._registry = registry
        self._recorder = recorder or DefaultChainRecorder(logger)
        validate_recorder(self._recorder)
        self._adapter_timeout = adapter_timeout
        self._max_concurrency = max_concurrency
        self._cache: OnceTask[BuildArtifact] = OnceTask(f"build:{descriptor.name}")

    @property
    def artifact(self) -> BuildArtifact | None:
        """The completed artifact of the current generation, if any."""

        return self._cache.result()

    def invalidate(self) -> None:
        self._cache.reset()

    def check_adapters(self) -> None:
        if len(self._registry) == 0:
            raise BuildPreconditionError(f"no adapters found for package {self._descriptor.name}")

    def check_preconditions(self, records: Sequence[ContentRecord]) -> None:
        if len(records) == 0:
            raise BuildPreconditionError(f"no contents found for package {self._descriptor.name}")
        self.check_adapters()

    async def build(
        self, records: Sequence[ContentRecord], *, rebuild: bool = False
    ) -> BuildArtifact:
        self.check_preconditions(records)
        # Records are frozen; cloning detaches this build from the discovery snapshot.
        snapshot = tuple(record.clone() for record in records)
        return await self._cache.run(lambda: self._build(snapshot), force=rebuild)

    async def _build(self, records: tuple[ContentRecord, ...]) -> BuildArtifact:
        logger.info(
            "Building %s@%s (%d files, environment=%s)",
            self._descriptor.name,
            self._descriptor.version,
            len(records),
            self._descriptor.environment,
        )
        semaphore = asyncio.Semaphore(self._max_concurrency) if self._max_concurrency else None
        tasks = [asyncio.ensure_future(self._build_record(record, semaphore)) for record in records]
        try:
            entries = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.error("Build of %s aborted; no artifact cached", self._descriptor.name)
            raise

        artifact = BuildArtifact(
            name=self._descriptor.name,
            version=self._descriptor.version,
            environment=self._descriptor.environment,
            entries=tuple(entries),
        )
        logger.info(
            "Built %s@%s (%d files, %d bytes)",
            artifact.name,
            artifact.version,
            len(artifact.entries),
            sum(len(entry.content) for entry in artifact.entries),
        )
        return artifact

    async def _build_record(
        self, record: ContentRecord, semaphore: asyncio.Semaphore | None
    ) -> ArtifactEntry:
        if semaphore is None:
            return await self._run_record(record)
        async with semaphore:
            return await self._run_record(record)

    async def _run_record(self, record: ContentRecord) -> ArtifactEntry:
        content, run = await run_chain(
            iter_file(record.path, record_path=record.relative),
            record.adapters,
            record_path=record.relative,
            direction="build",
            recorder=self._recorder,
            timeout=self._adapter_timeout,
        )
        return ArtifactEntry.create(
            record.relative,
            record.adapter_names(),
            content,
            stages=run.to_dict()["stages"],
        )
