from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass, replace
from pathlib import Path, PurePosixPath
from typing import Any, Protocol

from buildkit.errors import DiscoveryError
from buildkit.filters import FilterSet
from buildkit.pipelining import PipelineTable

logger = logging.getLogger(__name__)


class TreeWalker(Protocol):
    def walk(self, root: Path) -> AsyncIterator[tuple[Path, os.stat_result]]:
        """Yield `(path, stats)` for every regular file below `root`."""


def _scan_directory(directory: str) -> tuple[list[tuple[str, os.stat_result]], list[str]]:
    files: list[tuple[str, os.stat_result]] = []
    subdirs: list[str] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                subdirs.append(entry.path)
            elif entry.is_file():
                files.append((entry.path, entry.stat()))
    files.sort(key=lambda item: item[0])
    subdirs.sort()
    return files, subdirs


class FileTreeWalker:
    """Walks a directory tree, listing each directory in a worker thread."""

    async def walk(self, root: Path) -> AsyncIterator[tuple[Path, os.stat_result]]:
        pending = [str(root)]
        while pending:
            directory = pending.pop()
            files, subdirs = await asyncio.to_thread(_scan_directory, directory)
            for path, stats in files:
                yield Path(path), stats
            pending.extend(reversed(subdirs))


@dataclass(frozen=True)
class ContentRecord:
    """One discovered, included file plus its resolved adapter chain."""

    path: Path
    relative: str
    dir: str
    base: str
    ext: str
    stem: str
    size: int
    adapters: tuple[Any, ...]

    @classmethod
    def create(
        cls, path: Path, relative: str, *, size: int, adapters: tuple[Any, ...]
    ) -> "ContentRecord":
        parsed = PurePosixPath(relative)
        parent = str(parsed.parent)
        return cls(
            path=path,
            relative=relative,
            dir="" if parent == "." else parent,
            base=parsed.name,
            ext=parsed.suffix,
            stem=parsed.stem,
            size=size,
            adapters=adapters,
        )

    def adapter_names(self) -> tuple[str, ...]:
        return tuple(adapter.name for adapter in self.adapters)

    def clone(self) -> "ContentRecord":
        return replace(self)


def relative_posix(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


async def _collect_records(
    root: Path,
    filters: FilterSet,
    table: PipelineTable,
    walker: TreeWalker,
) -> list[ContentRecord]:
    records: list[ContentRecord] = []
    skipped = 0
    async for path, stats in walker.walk(root):
        relative = relative_posix(path, root)
        if not filters.should_include(relative):
            skipped += 1
            logger.debug("Excluded %s", relative)
            continue
        records.append(
            ContentRecord.create(
                path,
                relative,
                size=int(getattr(stats, "st_size", 0) or 0),
                adapters=table.resolve_chain(relative),
            )
        )
    logger.debug("Walk of %s finished (included=%d, excluded=%d)", root, len(records), skipped)
    return records


async def discover(
    root: Path,
    filters: FilterSet,
    table: PipelineTable,
    *,
    walker: TreeWalker | None = None,
    timeout: float | None = None,
) -> tuple[ContentRecord, ...]:
    """Walk `root` and return one record per included file, ordered by relative path.

    Any walker failure aborts the whole discovery; no partial result is returned.
    """

    walker = walker or FileTreeWalker()
    try:
        if timeout is None:
            records = await _collect_records(root, filters, table, walker)
        else:
            records = await asyncio.wait_for(
                _collect_records(root, filters, table, walker), timeout=timeout
            )
    except asyncio.TimeoutError as exc:
        raise DiscoveryError(f"Walking {root} timed out after {timeout}s") from exc
    except DiscoveryError:
        raise
    except Exception as exc:
        raise DiscoveryError(f"Failed to walk {root}: {exc}") from exc

    records.sort(key=lambda record: record.relative)
    return tuple(records)
