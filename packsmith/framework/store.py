from __future__ import annotations

import inspect
import json
import logging
import os
import shutil
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any, Protocol

from buildkit.errors import StoreError, ValidationError
from packsmith.framework.build import ArtifactEntry, BuildArtifact

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"
FILES_DIR = "files"


class Storage(Protocol):
    def store(self, artifact: BuildArtifact) -> Any:
        """Persist a completed artifact (may return an awaitable)."""


class StoreGate:
    """Refuses to persist anything but a completed build artifact."""

    def __init__(self, storage: Storage) -> None:
        if not callable(getattr(storage, "store", None)):
            raise TypeError(f"storage must define store() (type={type(storage).__name__})")
        self._storage = storage

    @property
    def storage(self) -> Storage:
        return self._storage

    async def store(self, artifact: BuildArtifact | None) -> Any:
        if artifact is None:
            raise StoreError("nothing to store: build the package first")
        if not isinstance(artifact, BuildArtifact):
            raise StoreError(f"nothing to store: not a build artifact (type={type(artifact).__name__})")

        result = self._storage.store(artifact)
        if inspect.isawaitable(result):
            result = await result
        logger.info("Stored %s@%s", artifact.name, artifact.version)
        return result


def _safe_relative(path: str) -> PurePosixPath:
    parsed = PurePosixPath(path)
    if parsed.is_absolute() or ".." in parsed.parts:
        raise ValidationError(f"Artifact entry escapes the storage root: {path}")
    return parsed


class LocalDirectoryStorage:
    """Stores artifacts as `<root>/<name>/<version>/{manifest.json,files/...}`."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)

    def location(self, name: str, version: str) -> Path:
        return self.root / name / version

    def store(self, artifact: BuildArtifact) -> Path:
        """Write the artifact into a staging directory, then swap it into place.

        A re-store of the same name/version replaces the previous tree entirely.
        """

        target = self.location(artifact.name, artifact.version)
        relatives = [(entry, _safe_relative(entry.path)) for entry in artifact.entries]

        target.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(
            tempfile.mkdtemp(dir=str(target.parent), prefix=target.name + ".", suffix=".tmp")
        )
        previous: Path | None = None
        try:
            files_dir = staging / FILES_DIR
            files_dir.mkdir()
            for entry, relative in relatives:
                destination = files_dir.joinpath(*relative.parts)
                destination.parent.mkdir(parents=True, exist_ok=True)
                destination.write_bytes(entry.content)

            with open(staging / MANIFEST_FILE, "w", encoding="utf-8") as handle:
                json.dump(artifact.manifest(), handle, indent=2, ensure_ascii=False)
                handle.write("\n")

            if target.exists():
                previous = staging.with_suffix(".old")
                os.replace(target, previous)
            os.replace(staging, target)
        except BaseException:
            if previous is not None and not target.exists():
                os.replace(previous, target)
                previous = None
            shutil.rmtree(staging, ignore_errors=True)
            raise

        if previous is not None:
            shutil.rmtree(previous, ignore_errors=True)
        logger.debug("Wrote %d files under %s", len(artifact.entries), target)
        return target

    def read(self, name: str, version: str) -> BuildArtifact:
        target = self.location(name, version)
        manifest_path = target / MANIFEST_FILE
        try:
            with open(manifest_path, "r", encoding="utf-8") as handle:
                manifest = json.load(handle)
        except FileNotFoundError as exc:
            raise StoreError(f"No stored artifact for {name}@{version} under {self.root}") from exc
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt artifact manifest: {manifest_path}: {exc}") from exc

        entries: list[ArtifactEntry] = []
        for item in manifest.get("files", []):
            relative = _safe_relative(str(item["path"]))
            content = (target / FILES_DIR).joinpath(*relative.parts).read_bytes()
            entry = ArtifactEntry.create(str(item["path"]), item.get("adapters", []), content)
            if item.get("sha256") and entry.sha256 != item["sha256"]:
                raise StoreError(f"Checksum mismatch for {item['path']} in {name}@{version}")
            entries.append(entry)

        return BuildArtifact(
            name=str(manifest.get("name", name)),
            version=str(manifest.get("version", version)),
            environment=str(manifest.get("environment", "")) or "development",
            entries=tuple(entries),
            created_at=str(manifest.get("created_at", "")),
        )
