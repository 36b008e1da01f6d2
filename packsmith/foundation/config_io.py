from __future__ import annotations

import importlib.util
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from buildkit.errors import ResolutionError, ValidationError

PACKAGE_JSON = "package.json"
CONFIG_SUFFIXES = (".yaml", ".yml", ".json")

# First non-empty file wins.
IGNORE_FILES = (".packsmithignore", ".npmignore", ".gitignore")


def _load_yaml_mapping(path: str | os.PathLike[str]) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except FileNotFoundError:
        raise
    except yaml.YAMLError as exc:
        raise ValidationError(f"Invalid manifest in {path}: {exc}") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ValidationError(f"Manifest must contain a mapping: {path}")
    return dict(payload)


def _load_json_mapping(path: str | os.PathLike[str]) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Invalid manifest in {path}: {exc}") from exc

    if not isinstance(payload, Mapping):
        raise ValidationError(f"Manifest must contain a mapping: {path}")
    return dict(payload)


def load_manifest(path: Path) -> dict[str, Any]:
    if path.suffix.lower() == ".json":
        return _load_json_mapping(path)
    return _load_yaml_mapping(path)


def resolve_package_root(target: str | os.PathLike[str]) -> Path:
    """Resolve a directory, manifest file or importable package name to a root dir."""

    raw = os.fspath(target)
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("please provide options.path")
    raw = raw.strip()

    candidate = Path(os.path.expandvars(os.path.expanduser(raw)))
    if candidate.is_dir():
        return candidate.resolve()
    if candidate.is_file():
        return candidate.resolve().parent

    try:
        spec = importlib.util.find_spec(raw)
    except (ImportError, ValueError):
        spec = None
    if spec is not None:
        locations = list(spec.submodule_search_locations or [])
        if locations:
            return Path(locations[0]).resolve()
        if spec.origin and os.path.isfile(spec.origin):
            return Path(spec.origin).resolve().parent

    raise ResolutionError(f"Unable to determine absolute path for package: {raw}")


def find_config_file(root: Path, config_file: str) -> Path | None:
    for suffix in CONFIG_SUFFIXES:
        path = root / f"{config_file}{suffix}"
        if path.is_file():
            return path
    return None


def load_manifests(root: Path, *, config_file: str) -> tuple[dict[str, Any], dict[str, Any], dict[str, Any]]:
    """Load `package.json` and the package config file (both optional).

    Returns (package_json, config, meta) where meta lists the paths loaded.
    """

    package_json: dict[str, Any] = {}
    config: dict[str, Any] = {}
    loaded: list[str] = []

    package_json_path = root / PACKAGE_JSON
    if package_json_path.is_file():
        package_json = _load_json_mapping(package_json_path)
        loaded.append(str(package_json_path))

    config_path = find_config_file(root, config_file)
    if config_path is not None:
        config = load_manifest(config_path)
        loaded.append(str(config_path))

    return package_json, config, {"paths": loaded, "root": str(root)}


def read_ignore_lines(path: Path) -> list[str]:
    try:
        text = path.read_text(encoding="utf-8")
    except (FileNotFoundError, IsADirectoryError):
        return []
    lines: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lines.append(stripped)
    return lines


def load_ignore_fallback(root: Path) -> tuple[list[str], str | None]:
    """Return the first non-empty ignore file's patterns and its name."""

    for name in IGNORE_FILES:
        lines = read_ignore_lines(root / name)
        if lines:
            return lines, name
    return [], None
