from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from buildkit.config_namespace import ConfigNamespace
from buildkit.errors import ValidationError
from packsmith.foundation.config_io import (
    load_ignore_fallback,
    load_manifests,
    resolve_package_root,
)

DEFAULT_ENVIRONMENT = "development"
PRODUCTION = "production"
DEFAULT_CONFIG_FILE = "packsmith"
DEFAULT_ADAPTERS: tuple[str, ...] = ("js",)


@dataclass(frozen=True)
class PackageOptions:
    """Explicit construction options, as given by the caller (None = not declared)."""

    path: str
    name: str | None = None
    version: str | None = None
    description: str | None = None
    environment: str | None = None
    main: str | None = None
    config_file: str = DEFAULT_CONFIG_FILE
    ignore: list[str] | None = None
    include_only: list[str] | None = None
    dependencies: Any = None
    adapters: Any = None
    pipelining: Any = None
    load_on_initialize: bool = True
    build_on_initialize: bool = True
    store_on_initialize: bool = True
    walk_timeout: float | None = None
    adapter_timeout: float | None = None
    max_concurrency: int | None = None

    @classmethod
    def from_value(cls, options: Any) -> "PackageOptions":
        if isinstance(options, (str, os.PathLike)):
            options = {"path": os.fspath(options)}
        if not isinstance(options, Mapping):
            raise ValidationError(
                f"options must be a mapping or a path (type={type(options).__name__})"
            )

        ns = ConfigNamespace(options, path="options")
        raw_path = ns.get_raw("path", default=None)
        if isinstance(raw_path, os.PathLike):
            raw_path = os.fspath(raw_path)
        if not isinstance(raw_path, str) or not raw_path.strip():
            raise ValidationError("please provide options.path")

        parsed = cls(
            path=raw_path.strip(),
            name=ns.get_str("name", default=None),
            version=ns.get_str("version", default=None),
            description=ns.get_str("description", default=None, allow_empty=True),
            environment=ns.get_str("environment", default=None),
            main=ns.get_str("main", default=None),
            config_file=ns.get_str("config_file", default=DEFAULT_CONFIG_FILE) or DEFAULT_CONFIG_FILE,
            ignore=ns.get_str_list("ignore"),
            include_only=ns.get_str_list("include_only"),
            dependencies=ns.get_raw("dependencies"),
            adapters=ns.get_raw("adapters"),
            pipelining=ns.get_raw("pipelining"),
            load_on_initialize=ns.get_bool("load_on_initialize", default=True),
            build_on_initialize=ns.get_bool("build_on_initialize", default=True),
            store_on_initialize=ns.get_bool("store_on_initialize", default=True),
            walk_timeout=ns.get_optional_float("walk_timeout", min_value=0.0),
            adapter_timeout=ns.get_optional_float("adapter_timeout", min_value=0.0),
            max_concurrency=ns.get_optional_int("max_concurrency", min_value=1),
        )
        ns.assert_consumed()
        return parsed


@dataclass(frozen=True)
class PackageDescriptor:
    name: str
    version: str
    root: Path
    environment: str = DEFAULT_ENVIRONMENT
    description: str | None = None
    main: str | None = None

    def __post_init__(self) -> None:
        for label in ("name", "version", "environment"):
            value = getattr(self, label)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"please provide a valid package.{label}")
            object.__setattr__(self, label, value.strip())
        if not isinstance(self.root, Path) or not self.root.is_absolute():
            raise ValidationError(f"package root must be an absolute path (got {self.root!r})")
        if self.environment == PRODUCTION:
            object.__setattr__(self, "description", None)


@dataclass(frozen=True)
class PackageConfig:
    """One fully-merged configuration value per package."""

    descriptor: PackageDescriptor
    options: PackageOptions
    dependencies: Any
    adapters: tuple[Any, ...]
    pipelining: Mapping[str, Any]
    ignore: tuple[str, ...]
    include_only: tuple[str, ...] | None
    sources: dict[str, str] = field(default_factory=dict)
    manifest_paths: tuple[str, ...] = ()


def _declared(value: Any) -> bool:
    return value is not None and value is not False and value != ""


def _pick(*candidates: tuple[str, Any]) -> tuple[Any, str | None]:
    for source, value in candidates:
        if _declared(value):
            return value, source
    return None, None


def _manifest_str(value: Any, *, key: str, source: str | None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(
            f"{source or 'manifest'}.{key} must be a string (type={type(value).__name__})"
        )
    return value


def _manifest_list(value: Any, *, key: str, source: str | None, split_commas: bool = False) -> list[Any] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",") if split_commas else [value]
    if not isinstance(value, (list, tuple)):
        raise ValidationError(
            f"please provide a valid package.{key} (from {source or 'manifest'}, "
            f"type={type(value).__name__})"
        )
    return [item.strip() if isinstance(item, str) else item for item in value if item]


def resolve_package_config(options: Any) -> PackageConfig:
    """Merge explicit options over `package.json` over the package config file."""

    opts = PackageOptions.from_value(options)
    root = resolve_package_root(opts.path)
    package_json, config_file, meta = load_manifests(root, config_file=opts.config_file)

    def lookup(key: str, explicit: Any, *aliases: str) -> tuple[Any, str | None]:
        candidates: list[tuple[str, Any]] = [("options", explicit)]
        for source_name, source in (("package.json", package_json), ("config", config_file)):
            for name in (key, *aliases):
                candidates.append((source_name, source.get(name)))
        return _pick(*candidates)

    sources: dict[str, str] = {}

    def record(key: str, picked: tuple[Any, str | None]) -> Any:
        value, source = picked
        if source:
            sources[key] = source
        return value

    environment = record("environment", lookup("environment", opts.environment))
    environment = _manifest_str(environment, key="environment", source=sources.get("environment"))
    environment = environment or DEFAULT_ENVIRONMENT

    name = _manifest_str(record("name", lookup("name", opts.name)), key="name", source=sources.get("name"))
    version = record("version", lookup("version", opts.version))
    if isinstance(version, (int, float)) and not isinstance(version, bool):
        version = str(version)
    version = _manifest_str(version, key="version", source=sources.get("version"))
    description = _manifest_str(
        record("description", lookup("description", opts.description)),
        key="description",
        source=sources.get("description"),
    )
    main = _manifest_str(record("main", lookup("main", opts.main)), key="main", source=sources.get("main"))

    if not name:
        raise ValidationError("please provide a valid package.name")
    if not version:
        raise ValidationError("please provide a valid package.version")

    descriptor = PackageDescriptor(
        name=name,
        version=version,
        root=root,
        environment=environment,
        description=description,
        main=main,
    )

    ignore_raw = record("ignore", lookup("ignore", opts.ignore))
    ignore = _manifest_list(ignore_raw, key="ignore", source=sources.get("ignore"))
    if ignore is None:
        ignore, ignore_file = load_ignore_fallback(root)
        if ignore_file:
            sources["ignore"] = ignore_file
    for idx, item in enumerate(ignore):
        if not isinstance(item, str):
            raise ValidationError(f"ignore[{idx}] must be a string (type={type(item).__name__})")

    include_raw: Any = opts.include_only
    if include_raw is not None:
        sources["include_only"] = "options"
    else:
        include_raw = record("include_only", lookup("include_only", None, "includeOnly"))
    include_only = _manifest_list(include_raw, key="include_only", source=sources.get("include_only"))

    adapters = _manifest_list(
        record("adapters", lookup("adapters", opts.adapters)),
        key="adapters",
        source=sources.get("adapters"),
        split_commas=True,
    )
    if not adapters:
        adapters = list(DEFAULT_ADAPTERS)

    pipelining = record("pipelining", lookup("pipelining", opts.pipelining)) or {}
    if not isinstance(pipelining, Mapping):
        raise ValidationError("please provide a valid options.pipelining")

    dependencies = record("dependencies", lookup("dependencies", opts.dependencies))

    return PackageConfig(
        descriptor=descriptor,
        options=opts,
        dependencies=dependencies,
        adapters=tuple(adapters),
        pipelining=dict(pipelining),
        ignore=tuple(ignore),
        include_only=tuple(include_only) if include_only is not None else None,
        sources=sources,
        manifest_paths=tuple(meta["paths"]),
    )
