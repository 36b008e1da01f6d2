"""Package-level asset build pipeline built on `buildkit`."""

from packsmith.framework.build import ArtifactEntry, BuildArtifact, BuildOrchestrator
from packsmith.framework.config import PackageDescriptor, PackageOptions
from packsmith.framework.dependencies import DependencyGraph
from packsmith.framework.discovery import ContentRecord, FileTreeWalker
from packsmith.framework.loader import PackageLoader
from packsmith.framework.package import Package
from packsmith.framework.store import LocalDirectoryStorage, StoreGate

__version__ = "0.1.0"

__all__ = [
    "ArtifactEntry",
    "BuildArtifact",
    "BuildOrchestrator",
    "ContentRecord",
    "DependencyGraph",
    "FileTreeWalker",
    "LocalDirectoryStorage",
    "Package",
    "PackageDescriptor",
    "PackageLoader",
    "PackageOptions",
    "StoreGate",
]
