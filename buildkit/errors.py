"""Error taxonomy shared by the kernel and its consumers."""

from __future__ import annotations


class BuildkitError(Exception):
    """Base class for every error raised by the build pipeline."""


class ValidationError(BuildkitError, ValueError):
    """A required option is missing or malformed."""


class InvalidFilterError(ValidationError, TypeError):
    """A filter string cannot be compiled into a path matcher."""


class ResolutionError(BuildkitError, LookupError):
    """A package root or adapter identifier cannot be resolved."""


class InvalidAdapterError(ResolutionError, TypeError):
    """An adapter identifier resolved to nothing usable."""


class DiscoveryError(BuildkitError):
    """The package file tree could not be walked."""


class BuildPreconditionError(BuildkitError):
    """A build was requested without content or without adapters."""


class AdapterExecutionError(BuildkitError):
    """A bound adapter failed while transforming a file's stream."""

    def __init__(
        self,
        message: str,
        *,
        record_path: str | None = None,
        adapter_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.record_path = record_path
        self.adapter_name = adapter_name


class ContentReadError(BuildkitError):
    """A discovered file could not be read during a build."""

    def __init__(self, message: str, *, record_path: str | None = None) -> None:
        super().__init__(message)
        self.record_path = record_path


class StoreError(BuildkitError):
    """A store was requested without a completed build."""
