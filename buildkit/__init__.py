"""Reusable build kernel: filters, adapter chains and pipelining rules.

This package is intentionally independent of `packsmith.*`. Manifest formats,
storage layouts and concrete adapters live in the consuming application.
"""

from buildkit.adapters import (
    Adapter,
    AdapterKindRegistry,
    AdapterRegistry,
    ContentStream,
    PassthroughAdapter,
)
from buildkit.config_namespace import ConfigNamespace
from buildkit.engine import (
    ChainRecorder,
    ChainRun,
    DefaultChainRecorder,
    NullChainRecorder,
    collect,
    iter_bytes,
    iter_file,
    run_chain,
)
from buildkit.errors import (
    AdapterExecutionError,
    BuildkitError,
    BuildPreconditionError,
    ContentReadError,
    DiscoveryError,
    InvalidAdapterError,
    InvalidFilterError,
    ResolutionError,
    StoreError,
    ValidationError,
)
from buildkit.filters import FilterSet
from buildkit.memo import OnceTask
from buildkit.patterns import compile_filter, matches_any
from buildkit.pipelining import PipelineRule, PipelineTable

__all__ = [
    "Adapter",
    "AdapterExecutionError",
    "AdapterKindRegistry",
    "AdapterRegistry",
    "BuildPreconditionError",
    "BuildkitError",
    "ChainRecorder",
    "ChainRun",
    "ConfigNamespace",
    "ContentReadError",
    "ContentStream",
    "DefaultChainRecorder",
    "DiscoveryError",
    "FilterSet",
    "InvalidAdapterError",
    "InvalidFilterError",
    "NullChainRecorder",
    "OnceTask",
    "PassthroughAdapter",
    "PipelineRule",
    "PipelineTable",
    "ResolutionError",
    "StoreError",
    "ValidationError",
    "collect",
    "compile_filter",
    "iter_bytes",
    "iter_file",
    "matches_any",
    "run_chain",
]
