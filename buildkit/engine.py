"""Stream plumbing for running content through adapter chains.

A chain is a sequence of adapters. Each stage receives the previous stage's
output stream, so stage *i+1* only ever observes what stage *i* produced.
This module is app-agnostic and must not import `packsmith.*`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Protocol

from buildkit.errors import AdapterExecutionError, ContentReadError

Direction = Literal["build", "load"]
DEFAULT_CHUNK_SIZE = 64 * 1024


def utc_now_iso8601() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


async def iter_file(
    path: str | Path, *, record_path: str, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> AsyncIterator[bytes]:
    """Read a file in chunks, doing the blocking reads in a worker thread."""

    try:
        handle = await asyncio.to_thread(open, path, "rb")
    except OSError as exc:
        raise ContentReadError(f"Cannot open {record_path}: {exc}", record_path=record_path) from exc
    try:
        while True:
            try:
                chunk = await asyncio.to_thread(handle.read, chunk_size)
            except OSError as exc:
                raise ContentReadError(
                    f"Cannot read {record_path}: {exc}", record_path=record_path
                ) from exc
            if not chunk:
                return
            yield chunk
    finally:
        handle.close()


async def iter_bytes(data: bytes, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    for offset in range(0, len(data), chunk_size):
        yield data[offset : offset + chunk_size]


async def collect(stream: AsyncIterator[bytes]) -> bytes:
    parts: list[bytes] = []
    async for chunk in stream:
        if not isinstance(chunk, (bytes, bytearray, memoryview)):
            raise TypeError(f"Stream produced non-bytes chunk (type={type(chunk).__name__})")
        parts.append(bytes(chunk))
    return b"".join(parts)


@dataclass
class StageMetrics:
    adapter: str
    index: int
    chunks: int = 0
    bytes: int = 0


@dataclass
class ChainRun:
    """Book-keeping for one record's trip through its chain."""

    record_path: str
    direction: Direction
    stages: list[StageMetrics] = field(default_factory=list)
    started_at: str = field(default_factory=utc_now_iso8601)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.record_path,
            "direction": self.direction,
            "started_at": self.started_at,
            "stages": [
                {"adapter": s.adapter, "index": s.index, "chunks": s.chunks, "bytes": s.bytes}
                for s in self.stages
            ],
        }


class ChainRecorder(Protocol):
    def on_chain_start(self, run: ChainRun, adapters: Sequence[str]) -> None:
        ...

    def on_chain_end(self, run: ChainRun) -> None:
        ...

    def on_chain_error(self, run: ChainRun, exc: Exception) -> None:
        ...


class DefaultChainRecorder:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def on_chain_start(self, run: ChainRun, adapters: Sequence[str]) -> None:
        chain = " -> ".join(adapters) or "<passthrough>"
        self.logger.debug("Chain: %s (%s, %s)", run.record_path, run.direction, chain)

    def on_chain_end(self, run: ChainRun) -> None:
        tokens = [f"{stage.adapter}={stage.bytes}B" for stage in run.stages]
        if tokens:
            self.logger.info("Transformed %s (%s)", run.record_path, ", ".join(tokens))
        else:
            self.logger.info("Copied %s", run.record_path)

    def on_chain_error(self, run: ChainRun, exc: Exception) -> None:
        self.logger.error("Chain failed: %s (%s)", run.record_path, exc)


class NullChainRecorder:
    def on_chain_start(self, run: ChainRun, adapters: Sequence[str]) -> None:
        return

    def on_chain_end(self, run: ChainRun) -> None:
        return

    def on_chain_error(self, run: ChainRun, exc: Exception) -> None:
        return


def validate_recorder(recorder: Any) -> None:
    required = ("on_chain_start", "on_chain_end", "on_chain_error")
    for name in required:
        method = getattr(recorder, name, None)
        if method is None or not callable(method):
            raise TypeError(f"Chain recorder missing required method: {name}")


async def _guarded_stage(
    stream: AsyncIterator[bytes],
    *,
    metrics: StageMetrics,
    record_path: str,
) -> AsyncIterator[bytes]:
    try:
        async for chunk in stream:
            if not isinstance(chunk, (bytes, bytearray, memoryview)):
                raise TypeError(
                    f"adapter yielded non-bytes chunk (type={type(chunk).__name__})"
                )
            chunk = bytes(chunk)
            metrics.chunks += 1
            metrics.bytes += len(chunk)
            yield chunk
    except (AdapterExecutionError, ContentReadError):
        # Already attributed by an earlier stage (or by the reader).
        raise
    except Exception as exc:
        raise AdapterExecutionError(
            f"Adapter {metrics.adapter} failed on {record_path}: {exc}",
            record_path=record_path,
            adapter_name=metrics.adapter,
        ) from exc


def compose_chain(
    source: AsyncIterator[bytes],
    adapters: Iterable[Any],
    *,
    run: ChainRun,
) -> AsyncIterator[bytes]:
    """Wire `source` through every adapter in order and return the final stream."""

    stream = source
    for index, adapter in enumerate(adapters):
        name = adapter.name
        transform = adapter.build_stream if run.direction == "build" else adapter.load_stream
        try:
            produced = transform(stream)
        except Exception as exc:
            raise AdapterExecutionError(
                f"Adapter {name} failed on {run.record_path}: {exc}",
                record_path=run.record_path,
                adapter_name=name,
            ) from exc
        if not hasattr(produced, "__aiter__"):
            raise AdapterExecutionError(
                f"Adapter {name} returned a non-stream (type={type(produced).__name__}) "
                f"for {run.record_path}",
                record_path=run.record_path,
                adapter_name=name,
            )
        metrics = StageMetrics(adapter=name, index=index)
        run.stages.append(metrics)
        stream = _guarded_stage(produced, metrics=metrics, record_path=run.record_path)
    return stream


async def run_chain(
    source: AsyncIterator[bytes],
    adapters: Sequence[Any],
    *,
    record_path: str,
    direction: Direction = "build",
    recorder: ChainRecorder | None = None,
    timeout: float | None = None,
) -> tuple[bytes, ChainRun]:
    """Drain `source` through `adapters` and return the final bytes."""

    recorder = recorder or NullChainRecorder()
    run = ChainRun(record_path=record_path, direction=direction)
    recorder.on_chain_start(run, [adapter.name for adapter in adapters])
    try:
        stream = compose_chain(source, adapters, run=run)
        if timeout is None:
            content = await collect(stream)
        else:
            try:
                content = await asyncio.wait_for(collect(stream), timeout=timeout)
            except asyncio.TimeoutError as exc:
                stage = run.stages[-1].adapter if run.stages else None
                raise AdapterExecutionError(
                    f"Chain timed out after {timeout}s on {record_path}",
                    record_path=record_path,
                    adapter_name=stage,
                ) from exc
    except Exception as exc:
        recorder.on_chain_error(run, exc)
        raise
    recorder.on_chain_end(run)
    return content, run
