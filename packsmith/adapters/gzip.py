from __future__ import annotations

import zlib

from buildkit.adapters import ContentStream, PassthroughAdapter

# wbits=31 selects the gzip container.
_GZIP_WBITS = 31


class GzipAdapter(PassthroughAdapter):
    name = "gzip"

    def __init__(self, level: int = 9) -> None:
        self.level = level

    async def build_stream(self, stream: ContentStream) -> ContentStream:
        compressor = zlib.compressobj(self.level, zlib.DEFLATED, _GZIP_WBITS)
        async for chunk in stream:
            out = compressor.compress(chunk)
            if out:
                yield out
        yield compressor.flush()

    async def load_stream(self, stream: ContentStream) -> ContentStream:
        decompressor = zlib.decompressobj(_GZIP_WBITS)
        async for chunk in stream:
            out = decompressor.decompress(chunk)
            if out:
                yield out
        tail = decompressor.flush()
        if tail:
            yield tail
        if not decompressor.eof:
            raise ValueError("truncated gzip stream")


ADAPTER = GzipAdapter()
