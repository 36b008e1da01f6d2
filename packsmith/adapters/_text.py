from __future__ import annotations

import codecs

from buildkit.adapters import ContentStream, PassthroughAdapter


class TextAdapter(PassthroughAdapter):
    """Forwards content unchanged after checking it decodes as UTF-8."""

    encoding = "utf-8"

    async def build_stream(self, stream: ContentStream) -> ContentStream:
        decoder = codecs.getincrementaldecoder(self.encoding)()
        async for chunk in stream:
            decoder.decode(chunk)
            yield chunk
        decoder.decode(b"", final=True)
