from __future__ import annotations

import base64

from buildkit.adapters import ContentStream, PassthroughAdapter

# base64 works on 3-byte groups; carry the remainder between chunks.
_GROUP = 3


class BlobAdapter(PassthroughAdapter):
    """Base64-encodes binary content so it can travel inside text bundles."""

    name = "blob"
    extensions = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".woff", ".woff2", ".ttf")

    async def build_stream(self, stream: ContentStream) -> ContentStream:
        pending = b""
        async for chunk in stream:
            pending += chunk
            cut = len(pending) - len(pending) % _GROUP
            if cut:
                yield base64.b64encode(pending[:cut])
                pending = pending[cut:]
        if pending:
            yield base64.b64encode(pending)

    async def load_stream(self, stream: ContentStream) -> ContentStream:
        pending = b""
        async for chunk in stream:
            pending += b"".join(chunk.split())
            cut = len(pending) - len(pending) % 4
            if cut:
                yield base64.b64decode(pending[:cut], validate=True)
                pending = pending[cut:]
        if pending:
            raise ValueError(f"truncated base64 content ({len(pending)} trailing bytes)")


ADAPTER = BlobAdapter()
