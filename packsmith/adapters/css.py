from __future__ import annotations

from packsmith.adapters._text import TextAdapter


class CssAdapter(TextAdapter):
    name = "css"
    extensions = (".css",)


ADAPTER = CssAdapter()
