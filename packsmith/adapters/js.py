from __future__ import annotations

from packsmith.adapters._text import TextAdapter


class JsAdapter(TextAdapter):
    name = "js"
    extensions = (".js", ".mjs", ".cjs")


ADAPTER = JsAdapter()
