from __future__ import annotations

from buildkit.adapters import PassthroughAdapter


class DummyAdapter(PassthroughAdapter):
    name = "dummy"


ADAPTER = DummyAdapter()
