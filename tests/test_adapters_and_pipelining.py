import pytest

from buildkit.adapters import AdapterKindRegistry, AdapterRegistry, PassthroughAdapter
from buildkit.errors import InvalidAdapterError, InvalidFilterError, ResolutionError, ValidationError
from buildkit.pipelining import PipelineTable
from packsmith.adapters import WELL_KNOWN_ADAPTERS, get_adapter_kinds


class FakeAdapter(PassthroughAdapter):
    def __init__(self, name, extensions=()):
        self.name = name
        self.extensions = tuple(extensions)


def _registry(*names, **extensions):
    kinds = AdapterKindRegistry.from_mapping(
        {name: (lambda name=name: FakeAdapter(name, extensions.get(name, ()))) for name in names}
    )
    return AdapterRegistry(kinds)


def test_well_known_kinds_are_listed():
    assert get_adapter_kinds().available() == tuple(sorted(WELL_KNOWN_ADAPTERS))


def test_resolve_well_known_name_loads_module_adapter():
    registry = AdapterRegistry(get_adapter_kinds())

    adapter = registry.resolve("css")

    assert adapter.name == "css"
    assert ".css" in adapter.extensions


def test_resolve_accepts_instances_and_classes():
    registry = _registry()

    instance = FakeAdapter("less")
    assert registry.resolve(instance) is instance

    class Stylus(PassthroughAdapter):
        name = "stylus"

    assert registry.resolve(Stylus).name == "stylus"


def test_resolve_accepts_importable_module_with_attribute():
    registry = _registry()

    adapter = registry.resolve("packsmith.adapters.gzip:ADAPTER")

    assert adapter.name == "gzip"


@pytest.mark.parametrize("identifier", ["", "not_a_real_adapter_module_xyz", object(), 42])
def test_resolve_rejects_unusable_identifiers(identifier):
    registry = _registry()
    with pytest.raises(InvalidAdapterError, match=r"invalid adapter provided"):
        registry.resolve(identifier)


def test_invalid_adapter_is_also_a_lookup_and_type_error():
    registry = _registry()
    with pytest.raises(LookupError):
        registry.resolve(object())
    with pytest.raises(TypeError):
        registry.resolve(object())


def test_unknown_kind_reports_available_names():
    kinds = AdapterKindRegistry.from_mapping({"css": lambda: FakeAdapter("css")})
    with pytest.raises(ResolutionError, match=r"Unknown adapter kind: less \(available: css\)"):
        kinds.load("less")


def test_duplicate_kind_names_are_rejected():
    with pytest.raises(ValueError, match=r"Duplicate adapter kind: css"):
        AdapterKindRegistry.from_mapping({"css": "x", "CSS": "y"})


def test_bind_unbind_has():
    registry = _registry("less", "css")

    registry.bind("less")
    assert registry.has("less")
    assert not registry.has("css")
    assert registry.names() == ("less",)

    registry.unbind("less")
    assert not registry.has("less")
    assert len(registry) == 0


def test_rebinding_a_name_replaces_the_previous_adapter():
    registry = _registry()
    first = registry.bind(FakeAdapter("css"))
    second = registry.bind(FakeAdapter("css"))

    assert first is not second
    assert registry.get("css") is second
    assert len(registry) == 1


def test_get_unbound_name_fails():
    registry = _registry()
    with pytest.raises(ResolutionError, match=r"Adapter not bound: css"):
        registry.get("css")


def test_default_chain_prefers_extension_then_first_bound():
    registry = _registry("js", "css", js=(".js",), css=(".css",))
    registry.bind("js")
    registry.bind("css")

    assert [a.name for a in registry.default_chain("styles/site.css")] == ["css"]
    assert [a.name for a in registry.default_chain("README")] == ["js"]
    assert _registry().default_chain("a.js") == ()


def test_pipelining_accepts_comma_strings_and_lists():
    registry = _registry("less", "css", "gzip")
    table = PipelineTable.from_mapping({"*.less": "less, css", "*.css": ["css", "gzip"]}, registry)

    assert [rule.adapter_names() for rule in table.rules] == [("less", "css"), ("css", "gzip")]
    assert set(registry.names()) == {"less", "css", "gzip"}


def test_pipelining_first_matching_rule_wins():
    registry = _registry("less", "css", "gzip")
    table = PipelineTable(registry)
    table.add_rule("**.less", ["less", "css"])
    table.add_rule("theme.less", ["gzip"])

    assert [a.name for a in table.resolve_chain("theme.less")] == ["less", "css"]


def test_pipelining_falls_back_to_default_chain():
    registry = _registry("js", "less", js=(".js",))
    registry.bind("js")
    table = PipelineTable.from_mapping({"*.less": "less"}, registry)

    assert [a.name for a in table.resolve_chain("app.js")] == ["js"]
    assert [a.name for a in table.resolve_chain("lib/app.js")] == ["js"]


def test_pipelining_rules_reference_bound_adapters():
    registry = _registry("css")
    bound = registry.bind("css")
    table = PipelineTable.from_mapping({"*.css": "css"}, registry)

    assert table.resolve_chain("a.css") == (bound,)


def test_pipelining_uses_the_adapter_object_it_was_given():
    registry = _registry("css")
    stock = registry.bind("css")
    custom = FakeAdapter("css")
    table = PipelineTable(registry)

    table.add_rule("*.css", [custom])

    assert table.resolve_chain("x.css") == (custom,)
    assert registry.get("css") is stock


def test_pipelining_binds_new_adapter_objects():
    registry = _registry()
    table = PipelineTable(registry)
    less = FakeAdapter("less")

    table.add_rule("*.less", [less])

    assert registry.get("less") is less


def test_pipelining_rejects_bad_shapes():
    registry = _registry("css")
    with pytest.raises(ValidationError, match=r"pipelining must be a mapping"):
        PipelineTable.from_mapping(["*.css"], registry)
    with pytest.raises(ValidationError, match=r"must name at least one adapter"):
        PipelineTable.from_mapping({"*.css": " , "}, registry)
    with pytest.raises(InvalidFilterError):
        PipelineTable.from_mapping({"": "css"}, registry)
    with pytest.raises(InvalidAdapterError):
        PipelineTable.from_mapping({"*.css": "no_such_adapter_module_xyz"}, registry)
