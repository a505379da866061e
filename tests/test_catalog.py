import pytest

from flowcheck.catalog.client import CachingCatalog, StaticCatalog
from flowcheck.catalog.normalizer import detect_package, normalize_type, to_full_form, type_variations
from flowcheck.catalog.similarity import suggest_types
from flowcheck.errors import CatalogError


@pytest.mark.parametrize("raw,short", [
    ("n8n-nodes-base.httpRequest", "nodes-base.httpRequest"),
    ("@n8n/n8n-nodes-langchain.agent", "nodes-langchain.agent"),
    ("n8n-nodes-langchain.agent", "nodes-langchain.agent"),
    ("nodes-base.set", "nodes-base.set"),
    ("n8n-nodes-custom.thing", "n8n-nodes-custom.thing"),
])
def test_normalize_type(raw, short):
    assert normalize_type(raw) == short


def test_full_form_round_trip():
    assert to_full_form("nodes-langchain.agent") == "@n8n/n8n-nodes-langchain.agent"
    assert to_full_form("nodes-base.set") == "n8n-nodes-base.set"


def test_detect_package():
    assert detect_package("n8n-nodes-base.set") == "base"
    assert detect_package("@n8n/n8n-nodes-langchain.agent") == "langchain"
    assert detect_package("n8n-nodes-custom.thing") == "community"
    assert detect_package("webhook") == "unknown"


def test_type_variations_order():
    assert type_variations("n8n-nodes-base.set") == ["n8n-nodes-base.set", "nodes-base.set"]
    bare = type_variations("webhook")
    assert bare[0] == "webhook"
    assert bare[1:3] == ["nodes-base.webhook", "n8n-nodes-base.webhook"]


@pytest.mark.parametrize("layout", ["list", "mapping", "nodes"])
def test_static_catalog_layouts(layout):
    entry = {"type": "nodes-base.set", "currentVersion": 3.4, "isVersioned": True}
    data = {
        "list": [entry],
        "mapping": {"nodes-base.set": {"currentVersion": 3.4, "isVersioned": True}},
        "nodes": {"nodes": [entry]},
    }[layout]
    cat = StaticCatalog.from_data(data)
    assert len(cat) == 1
    assert cat.current_version("nodes-base.set") == 3.4
    assert cat.resolve("nodes-base.nope") is None


def test_static_catalog_rejects_bad_layout():
    with pytest.raises(CatalogError):
        StaticCatalog.from_data("not a catalog")
    with pytest.raises(CatalogError):
        StaticCatalog.from_data([{"displayName": "No type"}])


def test_catalog_file_errors(tmp_path):
    bad = tmp_path / "catalog.json"
    bad.write_text("{oops", encoding="utf-8")
    with pytest.raises(CatalogError):
        StaticCatalog.from_file(bad)
    with pytest.raises(CatalogError):
        StaticCatalog.from_file(tmp_path / "catalog.txt")


def test_fixture_catalog(catalog):
    desc = catalog.resolve("nodes-base.webhook")
    assert desc.current_version == 2
    assert [p.name for p in desc.properties if p.required] == ["path"]


def test_caching_lookup_tries_spellings(catalog):
    cache = CachingCatalog(catalog)
    desc, matched = cache.lookup("n8n-nodes-base.httpRequest")
    assert desc is not None and matched == "nodes-base.httpRequest"
    assert cache.lookup("n8n-nodes-base.nope") == (None, None)


class CountingCatalog:
    def __init__(self, inner, broken=()):
        self.inner = inner
        self.broken = set(broken)
        self.calls = []

    def resolve(self, node_type):
        self.calls.append(node_type)
        if node_type in self.broken:
            raise ConnectionError("catalog unreachable")
        return self.inner.resolve(node_type)

    def current_version(self, node_type):
        d = self.resolve(node_type)
        return d.current_version if d else None


def test_caching_resolves_each_type_once(catalog):
    inner = CountingCatalog(catalog)
    cache = CachingCatalog(inner)
    for _ in range(3):
        cache.lookup("n8n-nodes-base.set")
    assert inner.calls.count("nodes-base.set") == 1


def test_failing_lookup_is_not_found(catalog):
    inner = CountingCatalog(catalog, broken={"nodes-base.set"})
    cache = CachingCatalog(inner)
    assert cache.resolve("nodes-base.set") is None
    assert "catalog unreachable" in cache.failures["nodes-base.set"]


def test_prefetch_fills_cache(catalog):
    inner = CountingCatalog(catalog, broken={"nodes-base.code"})
    cache = CachingCatalog(inner)
    cache.prefetch(["n8n-nodes-base.set", "n8n-nodes-base.code", "n8n-nodes-base.set"])
    calls = len(inner.calls)
    assert cache.lookup("n8n-nodes-base.set")[0] is not None
    assert cache.lookup("n8n-nodes-base.code") == (None, None)
    assert len(inner.calls) == calls
    assert "nodes-base.code" in cache.failures


@pytest.mark.parametrize("typo,expected", [
    ("n8n-nodes-base.webhok", "n8n-nodes-base.webhook"),
    ("n8n-nodes-base.httpRequst", "n8n-nodes-base.httpRequest"),
    ("webhook", "n8n-nodes-base.webhook"),
    ("n8n-nodes-base.cron", "n8n-nodes-base.scheduleTrigger"),
])
def test_suggest_types(catalog, typo, expected):
    assert expected in suggest_types(typo, catalog.list_types())


def test_suggest_types_limits_and_excludes_input(catalog):
    out = suggest_types("n8n-nodes-base.set", catalog.list_types())
    assert "n8n-nodes-base.set" not in out
    assert len(suggest_types("n8n-nodes-base.xyzzy", catalog.list_types())) <= 3


def test_current_version_prefers_catalog_answer(catalog):
    class Pinned(CountingCatalog):
        def current_version(self, node_type):
            self.calls.append(("version", node_type))
            return 9.0

    inner = Pinned(catalog)
    cache = CachingCatalog(inner)
    assert cache.current_version("nodes-base.set") == 9.0
    assert cache.current_version("nodes-base.set") == 9.0
    assert inner.calls.count(("version", "nodes-base.set")) == 1
    assert cache.current_version("nodes-base.nothing") is None


def test_current_version_falls_back_to_descriptor(catalog):
    class Silent(CountingCatalog):
        def current_version(self, node_type):
            raise ConnectionError("catalog unreachable")

    cache = CachingCatalog(Silent(catalog))
    assert cache.current_version("nodes-base.set") == 3.4
