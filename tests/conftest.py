import copy
import json
from pathlib import Path

import pytest

from flowcheck.catalog.client import StaticCatalog

DATA = Path(__file__).parent / "data"
CASES = Path(__file__).parent / "cases"


@pytest.fixture(scope="session")
def catalog_path() -> Path:
    return DATA / "catalog.json"


@pytest.fixture(scope="session")
def catalog(catalog_path) -> StaticCatalog:
    return StaticCatalog.from_file(catalog_path)


@pytest.fixture
def load_case():
    """Load tests/cases/<name>/workflow.json as a fresh dict."""
    def _load(name: str) -> dict:
        with (CASES / name / "workflow.json").open("r", encoding="utf-8") as f:
            return json.load(f)
    return _load


@pytest.fixture
def make_workflow():
    """
    Build a workflow dict from (name, type, extra) node tuples and
    (source, target, kind) edges. Types without a package prefix get
    n8n-nodes-base.
    """
    def _make(nodes, edges=(), **extra):
        out_nodes = []
        for i, spec in enumerate(nodes):
            name, node_type = spec[0], spec[1]
            fields = copy.deepcopy(spec[2]) if len(spec) > 2 else {}
            if "." not in node_type:
                node_type = f"n8n-nodes-base.{node_type}"
            node = {"id": f"n{i}", "name": name, "type": node_type, "position": [i * 200, 0],
                    "parameters": {}}
            node.update(fields)
            out_nodes.append(node)
        connections = {}
        for edge in edges:
            source, target = edge[0], edge[1]
            kind = edge[2] if len(edge) > 2 else "main"
            slots = connections.setdefault(source, {}).setdefault(kind, [[]])
            slots[0].append({"node": target, "type": kind, "index": 0})
        wf = {"name": "test", "nodes": out_nodes, "connections": connections}
        wf.update(extra)
        return wf
    return _make
