import pytest

from flowcheck.rules.engine import validate_node_config
from flowcheck.validator import ValidationOptions, validate_workflow


def _codes(issues, code):
    return [i for i in issues if i.code == code]


@pytest.mark.parametrize("case", ["A_single_webhook", "C_agent_three_models", "D_vector_store_without_embeddings"])
def test_validation_is_idempotent(case, load_case, catalog):
    wf = load_case(case)
    first = validate_workflow(wf, catalog=catalog).to_dict()
    second = validate_workflow(wf, catalog=catalog).to_dict()
    assert first == second


def test_workflow_is_not_mutated(load_case, catalog):
    wf = load_case("D_vector_store_without_embeddings")
    before = repr(wf)
    validate_workflow(wf, ValidationOptions(profile="strict"), catalog=catalog)
    assert repr(wf) == before


@pytest.mark.parametrize("length", [1, 2, 3, 5, 8])
@pytest.mark.parametrize("entry", [0, -1])
def test_cycle_reported_exactly_once(length, entry, make_workflow):
    ring = [f"Step {i}" for i in range(length)]
    nodes = [("Start", "manualTrigger")] + [(n, "set") for n in ring]
    edges = [(ring[i], ring[(i + 1) % length]) for i in range(length)]
    edges.append(("Start", ring[entry]))
    result = validate_workflow(make_workflow(nodes, edges))
    cycles = _codes(result.errors, "CYCLE")
    assert len(cycles) == 1
    assert not result.valid


def test_cycle_path_starts_at_same_node_for_any_entry(make_workflow):
    nodes = [("Start", "manualTrigger"), ("A", "set"), ("B", "set"), ("C", "set")]
    ring = [("A", "B"), ("B", "C"), ("C", "A")]
    m1 = _codes(validate_workflow(make_workflow(nodes, ring + [("Start", "A")])).errors, "CYCLE")[0].message
    m2 = _codes(validate_workflow(make_workflow(nodes, ring + [("Start", "C")])).errors, "CYCLE")[0].message
    assert m1 == m2
    assert "A -> B -> C -> A" in m1


def test_cycle_over_error_connections(make_workflow):
    nodes = [("Start", "manualTrigger"), ("Fetch", "set"), ("Retry", "set")]
    edges = [("Start", "Fetch"), ("Fetch", "Retry", "error"), ("Retry", "Fetch")]
    result = validate_workflow(make_workflow(nodes, edges))
    assert len(_codes(result.errors, "CYCLE")) == 1


def test_duplicate_name_pair_and_rename(make_workflow):
    nodes = [("Start", "manualTrigger"), ("Set", "set"), ("Set", "set")]
    wf = make_workflow(nodes, [("Start", "Set")])
    dups = _codes(validate_workflow(wf).errors, "DUPLICATE_NAME")
    assert len(dups) == 1
    assert "'n1'" in dups[0].message and "'n2'" in dups[0].message

    wf["nodes"][2]["name"] = "Set 2"
    wf["connections"]["Set"] = {"main": [[{"node": "Set 2", "type": "main", "index": 0}]]}
    assert _codes(validate_workflow(wf).errors, "DUPLICATE_NAME") == []


def test_duplicate_names_keep_their_own_descriptors(make_workflow, catalog):
    nodes = [("Start", "manualTrigger", {"typeVersion": 1}),
             ("Dup", "httpRequest", {"typeVersion": 4.2, "parameters": {"url": "https://example.com"}}),
             ("Dup", "set", {"typeVersion": 3.4})]
    wf = make_workflow(nodes, [("Start", "Dup")])
    opts = ValidationOptions(profile="strict")
    result = validate_workflow(wf, opts, catalog=catalog)
    assert [i.node_id for i in _codes(result.errors, "MISSING_REQUIRED")] == []

    before = {(i.code, i.node_id) for i in result.errors}
    wf["nodes"][2]["name"] = "Dup 2"
    after = {(i.code, i.node_id) for i in validate_workflow(wf, opts, catalog=catalog).errors}
    assert before - after == {("DUPLICATE_NAME", "n2")}
    assert after <= before


def test_duplicate_names_one_error_per_pair(make_workflow):
    nodes = [("Start", "manualTrigger")] + [("Same", "set")] * 3
    wf = make_workflow(nodes, [("Start", "Same")])
    assert len(_codes(validate_workflow(wf).errors, "DUPLICATE_NAME")) == 3


def test_duplicate_ids(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"), ("Set", "set")], [("Start", "Set")])
    wf["nodes"][1]["id"] = "n0"
    dups = _codes(validate_workflow(wf).errors, "DUPLICATE_ID")
    assert len(dups) == 1
    assert '"Start"' in dups[0].message and '"Set"' in dups[0].message


def _issue_keys(result):
    return {(i.severity.value, i.node_name, i.code) for i in result.errors + result.warnings}


def test_workflow_profiles_are_monotone(make_workflow, catalog):
    nodes = [
        ("Start", "manualTrigger", {"typeVersion": 1}),
        ("Call API", "httpRequest", {"typeVersion": 4.2, "parameters": {
            "method": "POST", "url": "https://api.example.com/orders", "apiKey": "sk-123"}}),
        ("Transform", "code", {"typeVersion": 2, "parameters": {"jsCode": "const x = eval('1');\nreturn 5"}}),
        ("Store", "postgres", {"typeVersion": 2.5, "continueOnFail": True, "parameters": {
            "operation": "executeQuery", "query": "DELETE FROM orders"}}),
    ]
    wf = make_workflow(nodes, [("Start", "Call API"), ("Call API", "Transform"), ("Transform", "Store")])
    keys = {p: _issue_keys(validate_workflow(wf, ValidationOptions(profile=p), catalog=catalog))
            for p in ("minimal", "runtime", "ai-friendly", "strict")}
    assert keys["minimal"] <= keys["runtime"] <= keys["ai-friendly"] <= keys["strict"]
    assert keys["minimal"] != keys["strict"]


@pytest.mark.parametrize("node_type,config,settings", [
    ("n8n-nodes-base.httpRequest", {"method": "PUT", "url": "ftp://x", "token": "abc"}, {"retryOnFail": True}),
    ("n8n-nodes-base.mongoDb", {"operation": "find"}, {}),
    ("n8n-nodes-base.code", {"jsCode": "const a = 1;\nexec('rm')"}, {"continueOnFail": True}),
    ("n8n-nodes-base.mySql", {"operation": "executeQuery", "query": "SELECT * FROM t"}, {}),
])
def test_rule_engine_profiles_are_monotone(node_type, config, settings):
    def keys(profile):
        r = validate_node_config(node_type, config, profile=profile, settings=settings)
        return {(i.severity.value, i.code) for i in r.errors + r.warnings}

    assert keys("minimal") <= keys("runtime") <= keys("ai-friendly") <= keys("strict")
