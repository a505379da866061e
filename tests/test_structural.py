from flowcheck.catalog.client import StaticCatalog
from flowcheck.models import Severity, Workflow
from flowcheck.structural.checker import check_structure, is_trigger
from flowcheck.validator import ValidationOptions, validate_workflow


def _codes(issues):
    return [i.code for i in issues]


def test_missing_fields_are_reported_without_raising():
    result = validate_workflow({"name": "broken"})
    assert not result.valid
    assert _codes(result.errors) == ["MISSING_NODES", "MISSING_CONNECTIONS"]


def test_non_dict_document():
    result = validate_workflow(["not", "a", "workflow"])
    assert not result.valid
    assert "MISSING_NODES" in _codes(result.errors)


def test_empty_node_list_is_valid_with_warning():
    result = validate_workflow({"nodes": [], "connections": {}})
    assert result.valid
    assert _codes(result.warnings) == ["EMPTY_WORKFLOW"]


def test_single_non_webhook_node_is_an_error(make_workflow):
    result = validate_workflow(make_workflow([("Set", "set")]))
    assert "SINGLE_NODE_WORKFLOW" in _codes(result.errors)


def test_multi_node_without_connections(make_workflow):
    result = validate_workflow(make_workflow([("Start", "manualTrigger"), ("Set", "set")]))
    assert _codes(result.errors) == ["NO_CONNECTIONS"]
    # orphans are not reported on top of the missing connections
    assert "ORPHAN_NODE" not in _codes(result.warnings)
    assert any("Example connection structure" in s for s in result.suggestions)


def test_no_trigger_warning_and_suggestion(make_workflow):
    wf = make_workflow([("A", "set"), ("B", "set")], [("A", "B")])
    result = validate_workflow(wf)
    assert "NO_TRIGGER" in _codes(result.warnings)
    assert result.statistics.trigger_nodes == 0
    assert any(s.startswith("Add a trigger node") for s in result.suggestions)


def test_trigger_detection():
    node = Workflow.from_dict({"nodes": [
        {"name": "a", "type": "n8n-nodes-base.scheduleTrigger"},
        {"name": "b", "type": "n8n-nodes-base.respondToWebhook"},
        {"name": "c", "type": "@n8n/n8n-nodes-langchain.chatTrigger"},
        {"name": "d", "type": "n8n-nodes-base.start"},
    ], "connections": {}}).nodes
    assert [is_trigger(n) for n in node] == [True, False, True, True]


def test_statistics(make_workflow):
    nodes = [("Start", "manualTrigger"), ("A", "set"), ("B", "set", {"disabled": True}),
             ("Note", "stickyNote")]
    wf = make_workflow(nodes, [("Start", "A"), ("A", "B"), ("A", "Ghost")])
    result = validate_workflow(wf)
    stats = result.statistics
    assert (stats.total_nodes, stats.enabled_nodes, stats.trigger_nodes) == (3, 2, 1)
    assert (stats.valid_connections, stats.invalid_connections) == (2, 1)
    assert "DISABLED_TARGET" in _codes(result.warnings)
    assert "UNKNOWN_CONNECTION_TARGET" in _codes(result.errors)
    # sticky notes are never orphans
    assert "ORPHAN_NODE" not in _codes(result.warnings)


def test_target_written_as_id(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"), ("Set", "set")], [("Start", "n1")])
    result = validate_workflow(wf)
    assert _codes(result.errors) == ["CONNECTION_USES_ID"]
    assert "'Set'" in result.errors[0].message
    assert result.statistics.invalid_connections == 1


def test_unknown_source(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"), ("Set", "set")], [("Start", "Set"), ("Nobody", "Set")])
    assert "UNKNOWN_CONNECTION_SOURCE" in _codes(validate_workflow(wf).errors)


def test_orphan_node(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"), ("Set", "set"), ("Lonely", "set")], [("Start", "Set")])
    result = validate_workflow(wf)
    orphans = [w for w in result.warnings if w.code == "ORPHAN_NODE"]
    assert [w.node_name for w in orphans] == ["Lonely"]


def test_unconnected_trigger_is_not_an_orphan(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"), ("Set", "set"), ("Nightly", "scheduleTrigger")],
                       [("Start", "Set")])
    result = validate_workflow(wf)
    assert "ORPHAN_NODE" not in _codes(result.warnings)


def test_large_workflow_suggests_sub_workflows(make_workflow):
    steps = [f"Step {i}" for i in range(21)]
    nodes = [("Start", "manualTrigger")] + [(n, "set") for n in steps]
    edges = [("Start", steps[0])] + list(zip(steps, steps[1:]))
    result = validate_workflow(make_workflow(nodes, edges))
    assert result.statistics.total_nodes == 22
    assert any("smaller sub-workflows" in s for s in result.suggestions)

    small = validate_workflow(make_workflow(nodes[:5], edges[:4]))
    assert not any("smaller sub-workflows" in s for s in small.suggestions)


def test_missing_error_handling_is_one_aggregate_suggestion(make_workflow):
    calls = [f"Call {i}" for i in range(6)]
    nodes = [("Start", "manualTrigger")] + [
        (n, "httpRequest", {"parameters": {"url": "https://example.com"}}) for n in calls]
    edges = [("Start", c) for c in calls]
    result = validate_workflow(make_workflow(nodes, edges))
    lacking = [s for s in result.suggestions if s.startswith("Most nodes lack error handling")]
    assert len(lacking) == 1
    assert "(7 of 7)" in lacking[0]
    assert "6 of them call external services" in lacking[0]


def test_error_handling_suggestion_skipped_when_most_nodes_handle_errors(make_workflow):
    calls = [f"Call {i}" for i in range(6)]
    handled = {"onError": "continueRegularOutput"}
    nodes = [("Start", "manualTrigger")] + [
        (n, "httpRequest", {"parameters": {"url": "https://example.com"}, **handled}) for n in calls]
    edges = [("Start", c) for c in calls]
    result = validate_workflow(make_workflow(nodes, edges))
    assert not any(s.startswith("Most nodes lack error handling") for s in result.suggestions)


def test_sparse_slots_are_not_errors(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"), ("If", "if"), ("Yes", "set")])
    wf["connections"] = {
        "Start": {"main": [[{"node": "If", "type": "main", "index": 0}]]},
        "If": {"main": [None, [{"node": "Yes", "type": "main", "index": 0}]]},
    }
    result = validate_workflow(wf)
    assert result.valid, [str(e) for e in result.errors]
    assert result.statistics.valid_connections == 2


def test_malformed_connections(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"), ("Set", "set")])
    wf["connections"] = {"Start": {"main": "Set"}}
    assert "MALFORMED_CONNECTION" in _codes(validate_workflow(wf).errors)


def test_node_shape_errors(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"), ("Set", "set")], [("Start", "Set")])
    wf["nodes"][1]["parameters"] = ["not", "an", "object"]
    del wf["nodes"][0]["name"]
    result = validate_workflow(wf)
    shape = [e for e in result.errors if e.code == "INVALID_NODE_SHAPE"]
    assert len(shape) == 2


def test_unknown_type_with_suggestion(make_workflow, catalog):
    wf = make_workflow([("Start", "manualTrigger", {"typeVersion": 1}), ("Call", "httpRequst", {"typeVersion": 4.2})],
                       [("Start", "Call")])
    result = validate_workflow(wf, catalog=catalog)
    unknown = [e for e in result.errors if e.code == "UNKNOWN_NODE_TYPE"]
    assert len(unknown) == 1
    assert "n8n-nodes-base.httpRequest" in unknown[0].message


def test_short_form_type_resolves_with_warning(make_workflow, catalog):
    wf = make_workflow([("Start", "manualTrigger", {"typeVersion": 1}),
                        ("Set", "nodes-base.set", {"typeVersion": 3.4})], [("Start", "Set")])
    result = validate_workflow(wf, catalog=catalog)
    assert result.valid
    assert "NON_CANONICAL_TYPE" in _codes(result.warnings)


def test_version_checks(make_workflow, catalog):
    nodes = [("Start", "manualTrigger", {"typeVersion": 1}),
             ("Missing", "set"),
             ("Text", "set", {"typeVersion": "3"}),
             ("Old", "set", {"typeVersion": 2}),
             ("Future", "set", {"typeVersion": 9})]
    wf = make_workflow(nodes, [("Start", "Missing"), ("Missing", "Text"), ("Text", "Old"), ("Old", "Future")])
    result = validate_workflow(wf, catalog=catalog)
    by_node = {i.node_name: i.code for i in result.errors + result.warnings if i.code and "VERSION" in i.code}
    assert by_node == {
        "Missing": "MISSING_TYPE_VERSION",
        "Text": "INVALID_TYPE_VERSION",
        "Old": "OUTDATED_TYPE_VERSION",
        "Future": "TYPE_VERSION_TOO_HIGH",
    }


def test_version_check_uses_catalog_current_version(make_workflow, catalog):
    class Newer:
        def resolve(self, node_type):
            return catalog.resolve(node_type)

        def current_version(self, node_type):
            return 4.0 if node_type == "nodes-base.set" else catalog.current_version(node_type)

    nodes = [("Start", "manualTrigger", {"typeVersion": 1}), ("Set", "set", {"typeVersion": 3.4})]
    wf = make_workflow(nodes, [("Start", "Set")])
    assert "OUTDATED_TYPE_VERSION" not in _codes(validate_workflow(wf, catalog=catalog).warnings)
    outdated = [w for w in validate_workflow(wf, catalog=Newer()).warnings if w.code == "OUTDATED_TYPE_VERSION"]
    assert [w.node_name for w in outdated] == ["Set"]
    assert "Latest is 4.0" in outdated[0].message


def test_base_node_wired_as_ai_tool(make_workflow, catalog):
    nodes = [("Chat", "@n8n/n8n-nodes-langchain.chatTrigger", {"typeVersion": 1.1}),
             ("Agent", "@n8n/n8n-nodes-langchain.agent", {"typeVersion": 1.7}),
             ("Model", "@n8n/n8n-nodes-langchain.lmChatOpenAi", {"typeVersion": 1.2}),
             ("Notify", "slack", {"typeVersion": 2.2}),
             ("Fetch", "@n8n/n8n-nodes-langchain.toolHttpRequest", {"typeVersion": 1.1})]
    edges = [("Chat", "Agent"), ("Model", "Agent", "ai_languageModel"),
             ("Notify", "Agent", "ai_tool"), ("Fetch", "Agent", "ai_tool")]
    wf = make_workflow(nodes, edges)
    flagged = [w.node_name for w in validate_workflow(wf, catalog=catalog).warnings
               if w.code == "NOT_USABLE_AS_TOOL"]
    assert flagged == ["Notify"]

    usable = StaticCatalog.from_data([
        {"type": "nodes-base.slack", "displayName": "Slack", "isAITool": True, "properties": []}])
    result = validate_workflow(wf, catalog=usable)
    assert "NOT_USABLE_AS_TOOL" not in _codes(result.warnings)


def test_no_catalog_skips_type_resolution(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"), ("X", "n8n-nodes-base.doesNotExist")], [("Start", "X")])
    assert validate_workflow(wf).valid


def test_failing_catalog_becomes_not_found(make_workflow):
    class Broken:
        def resolve(self, node_type):
            raise RuntimeError("catalog offline")

        def current_version(self, node_type):
            return None

    wf = make_workflow([("Start", "manualTrigger"), ("Set", "set")], [("Start", "Set")])
    result = validate_workflow(wf, catalog=Broken())
    assert [e.code for e in result.errors] == ["UNKNOWN_NODE_TYPE", "UNKNOWN_NODE_TYPE"]


def test_long_linear_chain_is_info_above_runtime(make_workflow):
    names = [f"Step {i}" for i in range(12)]
    nodes = [("Start", "manualTrigger")] + [(n, "set") for n in names]
    chain = ["Start"] + names
    wf = make_workflow(nodes, list(zip(chain, chain[1:])))
    report = check_structure(Workflow.from_dict(wf))
    info = [i for i in report.issues if i.code == "LONG_LINEAR_CHAIN"]
    assert len(info) == 1 and info[0].severity is Severity.INFO
    assert "13 nodes" in info[0].message


    assert "LONG_LINEAR_CHAIN" not in _codes(validate_workflow(wf).warnings)
    assert "LONG_LINEAR_CHAIN" in _codes(validate_workflow(wf, ValidationOptions(profile="strict")).warnings)


def test_credentials_without_id(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"),
                        ("Slack", "slack", {"credentials": {"slackApi": {"name": "My Slack"}}})],
                       [("Start", "Slack")])
    assert "MISSING_CREDENTIAL_ID" in _codes(validate_workflow(wf).warnings)


def test_continue_error_output_without_error_branch(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"), ("Call", "httpRequest", {
        "onError": "continueErrorOutput", "parameters": {"url": "https://example.com"}})],
        [("Start", "Call")])
    assert "MISSING_ERROR_OUTPUT" in _codes(validate_workflow(wf).warnings)

    wf["nodes"].append({"id": "n9", "name": "Handle", "type": "n8n-nodes-base.set", "parameters": {}})
    wf["connections"]["Call"] = {"main": [None, [{"node": "Handle", "type": "main", "index": 0}]]}
    assert "MISSING_ERROR_OUTPUT" not in _codes(validate_workflow(wf).warnings)


def test_ai_sub_node_as_main_target(make_workflow):
    wf = make_workflow([("Start", "manualTrigger"), ("Model", "@n8n/n8n-nodes-langchain.lmChatOpenAi")],
                       [("Start", "Model")])
    assert "AI_SUB_NODE_MAIN_INPUT" in _codes(validate_workflow(wf).warnings)


def test_connections_only_view_skips_node_rules(make_workflow):
    from flowcheck.validator import validate_connections
    wf = make_workflow([("Start", "manualTrigger"), ("Call", "httpRequest")], [("Start", "Call")])
    assert validate_connections(wf).valid
    assert not validate_workflow(wf).valid


def test_graph_helpers(make_workflow):
    from flowcheck.utils.graph import FLOW_KINDS, build_graph, causal_order, upstream_of

    wf = Workflow.from_dict(make_workflow(
        [("Start", "manualTrigger"), ("B", "set"), ("A", "set"), ("Loop", "set"), ("Model", "set")],
        [("Start", "B"), ("Start", "A"), ("A", "Loop"), ("Loop", "A"), ("Model", "B", "ai_languageModel")]))
    flow = build_graph(wf, kinds=FLOW_KINDS)
    assert upstream_of(flow, "B") == {"Start"}
    assert upstream_of(build_graph(wf), "B") == {"Start", "Model"}
    order = causal_order(flow)
    assert order.index("Start") < order.index("A") < order.index("Loop")
    assert sorted(order) == sorted(["Start", "B", "A", "Loop", "Model"])
