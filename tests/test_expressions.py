import pytest

from flowcheck.expressions.checker import validate_expression, validate_node_expressions
from flowcheck.validator import validate_expressions


def test_plain_expression_is_valid():
    r = validate_expression("={{ $json.name }}")
    assert r.valid and not r.warnings
    assert r.count == 1
    assert r.used_variables == {"$json"}


@pytest.mark.parametrize("text,needle", [
    ("={{ $json.a ", "Unmatched expression brackets"),
    ("={{ }}", "Empty expression"),
    ("={{ `${$json.a}` }}", "Template literals"),
    ("={{ {{ $json.a }} }}", "Nested expressions"),
    ("={{ ($json.a }}", "Unbalanced brackets"),
])
def test_expression_errors(text, needle):
    r = validate_expression(text)
    assert not r.valid
    assert any(needle in e for e in r.errors), r.errors


@pytest.mark.parametrize("text,needle", [
    ("={{ $foo.bar }}", "Unknown variable $foo"),
    ("={{ json.name }}", "missing $ prefix"),
    ("={{ $json.user?.name }}", "Optional chaining"),
])
def test_expression_warnings(text, needle):
    r = validate_expression(text)
    assert r.valid
    assert any(needle in w for w in r.warnings), r.warnings


def test_brackets_inside_strings_are_ignored():
    assert validate_expression("={{ $json.a + ')' }}").valid


def test_node_references():
    text = "={{ $('Fetch').item.json.id + $node[\"Other\"].json.x }}"
    r = validate_expression(text, upstream=["Fetch"], known_nodes=["Fetch", "Other"])
    assert r.used_nodes == {"Fetch", "Other"}
    assert r.valid
    assert r.warnings == ['Referenced node "Other" is not upstream of this node; its data may not exist yet']

    missing = validate_expression(text, upstream=["Fetch"], known_nodes=["Fetch"])
    assert missing.errors == ['Referenced node "Other" not found in workflow']


def test_missing_equals_prefix_with_path():
    r = validate_node_expressions({"options": {"url": "{{ $json.url }}"}})
    assert r.errors == ["parameters.options.url: Expression is missing the '=' prefix and will be treated as literal text"]


def test_list_paths_and_code_fields():
    params = {
        "jsCode": "const a = '{{ not an expression }}';",
        "headers": [{"name": "x", "value": "={{ }}"}],
    }
    r = validate_node_expressions(params)
    assert r.errors == ["parameters.headers[0].value: Empty expression found"]
    assert r.count == 1


def test_literal_text_is_not_counted():
    r = validate_node_expressions({"text": "hello", "n": 3, "flag": True})
    assert r.valid and r.count == 0


# ---------- workflow level ----------

def test_workflow_references_use_connection_order(make_workflow):
    nodes = [
        ("Start", "manualTrigger"),
        ("Fetch", "set"),
        ("Use", "set", {"parameters": {"a": "={{ $('Fetch').item.json.id }}", "b": "={{ $('Later').item.json.x }}",
                                       "c": "={{ $('Ghost').item.json.x }}"}}),
        ("Later", "set"),
    ]
    wf = make_workflow(nodes, [("Start", "Fetch"), ("Fetch", "Use"), ("Use", "Later")])
    result = validate_expressions(wf)
    assert [e.code for e in result.errors] == ["EXPRESSION_ERROR"]
    assert result.errors[0].message.startswith("Expression error: parameters.c:")
    assert result.errors[0].node_name == "Use"
    warnings = [w for w in result.warnings if w.code == "EXPRESSION_WARNING"]
    assert len(warnings) == 1 and '"Later"' in warnings[0].message
    assert result.statistics.expressions_validated == 3


def test_ai_sub_nodes_see_their_consumers_inputs(make_workflow):
    lc = "@n8n/n8n-nodes-langchain."
    nodes = [
        ("Chat", lc + "chatTrigger"),
        ("Agent", lc + "agent", {"parameters": {"promptType": "auto"}}),
        ("Model", lc + "lmChatOpenAi"),
        ("Lookup", lc + "toolHttpRequest", {"parameters": {
            "toolDescription": "Looks up the user profile",
            "url": "=https://api.example.com/users/{{ $('Chat').item.json.sessionId }}"}}),
    ]
    edges = [("Chat", "Agent"), ("Model", "Agent", "ai_languageModel"), ("Lookup", "Agent", "ai_tool")]
    result = validate_expressions(make_workflow(nodes, edges))
    assert not [w for w in result.warnings if w.code == "EXPRESSION_WARNING"]
    assert not [e for e in result.errors if e.code == "EXPRESSION_ERROR"]


def test_disabled_nodes_are_skipped(make_workflow):
    nodes = [("Start", "manualTrigger"), ("Off", "set", {"disabled": True, "parameters": {"a": "={{ }}"}})]
    result = validate_expressions(make_workflow(nodes, [("Start", "Off")]))
    assert result.valid
    assert result.statistics.expressions_validated == 0
