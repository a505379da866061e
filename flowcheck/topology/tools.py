# flowcheck/topology/tools.py
"""
Validators for nodes wired into an agent through `ai_tool`.

Each validator takes (node, workflow, reverse index) and returns issues.
TOOL_VALIDATORS is keyed by the normalized type.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, List, Set

from flowcheck.catalog.normalizer import normalize_type
from flowcheck.models import ConnectionKind, IssueCategory, Node, Severity, ValidationIssue, Workflow
from flowcheck.topology.reverse_index import ReverseIndex, incoming

MIN_DESCRIPTION_LENGTH = 15
MAX_TOP_K = 20
MAX_AGENT_TOOL_ITERATIONS = 50

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][\w]*)\}")
EXPRESSION_RE = re.compile(r"\{\{.*?\}\}", re.S)
IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")
LANGUAGE_CODE_RE = re.compile(r"^[a-z]{2,3}$")

ToolValidator = Callable[[Node, Workflow, ReverseIndex], List[ValidationIssue]]


def _issue(node: Node, severity: Severity, message: str, code: str = None) -> ValidationIssue:
    return ValidationIssue(severity, message, node_id=node.id, node_name=node.label, code=code,
                           category=IssueCategory.TOPOLOGY)


def _text(params: Dict[str, Any], key: str) -> str:
    v = params.get(key)
    return v.strip() if isinstance(v, str) else ""


def _check_description(node: Node, key: str = "toolDescription", required: bool = True) -> List[ValidationIssue]:
    desc = _text(node.parameters, key) or _text(node.parameters, "description")
    if not desc:
        if not required:
            return []
        return [_issue(node, Severity.ERROR,
                       f'{node.label} has no {key}. The agent needs it to decide when to call this tool.',
                       "MISSING_TOOL_DESCRIPTION")]
    if len(desc) < MIN_DESCRIPTION_LENGTH:
        return [_issue(node, Severity.WARNING,
                       f"{node.label} {key} is too short (minimum {MIN_DESCRIPTION_LENGTH} characters). "
                       "Explain what the tool does and when to use it.",
                       "SHORT_TOOL_DESCRIPTION")]
    return []


def _strings(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        return [s for v in value.values() for s in _strings(v)]
    if isinstance(value, list):
        return [s for v in value for s in _strings(v)]
    return []


def _used_placeholders(params: Dict[str, Any]) -> Set[str]:
    used: Set[str] = set()
    for key, value in params.items():
        if key in ("toolDescription", "description", "placeholderDefinitions"):
            continue
        for s in _strings(value):
            used.update(PLACEHOLDER_RE.findall(EXPRESSION_RE.sub("", s)))
    return used


def _declared_placeholders(params: Dict[str, Any]) -> Set[str]:
    defs = params.get("placeholderDefinitions")
    values = defs.get("values") if isinstance(defs, dict) else None
    if not isinstance(values, list):
        return set()
    return {v["name"] for v in values if isinstance(v, dict) and isinstance(v.get("name"), str)}


def validate_http_tool(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    params = node.parameters
    issues = _check_description(node)

    url = _text(params, "url")
    if not url:
        issues.append(_issue(node, Severity.ERROR, f"{node.label} has no url.", "MISSING_URL"))
    elif not url.startswith("=") and "{{" not in url and not re.match(r"^https?://", url) \
            and not url.startswith("{"):
        issues.append(_issue(node, Severity.ERROR,
                             f'{node.label} url "{url}" must start with http:// or https://.',
                             "INVALID_URL_PROTOCOL"))

    used = _used_placeholders(params)
    declared = _declared_placeholders(params)
    if used and "placeholderDefinitions" not in params:
        issues.append(_issue(node, Severity.WARNING,
                             f"{node.label} uses placeholders ({', '.join(sorted(used))}) "
                             "but has no placeholderDefinitions.",
                             "MISSING_PLACEHOLDER_DEFINITIONS"))
    else:
        for name in sorted(used - declared):
            issues.append(_issue(node, Severity.ERROR,
                                 f"{node.label} uses placeholder {{{name}}} which is not declared "
                                 "in placeholderDefinitions.",
                                 "UNDEFINED_PLACEHOLDER"))
        for name in sorted(declared - used):
            issues.append(_issue(node, Severity.WARNING,
                                 f'{node.label} declares placeholder "{name}" which is never used.',
                                 "UNUSED_PLACEHOLDER"))

    if params.get("authentication") == "predefinedCredentialType" and not node.credentials:
        cred = params.get("nodeCredentialType") or "a credential"
        issues.append(_issue(node, Severity.ERROR,
                             f"{node.label} uses predefinedCredentialType but no credentials are set. "
                             f"Attach {cred}.",
                             "MISSING_CREDENTIALS"))

    method = params.get("method", "GET")
    if isinstance(method, str) and method.upper() not in HTTP_METHODS:
        issues.append(_issue(node, Severity.ERROR,
                             f'{node.label} has invalid method "{method}". Use one of: {", ".join(HTTP_METHODS)}.',
                             "INVALID_HTTP_METHOD"))
    elif isinstance(method, str) and method.upper() in ("POST", "PUT", "PATCH"):
        if params.get("sendBody") is not True and not params.get("jsonBody") and not params.get("body"):
            issues.append(_issue(node, Severity.WARNING,
                                 f"{node.label} uses {method.upper()} but sends no body.",
                                 "MISSING_BODY"))
    return issues


def validate_code_tool(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    params = node.parameters
    issues = _check_description(node, "description")

    code = _text(params, "jsCode") or _text(params, "code") or _text(params, "pythonCode")
    if not code:
        issues.append(_issue(node, Severity.ERROR, f"{node.label} has no code.", "MISSING_CODE"))

    name = params.get("name")
    if name is not None and (not isinstance(name, str) or not IDENTIFIER_RE.match(name)):
        issues.append(_issue(node, Severity.ERROR,
                             f'{node.label} function name "{name}" must start with a letter or underscore '
                             "and contain only letters, digits, '_' or '-'.",
                             "INVALID_TOOL_NAME"))

    if params.get("specifyInputSchema") is True:
        schema_type = params.get("schemaType", "fromJson")
        key = "jsonSchemaExample" if schema_type == "fromJson" else "inputSchema"
        raw = params.get(key)
        if not isinstance(raw, str) or not raw.strip():
            issues.append(_issue(node, Severity.ERROR,
                                 f"{node.label} has specifyInputSchema=true but {key} is empty.",
                                 "MISSING_INPUT_SCHEMA"))
        elif not raw.lstrip().startswith("="):
            try:
                json.loads(raw)
            except ValueError as e:
                issues.append(_issue(node, Severity.ERROR,
                                     f"{node.label} {key} is not valid JSON: {e}",
                                     "INVALID_INPUT_SCHEMA"))
    return issues


def check_vector_store_inputs(store: Node, rindex: ReverseIndex) -> List[ValidationIssue]:
    """A vector store needs an embedding model and, ideally, a document loader."""
    issues: List[ValidationIssue] = []
    if not incoming(rindex, store.label, ConnectionKind.AI_EMBEDDING.value):
        issues.append(_issue(store, Severity.ERROR,
                             f'Vector store "{store.label}" has no ai_embedding connection. '
                             "Connect an embeddings node.",
                             "MISSING_EMBEDDING"))
    if not incoming(rindex, store.label, ConnectionKind.AI_DOCUMENT.value):
        issues.append(_issue(store, Severity.WARNING,
                             f'Vector store "{store.label}" has no ai_document connection. '
                             "It can only serve documents that were inserted elsewhere.",
                             "MISSING_DOCUMENT_LOADER"))
    return issues


def validate_vector_store_tool(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    params = node.parameters
    issues = _check_description(node, "description")

    top_k = params.get("topK")
    if top_k is not None:
        if not isinstance(top_k, (int, float)) or isinstance(top_k, bool) or top_k < 1:
            issues.append(_issue(node, Severity.ERROR,
                                 f"{node.label} topK must be a positive number.", "INVALID_TOP_K"))
        elif top_k > MAX_TOP_K:
            issues.append(_issue(node, Severity.WARNING,
                                 f"{node.label} topK={top_k} is high. Values above {MAX_TOP_K} "
                                 "can flood the agent context.",
                                 "HIGH_TOP_K"))

    stores = incoming(rindex, node.label, ConnectionKind.AI_VECTOR_STORE.value)
    if not stores:
        issues.append(_issue(node, Severity.ERROR,
                             f"{node.label} requires an ai_vectorStore connection. Connect a vector store node.",
                             "MISSING_VECTOR_STORE"))
        return issues
    by_name = workflow.node_by_name()
    for conn in stores:
        store = by_name.get(conn.source_name)
        if store is not None and not store.disabled:
            issues.extend(check_vector_store_inputs(store, rindex))
    return issues


def validate_workflow_tool(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    issues = _check_description(node, "description")
    wf_id = node.parameters.get("workflowId")
    if isinstance(wf_id, dict):
        wf_id = wf_id.get("value")
    if not wf_id and node.parameters.get("source", "database") == "database":
        issues.append(_issue(node, Severity.ERROR,
                             f"{node.label} has no workflowId. Select the workflow to call.",
                             "MISSING_WORKFLOW_ID"))
    return issues


def validate_agent_tool(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    issues = _check_description(node, "toolDescription")
    if not incoming(rindex, node.label, ConnectionKind.AI_LANGUAGE_MODEL.value):
        issues.append(_issue(node, Severity.ERROR,
                             f"{node.label} requires an ai_languageModel connection.",
                             "MISSING_LANGUAGE_MODEL"))
    max_iter = node.parameters.get("maxIterations")
    options = node.parameters.get("options")
    if max_iter is None and isinstance(options, dict):
        max_iter = options.get("maxIterations")
    if max_iter is not None and (not isinstance(max_iter, (int, float)) or isinstance(max_iter, bool) or max_iter < 1):
        issues.append(_issue(node, Severity.ERROR,
                             f"{node.label} maxIterations must be a number of at least 1.",
                             "INVALID_MAX_ITERATIONS"))
    elif isinstance(max_iter, (int, float)) and max_iter > MAX_AGENT_TOOL_ITERATIONS:
        issues.append(_issue(node, Severity.WARNING,
                             f"{node.label} maxIterations={max_iter} is high for a nested agent.",
                             "HIGH_MAX_ITERATIONS"))
    return issues


def validate_mcp_tool(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    params = node.parameters
    if not (_text(params, "sseEndpoint") or _text(params, "endpointUrl") or _text(params, "serverUrl")):
        return [_issue(node, Severity.ERROR,
                       f"{node.label} has no MCP server endpoint (sseEndpoint).",
                       "MISSING_MCP_ENDPOINT")]
    return []


def validate_no_config(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    return []


def _requires_credentials(service: str) -> ToolValidator:
    def validate(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
        if node.credentials:
            return []
        return [_issue(node, Severity.WARNING,
                       f"{node.label} needs {service} credentials.", "MISSING_CREDENTIALS")]
    return validate


def validate_wikipedia_tool(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    lang = node.parameters.get("language")
    if lang is not None and (not isinstance(lang, str) or not LANGUAGE_CODE_RE.match(lang)):
        return [_issue(node, Severity.WARNING,
                       f'{node.label} language "{lang}" is not a language code like "en" or "de".',
                       "INVALID_LANGUAGE_CODE")]
    return []


def validate_searxng_tool(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    base = _text(node.parameters, "baseUrl")
    if not base and not node.credentials:
        return [_issue(node, Severity.WARNING,
                       f"{node.label} has no baseUrl for the SearXNG instance.", "MISSING_BASE_URL")]
    if base and not base.startswith("=") and not re.match(r"^https?://", base):
        return [_issue(node, Severity.ERROR,
                       f'{node.label} baseUrl "{base}" must start with http:// or https://.',
                       "INVALID_URL_PROTOCOL")]
    return []


TOOL_VALIDATORS: Dict[str, ToolValidator] = {
    "nodes-langchain.toolHttpRequest": validate_http_tool,
    "nodes-langchain.toolCode": validate_code_tool,
    "nodes-langchain.toolVectorStore": validate_vector_store_tool,
    "nodes-langchain.toolWorkflow": validate_workflow_tool,
    "nodes-langchain.agentTool": validate_agent_tool,
    "nodes-langchain.mcpClientTool": validate_mcp_tool,
    "nodes-langchain.toolCalculator": validate_no_config,
    "nodes-langchain.toolThink": validate_no_config,
    "nodes-langchain.toolSerpApi": _requires_credentials("SerpAPI"),
    "nodes-langchain.toolWikipedia": validate_wikipedia_tool,
    "nodes-langchain.toolSearXng": validate_searxng_tool,
    "nodes-langchain.toolWolframAlpha": _requires_credentials("Wolfram Alpha"),
}


def tool_validator_for(node_type: Any):
    if not isinstance(node_type, str):
        return None
    return TOOL_VALIDATORS.get(normalize_type(node_type))
