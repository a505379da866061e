# flowcheck/topology/roles.py
"""Rules for nodes that consume AI sub-nodes: agents, chains, chat triggers."""

from __future__ import annotations

from typing import Any, List, Optional

from flowcheck.catalog.normalizer import normalize_type, short_name
from flowcheck.models import ConnectionKind, IssueCategory, Node, Severity, ValidationIssue, Workflow
from flowcheck.topology.reverse_index import ReverseIndex, incoming

AGENT = "nodes-langchain.agent"
CHAT_TRIGGER = "nodes-langchain.chatTrigger"
CHAIN_LLM = "nodes-langchain.chainLlm"

MIN_SYSTEM_MESSAGE_LENGTH = 20
MAX_ITERATIONS_WARNING = 50
FALLBACK_MIN_VERSION = 2.1

# short-name prefix -> category; first match wins
_CATEGORY_PREFIXES = (
    ("lmChat", "language_model"),
    ("lm", "language_model"),
    ("memory", "memory"),
    ("embeddings", "embedding"),
    ("vectorStore", "vector_store"),
    ("documentDefaultDataLoader", "document_loader"),
    ("documentBinaryInputLoader", "document_loader"),
    ("documentGithubLoader", "document_loader"),
    ("textSplitter", "text_splitter"),
    ("outputParser", "output_parser"),
    ("retriever", "retriever"),
    ("reranker", "reranker"),
    ("tool", "tool"),
    ("mcpClientTool", "tool"),
    ("agentTool", "tool"),
)

SUB_NODE_OUTPUT = {
    "language_model": ConnectionKind.AI_LANGUAGE_MODEL,
    "memory": ConnectionKind.AI_MEMORY,
    "embedding": ConnectionKind.AI_EMBEDDING,
    "vector_store": ConnectionKind.AI_VECTOR_STORE,
    "document_loader": ConnectionKind.AI_DOCUMENT,
    "text_splitter": ConnectionKind.AI_TEXT_SPLITTER,
    "output_parser": ConnectionKind.AI_OUTPUT_PARSER,
    "retriever": ConnectionKind.AI_RETRIEVER,
    "reranker": ConnectionKind.AI_RERANKER,
    "tool": ConnectionKind.AI_TOOL,
}


def ai_category(node_type: Any) -> Optional[str]:
    """
    Role of a node in the AI overlay: orchestrator, chain, chat_trigger, or a
    sub-node category (language_model, memory, tool, ...). None for other nodes.
    """
    if not isinstance(node_type, str):
        return None
    t = normalize_type(node_type)
    if t == AGENT:
        return "orchestrator"
    if t == CHAT_TRIGGER:
        return "chat_trigger"
    if t.startswith("nodes-langchain.chain"):
        return "chain"
    if not t.startswith("nodes-langchain."):
        return None
    name = short_name(t)
    for prefix, category in _CATEGORY_PREFIXES:
        if name.startswith(prefix):
            return category
    return "ai_component"


def _issue(node: Node, severity: Severity, message: str, code: str = None) -> ValidationIssue:
    return ValidationIssue(severity, message, node_id=node.id, node_name=node.label, code=code,
                           category=IssueCategory.TOPOLOGY)


def _supports_fallback(node: Node) -> bool:
    v = node.type_version
    if v is None:
        return True
    return isinstance(v, (int, float)) and not isinstance(v, bool) and v >= FALLBACK_MIN_VERSION


def _is_streaming_target(node: Node, workflow: Workflow, rindex: ReverseIndex) -> bool:
    by_name = workflow.node_by_name()
    for conn in incoming(rindex, node.label, ConnectionKind.MAIN.value):
        src = by_name.get(conn.source_name)
        if src is not None and ai_category(src.type) == "chat_trigger":
            options = src.parameters.get("options") if isinstance(src.parameters.get("options"), dict) else {}
            if options.get("responseMode") == "streaming":
                return True
    return False


def validate_agent(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    params = node.parameters
    name = node.label

    models = incoming(rindex, name, ConnectionKind.AI_LANGUAGE_MODEL.value)
    if not models:
        issues.append(_issue(node, Severity.ERROR,
                             f'AI Agent "{name}" requires an ai_languageModel connection. Connect a language model node.',
                             "MISSING_LANGUAGE_MODEL"))
    elif len(models) > 2:
        issues.append(_issue(node, Severity.ERROR,
                             f'AI Agent "{name}" has {len(models)} ai_languageModel connections. '
                             "Maximum is 2 (for fallback model support).",
                             "TOO_MANY_LANGUAGE_MODELS"))
    elif len(models) == 2:
        if not _supports_fallback(node):
            issues.append(_issue(node, Severity.ERROR,
                                 f'AI Agent "{name}" has 2 language models but typeVersion {node.type_version} '
                                 "has no fallback model support. Remove the second model.",
                                 "TOO_MANY_LANGUAGE_MODELS"))
        elif params.get("needsFallback") is not True:
            issues.append(_issue(node, Severity.WARNING,
                                 f'AI Agent "{name}" has 2 language models but needsFallback is not enabled.',
                                 "FALLBACK_NOT_ENABLED"))
    elif params.get("needsFallback") is True:
        issues.append(_issue(node, Severity.ERROR,
                             f'AI Agent "{name}" has needsFallback=true but only 1 language model connected.',
                             "FALLBACK_MISSING_SECOND_MODEL"))

    by_name = workflow.node_by_name()
    parsers = incoming(rindex, name, ConnectionKind.AI_OUTPUT_PARSER.value)
    recognized = [p for p in parsers if ai_category(getattr(by_name.get(p.source_name), "type", None)) == "output_parser"]
    if params.get("hasOutputParser") is True and not recognized:
        issues.append(_issue(node, Severity.ERROR,
                             f'AI Agent "{name}" has hasOutputParser=true but no output parser connected.',
                             "MISSING_OUTPUT_PARSER"))
    elif parsers and params.get("hasOutputParser") is not True:
        issues.append(_issue(node, Severity.WARNING,
                             f'AI Agent "{name}" has an output parser connected but hasOutputParser is not true.',
                             "OUTPUT_PARSER_DISABLED"))
    if len(parsers) > 1:
        issues.append(_issue(node, Severity.ERROR,
                             f'AI Agent "{name}" has {len(parsers)} output parsers. Only 1 is allowed.',
                             "MULTIPLE_OUTPUT_PARSERS"))

    if params.get("promptType") == "define":
        text = params.get("text")
        if not isinstance(text, str) or not text.strip():
            issues.append(_issue(node, Severity.ERROR,
                                 f'AI Agent "{name}" has promptType="define" but the text field is empty.',
                                 "MISSING_PROMPT_TEXT"))

    options = params.get("options") if isinstance(params.get("options"), dict) else {}
    system_message = options.get("systemMessage", params.get("systemMessage"))
    if not system_message:
        issues.append(_issue(node, Severity.INFO,
                             f'AI Agent "{name}" has no systemMessage. Consider adding one to define its role.'))
    elif isinstance(system_message, str) and len(system_message.strip()) < MIN_SYSTEM_MESSAGE_LENGTH:
        issues.append(_issue(node, Severity.INFO,
                             f'AI Agent "{name}" systemMessage is very short '
                             f"(minimum {MIN_SYSTEM_MESSAGE_LENGTH} characters recommended)."))

    streaming = _is_streaming_target(node, workflow, rindex) or options.get("streamResponse") is True
    if streaming and workflow.connections.has_output(name, ConnectionKind.MAIN.value):
        issues.append(_issue(node, Severity.ERROR,
                             f'AI Agent "{name}" is in streaming mode but has outgoing main connections. '
                             "Streaming responses flow back through the Chat Trigger.",
                             "STREAMING_WITH_MAIN_OUTPUT"))

    memories = incoming(rindex, name, ConnectionKind.AI_MEMORY.value)
    if len(memories) > 1:
        issues.append(_issue(node, Severity.ERROR,
                             f'AI Agent "{name}" has {len(memories)} ai_memory connections. Only 1 memory is allowed.',
                             "MULTIPLE_MEMORY_CONNECTIONS"))

    if not incoming(rindex, name, ConnectionKind.AI_TOOL.value):
        issues.append(_issue(node, Severity.INFO,
                             f'AI Agent "{name}" has no ai_tool connections. Consider adding tools.'))

    max_iter = options.get("maxIterations", params.get("maxIterations"))
    if max_iter is not None:
        if not isinstance(max_iter, (int, float)) or isinstance(max_iter, bool):
            issues.append(_issue(node, Severity.ERROR,
                                 f'AI Agent "{name}" has invalid maxIterations type. Must be a number.',
                                 "INVALID_MAX_ITERATIONS_TYPE"))
        elif max_iter < 1:
            issues.append(_issue(node, Severity.ERROR,
                                 f'AI Agent "{name}" has maxIterations={max_iter}. Must be at least 1.',
                                 "MAX_ITERATIONS_TOO_LOW"))
        elif max_iter > MAX_ITERATIONS_WARNING:
            issues.append(_issue(node, Severity.WARNING,
                                 f'AI Agent "{name}" has maxIterations={max_iter}. Values above '
                                 f"{MAX_ITERATIONS_WARNING} may cause long executions and high costs.",
                                 "HIGH_MAX_ITERATIONS"))
    return issues


def validate_chat_trigger(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    name = node.label
    options = node.parameters.get("options") if isinstance(node.parameters.get("options"), dict) else {}
    mode = options.get("responseMode", "lastNode")

    targets = [e for e in workflow.connections.edges(name) if e.kind == ConnectionKind.MAIN.value]
    if not targets:
        return [_issue(node, Severity.ERROR,
                       f'Chat Trigger "{name}" has no outgoing connections. Connect it to an AI Agent or workflow.',
                       "MISSING_CONNECTIONS")]
    target = workflow.node_by_name().get(targets[0].target)
    if target is None:
        # dangling edge already reported by the structural checker
        return []

    issues: List[ValidationIssue] = []
    category = ai_category(target.type)
    if mode == "streaming" and category != "orchestrator":
        issues.append(_issue(node, Severity.ERROR,
                             f'Chat Trigger "{name}" has responseMode="streaming" but connects to '
                             f'"{target.label}" ({target.type}). Streaming mode only works with AI Agent.',
                             "STREAMING_WRONG_TARGET"))
    elif mode == "lastNode" and category == "orchestrator":
        issues.append(_issue(node, Severity.INFO,
                             f'Chat Trigger "{name}" uses responseMode="lastNode" with an AI Agent. '
                             'Consider responseMode="streaming" for real-time responses.'))
    return issues


def validate_chain(node: Node, workflow: Workflow, rindex: ReverseIndex) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    name = node.label
    models = incoming(rindex, name, ConnectionKind.AI_LANGUAGE_MODEL.value)
    if not models:
        issues.append(_issue(node, Severity.ERROR,
                             f'LLM Chain "{name}" requires an ai_languageModel connection.',
                             "MISSING_LANGUAGE_MODEL"))
    elif len(models) > 1:
        issues.append(_issue(node, Severity.ERROR,
                             f'LLM Chain "{name}" has {len(models)} ai_languageModel connections. '
                             "Chains support exactly 1 language model (no fallback).",
                             "TOO_MANY_LANGUAGE_MODELS"))
    memories = incoming(rindex, name, ConnectionKind.AI_MEMORY.value)
    if len(memories) > 1:
        issues.append(_issue(node, Severity.ERROR,
                             f'LLM Chain "{name}" has {len(memories)} ai_memory connections. Only 1 memory is allowed.',
                             "MULTIPLE_MEMORY_CONNECTIONS"))
    if incoming(rindex, name, ConnectionKind.AI_TOOL.value):
        issues.append(_issue(node, Severity.ERROR,
                             f'LLM Chain "{name}" has ai_tool connections. Chains do not support tools; use an AI Agent.',
                             "TOOLS_NOT_SUPPORTED"))
    if node.parameters.get("promptType") == "define":
        text = node.parameters.get("text")
        if not isinstance(text, str) or not text.strip():
            issues.append(_issue(node, Severity.ERROR,
                                 f'LLM Chain "{name}" has promptType="define" but the text field is empty.',
                                 "MISSING_PROMPT_TEXT"))
    return issues
