# flowcheck/topology/checker.py
"""
AI topology pass.

Sub-nodes (models, memories, tools, embeddings, ...) hang off their consumer
through `ai_*` connections. This pass checks that every agent, chain, chat
trigger and tool has the inputs its role needs. It costs nothing for
workflows without AI nodes.
"""

from __future__ import annotations

from typing import List, Optional

from flowcheck.catalog.normalizer import is_community
from flowcheck.models import ConnectionKind, IssueCategory, Node, Severity, ValidationIssue, Workflow
from flowcheck.topology.reverse_index import ReverseIndex, build_reverse_index
from flowcheck.topology.roles import (
    SUB_NODE_OUTPUT,
    ai_category,
    validate_agent,
    validate_chain,
    validate_chat_trigger,
)
from flowcheck.topology.tools import check_vector_store_inputs, tool_validator_for
from flowcheck.utils.logger import get_logger

logger = get_logger("topology")

ROLE_VALIDATORS = {
    "orchestrator": validate_agent,
    "chat_trigger": validate_chat_trigger,
}


def has_ai_nodes(workflow: Workflow) -> bool:
    return any(ai_category(n.type) is not None for n in workflow.nodes if not n.disabled)


def _issue(node: Node, severity: Severity, message: str, code: str) -> ValidationIssue:
    return ValidationIssue(severity, message, node_id=node.id, node_name=node.label, code=code,
                           category=IssueCategory.TOPOLOGY)


def _check_sub_node_wiring(node: Node, category: str, workflow: Workflow,
                           rindex: ReverseIndex) -> List[ValidationIssue]:
    expected = SUB_NODE_OUTPUT.get(category)
    if expected is None:
        return []
    kinds = {k for k, slots in workflow.connections.kinds(node.label).items() if any(slots)}
    if not kinds:
        # fully disconnected nodes are reported as orphans
        if rindex.get(node.label):
            return [_issue(node, Severity.WARNING,
                           f"{node.label} has inputs but no outgoing {expected.value} connection. "
                           "Connect it to the node that should use it.",
                           "DANGLING_SUB_NODE")]
        return []
    if expected.value in kinds:
        return []
    if category == "vector_store" and kinds & {ConnectionKind.MAIN.value, ConnectionKind.AI_TOOL.value}:
        # insert/load modes run in the main flow; retrieve-as-tool wires as ai_tool
        return []
    return [_issue(node, Severity.WARNING,
                   f'{node.label} is connected via {", ".join(sorted(kinds))} but its output '
                   f"is {expected.value}. Its consumer will not receive it.",
                   "WRONG_CONNECTION_TYPE")]


def _check_community_tools(workflow: Workflow) -> List[ValidationIssue]:
    issues = []
    seen = set()
    by_name = workflow.node_by_name()
    for edge in workflow.connections.edges():
        if edge.kind != ConnectionKind.AI_TOOL.value or edge.source in seen:
            continue
        src = by_name.get(edge.source)
        if src is None or not isinstance(src.type, str) or not is_community(src.type):
            continue
        seen.add(edge.source)
        issues.append(_issue(src, Severity.WARNING,
                             f'Community node "{src.label}" ({src.type}) is used as an AI tool. '
                             "This requires N8N_COMMUNITY_PACKAGES_ALLOW_TOOL_USAGE=true on the n8n instance.",
                             "COMMUNITY_TOOL_USAGE"))
    return issues


def validate_ai_topology(workflow: Workflow, rindex: Optional[ReverseIndex] = None) -> List[ValidationIssue]:
    """
    Run the role and tool validators over every enabled AI node.

    Returns:
        issues (category TopologyError), each naming the node it concerns
    """
    if not has_ai_nodes(workflow):
        return []
    rindex = rindex if rindex is not None else build_reverse_index(workflow)

    issues: List[ValidationIssue] = []
    for node in workflow.nodes:
        if node.disabled or not isinstance(node.name, str):
            continue
        category = ai_category(node.type)
        if category is None:
            continue
        try:
            if category in ROLE_VALIDATORS:
                issues.extend(ROLE_VALIDATORS[category](node, workflow, rindex))
            elif category == "chain" and node.type.endswith("chainLlm"):
                issues.extend(validate_chain(node, workflow, rindex))
            elif category == "vector_store":
                feeds_tool = any(e.kind == ConnectionKind.AI_VECTOR_STORE.value
                                 for e in workflow.connections.edges(node.label))
                if not feeds_tool and node.parameters.get("mode") in ("insert", "load", "retrieve", "retrieve-as-tool"):
                    issues.extend(i for i in check_vector_store_inputs(node, rindex)
                                  if i.code == "MISSING_EMBEDDING")
            validator = tool_validator_for(node.type)
            if validator is not None:
                issues.extend(validator(node, workflow, rindex))
            issues.extend(_check_sub_node_wiring(node, category, workflow, rindex))
        except Exception as e:
            logger.warning(f"Topology check failed on '{node.label}': {e}")
            issues.append(_issue(node, Severity.ERROR,
                                 f"Internal error while checking AI connections: {e}", "TOPOLOGY_FAILURE"))

    issues.extend(_check_community_tools(workflow))
    return _dedupe(issues)


def _dedupe(issues: List[ValidationIssue]) -> List[ValidationIssue]:
    seen = set()
    out = []
    for i in issues:
        k = (i.severity, i.node_name, i.code, i.message)
        if k in seen:
            continue
        seen.add(k)
        out.append(i)
    return out

