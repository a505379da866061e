# flowcheck/structural/checker.py
"""
Structural checks over the base workflow graph.

    check_structure(workflow, catalog, check_nodes, check_connections)

Document shape, node identity, trigger presence, type and version resolution,
connection endpoints, orphans and cycles, plus a few workflow-level pattern
checks. Nothing here raises for bad input; every problem is an issue.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Dict, List, Optional

import networkx as nx
from jsonschema import Draft7Validator

from flowcheck.catalog.client import CachingCatalog
from flowcheck.catalog.normalizer import BASE_SHORT, LANGCHAIN_SHORT, is_community, normalize_type, to_full_form
from flowcheck.catalog.similarity import suggest_types
from flowcheck.models import (
    ConnectionKind,
    Descriptor,
    IssueCategory,
    Node,
    Severity,
    Statistics,
    ValidationIssue,
    Workflow,
)
from flowcheck.structural.schema import NODE_SCHEMA, WORKFLOW_SCHEMA
from flowcheck.topology.roles import ai_category
from flowcheck.utils.graph import build_graph, cycle_components, find_cycle_path
from flowcheck.utils.logger import get_logger

logger = get_logger("structural")

WEBHOOK_TYPES = ("nodes-base.webhook", "nodes-base.webhookTrigger")
TRIGGER_KEYS = ("trigger", "webhook", "cron", "interval")
NOT_TRIGGERS = ("nodes-base.respondToWebhook",)
STICKY_NOTE = "nodes-base.stickyNote"
# main inputs are fine for these sub-node categories (vector store insert mode)
MAIN_INPUT_CATEGORIES = ("vector_store", "ai_component")
LONG_CHAIN = 10

CONNECTION_EXAMPLE = ('connections: { "Source Node Name": { "main": [[{ "node": "Target Node Name", '
                      '"type": "main", "index": 0 }]] } }')

_node_validator = Draft7Validator(NODE_SCHEMA)
_workflow_validator = Draft7Validator(WORKFLOW_SCHEMA)


@dataclass
class StructuralReport:
    issues: List[ValidationIssue] = field(default_factory=list)
    statistics: Statistics = field(default_factory=Statistics)
    descriptors: Dict[int, Optional[Descriptor]] = field(default_factory=dict)
    graph: nx.DiGraph = field(default_factory=nx.DiGraph)

    def add(self, severity: Severity, message: str, code: str, node: Optional[Node] = None) -> None:
        self.issues.append(ValidationIssue(
            severity, message,
            node_id=node.id if node is not None else None,
            node_name=node.label if node is not None else None,
            code=code,
            category=IssueCategory.STRUCTURAL,
        ))


def _type_of(node: Node) -> str:
    return normalize_type(node.type) if isinstance(node.type, str) else ""


def is_sticky_note(node: Node) -> bool:
    return _type_of(node) == STICKY_NOTE


def is_trigger(node: Node) -> bool:
    t = _type_of(node)
    if not t or t in NOT_TRIGGERS:
        return False
    return t == "nodes-base.start" or any(k in t.lower() for k in TRIGGER_KEYS)


def is_webhook(node: Node) -> bool:
    return _type_of(node) in WEBHOOK_TYPES


def _check_document(wf: Workflow, report: StructuralReport) -> None:
    if not wf.has_nodes_field:
        report.add(Severity.ERROR, "Workflow must have a nodes array", "MISSING_NODES")
    if not wf.has_connections_field:
        report.add(Severity.ERROR, "Workflow must have a connections object", "MISSING_CONNECTIONS")
    for idx in wf.malformed_nodes:
        report.add(Severity.ERROR, f"Node entry #{idx} is not an object", "MALFORMED_NODE")
    if isinstance(wf.raw, dict):
        for err in _workflow_validator.iter_errors(wf.raw):
            where = ".".join(str(p) for p in err.path) or "workflow"
            report.add(Severity.WARNING, f"Invalid workflow field '{where}': {err.message}", "INVALID_WORKFLOW_FIELD")

    raw_nodes = wf.raw.get("nodes") if isinstance(wf.raw, dict) else None
    if not isinstance(raw_nodes, list):
        return
    parsed = iter(wf.nodes)
    for raw in raw_nodes:
        if not isinstance(raw, dict):
            continue
        node = next(parsed)
        for err in sorted(_node_validator.iter_errors(raw), key=lambda e: [str(p) for p in e.path]):
            where = ".".join(str(p) for p in err.path) or "node"
            report.add(Severity.ERROR, f"Invalid node field '{where}': {err.message}", "INVALID_NODE_SHAPE", node)


def _check_size(wf: Workflow, report: StructuralReport) -> None:
    nodes = [n for n in wf.nodes if not is_sticky_note(n)]
    if len(nodes) == 1:
        single = nodes[0]
        if not is_webhook(single):
            report.add(Severity.ERROR,
                       "Single-node workflows are only valid for webhook endpoints. "
                       "Add at least one more connected node to create a functional workflow.",
                       "SINGLE_NODE_WORKFLOW", single)
        elif not wf.connections:
            report.add(Severity.WARNING,
                       "Webhook node has no connections. Consider adding nodes to process the webhook data.",
                       "NO_CONNECTIONS", single)
    elif len(nodes) > 1 and wf.has_connections_field and not wf.connections:
        if any(not n.disabled for n in nodes):
            report.add(Severity.ERROR,
                       "Multi-node workflow has no connections. Nodes must be connected to create a "
                       f"workflow. Use {CONNECTION_EXAMPLE}",
                       "NO_CONNECTIONS")


def _check_duplicates(wf: Workflow, report: StructuralReport) -> None:
    by_name: Dict[Any, List[Node]] = {}
    by_id: Dict[Any, List[Node]] = {}
    for n in wf.nodes:
        if isinstance(n.name, str):
            by_name.setdefault(n.name, []).append(n)
        if isinstance(n.id, (str, int)) and not isinstance(n.id, bool):
            by_id.setdefault(n.id, []).append(n)

    for name, group in by_name.items():
        for a, b in combinations(group, 2):
            report.add(Severity.ERROR,
                       f'Duplicate node name: "{name}" (node ids {a.id!r} and {b.id!r})',
                       "DUPLICATE_NAME", b)
    for node_id, group in by_id.items():
        for a, b in combinations(group, 2):
            report.add(Severity.ERROR,
                       f'Duplicate node ID: "{node_id}" (nodes "{a.label}" and "{b.label}")',
                       "DUPLICATE_ID", b)


def _count(wf: Workflow, report: StructuralReport) -> None:
    stats = report.statistics
    nodes = [n for n in wf.nodes if not is_sticky_note(n)]
    stats.total_nodes = len(nodes)
    stats.enabled_nodes = sum(1 for n in nodes if not n.disabled)
    stats.trigger_nodes = sum(1 for n in nodes if is_trigger(n))
    if stats.trigger_nodes == 0 and stats.enabled_nodes > 0:
        report.add(Severity.WARNING, "Workflow has no trigger nodes. It can only be executed manually.",
                   "NO_TRIGGER")


def _check_types(wf: Workflow, catalog: CachingCatalog, report: StructuralReport) -> None:
    # keyed by position: names may collide
    nodes = [(i, n) for i, n in enumerate(wf.nodes) if not n.disabled and isinstance(n.type, str) and n.type]
    catalog.prefetch(n.type for _, n in nodes)
    known = None
    for index, node in nodes:
        desc, matched = catalog.lookup(node.type)
        report.descriptors[index] = desc
        if desc is None:
            if known is None:
                known = catalog.list_types()
            candidates = suggest_types(node.type, known)
            hint = f" Did you mean: {', '.join(repr(c) for c in candidates)}?" if candidates else ""
            report.add(Severity.ERROR,
                       f'Unknown node type: "{node.type}".{hint} Node types must include the package prefix '
                       '(e.g., "n8n-nodes-base.webhook", not "webhook").',
                       "UNKNOWN_NODE_TYPE", node)
            continue
        logger.debug(f"Resolved '{node.type}' as '{matched}'")
        if node.type.startswith((BASE_SHORT, LANGCHAIN_SHORT)):
            report.add(Severity.WARNING,
                       f'Node type "{node.type}" uses the short form. Workflows use "{to_full_form(node.type)}".',
                       "NON_CANONICAL_TYPE", node)
        _check_version(node, desc, catalog.current_version(matched), report)


def _check_version(node: Node, desc: Descriptor, current: Optional[float], report: StructuralReport) -> None:
    if not desc.is_versioned:
        return
    v = node.type_version
    maximum = desc.max_version if desc.max_version is not None else current
    if v is None:
        report.add(Severity.ERROR, f"Missing required property 'typeVersion'. Add typeVersion: {current}",
                   "MISSING_TYPE_VERSION", node)
    elif not isinstance(v, (int, float)) or isinstance(v, bool) or v < 1:
        report.add(Severity.ERROR, f"Invalid typeVersion: {v!r}. Must be a positive number",
                   "INVALID_TYPE_VERSION", node)
    elif maximum is not None and v > maximum:
        report.add(Severity.ERROR, f"typeVersion {v} exceeds maximum supported version {maximum}",
                   "TYPE_VERSION_TOO_HIGH", node)
    elif current is not None and v < current:
        report.add(Severity.WARNING, f"Outdated typeVersion: {v}. Latest is {current}",
                   "OUTDATED_TYPE_VERSION", node)


def _check_connections(wf: Workflow, report: StructuralReport) -> None:
    by_name = wf.node_by_name()
    by_id = {n.id: n for n in wf.nodes if isinstance(n.id, (str, int)) and not isinstance(n.id, bool)}
    stats = report.statistics

    for source, msg in wf.connections.malformed:
        report.add(Severity.ERROR, f'Malformed connection from "{source}": {msg}', "MALFORMED_CONNECTION",
                   by_name.get(source))

    for source in wf.connections.sources():
        edges = list(wf.connections.edges(source))
        if source not in by_name:
            owner = by_id.get(source)
            if owner is not None and isinstance(owner.name, str):
                report.add(Severity.ERROR,
                           f"Connection uses node ID '{source}' instead of node name '{owner.name}'. "
                           "Connections must use node names, not IDs.",
                           "CONNECTION_USES_ID", owner)
            else:
                report.add(Severity.ERROR, f'Connection from non-existent node: "{source}"',
                           "UNKNOWN_CONNECTION_SOURCE")
            stats.invalid_connections += len(edges)
            continue

        for kind in wf.connections.kinds(source):
            if ConnectionKind.parse(kind) is None:
                report.add(Severity.WARNING, f'Unknown connection type "{kind}" from "{source}"',
                           "UNKNOWN_CONNECTION_TYPE", by_name[source])

        for e in edges:
            target = by_name.get(e.target) if isinstance(e.target, str) else None
            if target is not None:
                stats.valid_connections += 1
                if target.disabled:
                    report.add(Severity.WARNING,
                               f'Connection to disabled node: "{e.target}" from "{source}"',
                               "DISABLED_TARGET", target)
                continue
            stats.invalid_connections += 1
            owner = by_id.get(e.target) if isinstance(e.target, (str, int)) else None
            if owner is not None and isinstance(owner.name, str):
                report.add(Severity.ERROR,
                           f"Connection target uses node ID '{e.target}' instead of node name "
                           f"'{owner.name}' (from {source}). Connections must use node names, not IDs.",
                           "CONNECTION_USES_ID", owner)
            else:
                report.add(Severity.ERROR, f'Connection to non-existent node: "{e.target}" from "{source}"',
                           "UNKNOWN_CONNECTION_TARGET", by_name[source])


def _check_orphans(wf: Workflow, report: StructuralReport) -> None:
    if not wf.connections:
        # already reported as a missing-connections problem
        return
    G = report.graph
    for node in wf.nodes:
        if node.disabled or is_sticky_note(node) or not isinstance(node.name, str) or node.name not in G:
            continue
        # standalone entry points
        if is_trigger(node):
            continue
        if G.degree(node.name) == 0:
            report.add(Severity.WARNING, "Node is not connected to any other nodes", "ORPHAN_NODE", node)


def _check_cycles(wf: Workflow, report: StructuralReport) -> None:
    G = report.graph
    by_name = wf.node_by_name()
    for members in cycle_components(G):
        path = find_cycle_path(G.subgraph(members)) or members + members[:1]
        # rotate so the report does not depend on traversal entry point
        ring = path[:-1]
        start = ring.index(min(ring))
        ring = ring[start:] + ring[:start]
        report.add(Severity.ERROR,
                   f"Workflow contains a cycle (infinite loop): {' -> '.join(ring + ring[:1])}",
                   "CYCLE", by_name.get(ring[0]))


def _longest_linear_chain(G: nx.DiGraph) -> int:
    longest = 0
    for start in G.nodes:
        preds = list(G.predecessors(start))
        if len(preds) == 1 and G.out_degree(preds[0]) == 1:
            continue  # not the head of a chain
        length, current, seen = 1, start, {start}
        while G.out_degree(current) == 1:
            nxt = next(iter(G.successors(current)))
            if G.in_degree(nxt) != 1 or nxt in seen:
                break
            seen.add(nxt)
            current = nxt
            length += 1
        longest = max(longest, length)
    return longest


def _check_patterns(wf: Workflow, report: StructuralReport) -> None:
    by_name = wf.node_by_name()
    main = build_graph(wf, kinds=[ConnectionKind.MAIN.value])
    chain = _longest_linear_chain(main)
    if chain > LONG_CHAIN:
        report.add(Severity.INFO,
                   f"Long linear chain detected ({chain} nodes). Consider breaking into sub-workflows.",
                   "LONG_LINEAR_CHAIN")

    for node in wf.nodes:
        if node.disabled:
            continue
        for cred_type, ref in (node.credentials or {}).items():
            if not isinstance(ref, dict) or "id" not in ref:
                report.add(Severity.WARNING, f"Missing credentials configuration for {cred_type}",
                           "MISSING_CREDENTIAL_ID", node)

        if node.settings.get("onError") == "continueErrorOutput" and isinstance(node.name, str):
            main_slots = wf.connections.slots(node.name, ConnectionKind.MAIN.value)
            has_error_branch = (len(main_slots) > 1 and bool(main_slots[1])) or \
                wf.connections.has_output(node.name, ConnectionKind.ERROR.value)
            if not has_error_branch:
                report.add(Severity.WARNING,
                           'onError is "continueErrorOutput" but no error output is connected. '
                           "Failed items will be dropped.",
                           "MISSING_ERROR_OUTPUT", node)

    flagged = set()
    for e in wf.connections.edges():
        if e.kind != ConnectionKind.MAIN.value or not isinstance(e.target, str) or e.target in flagged:
            continue
        target = by_name.get(e.target)
        category = ai_category(target.type) if target is not None else None
        if category is None or category in ("orchestrator", "chain", "chat_trigger") \
                or category in MAIN_INPUT_CATEGORIES:
            continue
        flagged.add(e.target)
        report.add(Severity.WARNING,
                   f'AI sub-node "{e.target}" receives a main connection from "{e.source}". '
                   "Sub-nodes are connected to their consumer through ai_* connections.",
                   "AI_SUB_NODE_MAIN_INPUT", target)


def _check_tool_sources(wf: Workflow, report: StructuralReport) -> None:
    flagged = set()
    for index, node in enumerate(wf.nodes):
        desc = report.descriptors.get(index)
        if desc is None or desc.is_ai_tool or node.disabled or not isinstance(node.name, str):
            continue
        # langchain sub-nodes and community nodes are checked by the topology pass
        if ai_category(node.type) is not None or is_community(node.type) or node.name in flagged:
            continue
        if wf.connections.has_output(node.name, ConnectionKind.AI_TOOL.value):
            flagged.add(node.name)
            report.add(Severity.WARNING,
                       f'"{node.label}" is connected as an AI tool but {desc.display_name or desc.type} '
                       "is not usable as a tool. Use its tool variant or wrap it in a workflow tool.",
                       "NOT_USABLE_AS_TOOL", node)


def check_structure(workflow: Workflow, catalog: Optional[CachingCatalog] = None,
                    check_nodes: bool = True, check_connections: bool = True) -> StructuralReport:
    """
    Run the structural rules in order.

    Type/version resolution runs when `check_nodes` is set and a catalog is
    given; endpoint, orphan, cycle and pattern checks run when
    `check_connections` is set.

    Returns:
        StructuralReport with issues, statistics, resolved descriptors (by
        position in `workflow.nodes`) and the name-keyed graph over all connection kinds
    """
    report = StructuralReport()
    _check_document(workflow, report)
    if not workflow.has_nodes_field:
        return report
    if not workflow.nodes:
        if not workflow.malformed_nodes:
            report.add(Severity.WARNING, "Workflow has no nodes", "EMPTY_WORKFLOW")
        return report

    _check_size(workflow, report)
    _check_duplicates(workflow, report)
    _count(workflow, report)
    if check_nodes and catalog is not None:
        _check_types(workflow, catalog, report)

    report.graph = build_graph(workflow)
    if check_connections and workflow.has_connections_field:
        _check_connections(workflow, report)
        _check_orphans(workflow, report)
        _check_cycles(workflow, report)
        _check_patterns(workflow, report)
        if report.descriptors:
            _check_tool_sources(workflow, report)
    logger.debug(f"Structural pass: {len(report.issues)} issues over {report.statistics.total_nodes} nodes")
    return report

