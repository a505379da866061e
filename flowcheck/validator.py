# flowcheck/validator.py
"""
Validation orchestrator.

    validate_workflow(workflow, options, catalog) -> ValidationResult

Runs the structural pass, then per-node configuration rules and expression
checks, then the AI topology pass when the workflow has AI nodes, and
finally synthesizes suggestions. `validate_connections`,
`validate_expressions` and `validate_node` are narrower views of the same
pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Set

import networkx as nx

from flowcheck.catalog.client import Catalog, CachingCatalog
from flowcheck.models import (
    IssueCategory,
    NodeConfigResult,
    Severity,
    ValidationIssue,
    ValidationResult,
    Workflow,
)
from flowcheck.expressions.checker import validate_node_expressions
from flowcheck.rules.engine import validate_node_config
from flowcheck.rules.error_handling import has_error_handling, is_error_prone
from flowcheck.rules.profiles import AI_FRIENDLY, DEFAULT_PROFILE, WORKFLOW_PROFILE, enabled, resolve_profile
from flowcheck.structural.checker import CONNECTION_EXAMPLE, StructuralReport, check_structure, is_sticky_note
from flowcheck.topology.checker import has_ai_nodes, validate_ai_topology
from flowcheck.utils.graph import FLOW_KINDS, build_graph, causal_order, upstream_of
from flowcheck.utils.logger import get_logger

logger = get_logger("validator")

CONNECTION_ERROR_CODES = {
    "NO_CONNECTIONS", "CONNECTION_USES_ID", "UNKNOWN_CONNECTION_SOURCE",
    "UNKNOWN_CONNECTION_TARGET", "MALFORMED_CONNECTION",
}
LARGE_WORKFLOW = 20
EXPRESSIONS_PER_NODE = 5


@dataclass
class ValidationOptions:
    validate_nodes: bool = True
    validate_connections: bool = True
    validate_expressions: bool = True
    profile: str = WORKFLOW_PROFILE


def _stamp(issues: List[ValidationIssue], node) -> List[ValidationIssue]:
    return [replace(i, node_id=node.id, node_name=node.label) for i in issues]


def _validate_nodes(wf: Workflow, report: StructuralReport, profile: str,
                    result: ValidationResult, catalog_given: bool) -> None:
    for index, node in enumerate(wf.nodes):
        if node.disabled or is_sticky_note(node) or not isinstance(node.type, str):
            continue
        desc = report.descriptors.get(index)
        if catalog_given and desc is None:
            # unknown types are already reported structurally
            continue
        try:
            r = validate_node_config(node.type, node.parameters,
                                     desc.properties if desc is not None else None,
                                     profile=profile, settings=node.settings)
        except Exception as e:
            logger.warning(f"Node validation failed on '{node.label}': {e}")
            result.add(ValidationIssue(Severity.ERROR, f"Failed to validate node: {e}",
                                       node_id=node.id, node_name=node.label, code="RULE_FAILURE",
                                       category=IssueCategory.CONFIGURATION))
            continue
        result.extend(_stamp(r.errors, node))
        result.extend(_stamp(r.warnings, node))
        result.suggestions.extend(r.suggestions)
        if r.autofix:
            result.autofix[node.label] = r.autofix
        logger.debug(f"Node '{node.label}': {len(r.errors)} errors, {len(r.warnings)} warnings")


def _expression_scopes(wf: Workflow, full: nx.DiGraph, flow: nx.DiGraph) -> Dict[str, Set[str]]:
    """
    node name -> names whose output it can reference. AI sub-nodes run inside
    their consumer, so they see what the consumer sees plus the consumer.
    """
    scopes: Dict[str, Set[str]] = {}

    def scope(name: str, visiting: Set[str]) -> Set[str]:
        if name in scopes:
            return scopes[name]
        seen = set(upstream_of(flow, name))
        visiting = visiting | {name}
        for consumer in full.successors(name) if name in full else ():
            kinds = full[name][consumer]["kinds"]
            if consumer in visiting or not any(k.startswith("ai_") for k in kinds):
                continue
            seen |= {consumer} | scope(consumer, visiting)
        seen.discard(name)
        scopes[name] = seen
        return seen

    for n in wf.nodes:
        if isinstance(n.name, str):
            scope(n.name, set())
    return scopes


def _validate_expressions(wf: Workflow, report: StructuralReport, result: ValidationResult) -> List[str]:
    """Returns the names of nodes with many expressions."""
    known = [n.name for n in wf.nodes if isinstance(n.name, str)]
    flow = build_graph(wf, kinds=FLOW_KINDS)
    scopes = _expression_scopes(wf, report.graph, flow)
    order = causal_order(flow)
    busy = []
    for node in wf.nodes:
        if node.disabled or not isinstance(node.name, str):
            continue
        scope = scopes.get(node.name, set())
        upstream = [n for n in order if n in scope]
        r = validate_node_expressions(node.parameters, upstream, known)
        for msg in r.errors:
            result.add(ValidationIssue(Severity.ERROR, f"Expression error: {msg}", node_id=node.id,
                                       node_name=node.label, code="EXPRESSION_ERROR",
                                       category=IssueCategory.EXPRESSION))
        for msg in r.warnings:
            result.add(ValidationIssue(Severity.WARNING, f"Expression warning: {msg}", node_id=node.id,
                                       node_name=node.label, code="EXPRESSION_WARNING",
                                       category=IssueCategory.EXPRESSION))
        result.statistics.expressions_validated += r.count
        if r.count > EXPRESSIONS_PER_NODE:
            busy.append(node.label)
    return busy


def _suggest(wf: Workflow, result: ValidationResult, busy_nodes: List[str]) -> None:
    stats = result.statistics
    out = result.suggestions

    if stats.trigger_nodes == 0 and stats.total_nodes > 0:
        out.append("Add a trigger node (e.g., Webhook, Schedule Trigger) to automate workflow execution")

    if any(e.code in CONNECTION_ERROR_CODES for e in result.errors):
        out.append(f"Example connection structure: {CONNECTION_EXAMPLE}")
        out.append("Remember: use node NAMES (not IDs) in connections. "
                   "The name is what you see in the UI, not the node type.")

    if stats.total_nodes > LARGE_WORKFLOW:
        out.append("Consider breaking this workflow into smaller sub-workflows for better maintainability")

    if busy_nodes:
        out.append("Consider using a Code node for complex data transformations instead of multiple "
                   f"expressions ({', '.join(busy_nodes)})")

    active = [n for n in wf.nodes if not n.disabled and not is_sticky_note(n)]
    lacking = [n for n in active if not has_error_handling(n.settings)]
    if len(active) > 5 and len(lacking) * 2 > len(active):
        risky = sum(1 for n in lacking if isinstance(n.type, str) and is_error_prone(n.type))
        detail = f" {risky} of them call external services." if risky else ""
        out.append(f"Most nodes lack error handling ({len(lacking)} of {len(active)}).{detail} "
                   'Use the node-level "onError" property: "continueRegularOutput", '
                   '"continueErrorOutput" or "stopWorkflow".')

    if any(n.settings.get("continueOnFail") is True for n in active):
        out.append('Replace "continueOnFail: true" with "onError: \'continueRegularOutput\'" '
                   "for better UI compatibility and control.")

    if len(active) == 1 and not wf.connections:
        out.append("A minimal workflow needs: 1) a trigger node, 2) an action node, "
                   "3) a connection between them")

    if result.errors:
        first = result.errors[0]
        where = f' starting with "{first.node_name}"' if first.node_name else ""
        out.append(f"Next steps: fix the {len(result.errors)} error(s){where}, then validate again.")

    result.suggestions = list(dict.fromkeys(out))


def validate_workflow(workflow: Any, options: Optional[ValidationOptions] = None,
                      catalog: Optional[Catalog] = None, profile: Optional[str] = None) -> ValidationResult:
    """
    Validate a workflow document (dict or Workflow).

    `catalog` is consulted for node-type metadata; without one, type and
    version resolution are skipped and node rules run without descriptors.
    `profile` overrides `options.profile`.

    Returns:
        ValidationResult; `valid` is True when no error was found
    """
    opts = options or ValidationOptions()
    active_profile = resolve_profile(profile or opts.profile, default=WORKFLOW_PROFILE)
    result = ValidationResult()
    wf = Workflow.from_dict(workflow)
    cache = CachingCatalog(catalog) if catalog is not None else None

    try:
        report = check_structure(wf, cache, opts.validate_nodes, opts.validate_connections)
    except Exception as e:
        logger.warning(f"Structural pass failed: {e}")
        result.add(ValidationIssue(Severity.ERROR, f"Workflow validation failed: {e}",
                                   code="VALIDATION_FAILURE", category=IssueCategory.STRUCTURAL))
        result.valid = False
        return result

    result.statistics = report.statistics
    show_info = enabled(active_profile, AI_FRIENDLY)
    result.extend(i for i in report.issues if show_info or i.severity is not Severity.INFO)

    busy: List[str] = []
    if wf.nodes:
        if opts.validate_nodes:
            _validate_nodes(wf, report, active_profile, result, catalog_given=cache is not None)
        if opts.validate_expressions:
            busy = _validate_expressions(wf, report, result)
        if (opts.validate_nodes or opts.validate_connections) and has_ai_nodes(wf):
            topology = validate_ai_topology(wf)
            result.extend(i for i in topology if show_info or i.severity is not Severity.INFO)

    _suggest(wf, result, busy)
    result.valid = not result.errors
    logger.debug(f"Validated '{wf.name}': {len(result.errors)} errors, {len(result.warnings)} warnings")
    return result


def validate_connections(workflow: Any, catalog: Optional[Catalog] = None) -> ValidationResult:
    """Structure, connections and AI topology only."""
    return validate_workflow(workflow, ValidationOptions(validate_nodes=False, validate_expressions=False),
                             catalog=catalog)


def validate_expressions(workflow: Any) -> ValidationResult:
    """Expressions only (plus the document checks every run performs)."""
    return validate_workflow(workflow, ValidationOptions(validate_nodes=False, validate_connections=False))


def validate_node(node_type: str, config: Dict[str, Any], catalog: Optional[Catalog] = None,
                  profile: str = DEFAULT_PROFILE, settings: Optional[Dict[str, Any]] = None) -> NodeConfigResult:
    """Rule-engine report for one node configuration."""
    props = None
    if catalog is not None:
        desc, _ = CachingCatalog(catalog).lookup(node_type)
        props = desc.properties if desc is not None else None
    return validate_node_config(node_type, config, props, profile=profile, settings=settings)
