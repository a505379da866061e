# flowcheck/expressions/checker.py
"""
Template-expression checks.

A parameter value is an expression when it starts with "=" and contains
`{{ ... }}` regions. For every region we check delimiters, brackets, the
builtin `$` identifiers and references to other nodes by name.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional, Set, Tuple

from flowcheck.models import ExpressionResult

EXPRESSION_RE = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)

# Constructs that name another node.
NODE_REF_RES = (
    re.compile(r"\$node\[\s*[\"']([^\"']+)[\"']\s*\]"),
    re.compile(r"\$\(\s*[\"']([^\"']+)[\"']\s*\)"),
    re.compile(r"\$items\(\s*[\"']([^\"']+)[\"']"),
)

BUILTINS = {
    "$json", "$node", "$input", "$items", "$parameter", "$env", "$workflow", "$execution",
    "$prevNode", "$itemIndex", "$runIndex", "$now", "$today", "$vars", "$binary", "$jmespath",
    "$if", "$min", "$max", "$fromAI", "$evaluateExpression", "$position", "$secrets",
    "$response", "$request", "$pageCount", "$thisItem", "$data", "$agentInfo",
}

_VARIABLE_RE = re.compile(r"(?<![\w$])(\$[A-Za-z_]\w*)")
_FUNCTION_REF_RE = re.compile(r"(?<![\w$])\$\(")
_MISSING_PREFIX_RE = re.compile(r"(?<![\w$.'\"])\b(json|input|items|workflow|execution)\s*[.\[]|(?<![\w$.'\"])\bnode\s*\[")
_STRING_RE = re.compile(r"'(?:\\.|[^'\\])*'|\"(?:\\.|[^\"\\])*\"|`(?:\\.|[^`\\])*`")

# Values of these keys are source code, not expressions.
CODE_FIELDS = {"jsCode", "pythonCode", "code", "functionCode"}

_PAIRS = {")": "(", "]": "[", "}": "{"}


def _balanced(body: str) -> bool:
    stack: List[str] = []
    for ch in _STRING_RE.sub("''", body):
        if ch in "([{":
            stack.append(ch)
        elif ch in _PAIRS:
            if not stack or stack.pop() != _PAIRS[ch]:
                return False
    return not stack


def _check_region(body: str, result: ExpressionResult) -> None:
    """Checks on the text between one pair of delimiters."""
    if not body.strip():
        result.errors.append("Empty expression found")
        return
    if not _balanced(body):
        result.errors.append(f"Unbalanced brackets in expression {{{{{body.strip()}}}}}")

    stripped = _STRING_RE.sub("''", body)
    for var in _VARIABLE_RE.findall(stripped):
        if var in BUILTINS:
            result.used_variables.add(var)
        else:
            result.warnings.append(f"Unknown variable {var}")
    if _FUNCTION_REF_RE.search(stripped):
        result.used_variables.add("$")

    for pattern in NODE_REF_RES:
        for m in pattern.finditer(body):
            result.used_nodes.add(m.group(1))

    if _MISSING_PREFIX_RE.search(stripped):
        result.warnings.append("Possible missing $ prefix for variable (e.g., use $json instead of json)")
    if "?." in stripped:
        result.warnings.append("Optional chaining (?.) is not supported in expressions")
    if "${" in body:
        result.errors.append("Template literals ${} are not supported. Use string concatenation instead")


def _check_delimiters(text: str, result: ExpressionResult) -> None:
    opens, closes = text.count("{{"), text.count("}}")
    if opens != closes:
        result.errors.append("Unmatched expression brackets {{ }}")
    if re.search(r"\{\{(?:(?!\}\}).)*\{\{", text, re.DOTALL):
        result.errors.append("Nested expressions are not supported")


def _check_references(result: ExpressionResult, upstream: Set[str], known: Optional[Set[str]]) -> None:
    for name in sorted(result.used_nodes):
        if name in upstream:
            continue
        if known is not None and name in known:
            result.warnings.append(
                f'Referenced node "{name}" is not upstream of this node; its data may not exist yet')
        else:
            result.errors.append(f'Referenced node "{name}" not found in workflow')


def validate_expression(
    text: str,
    upstream: Iterable[str] = (),
    known_nodes: Optional[Iterable[str]] = None,
) -> ExpressionResult:
    """
    Validate one string value.

    `upstream` lists the node names that run before this node; `known_nodes`
    lists every node in the workflow (defaults to `upstream`).
    """
    result = ExpressionResult()
    _check_delimiters(text, result)
    regions = EXPRESSION_RE.findall(text)
    for body in regions:
        _check_region(body, result)
    result.count = len(regions)
    _check_references(result, set(upstream), set(known_nodes) if known_nodes is not None else None)
    result.valid = not result.errors
    return result


def _walk(value: Any, path: str) -> Iterable[Tuple[str, str, str]]:
    """Yield (path, key, string) for every string leaf."""
    if isinstance(value, str):
        yield path, path.rsplit(".", 1)[-1], value
    elif isinstance(value, list):
        for i, item in enumerate(value):
            yield from _walk(item, f"{path}[{i}]")
    elif isinstance(value, dict):
        for k, v in value.items():
            yield from _walk(v, f"{path}.{k}" if path else str(k))


def validate_node_expressions(
    parameters: Any,
    upstream: Iterable[str] = (),
    known_nodes: Optional[Iterable[str]] = None,
) -> ExpressionResult:
    """
    Validate every expression in a node's parameter tree. Messages are prefixed
    with the parameter path, e.g. "parameters.options.url: Empty expression found".
    """
    upstream = list(upstream)
    known = list(known_nodes) if known_nodes is not None else None
    combined = ExpressionResult()

    for path, key, text in _walk(parameters, "parameters"):
        if key in CODE_FIELDS or ("{{" not in text and "}}" not in text):
            continue
        if "{{" in text and not text.startswith("="):
            combined.errors.append(
                f"{path}: Expression is missing the '=' prefix and will be treated as literal text")
        r = validate_expression(text, upstream, known)
        combined.errors.extend(f"{path}: {e}" for e in r.errors)
        combined.warnings.extend(f"{path}: {w}" for w in r.warnings)
        combined.used_variables |= r.used_variables
        combined.used_nodes |= r.used_nodes
        combined.count += r.count

    combined.valid = not combined.errors
    return combined
