# flowcheck/rules/library/fixed_collections.py
"""
Shape checks for fixedCollection parameters.

A common mistake is one extra level of nesting (`rules.conditions` on a Switch,
`fields.values.values` on a Set). The platform fails at runtime with
"propertyValues[itemName] is not iterable".
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Tuple

from flowcheck.catalog.normalizer import short_name
from flowcheck.rules.accumulator import RuleAccumulator
from flowcheck.rules.profiles import RUNTIME

# short type name (lowercase) -> [(invalid path, expected path)]
KNOWN_PATTERNS: Dict[str, List[Tuple[str, str]]] = {
    "switch": [("rules.conditions.values", "rules.values"), ("rules.conditions", "rules.values")],
    "if": [("conditions.values", "conditions")],
    "filter": [("conditions.values", "conditions")],
    "summarize": [("fieldsToSummarize.values.values", "fieldsToSummarize.values")],
    "comparedatasets": [("mergeByFields.values.values", "mergeByFields.values")],
    "sort": [("sortFieldsUi.sortField.values", "sortFieldsUi.sortField")],
    "aggregate": [("fieldsToAggregate.fieldToAggregate.values", "fieldsToAggregate.fieldToAggregate")],
    "set": [("fields.values.values", "fields.values")],
    "html": [("extractionValues.values.values", "extractionValues.values")],
    "httprequest": [("body.parameters.values", "body.parameters")],
    "airtable": [("sort.sortField.values", "sort.sortField")],
}

_MISSING = object()


def _get(config: Dict[str, Any], path: str) -> Any:
    cur: Any = config
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return _MISSING
        cur = cur[part]
    return cur


def _set(config: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    cur = config
    for part in parts[:-1]:
        nxt = cur.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[part] = nxt
        cur = nxt
    cur[parts[-1]] = value


def find_invalid_nesting(node_type: str, config: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """First (invalid, expected) pair present in `config`, or None."""
    for invalid, expected in KNOWN_PATTERNS.get(short_name(node_type).lower(), ()):
        if _get(config, invalid) is not _MISSING:
            return invalid, expected
    return None


def restructure(config: Dict[str, Any], invalid: str, expected: str) -> Dict[str, Any]:
    """
    Patch moving the value at `invalid` to `expected`. The stray branch is
    set to None (removed) unless `expected` already replaces it.
    """
    value = copy.deepcopy(_get(config, invalid))
    fixed: Dict[str, Any] = {}
    if "." not in expected:
        fixed[expected] = value
        return fixed
    _set(fixed, expected, value if isinstance(value, list) else [value])
    if not invalid.startswith(expected + "."):
        inv, exp = invalid.split("."), expected.split(".")
        common = 0
        while common < min(len(inv), len(exp)) and inv[common] == exp[common]:
            common += 1
        _set(fixed, ".".join(inv[:common + 1]), None)
    return fixed


def check_fixed_collections(acc: RuleAccumulator, node_type: str, config: Dict[str, Any]) -> RuleAccumulator:
    found = find_invalid_nesting(node_type, config)
    if found is None:
        return acc
    invalid, expected = found
    acc.error(
        f'Invalid structure: found nested "{invalid}" but expected "{expected}". '
        'This causes "propertyValues[itemName] is not iterable" at runtime.',
        code="INVALID_FIXED_COLLECTION",
        fix=f'Move the contents of "{invalid}" to "{expected}"',
        field=invalid.split(".")[0],
    )
    acc.fix({"parameters": restructure(config, invalid, expected)})
    return acc


# ---------- Branching nodes ----------

def validate_switch(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any]) -> RuleAccumulator:
    mode = config.get("mode", "rules")
    if mode == "rules":
        rules = config.get("rules")
        values = rules.get("values") if isinstance(rules, dict) else None
        if isinstance(rules, dict) and "values" in rules and not values:
            acc.warn("Switch has no routing rules; every item goes to the fallback output",
                     code="SWITCH_NO_RULES", field="rules", minimum=RUNTIME)
        if isinstance(values, list):
            for i, rule in enumerate(values):
                if isinstance(rule, dict) and "conditions" not in rule and "outputKey" not in rule:
                    acc.warn(f"Switch rule {i} has no conditions", code="SWITCH_EMPTY_RULE", field="rules")
    elif mode == "expression" and not config.get("output"):
        acc.error("Switch in expression mode needs an output expression", code="MISSING_REQUIRED",
                  field="output")
    return acc


def validate_condition_node(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any]) -> RuleAccumulator:
    """If / Filter."""
    conditions = config.get("conditions")
    if conditions is None:
        return acc
    if isinstance(conditions, dict):
        items = conditions.get("conditions")
        if isinstance(items, list) and not items:
            acc.warn("No conditions defined; every item takes the same branch", code="EMPTY_CONDITIONS",
                     field="conditions")
        if isinstance(items, list):
            for i, cond in enumerate(items):
                if isinstance(cond, dict) and not isinstance(cond.get("operator"), dict):
                    acc.error(f"Condition {i} is missing an operator", code="MISSING_OPERATOR",
                              fix='Add operator: {"type": "string", "operation": "equals"}',
                              field="conditions", minimum=RUNTIME)
    return acc
