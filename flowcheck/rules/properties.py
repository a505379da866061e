# flowcheck/rules/properties.py
"""Checks driven by the catalog's declared property schema."""

from __future__ import annotations

import re
from typing import Any, Dict, List

from flowcheck.models import PropertySpec
from flowcheck.rules.accumulator import RuleAccumulator
from flowcheck.rules.profiles import AI_FRIENDLY, RUNTIME, STRICT

_SENSITIVE_KEYS = re.compile(r"api[_-]?key|password|secret|token|credential", re.IGNORECASE)


def is_expression(value: Any) -> bool:
    return isinstance(value, str) and (value.startswith("=") or "{{" in value)


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip()) or value == [] or value == {}


def _effective(config: Dict[str, Any], key: str, defaults: Dict[str, Any]) -> Any:
    return config[key] if key in config else defaults.get(key)


def is_visible(prop: PropertySpec, config: Dict[str, Any], defaults: Dict[str, Any] = None) -> bool:
    """
    Evaluate `displayOptions`: every `show` key must match and no `hide` key
    may match. Unset keys take the property default.
    """
    defaults = defaults or {}
    show = prop.display_options.get("show") or {}
    hide = prop.display_options.get("hide") or {}
    for key, values in show.items():
        if key.startswith("@"):
            continue  # version gates are resolved by the catalog
        expected = values if isinstance(values, list) else [values]
        if _effective(config, key, defaults) not in expected:
            return False
    for key, values in hide.items():
        if key.startswith("@"):
            continue
        expected = values if isinstance(values, list) else [values]
        if _effective(config, key, defaults) in expected:
            return False
    return True


def visible_properties(props: List[PropertySpec], config: Dict[str, Any]) -> List[PropertySpec]:
    defaults = {p.name: p.default for p in props}
    return [p for p in props if is_visible(p, config, defaults)]


def check_required(acc: RuleAccumulator, config: Dict[str, Any], props: List[PropertySpec]) -> RuleAccumulator:
    """Missing required properties that are visible under the current settings."""
    for p in visible_properties(props, config):
        if p.required and is_empty(config.get(p.name)) and is_empty(p.default):
            acc.error(
                f"Required property '{p.display_name or p.name}' is missing",
                code="MISSING_REQUIRED",
                fix=f"Add '{p.name}' to the node parameters",
                field=p.name,
            )
    return acc


def check_types(acc: RuleAccumulator, config: Dict[str, Any], props: List[PropertySpec]) -> RuleAccumulator:
    by_name = {p.name: p for p in props}
    for key, value in config.items():
        p = by_name.get(key)
        if p is None or value is None or is_expression(value):
            continue
        expected = None
        if p.type == "string" and not isinstance(value, str):
            expected, hint = "a string", f"Change {key} to a string value"
        elif p.type == "number" and (isinstance(value, bool) or not isinstance(value, (int, float))):
            expected, hint = "a number", f"Change {key} to a number"
        elif p.type == "boolean" and not isinstance(value, bool):
            expected, hint = "a boolean", f"Change {key} to true or false"
        if expected:
            acc.error(f"Property '{key}' must be {expected}, got {type(value).__name__}",
                      code="INVALID_TYPE", fix=hint, field=key, minimum=RUNTIME)
            continue
        if p.type == "options" and p.options and value not in p.options:
            allowed = ", ".join(str(o) for o in p.options)
            acc.error(f"Invalid value for '{key}'. Must be one of: {allowed}",
                      code="INVALID_OPTION", fix=f"Change {key} to one of the valid options",
                      field=key, minimum=RUNTIME)
    return acc


def check_unused(acc: RuleAccumulator, config: Dict[str, Any], props: List[PropertySpec]) -> RuleAccumulator:
    """Configured keys the node will ignore: unknown, or hidden by other settings."""
    if not props:
        return acc
    visible = {p.name for p in visible_properties(props, config)}
    known = {p.name for p in props}
    for key in config:
        if key.startswith("_") or key.startswith("@") or key in visible:
            continue
        if key in known:
            msg = f"Property '{key}' is configured but won't be used due to current settings"
        else:
            msg = f"Property '{key}' is not a known property of this node type"
        acc.warn(msg, code="UNUSED_PROPERTY", fix="Remove this property or adjust other settings",
                 field=key, minimum=STRICT)
    return acc


def check_secrets(acc: RuleAccumulator, config: Dict[str, Any]) -> RuleAccumulator:
    for key, value in config.items():
        if isinstance(value, str) and value and not is_expression(value) and _SENSITIVE_KEYS.search(key):
            acc.warn(f"Hardcoded {key} detected", code="HARDCODED_SECRET",
                     fix="Use credentials or an expression instead of a literal value",
                     field=key, minimum=AI_FRIENDLY)
    return acc


def check_properties(acc: RuleAccumulator, config: Dict[str, Any], props: List[PropertySpec]) -> RuleAccumulator:
    acc = check_types(acc, config, props)
    acc = check_unused(acc, config, props)
    return check_secrets(acc, config)
