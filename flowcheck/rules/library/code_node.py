# flowcheck/rules/library/code_node.py
"""Static checks for Code nodes. Only shape and usage, never semantics."""

from __future__ import annotations

import re
from typing import Any, Dict

from flowcheck.rules.accumulator import RuleAccumulator
from flowcheck.rules.profiles import AI_FRIENDLY, RUNTIME, STRICT

_JS_SYNTAX = (
    (re.compile(r"const\s+const"), "Duplicate const declaration"),
    (re.compile(r"let\s+let"), "Duplicate let declaration"),
    (re.compile(r"\)\s*\)\s*{"), "Extra closing parenthesis before {"),
)

_PRIMITIVE_RETURN = re.compile(r"^\s*return\s+(\d+|true|false|null|['\"][^'\"]*['\"])\s*;?\s*$", re.MULTILINE)

_UNAVAILABLE_PY = ("requests", "pandas", "numpy", "pip")

_SECURITY = (
    (re.compile(r"\beval\s*\("), "eval() can execute arbitrary code"),
    (re.compile(r"\bexec\s*\("), "exec() can execute arbitrary code"),
    (re.compile(r"\bFunction\s*\("), "Function constructor can execute arbitrary code"),
    (re.compile(r"child_process"), "child_process gives shell access"),
    (re.compile(r"\bos\.system\s*\(|\bsubprocess\b"), "Shell execution from a Code node"),
)


def _check_js(acc: RuleAccumulator, code: str) -> None:
    for pattern, message in _JS_SYNTAX:
        if pattern.search(code):
            acc.error(f"Syntax error: {message}", code="CODE_SYNTAX", fix="Check your JavaScript syntax",
                      field="jsCode", minimum=RUNTIME)
    if "return" not in code:
        acc.warn("Code does not return anything; downstream nodes receive no items",
                 code="CODE_NO_RETURN", fix='End with: return [{json: {...}}]', field="jsCode")
    if _PRIMITIVE_RETURN.search(code):
        acc.error("Code must return an array of items, not a primitive value",
                  code="CODE_PRIMITIVE_RETURN", fix="Return [{json: {result: value}}]",
                  field="jsCode", minimum=RUNTIME)


def _check_python(acc: RuleAccumulator, code: str) -> None:
    if "return" not in code:
        acc.warn("Code does not return anything; downstream nodes receive no items",
                 code="CODE_NO_RETURN", fix='End with: return [{"json": {...}}]', field="pythonCode")
    for module in _UNAVAILABLE_PY:
        if re.search(rf"^\s*(import|from)\s+{module}\b", code, re.MULTILINE):
            acc.error(f"Module '{module}' is not available in Code nodes", code="CODE_UNAVAILABLE_IMPORT",
                      field="pythonCode", minimum=RUNTIME)
    if "__name__" in code and "__main__" in code:
        acc.warn('if __name__ == "__main__" is not needed in Code nodes', code="CODE_MAIN_GUARD",
                 field="pythonCode", minimum=STRICT)


def validate_code(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any]) -> RuleAccumulator:
    language = config.get("language") or "javaScript"
    field_name = "pythonCode" if language in ("python", "pythonNative") else "jsCode"
    code = config.get(field_name) or ""
    if not isinstance(code, str) or not code.strip():
        return acc.error("Code cannot be empty", code="MISSING_REQUIRED", field=field_name,
                         fix='Add your code logic. Start with: return [{json: {result: "success"}}]')

    if field_name == "jsCode":
        _check_js(acc, code)
    else:
        _check_python(acc, code)

    if "{{" in code and "}}" in code:
        acc.error("Expression syntax {{ }} does not work inside Code nodes", code="CODE_EXPRESSION_SYNTAX",
                  fix="Use $json.field or $('Node').item.json.field", field=field_name)
    if "$node[" in code:
        acc.warn("$node[...] is legacy syntax", code="CODE_LEGACY_NODE_ACCESS",
                 fix="Use $('Node Name').item.json instead", field=field_name, minimum=AI_FRIENDLY)

    mode = config.get("mode")
    if mode == "runOnceForEachItem" and re.search(r"\bitems\b", code):
        acc.warn('In "Run Once for Each Item" mode, use $json instead of the items array',
                 code="CODE_MODE_ITEMS", minimum=AI_FRIENDLY)

    for pattern, message in _SECURITY:
        if pattern.search(code):
            acc.warn(f"Security: {message}", code="CODE_SECURITY", field=field_name, minimum=STRICT)

    if "onError" not in settings and len(code) > 100:
        acc.suggest('Code nodes can throw; consider onError: "continueRegularOutput"')
        acc.fix({"onError": "continueRegularOutput"})
    return acc
