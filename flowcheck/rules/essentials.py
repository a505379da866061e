# flowcheck/rules/essentials.py
"""
Fallback rule set for node types without a dedicated rule module.

Everything here is inferred from the configuration and the descriptor's own
property metadata: the resource/operation pair, destructive or listing
operations, and whether the type talks to an external service.
"""

from __future__ import annotations

from typing import Any, Dict, List

from flowcheck.models import PropertySpec
from flowcheck.rules.accumulator import RuleAccumulator
from flowcheck.rules.error_handling import READ_DEFAULTS, WRITE_DEFAULTS, apply_error_handling, is_error_prone
from flowcheck.rules.profiles import AI_FRIENDLY, RUNTIME

DESTRUCTIVE_OPERATIONS = ("delete", "deleteAll", "remove", "clear", "truncate", "drop", "purge")
LISTING_OPERATIONS = ("getAll", "getMany", "list", "search", "find", "query")
WRITE_OPERATIONS = DESTRUCTIVE_OPERATIONS + ("create", "update", "upsert", "insert", "append", "send", "post")

_FILTER_KEYS = ("id", "ids", "query", "filter", "filters", "where", "key", "conditions", "recordId",
                "messageId", "fileId", "documentId", "rowId", "userId")


def _has_filter(config: Dict[str, Any]) -> bool:
    for key, value in config.items():
        if value in (None, "", [], {}):
            continue
        k = key.lower()
        if any(k == f.lower() or k.endswith(f.lower()) for f in _FILTER_KEYS):
            return True
    return False


def infer_essentials(acc: RuleAccumulator, node_type: str, config: Dict[str, Any],
                     settings: Dict[str, Any], props: List[PropertySpec]) -> RuleAccumulator:
    operation = config.get("operation")
    if operation is None:
        op_prop = next((p for p in props if p.name == "operation"), None)
        operation = op_prop.default if op_prop else None

    if operation in DESTRUCTIVE_OPERATIONS and not _has_filter(config):
        acc.warn(f"'{operation}' operation has no identifier or filter and may affect every record",
                 code="DESTRUCTIVE_WITHOUT_FILTER", fix="Add an id, key or filter", minimum=RUNTIME)

    if operation in LISTING_OPERATIONS and config.get("returnAll") is True:
        acc.warn("returnAll fetches every record; results may be very large",
                 code="UNBOUNDED_RESULT", fix="Set returnAll: false and a limit", field="limit",
                 minimum=AI_FRIENDLY)

    api_like = any(p.name == "operation" for p in props) and any(p.name == "resource" for p in props)
    if is_error_prone(node_type) or api_like:
        defaults = WRITE_DEFAULTS if operation in WRITE_OPERATIONS else READ_DEFAULTS
        acc = apply_error_handling(acc, settings, defaults)
    return acc
