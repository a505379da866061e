# flowcheck/rules/engine.py
"""
Per-node configuration rule engine.

    validate_node_config(node_type, config, properties, profile, settings)

runs, in order: descriptor-driven property checks, misplaced node-level keys,
node-level setting checks, fixedCollection shapes, then either the rule
registered for the normalized type or the essentials fallback.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from flowcheck.catalog.normalizer import normalize_type
from flowcheck.errors import RuleError
from flowcheck.models import NodeConfigResult, PropertySpec
from flowcheck.rules.accumulator import RuleAccumulator
from flowcheck.rules.error_handling import check_misplaced_settings, check_node_settings
from flowcheck.rules.essentials import infer_essentials
from flowcheck.rules.library import code_node, database, fixed_collections, http_request, saas, webhook
from flowcheck.rules.profiles import DEFAULT_PROFILE, resolve_profile
from flowcheck.rules.properties import check_properties, check_required
from flowcheck.utils.logger import get_logger

logger = get_logger("rules")

RuleFn = Callable[[RuleAccumulator, Dict[str, Any], Dict[str, Any]], RuleAccumulator]

RULES: Dict[str, RuleFn] = {
    "nodes-base.httpRequest": http_request.validate_http_request,
    "nodes-base.webhook": webhook.validate_webhook,
    "nodes-base.code": code_node.validate_code,
    "nodes-base.slack": saas.validate_slack,
    "nodes-base.googleSheets": saas.validate_google_sheets,
    "nodes-base.openAi": saas.validate_openai,
    "nodes-base.mongoDb": database.validate_mongodb,
    "nodes-base.postgres": database.validate_postgres,
    "nodes-base.mySql": database.validate_mysql,
    "nodes-base.switch": fixed_collections.validate_switch,
    "nodes-base.if": fixed_collections.validate_condition_node,
    "nodes-base.filter": fixed_collections.validate_condition_node,
}


def rule_for(node_type: str) -> Optional[RuleFn]:
    return RULES.get(normalize_type(node_type or ""))


def validate_node_config(
    node_type: str,
    config: Dict[str, Any],
    properties: Optional[List[PropertySpec]] = None,
    profile: str = DEFAULT_PROFILE,
    settings: Optional[Dict[str, Any]] = None,
) -> NodeConfigResult:
    """
    Validate one node's `parameters` against its descriptor properties and the
    per-type rule library.

    `settings` holds the node-level keys (onError, retryOnFail, ...). When it is
    None the node-level checks are skipped, as for a bare configuration.

    Returns:
        NodeConfigResult with errors, warnings, suggestions and an autofix patch
    """
    acc = RuleAccumulator(profile=resolve_profile(profile))
    config = config if isinstance(config, dict) else {}
    props = list(properties or [])

    acc = check_required(acc, config, props)
    acc = check_properties(acc, config, props)
    acc = check_misplaced_settings(acc, config)
    if settings is not None:
        acc = check_node_settings(acc, settings)
    acc = fixed_collections.check_fixed_collections(acc, node_type or "", config)

    rule = rule_for(node_type)
    try:
        if rule is not None:
            acc = rule(acc, config, settings or {})
        else:
            acc = infer_essentials(acc, node_type or "", config, settings or {}, props)
    except Exception as e:
        err = RuleError(node_type, e)
        logger.warning(str(err))
        acc.error(f"Internal error while validating configuration: {e}", code="RULE_FAILURE")

    return acc.result()
