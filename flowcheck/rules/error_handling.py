# flowcheck/rules/error_handling.py
"""
Node-level error-handling settings (`onError`, `retryOnFail`, ...).

These keys live beside `parameters` on the node. Autofix patches address them
at the top level; a value of None in a patch means "remove this key".
"""

from __future__ import annotations

from typing import Any, Dict

from flowcheck.models import NODE_SETTING_KEYS
from flowcheck.rules.accumulator import RuleAccumulator
from flowcheck.rules.profiles import AI_FRIENDLY, RUNTIME, STRICT

ON_ERROR_VALUES = ("continueRegularOutput", "continueErrorOutput", "stopWorkflow")

# Reads are idempotent: keep going with whatever came back.
READ_DEFAULTS = {"onError": "continueRegularOutput"}
# Writes and deletes must not silently continue.
WRITE_DEFAULTS = {"onError": "stopWorkflow"}

ERROR_PRONE_TYPES = (
    "httprequest", "webhook", "emailsend", "slack", "discord", "telegram",
    "postgres", "mysql", "mongodb", "redis", "github", "gitlab", "jira",
    "salesforce", "hubspot", "airtable", "googlesheets", "googledrive",
    "dropbox", "s3", "ftp", "ssh", "mqtt", "kafka", "rabbitmq", "graphql",
    "openai", "anthropic",
)

_MISPLACEABLE = NODE_SETTING_KEYS + ("disabled", "notes", "notesInFlow", "credentials")


def is_error_prone(node_type: str) -> bool:
    t = (node_type or "").lower()
    return any(k in t for k in ERROR_PRONE_TYPES)


def has_error_handling(settings: Dict[str, Any]) -> bool:
    return any(settings.get(k) for k in ("onError", "retryOnFail", "continueOnFail"))


def check_misplaced_settings(acc: RuleAccumulator, config: Dict[str, Any]) -> RuleAccumulator:
    misplaced = [k for k in _MISPLACEABLE if k in config]
    if misplaced:
        acc.error(
            f"Node-level properties {', '.join(misplaced)} are in the wrong location. "
            "They must be at the node level, not inside parameters.",
            code="MISPLACED_NODE_PROPERTY",
            fix="Move these properties from node.parameters to the node itself",
        )
    return acc


def _is_bool(v: Any) -> bool:
    return isinstance(v, bool)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def check_node_settings(acc: RuleAccumulator, settings: Dict[str, Any]) -> RuleAccumulator:
    """Validate the node-level error-handling keys themselves."""
    on_error = settings.get("onError")
    if "onError" in settings and on_error not in ON_ERROR_VALUES:
        acc.error(f'Invalid onError value: "{on_error}". Must be one of: {", ".join(ON_ERROR_VALUES)}',
                  code="INVALID_ON_ERROR", field="onError")

    for key in ("continueOnFail", "retryOnFail", "alwaysOutputData", "executeOnce"):
        if key in settings and not _is_bool(settings[key]):
            acc.error(f"{key} must be a boolean value", code="INVALID_TYPE", field=key)

    if "continueOnFail" in settings and "onError" in settings:
        acc.error('Cannot use both "continueOnFail" and "onError" properties. Use only "onError".',
                  code="CONFLICTING_ERROR_HANDLING", fix='Remove "continueOnFail"')
    elif _is_bool(settings.get("continueOnFail")):
        mapped = "continueRegularOutput" if settings["continueOnFail"] else "stopWorkflow"
        acc.warn(f'"continueOnFail" is deprecated. Use "onError: {mapped}" instead.',
                 code="DEPRECATED_CONTINUE_ON_FAIL", fix=f'Replace with onError: "{mapped}"',
                 minimum=RUNTIME)
        acc.fix({"onError": mapped, "continueOnFail": None})

    if "maxTries" in settings:
        tries = settings["maxTries"]
        if not isinstance(tries, int) or isinstance(tries, bool) or tries < 1:
            acc.error("maxTries must be a positive integer", code="INVALID_MAX_TRIES", field="maxTries")
        elif tries > 10:
            acc.warn(f"maxTries is set to {tries}. Consider if this many retries is necessary.",
                     code="EXCESSIVE_RETRIES", field="maxTries")
    elif settings.get("retryOnFail") is True:
        acc.info("retryOnFail is enabled but maxTries is not specified. Default is 3 attempts.",
                 code="DEFAULT_MAX_TRIES", minimum=STRICT)

    if "waitBetweenTries" in settings:
        wait = settings["waitBetweenTries"]
        if not _is_number(wait) or wait < 0:
            acc.error("waitBetweenTries must be a non-negative number (milliseconds)",
                      code="INVALID_WAIT", field="waitBetweenTries")
        elif wait > 300000:
            acc.warn(f"waitBetweenTries is set to {wait}ms ({wait / 1000:.1f}s). This seems excessive.",
                     code="EXCESSIVE_WAIT", field="waitBetweenTries")

    if settings.get("executeOnce") is True:
        acc.warn("executeOnce is enabled. This node will only process the first input item.",
                 code="EXECUTE_ONCE", minimum=RUNTIME)
    return acc


def apply_error_handling(acc: RuleAccumulator, settings: Dict[str, Any], defaults: Dict[str, Any],
                         label: str = "This node") -> RuleAccumulator:
    """
    Best-practice check for network/IO-capable types: when none of onError,
    retryOnFail, continueOnFail is set, warn and propose `defaults`.
    """
    if settings is None or any(k in settings for k in ("onError", "retryOnFail", "continueOnFail")):
        return acc
    acc.warn(f"{label} has no error handling configured",
             code="MISSING_ERROR_HANDLING",
             fix=f"Set onError: \"{defaults.get('onError', 'stopWorkflow')}\"",
             minimum=AI_FRIENDLY)
    acc.fix(dict(defaults))
    return acc

