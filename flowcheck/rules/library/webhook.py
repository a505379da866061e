# flowcheck/rules/library/webhook.py
from __future__ import annotations

import re
from typing import Any, Dict

from flowcheck.rules.accumulator import RuleAccumulator
from flowcheck.rules.profiles import AI_FRIENDLY, RUNTIME

_PATH_OK = re.compile(r"^[A-Za-z0-9_\-/:{}]+$")


def validate_webhook(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any]) -> RuleAccumulator:
    path = config.get("path")
    if not path:
        acc.error("Webhook path is required", code="MISSING_REQUIRED",
                  fix='Set a unique path, e.g. "my-webhook"', field="path")
    elif isinstance(path, str):
        if path.startswith("/"):
            acc.warn("Webhook path should not start with '/'", code="WEBHOOK_LEADING_SLASH",
                     fix=f'Use "{path.lstrip("/")}"', field="path", minimum=RUNTIME)
        if not _PATH_OK.match(path.lstrip("/") or "x"):
            acc.warn("Webhook path contains special characters", code="WEBHOOK_PATH_CHARS",
                     fix="Use only letters, digits, '-', '_' and '/'", field="path", minimum=RUNTIME)

    if config.get("responseMode") == "responseNode" and "onError" not in settings:
        acc.error('responseMode "responseNode" requires onError so failures still send a response',
                  code="WEBHOOK_RESPONSE_ON_ERROR", fix='Set onError: "continueRegularOutput"')
        acc.fix({"onError": "continueRegularOutput"})
    elif "onError" not in settings and "continueOnFail" not in settings:
        acc.suggest("Webhooks should always answer the caller; consider onError: \"continueRegularOutput\"",
                    minimum=AI_FRIENDLY)
        acc.fix({"onError": "continueRegularOutput"})
    return acc
