# flowcheck/rules/library/http_request.py
from __future__ import annotations

import json
from typing import Any, Dict

from flowcheck.rules.accumulator import RuleAccumulator
from flowcheck.rules.error_handling import apply_error_handling
from flowcheck.rules.profiles import AI_FRIENDLY, RUNTIME, STRICT
from flowcheck.rules.properties import is_expression

HTTP_ERROR_DEFAULTS = {
    "onError": "continueRegularOutput",
    "retryOnFail": True,
    "maxTries": 3,
    "waitBetweenTries": 1000,
}

_BODY_METHODS = ("POST", "PUT", "PATCH")
_IDEMPOTENT = ("GET", "HEAD", "OPTIONS")


def validate_http_request(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any]) -> RuleAccumulator:
    method = str(config.get("method") or "GET").upper()
    url = config.get("url")

    if not url:
        acc.error("URL is required for HTTP requests", code="MISSING_REQUIRED",
                  fix="Provide the full URL including protocol (https://...)", field="url")
    elif isinstance(url, str) and not is_expression(url) and not url.startswith(("http://", "https://")):
        acc.warn("URL should start with http:// or https://", code="INVALID_URL", field="url", minimum=RUNTIME)

    if method in _BODY_METHODS and not config.get("sendBody"):
        acc.warn(f"{method} requests typically include a body", code="MISSING_BODY",
                 fix="Set sendBody: true and configure the body content", field="sendBody")
        acc.fix({"parameters": {"sendBody": True, "contentType": "json"}})

    body = config.get("jsonBody")
    if isinstance(body, str) and body.strip() and not is_expression(body):
        try:
            json.loads(body)
        except ValueError as e:
            acc.error(f"jsonBody is not valid JSON: {e}", code="INVALID_JSON",
                      fix="Fix the JSON or use an expression", field="jsonBody", minimum=RUNTIME)

    auth = config.get("authentication")
    if isinstance(url, str) and "api" in url.lower() and auth in (None, "", "none"):
        acc.warn("API endpoints typically require authentication", code="MISSING_AUTHENTICATION",
                 fix="Configure an authentication method", field="authentication", minimum=AI_FRIENDLY)

    if settings.get("retryOnFail") and method not in _IDEMPOTENT:
        tries = settings.get("maxTries")
        if not isinstance(tries, int) or tries > 3:
            acc.warn(f"{method} requests might not be idempotent. Use fewer retries.",
                     code="NON_IDEMPOTENT_RETRY", fix="Set maxTries: 2", minimum=STRICT)

    options = config.get("options") if isinstance(config.get("options"), dict) else {}
    if not options.get("timeout") and not config.get("timeout"):
        acc.suggest("Consider setting a timeout to prevent hanging requests")

    return apply_error_handling(acc, settings, HTTP_ERROR_DEFAULTS, "HTTP Request")
