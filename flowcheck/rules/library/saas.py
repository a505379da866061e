# flowcheck/rules/library/saas.py
"""Rules for hosted-service nodes: Slack, Google Sheets, OpenAI."""

from __future__ import annotations

import re
from typing import Any, Dict

from flowcheck.rules.accumulator import RuleAccumulator
from flowcheck.rules.error_handling import apply_error_handling
from flowcheck.rules.profiles import AI_FRIENDLY, RUNTIME, STRICT

# ---------- Slack ----------

SLACK_ERROR_DEFAULTS = {"onError": "continueRegularOutput", "retryOnFail": True, "maxTries": 2, "waitBetweenTries": 3000}


def validate_slack(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any]) -> RuleAccumulator:
    resource = config.get("resource", "message")
    operation = config.get("operation", "post")

    if resource == "message":
        if operation in ("post", "send"):
            if not config.get("channel") and not config.get("channelId"):
                acc.error("Channel is required to send a message", code="MISSING_REQUIRED",
                          fix='Set channel to a name ("#general") or ID ("C1234567890")', field="channel")
            if not (config.get("text") or config.get("blocks") or config.get("attachments")):
                acc.error("Message content is required - provide text, blocks, or attachments",
                          code="MISSING_REQUIRED", fix="Add a text field", field="text")
            text = config.get("text")
            if isinstance(text, str) and len(text) > 40000:
                acc.warn("Message text exceeds Slack's 40,000 character limit", code="SLACK_TEXT_LIMIT",
                         field="text")
        elif operation == "update":
            if not config.get("ts"):
                acc.error("Message timestamp (ts) is required to update a message", code="MISSING_REQUIRED",
                          fix="Use the ts returned when the message was sent", field="ts")
            if not config.get("text") and not config.get("blocks"):
                acc.error("New text or blocks are required to update a message", code="MISSING_REQUIRED",
                          field="text")
        elif operation == "delete":
            if not config.get("ts"):
                acc.error("Message timestamp (ts) is required to delete a message", code="MISSING_REQUIRED",
                          field="ts")
            acc.warn("Message deletion is permanent and cannot be undone", code="DESTRUCTIVE_OPERATION",
                     minimum=AI_FRIENDLY)
    elif resource == "channel" and operation == "create":
        name = config.get("name") or config.get("channelId")
        if not name:
            acc.error("Channel name is required", code="MISSING_REQUIRED", field="name")
        elif isinstance(name, str) and not re.match(r"^[a-z0-9_-]{1,80}$", name):
            acc.warn("Channel names must be lowercase, without spaces, at most 80 characters",
                     code="SLACK_CHANNEL_NAME", field="name")
    elif resource == "user" and operation == "get" and not config.get("user"):
        acc.error("User identifier required - use email, user ID, or username", code="MISSING_REQUIRED",
                  field="user")

    return apply_error_handling(acc, settings, SLACK_ERROR_DEFAULTS, "Slack")


# ---------- Google Sheets ----------

_A1 = re.compile(r"^('[^']+'|[^!]+)!([A-Z]+\d*:?[A-Z]*\d*|[A-Z]+:[A-Z]+|\d+:\d+)$", re.IGNORECASE)


def _check_range(acc: RuleAccumulator, rng: str) -> None:
    if "!" not in rng:
        acc.warn("Range should include the sheet name", code="SHEETS_RANGE",
                 fix='Format: "SheetName!A1:B10"', field="range", minimum=STRICT)
        return
    if " " in rng and not rng.startswith("'"):
        acc.error("Sheet names with spaces must be quoted", code="SHEETS_RANGE_QUOTES",
                  fix="Use 'Sheet Name'!A1:B10", field="range", minimum=RUNTIME)
    elif not _A1.match(rng):
        acc.warn("Range may not be in valid A1 notation", code="SHEETS_RANGE",
                 fix='Examples: "Sheet1!A1:B10", "Sheet1!A:B"', field="range")


def validate_google_sheets(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any]) -> RuleAccumulator:
    operation = config.get("operation")
    if not config.get("sheetId") and not config.get("documentId"):
        acc.error("Spreadsheet ID is required", code="MISSING_REQUIRED",
                  fix="Provide the document ID from the sheet URL", field="documentId")

    has_mapping = bool(config.get("columns") or config.get("fieldsUi"))
    if operation in ("append", "appendOrUpdate"):
        if not config.get("range") and not has_mapping and not config.get("sheetName"):
            acc.error(f"Range or column mapping is required for {operation}", code="MISSING_REQUIRED",
                      fix='Specify range like "Sheet1!A:B"', field="range")
        options = config.get("options") if isinstance(config.get("options"), dict) else {}
        if not options.get("valueInputMode") and not options.get("cellFormat"):
            acc.warn("Consider setting valueInputMode for proper data formatting", code="SHEETS_INPUT_MODE",
                     minimum=STRICT)
            acc.fix({"parameters": {"options": {"valueInputMode": "USER_ENTERED"}}}, minimum=STRICT)
    elif operation == "update":
        if not config.get("range") and not has_mapping:
            acc.error("Range or column mapping is required for update", code="MISSING_REQUIRED", field="range")
    elif operation in ("delete", "clear"):
        if operation == "delete" and config.get("toDelete") == "rows" and config.get("startIndex") is None:
            acc.error("Start index is required when deleting rows", code="MISSING_REQUIRED", field="startIndex")
        if not config.get("numberToDelete") and not config.get("range"):
            acc.warn(f"{operation} has no row limit or range and may remove more data than intended",
                     code="DESTRUCTIVE_OPERATION", field="numberToDelete")
        acc.warn("Deletion is permanent. Consider reading the data first as a backup",
                 code="DESTRUCTIVE_OPERATION", minimum=AI_FRIENDLY)

    rng = config.get("range")
    if isinstance(rng, str) and rng and not rng.startswith("="):
        _check_range(acc, rng)

    defaults = ({"onError": "stopWorkflow", "retryOnFail": True, "maxTries": 2}
                if operation in ("append", "appendOrUpdate", "update", "delete", "clear")
                else {"onError": "continueRegularOutput", "retryOnFail": True, "maxTries": 3})
    return apply_error_handling(acc, settings, defaults, "Google Sheets")


# ---------- OpenAI ----------

DEPRECATED_OPENAI_MODELS = ("text-davinci-003", "text-davinci-002", "code-davinci-002", "gpt-3.5-turbo-0301")
OPENAI_ERROR_DEFAULTS = {
    "onError": "continueRegularOutput",
    "retryOnFail": True,
    "maxTries": 3,
    "waitBetweenTries": 5000,
}


def validate_openai(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any]) -> RuleAccumulator:
    resource = config.get("resource", "text")
    operation = config.get("operation")
    model = config.get("model") or config.get("modelId")
    if isinstance(model, dict):
        model = model.get("value")

    if resource in ("chat", "text") and operation in (None, "create", "complete", "message"):
        if not model:
            acc.error("Model selection is required", code="MISSING_REQUIRED",
                      fix='Choose a model such as "gpt-4o-mini"', field="model")
        elif model in DEPRECATED_OPENAI_MODELS:
            acc.warn(f"Model {model} is deprecated", code="DEPRECATED_MODEL",
                     fix="Use a current chat model", field="model")
        if resource == "chat" and not (config.get("messages") or config.get("prompt")):
            acc.error("Messages or prompt required for chat completion", code="MISSING_REQUIRED",
                      field="messages")

    options = config.get("options") if isinstance(config.get("options"), dict) else {}
    max_tokens = config.get("maxTokens", options.get("maxTokens"))
    if isinstance(max_tokens, (int, float)) and max_tokens > 4000:
        acc.warn("High token limit may increase costs significantly", code="HIGH_MAX_TOKENS",
                 field="maxTokens", minimum=AI_FRIENDLY)

    temperature = config.get("temperature", options.get("temperature"))
    if isinstance(temperature, (int, float)) and not isinstance(temperature, bool) and not 0 <= temperature <= 2:
        acc.error("Temperature must be between 0 and 2", code="INVALID_VALUE",
                  fix="Set temperature between 0 (deterministic) and 2 (creative)", field="temperature",
                  minimum=RUNTIME)

    return apply_error_handling(acc, settings, OPENAI_ERROR_DEFAULTS, "OpenAI")
