# flowcheck/catalog/similarity.py
"""'Did you mean' suggestions for unknown node types."""

from __future__ import annotations

from difflib import get_close_matches
from typing import Iterable, List

from flowcheck.catalog.normalizer import normalize_type, short_name, to_full_form

FUZZY_CUTOFF = 0.6
MAX_SUGGESTIONS = 3

# common shorthand and misspellings -> catalog type
COMMON_NODE_MAPPINGS = {
    "webhook": "nodes-base.webhook",
    "httprequest": "nodes-base.httpRequest",
    "http": "nodes-base.httpRequest",
    "set": "nodes-base.set",
    "code": "nodes-base.code",
    "function": "nodes-base.code",
    "manualtrigger": "nodes-base.manualTrigger",
    "manual": "nodes-base.manualTrigger",
    "scheduletrigger": "nodes-base.scheduleTrigger",
    "schedule": "nodes-base.scheduleTrigger",
    "cron": "nodes-base.scheduleTrigger",
    "emailsend": "nodes-base.emailSend",
    "email": "nodes-base.emailSend",
    "slack": "nodes-base.slack",
    "discord": "nodes-base.discord",
    "postgres": "nodes-base.postgres",
    "mysql": "nodes-base.mySql",
    "mongodb": "nodes-base.mongoDb",
    "redis": "nodes-base.redis",
    "if": "nodes-base.if",
    "switch": "nodes-base.switch",
    "merge": "nodes-base.merge",
    "splitinbatches": "nodes-base.splitInBatches",
    "loop": "nodes-base.splitInBatches",
    "googlesheets": "nodes-base.googleSheets",
    "sheets": "nodes-base.googleSheets",
    "airtable": "nodes-base.airtable",
    "github": "nodes-base.github",
    "git": "nodes-base.github",
    "agent": "nodes-langchain.agent",
    "aiagent": "nodes-langchain.agent",
    "chattrigger": "nodes-langchain.chatTrigger",
    "openai": "nodes-langchain.lmChatOpenAi",
}


def suggest_types(node_type: str, known_types: Iterable[str] = (), n: int = MAX_SUGGESTIONS) -> List[str]:
    """
    Up to `n` full-form type names close to `node_type`: the shorthand table
    first (exact, then substring), then fuzzy matches against `known_types`.
    """
    out: List[str] = []

    def add(t: str) -> None:
        full = to_full_form(t)
        if full not in out and full != node_type:
            out.append(full)

    key = short_name(node_type).lower()
    if key in COMMON_NODE_MAPPINGS:
        add(COMMON_NODE_MAPPINGS[key])
    for alias, target in COMMON_NODE_MAPPINGS.items():
        if len(alias) > 2 and len(key) > 2 and (alias in key or key in alias):
            add(target)

    known = {normalize_type(t) for t in known_types}
    by_short = {short_name(t).lower(): t for t in sorted(known)}
    for match in get_close_matches(key, list(by_short), n=n, cutoff=FUZZY_CUTOFF):
        add(by_short[match])
    for match in get_close_matches(normalize_type(node_type), sorted(known), n=n, cutoff=FUZZY_CUTOFF):
        add(match)
    return out[:n]
