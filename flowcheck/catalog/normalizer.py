# flowcheck/catalog/normalizer.py
"""
Node type spellings.

Workflows use the full package prefix (`n8n-nodes-base.httpRequest`,
`@n8n/n8n-nodes-langchain.agent`); catalogs commonly index the short form
(`nodes-base.httpRequest`, `nodes-langchain.agent`). Both are accepted.
"""

from typing import List

BASE_FULL = "n8n-nodes-base."
BASE_SHORT = "nodes-base."
LANGCHAIN_FULL = "@n8n/n8n-nodes-langchain."
LANGCHAIN_BARE = "n8n-nodes-langchain."
LANGCHAIN_SHORT = "nodes-langchain."


def normalize_type(node_type: str) -> str:
    """Full form -> short form. Anything else is returned unchanged."""
    if node_type.startswith(BASE_FULL):
        return BASE_SHORT + node_type[len(BASE_FULL):]
    if node_type.startswith(LANGCHAIN_FULL):
        return LANGCHAIN_SHORT + node_type[len(LANGCHAIN_FULL):]
    if node_type.startswith(LANGCHAIN_BARE):
        return LANGCHAIN_SHORT + node_type[len(LANGCHAIN_BARE):]
    return node_type


def to_full_form(node_type: str) -> str:
    """Short form -> the spelling used inside workflow documents."""
    if node_type.startswith(BASE_SHORT):
        return BASE_FULL + node_type[len(BASE_SHORT):]
    if node_type.startswith(LANGCHAIN_SHORT):
        return LANGCHAIN_FULL + node_type[len(LANGCHAIN_SHORT):]
    if node_type.startswith(LANGCHAIN_BARE):
        return "@n8n/" + node_type
    return node_type


def short_name(node_type: str) -> str:
    """`n8n-nodes-base.httpRequest` -> `httpRequest`."""
    return node_type.rsplit(".", 1)[-1]


def detect_package(node_type: str) -> str:
    """Returns one of: base, langchain, community, unknown."""
    t = normalize_type(node_type)
    if t.startswith(BASE_SHORT):
        return "base"
    if t.startswith(LANGCHAIN_SHORT):
        return "langchain"
    if "." in t:
        return "community"
    return "unknown"


def is_community(node_type: str) -> bool:
    return detect_package(node_type) == "community"


def type_variations(node_type: str) -> List[str]:
    """
    Candidate spellings in lookup order: the literal string, its short form,
    its full form, then package prefixes for bare names.
    """
    out: List[str] = []

    def add(t: str) -> None:
        if t and t not in out:
            out.append(t)

    add(node_type)
    add(normalize_type(node_type))
    add(to_full_form(normalize_type(node_type)))
    if "." not in node_type:
        for prefix in (BASE_SHORT, BASE_FULL, LANGCHAIN_SHORT, LANGCHAIN_FULL):
            add(prefix + node_type)
    return out
